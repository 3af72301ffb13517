"""
Corporate Structure
Validates the ownership tree returned by the backend and derives the
UBO-first (inverted) view of it
"""

import re
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from schema import VIRTUAL_ROOT_NAME


def _coerce_percentage(value: Any) -> Optional[float]:
    """Numbers or numeric strings in [0, 100]; anything else is unknown (None)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip().rstrip("%").strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    value = float(value)
    if value != value or value < 0 or value > 100:  # NaN or out of range
        return None
    return value


def _coerce_shares(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.replace(",", "").strip()
        if not re.fullmatch(r"\d+(\.\d+)?", text):
            return None  # e.g. "Unknown (PSC)", "N/A (guarantee company)"
        value = float(text)
    if not isinstance(value, (int, float)) or value != value or value < 0:
        return None
    return int(value)


class OwnershipNode(BaseModel):
    """One party (company or individual) in the ownership structure."""

    model_config = ConfigDict(extra="ignore")

    name: str = "Unknown"
    company_number: Optional[str] = None
    percentage: Optional[float] = None
    percentage_band: str = ""
    shares_held: Optional[int] = None
    is_company: bool = True
    country: Optional[str] = None
    children: List["OwnershipNode"] = []

    # Only set on nodes produced by invert_ownership_tree()
    depth: Optional[int] = None
    effective_percentage: Optional[float] = None
    is_virtual_root: bool = False

    @model_validator(mode="before")
    @classmethod
    def _merge_backend_shape(cls, data: Any) -> Any:
        # Root nodes carry company_name, descendants carry name; shareholders
        # and children are one logical child list.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("company_name") and not data.get("name"):
            data["name"] = data["company_name"]
        shareholders = data.get("shareholders") or []
        children = data.get("children") or []
        if not isinstance(shareholders, list):
            shareholders = []
        if not isinstance(children, list):
            children = []
        data["children"] = [c for c in shareholders + children if isinstance(c, (dict, OwnershipNode))]
        data["is_company"] = data.get("is_company") is not False
        return data

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v: Any) -> str:
        if v is None:
            return "Unknown"
        text = str(v).strip()
        return text or "Unknown"

    @field_validator("company_number", "country", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("percentage_band", mode="before")
    @classmethod
    def _band(cls, v: Any) -> str:
        return str(v).strip() if v else ""

    @field_validator("percentage", "effective_percentage", mode="before")
    @classmethod
    def _percentage(cls, v: Any) -> Optional[float]:
        return _coerce_percentage(v)

    @field_validator("shares_held", mode="before")
    @classmethod
    def _shares(cls, v: Any) -> Optional[int]:
        return _coerce_shares(v)


OwnershipNode.model_rebuild()


class UltimateOwner(BaseModel):
    """A leaf of the ownership tree with the path that leads to it (root first)."""

    name: str
    path: List[OwnershipNode]
    effective_percentage: float


def parse_ownership_tree(raw: Any) -> Optional[OwnershipNode]:
    """
    Validate the backend's ownership_tree document.
    Returns None when there is nothing usable (never raises).
    """
    if not raw or not isinstance(raw, dict):
        return None
    try:
        return OwnershipNode.model_validate(raw)
    except ValidationError as e:
        print(f"[TREE] ⚠️  Ownership tree rejected: {e.error_count()} validation error(s)", flush=True)
        return None
    except RecursionError:
        print("[TREE] ⚠️  Ownership tree rejected: nesting too deep", flush=True)
        return None


def tree_has_shareholders(tree: Optional[OwnershipNode]) -> bool:
    return bool(tree and tree.children)


def count_nodes(tree: Optional[OwnershipNode]) -> int:
    if tree is None:
        return 0
    return 1 + sum(count_nodes(child) for child in tree.children)


def tree_depth(tree: Optional[OwnershipNode]) -> int:
    """Number of layers below the root (0 for a lone root)."""
    if tree is None or not tree.children:
        return 0
    return 1 + max(tree_depth(child) for child in tree.children)


def find_ultimate_owners(tree: OwnershipNode) -> List[UltimateOwner]:
    """
    Walk down to every leaf, recording the path from the root and the
    cumulative percentage (product of each hop's percentage / 100).
    Hops with an unknown percentage weigh 0.
    """
    owners: List[UltimateOwner] = []

    def descend(node: OwnershipNode, path: List[OwnershipNode], cumulative: float):
        current_path = path + [node]
        if not node.children:
            owners.append(UltimateOwner(
                name=node.name,
                path=current_path,
                effective_percentage=cumulative,
            ))
            return
        for child in node.children:
            child_percentage = child.percentage or 0
            descend(child, current_path, cumulative * child_percentage / 100)

    descend(tree, [], 100.0)
    return owners


def invert_ownership_tree(tree: OwnershipNode) -> OwnershipNode:
    """
    Build the UBO-first view: one chain per ultimate owner, the owner promoted
    to depth 0 and the target company demoted to the deepest position. All
    chains hang from a virtual root (depth -1) that is never rendered.
    """
    owners = find_ultimate_owners(tree)
    print(f"[INVERT] Found {len(owners)} ultimate owner(s) under {tree.name}", flush=True)

    chains = []
    for owner in owners:
        reversed_path = list(reversed(owner.path))
        chain: Optional[OwnershipNode] = None
        # Build bottom-up so each node can take its already-built child
        for depth in range(len(reversed_path) - 1, -1, -1):
            source = reversed_path[depth]
            if source is tree:
                percentage = source.percentage if source.percentage is not None else 100.0
            else:
                percentage = source.percentage
            node = OwnershipNode(
                name=source.name,
                company_number=source.company_number,
                percentage=percentage,
                percentage_band=source.percentage_band,
                shares_held=source.shares_held,
                is_company=source.is_company,
                country=source.country,
                children=[chain] if chain is not None else [],
                depth=depth,
            )
            if depth == 0:
                node.percentage = owner.effective_percentage
                node.effective_percentage = owner.effective_percentage
                node.percentage_band = ""
            chain = node
        chains.append(chain)

    return OwnershipNode(
        name=VIRTUAL_ROOT_NAME,
        is_company=False,
        percentage=100,
        children=chains,
        depth=-1,
        is_virtual_root=True,
    )


_UK_LEGAL_TOKEN_RE = re.compile(r'\b(limited|ltd|plc|p\.l\.c|llp|l\.l\.p|lp|l\.p)\b\.?')
_TRAILING_PARENTHETICAL_RE = re.compile(r'\s*\([^()]*\)\s*$')


def is_company_name(name: str) -> bool:
    """
    Determine if a shareholder name is a company (not an individual).
    UK legal forms count anywhere in the name, so "ACME LIMITED (IN LIQUIDATION)"
    is a company; other suffixes must end the name.
    """
    if not name or not isinstance(name, str):
        return False

    name_lower = name.lower().strip()
    if _UK_LEGAL_TOKEN_RE.search(name_lower):
        return True

    bare = _TRAILING_PARENTHETICAL_RE.sub("", name_lower)
    company_suffixes = [
        # US
        'corporation', 'corp', 'incorporated', 'inc', 'company', 'co', 'llc',
        # European
        'se', 'sa', 's.a.', 'sarl', 'gmbh', 'ag', 'nv', 'n.v.', 'bv', 'b.v.',
        'spa', 's.p.a.', 'srl', 's.r.l.', 'ab', 'oy', 'as', 'a/s',
    ]
    for suffix in company_suffixes:
        pattern = r'\b' + re.escape(suffix) + r'\.?\s*$'
        if re.search(pattern, bare):
            return True

    corporate_indicators = [
        'holdings', 'holding', 'group', 'trust', 'investment',
        'ventures', 'capital', 'fund', 'partners', 'partnership'
    ]
    return any(indicator in name_lower for indicator in corporate_indicators)


def build_flat_ownership_text(shareholders: List[Dict[str, Any]], company_name: str) -> str:
    """
    Single-layer text tree, used when the backend returned direct shareholders
    but no multi-layer ownership tree.
    """
    if not shareholders:
        return "No ownership data available"

    lines = [f"📊 {company_name}", "│"]
    ordered = sorted(
        shareholders,
        key=lambda sh: _coerce_percentage(sh.get("percentage")) or 0,
        reverse=True,
    )
    for idx, sh in enumerate(ordered):
        is_last = idx == len(ordered) - 1
        connector = "└── " if is_last else "├── "
        name = str(sh.get("name") or "Unknown")
        percentage = _coerce_percentage(sh.get("percentage")) or 0
        shares = _coerce_shares(sh.get("shares_held")) or 0
        is_parent = is_company_name(name)
        icon = "🏢" if is_parent else "👤"
        lines.append(f"{connector}{icon} {name} ({percentage:.2f}% - {shares:,} shares)")
        if is_parent and not is_last:
            lines.append("│     [Parent Company - May have own shareholders]")
    return "\n".join(lines)

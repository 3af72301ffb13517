"""
Ownership Tree Layout
Positions every node of an ownership tree for rendering: each subtree gets a
horizontal span proportional to its width and children sit one level below
their parent, centred in their span.
"""

from typing import List, Optional, Set, Tuple

from pydantic import BaseModel

from corporate_structure import OwnershipNode, invert_ownership_tree
from schema import (
    COMPACT_CHILD_THRESHOLD,
    COMPACT_CHILD_WIDTH,
    LEAF_WIDTH,
    LEVEL_HEIGHT,
    ROOT_Y,
)


class PositionedNode(BaseModel):
    id: str
    name: str
    company_number: Optional[str] = None
    percentage: Optional[float] = None
    percentage_band: str = ""
    shares: int = 0
    is_company: bool = True
    depth: int
    x: float
    y: float
    country: str = ""
    effective_percentage: float = 0.0


class Link(BaseModel):
    source: str
    target: str


class TreeLayout(BaseModel):
    nodes: List[PositionedNode] = []
    links: List[Link] = []
    width: float = 0
    inverted: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node(self, node_id: str) -> Optional[PositionedNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None


def compute_subtree_width(node: OwnershipNode) -> float:
    """Horizontal space (px) the whole subtree under `node` needs."""
    children = node.children
    if not children:
        return LEAF_WIDTH
    # Very wide fan-outs get a fixed compact slot per child instead of recursing
    if len(children) > COMPACT_CHILD_THRESHOLD:
        return len(children) * COMPACT_CHILD_WIDTH
    return max(LEAF_WIDTH, sum(compute_subtree_width(child) for child in children))


def child_slot_widths(node: OwnershipNode) -> List[float]:
    """Span reserved for each direct child of `node`, left to right."""
    children = node.children
    if len(children) > COMPACT_CHILD_THRESHOLD:
        return [COMPACT_CHILD_WIDTH] * len(children)
    return [compute_subtree_width(child) for child in children]


def _dedup_key(node: OwnershipNode, x: float, y: float) -> Tuple:
    if node.company_number:
        return ("company", node.company_number)
    return ("position", node.name, x, y)


def build_tree_layout(tree: Optional[OwnershipNode], inverted: bool = False) -> TreeLayout:
    """
    Lay out `tree` top-down. With `inverted` the tree is first turned into its
    UBO-first form; the synthetic root of that form is not emitted.

    A node whose dedup key (company number, else name + position) was already
    emitted in this pass is skipped along with its subtree, so repeated
    shareholdings and cyclic input are drawn once.
    """
    if tree is None:
        return TreeLayout(inverted=inverted)

    working = invert_ownership_tree(tree) if inverted else tree

    nodes: List[PositionedNode] = []
    links: List[Link] = []
    seen: Set[Tuple] = set()
    skipped = 0

    def place_children(node: OwnershipNode, x: float, child_y: float, child_depth: int,
                       parent_id: Optional[str], cumulative: float):
        widths = child_slot_widths(node)
        current_x = x - sum(widths) / 2
        for child, width in zip(node.children, widths):
            child_x = current_x + width / 2
            if child.effective_percentage is not None:
                child_cumulative = child.effective_percentage
            else:
                child_cumulative = cumulative * (child.percentage or 0) / 100
            traverse(child, child_depth, child_x, child_y, parent_id, child_cumulative)
            current_x += width

    def traverse(node: OwnershipNode, depth: int, x: float, y: float,
                 parent_id: Optional[str], cumulative: float):
        nonlocal skipped

        if node.is_virtual_root:
            # Not drawn: chains start on the root row at depth 0 with no incoming link
            place_children(node, x, y, depth + 1, None, cumulative)
            return

        key = _dedup_key(node, x, y)
        if key in seen:
            skipped += 1
            return
        seen.add(key)

        if node.effective_percentage is not None:
            display_percentage = node.effective_percentage
        elif node.percentage is not None:
            display_percentage = node.percentage
        elif depth == 0:
            display_percentage = 100.0
        else:
            display_percentage = None

        node_id = f"node-{len(nodes)}"
        nodes.append(PositionedNode(
            id=node_id,
            name=node.name,
            company_number=node.company_number,
            percentage=display_percentage,
            percentage_band=node.percentage_band,
            shares=node.shares_held or 0,
            is_company=node.is_company,
            depth=depth,
            x=x,
            y=y,
            country=node.country or "",
            effective_percentage=cumulative,
        ))
        if parent_id:
            links.append(Link(source=parent_id, target=node_id))

        if node.children:
            place_children(node, x, y + LEVEL_HEIGHT, depth + 1, node_id, cumulative)

    width = compute_subtree_width(working)
    start_depth = -1 if working.is_virtual_root else 0
    # The root's own percentage is implicitly 100
    traverse(working, start_depth, width / 2, ROOT_Y, None, 100.0)

    print(
        f"[TREE] Laid out {len(nodes)} node(s), {len(links)} link(s), "
        f"width {width:g}px{' (UBO view)' if inverted else ''}"
        f"{f', skipped {skipped} duplicate(s)' if skipped else ''}",
        flush=True,
    )
    return TreeLayout(nodes=nodes, links=links, width=width, inverted=inverted)

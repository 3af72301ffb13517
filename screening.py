"""
Screening List
Consolidates the backend's screening_list categories into one deduplicated
roster of people and companies, keyed by a normalised name
"""

import re
import unicodedata
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from schema import COMPANY_NAME_TOKENS, COURTESY_TITLES, SCREENING_SOURCES

_TITLE_RE = re.compile(r"^(" + "|".join(COURTESY_TITLES) + r")\.?\s+")
_COMPANY_TOKEN_RE = re.compile("|".join(COMPANY_NAME_TOKENS))
_NON_ALNUM_RE = re.compile(r"[^A-Z0-9 ]")
_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_TARGET_NAME = "Target Company"
NO_LINKED_ENTITY = "N/A"


class ScreeningEntry(BaseModel):
    name: str
    roles: List[str] = []
    nationality: Optional[str] = None
    dob: Optional[str] = None
    linked_entities: List[str] = []
    is_company: bool = False
    company_number: Optional[str] = None


def _name_text(value: Any) -> str:
    # Backend names are strings; bare numbers are kept, objects are dropped
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def normalize_name(name: Any) -> str:
    """
    Merge key for a party's name.

    Companies (name contains LIMITED/LTD/PLC/LLP) have their legal suffixes
    canonicalised and punctuation removed. People lose a leading courtesy
    title, "Lastname, Firstname" is reordered and the words are sorted, so
    "KHAN HAROON" and "Haroon Khan" give the same key.
    """
    text = _name_text(name)
    if not text:
        return ""
    upper = text.upper()

    if _COMPANY_TOKEN_RE.search(upper):
        key = upper.replace(" LIMITED", " LTD")
        if key.endswith("LIMITED"):
            key = key[: -len("LIMITED")] + "LTD"
        key = key.replace("P.L.C", "PLC").replace("L.L.P", "LLP").replace(" COMPANY", " CO")
        key = _NON_ALNUM_RE.sub("", key)
        return _WHITESPACE_RE.sub(" ", key).strip()

    key = _TITLE_RE.sub("", upper)
    if "," in key:
        parts = [p.strip() for p in key.split(",")]
        if len(parts) == 2:
            key = f"{parts[1]} {parts[0]}"
    key = _WHITESPACE_RE.sub(" ", key).strip()
    return " ".join(sorted(key.split(" "))) if key else ""


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ScreeningConsolidator:
    """Accumulates screening records, merging those that share a normalised name."""

    def __init__(self):
        self._entries: Dict[str, ScreeningEntry] = {}

    def __len__(self):
        return len(self._entries)

    def add(
        self,
        name: Optional[str],
        role: Optional[str] = None,
        nationality: Optional[str] = None,
        dob: Optional[str] = None,
        linked_entity: Optional[str] = None,
        is_company: bool = False,
        company_number: Optional[str] = None,
    ) -> Optional[ScreeningEntry]:
        key = normalize_name(name)
        if not key:
            return None

        display_name = _name_text(name)
        role = _clean(role)
        nationality = _clean(nationality)
        dob = _clean(dob)
        linked_entity = _clean(linked_entity)
        company_number = _clean(company_number)

        existing = self._entries.get(key)
        if existing is None:
            entry = ScreeningEntry(
                name=display_name,
                roles=[role] if role else [],
                nationality=nationality,
                dob=dob,
                linked_entities=[linked_entity] if linked_entity else [],
                is_company=bool(is_company),
                company_number=company_number,
            )
            self._entries[key] = entry
            return entry

        # Prefer the more informative record's name, or the formal "Last, First" form
        gains_details = bool(nationality or dob) and not (existing.nationality or existing.dob)
        more_formal = "," in display_name and "," not in existing.name
        if gains_details or more_formal:
            existing.name = display_name

        if role and role not in existing.roles:
            existing.roles.append(role)
        if nationality and not existing.nationality:
            existing.nationality = nationality
        if dob and not existing.dob:
            existing.dob = dob
        if linked_entity and linked_entity not in existing.linked_entities:
            existing.linked_entities.append(linked_entity)
        existing.is_company = existing.is_company or bool(is_company)
        if company_number and not existing.company_number:
            existing.company_number = company_number
        return existing

    def entries(self) -> List[ScreeningEntry]:
        """Companies first, then individuals; alphabetical within each group."""
        return sorted(
            self._entries.values(),
            key=lambda e: (not e.is_company, _collation_key(e.name)),
        )


def _collation_key(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.casefold()


def target_company_name(item: Dict[str, Any]) -> str:
    if _has_text(item.get("input_name")):
        return item["input_name"].strip()
    profile = item.get("profile")
    if isinstance(profile, dict) and _has_text(profile.get("company_name")):
        return profile["company_name"].strip()
    return DEFAULT_TARGET_NAME


def _records(screening_list: Dict[str, Any], source: str) -> List[Dict[str, Any]]:
    records = screening_list.get(source)
    if not isinstance(records, list):
        return []
    return [r for r in records if isinstance(r, dict)]


def consolidate_screening_list(screening_list: Optional[Dict[str, Any]], target_name: str) -> List[ScreeningEntry]:
    """
    Merge the screening_list categories in their fixed processing order.
    The order matters: earlier sources decide which display name is kept.
    """
    if not isinstance(screening_list, dict):
        return []

    consolidator = ScreeningConsolidator()

    for source in SCREENING_SOURCES:
        for record in _records(screening_list, source):
            if source == "ownership_chain":
                # Individuals in the chain come back via governance_and_control
                if not record.get("is_company"):
                    continue
                consolidator.add(
                    record.get("name"),
                    role=record.get("role"),
                    linked_entity=target_name,
                    is_company=True,
                    company_number=record.get("company_number"),
                )
            elif source == "governance_and_control":
                consolidator.add(
                    record.get("name"),
                    role=record.get("role"),
                    nationality=record.get("nationality"),
                    dob=record.get("dob"),
                    linked_entity=target_name,
                    is_company=False,
                )
            elif source in ("ubos", "trusts"):
                consolidator.add(
                    record.get("name"),
                    role=record.get("role"),
                    linked_entity=target_name,
                    is_company=False,
                )
            elif source == "entity":
                consolidator.add(
                    record.get("name"),
                    role=record.get("type"),
                    linked_entity=NO_LINKED_ENTITY,
                    is_company=True,
                    company_number=record.get("company_number"),
                )

    entries = consolidator.entries()
    companies = sum(1 for e in entries if e.is_company)
    print(
        f"[SCREENING] {target_name}: {len(entries)} consolidated entr{'y' if len(entries) == 1 else 'ies'} "
        f"({companies} compan{'y' if companies == 1 else 'ies'}, {len(entries) - companies} individual(s))",
        flush=True,
    )
    return entries


def linked_entity_options(entries: List[ScreeningEntry]) -> List[str]:
    return sorted({linked for e in entries for linked in e.linked_entities})


def filter_by_linked_entity(entries: List[ScreeningEntry], linked_entity: Optional[str]) -> List[ScreeningEntry]:
    if not linked_entity:
        return list(entries)
    return [e for e in entries if linked_entity in e.linked_entities]


def screening_rows_for_csv(entries: List[ScreeningEntry]) -> List[List[str]]:
    rows = []
    for e in entries:
        rows.append([
            e.name,
            "Company" if e.is_company else "Individual",
            "; ".join(e.roles),
            e.nationality or "",
            e.dob or "",
            e.company_number or "",
            "; ".join(e.linked_entities),
        ])
    return rows

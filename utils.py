# utils.py
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd


class BatchStatus(str, Enum):
    QUEUED  = "queued"
    RUNNING = "running"
    DONE    = "done"
    FAILED  = "failed"
    PENDING = "pending"


# (css class, label) per status; unknown statuses fall back to a plain badge
STATUS_BADGES = {
    BatchStatus.QUEUED.value:  ("badge-info", "Queued"),
    BatchStatus.RUNNING.value: ("badge-warning", "Running"),
    BatchStatus.DONE.value:    ("badge-success", "Done"),
    BatchStatus.FAILED.value:  ("badge-error", "Failed"),
    BatchStatus.PENDING.value: ("badge-secondary", "Pending"),
}

# Per-item enrichment status -> tailwind colour classes (batch page)
ENRICH_STATUS_CLASSES = {
    "done": "bg-green-100 text-green-800",
    "running": "bg-yellow-100 text-yellow-800",
}
DEFAULT_ENRICH_STATUS_CLASS = "bg-gray-100 text-gray-800"


def is_missing(val):
    if isinstance(val, (list, dict)):
        return not val
    return val in [None, ""] or pd.isna(val)


def _as_int(v) -> int:
    """Counters arrive as ints, floats, numeric strings or null."""
    if v is None or isinstance(v, bool):
        return 0
    try:
        return int(float(v))
    except (TypeError, ValueError):
        return 0


def badge_for_status(status: Optional[str]) -> Dict[str, str]:
    css, label = STATUS_BADGES.get(status or "", ("", status or ""))
    return {"css": css, "label": label}


def enrich_status_class(status: Optional[str]) -> str:
    return ENRICH_STATUS_CLASSES.get(status or "", DEFAULT_ENRICH_STATUS_CLASS)


def _stats(batch: Dict[str, Any]) -> Dict[str, int]:
    stats = batch.get("stats") if isinstance(batch, dict) else None
    stats = stats if isinstance(stats, dict) else {}
    return {
        "total": _as_int(stats.get("total")),
        "enriched": _as_int(stats.get("enriched")),
        "in_progress": _as_int(stats.get("in_progress")),
    }


def derive_batch_status(batch: Dict[str, Any]) -> str:
    stats = _stats(batch)
    if stats["in_progress"] > 0:
        return BatchStatus.RUNNING.value
    if stats["total"] > 0 and stats["enriched"] == stats["total"]:
        return BatchStatus.DONE.value
    return BatchStatus.PENDING.value


def batch_progress(batch: Dict[str, Any]) -> int:
    """Enriched share of the batch as a whole percentage (0 for an empty batch)."""
    stats = _stats(batch)
    if stats["total"] <= 0:
        return 0
    return int(round(stats["enriched"] / stats["total"] * 100))


def batch_rows(batches: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    for b in batches:
        if not isinstance(b, dict):
            continue
        status = derive_batch_status(b)
        rows.append({
            "id": b.get("id"),
            "filename": b.get("filename") or "N/A",
            "total": _stats(b)["total"],
            "status": status,
            "badge": badge_for_status(status),
            "progress": batch_progress(b),
            "created_at": format_date(b.get("created_at")),
        })
    return rows


def summarise_batches(batches: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Dashboard stats cards."""
    batches = [b for b in batches if isinstance(b, dict)]
    completed = sum(1 for b in batches if derive_batch_status(b) == BatchStatus.DONE.value)
    return {
        "total_batches": len(batches),
        "total_entities": sum(_stats(b)["total"] for b in batches),
        "in_progress": sum(1 for b in batches if _stats(b)["in_progress"] > 0),
        "success_rate": int(round(completed / len(batches) * 100)) if batches else 0,
    }


def format_date(value: Any) -> str:
    """dd/mm/yyyy, hh:mm (en-GB). Unparseable values are returned as given."""
    if is_missing(value):
        return ""
    try:
        ts = pd.to_datetime(value)
    except (ValueError, TypeError):
        return str(value)
    if pd.isna(ts):
        return str(value)
    return ts.strftime("%d/%m/%Y, %H:%M")


def format_address(addr: Any) -> str:
    if not isinstance(addr, dict) or not addr:
        return "N/A"
    parts = [
        addr.get("address_line_1"),
        addr.get("address_line_2"),
        addr.get("locality"),
        addr.get("postal_code"),
        addr.get("country"),
    ]
    return ", ".join(str(p) for p in parts if not is_missing(p))

# app.py
import os, io, csv
from urllib.parse import urlencode
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from fastapi import FastAPI, Request, UploadFile, File, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import backend_client
from backend_client import BackendError, ENVIRONMENT
from corporate_structure import (
    parse_ownership_tree,
    tree_has_shareholders,
    count_nodes,
    tree_depth,
    build_flat_ownership_text,
)
from tree_layout import build_tree_layout
from tree_svg import create_ownership_svg, svg_document
from screening import (
    consolidate_screening_list,
    target_company_name,
    linked_entity_options,
    filter_by_linked_entity,
    screening_rows_for_csv,
)
from schema import CONSOLIDATED_CSV_HEADERS, SCREENING_SOURCES
from security import limiter, validate_file_upload, get_security_headers, UPLOAD_RATE_LIMIT, MAX_FILE_SIZE
from utils import (
    batch_rows,
    summarise_batches,
    format_address,
    enrich_status_class,
    is_missing,
)

APP_VERSION = "1.0.1-screening"
APP_FEATURES = [
    "screening_list",
    "consolidated_screening",
    "ownership_tree_svg",
    "ubo_view",
]
TREE_VIEWS = ("ownership", "ubo")
BATCH_REFRESH_SECONDS = 10

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ---------------- App Setup ----------------
app = FastAPI(title="Entity Validator Frontend")
templates = Jinja2Templates(directory=os.path.join(BASE_DIR, "templates"))

# Serve /static/* from the local "static" folder
app.mount("/static", StaticFiles(directory=os.path.join(BASE_DIR, "static")), name="static")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------- Middleware ----------------
@app.middleware("http")
async def security_headers_everywhere(request: Request, call_next):
    response = await call_next(request)
    for header, value in get_security_headers().items():
        response.headers.setdefault(header, value)
    return response

# ---------------- Helpers ----------------
def _backend_error_response(e: BackendError, what: str) -> JSONResponse:
    return JSONResponse(
        content={"error": f"Failed to {what}", "details": e.details or e.message},
        status_code=500,
    )


def _proxy(call, what: str, *args) -> JSONResponse:
    """Forward a backend JSON answer with its status code untouched."""
    try:
        status_code, data = call(*args)
    except BackendError as e:
        return _backend_error_response(e, what)
    return JSONResponse(content=data, status_code=status_code)


def _view(view: Optional[str]) -> str:
    return view if view in TREE_VIEWS else "ownership"


def _shareholder_list(item: Dict[str, Any]) -> List[Dict[str, Any]]:
    # Older items carry a bare list, newer ones wrap it with enrichment_metadata
    shareholders = item.get("shareholders")
    if isinstance(shareholders, dict):
        shareholders = shareholders.get("shareholders")
    if not isinstance(shareholders, list):
        return []
    return [s for s in shareholders if isinstance(s, dict)]


def _enrichment_metadata(item: Dict[str, Any], tree) -> Optional[Dict[str, Any]]:
    shareholders = item.get("shareholders")
    meta = None
    if isinstance(shareholders, dict) and isinstance(shareholders.get("enrichment_metadata"), dict):
        meta = shareholders["enrichment_metadata"]
    elif isinstance(item.get("enrichment_metadata"), dict):
        meta = item["enrichment_metadata"]
    if meta is None:
        return None
    return {
        "duration": meta.get("enrichment_duration_seconds"),
        "tree_depth": meta.get("tree_depth", tree_depth(tree)),
        "total_entities": meta.get("total_entities_in_tree", count_nodes(tree)),
        "completed_at": meta.get("completed_at") or "",
    }


def _fetch_item(item_id: str):
    """(status_code, item or None, error message or None)"""
    try:
        status_code, data = backend_client.item_details(item_id)
    except BackendError as e:
        return 502, None, f"Failed to load entity details: {e.details or e.message}"
    if status_code >= 400 or not isinstance(data, dict):
        message = data.get("error") or data.get("detail") if isinstance(data, dict) else None
        return status_code if status_code >= 400 else 502, None, (
            f"Failed to load entity details: {message or f'backend returned HTTP {status_code}'}"
        )
    return status_code, data, None


def _item_screening(item: Dict[str, Any]):
    return consolidate_screening_list(item.get("screening_list"), target_company_name(item))


def _ownership_tree_layout(item: Dict[str, Any], view: str):
    tree = parse_ownership_tree(item.get("ownership_tree"))
    if not tree_has_shareholders(tree):
        return tree, None
    return tree, build_tree_layout(tree, inverted=(view == "ubo"))

# ---------------- API proxy routes ----------------
@app.get("/api/health")
def api_health():
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        _, data = backend_client.health()
    except BackendError as e:
        return JSONResponse(
            content={
                "frontend": "ok",
                "backend": "unreachable",
                "error": e.details or e.message,
                "timestamp": timestamp,
            },
            status_code=503,
        )
    return {"frontend": "ok", "backend": data, "timestamp": timestamp}


@app.post("/api/batch/upload")
@limiter.limit(UPLOAD_RATE_LIMIT)
def api_batch_upload(request: Request, file: Optional[UploadFile] = File(None)):
    if file is None or not file.filename:
        return JSONResponse(content={"error": "No file provided"}, status_code=400)

    # one byte past the limit is enough to reject as too large
    content = file.file.read(MAX_FILE_SIZE + 1)
    validate_file_upload(file.filename, content)

    try:
        status_code, data = backend_client.upload_batch(file.filename, content, file.content_type)
    except BackendError as e:
        return _backend_error_response(e, "upload to backend")
    return JSONResponse(content=data, status_code=status_code)


@app.get("/api/batch/{batch_id}/status")
def api_batch_status(batch_id: str):
    return _proxy(backend_client.batch_status, "fetch batch status", batch_id)


@app.get("/api/version")
def api_version():
    return {
        "version": APP_VERSION,
        "environment": ENVIRONMENT,
        "features": APP_FEATURES,
        "deployed": True,
    }


@app.get("/api/batches")
def api_batches():
    return _proxy(backend_client.list_batches, "fetch batches")


@app.get("/api/batch/{batch_id}/items")
def api_batch_items(batch_id: str):
    return _proxy(backend_client.batch_items, "fetch batch items", batch_id)


@app.get("/api/item/{item_id}")
def api_item(item_id: str):
    return _proxy(backend_client.item_details, "fetch item details", item_id)


@app.get("/api/item/{item_id}/screening-export.csv")
def api_screening_export(item_id: str):
    """Backend's KYC/AML screening CSV, passed through as a download."""
    try:
        status_code, text = backend_client.screening_export_csv(item_id)
    except BackendError as e:
        return _backend_error_response(e, "export screening list")
    if status_code >= 400:
        return JSONResponse(
            content={"error": "Failed to export screening list", "details": text},
            status_code=status_code,
        )
    return Response(
        content=text,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=screening_list_{item_id}.csv"},
    )


@app.get("/api/item/{item_id}/screening-list")
def api_screening_list(item_id: str, linked_entity: Optional[str] = Query(None)):
    try:
        status_code, item = backend_client.item_details(item_id)
    except BackendError as e:
        return _backend_error_response(e, "fetch item details")
    if status_code >= 400 or not isinstance(item, dict):
        return JSONResponse(content=item, status_code=status_code if status_code >= 400 else 502)

    entries = _item_screening(item)
    visible = filter_by_linked_entity(entries, linked_entity)
    return {
        "item_id": item_id,
        "target": target_company_name(item),
        "total": len(entries),
        "visible": len(visible),
        "linked_entities": linked_entity_options(entries),
        "entries": [e.model_dump() for e in visible],
    }


@app.get("/api/item/{item_id}/consolidated-screening.csv")
def api_consolidated_screening_csv(item_id: str):
    try:
        status_code, item = backend_client.item_details(item_id)
    except BackendError as e:
        return _backend_error_response(e, "export consolidated screening list")
    if status_code >= 400 or not isinstance(item, dict):
        return JSONResponse(content=item, status_code=status_code if status_code >= 400 else 502)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CONSOLIDATED_CSV_HEADERS)
    writer.writerows(screening_rows_for_csv(_item_screening(item)))

    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=consolidated_screening_{item_id}.csv"},
    )


@app.get("/api/item/{item_id}/ownership-layout")
def api_ownership_layout(item_id: str, view: str = Query("ownership")):
    try:
        status_code, item = backend_client.item_details(item_id)
    except BackendError as e:
        return _backend_error_response(e, "fetch item details")
    if status_code >= 400 or not isinstance(item, dict):
        return JSONResponse(content=item, status_code=status_code if status_code >= 400 else 502)

    _, layout = _ownership_tree_layout(item, _view(view))
    if layout is None:
        return {"item_id": item_id, "view": _view(view), "nodes": [], "links": [], "width": 0}
    return {"item_id": item_id, "view": _view(view), **layout.model_dump(exclude={"inverted"})}


@app.get("/api/debug/item/{item_id}")
def api_debug_item(item_id: str):
    try:
        _, data = backend_client.item_details(item_id)
    except BackendError as e:
        return _backend_error_response(e, "fetch item details")

    screening_list = data.get("screening_list") if isinstance(data, dict) else None
    has_list = isinstance(screening_list, dict) and bool(screening_list)

    def _count(source: str) -> int:
        records = screening_list.get(source) if has_list else None
        return len(records) if isinstance(records, list) else 0

    return {
        "has_screening_list": has_list,
        "screening_list_type": type(screening_list).__name__ if screening_list is not None else "undefined",
        "screening_list_keys": list(screening_list.keys()) if has_list else [],
        "entity_count": _count("entity"),
        "governance_count": _count("governance_and_control"),
        "ownership_chain_count": _count("ownership_chain"),
        "counts": {source: _count(source) for source in SCREENING_SOURCES},
        "full_data": screening_list,
    }

# ---------------- Pages ----------------
def _dashboard_context() -> Dict[str, Any]:
    try:
        status_code, data = backend_client.list_batches()
    except BackendError as e:
        return {"batches": [], "stats": None, "error": e.details or e.message}
    if status_code >= 400 or not isinstance(data, dict):
        return {"batches": [], "stats": None, "error": f"Backend returned HTTP {status_code}"}
    batches = data.get("batches") if isinstance(data.get("batches"), list) else []
    return {"batches": batch_rows(batches), "stats": summarise_batches(batches), "error": None}


@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request):
    ctx = _dashboard_context()
    ctx["refresh_seconds"] = BATCH_REFRESH_SECONDS
    return templates.TemplateResponse(request, "dashboard.html", ctx)


@app.get("/partials/batches", response_class=HTMLResponse)
def batches_partial(request: Request):
    return templates.TemplateResponse(request, "_batches_table.html", _dashboard_context())


@app.get("/batch/{batch_id}", response_class=HTMLResponse)
def batch_page(request: Request, batch_id: str):
    ctx: Dict[str, Any] = {"batch_id": batch_id, "items": [], "error": None}
    status_code = 200
    try:
        backend_status, data = backend_client.batch_items(batch_id)
        if backend_status >= 400 or not isinstance(data, dict):
            status_code = backend_status if backend_status >= 400 else 502
            message = data.get("error") or data.get("detail") if isinstance(data, dict) else None
            ctx["error"] = message or f"Backend returned HTTP {backend_status}"
        else:
            items = data.get("items") if isinstance(data.get("items"), list) else []
            ctx["items"] = [
                {
                    "id": it.get("id"),
                    "input_name": it.get("input_name") or "Unnamed entity",
                    "matched": it.get("company_number") or it.get("charity_number") or "-",
                    "registry": it.get("resolved_registry") or "-",
                    "enrich_status": it.get("enrich_status") or "pending",
                    "status_class": enrich_status_class(it.get("enrich_status")),
                }
                for it in items if isinstance(it, dict)
            ]
    except BackendError as e:
        print(f"[PAGE] batch {batch_id}: {e.message}", flush=True)
        status_code = 502
        ctx["error"] = e.details or e.message
    return templates.TemplateResponse(request, "batch.html", ctx, status_code=status_code)


@app.get("/item/{item_id}", response_class=HTMLResponse)
def item_page(
    request: Request,
    item_id: str,
    view: str = Query("ownership"),
    linked_entity: Optional[str] = Query(None),
):
    view = _view(view)
    status_code, item, error = _fetch_item(item_id)
    if error:
        print(f"[PAGE] item {item_id}: {error}", flush=True)
        return templates.TemplateResponse(
            request, "item.html", {"item_id": item_id, "error": error}, status_code=status_code,
        )

    tree, layout = _ownership_tree_layout(item, view)
    shareholders = _shareholder_list(item)

    tree_svg = create_ownership_svg(layout) if layout is not None else None
    flat_tree = None
    if tree_svg is None and shareholders:
        flat_tree = build_flat_ownership_text(shareholders, item.get("input_name") or target_company_name(item))

    entries = _item_screening(item)
    visible = filter_by_linked_entity(entries, linked_entity)

    profile = item.get("profile") if isinstance(item.get("profile"), dict) else {}
    sic_codes = profile.get("sic_codes")
    if isinstance(sic_codes, list):
        sic_codes = ", ".join(str(c) for c in sic_codes)

    ctx = {
        "item_id": item_id,
        "error": None,
        "item": item,
        "title": item.get("input_name") or target_company_name(item),
        "enrich_status": item.get("enrich_status") or "pending",
        "registry": item.get("resolved_registry") or "N/A",
        "metadata": _enrichment_metadata(item, tree),
        "profile": profile,
        "sic_codes": sic_codes,
        "address": format_address(profile.get("registered_office_address"))
        if not is_missing(profile.get("registered_office_address")) else None,
        "view": view,
        "multi_layer": tree is not None,
        "tree_svg": tree_svg,
        "tree_nodes": len(layout.nodes) if layout is not None else 0,
        "flat_tree": flat_tree,
        "entries": entries,
        "visible_count": len(visible),
        "total_entries": len(entries),
        "linked_entities": linked_entity_options(entries),
        "selected_linked_entity": linked_entity or "",
        "linked_entity_query": "&" + urlencode({"linked_entity": linked_entity}) if linked_entity else "",
    }
    return templates.TemplateResponse(request, "item.html", ctx)


@app.get("/item/{item_id}/ownership.svg")
def item_ownership_svg(item_id: str, view: str = Query("ownership")):
    view = _view(view)
    status_code, item, error = _fetch_item(item_id)
    if error:
        return JSONResponse(content={"error": error}, status_code=status_code)

    _, layout = _ownership_tree_layout(item, view)
    if layout is None:
        return JSONResponse(content={"error": "No ownership tree available"}, status_code=404)

    suffix = "_ubo" if view == "ubo" else ""
    return Response(
        content=svg_document(create_ownership_svg(layout)),
        media_type="image/svg+xml",
        headers={"Content-Disposition": f"attachment; filename=ownership_tree_{item_id}{suffix}.svg"},
    )


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}

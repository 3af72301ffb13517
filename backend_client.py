# backend_client.py
import os
from typing import Any, Dict, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from dotenv import load_dotenv
load_dotenv()

print(f"[BOOT] backend_client loaded from {__file__}", flush=True)

# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------
BACKEND_API_URL = os.getenv("BACKEND_API_URL", "http://localhost:8000").rstrip("/")
BACKEND_API_KEY = os.getenv("BACKEND_API_KEY")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

REQ_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"))
UPLOAD_TIMEOUT = float(os.getenv("UPLOAD_TIMEOUT_SECONDS", "300"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
BACKOFF = float(os.getenv("BACKOFF_SECONDS", "1.5"))

print(f"[BOOT] Backend: {BACKEND_API_URL} | key? {bool(BACKEND_API_KEY)} | env: {ENVIRONMENT}", flush=True)

if not BACKEND_API_KEY:
    print("⚠️  WARNING: BACKEND_API_KEY is not set. Backend requests will be unauthenticated.", flush=True)


class BackendError(Exception):
    """The backend could not be reached or answered with something unreadable."""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details


# -----------------------------------------------------------------------------
# HTTP session with retries
# -----------------------------------------------------------------------------
def build_session() -> requests.Session:
    s = requests.Session()
    retry = Retry(
        total=MAX_RETRIES, read=MAX_RETRIES, connect=MAX_RETRIES,
        backoff_factor=BACKOFF,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),  # uploads are never replayed
        raise_on_status=False,
    )
    s.mount("https://", HTTPAdapter(max_retries=retry))
    s.mount("http://", HTTPAdapter(max_retries=retry))
    return s

SESSION = build_session()


def _headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {BACKEND_API_KEY or ''}"}


def _url(path: str) -> str:
    return f"{BACKEND_API_URL}/{path.lstrip('/')}"


# -----------------------------------------------------------------------------
# Raw helpers: (status_code, payload)
# -----------------------------------------------------------------------------
def get_json(path: str) -> Tuple[int, Any]:
    url = _url(path)
    try:
        resp = SESSION.get(url, headers=_headers(), timeout=REQ_TIMEOUT)
    except requests.RequestException as e:
        print(f"[BACKEND] ❌ GET {path} failed: {e}", flush=True)
        raise BackendError(f"Backend request failed: GET {path}", str(e))
    try:
        data = resp.json()
    except ValueError as e:
        print(f"[BACKEND] ❌ GET {path} returned non-JSON (HTTP {resp.status_code})", flush=True)
        raise BackendError(f"Backend returned invalid JSON: GET {path}", str(e))
    if resp.status_code >= 400:
        print(f"[BACKEND] GET {path} -> HTTP {resp.status_code}", flush=True)
    return resp.status_code, data


def get_text(path: str) -> Tuple[int, str]:
    try:
        resp = SESSION.get(_url(path), headers=_headers(), timeout=REQ_TIMEOUT)
    except requests.RequestException as e:
        print(f"[BACKEND] ❌ GET {path} failed: {e}", flush=True)
        raise BackendError(f"Backend request failed: GET {path}", str(e))
    return resp.status_code, resp.text


def post_file(path: str, filename: str, content: bytes, content_type: Optional[str] = None) -> Tuple[int, Any]:
    files = {"file": (filename, content, content_type or "application/octet-stream")}
    print(f"[BACKEND] Uploading {filename} ({len(content)} bytes) to {path}", flush=True)
    try:
        resp = SESSION.post(_url(path), headers=_headers(), files=files, timeout=UPLOAD_TIMEOUT)
    except requests.RequestException as e:
        print(f"[BACKEND] ❌ POST {path} failed: {e}", flush=True)
        raise BackendError(f"Backend request failed: POST {path}", str(e))
    try:
        data = resp.json()
    except ValueError as e:
        raise BackendError(f"Backend returned invalid JSON: POST {path}", str(e))
    print(f"[BACKEND] Upload answered HTTP {resp.status_code}", flush=True)
    return resp.status_code, data


# -----------------------------------------------------------------------------
# Backend endpoints
# -----------------------------------------------------------------------------
def health() -> Tuple[int, Any]:
    return get_json("/health")


def list_batches() -> Tuple[int, Any]:
    return get_json("/api/batches")


def batch_status(batch_id: str) -> Tuple[int, Any]:
    return get_json(f"/api/batch/{batch_id}/status")


def batch_items(batch_id: str) -> Tuple[int, Any]:
    return get_json(f"/api/batch/{batch_id}/items")


def item_details(item_id: str) -> Tuple[int, Any]:
    return get_json(f"/api/item/{item_id}")


def screening_export_csv(item_id: str) -> Tuple[int, str]:
    return get_text(f"/api/item/{item_id}/screening-export.csv")


def upload_batch(filename: str, content: bytes, content_type: Optional[str] = None) -> Tuple[int, Any]:
    return post_file("/api/batch/upload", filename, content, content_type)

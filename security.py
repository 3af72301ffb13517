# security.py - Upload checks, response headers and the rate limiter for the frontend

import os
import re
from typing import Dict, NoReturn

from fastapi import HTTPException, status
from slowapi import Limiter
from slowapi.util import get_remote_address

# ==============================================================================
# CONFIGURATION
# ==============================================================================

MAX_FILE_SIZE = int(os.getenv("MAX_UPLOAD_MB", "10")) * 1024 * 1024
ALLOWED_EXTENSIONS = {'.xlsx', '.csv', '.xls'}

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
UPLOAD_RATE_LIMIT = os.getenv("UPLOAD_RATE_LIMIT", "10/minute")

_SAFE_FILENAME_RE = re.compile(r'^[\w\-. ()]+$')

# CDNs the pages load Tailwind and Font Awesome from
_TRUSTED_SCRIPT_HOSTS = "https://cdn.tailwindcss.com https://cdn.jsdelivr.net"
_TRUSTED_ASSET_HOSTS = "https://cdn.jsdelivr.net"

# ==============================================================================
# UPLOAD VALIDATION
# ==============================================================================

def _reject(detail: str, code: int = status.HTTP_400_BAD_REQUEST) -> NoReturn:
    print(f"[SECURITY] Upload rejected ({code}): {detail}", flush=True)
    raise HTTPException(status_code=code, detail=detail)


def validate_file_upload(filename: str, content: bytes) -> None:
    """
    Check a batch spreadsheet before it is forwarded to the backend.

    Order matters for the status returned: a bad name is 400, an oversized
    body is 413 even when its extension is also wrong.
    """
    if not filename or '\x00' in filename:
        _reject("Invalid filename")

    if len(content) > MAX_FILE_SIZE:
        _reject(
            f"File too large. Maximum size is {MAX_FILE_SIZE // (1024 * 1024)}MB.",
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )
    if not content:
        _reject("File is empty")

    ext = os.path.splitext(filename)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        _reject(f"Invalid file type. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    # no path separators, so "../x.csv" fails here
    if not _SAFE_FILENAME_RE.match(filename):
        _reject("Invalid filename. Only alphanumeric, dash, underscore, dot, brackets and space allowed.")

# ==============================================================================
# RATE LIMITING
# ==============================================================================

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

# ==============================================================================
# RESPONSE HEADERS
# ==============================================================================

def get_security_headers() -> Dict[str, str]:
    """Headers added to every response by the app middleware."""
    csp = "; ".join([
        "default-src 'self'",
        f"script-src 'self' 'unsafe-inline' {_TRUSTED_SCRIPT_HOSTS}",
        f"style-src 'self' 'unsafe-inline' {_TRUSTED_ASSET_HOSTS}",
        "img-src 'self' data: https:",
        f"font-src 'self' {_TRUSTED_ASSET_HOSTS}",
        "connect-src 'self'",
        "frame-ancestors 'none'",
    ])
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "same-origin",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "Content-Security-Policy": csp + ";",
    }


print(
    f"[SECURITY] Uploads up to {MAX_FILE_SIZE // (1024 * 1024)}MB, "
    f"rate limiting {'enabled' if RATE_LIMIT_ENABLED else 'disabled'} ({UPLOAD_RATE_LIMIT})",
    flush=True,
)

#!/usr/bin/env python3
"""
Entry point for the frontend: reads HOST/PORT and serves app:app with uvicorn.
Auto-reload is on only in development.
"""
import os
import uvicorn

from backend_client import ENVIRONMENT, BACKEND_API_URL


def run():
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    print(f"[BOOT] Frontend on {host}:{port} -> backend {BACKEND_API_URL} ({ENVIRONMENT})", flush=True)

    uvicorn.run(
        "app:app",
        host=host,
        port=port,
        reload=ENVIRONMENT == "development",
        log_level="info",
    )


if __name__ == "__main__":
    run()

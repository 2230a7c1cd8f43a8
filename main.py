"""
main.py: Server launcher and entry point.

Run this file to start the check-in API:

    python main.py

This file does NOT contain application logic. See backend/main.py for the
FastAPI application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn backend.main:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))


def main() -> None:
    """Start the API server."""
    print("=" * 60)
    print("  Event Check-in & Room Allocation API")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  Health   : http://{HOST}:{PORT}/api/health")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    uvicorn.run(
        "backend.main:app",
        host=HOST,
        port=PORT,
        reload=os.getenv("APP_ENV", "development") == "development",
        log_level="info",
    )


if __name__ == "__main__":
    main()

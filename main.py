"""
main.py - Server launcher and entry point.

Run this file to start the reservation API:

    python main.py

Point the Telegram bot at the webhook once the server is reachable:

    https://<public-host>/telegram/webhook

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))


def main() -> None:
    """Start the reservation API server."""
    print("=" * 60)
    print("  Resort Reservation Core")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  Webhook  : http://{HOST}:{PORT}/telegram/webhook")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Blocks until CTRL+C
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=os.getenv("RELOAD", "0") == "1",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()

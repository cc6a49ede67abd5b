"""
Main entry point for the AI Chat Demo application.

Can be called with: python -m ai_chat_demo

Automatically opens the app in your browser once the server is reachable.
Disable with --no-open or AI_CHAT_NO_BROWSER=1.
"""

import argparse
import logging
import os
import threading
import time
import urllib.error
import urllib.request
import webbrowser

import uvicorn

from .app import app

logger = logging.getLogger(__name__)


def _open_when_ready(url: str, timeout: float = 15.0, interval: float = 0.2):
    """Open the browser once the server answers (best-effort)."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with urllib.request.urlopen(url, timeout=1):
                pass
        except (urllib.error.URLError, TimeoutError, ConnectionError):
            time.sleep(interval)
            continue
        try:
            webbrowser.open(url, new=1)
        except webbrowser.Error as e:
            logger.warning(f"Could not open browser: {e}")
        return


def main():
    """Main entry point for the AI Chat Demo application."""
    parser = argparse.ArgumentParser(
        description="AI Chat Demo - streaming chat with tool-calling agent"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host interface to bind (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)",
    )
    parser.add_argument(
        "--no-open",
        action="store_true",
        help="Do not automatically open the browser",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    logger.info("Starting chat server...")
    logger.info(f"Open http://localhost:{args.port} in your browser to start chatting")

    should_open = not args.no_open and os.environ.get("AI_CHAT_NO_BROWSER") != "1"
    url = f"http://localhost:{args.port}"
    if should_open:
        threading.Thread(target=_open_when_ready, args=(url,), daemon=True).start()
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()

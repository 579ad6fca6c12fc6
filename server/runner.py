"""Server runner for jlctl.

Contains run_server() which serves the HTTP API until SIGINT/SIGTERM,
and parse_listen() for HOST:PORT addresses.
"""

import logging
import signal
import threading
from types import FrameType

from server.api import JumperlessHTTPServer
from session.manager import DeviceSession

logger = logging.getLogger(__name__)


def parse_listen(listen: str) -> tuple[str, int]:
    """Split ``HOST:PORT`` into its parts. PORT 0 picks a free port."""
    host, sep, port = listen.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address, expected HOST:PORT: {listen!r}")
    return host or "localhost", int(port)


def make_server(session: DeviceSession, listen: str) -> JumperlessHTTPServer:
    """Bind the HTTP server without starting it."""
    httpd = JumperlessHTTPServer(parse_listen(listen), session)
    host, port = httpd.server_address[:2]
    logger.info(f"Starting HTTP server, listening on {host}:{port}")
    return httpd


def run_server(session: DeviceSession, listen: str) -> int:
    """Serve until a signal arrives. Returns 0 unless the bind fails."""
    try:
        httpd = make_server(session, listen)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to start HTTP server: {e}")
        return 1

    def handle_signal(_sig: int, _frame: FrameType | None) -> None:
        logger.info("Signal received - shutting down")
        # shutdown() blocks until serve_forever returns, so call it off-thread
        threading.Thread(target=httpd.shutdown, daemon=True).start()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        httpd.serve_forever()
    finally:
        httpd.server_close()
        session.close()
    return 0

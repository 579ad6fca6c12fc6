"""HTTP server package for jlctl.

Contains the HTTP mirror of the CLI:
- api: JumperlessHTTPServer and its request Handler
- runner: make_server, run_server, parse_listen
"""

from server.api import Handler, JumperlessHTTPServer
from server.runner import make_server, parse_listen, run_server

__all__ = [
    "Handler",
    "JumperlessHTTPServer",
    "make_server",
    "parse_listen",
    "run_server",
]

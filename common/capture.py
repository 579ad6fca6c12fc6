"""Capture log for raw device traffic.

Contains:
- Capture Protocol: sink for port opens and sent/received lines
- NullCapture: discards everything
- FileCapture: appends timestamped lines to a file

A capture is purely diagnostic; it never affects the exchange itself.
"""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol


class Capture(Protocol):
    """Protocol for capture sinks."""

    def opened(self, port: str) -> None: ...
    def sent(self, line: str) -> None: ...
    def received(self, line: str) -> None: ...


class NullCapture:
    """Capture that discards all events."""

    def opened(self, port: str) -> None:
        pass

    def sent(self, line: str) -> None:
        pass

    def received(self, line: str) -> None:
        pass


class FileCapture:
    """Capture that appends events to a file.

    Each event is one line: ``[<ISO-8601 UTC>] <TAG> <text>`` where TAG is
    OPEN, SEND or RECV.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _write_line(self, tag: str, text: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        with self._lock, open(self.path, "a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {tag} {text}\n")

    def opened(self, port: str) -> None:
        self._write_line("OPEN", port)

    def sent(self, line: str) -> None:
        self._write_line("SEND", line)

    def received(self, line: str) -> None:
        self._write_line("RECV", line)


def make_capture(path: str | None) -> Capture:
    """Return a FileCapture for ``path``, or a NullCapture if it is None."""
    if path is None:
        return NullCapture()
    return FileCapture(path)

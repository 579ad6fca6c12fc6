"""Serial I/O helpers for jlctl.

Contains:
- drain_input: Clear stale data from input buffer
- send_command: Write one request line
- read_response: Read response lines until a terminator or idle gap
"""

import logging
import time

from common.capture import Capture, NullCapture
from common.codec import DecodeError, decode_line, encode_command
from common.connection import IoFailure
from common.protocol import ERROR_MARKER, OK_MARKER, TRACE, Command, SerialPort

logger = logging.getLogger(__name__)


def drain_input(port: SerialPort) -> int:
    """Drain stale data from input buffer. Returns bytes drained."""
    count = port.in_waiting
    if count > 0:
        port.read(count)
        logger.debug(f"Drained {count} stale bytes from input buffer")
    return count


def send_command(
    port: SerialPort,
    command: Command,
    payload: str = "",
    capture: Capture | None = None,
    sequence: int | None = None,
) -> int | None:
    """Send a request line. Returns bytes written."""
    data = encode_command(command, payload, sequence)
    line = decode_line(data)
    logger.log(TRACE, f"SEND {line!r}")
    (capture or NullCapture()).sent(line)
    return port.write(data)


def read_response(
    port: SerialPort,
    timeout_s: float,
    capture: Capture | None = None,
) -> list[str]:
    """Read the lines of one response.

    The response ends at an ``::ok`` line, or once the port has been idle for
    one read timeout after at least some data arrived. Terminator lines are
    not included in the result.

    Raises:
        IoFailure: If nothing arrives within ``timeout_s``, or the device
            keeps sending past it.
        DecodeError: If the device answers with an ``::error`` line.
    """
    capture = capture or NullCapture()
    deadline = time.monotonic() + timeout_s
    lines: list[str] = []
    pending = b""

    def accept(raw: bytes) -> bool:
        """Record a received line. Returns True if it terminates the response."""
        line = decode_line(raw)
        logger.log(TRACE, f"RECV {line!r}")
        capture.received(line)
        if line.startswith(OK_MARKER):
            return True
        if line.startswith(ERROR_MARKER):
            raise DecodeError(f"Device rejected command: {line}")
        lines.append(line)
        return False

    while True:
        chunk = port.readline()
        if chunk:
            pending += chunk
            if pending.endswith(b"\n"):
                raw, pending = pending, b""
                if accept(raw):
                    return lines
        elif pending:
            # Read timed out in the middle of a line: the device went idle
            accept(pending)
            return lines
        elif lines:
            return lines

        if time.monotonic() > deadline:
            raise IoFailure(f"Timeout ({timeout_s}s) while receiving reply")

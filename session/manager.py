"""Device session for jlctl.

Contains:
- DeviceSession: owns the single connection to the Jumperless

The session is either CLOSED or OPEN. It opens lazily on the first exchange,
and any I/O failure during an exchange discards the connection, so the next
exchange starts from a fresh one. Nothing is retried internally.

All access goes through one reentrant lock. ``exchange`` holds it for a single
request/response; callers that need several exchanges to be atomic (e.g. a
bridge fetch followed by an upload) hold ``locked()`` around them.
"""

import itertools
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import serial

from common.capture import Capture, make_capture
from common.codec import decode_response
from common.connection import (
    ConnectFailed,
    IoFailure,
    SessionConfig,
    SessionState,
)
from common.device import Opener, find_primary_port, open_serial
from common.io import drain_input, read_response, send_command
from common.protocol import Command, ResponseKind, SerialPort

logger = logging.getLogger(__name__)


def _default_opener(config: SessionConfig) -> Opener:
    def opener(device: str, baudrate: int) -> SerialPort:
        return open_serial(device, baudrate, config.port_timeout_s)

    return opener


class DeviceSession:
    """The single logical connection to the device."""

    def __init__(
        self,
        config: SessionConfig | None = None,
        opener: Opener | None = None,
        discover: Callable[[], str | None] | None = None,
        capture: Capture | None = None,
    ) -> None:
        self.config = config or SessionConfig()
        self._opener = opener or _default_opener(self.config)
        self._discover = discover or (
            lambda: find_primary_port(opener=self._opener, baudrate=self.config.baudrate)
        )
        self._capture = capture or make_capture(self.config.capture_path)
        self._lock = threading.RLock()
        self._port: SerialPort | None = None
        self._port_name: str | None = None
        # Framed commands carry an increasing sequence number
        self._sequence = itertools.count(1)

        if self.config.port is not None:
            logger.info(f"Initialize session, with fixed port {self.config.port}")
        else:
            logger.info("Initialize session, with dynamic port detection")

    @property
    def state(self) -> SessionState:
        return SessionState.OPEN if self._port is not None else SessionState.CLOSED

    @property
    def port_name(self) -> str | None:
        """Name of the open port, or None while CLOSED."""
        return self._port_name

    @contextmanager
    def locked(self) -> Iterator["DeviceSession"]:
        """Hold exclusive access to the device for several exchanges."""
        with self._lock:
            yield self

    def ensure_open(self) -> None:
        """Open the device if CLOSED.

        Raises:
            ConnectFailed: If no port was found or it could not be opened.
        """
        with self._lock:
            if self._port is not None:
                return

            logger.info("Attempting to open device")
            name = self.config.port
            if name is None:
                name = self._discover()
            if name is None:
                raise ConnectFailed("No matching serial port found")

            try:
                port = self._opener(name, self.config.baudrate)
            except (serial.SerialException, OSError) as e:
                raise ConnectFailed(f"Failed to open serial port {name}: {e}") from e

            self._port = port
            self._port_name = name
            self._capture.opened(name)
            logger.info(f"Connected to jumperless on port {name}")

    def exchange(self, command: Command, payload: str = "") -> object:
        """Send ``command`` and return its decoded response.

        Commands that expect no reply return None once written.

        Raises:
            ConnectFailed: If the device could not be opened.
            IoFailure: On write/read failure or timeout; the session is CLOSED.
            DecodeError: If the response does not match its grammar; the
                session stays OPEN.
        """
        with self._lock:
            self.ensure_open()
            assert self._port is not None
            sequence = next(self._sequence) if command.framed else None
            try:
                drain_input(self._port)
                send_command(self._port, command, payload, self._capture, sequence)
                if command.response_kind is ResponseKind.NONE:
                    return None
                lines = read_response(self._port, self.config.response_timeout_s, self._capture)
            except IoFailure as e:
                self._forget(e)
                raise
            except (serial.SerialException, OSError) as e:
                self._forget(e)
                raise IoFailure(f"Error communicating with device: {e}") from e

            return decode_response(command.response_kind, lines)

    def close(self) -> None:
        """Close the connection, if open."""
        with self._lock:
            if self._port is None:
                return
            name = self._port_name
            self._discard()
            logger.info(f"Closed {name}")

    def status(self) -> dict:
        """Report whether the device can be reached."""
        try:
            self.ensure_open()
        except ConnectFailed as e:
            logger.debug(f"Status check failed: {e}")
            return {"connected": False}
        return {"connected": True}

    def _forget(self, error: Exception) -> None:
        logger.error(f"Error communicating with device: {error}")
        self._discard()

    def _discard(self) -> None:
        port, self._port, self._port_name = self._port, None, None
        if port is None:
            return
        try:
            port.close()
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Ignoring error while closing port: {e}")

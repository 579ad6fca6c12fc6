"""Connection state and errors for jlctl.

Contains:
- PortRole: Enum for the role a serial port plays on the device
- SessionState: Enum for the device session lifecycle
- DeviceError, ConnectFailed, IoFailure: connection failures
- SessionConfig: Parameters used to open the device
"""

import os
from dataclasses import dataclass
from enum import Enum

from common.protocol import (
    DEFAULT_BAUDRATE,
    DEFAULT_PORT_TIMEOUT_S,
    DEFAULT_RESPONSE_TIMEOUT_S,
)


class PortRole(Enum):
    """Role of a serial port, as identified by list_ports."""

    PRIMARY = "primary"  # The Jumperless controller itself
    PERIPHERAL = "peripheral"  # Passthrough to the attached Arduino
    UNRECOGNIZED = "unrecognized"


class SessionState(Enum):
    """Lifecycle of the device session."""

    CLOSED = "closed"
    OPEN = "open"


class DeviceError(Exception):
    """Base class for failures talking to the device."""

    kind = "device"


class ConnectFailed(DeviceError):
    """Raised when no port was found or the port could not be opened."""

    kind = "connect"


class IoFailure(DeviceError):
    """Raised when a write or read fails during an exchange."""

    kind = "io"


@dataclass
class SessionConfig:
    """Parameters for opening the device.

    If ``port`` is None the port is detected dynamically.
    """

    port: str | None = None
    baudrate: int = DEFAULT_BAUDRATE
    port_timeout_s: float = DEFAULT_PORT_TIMEOUT_S  # Per read; also the idle gap ending a response
    response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S
    capture_path: str | None = None

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """Build a config from JLCTL_* environment variables."""
        return cls(
            port=os.environ.get("JLCTL_PORT") or None,
            capture_path=os.environ.get("JLCTL_CAPTURE_LOG") or None,
        )

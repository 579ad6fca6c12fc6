"""Common modules for jlctl.

This package contains shared code used by the CLI and the HTTP server:
- protocol: Command/ResponseKind enums, SerialPort Protocol, defaults
- connection: PortRole, SessionState, SessionConfig, device errors
- model: Node, Bridge, Net and nodefile helpers
- codec: Request encoding and response decoding
- io: Serial I/O helpers (drain_input, send_command, read_response)
- device: Serial device setup and port identification
- capture: Raw traffic capture log
- report: CLI output
"""

from common.codec import DecodeError
from common.connection import (
    ConnectFailed,
    DeviceError,
    IoFailure,
    PortRole,
    SessionConfig,
    SessionState,
)
from common.model import (
    Bridge,
    MalformedBridge,
    NamedNode,
    Net,
    Node,
    ParseError,
    SelfBridge,
    UnknownNode,
    format_nodefile,
    parse_nodefile,
)
from common.protocol import Command, ResponseKind, SerialPort

__all__ = [
    # Protocol
    "Command",
    "ResponseKind",
    "SerialPort",
    # Connection
    "PortRole",
    "SessionConfig",
    "SessionState",
    # Model
    "Bridge",
    "NamedNode",
    "Net",
    "Node",
    "format_nodefile",
    "parse_nodefile",
    # Exceptions
    "ConnectFailed",
    "DecodeError",
    "DeviceError",
    "IoFailure",
    "MalformedBridge",
    "ParseError",
    "SelfBridge",
    "UnknownNode",
]

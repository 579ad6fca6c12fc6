"""Protocol definitions for jlctl.

Contains:
- Command enum: request tokens understood by the Jumperless
- ResponseKind enum: expected shape of each command's response
- SerialPort Protocol for type checking
- Timing and port defaults (configurable via envvars)
- Logging configuration
"""

import logging
import os
from enum import Enum
from typing import Protocol

# TRACE logging level (below DEBUG), used for raw wire traffic
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class ResponseKind(Enum):
    """Shape of a device response, selects the decoder."""

    NETLIST = "netlist"
    BRIDGELIST = "bridgelist"
    IDENTITY = "identity"
    SUPPLY_SWITCH = "supply_switch"
    CHIP_STATUS = "chip_status"
    TEXT = "text"
    NONE = "none"  # Device sends nothing back


class Command(Enum):
    """Commands sent from the host to the Jumperless.

    The value is the token written at the start of the request line. Menu
    commands are single characters followed by their payload; framed
    commands (``::name``) carry a sequence number and a bracketed payload,
    e.g. ``::setsupplyswitch:3[5V]``.
    """

    NETLIST = "n"
    BRIDGES = "b"
    UPLOAD = "f"
    IDENTIFY = "?"
    RAW = ""
    SUPPLY_SWITCH = "::getsupplyswitch"
    SET_SUPPLY_SWITCH = "::setsupplyswitch"
    SET_NETLIST = "::netlist"
    CHIP_STATUS = "::getchipstatus"
    LIGHTNET = "::lightnet"

    @property
    def framed(self) -> bool:
        return self.value.startswith(FRAME_PREFIX)

    @property
    def response_kind(self) -> ResponseKind:
        match self:
            case Command.NETLIST:
                return ResponseKind.NETLIST
            case Command.BRIDGES:
                return ResponseKind.BRIDGELIST
            case Command.IDENTIFY:
                return ResponseKind.IDENTITY
            case Command.SUPPLY_SWITCH:
                return ResponseKind.SUPPLY_SWITCH
            case Command.CHIP_STATUS:
                return ResponseKind.CHIP_STATUS
            case Command.LIGHTNET:
                return ResponseKind.NONE
            case _:
                return ResponseKind.TEXT


class SerialPort(Protocol):
    """Protocol for serial port operations needed by a session."""

    def write(self, data: bytes, /) -> int | None: ...
    def readline(self, size: int = ..., /) -> bytes: ...
    def read(self, size: int = ..., /) -> bytes: ...
    @property
    def in_waiting(self) -> int: ...
    def close(self) -> None: ...


LINE_TERMINATOR = b"\r\n"
TEXT_ENCODING = "utf-8"
FRAME_PREFIX = "::"

# Response terminators emitted by the firmware
OK_MARKER = "::ok"
ERROR_MARKER = "::error"

# Framed response messages
SUPPLY_SWITCH_MESSAGE = "::supplyswitch"
CHIP_STATUS_MESSAGE = "::chipstatus"
CHIP_STATUS_BEGIN = "::chipstatus-begin"
CHIP_STATUS_END = "::chipstatus-end"

# Netlist table layout
NETLIST_HEADER = "Index"
NETLIST_END = "Menu"
EMPTY_NET_TOKEN = "EMPTY_NET"
SENTINEL_BRIDGE_TOKEN = "0-0"

# USB identity of the Jumperless (vid, pid)
JUMPERLESS_USB_IDS = frozenset({(0xACAB, 0x1312), (0x1D50, 0xACAB)})
JUMPERLESS_PRODUCT = "Jumperless"

ROLE_NAMES = ("PRIMARY", "PERIPHERAL")


def parse_identity_roles(text: str) -> dict[str, str]:
    """Parse ``ANSWER=ROLE,ANSWER=ROLE`` into an identity table.

    Answers are matched case-insensitively; ROLE is PRIMARY or PERIPHERAL.
    """
    roles: dict[str, str] = {}
    for entry in text.split(","):
        if not entry.strip():
            continue
        answer, sep, role = entry.partition("=")
        role = role.strip().upper()
        if not sep or not answer.strip() or role not in ROLE_NAMES:
            raise ValueError(f"Invalid identity role entry, expected ANSWER=ROLE: {entry!r}")
        roles[answer.strip().upper()] = role
    return roles


# Identify answers, matched case-insensitively. Values are PortRole names.
# Firmware defined: override with JLCTL_IDENTITY_ROLES="answer=primary,...".
# Ports matching the USB identity whose answer is not in the table fall back
# to positional roles, so an incomplete table never hides the device.
IDENTITY_ROLES = parse_identity_roles(
    os.environ.get("JLCTL_IDENTITY_ROLES", "jumperless=primary,arduino=peripheral")
)

# Defaults (configurable via envvars)
DEFAULT_BAUDRATE = int(os.environ.get("JLCTL_BAUDRATE", "57600"))
DEFAULT_PORT_TIMEOUT_S = float(os.environ.get("JLCTL_PORT_TIMEOUT_S", "0.45"))
DEFAULT_RESPONSE_TIMEOUT_S = float(os.environ.get("JLCTL_RESPONSE_TIMEOUT_S", "4.0"))
DEFAULT_WRITE_TIMEOUT_S = 1.0
DEFAULT_LISTEN = os.environ.get("JLCTL_LISTEN", "localhost:8080")

# Identify requests use a shorter deadline, old firmware never answers
IDENTIFY_TIMEOUT_S = 1.0

"""CLI command runners for jlctl.

Each run_* function performs one subcommand against a DeviceSession, prints
its report and returns an exit code. Device and input errors are logged and
mapped to exit codes here; nothing is retried.
"""

import json
import logging
import sys
from collections.abc import Callable
from enum import IntEnum

from common.codec import DecodeError
from common.connection import DeviceError
from common.device import list_ports
from common.model import (
    Color,
    InvalidNetlist,
    NetDefinition,
    ParseError,
    SupplySwitchPos,
    parse_nodefile,
)
from common.report import BridgesReport, ChipStatusReport, NetlistReport, PortsReport
from session.bridges import BridgeEngine
from session.manager import DeviceSession
from session.queries import (
    chip_status,
    lightnet,
    netlist,
    raw,
    set_netlist,
    set_supply_switch,
    supply_switch,
)

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Exit codes for CLI operations."""

    SUCCESS = 0
    DEVICE_ERROR = 1  # Connect, I/O or decode failure
    INVALID_INPUT = 2  # Malformed node/bridge text, value or netlist file


def _guarded(action: Callable[[], None]) -> int:
    """Run ``action``, mapping device and input errors to exit codes."""
    try:
        action()
    except ParseError as e:
        logger.error(f"Invalid input: {e}")
        return ExitCode.INVALID_INPUT
    except DecodeError as e:
        logger.error(f"Unexpected device response: {e}")
        return ExitCode.DEVICE_ERROR
    except DeviceError as e:
        logger.error(f"Device error: {e}")
        return ExitCode.DEVICE_ERROR
    return ExitCode.SUCCESS


def run_list_ports(baudrate: int) -> int:
    """List serial ports and their identified roles."""

    def action() -> None:
        PortsReport(list_ports(baudrate=baudrate)).print()

    return _guarded(action)


def run_netlist(session: DeviceSession, as_json: bool = False) -> int:
    """Print the current netlist."""

    def action() -> None:
        NetlistReport(netlist(session), as_json=as_json).print()

    return _guarded(action)


def run_bridge(
    session: DeviceSession,
    operation: str,
    bridges: str = "",
    as_json: bool = False,
) -> int:
    """Run a bridge subcommand: get, set, add, remove or clear."""
    engine = BridgeEngine(session)

    def action() -> None:
        match operation:
            case "get":
                result = engine.get()
            case "set":
                result = engine.set(parse_nodefile(bridges))
            case "add":
                result = engine.add(parse_nodefile(bridges))
            case "remove":
                result = engine.remove(parse_nodefile(bridges))
            case "clear":
                engine.clear()
                return
            case _:
                raise ValueError(f"Unknown bridge operation: {operation}")
        BridgesReport(result, as_json=as_json).print()

    return _guarded(action)


def run_raw(session: DeviceSession, text: str) -> int:
    """Send a raw command and print the answer."""

    def action() -> None:
        print(raw(session, text))

    return _guarded(action)


def run_supply_switch(session: DeviceSession, operation: str, pos: str = "") -> int:
    """Get or set the supply switch position."""

    def action() -> None:
        match operation:
            case "get":
                print(supply_switch(session))
            case "set":
                print(set_supply_switch(session, SupplySwitchPos.parse(pos)))
            case _:
                raise ValueError(f"Unknown supply switch operation: {operation}")

    return _guarded(action)


def load_netlist(path: str) -> list[NetDefinition]:
    """Read a JSON netlist (a list of nets) from ``path``, or stdin for ``-``.

    Raises:
        InvalidNetlist: If the file cannot be read or is not a list of nets.
    """
    try:
        if path == "-":
            data = json.load(sys.stdin)
        else:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
    except (OSError, ValueError) as e:
        raise InvalidNetlist(f"Cannot read netlist {path}: {e}") from e

    if not isinstance(data, list):
        raise InvalidNetlist("Netlist must be a JSON list of nets")
    return [NetDefinition.from_json(obj) for obj in data]


def run_upload_netlist(session: DeviceSession, path: str, as_json: bool = False) -> int:
    """Upload a netlist file and print the netlist the device reports back."""

    def action() -> None:
        NetlistReport(set_netlist(session, load_netlist(path)), as_json=as_json).print()

    return _guarded(action)


def run_chip_status(session: DeviceSession, as_json: bool = False) -> int:
    """Print the crosspoint chip status."""

    def action() -> None:
        ChipStatusReport(chip_status(session), as_json=as_json).print()

    return _guarded(action)


def run_lightnet(session: DeviceSession, name: str, color: str) -> int:
    """Highlight a net."""

    def action() -> None:
        lightnet(session, name, Color.parse(color))

    return _guarded(action)

"""Serial device setup and port identification for jlctl.

Contains:
- open_serial: Open and configure a serial port
- log_device_info: Log information about a serial device
- FoundPort: A serial port found by list_ports, with its identified role
- list_ports: Enumerate serial ports and identify the Jumperless
- find_primary_port: Pick the port to talk to when none is configured
"""

import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import serial
import serial.tools.list_ports

from common.codec import DecodeError, decode_identity
from common.connection import IoFailure, PortRole
from common.io import drain_input, read_response, send_command
from common.protocol import (
    DEFAULT_BAUDRATE,
    DEFAULT_PORT_TIMEOUT_S,
    DEFAULT_WRITE_TIMEOUT_S,
    IDENTIFY_TIMEOUT_S,
    JUMPERLESS_PRODUCT,
    JUMPERLESS_USB_IDS,
    Command,
    SerialPort,
)

logger = logging.getLogger(__name__)

Opener = Callable[[str, int], SerialPort]


def log_device_info(device: str) -> None:
    """Log information about a serial device."""
    real_path = os.path.realpath(device)
    if real_path.startswith("/dev/pts/"):
        logger.info(f"Device: {device} -> {real_path} (pty)")
        return

    ports = [p for p in serial.tools.list_ports.comports() if p.device == device]
    if len(ports) != 1:
        logger.info(f"Device: {device} (not in port list)")
        return

    info = ports[0]
    logger.debug(f"Device: {info.device}")
    logger.debug(f"Description: {info.description}")
    if info.vid is not None:
        logger.debug(f"VID:PID: {info.vid:04x}:{info.pid:04x}")


def open_serial(
    device: str,
    baudrate: int = DEFAULT_BAUDRATE,
    timeout_s: float = DEFAULT_PORT_TIMEOUT_S,
) -> serial.Serial:
    """Open and configure a serial port."""
    log_device_info(device)
    ser = serial.Serial(
        port=device,
        baudrate=baudrate,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        xonxoff=False,
        rtscts=False,
        timeout=timeout_s,
        write_timeout=DEFAULT_WRITE_TIMEOUT_S,
    )
    ser.reset_output_buffer()
    logger.debug(f"Serial port: baudrate={ser.baudrate}, timeout={ser.timeout}")
    return ser


@dataclass
class FoundPort:
    """A serial port found by list_ports."""

    name: str
    usb_id: tuple[int, int] | None  # (vendor, product)
    role: PortRole
    product: str | None = None

    @property
    def usb_id_text(self) -> str:
        if self.usb_id is None:
            return "-"
        return f"{self.usb_id[0]:04x}:{self.usb_id[1]:04x}"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "usb_id": list(self.usb_id) if self.usb_id is not None else None,
            "role": self.role.value,
        }


def is_jumperless(info) -> bool:
    """Return True if the port's USB identity matches the Jumperless."""
    if info.vid is None or info.pid is None:
        return False
    return (info.vid, info.pid) in JUMPERLESS_USB_IDS or info.product == JUMPERLESS_PRODUCT


def fixup_mac_ports(names: list[str]) -> list[str]:
    """Drop macOS ``/dev/tty.*`` nodes when matching ``/dev/cu.*`` nodes exist.

    On macOS every serial port shows up twice; only the "cu" nodes are used.
    """
    has_cu = any(name.startswith("/dev/cu.") for name in names)
    has_tty = any(name.startswith("/dev/tty.") for name in names)
    if has_cu and has_tty:
        return [name for name in names if name.startswith("/dev/cu.")]
    return names


def identify_port(
    name: str,
    opener: Opener,
    baudrate: int = DEFAULT_BAUDRATE,
    timeout_s: float | None = None,
) -> PortRole | None:
    """Ask the port who it is. Returns None if it does not answer."""
    if timeout_s is None:
        timeout_s = IDENTIFY_TIMEOUT_S
    try:
        port = opener(name, baudrate)
    except (serial.SerialException, OSError) as e:
        logger.warning(f"Cannot open {name} for identification: {e}")
        return None

    try:
        drain_input(port)
        send_command(port, Command.IDENTIFY)
        role = decode_identity(read_response(port, timeout_s))
        logger.debug(f"Port {name} identifies as {role.value}")
        return role
    except (serial.SerialException, OSError, IoFailure, DecodeError) as e:
        logger.debug(f"No identify answer from {name}: {e}")
        return None
    finally:
        port.close()


def _positional_roles(names: list[str]) -> dict[str, PortRole]:
    """Roles by port order, for ports without a known identify answer.

    A single port is the primary. With two ports the lower name is the
    primary and the higher one the Arduino passthrough.
    """
    ordered = sorted(names)
    if len(ordered) == 1:
        return {ordered[0]: PortRole.PRIMARY}
    if len(ordered) == 2:
        return {ordered[0]: PortRole.PRIMARY, ordered[1]: PortRole.PERIPHERAL}
    logger.error(f"Matching device with more than two ports: {ordered}")
    return {name: PortRole.UNRECOGNIZED for name in ordered}


def list_ports(
    comports: Callable[[], Iterable] = serial.tools.list_ports.comports,
    opener: Opener = open_serial,
    baudrate: int = DEFAULT_BAUDRATE,
    known: dict[str, PortRole] | None = None,
) -> list[FoundPort]:
    """List all serial ports, and attempt to identify the Jumperless.

    Ports whose USB identity does not match are reported as UNRECOGNIZED and
    never opened. Ports in ``known`` (e.g. the port a session holds open) are
    reported with the given role without being opened. A matching port that
    gives no answer, or an answer not in the identity table, gets its role
    from the port order.
    """
    known = known or {}
    found: list[FoundPort] = []
    groups: dict[tuple[int, int], list] = {}

    for info in comports():
        logger.debug(f"Checking port {info.device}")
        if not is_jumperless(info):
            usb_id = (info.vid, info.pid) if info.vid is not None else None
            found.append(FoundPort(info.device, usb_id, PortRole.UNRECOGNIZED, info.product))
            continue
        groups.setdefault((info.vid, info.pid), []).append(info)

    for usb_id, infos in groups.items():
        by_name = {info.device: info for info in infos}
        names = fixup_mac_ports(list(by_name))
        answers = {
            name: known[name] if name in known else identify_port(name, opener, baudrate)
            for name in names
        }
        fallback = _positional_roles(names)
        logger.debug(f"Matching USB device {usb_id[0]:04x}:{usb_id[1]:04x} with ports {names}")
        for name in names:
            role = answers[name]
            if role is None or role == PortRole.UNRECOGNIZED:
                role = fallback[name]
            found.append(FoundPort(name, usb_id, role, by_name[name].product))

    return found


def find_primary_port(
    comports: Callable[[], Iterable] = serial.tools.list_ports.comports,
    opener: Opener = open_serial,
    baudrate: int = DEFAULT_BAUDRATE,
) -> str | None:
    """Return the first port identified as PRIMARY, or None."""
    primaries = [
        port
        for port in list_ports(comports, opener, baudrate)
        if port.role == PortRole.PRIMARY
    ]
    if not primaries:
        return None
    if len(primaries) > 1:
        logger.warning(
            f"Found {len(primaries)} primary ports, using {primaries[0].name}: "
            f"{[port.name for port in primaries]}"
        )
    logger.debug(f"Found primary: {primaries[0].name}")
    return primaries[0].name

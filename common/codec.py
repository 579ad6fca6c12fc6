"""Jumperless text protocol encoding/decoding.

Requests are single lines: a command token followed by an optional payload,
terminated by CRLF. Responses are lines of text, decoded according to the
ResponseKind of the command that produced them:

- NETLIST: tab separated table, decoded best effort (bad rows are skipped)
- BRIDGELIST: a single nodefile line, decoded strictly
- IDENTITY: a role token, unknown tokens classify as UNRECOGNIZED
- SUPPLY_SWITCH: a ``::supplyswitch[POS]`` message, decoded strictly
- CHIP_STATUS: ``::chipstatus[...]`` messages, decoded best effort
- TEXT: returned untouched
- NONE: the device sends nothing
"""

import json
import logging
import re

from common.connection import PortRole
from common.model import (
    Bridge,
    ChipStatus,
    Color,
    Net,
    NetDefinition,
    Node,
    ParseError,
    SupplySwitchPos,
    format_nodefile,
)
from common.protocol import (
    CHIP_STATUS_BEGIN,
    CHIP_STATUS_END,
    CHIP_STATUS_MESSAGE,
    EMPTY_NET_TOKEN,
    IDENTITY_ROLES,
    LINE_TERMINATOR,
    NETLIST_END,
    NETLIST_HEADER,
    SENTINEL_BRIDGE_TOKEN,
    SUPPLY_SWITCH_MESSAGE,
    TEXT_ENCODING,
    Command,
    ResponseKind,
)

logger = logging.getLogger(__name__)


class DecodeError(Exception):
    """Raised when device output does not match the expected response grammar."""

    kind = "decode"


# index, name, number, nodes, {bridges}; fields separated by runs of tabs
_NETLIST_ROW = re.compile(
    r"^(?P<index>\d+)\t+(?P<name>[^\t]*?)\t+(?P<number>\d+)\t+"
    r"(?P<nodes>[^\t]+)\t+\{(?P<bridges>[^\t]*)\}$"
)

_BRIDGELIST_WRAPPERS = (("::bridgelist[", "]"), ("{", "}"))


# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------


def encode_command(command: Command, payload: str = "", sequence: int | None = None) -> bytes:
    """Encode a request line for ``command``.

    Framed commands are written ``::name:SEQ[payload]`` (``::name[payload]``
    without a sequence number); menu commands are the token followed by the
    payload.
    """
    if command.framed:
        seq = f":{sequence}" if sequence is not None else ""
        line = f"{command.value}{seq}[{payload}]"
    else:
        line = command.value + payload
    return line.encode(TEXT_ENCODING) + LINE_TERMINATOR


def upload_payload(bridges: list[Bridge]) -> str:
    """Return the UPLOAD payload replacing the device's bridges."""
    return "{" + format_nodefile(bridges) + "}"


def netlist_payload(nets: list[NetDefinition]) -> str:
    """Return the SET_NETLIST payload: the net objects, comma separated.

    Inside the frame's brackets this reads as a JSON array.
    """
    return ",".join(json.dumps(net.to_wire(), separators=(",", ":")) for net in nets)


def lightnet_payload(name: str, color: Color) -> str:
    """Return the LIGHTNET payload ``NAME: 0xRRGGBB``."""
    return f"{name}: 0x{color.value:06x}"


# -----------------------------------------------------------------------------
# Decoding helpers
# -----------------------------------------------------------------------------


def decode_line(raw: bytes) -> str:
    """Decode one received line, stripping the line terminator."""
    return raw.decode(TEXT_ENCODING, errors="replace").rstrip("\r\n")


def _parse_bridge_entries(text: str) -> list[Bridge]:
    """Parse a comma separated bridge list, dropping sentinel entries."""
    bridges = []
    for segment in text.split(","):
        segment = segment.strip()
        if not segment or segment == SENTINEL_BRIDGE_TOKEN:
            continue
        bridges.append(Bridge.parse(segment))
    return bridges


def _parse_net_nodes(text: str) -> tuple[Node, ...]:
    return tuple(
        Node.parse(token)
        for token in text.split(",")
        if token.strip() and token.strip() != EMPTY_NET_TOKEN
    )


# -----------------------------------------------------------------------------
# Netlist
# -----------------------------------------------------------------------------


def parse_netlist_row(line: str) -> Net | None:
    """Parse one netlist table row, returning None if it does not match."""
    match = _NETLIST_ROW.match(line.strip())
    if match is None:
        return None
    try:
        nodes = _parse_net_nodes(match["nodes"])
        bridges = frozenset(_parse_bridge_entries(match["bridges"]))
    except ParseError as e:
        logger.debug(f"Netlist row has invalid nodes: {e}")
        return None
    return Net(
        index=int(match["index"]),
        name=match["name"].strip(),
        number=int(match["number"]),
        nodes=nodes,
        bridges=bridges,
    )


def decode_netlist(lines: list[str]) -> list[Net]:
    """Decode the netlist table, skipping rows that fail to parse.

    The table starts after the first ``Index`` header. A blank line ends it
    unless another header follows; a ``Menu`` line always ends it. If no
    header is present, every line is tried as a row.
    """
    stripped = [line.strip() for line in lines]
    has_header = any(line.startswith(NETLIST_HEADER) for line in stripped)

    nets: list[Net] = []
    in_table = not has_header
    for i, line in enumerate(stripped):
        if line.startswith(NETLIST_HEADER):
            in_table = True
            continue
        if not in_table:
            continue
        if line == NETLIST_END:
            break
        if not line:
            following = next((rest for rest in stripped[i + 1 :] if rest), "")
            if has_header and not following.startswith(NETLIST_HEADER):
                break
            continue

        net = parse_netlist_row(line)
        if net is None:
            logger.warning(f"Skipping unrecognized netlist row: {line!r}")
            continue
        nets.append(net)

    return nets


# -----------------------------------------------------------------------------
# Bridge list
# -----------------------------------------------------------------------------


def _unwrap(text: str) -> str:
    for prefix, suffix in _BRIDGELIST_WRAPPERS:
        if text.startswith(prefix) and text.endswith(suffix):
            return text[len(prefix) : -len(suffix)]
    return text


def decode_bridgelist(lines: list[str]) -> list[Bridge]:
    """Decode a bridge list response: at most one nodefile line.

    Raises:
        DecodeError: If there is more than one line or the line is malformed.
    """
    content = [line.strip() for line in lines if line.strip()]
    if not content:
        return []
    if len(content) > 1:
        raise DecodeError(f"Expected a single bridge list line, got {len(content)} lines")

    try:
        return _parse_bridge_entries(_unwrap(content[0]))
    except ParseError as e:
        raise DecodeError(f"Invalid bridge list {content[0]!r}: {e}") from e


# -----------------------------------------------------------------------------
# Identity
# -----------------------------------------------------------------------------


def decode_identity(lines: list[str]) -> PortRole:
    """Classify the identify answer. Unknown answers are not an error."""
    token = next((line.strip() for line in lines if line.strip()), "")
    role = IDENTITY_ROLES.get(token.upper())
    if role is None:
        if token:
            logger.debug(f"Unrecognized identity: {token!r}")
        return PortRole.UNRECOGNIZED
    return PortRole[role]


# -----------------------------------------------------------------------------
# Framed messages
# -----------------------------------------------------------------------------


def _message_body(line: str, name: str) -> str | None:
    """Return the bracketed body of ``name[...]`` (optionally ``name:SEQ[...]``)."""
    if not line.startswith(name) or not line.endswith("]"):
        return None
    head, sep, body = line[len(name) :].partition("[")
    if not sep or (head and not re.fullmatch(r":\d+", head)):
        return None
    return body[:-1]


def decode_supply_switch(lines: list[str]) -> SupplySwitchPos:
    """Decode the supply switch answer.

    Raises:
        DecodeError: If no ``::supplyswitch`` message arrived or its
            position is unknown.
    """
    for line in lines:
        body = _message_body(line.strip(), SUPPLY_SWITCH_MESSAGE)
        if body is None:
            continue
        try:
            return SupplySwitchPos.parse(body)
        except ParseError as e:
            raise DecodeError(f"Invalid supply switch message {line!r}: {e}") from e
    raise DecodeError("No ::supplyswitch message received")


def decode_chip_status(lines: list[str]) -> list[ChipStatus]:
    """Decode chip status messages, skipping lines that do not parse.

    If a ``::chipstatus-begin`` marker is present only messages between it
    and ``::chipstatus-end`` are used.
    """
    stripped = [line.strip() for line in lines]
    in_block = CHIP_STATUS_BEGIN not in stripped

    chips: list[ChipStatus] = []
    for line in stripped:
        if line == CHIP_STATUS_BEGIN:
            in_block = True
            continue
        if line == CHIP_STATUS_END:
            in_block = False
            continue
        if not in_block or not line:
            continue

        body = _message_body(line, CHIP_STATUS_MESSAGE)
        fields = [field.strip() for field in body.split(",")] if body else []
        if not fields or not fields[0]:
            logger.warning(f"Skipping unrecognized chip status line: {line!r}")
            continue
        chips.append(ChipStatus(chip=fields[0], fields=tuple(fields[1:])))

    return chips


# -----------------------------------------------------------------------------
# Dispatch
# -----------------------------------------------------------------------------


def decode_text(lines: list[str]) -> str:
    return "\n".join(lines)


def decode_response(kind: ResponseKind, lines: list[str]) -> object:
    """Decode response lines with the decoder for ``kind``."""
    match kind:
        case ResponseKind.NETLIST:
            return decode_netlist(lines)
        case ResponseKind.BRIDGELIST:
            return decode_bridgelist(lines)
        case ResponseKind.IDENTITY:
            return decode_identity(lines)
        case ResponseKind.SUPPLY_SWITCH:
            return decode_supply_switch(lines)
        case ResponseKind.CHIP_STATUS:
            return decode_chip_status(lines)
        case ResponseKind.TEXT:
            return decode_text(lines)
        case ResponseKind.NONE:
            return None

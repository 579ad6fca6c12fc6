"""Domain model for jlctl.

Contains:
- ParseError and its subclasses: malformed node/bridge/nodefile text
- NamedNode: the fixed set of special (non-column) nodes
- Node: a breadboard column (1-60) or a named node
- Bridge: an unordered connection between two nodes
- Net: a device-reported group of connected nodes
- NodeFile helpers: parse_nodefile, format_nodefile, unique_bridges
- SupplySwitchPos, Color, ChipStatus: values of the framed commands
- NetDefinition, validate_netlist: a netlist to upload
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from common.protocol import SENTINEL_BRIDGE_TOKEN

MIN_COLUMN = 1
MAX_COLUMN = 60


class ParseError(ValueError):
    """Raised when node, bridge or nodefile text is malformed."""

    pass


class UnknownNode(ParseError):
    """Raised when text names neither a valid column nor a known node."""

    pass


class SelfBridge(ParseError):
    """Raised when a bridge would connect a node to itself."""

    pass


class MalformedBridge(ParseError):
    """Raised when bridge text is not of the form ``node-node``."""

    pass


class InvalidValue(ParseError):
    """Raised for a malformed supply switch position or color."""

    pass


class InvalidNetlist(ParseError):
    """Raised when a netlist to upload is malformed or breaks a special net."""

    pass


class NamedNode(Enum):
    """Special nodes: supply rails, references, and the Arduino Nano header."""

    GND = "GND"
    SUPPLY_5V = "SUPPLY_5V"
    SUPPLY_3V3 = "SUPPLY_3V3"
    DAC0 = "DAC0"
    DAC1 = "DAC1"
    ISENSE_MINUS = "ISENSE_MINUS"
    ISENSE_PLUS = "ISENSE_PLUS"
    ADC0 = "ADC0"
    ADC1 = "ADC1"
    ADC2 = "ADC2"
    ADC3 = "ADC3"
    NANO_D0 = "NANO_D0"
    NANO_D1 = "NANO_D1"
    NANO_D2 = "NANO_D2"
    NANO_D3 = "NANO_D3"
    NANO_D4 = "NANO_D4"
    NANO_D5 = "NANO_D5"
    NANO_D6 = "NANO_D6"
    NANO_D7 = "NANO_D7"
    NANO_D8 = "NANO_D8"
    NANO_D9 = "NANO_D9"
    NANO_D10 = "NANO_D10"
    NANO_D11 = "NANO_D11"
    NANO_D12 = "NANO_D12"
    NANO_D13 = "NANO_D13"
    NANO_A0 = "NANO_A0"
    NANO_A1 = "NANO_A1"
    NANO_A2 = "NANO_A2"
    NANO_A3 = "NANO_A3"
    NANO_A4 = "NANO_A4"
    NANO_A5 = "NANO_A5"
    NANO_A6 = "NANO_A6"
    NANO_A7 = "NANO_A7"
    NANO_RESET = "NANO_RESET"
    NANO_AREF = "NANO_AREF"
    RP_GPIO_0 = "RP_GPIO_0"
    RP_UART_RX = "RP_UART_RX"
    RP_UART_TX = "RP_UART_TX"


# Names the firmware uses in its own output (netlist table, older nodefiles)
_ALIASES: dict[str, NamedNode] = {
    "5V": NamedNode.SUPPLY_5V,
    "3V3": NamedNode.SUPPLY_3V3,
    "DAC0_5V": NamedNode.DAC0,
    "DAC1_8V": NamedNode.DAC1,
    "DAC_0": NamedNode.DAC0,
    "DAC_1": NamedNode.DAC1,
    "DAC 0": NamedNode.DAC0,
    "DAC 1": NamedNode.DAC1,
    "DAC_0_5V": NamedNode.DAC0,
    "DAC_1_8V": NamedNode.DAC1,
    "I_N": NamedNode.ISENSE_MINUS,
    "I_P": NamedNode.ISENSE_PLUS,
    "I_NEG": NamedNode.ISENSE_MINUS,
    "I_POS": NamedNode.ISENSE_PLUS,
    "ADC_0": NamedNode.ADC0,
    "ADC_1": NamedNode.ADC1,
    "ADC_2": NamedNode.ADC2,
    "ADC_3": NamedNode.ADC3,
    "ADC0_5V": NamedNode.ADC0,
    "ADC1_5V": NamedNode.ADC1,
    "ADC2_5V": NamedNode.ADC2,
    "ADC3_8V": NamedNode.ADC3,
    "RESET": NamedNode.NANO_RESET,
    "AREF": NamedNode.NANO_AREF,
    "GPIO_0": NamedNode.RP_GPIO_0,
    "UART_RX": NamedNode.RP_UART_RX,
    "UART_TX": NamedNode.RP_UART_TX,
    "GPIO_16": NamedNode.RP_UART_RX,
    "GPIO_17": NamedNode.RP_UART_TX,
}
_ALIASES.update({f"D{i}": NamedNode[f"NANO_D{i}"] for i in range(14)})
_ALIASES.update({f"A{i}": NamedNode[f"NANO_A{i}"] for i in range(8)})

_LOOKUP: dict[str, NamedNode] = {
    **_ALIASES,
    **{named.value: named for named in NamedNode},
}


@dataclass(frozen=True)
class Node:
    """A node on the Jumperless: anything that can be connected to other nodes.

    ``value`` is either a column number or a NamedNode. Construct nodes with
    ``Node.parse`` or ``Node.column``; both validate the column range.
    """

    value: int | NamedNode

    @classmethod
    def column(cls, n: int) -> "Node":
        """Return the node for breadboard column ``n``."""
        if not MIN_COLUMN <= n <= MAX_COLUMN:
            raise UnknownNode(f"Column out of range ({MIN_COLUMN}-{MAX_COLUMN}): {n}")
        return cls(n)

    @classmethod
    def parse(cls, text: str) -> "Node":
        """Parse a column number or a (case-insensitive) node name."""
        text = text.strip()
        if text.isascii() and text.isdigit():
            return cls.column(int(text))
        named = _LOOKUP.get(text.upper())
        if named is None:
            raise UnknownNode(f"Unknown node: {text!r}")
        return cls(named)

    @classmethod
    def from_json(cls, value: object) -> "Node":
        """Decode the JSON form: an integer column or a node name."""
        if isinstance(value, bool):
            raise UnknownNode(f"Not a node: {value!r}")
        if isinstance(value, int):
            return cls.column(value)
        if isinstance(value, str):
            return cls.parse(value)
        raise UnknownNode(f"Not a node: {value!r}")

    @property
    def is_column(self) -> bool:
        return isinstance(self.value, int)

    def to_json(self) -> int | str:
        if isinstance(self.value, NamedNode):
            return self.value.value
        return self.value

    def __str__(self) -> str:
        if isinstance(self.value, NamedNode):
            return self.value.value
        return str(self.value)


# Placeholder node of the sentinel bridge; never produced by Node.parse
_UNUSED = Node(0)


@dataclass(frozen=True, eq=False)
class Bridge:
    """An unordered connection between two distinct nodes.

    ``Bridge(a, b) == Bridge(b, a)``. The device reports unused connection
    slots as the sentinel bridge ``0-0`` (see ``Bridge.sentinel``); it is the
    only bridge allowed to pair a node with itself.
    """

    a: Node
    b: Node

    def __post_init__(self) -> None:
        if self.a == self.b and self.a != _UNUSED:
            raise SelfBridge(f"Bridge connects node {self.a} to itself")

    @classmethod
    def sentinel(cls) -> "Bridge":
        return cls(_UNUSED, _UNUSED)

    @classmethod
    def parse(cls, text: str) -> "Bridge":
        """Parse ``node-node``."""
        left, sep, right = text.strip().partition("-")
        if not sep:
            raise MalformedBridge(f"Invalid bridge, expected 'node-node': {text!r}")
        return cls(Node.parse(left), Node.parse(right))

    @classmethod
    def from_json(cls, value: object) -> "Bridge":
        """Decode the JSON form ``[node, node]``."""
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise MalformedBridge(f"Invalid bridge, expected [node, node]: {value!r}")
        return cls(Node.from_json(value[0]), Node.from_json(value[1]))

    @property
    def is_sentinel(self) -> bool:
        return self.a == _UNUSED and self.b == _UNUSED

    def to_json(self) -> list[int | str]:
        return [self.a.to_json(), self.b.to_json()]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bridge):
            return NotImplemented
        return frozenset((self.a, self.b)) == frozenset((other.a, other.b))

    def __hash__(self) -> int:
        return hash(frozenset((self.a, self.b)))

    def __str__(self) -> str:
        return f"{self.a}-{self.b}"


def parse_nodefile(text: str) -> list[Bridge]:
    """Parse ``node-node,node-node,...`` into bridges, in wire order.

    Empty text (or only whitespace) is the empty list.
    """
    text = text.strip()
    if not text:
        return []
    return [Bridge.parse(segment) for segment in text.split(",")]


def format_nodefile(bridges: Iterable[Bridge]) -> str:
    """Serialize bridges as a nodefile, dropping sentinel entries."""
    return ",".join(str(bridge) for bridge in bridges if not bridge.is_sentinel)


def unique_bridges(bridges: Iterable[Bridge]) -> list[Bridge]:
    """Collapse duplicates (in either pair order), keeping first occurrence."""
    return list(dict.fromkeys(b for b in bridges if not b.is_sentinel))


@dataclass(frozen=True)
class Net:
    """A net as reported by the device's netlist.

    Nets are snapshots: they carry no identity across separate queries.
    """

    index: int
    name: str
    number: int
    nodes: tuple[Node, ...]
    bridges: frozenset[Bridge]

    def to_dict(self) -> dict:
        """Return the external record form of this net."""
        if self.bridges:
            bridges = "{" + format_nodefile(sorted(self.bridges, key=str)) + "}"
        else:
            bridges = "{" + SENTINEL_BRIDGE_TOKEN + "}"
        return {
            "index": self.index,
            "name": self.name,
            "number": self.number,
            "nodes": ",".join(str(node) for node in self.nodes),
            "bridges": bridges,
        }


class SupplySwitchPos(Enum):
    """Position of the supply switch.

    The device cannot sense the switch; the host advertises its position so
    the power rows are lit correctly.
    """

    V8 = "8V"
    V3_3 = "3.3V"
    V5 = "5V"

    @classmethod
    def parse(cls, text: str) -> "SupplySwitchPos":
        """Parse ``8V``, ``3.3V`` or ``5V`` (case-insensitive)."""
        for pos in cls:
            if pos.value.upper() == text.strip().upper():
                return pos
        raise InvalidValue(
            f"Unknown supply switch position {text!r}, expected one of "
            f"{', '.join(pos.value for pos in cls)}"
        )

    def __str__(self) -> str:
        return self.value


_HEX_COLOR = re.compile(r"^[0-9a-fA-F]{6}$")


@dataclass(frozen=True)
class Color:
    """An RGB color, written ``#rrggbb``."""

    r: int
    g: int
    b: int

    @classmethod
    def parse(cls, text: str) -> "Color":
        """Parse ``#rrggbb``, ``0xrrggbb`` or ``rrggbb``."""
        digits = text.strip()
        for prefix in ("0x", "0X", "#"):
            digits = digits.removeprefix(prefix)
        if not _HEX_COLOR.match(digits):
            raise InvalidValue(f"Invalid color, expected '#rrggbb': {text!r}")
        value = int(digits, 16)
        return cls(value >> 16, (value >> 8) & 0xFF, value & 0xFF)

    @property
    def value(self) -> int:
        return (self.r << 16) | (self.g << 8) | self.b

    def __str__(self) -> str:
        return f"#{self.value:06x}"


BLACK = Color(0, 0, 0)


@dataclass(frozen=True)
class ChipStatus:
    """One crosspoint chip entry of the chip status report.

    The firmware's field layout past the chip name is not fixed, so the
    remaining fields are kept as text.
    """

    chip: str
    fields: tuple[str, ...]

    def to_dict(self) -> dict:
        return {"chip": self.chip, "fields": list(self.fields)}


# index, name and required node of the nets the firmware always keeps
SPECIAL_NETS: tuple[tuple[int, str, NamedNode], ...] = (
    (1, "GND", NamedNode.GND),
    (2, "+5V", NamedNode.SUPPLY_5V),
    (3, "+3.3V", NamedNode.SUPPLY_3V3),
    (4, "DAC 0", NamedNode.DAC0),
    (5, "DAC 1", NamedNode.DAC1),
    (6, "I Sense +", NamedNode.ISENSE_PLUS),
    (7, "I Sense -", NamedNode.ISENSE_MINUS),
)
_SPECIAL_INDEXES = {index for index, _, _ in SPECIAL_NETS}


def _json_int(obj: dict, key: str, default: int | None = None) -> int:
    value = obj.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidNetlist(f"Net field {key!r} must be an integer: {value!r}")
    return value


def _json_bool(obj: dict, key: str, default: bool) -> bool:
    value = obj.get(key, default)
    if not isinstance(value, bool):
        raise InvalidNetlist(f"Net field {key!r} must be a boolean: {value!r}")
    return value


@dataclass(frozen=True)
class NetDefinition:
    """A net to upload with ``set_netlist``."""

    index: int
    number: int
    name: str
    nodes: tuple[Node, ...]
    color: Color = BLACK
    special: bool = False
    machine: bool = False

    @classmethod
    def from_json(cls, obj: object) -> "NetDefinition":
        """Decode ``{index, name, nodes, [number], [color], [special], [machine]}``.

        ``nodes`` is a list of JSON nodes or comma separated node text.
        """
        if not isinstance(obj, dict):
            raise InvalidNetlist(f"Net must be an object: {obj!r}")
        index = _json_int(obj, "index")
        name = obj.get("name")
        if not isinstance(name, str):
            raise InvalidNetlist(f"Net {index} needs a name")

        raw_nodes = obj.get("nodes")
        if isinstance(raw_nodes, str):
            nodes = tuple(Node.parse(token) for token in raw_nodes.split(",") if token.strip())
        elif isinstance(raw_nodes, list):
            nodes = tuple(Node.from_json(value) for value in raw_nodes)
        else:
            raise InvalidNetlist(f"Net {index} needs a node list")

        color = obj.get("color")
        if color is not None and not isinstance(color, str):
            raise InvalidNetlist(f"Net {index} color must be a string: {color!r}")

        return cls(
            index=index,
            number=_json_int(obj, "number", index),
            name=name,
            nodes=nodes,
            color=Color.parse(color) if color is not None else BLACK,
            special=_json_bool(obj, "special", index in _SPECIAL_INDEXES),
            machine=_json_bool(obj, "machine", False),
        )

    def to_wire(self) -> dict:
        """Return the object the firmware expects in a netlist upload."""
        return {
            "index": self.index,
            "number": self.number,
            "nodes": ",".join(str(node) for node in self.nodes),
            "special": self.special,
            "color": str(self.color),
            "machine": self.machine,
            "name": self.name,
        }


def validate_netlist(nets: list[NetDefinition]) -> list[NetDefinition]:
    """Check a netlist before upload.

    Indexes must be unique, and every special net must be present under its
    own name and still contain its node.
    """
    by_index: dict[int, NetDefinition] = {}
    for net in nets:
        if net.index in by_index:
            raise InvalidNetlist(f"Duplicate index {net.index}")
        by_index[net.index] = net

    for index, name, named in SPECIAL_NETS:
        net = by_index.get(index)
        if net is None:
            raise InvalidNetlist(f"Special net {name} (index: {index}) missing")
        if net.name != name:
            raise InvalidNetlist(f"Special net {name} (index: {index}) cannot be renamed")
        if Node(named) not in net.nodes:
            raise InvalidNetlist(
                f"Special net {name} (index: {index}) is missing node {named.value}"
            )

    return nets

"""Unit tests for nodes, bridges, nodefiles and nets."""

import unittest

from common.model import (
    BLACK,
    SPECIAL_NETS,
    Bridge,
    Color,
    InvalidNetlist,
    InvalidValue,
    MalformedBridge,
    NamedNode,
    Net,
    NetDefinition,
    Node,
    SelfBridge,
    SupplySwitchPos,
    UnknownNode,
    format_nodefile,
    parse_nodefile,
    unique_bridges,
    validate_netlist,
)


class TestNode(unittest.TestCase):
    """Test node parsing and formatting."""

    def test_parse_column(self) -> None:
        self.assertEqual(Node.parse("17"), Node(17))
        self.assertEqual(Node.parse(" 60 "), Node(60))

    def test_non_ascii_digits_rejected(self) -> None:
        for text in ("\u00b2", "1\u00b2", "\u0661"):
            with self.assertRaises(UnknownNode):
                Node.parse(text)

    def test_column_bounds(self) -> None:
        self.assertEqual(Node.column(1), Node(1))
        with self.assertRaises(UnknownNode):
            Node.column(0)
        with self.assertRaises(UnknownNode):
            Node.parse("61")

    def test_parse_named_case_insensitive(self) -> None:
        self.assertEqual(Node.parse("gnd"), Node(NamedNode.GND))
        self.assertEqual(Node.parse("Nano_D13"), Node(NamedNode.NANO_D13))

    def test_parse_aliases(self) -> None:
        self.assertEqual(Node.parse("5V"), Node(NamedNode.SUPPLY_5V))
        self.assertEqual(Node.parse("3v3"), Node(NamedNode.SUPPLY_3V3))
        self.assertEqual(Node.parse("DAC_0"), Node(NamedNode.DAC0))
        self.assertEqual(Node.parse("I_POS"), Node(NamedNode.ISENSE_PLUS))
        self.assertEqual(Node.parse("D7"), Node(NamedNode.NANO_D7))
        self.assertEqual(Node.parse("A3"), Node(NamedNode.NANO_A3))

    def test_parse_unknown(self) -> None:
        for text in ("", "FOO", "-3", "D14", "1.5"):
            with self.subTest(text=text), self.assertRaises(UnknownNode):
                Node.parse(text)

    def test_str(self) -> None:
        self.assertEqual(str(Node(42)), "42")
        self.assertEqual(str(Node(NamedNode.SUPPLY_3V3)), "SUPPLY_3V3")

    def test_json(self) -> None:
        self.assertEqual(Node.from_json(5), Node(5))
        self.assertEqual(Node.from_json("gnd"), Node(NamedNode.GND))
        self.assertEqual(Node(NamedNode.GND).to_json(), "GND")
        self.assertEqual(Node(12).to_json(), 12)

    def test_json_rejects_other_types(self) -> None:
        for value in (True, None, 1.0, [1]):
            with self.subTest(value=value), self.assertRaises(UnknownNode):
                Node.from_json(value)

    def test_every_named_node_parses_from_its_name(self) -> None:
        for named in NamedNode:
            self.assertEqual(Node.parse(str(Node(named))), Node(named))


class TestBridge(unittest.TestCase):
    """Test bridge parsing, equality and formatting."""

    def test_parse(self) -> None:
        bridge = Bridge.parse("GND-17")
        self.assertEqual(bridge.a, Node(NamedNode.GND))
        self.assertEqual(bridge.b, Node(17))
        self.assertEqual(str(bridge), "GND-17")

    def test_order_independent(self) -> None:
        self.assertEqual(Bridge.parse("3-60"), Bridge.parse("60-3"))
        self.assertEqual(hash(Bridge.parse("3-60")), hash(Bridge.parse("60-3")))
        self.assertEqual(len({Bridge.parse("GND-1"), Bridge.parse("1-GND")}), 1)

    def test_self_bridge_rejected(self) -> None:
        with self.assertRaises(SelfBridge):
            Bridge.parse("17-17")
        with self.assertRaises(SelfBridge):
            Bridge.parse("GND-gnd")

    def test_malformed(self) -> None:
        with self.assertRaises(MalformedBridge):
            Bridge.parse("17")
        with self.assertRaises(UnknownNode):
            Bridge.parse("17-")

    def test_sentinel(self) -> None:
        self.assertTrue(Bridge.sentinel().is_sentinel)
        self.assertFalse(Bridge.parse("1-2").is_sentinel)
        self.assertEqual(str(Bridge.sentinel()), "0-0")

    def test_json(self) -> None:
        bridge = Bridge.from_json(["GND", 17])
        self.assertEqual(bridge, Bridge.parse("17-GND"))
        self.assertEqual(bridge.to_json(), ["GND", 17])

    def test_json_malformed(self) -> None:
        for value in ("GND-17", [1], [1, 2, 3], None):
            with self.subTest(value=value), self.assertRaises(MalformedBridge):
                Bridge.from_json(value)


class TestNodeFile(unittest.TestCase):
    """Test nodefile parsing and formatting."""

    def test_parse(self) -> None:
        bridges = parse_nodefile("3-60,GND-17")
        self.assertEqual(bridges, [Bridge.parse("3-60"), Bridge.parse("GND-17")])

    def test_parse_empty(self) -> None:
        self.assertEqual(parse_nodefile(""), [])
        self.assertEqual(parse_nodefile("  "), [])

    def test_parse_rejects_empty_segment(self) -> None:
        with self.assertRaises(MalformedBridge):
            parse_nodefile("3-60,,GND-17")

    def test_format_keeps_order(self) -> None:
        text = "12-17,GND-1,14-29"
        self.assertEqual(format_nodefile(parse_nodefile(text)), text)

    def test_format_drops_sentinel(self) -> None:
        bridges = [Bridge.sentinel(), Bridge.parse("1-2"), Bridge.sentinel()]
        self.assertEqual(format_nodefile(bridges), "1-2")

    def test_unique_bridges(self) -> None:
        bridges = parse_nodefile("1-2,3-4,2-1,GND-5,3-4")
        self.assertEqual(unique_bridges(bridges), parse_nodefile("1-2,3-4,GND-5"))


class TestNet(unittest.TestCase):
    """Test the external record form of nets."""

    def test_to_dict(self) -> None:
        net = Net(
            index=8,
            name="Net 8",
            number=8,
            nodes=(Node(12), Node(17), Node(NamedNode.GND)),
            bridges=frozenset(parse_nodefile("GND-17,12-17")),
        )
        self.assertEqual(
            net.to_dict(),
            {
                "index": 8,
                "name": "Net 8",
                "number": 8,
                "nodes": "12,17,GND",
                "bridges": "{12-17,GND-17}",
            },
        )

    def test_to_dict_without_bridges(self) -> None:
        net = Net(index=1, name="GND", number=1, nodes=(Node(NamedNode.GND),), bridges=frozenset())
        self.assertEqual(net.to_dict()["bridges"], "{0-0}")


class TestSupplySwitchPos(unittest.TestCase):
    """Test supply switch position parsing."""

    def test_parse(self) -> None:
        self.assertEqual(SupplySwitchPos.parse("8V"), SupplySwitchPos.V8)
        self.assertEqual(SupplySwitchPos.parse(" 3.3v "), SupplySwitchPos.V3_3)
        self.assertEqual(str(SupplySwitchPos.V5), "5V")

    def test_invalid(self) -> None:
        with self.assertRaisesRegex(InvalidValue, "8V, 3.3V, 5V"):
            SupplySwitchPos.parse("12V")


class TestColor(unittest.TestCase):
    """Test color parsing and formatting."""

    def test_parse(self) -> None:
        self.assertEqual(Color.parse("#ff8000"), Color(255, 128, 0))
        self.assertEqual(Color.parse("0x00FF0a"), Color(0, 255, 10))
        self.assertEqual(Color.parse("0000ff"), Color(0, 0, 255))

    def test_format(self) -> None:
        self.assertEqual(str(Color(255, 128, 0)), "#ff8000")
        self.assertEqual(Color(1, 2, 3).value, 0x010203)

    def test_invalid(self) -> None:
        for text in ("red", "#fff", "#ff80001", "", "#gg0000"):
            with self.assertRaises(InvalidValue):
                Color.parse(text)


def special_nets() -> list[NetDefinition]:
    """The nets every uploaded netlist must keep."""
    return [
        NetDefinition(index, index, name, (Node(named),), special=True)
        for index, name, named in SPECIAL_NETS
    ]


class TestNetDefinition(unittest.TestCase):
    """Test netlist upload entries."""

    def test_from_json_text_nodes(self) -> None:
        net = NetDefinition.from_json({"index": 8, "name": "Net 8", "nodes": "12, 17,GND"})
        self.assertEqual(net.number, 8)
        self.assertEqual(net.nodes, (Node(12), Node(17), Node(NamedNode.GND)))
        self.assertEqual(net.color, BLACK)
        self.assertFalse(net.special)
        self.assertFalse(net.machine)

    def test_from_json_list_nodes(self) -> None:
        net = NetDefinition.from_json(
            {"index": 1, "name": "GND", "nodes": ["GND", 3], "color": "#001122", "number": 5}
        )
        self.assertEqual(net.nodes, (Node(NamedNode.GND), Node(3)))
        self.assertEqual(net.color, Color(0, 0x11, 0x22))
        self.assertEqual(net.number, 5)
        self.assertTrue(net.special)

    def test_from_json_invalid(self) -> None:
        for obj in (
            [],
            {"name": "x", "nodes": ""},
            {"index": "1", "name": "x", "nodes": ""},
            {"index": True, "name": "x", "nodes": ""},
            {"index": 9, "nodes": ""},
            {"index": 9, "name": "x"},
            {"index": 9, "name": "x", "nodes": "", "special": "yes"},
            {"index": 9, "name": "x", "nodes": "", "color": 255},
        ):
            with self.assertRaises(InvalidNetlist):
                NetDefinition.from_json(obj)

    def test_from_json_bad_node(self) -> None:
        with self.assertRaises(UnknownNode):
            NetDefinition.from_json({"index": 9, "name": "x", "nodes": "FOO"})

    def test_to_wire(self) -> None:
        net = NetDefinition(9, 9, "Net 9", (Node(12), Node(NamedNode.SUPPLY_5V)), Color(255, 0, 0))
        self.assertEqual(
            net.to_wire(),
            {
                "index": 9,
                "number": 9,
                "nodes": "12,SUPPLY_5V",
                "special": False,
                "color": "#ff0000",
                "machine": False,
                "name": "Net 9",
            },
        )


class TestValidateNetlist(unittest.TestCase):
    """Test netlist validation before upload."""

    def test_valid(self) -> None:
        nets = special_nets() + [NetDefinition(8, 8, "Net 8", (Node(1), Node(2)))]
        self.assertIs(validate_netlist(nets), nets)

    def test_special_nets_may_gain_nodes(self) -> None:
        nets = special_nets()
        nets[0] = NetDefinition(1, 1, "GND", (Node(NamedNode.GND), Node(17)), special=True)
        validate_netlist(nets)

    def test_duplicate_index(self) -> None:
        nets = special_nets() + [NetDefinition(8, 8, "a", ()), NetDefinition(8, 9, "b", ())]
        with self.assertRaisesRegex(InvalidNetlist, "Duplicate index 8"):
            validate_netlist(nets)

    def test_missing_special_net(self) -> None:
        with self.assertRaisesRegex(InvalidNetlist, "missing"):
            validate_netlist(special_nets()[1:])

    def test_renamed_special_net(self) -> None:
        nets = special_nets()
        nets[1] = NetDefinition(2, 2, "Power", (Node(NamedNode.SUPPLY_5V),), special=True)
        with self.assertRaisesRegex(InvalidNetlist, "renamed"):
            validate_netlist(nets)

    def test_special_net_without_its_node(self) -> None:
        nets = special_nets()
        nets[0] = NetDefinition(1, 1, "GND", (Node(17),), special=True)
        with self.assertRaisesRegex(InvalidNetlist, "GND"):
            validate_netlist(nets)


if __name__ == "__main__":
    unittest.main()

"""Device session package for jlctl.

This package owns the connection to the device and the operations on it:
- manager: DeviceSession (CLOSED/OPEN lifecycle, locking, exchange)
- bridges: BridgeEngine (get/set/add/remove/clear)
- queries: netlist, net, raw, supply_switch, set_supply_switch, set_netlist,
  chip_status, lightnet
"""

from session.bridges import BridgeEngine
from session.manager import DeviceSession
from session.queries import (
    chip_status,
    lightnet,
    net,
    netlist,
    raw,
    set_netlist,
    set_supply_switch,
    supply_switch,
)

__all__ = [
    "BridgeEngine",
    "DeviceSession",
    "chip_status",
    "lightnet",
    "net",
    "netlist",
    "raw",
    "set_netlist",
    "set_supply_switch",
    "supply_switch",
]

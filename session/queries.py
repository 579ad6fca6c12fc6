"""Read-only, passthrough and framed-command queries on a device session."""

import logging

from common.codec import lightnet_payload, netlist_payload
from common.model import ChipStatus, Color, Net, NetDefinition, SupplySwitchPos, validate_netlist
from common.protocol import Command
from session.manager import DeviceSession

logger = logging.getLogger(__name__)


def netlist(session: DeviceSession) -> list[Net]:
    """Retrieve the list of nets, in device table order."""
    nets = session.exchange(Command.NETLIST)
    assert isinstance(nets, list)
    return nets


def net(session: DeviceSession, index: int) -> Net | None:
    """Retrieve the net at ``index``, or None if the device has no such net."""
    return next((n for n in netlist(session) if n.index == index), None)


def raw(session: DeviceSession, text: str) -> str:
    """Send ``text`` verbatim and return the device's answer untouched."""
    response = session.exchange(Command.RAW, text)
    assert isinstance(response, str)
    return response


def supply_switch(session: DeviceSession) -> SupplySwitchPos:
    """Retrieve the supply switch position the device was last told."""
    pos = session.exchange(Command.SUPPLY_SWITCH)
    assert isinstance(pos, SupplySwitchPos)
    return pos


def set_supply_switch(session: DeviceSession, pos: SupplySwitchPos) -> SupplySwitchPos:
    """Tell the device where the supply switch is."""
    session.exchange(Command.SET_SUPPLY_SWITCH, pos.value)
    logger.info(f"Supply switch set to {pos}")
    return pos


def set_netlist(session: DeviceSession, nets: list[NetDefinition]) -> list[Net]:
    """Validate and upload ``nets``, then return the netlist the device reports.

    Raises:
        InvalidNetlist: Before anything is sent, if ``nets`` fails validation.
    """
    validate_netlist(nets)
    with session.locked():
        session.exchange(Command.SET_NETLIST, netlist_payload(nets))
        return netlist(session)


def chip_status(session: DeviceSession) -> list[ChipStatus]:
    """Retrieve the status of each crosspoint chip."""
    chips = session.exchange(Command.CHIP_STATUS)
    assert isinstance(chips, list)
    return chips


def lightnet(session: DeviceSession, name: str, color: Color) -> None:
    """Highlight the net called ``name`` in ``color``. The device does not answer."""
    session.exchange(Command.LIGHTNET, lightnet_payload(name, color))

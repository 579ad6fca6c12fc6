"""Bridge operations for jlctl.

The device only supports replacing its whole bridge list, so add and remove
are computed on the host: fetch the current list, apply a set union or
difference, and upload the result. Each mutation holds the session lock for
the full fetch + upload + confirm sequence so concurrent callers cannot lose
each other's updates.
"""

import logging
from collections.abc import Iterable

from common.codec import upload_payload
from common.model import Bridge, unique_bridges
from common.protocol import Command
from session.manager import DeviceSession

logger = logging.getLogger(__name__)


class BridgeEngine:
    """Bridge list operations on a device session."""

    def __init__(self, session: DeviceSession) -> None:
        self.session = session

    def get(self) -> list[Bridge]:
        """Retrieve the current list of bridges."""
        bridges = self.session.exchange(Command.BRIDGES)
        assert isinstance(bridges, list)
        return bridges

    def set(self, bridges: Iterable[Bridge]) -> list[Bridge]:
        """Replace the device's bridges. Returns the device's confirmed list."""
        wanted = unique_bridges(bridges)
        with self.session.locked():
            logger.debug(f"Uploading {len(wanted)} bridges")
            self.session.exchange(Command.UPLOAD, upload_payload(wanted))
            confirmed = self.get()

        if set(confirmed) != set(wanted):
            logger.warning(
                f"Device confirmed {len(confirmed)} bridges, {len(wanted)} were uploaded"
            )
        return confirmed

    def add(self, bridges: Iterable[Bridge]) -> list[Bridge]:
        """Add bridges to the current list."""
        with self.session.locked():
            current = self.get()
            return self.set([*current, *bridges])

    def remove(self, bridges: Iterable[Bridge]) -> list[Bridge]:
        """Remove bridges (in either node order) from the current list."""
        unwanted = set(bridges)
        with self.session.locked():
            current = self.get()
            return self.set(bridge for bridge in current if bridge not in unwanted)

    def clear(self) -> list[Bridge]:
        """Remove all bridges."""
        return self.set([])

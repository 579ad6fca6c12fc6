"""Reporting abstractions for jlctl.

Contains:
- Report ABC: Base class for all CLI output
- format_table: Plain text table layout
- PortsReport: Serial ports and their roles
- NetlistReport: Nets, as a table or JSON
- BridgesReport: Bridges, as a nodefile or JSON
- ChipStatusReport: Crosspoint chip status, as a table or JSON
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass

from common.device import FoundPort
from common.model import Bridge, ChipStatus, Net, format_nodefile


class Report(ABC):
    """Abstract base class for CLI output."""

    @abstractmethod
    def print(self) -> None:
        """Print the report to stdout."""
        pass


def format_table(headers: list[str], rows: list[list[str]]) -> str:
    """Lay out rows under headers with columns padded to equal width."""
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def line(cells: list[str]) -> str:
        return "  ".join(cell.ljust(w) for cell, w in zip(cells, widths)).rstrip()

    out = [line(headers), line(["-" * w for w in widths])]
    out.extend(line(row) for row in rows)
    return "\n".join(out)


@dataclass
class PortsReport(Report):
    """Report for list-ports."""

    ports: list[FoundPort]

    def print(self) -> None:
        rows = [[p.name, p.usb_id_text, p.role.value] for p in self.ports]
        print(format_table(["Port Name", "USB ID", "Role"], rows))


@dataclass
class NetlistReport(Report):
    """Report for the netlist query."""

    nets: list[Net]
    as_json: bool = False

    def print(self) -> None:
        records = [net.to_dict() for net in self.nets]
        if self.as_json:
            print(json.dumps(records, indent=2))
            return
        headers = ["Index", "Name", "Number", "Nodes", "Bridges"]
        rows = [[str(r[key.lower()]) for key in headers] for r in records]
        print(format_table(headers, rows))


@dataclass
class BridgesReport(Report):
    """Report for bridge queries and mutations."""

    bridges: list[Bridge]
    as_json: bool = False

    def print(self) -> None:
        if self.as_json:
            print(json.dumps([bridge.to_json() for bridge in self.bridges]))
        else:
            print(format_nodefile(self.bridges))


@dataclass
class ChipStatusReport(Report):
    """Report for the chip status query."""

    chips: list[ChipStatus]
    as_json: bool = False

    def print(self) -> None:
        if self.as_json:
            print(json.dumps([chip.to_dict() for chip in self.chips], indent=2))
            return
        rows = [[chip.chip, ", ".join(chip.fields)] for chip in self.chips]
        print(format_table(["Chip", "Status"], rows))

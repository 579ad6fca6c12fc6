"""pytest configuration and fixtures for jlctl tests.

Provides:
- FakeBoard: In-memory Jumperless state, opened through FakeBoard.open
- FakePort: One connection to a FakeBoard, answering the text protocol
- Fixtures: board, session, engine, capture_path
- Markers for unit vs integration tests
"""

import json
import re
import threading
import time
from collections.abc import Generator
from pathlib import Path

import pytest
import serial

from common.connection import SessionConfig
from session.bridges import BridgeEngine
from session.manager import DeviceSession

FAKE_PORT = "/dev/ttyFAKE0"

SPECIAL_NETS = [
    (1, "GND", 1, "GND"),
    (2, "+5V", 2, "5V"),
    (3, "+3.3V", 3, "3V3"),
    (4, "DAC 0", 4, "DAC_0"),
    (5, "DAC 1", 5, "DAC_1"),
    (6, "I Sense +", 6, "I_POS"),
    (7, "I Sense -", 7, "I_NEG"),
]

MENU = [
    "",
    "",
    "\t\t\tMenu",
    "",
    "\tn = show netlist",
    "\tb = show bridge array",
    "\tf = load formatted nodeFile",
]

# ::name, optional :SEQ, bracketed payload
FRAMED_REQUEST = re.compile(r"^(?P<name>::\w+)(?::(?P<seq>\d+))?\[(?P<payload>.*)\]$")

CHIPS = ["A", "B", "C", "D", "E", "F", "G", "H", "I", "J", "K", "L"]


class FakeBoard:
    """State of a fake Jumperless, shared by all connections to it.

    Bridges are kept as the raw ``a-b`` strings uploaded to the board.

    Knobs for failure injection:
    - unplugged: opening raises SerialException
    - fail_writes: writes raise SerialException
    - silent: the board never answers
    - identity: answer to ``?`` (None: no answer at all)
    - ok_marker: terminate responses with ``::ok`` (else rely on idle gap)
    - bridge_line: override the answer to ``b``

    Framed commands (``::name:SEQ[payload]``) are answered from ``supply``,
    ``nets`` (set by a netlist upload) and ``lit`` (lightnet payloads, which
    get no reply at all).
    """

    def __init__(self) -> None:
        self.bridges: list[str] = []
        self.identity: str | None = "jumperless"
        self.unplugged = False
        self.fail_writes = False
        self.silent = False
        self.ok_marker = True
        self.bridge_line: str | None = None
        self.supply = "5V"
        self.nets: list[dict] | None = None
        self.lit: list[str] = []
        self.sequences: list[int] = []
        self.opened: list["FakePort"] = []
        self.requests: list[str] = []
        self.lock = threading.Lock()

    def open(self, device: str, baudrate: int) -> "FakePort":
        if self.unplugged:
            raise serial.SerialException(f"could not open port {device}")
        port = FakePort(self, device)
        self.opened.append(port)
        return port

    def netlist_lines(self) -> list[str]:
        lines = ["", "netlist", "", "", "Index\tName\t\tNumber\t\tNodes\t\t\tBridges"]
        lines.append("0\tEmpty Net\t127\t\tEMPTY_NET\t\t{0-0}")
        if self.nets is not None:
            for n in self.nets:
                nodes = n["nodes"] or "EMPTY_NET"
                lines.append(f"{n['index']}\t{n['name']}\t\t{n['number']}\t\t{nodes}\t\t\t{{0-0}}")
            return lines + MENU
        for index, name, number, nodes in SPECIAL_NETS:
            lines.append(f"{index}\t{name}\t\t{number}\t\t{nodes}\t\t\t{{0-0}}")
        if self.bridges:
            lines.append("")
            lines.append("Index\tName\t\tNumber\t\tNodes\t\t\tBridges")
        for offset, bridge in enumerate(self.bridges):
            index = len(SPECIAL_NETS) + 1 + offset
            nodes = bridge.replace("-", ",")
            lines.append(f"{index}\tNet {index}\t\t{index}\t\t{nodes}\t\t\t{{{bridge}}}")
        return lines + MENU

    def answer_framed(self, name: str, payload: str) -> list[str] | None:
        match name:
            case "::getsupplyswitch":
                return [f"::supplyswitch[{self.supply}]"]
            case "::setsupplyswitch":
                if payload not in ("8V", "3.3V", "5V"):
                    return ["::error"]
                self.supply = payload
                return []
            case "::netlist":
                self.nets = json.loads("[" + payload + "]")
                return []
            case "::getchipstatus":
                entries = [f"::chipstatus[{chip},0,0,0]" for chip in CHIPS]
                return ["::chipstatus-begin", *entries, "::chipstatus-end"]
            case "::lightnet":
                self.lit.append(payload)
                return None
        return ["::error"]

    def answer(self, request: str) -> list[str] | None:
        """Return the response lines for one request line, or None for no reply."""
        self.requests.append(request)
        framed = FRAMED_REQUEST.match(request)
        if framed is not None:
            if framed["seq"] is not None:
                self.sequences.append(int(framed["seq"]))
            return self.answer_framed(framed["name"], framed["payload"])
        if request == "n":
            return self.netlist_lines()
        if request == "b":
            if self.bridge_line is not None:
                return [self.bridge_line]
            return ["{" + ",".join(self.bridges) + "}"]
        if request.startswith("f{") and request.endswith("}"):
            body = request[2:-1]
            self.bridges = [b for b in body.split(",") if b]
            return ["loaded nodefile"]
        if request == "?":
            return [] if self.identity is None else [self.identity]
        return [f"echo: {request}"]


class FakePort:
    """A connection to a FakeBoard, behaving like a pyserial port."""

    def __init__(self, board: FakeBoard, device: str) -> None:
        self.board = board
        self.device = device
        self.is_open = True
        self._incoming = b""
        self._outgoing: list[bytes] = []

    def _check_open(self) -> None:
        if not self.is_open:
            raise serial.SerialException("Attempting to use a port that is not open")

    def write(self, data: bytes, /) -> int:
        self._check_open()
        if self.board.fail_writes:
            raise serial.SerialException("write failed: device disconnected")
        self._incoming += data
        while b"\r\n" in self._incoming:
            raw, self._incoming = self._incoming.split(b"\r\n", 1)
            with self.board.lock:
                lines = self.board.answer(raw.decode())
            if self.board.silent or lines is None:
                continue
            self._outgoing.extend(f"{line}\r\n".encode() for line in lines)
            if self.board.ok_marker:
                self._outgoing.append(b"::ok\r\n")
        return len(data)

    def readline(self, size: int = -1, /) -> bytes:
        self._check_open()
        if not self._outgoing:
            time.sleep(0.001)  # read timeout
            return b""
        return self._outgoing.pop(0)

    def read(self, size: int = 1, /) -> bytes:
        self._check_open()
        data = b"".join(self._outgoing)[:size]
        self._outgoing.clear()
        return data

    @property
    def in_waiting(self) -> int:
        return sum(len(chunk) for chunk in self._outgoing)

    def inject(self, data: bytes) -> None:
        """Queue data as if the board sent it unprompted."""
        self._outgoing.append(data)

    def close(self) -> None:
        self.is_open = False


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (HTTP server)")


@pytest.fixture
def board() -> FakeBoard:
    return FakeBoard()


@pytest.fixture
def session(board: FakeBoard) -> Generator[DeviceSession, None, None]:
    """Session on a fixed fake port with short timeouts."""
    config = SessionConfig(port=FAKE_PORT, port_timeout_s=0.01, response_timeout_s=0.2)
    s = DeviceSession(config, opener=board.open)
    yield s
    s.close()


@pytest.fixture
def engine(session: DeviceSession) -> BridgeEngine:
    return BridgeEngine(session)


@pytest.fixture
def capture_path(tmp_path: Path) -> Path:
    return tmp_path / "capture.log"

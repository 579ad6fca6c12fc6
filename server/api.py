"""HTTP API for jlctl.

Mirrors the CLI operations as JSON endpoints:

    GET    /status            {"connected": bool}
    GET    /ports             [{name, usb_id, role}, ...]
    GET    /nets              [net, ...]
    GET    /nets/{index}      net or null
    GET    /bridges           [[node, node], ...]
    PUT    /bridges           replace bridges, returns resulting list
    POST   /bridges           add bridges, returns resulting list
    DELETE /bridges           remove bridges, returns resulting list
    POST   /bridges/clear     true
    POST   /raw               {"command": text} -> {"response": text}
    PUT    /nets              replace the netlist, returns the nets read back
    GET    /supply_switch_pos "8V" | "3.3V" | "5V"
    PUT    /supply_switch_pos/{pos}  set the position, returns it
    GET    /chipstatus        [{chip, fields}, ...]
    POST   /lightnet          {"net": name, "color": "#rrggbb"} -> true

Device failures (connect, I/O, decode) answer 502; malformed input answers
400. Requests are served on a thread per connection, all sharing one
DeviceSession, whose lock serializes access to the device.
"""

import http.server
import json
import logging
from urllib.parse import unquote, urlparse

from common.codec import DecodeError
from common.connection import DeviceError, PortRole
from common.device import list_ports
from common.model import Bridge, Color, NetDefinition, ParseError, SupplySwitchPos
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

logger = logging.getLogger(__name__)

ALLOWED_ORIGIN_PREFIX = "http://localhost:"

# Returned by a route handler for a path it does not serve
NOT_FOUND = object()


class BadRequest(Exception):
    """Raised when a request body cannot be used."""

    pass


class JumperlessHTTPServer(http.server.ThreadingHTTPServer):
    """Threading HTTP server carrying the shared device session."""

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], session: DeviceSession) -> None:
        super().__init__(address, Handler)
        self.session = session
        self.bridges = BridgeEngine(session)


class Handler(http.server.BaseHTTPRequestHandler):
    server: JumperlessHTTPServer

    def log_message(self, format: str, *args) -> None:
        logger.info(f"{self.address_string()} {format % args}")

    # -- helpers --

    def _cors_headers(self) -> None:
        origin = self.headers.get("Origin", "")
        if origin.startswith(ALLOWED_ORIGIN_PREFIX):
            self.send_header("Access-Control-Allow-Origin", origin)
            self.send_header("Vary", "Origin")

    def _send_json(self, data: object, status: int = 200) -> None:
        body = json.dumps(data).encode()
        try:
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self._cors_headers()
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        except BrokenPipeError:
            logger.debug("Client disconnected before reading response")

    def _read_json(self) -> object:
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError as e:
            raise BadRequest(f"invalid Content-Length: {e}") from e
        if length <= 0:
            raise BadRequest("empty body")
        try:
            return json.loads(self.rfile.read(length))
        except ValueError as e:
            # JSONDecodeError, or a body that is not UTF-8
            raise BadRequest(f"invalid JSON: {e}") from e

    def _read_bridges(self) -> list[Bridge]:
        body = self._read_json()
        if not isinstance(body, list):
            raise BadRequest("expected a list of [node, node] pairs")
        return [Bridge.from_json(item) for item in body]

    def _path(self) -> str:
        return urlparse(self.path).path.rstrip("/") or "/"

    def _dispatch(self, routes: dict, prefixed: dict | None = None) -> None:
        """Call the handler for the request path.

        ``prefixed`` maps a path prefix to a handler taking the (unquoted)
        rest of the path; a handler returning NOT_FOUND answers 404.
        """
        path = self._path()
        handler = routes.get(path)
        args: tuple = ()
        if handler is None:
            for prefix, prefixed_handler in (prefixed or {}).items():
                if path.startswith(prefix) and len(path) > len(prefix):
                    handler, args = prefixed_handler, (unquote(path.removeprefix(prefix)),)
                    break
        if handler is None:
            self._send_json({"error": "not found"}, 404)
            return

        try:
            result = handler(*args)
            if result is NOT_FOUND:
                self._send_json({"error": "not found"}, 404)
                return
            self._send_json(result)
        except (BadRequest, ParseError) as e:
            self._send_json({"error": str(e)}, 400)
        except (DeviceError, DecodeError) as e:
            self._send_json({"error": str(e), "kind": e.kind}, 502)

    # -- routes --

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self._cors_headers()
        self.send_header("Access-Control-Allow-Methods", "GET, PUT, POST, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type, Accept, Authorization")
        self.send_header("Access-Control-Max-Age", "3600")
        self.end_headers()

    def do_GET(self) -> None:
        self._dispatch(
            {
                "/status": self._get_status,
                "/ports": self._get_ports,
                "/nets": self._get_nets,
                "/bridges": self._get_bridges,
                "/supply_switch_pos": self._get_supply_switch,
                "/chipstatus": self._get_chip_status,
            },
            {"/nets/": self._get_net},
        )

    def do_PUT(self) -> None:
        self._dispatch(
            {"/bridges": self._put_bridges, "/nets": self._put_nets},
            {"/supply_switch_pos/": self._put_supply_switch},
        )

    def do_POST(self) -> None:
        self._dispatch(
            {
                "/bridges": self._post_bridges,
                "/bridges/clear": self._clear_bridges,
                "/raw": self._post_raw,
                "/lightnet": self._post_lightnet,
            }
        )

    def do_DELETE(self) -> None:
        self._dispatch({"/bridges": self._delete_bridges})

    # -- handlers --

    def _get_status(self) -> dict:
        return self.server.session.status()

    def _get_ports(self) -> list[dict]:
        session = self.server.session
        with session.locked():
            # The open port is busy and known to be the primary
            known = {session.port_name: PortRole.PRIMARY} if session.port_name else {}
            ports = list_ports(baudrate=session.config.baudrate, known=known)
        return [port.to_dict() for port in ports]

    def _get_nets(self) -> list[dict]:
        return [n.to_dict() for n in netlist(self.server.session)]

    def _get_net(self, index: str) -> object:
        if not (index.isascii() and index.isdigit()):
            return NOT_FOUND
        found = net(self.server.session, int(index))
        return found.to_dict() if found is not None else None

    def _put_nets(self) -> list[dict]:
        body = self._read_json()
        if not isinstance(body, list):
            raise BadRequest("expected a list of nets")
        nets = [NetDefinition.from_json(item) for item in body]
        return [n.to_dict() for n in set_netlist(self.server.session, nets)]

    def _get_supply_switch(self) -> str:
        return supply_switch(self.server.session).value

    def _put_supply_switch(self, pos: str) -> str:
        return set_supply_switch(self.server.session, SupplySwitchPos.parse(pos)).value

    def _get_chip_status(self) -> list[dict]:
        return [chip.to_dict() for chip in chip_status(self.server.session)]

    def _get_bridges(self) -> list:
        return [b.to_json() for b in self.server.bridges.get()]

    def _put_bridges(self) -> list:
        return [b.to_json() for b in self.server.bridges.set(self._read_bridges())]

    def _post_bridges(self) -> list:
        return [b.to_json() for b in self.server.bridges.add(self._read_bridges())]

    def _delete_bridges(self) -> list:
        return [b.to_json() for b in self.server.bridges.remove(self._read_bridges())]

    def _clear_bridges(self) -> bool:
        self.server.bridges.clear()
        return True

    def _post_raw(self) -> dict:
        body = self._read_json()
        if not isinstance(body, dict) or not isinstance(body.get("command"), str):
            raise BadRequest('expected {"command": text}')
        return {"response": raw(self.server.session, body["command"])}

    def _post_lightnet(self) -> bool:
        body = self._read_json()
        if (
            not isinstance(body, dict)
            or not isinstance(body.get("net"), str)
            or not isinstance(body.get("color"), str)
        ):
            raise BadRequest('expected {"net": name, "color": "#rrggbb"}')
        lightnet(self.server.session, body["net"], Color.parse(body["color"]))
        return True

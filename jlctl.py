#!/usr/bin/env python3
"""CLI for the Jumperless breadboard."""

import argparse
import logging
import sys

from client.runner import (
    run_bridge,
    run_chip_status,
    run_lightnet,
    run_list_ports,
    run_netlist,
    run_raw,
    run_supply_switch,
    run_upload_netlist,
)
from common.connection import SessionConfig
from common.model import SupplySwitchPos
from common.protocol import DEFAULT_LISTEN, TRACE
from server.runner import run_server
from session.manager import DeviceSession


def _log_level(verbose: int, quiet: bool) -> int:
    if quiet:
        return logging.WARNING
    if verbose >= 2:
        return TRACE
    if verbose == 1:
        return logging.DEBUG
    return logging.INFO


def _add_bridge_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "bridges",
        type=str,
        help='Bridge(s), e.g. "GND-17" or "12-17,14-29"',
    )


def build_parser() -> argparse.ArgumentParser:
    config = SessionConfig.from_env()

    parser = argparse.ArgumentParser(
        description="CLI for the Jumperless breadboard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list-ports                  Show serial ports and their roles
  %(prog)s bridge add "GND-17,3-60"    Connect GND to 17 and 3 to 60
  %(prog)s -p /dev/ttyACM0 netlist     Print nets from a fixed port
  %(prog)s supply-switch set 3.3V      Tell the device the switch is at 3.3V
  %(prog)s lightnet GND "#ff0000"      Highlight the GND net in red
  %(prog)s server -l localhost:8080    Serve the HTTP API
""",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=str,
        default=config.port,
        help="Serial port where the Jumperless is connected (default: detect dynamically)",
    )
    parser.add_argument(
        "-b",
        "--baudrate",
        type=int,
        default=config.baudrate,
        help=f"Baud rate (default: {config.baudrate})",
    )
    parser.add_argument(
        "--capture",
        type=str,
        default=config.capture_path,
        help="Append all raw device traffic to this file",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="More logging (-vv for wire traffic)"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list-ports", help="List serial ports")

    netlist_parser = subparsers.add_parser("netlist", help="Print current netlist")
    netlist_parser.add_argument("--json", action="store_true", help="Print JSON")

    bridge_parser = subparsers.add_parser("bridge", help="Interact with bridges")
    bridge_sub = bridge_parser.add_subparsers(dest="operation", required=True)
    get_parser = bridge_sub.add_parser("get", help="Get current list of bridges")
    get_parser.add_argument("--json", action="store_true", help="Print JSON")
    _add_bridge_args(bridge_sub.add_parser("add", help="Add new bridge(s)"))
    _add_bridge_args(bridge_sub.add_parser("remove", help="Remove given bridge(s)"))
    _add_bridge_args(bridge_sub.add_parser("set", help="Replace all bridges"))
    bridge_sub.add_parser("clear", help="Remove all bridges")

    upload_parser = subparsers.add_parser(
        "upload-netlist", help="Replace the netlist with nets from a JSON file"
    )
    upload_parser.add_argument("file", type=str, help="JSON list of nets (- for stdin)")
    upload_parser.add_argument("--json", action="store_true", help="Print JSON")

    supply_parser = subparsers.add_parser(
        "supply-switch", help="Get or set the supply switch position"
    )
    supply_sub = supply_parser.add_subparsers(dest="operation", required=True)
    supply_sub.add_parser("get", help="Print the supply switch position")
    supply_set = supply_sub.add_parser("set", help="Set the supply switch position")
    supply_set.add_argument(
        "pos",
        type=str,
        help=f"One of {', '.join(pos.value for pos in SupplySwitchPos)}",
    )

    chip_parser = subparsers.add_parser("chip-status", help="Print crosspoint chip status")
    chip_parser.add_argument("--json", action="store_true", help="Print JSON")

    lightnet_parser = subparsers.add_parser("lightnet", help="Highlight a net")
    lightnet_parser.add_argument("name", type=str, help="Net name")
    lightnet_parser.add_argument("color", type=str, help='Color, e.g. "#ff0000"')

    raw_parser = subparsers.add_parser("raw", help="Send a raw command")
    raw_parser.add_argument("text", type=str, help="Command line sent verbatim")

    server_parser = subparsers.add_parser("server", help="Start HTTP server")
    server_parser.add_argument(
        "-l",
        "--listen",
        type=str,
        default=DEFAULT_LISTEN,
        help=f"Listen address (default: {DEFAULT_LISTEN})",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=_log_level(args.verbose, args.quiet),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "list-ports":
        return run_list_ports(args.baudrate)

    config = SessionConfig.from_env()
    config.port = args.port
    config.baudrate = args.baudrate
    config.capture_path = args.capture
    session = DeviceSession(config)

    if args.command == "server":
        return run_server(session, args.listen)

    try:
        match args.command:
            case "netlist":
                return run_netlist(session, as_json=args.json)
            case "bridge":
                return run_bridge(
                    session,
                    args.operation,
                    bridges=getattr(args, "bridges", ""),
                    as_json=getattr(args, "json", False),
                )
            case "raw":
                return run_raw(session, args.text)
            case "upload-netlist":
                return run_upload_netlist(session, args.file, as_json=args.json)
            case "supply-switch":
                return run_supply_switch(session, args.operation, getattr(args, "pos", ""))
            case "chip-status":
                return run_chip_status(session, as_json=args.json)
            case "lightnet":
                return run_lightnet(session, args.name, args.color)
            case _:
                raise AssertionError(f"unhandled command {args.command}")
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())

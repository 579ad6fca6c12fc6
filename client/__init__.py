"""Client package for jlctl.

Contains the CLI command runners:
- runner: ExitCode, run_list_ports, run_netlist, run_bridge, run_raw
"""

from client.runner import ExitCode, run_bridge, run_list_ports, run_netlist, run_raw

__all__ = [
    "ExitCode",
    "run_bridge",
    "run_list_ports",
    "run_netlist",
    "run_raw",
]

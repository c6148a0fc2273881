from __future__ import annotations

import sys
from typing import Iterable, List, Optional, TextIO

from vagrantfleet.keys import Keypair
from vagrantfleet.launcher import LaunchResult
from vagrantfleet.topology import Topology


def format_report(topology: Topology,
                  results: Iterable[LaunchResult],
                  keypair: Optional[Keypair] = None) -> str:
    """Format the address table and an example ssh command as plain text.

    Args:
        topology: The rendered topology.
        results: The launch results, machines without a result are listed
            without a state.
        keypair: The keypair the machines accept, used in the ssh example.

    Returns:
        Human-readable, plain text output.
    """
    states = {result.machine.hostname: result.status.value for result in results}

    lines: List[str] = ["IP addresses of the virtual machines:"]
    if not topology.machines:
        lines.append("  (no machines)")
        return "\n".join(lines) + "\n"

    for machine in topology.machines:
        line = f"{machine.hostname}: {machine.ip_address}"
        state = states.get(machine.hostname)
        if state and state != "running":
            line += f" [{state}]"
        lines.append(line)

    first = topology.machines[0]
    command = f"ssh {first.username}@{first.ip_address}"
    if keypair is not None:
        command += f" -i {keypair.private_key_path}"
    lines.append(f"Example to connect: {command}")

    return "\n".join(lines) + "\n"


def report(topology: Topology,
           results: Iterable[LaunchResult],
           keypair: Optional[Keypair] = None,
           stream: Optional[TextIO] = None) -> None:
    """Print the report of a provisioned fleet to *stream* (stdout by default)."""
    stream = stream or sys.stdout
    print(format_report(topology, results, keypair), end="", file=stream)

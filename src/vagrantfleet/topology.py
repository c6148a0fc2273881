"""
Topology of a fleet: which machines exist and how each one is set up.

Everything here is derived from the machine index alone, so rendering the
same settings twice gives the same topology::

    >>> renderer = TopologyRenderer()
    >>> topology = renderer.render(3, "ubuntu/bionic64", "ssh-rsa AAAA... me@host")
    >>> [(m.hostname, m.ip_address) for m in topology.machines]
    [('vm-1', '192.168.56.11'), ('vm-2', '192.168.56.12'), ('vm-3', '192.168.56.13')]
"""

from __future__ import annotations

from dataclasses import dataclass
import ipaddress
import posixpath
import shlex
from typing import Tuple

from vagrantfleet import log
from vagrantfleet.errors import TopologyTooLargeError

#: str: the authorized_keys file of the default account of vagrant boxes
VAGRANT_AUTHORIZED_KEYS = "/home/vagrant/.ssh/authorized_keys"


@dataclass(frozen=True, slots=True)
class MachineSpec:
    """Declarative definition of one machine."""

    index: int
    hostname: str
    ip_address: str
    cpu_count: int
    memory_mb: int
    username: str
    provisioning_script: str


@dataclass(frozen=True, slots=True)
class Topology:
    """All machines of a fleet, in ascending index order."""

    base_image: str
    ssh_public_key: str
    authorized_keys_script: str
    machines: Tuple[MachineSpec, ...] = ()
    provider: str = "virtualbox"

    def __len__(self) -> int:
        return len(self.machines)

    @property
    def hostnames(self) -> Tuple[str, ...]:
        return tuple(machine.hostname for machine in self.machines)


def authorized_keys_script(public_key: str,
                           authorized_keys: str = VAGRANT_AUTHORIZED_KEYS) -> str:
    """
    Return a shell script that adds *public_key* to *authorized_keys*.

    The key is appended only when the exact line is not present yet, so
    running the script again leaves the file unchanged.
    """
    keys_file = shlex.quote(authorized_keys)
    keys_dir = shlex.quote(posixpath.dirname(authorized_keys))
    return "\n".join([
        "set -e",
        f"KEY={shlex.quote(public_key)}",
        f"mkdir -p {keys_dir}",
        f"touch {keys_file}",
        f'grep -qxF "$KEY" {keys_file} || echo "$KEY" >> {keys_file}',
        f"chmod 600 {keys_file}",
    ]) + "\n"


def user_account_script(username: str,
                        authorized_keys: str = VAGRANT_AUTHORIZED_KEYS,
                        home_root: str = "/home") -> str:
    """
    Return a shell script that creates *username* with the shared ssh keys.

    An existing account is kept, the keys are copied again.
    """
    user = shlex.quote(username)
    ssh_dir = shlex.quote(posixpath.join(home_root, username, ".ssh"))
    user_keys = shlex.quote(posixpath.join(home_root, username, ".ssh", "authorized_keys"))
    return "\n".join([
        "set -e",
        f"id -u {user} >/dev/null 2>&1 || useradd -m -s /bin/bash {user}",
        f"mkdir -p {ssh_dir}",
        f"cp {shlex.quote(authorized_keys)} {ssh_dir}/",
        f"chown -R {user}:{user} {ssh_dir}",
        f"chmod 700 {ssh_dir}",
        f"chmod 600 {user_keys}",
    ]) + "\n"


class TopologyRenderer:
    """
    Derives the machine definitions of a fleet.

    Args:
        subnet: The private network the machines are placed on.
        address_offset: Machine ``i`` gets host address ``offset + i``.
        memory_mb: Memory of every machine.
        cpus: Number of cpus of every machine.
        hostname_prefix: Machine ``i`` is named ``{hostname_prefix}{i}``.
        username_prefix: Machine ``i`` gets the account ``{username_prefix}{i}``.
        provider: The vagrant provider the machines run on.
    """

    def __init__(self,
                 subnet: str = "192.168.56.0/24",
                 address_offset: int = 10,
                 memory_mb: int = 512,
                 cpus: int = 1,
                 hostname_prefix: str = "vm-",
                 username_prefix: str = "test",
                 provider: str = "virtualbox"):
        self.network = ipaddress.ip_network(subnet, strict=False)
        self.address_offset = address_offset
        self.memory_mb = memory_mb
        self.cpus = cpus
        self.hostname_prefix = hostname_prefix
        self.username_prefix = username_prefix
        self.provider = provider
        self.logger = log

    @classmethod
    def from_config(cls, config) -> "TopologyRenderer":
        return cls(
            subnet=config.subnet,
            address_offset=config.address_offset,
            memory_mb=config.memory_mb,
            cpus=config.cpus,
            hostname_prefix=config.hostname_prefix,
            username_prefix=config.username_prefix,
            provider=config.provider,
        )

    @property
    def capacity(self) -> int:
        """The largest machine count whose addresses fit in the subnet."""
        first = int(self.network.network_address) + self.address_offset
        last_host = int(self.network.broadcast_address) - 1
        return max(last_host - first, 0)

    def address_of(self, index: int) -> str:
        return str(self.network.network_address + self.address_offset + index)

    def render(self, count: int, base_image: str, ssh_public_key: str) -> Topology:
        """
        Build the topology of *count* machines.

        Args:
            count: Number of machines, zero gives an empty topology.
            base_image: The vagrant box every machine boots from.
            ssh_public_key: The key installed for the default and the
                per machine accounts.

        Returns:
            The topology, machines in ascending index order.

        Raises:
            ValueError: If *count* is negative.
            TopologyTooLargeError: If the subnet cannot hold *count* machines.
        """
        if count < 0:
            raise ValueError(f"the machine count must be >= 0, got {count}")

        if count > self.capacity:
            raise TopologyTooLargeError(
                f"{count} machines requested but only {self.capacity} addresses "
                f"are available in {self.network} after offset {self.address_offset}")

        machines = []
        for index in range(1, count + 1):
            username = f"{self.username_prefix}{index}"
            machines.append(
                MachineSpec(
                    index=index,
                    hostname=f"{self.hostname_prefix}{index}",
                    ip_address=self.address_of(index),
                    cpu_count=self.cpus,
                    memory_mb=self.memory_mb,
                    username=username,
                    provisioning_script=user_account_script(username),
                )
            )

        self.logger.info(f"rendered a topology of {count} machines on {self.network}")

        return Topology(
            base_image=base_image,
            ssh_public_key=ssh_public_key,
            authorized_keys_script=authorized_keys_script(ssh_public_key),
            machines=tuple(machines),
            provider=self.provider,
        )

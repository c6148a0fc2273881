"""
Fleet configuration.

The configuration is a flat YAML mapping, rendered through Jinja2 before it
is parsed so that values may come from the environment::

    # fleet.yml
    vm_count: {{ env("FLEET_VM_COUNT", default="3") }}
    base_image: ubuntu/jammy64
    key_dir: ~/.ssh
    key_name: fleet_key
    memory_mb: 1024
    fail_fast: false
    status_retries: 3

Every key is optional; missing keys keep the defaults below.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import ipaddress
import os
from typing import Any, Dict, Optional

import jinja2
import yaml

from vagrantfleet import log
from vagrantfleet.errors import ConfigurationError
from vagrantfleet.utils.jinja_env import create_jinja_env

#: str: the config file picked up from the current directory when no path is given
DEFAULT_CONFIG_NAME = 'fleet.yml'


@dataclass(frozen=True, slots=True)
class FleetConfig:
    """Settings shared by every stage of a provisioning run."""

    # keypair
    key_dir: str = "~/.ssh"
    key_name: str = "test_machinekey"
    key_bits: int = 2048

    # topology
    vm_count: int = 5
    base_image: str = "ubuntu/bionic64"
    subnet: str = "192.168.56.0/24"
    address_offset: int = 10
    memory_mb: int = 512
    cpus: int = 1
    hostname_prefix: str = "vm-"
    username_prefix: str = "test"

    # engine
    workdir: str = "vagrant_machines"
    provider: str = "virtualbox"
    vagrant_cmd: str = "vagrant"

    # status polling
    fail_fast: bool = True
    status_retries: int = 0
    status_backoff: float = 1.0

    verbose: bool = False

    def __post_init__(self):
        for field in fields(self):
            value = getattr(self, field.name)
            if not _matches_type(value, field.type):
                raise ConfigurationError(
                    f"invalid value for '{field.name}': {value!r} "
                    f"(expected {field.type})"
                )

        if self.vm_count < 0:
            raise ConfigurationError(f"vm_count must be >= 0, got {self.vm_count}")
        if self.address_offset < 0:
            raise ConfigurationError(
                f"address_offset must be >= 0, got {self.address_offset}")
        if self.memory_mb <= 0 or self.cpus <= 0:
            raise ConfigurationError("memory_mb and cpus must be positive")
        if self.status_retries < 0 or self.status_backoff < 0:
            raise ConfigurationError(
                "status_retries and status_backoff must not be negative")
        if not self.key_name or os.sep in self.key_name:
            raise ConfigurationError(f"invalid key_name: {self.key_name!r}")
        if not self.hostname_prefix or not self.username_prefix:
            raise ConfigurationError(
                "hostname_prefix and username_prefix must not be empty")

        try:
            ipaddress.ip_network(self.subnet, strict=False)
        except ValueError as exc:
            raise ConfigurationError(f"invalid subnet '{self.subnet}': {exc}") from exc

    @property
    def private_key_path(self) -> str:
        return os.path.join(os.path.expanduser(self.key_dir), self.key_name)

    @property
    def workdir_path(self) -> str:
        return os.path.abspath(os.path.expanduser(self.workdir))

    def override(self, **changes: Any) -> "FleetConfig":
        """Return a copy with *changes* applied, ``None`` values are ignored."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)


_TYPES = {"str": str, "int": int, "float": (int, float), "bool": bool}


def _matches_type(value: Any, type_name: str) -> bool:
    # bool is a subclass of int, reject it for numeric fields
    if type_name in ("int", "float") and isinstance(value, bool):
        return False
    return isinstance(value, _TYPES[type_name])


def config_from_dict(data: Optional[Dict[str, Any]]) -> FleetConfig:
    """
    Build a :class:`FleetConfig` from a parsed mapping.

    Raises:
        ConfigurationError: on unknown keys or invalid values.
    """
    if data is None:
        return FleetConfig()

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"the configuration must be a mapping, got {type(data).__name__}")

    known = {field.name for field in fields(FleetConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")

    return FleetConfig(**data)


def load_config(config_path: Optional[str] = None) -> FleetConfig:
    """
    Load the fleet configuration.

    When *config_path* is ``None`` the file ``fleet.yml`` in the current
    directory is used if it exists, otherwise the defaults are returned.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file is missing, cannot be rendered or
            parsed, or holds invalid settings.
    """
    if config_path is None:
        if not os.path.isfile(DEFAULT_CONFIG_NAME):
            log.debug("no configuration file found, using the defaults")
            return FleetConfig()
        config_path = DEFAULT_CONFIG_NAME

    config_path = os.path.abspath(os.path.expanduser(config_path))
    if not os.path.isfile(config_path):
        raise ConfigurationError(f"configuration file not found: {config_path}")

    jinja_env = create_jinja_env(os.path.dirname(config_path))
    try:
        rendered = jinja_env.get_template(os.path.basename(config_path)).render()
    except (jinja2.TemplateError, ValueError) as exc:
        raise ConfigurationError(
            f"failed to render configuration {config_path}: {exc}") from exc

    try:
        data = yaml.safe_load(rendered)
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"failed to parse configuration {config_path}: {exc}") from exc

    log.info(f"loaded configuration from {config_path}")
    return config_from_dict(data)

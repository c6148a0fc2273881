"""
Writes a topology as a Vagrantfile.

The Vagrantfile is the only artifact the engine reads.  All settings are
written as literals so that the file does not depend on the environment
of the process that later runs ``vagrant``.

Next to it ``machines.yml`` records the machines that were defined, so that
later commands act on what was provisioned rather than on the current
configuration::

    base_image: ubuntu/bionic64
    provider: virtualbox
    machines:
    - index: 1
      hostname: vm-1
      ip_address: 192.168.56.11
      username: test1
      cpu_count: 1
      memory_mb: 512
"""

import os

import yaml

from vagrantfleet import log
from vagrantfleet.errors import ArtifactError
from vagrantfleet.topology import MachineSpec, Topology
from vagrantfleet.utils.io import write_file
from vagrantfleet.utils.jinja_env import create_assets_env

#: str: the file name vagrant looks for in its working directory
VAGRANTFILE_NAME = "Vagrantfile"

#: str: the file listing the machines defined in the Vagrantfile
MACHINE_LIST_NAME = "machines.yml"

TEMPLATE_NAME = "Vagrantfile.j2"

MACHINE_KEYS = ("index", "hostname", "ip_address", "username", "cpu_count", "memory_mb")


def render_vagrantfile(topology: Topology) -> str:
    """
    Return the Vagrantfile text describing *topology*.
    """
    template = create_assets_env().get_template(TEMPLATE_NAME)
    return template.render(topology=topology)


def render_machine_list(topology: Topology) -> str:
    data = {
        "base_image": topology.base_image,
        "provider": topology.provider,
        "machines": [
            {key: getattr(machine, key) for key in MACHINE_KEYS}
            for machine in topology.machines
        ],
    }
    return yaml.safe_dump(data, sort_keys=False)


def write_vagrantfile(topology: Topology, workdir: str) -> str:
    """
    Render *topology* into ``workdir/Vagrantfile`` and ``workdir/machines.yml``.

    The work directory is created if it does not exist and existing files
    are replaced.

    Returns:
        The path of the written Vagrantfile.

    Raises:
        ArtifactError: If the work directory or the files cannot be written.
    """
    workdir = os.path.expanduser(workdir)
    path = os.path.join(workdir, VAGRANTFILE_NAME)
    try:
        write_file(path, render_vagrantfile(topology))
        write_file(os.path.join(workdir, MACHINE_LIST_NAME), render_machine_list(topology))
    except OSError as exc:
        raise ArtifactError(f"cannot write the Vagrantfile in {workdir}: {exc}") from exc

    log.info(f"wrote {len(topology)} machine definitions to {path}")
    return path


def read_machine_list(workdir: str) -> Topology:
    """
    Return the topology recorded in ``workdir/machines.yml``.

    Only the names, addresses and resources are restored, the provisioning
    scripts and the public key are left empty.

    Raises:
        ArtifactError: If the file is missing or malformed.
    """
    path = os.path.join(os.path.expanduser(workdir), MACHINE_LIST_NAME)
    try:
        with open(path) as fobj:
            data = yaml.safe_load(fobj)
    except OSError as exc:
        raise ArtifactError(f"cannot read the machine list {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ArtifactError(f"failed to parse the machine list {path}: {exc}") from exc

    try:
        machines = tuple(
            MachineSpec(provisioning_script="", **{key: entry[key] for key in MACHINE_KEYS})
            for entry in data.get("machines") or []
        )
        return Topology(
            base_image=data["base_image"],
            ssh_public_key="",
            authorized_keys_script="",
            machines=machines,
            provider=data["provider"],
        )
    except (AttributeError, KeyError, TypeError) as exc:
        raise ArtifactError(f"invalid machine list {path}: {exc!r}") from exc

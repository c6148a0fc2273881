import os
from typing import List, Optional, Union

from vagrantfleet import log
from vagrantfleet.config import FleetConfig, load_config
from vagrantfleet.engine import VagrantCommand
from vagrantfleet.keys import Keypair, KeyProvisioner, read_public_key
from vagrantfleet.launcher import ClusterLauncher, LaunchResult
from vagrantfleet.report import report
from vagrantfleet.topology import Topology, TopologyRenderer
from vagrantfleet.vagrantfile import (
    MACHINE_LIST_NAME,
    VAGRANTFILE_NAME,
    read_machine_list,
    write_vagrantfile,
)


class FleetManager:
    """
    Drives a provisioning run: keys, topology, launch and report.

    The stages run strictly one after the other and each one hands its
    result to the next; any error aborts the run.
    """
    def __init__(self, config: Optional[Union[FleetConfig, str]] = None):
        """
        Args:
            config: A configuration, the path of a configuration file, or
                ``None`` for ``./fleet.yml`` / the defaults.
        """
        #: Optional[str]: the path to the configuration file if one was provided
        self.config_path: Optional[str] = None

        if isinstance(config, FleetConfig):
            self.config = config
        else:
            self.config_path = config
            self.config = load_config(config)

        self.logger = log

        self.keys = KeyProvisioner(bits=self.config.key_bits)
        self.renderer = TopologyRenderer.from_config(self.config)
        self.engine = VagrantCommand(
            self.config.workdir_path,
            vagrant_cmd=self.config.vagrant_cmd,
            verbose=self.config.verbose,
        )
        self.launcher = ClusterLauncher(
            self.engine,
            fail_fast=self.config.fail_fast,
            status_retries=self.config.status_retries,
            status_backoff=self.config.status_backoff,
        )

    @property
    def vagrantfile_path(self) -> str:
        return os.path.join(self.config.workdir_path, VAGRANTFILE_NAME)

    @property
    def machine_list_path(self) -> str:
        return os.path.join(self.config.workdir_path, MACHINE_LIST_NAME)

    def ensure_keypair(self) -> Keypair:
        return self.keys.ensure_keypair(self.config.key_dir, self.config.key_name)

    def render_topology(self, ssh_public_key: str) -> Topology:
        return self.renderer.render(
            self.config.vm_count, self.config.base_image, ssh_public_key)

    def provision(self, stream=None) -> List[LaunchResult]:
        """
        Provision the whole fleet and print the connection summary.

        Returns:
            The launch result of every machine.

        Raises:
            FleetError: The error of the first stage that failed.
        """
        keypair = self.ensure_keypair()

        topology = self.render_topology(read_public_key(keypair))
        write_vagrantfile(topology, self.config.workdir_path)

        self.logger.info("starting the virtual machines...")
        results = self.launcher.launch(topology)

        report(topology, results, keypair, stream=stream)
        return results

    def status(self, stream=None) -> List[LaunchResult]:
        """
        Query and print the state of every provisioned machine without
        starting any.

        The machines are the ones recorded by the last provision, not the
        ones the current configuration would define.

        Returns:
            The result of every machine, stopped machines are not an error.
        """
        if not os.path.isfile(self.machine_list_path):
            self.logger.warning(
                f"no machine list at {self.machine_list_path}, run 'provision' first")
            return []

        topology = read_machine_list(self.config.workdir_path)
        results = self.launcher.check(topology)

        keypair = Keypair(private_key_path=self.config.private_key_path)
        report(topology, results, keypair, stream=stream)
        return results

    def deprovision(self) -> bool:
        """
        Destroy the machines of the work directory, the keypair is kept.

        Returns:
            True if machines were destroyed, False if there was nothing to do.
        """
        if not os.path.isfile(self.vagrantfile_path):
            self.logger.warning(
                f"no Vagrantfile at {self.vagrantfile_path}, nothing to deprovision")
            return False

        self.logger.info(f"destroying the machines of {self.config.workdir_path}")
        self.engine.destroy()
        return True

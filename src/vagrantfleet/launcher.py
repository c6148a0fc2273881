from __future__ import annotations

from dataclasses import dataclass
import enum
import time
from typing import Callable, List

from vagrantfleet import log
from vagrantfleet.engine import RUNNING_STATE, VagrantCommand
from vagrantfleet.errors import MachineNotRunningError
from vagrantfleet.topology import MachineSpec, Topology

#: float: upper bound of a single wait between two status queries
MAX_BACKOFF = 60.0


class LaunchStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class LaunchResult:
    """The outcome of starting one machine."""

    machine: MachineSpec
    status: LaunchStatus
    state: str = ""

    @property
    def ok(self) -> bool:
        return self.status is LaunchStatus.RUNNING


class ClusterLauncher:
    """
    Starts every machine of a topology and checks that they came up.

    The engine is called once to start all machines in parallel, then the
    machines are queried one by one in ascending index order.

    Args:
        engine: The vagrant command runner of the work directory.
        fail_fast: Stop at the first machine that is not running instead of
            checking all of them.
        status_retries: How many times a non running machine is queried
            again before it counts as failed.
        status_backoff: Seconds to wait before the first repeated query,
            doubled for every further one.
        sleep: The function used to wait between queries.
    """

    def __init__(self,
                 engine: VagrantCommand,
                 fail_fast: bool = True,
                 status_retries: int = 0,
                 status_backoff: float = 1.0,
                 sleep: Callable[[float], None] = time.sleep):
        self.engine = engine
        self.fail_fast = fail_fast
        self.status_retries = status_retries
        self.status_backoff = status_backoff
        self.sleep = sleep
        self.logger = log

    def poll(self, machine: MachineSpec) -> LaunchResult:
        """
        Query the state of *machine*, repeating up to ``status_retries`` times.
        """
        wait = self.status_backoff
        state = ""
        for attempt in range(self.status_retries + 1):
            state = self.engine.status(machine.hostname)
            if state == RUNNING_STATE:
                self.logger.info(f"{machine.hostname} is running")
                return LaunchResult(machine, LaunchStatus.RUNNING, state)

            if attempt < self.status_retries:
                self.logger.info(
                    f"{machine.hostname} is {state}, query again in {wait}s "
                    f"({attempt + 1}/{self.status_retries})")
                self.sleep(wait)
                wait = min(wait * 2, MAX_BACKOFF)

        self.logger.warning(f"{machine.hostname} did not start correctly (state: {state})")
        return LaunchResult(machine, LaunchStatus.FAILED, state)

    def check(self, topology: Topology) -> List[LaunchResult]:
        """
        Query every machine of *topology* without starting anything.
        """
        return [self.poll(machine) for machine in topology.machines]

    def launch(self, topology: Topology) -> List[LaunchResult]:
        """
        Start all machines of *topology* and verify that they are running.

        Returns:
            One running result per machine, in index order.

        Raises:
            EngineInvocationError: If the engine fails to start the machines,
                no machine is queried then.
            MachineNotRunningError: If a machine is not running.  With
                ``fail_fast`` the machines after it are not queried and are
                reported as pending in the error's ``results``.
        """
        if not topology.machines:
            self.logger.info("the topology has no machines, nothing to start")
            return []

        self.logger.info(f"starting {len(topology)} machines in parallel")
        self.engine.up(provider=topology.provider)

        results = []
        failures = []
        for machine in topology.machines:
            result = self.poll(machine)
            results.append(result)
            if result.ok:
                continue

            failures.append(result)
            if self.fail_fast:
                skipped = topology.machines[len(results):]
                results.extend(
                    LaunchResult(other, LaunchStatus.PENDING) for other in skipped)
                raise MachineNotRunningError(
                    f"{machine.hostname} did not start correctly "
                    f"(state: {result.state})",
                    failures=failures,
                    results=results,
                )

        if failures:
            names = ", ".join(
                f"{result.machine.hostname} ({result.state})" for result in failures)
            raise MachineNotRunningError(
                f"{len(failures)} of {len(results)} machines did not start "
                f"correctly: {names}",
                failures=failures,
                results=results,
            )

        return results

"""
Exceptions raised while provisioning a fleet.

Every error is fatal: nothing in vagrantfleet catches one of these to retry
the stage that raised it.  The cli maps them to exit codes.
"""

from typing import List, Optional


class FleetError(Exception):
    """Base class of all vagrantfleet errors."""

    #: str: the pipeline stage that failed, used in the one-line diagnostic
    stage = "fleet"


class ConfigurationError(FleetError):
    """The fleet configuration file is missing, malformed or invalid."""

    stage = "config"


class KeyGenerationError(FleetError):
    """The ssh keypair could not be generated."""

    stage = "keys"


class TopologyTooLargeError(FleetError):
    """More machines were requested than the subnet has addresses for."""

    stage = "topology"


class ArtifactError(FleetError):
    """The Vagrantfile or the machine list of the work directory cannot be
    written or read back."""

    stage = "topology"


class EngineInvocationError(FleetError):
    """The engine call that starts the machines exited with an error."""

    stage = "launch"

    def __init__(self,
                 message: str,
                 return_code: Optional[int] = None,
                 stdout: str = "",
                 stderr: str = ""):
        super().__init__(message)
        self.return_code = return_code
        self.stdout = stdout
        self.stderr = stderr


class MachineNotRunningError(FleetError):
    """One or more machines are not running after the engine returned."""

    stage = "status"

    def __init__(self,
                 message: str,
                 failures: Optional[List] = None,
                 results: Optional[List] = None):
        super().__init__(message)
        #: List[LaunchResult]: the results of the machines that are not running
        self.failures = list(failures or [])

        #: List[LaunchResult]: one result per machine, machines that were
        #: never queried are pending
        self.results = list(results or [])

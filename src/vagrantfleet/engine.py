from typing import Optional

import invoke

from vagrantfleet import log
from vagrantfleet.errors import EngineInvocationError

#: str: the state vagrant reports for a booted machine
RUNNING_STATE = "running"

#: str: the state used when the status output has no state line for a machine
UNKNOWN_STATE = "unknown"


def parse_machine_state(stdout: str, machine_name: str) -> str:
    """
    Extract the state of *machine_name* from ``vagrant status --machine-readable``.

    Lines look like::

        1700000000,vm-1,provider-name,virtualbox
        1700000000,vm-1,state,running
        1700000000,vm-1,state-human-short,running

    Returns:
        The state string, or ``"unknown"`` if no state line is found.
    """
    for line in stdout.splitlines():
        parts = line.strip().split(",", 3)
        if len(parts) < 4:
            continue
        _, target, data_type, data = parts
        if target == machine_name and data_type == "state":
            return data.strip()
    return UNKNOWN_STATE


class VagrantCommand:
    """
    Runs vagrant sub-commands against one working directory.

    The working directory is handed to vagrant through ``VAGRANT_CWD`` so
    that the Vagrantfile rendered there is the one that is used.
    """
    def __init__(self,
                 workdir: str,
                 vagrant_cmd: str = "vagrant",
                 verbose: bool = False):
        """
        Args:
            workdir: The directory that holds the Vagrantfile.
            vagrant_cmd: The path to the vagrant binary.
            verbose: Whether to log every executed command.
        """
        #: str: the directory holding the Vagrantfile
        self.workdir = workdir

        #: str: the vagrant executable
        self.command_path = vagrant_cmd

        #: bool: whether to log the executed commands
        self.verbose = verbose

        self.logger = log

    def build_command(self, cmd: str, *args, **kwargs) -> str:
        """
        Build a complete vagrant command string.

        Args:
            cmd: The vagrant sub-command, e.g. up, status, destroy.
            *args: Positional arguments for the sub-command.
            **kwargs: Options, ``True`` gives ``--flag``, ``False`` and
                ``None`` are skipped, anything else gives ``--flag=value``.

        Returns:
            The command string ready for execution.
        """
        command_parts = [self.command_path, cmd]
        command_parts.extend([str(arg) for arg in args])

        for key, value in kwargs.items():
            if value is True:
                command_parts.append(f"--{key.replace('_', '-')}")
            elif value is False or value is None:
                continue
            else:
                command_parts.append(f"--{key.replace('_', '-')}={value}")

        return " ".join(command_parts)

    def execute(self, cmd: str, *args,
                hide: bool = True,
                warn: bool = False,
                **kwargs) -> invoke.runners.Result:
        """
        Execute a vagrant sub-command in the working directory.

        Args:
            cmd: The vagrant sub-command.
            *args: Positional arguments for the sub-command.
            hide: Whether to hide the command output.
            warn: Whether to return a failed result instead of raising.
            **kwargs: Options passed to :meth:`build_command`.

        Returns:
            The result of the command.

        Raises:
            EngineInvocationError: If the command fails and *warn* is False.
        """
        command = self.build_command(cmd, *args, **kwargs)

        if self.verbose:
            self.logger.info(f"executing: {command}")

        result = invoke.run(
            command,
            hide=hide,
            warn=True,
            in_stream=False,
            env={"VAGRANT_CWD": self.workdir},
        )

        if not result.ok and not warn:
            error_message = (
                f"Command failed: {command}\n"
                f"Exit code: {result.return_code}\n"
                f"Stdout: {result.stdout}\n"
                f"Stderr: {result.stderr}"
            )
            self.logger.error(error_message)
            raise EngineInvocationError(
                f"'{command}' exited with code {result.return_code}",
                return_code=result.return_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        return result

    def up(self, provider: Optional[str] = None) -> invoke.runners.Result:
        """
        Bring up every machine of the Vagrantfile in parallel.

        Blocks until vagrant returns; the output is streamed to the console.
        """
        return self.execute(
            "up",
            hide=False,
            parallel=True,
            no_color=True,
            no_tty=True,
            provider=provider,
        )

    def status(self, machine_name: str) -> str:
        """
        Return the state vagrant reports for *machine_name*.

        A failing status command is not an error here, it yields the
        ``"unknown"`` state.
        """
        result = self.execute(
            "status", machine_name, warn=True, machine_readable=True)
        if not result.ok:
            self.logger.warning(
                f"status query for {machine_name} exited with code "
                f"{result.return_code}: {result.stderr.strip()}")
            return UNKNOWN_STATE
        return parse_machine_state(result.stdout, machine_name)

    def destroy(self) -> invoke.runners.Result:
        """
        Destroy every machine of the Vagrantfile without asking.
        """
        return self.execute("destroy", hide=False, force=True)

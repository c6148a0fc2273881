from __future__ import annotations

from dataclasses import dataclass
import os
import shlex

import invoke

from vagrantfleet import log
from vagrantfleet.errors import KeyGenerationError

#: int: the smallest rsa modulus accepted for a generated key
MIN_KEY_BITS = 2048

PUBLIC_KEY_SUFFIX = ".pub"


@dataclass(frozen=True, slots=True)
class Keypair:
    """Paths of an ssh keypair, the public key sits next to the private one."""

    private_key_path: str

    @property
    def public_key_path(self) -> str:
        return self.private_key_path + PUBLIC_KEY_SUFFIX


class KeyProvisioner:
    """
    Makes sure the ssh keypair used to reach the machines exists.

    The keypair is generated once with ``ssh-keygen`` and reused by every
    later run; it is never overwritten or deleted.
    """

    def __init__(self, bits: int = MIN_KEY_BITS, keygen_cmd: str = "ssh-keygen"):
        #: int: the rsa modulus size of newly generated keys
        self.bits = bits

        #: str: the path to the ssh-keygen binary
        self.keygen_cmd = keygen_cmd

        self.logger = log

    def build_command(self, private_key_path: str) -> str:
        """
        Return the ssh-keygen command line that creates *private_key_path*.
        """
        return (
            f"{self.keygen_cmd} -t rsa -b {self.bits} "
            f"-f {shlex.quote(private_key_path)} -q -N ''"
        )

    def ensure_keypair(self, key_dir: str, key_name: str) -> Keypair:
        """
        Return the keypair at *key_dir*/*key_name*, generating it if absent.

        Args:
            key_dir: Directory holding the keys, ``~`` is expanded and the
                directory is created if needed.
            key_name: File name of the private key.

        Returns:
            The keypair paths.

        Raises:
            KeyGenerationError: If ssh-keygen fails or does not produce
                both files.
        """
        key_dir = os.path.expanduser(key_dir)
        keypair = Keypair(private_key_path=os.path.join(key_dir, key_name))

        if os.path.isfile(keypair.private_key_path):
            self.logger.info(f"ssh key already exists at {keypair.private_key_path}")
            return keypair

        if self.bits < MIN_KEY_BITS:
            raise KeyGenerationError(
                f"refusing to generate a {self.bits} bit key, "
                f"at least {MIN_KEY_BITS} bits are required")

        self.logger.info(f"generating ssh key {keypair.private_key_path}")
        try:
            os.makedirs(key_dir, mode=0o700, exist_ok=True)
        except OSError as exc:
            raise KeyGenerationError(
                f"cannot create the key directory {key_dir}: {exc}") from exc

        command = self.build_command(keypair.private_key_path)
        result = invoke.run(command, hide=True, warn=True)
        if not result.ok:
            error_message = (
                f"Command failed: {command}\n"
                f"Exit code: {result.return_code}\n"
                f"Stdout: {result.stdout}\n"
                f"Stderr: {result.stderr}"
            )
            self.logger.error(error_message)
            raise KeyGenerationError(
                f"ssh-keygen failed for {keypair.private_key_path} "
                f"(exit code {result.return_code}): {result.stderr.strip()}")

        for path in (keypair.private_key_path, keypair.public_key_path):
            if not os.path.isfile(path):
                raise KeyGenerationError(f"ssh-keygen did not create {path}")
            os.chmod(path, 0o600)

        self.logger.info(f"ssh key pair generated at {keypair.private_key_path}")
        return keypair


def read_public_key(keypair: Keypair) -> str:
    """
    Return the public key of *keypair* as a single stripped line.

    Raises:
        KeyGenerationError: If the public key is missing or empty.
    """
    try:
        with open(keypair.public_key_path) as fobj:
            public_key = fobj.read().strip()
    except OSError as exc:
        raise KeyGenerationError(
            f"cannot read the public key {keypair.public_key_path}: {exc}") from exc

    if not public_key:
        raise KeyGenerationError(f"the public key {keypair.public_key_path} is empty")

    return public_key

"""Pushes public keys to remote hosts with ssh-copy-id."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, List

from ..errors import DeploymentFailedError
from ..identity.resolver import Target
from ..utils.logging import get_logger

logger = get_logger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[bytes]"]


class RemoteDeployer:
    """Wraps the ``ssh-copy-id`` CLI.

    The call blocks with inherited stdio and no timeout so the operator can
    answer password and host-key prompts. ssh-copy-id locates the ``.pub``
    companion of the private key itself.
    """

    def __init__(self, copy_id_binary: str = "ssh-copy-id", runner: Runner | None = None) -> None:
        self.copy_id_binary = copy_id_binary
        self._runner = runner or subprocess.run

    def build_command(self, private_key_path: Path, target: Target) -> List[str]:
        return [
            self.copy_id_binary,
            "-i",
            str(private_key_path),
            "-p",
            str(target.port),
            target.spec,
        ]

    def deploy(self, private_key_path: Path, target: Target) -> None:
        command = self.build_command(private_key_path, target)
        logger.info("Deploying %s.pub to %s:%d", private_key_path, target.spec, target.port)
        logger.debug("Running %s", " ".join(command))
        try:
            process = self._runner(command, check=False)
        except OSError as exc:
            raise DeploymentFailedError(target.spec, None, str(exc)) from exc
        if process.returncode != 0:
            raise DeploymentFailedError(target.spec, process.returncode)

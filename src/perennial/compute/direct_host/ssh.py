"""Remote command execution over the system ssh client."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass

from perennial.lib.errors import RemoteCommandError
from perennial.lib.logging_config import get_logger
from perennial.models.config import DirectHostProviderConfig

logger = get_logger(__name__)


@dataclass
class SSHRunner:
    """Runs shell commands on one host with ``ssh -o BatchMode=yes``.

    Attributes:
        host: Remote host name or address
        port: SSH port
        username: Remote user
        private_key_path: Optional identity file
        connect_timeout: Seconds allowed for the SSH handshake
        command_timeout: Seconds allowed for the whole command
    """

    host: str
    port: int = 22
    username: str = "root"
    private_key_path: str | None = None
    connect_timeout: int = 10
    command_timeout: float = 300.0

    @classmethod
    def from_config(cls, config: DirectHostProviderConfig) -> SSHRunner:
        return cls(
            host=config.host,
            port=config.port,
            username=config.username,
            private_key_path=config.private_key_path,
            connect_timeout=config.connect_timeout,
            command_timeout=config.command_timeout,
        )

    def build_argv(self, command: str) -> list[str]:
        """Return the ssh argument vector for a remote command."""
        argv = [
            "ssh",
            "-o", f"ConnectTimeout={self.connect_timeout}",
            "-o", "StrictHostKeyChecking=accept-new",
            "-o", "BatchMode=yes",
        ]  # fmt: skip
        if self.port != 22:
            argv.extend(["-p", str(self.port)])
        if self.private_key_path:
            argv.extend(["-i", os.path.expanduser(self.private_key_path)])
        argv.append(f"{self.username}@{self.host}")
        argv.append(command)
        return argv

    async def run(
        self,
        command: str,
        timeout: float | None = None,
        operation: str = "remote-exec",
    ) -> str:
        """Execute a command and return its stdout.

        Args:
            command: Shell command executed by the remote login shell
            timeout: Override for ``command_timeout``
            operation: Provider operation recorded on errors

        Returns:
            Captured standard output

        Raises:
            RemoteCommandError: On a non-zero exit status or a timeout
        """
        effective_timeout = timeout or self.command_timeout
        logger.debug(f"ssh {self.username}@{self.host}: {command}")

        proc = await asyncio.create_subprocess_exec(
            *self.build_argv(command),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=effective_timeout
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise RemoteCommandError(command, None, operation=operation) from e

        stdout_str = stdout.decode(errors="replace") if stdout else ""
        stderr_str = stderr.decode(errors="replace") if stderr else ""

        if proc.returncode != 0:
            raise RemoteCommandError(
                command,
                proc.returncode,
                stderr_str or stdout_str,
                operation=operation,
            )
        return stdout_str

#!/usr/bin/env python3
"""
Remote command execution against swarm manager hosts.

Commands run through the local ``ssh`` client, invoked with list arguments
(never ``shell=True`` on this side). Payloads that must not appear on a
command line travel on the ssh process's stdin.
"""

import subprocess
from typing import List, Optional, Protocol

from .config import config, logger, DriverConfig, ExecutionMode
from .errors import RemoteCommandError


class RemoteExecutor(Protocol):
    """Runs shell commands on a named manager host."""

    def execute(
        self,
        commands: List[str],
        target: str,
        mode: ExecutionMode = ExecutionMode.BEST_EFFORT,
        stdin: Optional[str] = None,
    ) -> str:
        ...


def _summarize(command: str, limit: int = 200) -> str:
    return command if len(command) <= limit else command[:limit] + "..."


class SSHExecutor:
    """RemoteExecutor backed by the OpenSSH client."""

    def __init__(self, driver_config: Optional[DriverConfig] = None):
        self.config = driver_config or config

    def ssh_argv(self, target: str, remote_command: str) -> List[str]:
        """Build the ssh argument vector for one remote command string."""
        argv = [
            "ssh",
            "-o", f"ConnectTimeout={self.config.ssh_connect_timeout}",
            "-o", "StrictHostKeyChecking=accept-new",
            "-o", "BatchMode=yes",
            "-p", str(self.config.ssh_port),
        ]
        if self.config.ssh_identity_file:
            argv += ["-i", self.config.ssh_identity_file]
        argv += [f"{self.config.ssh_user}@{target}", remote_command]
        return argv

    def execute(
        self,
        commands: List[str],
        target: str,
        mode: ExecutionMode = ExecutionMode.BEST_EFFORT,
        stdin: Optional[str] = None,
    ) -> str:
        """
        Run commands on target, joined with ``&&`` into one session.

        BEST_EFFORT returns "" on any failure. MUST_SUCCEED raises
        RemoteCommandError on non-zero exit, timeout or OS error.
        """
        remote_command = " && ".join(c for c in commands if c.strip())
        if not remote_command:
            return ""

        # Without a payload ssh must not inherit our stdin, which carries the
        # MCP stdio stream when running as a server.
        if stdin is None:
            stdin_kwargs = {"stdin": subprocess.DEVNULL}
        else:
            stdin_kwargs = {"input": stdin}

        try:
            result = subprocess.run(
                self.ssh_argv(target, remote_command),
                capture_output=True,
                text=True,
                timeout=self.config.command_timeout,
                **stdin_kwargs
            )
        except subprocess.TimeoutExpired:
            return self._fail(
                mode, target, remote_command,
                f"Command timed out after {self.config.command_timeout}s"
            )
        except OSError as e:
            return self._fail(mode, target, remote_command, str(e))

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = stderr or (result.stdout or "").strip() or f"exit code {result.returncode}"
            return self._fail(
                mode, target, remote_command, message,
                returncode=result.returncode, stderr=stderr
            )

        return result.stdout or ""

    def _fail(
        self,
        mode: ExecutionMode,
        target: str,
        remote_command: str,
        message: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ) -> str:
        if mode is ExecutionMode.MUST_SUCCEED:
            logger.error(f"Remote command failed on {target}: {_summarize(remote_command)}: {message}")
            raise RemoteCommandError(
                message,
                command=remote_command,
                returncode=returncode,
                stderr=stderr
            )

        logger.warning(f"Remote command failed on {target} (best effort): {_summarize(remote_command)}: {message}")
        return ""


__all__ = [
    "RemoteExecutor",
    "SSHExecutor",
]

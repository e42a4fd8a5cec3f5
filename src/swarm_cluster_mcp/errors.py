"""Exception types raised by the swarm cluster driver."""

from typing import Optional


class DriverError(Exception):
    """Base class for driver errors."""


class ValidationError(DriverError, ValueError):
    """Input rejected before any remote command was issued."""


class UnknownClusterError(ValidationError):
    """Cluster id is not present in the registry."""


class RemoteCommandError(DriverError):
    """A must-succeed remote command failed."""

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        self.message = str(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Docker command failed: {self.message}")

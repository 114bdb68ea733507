"""
stackdeploy Exception Hierarchy

Every pipeline stage raises one of these; the orchestrator turns them into
a stage-labelled failure line and a non-zero exit.
"""

from typing import Optional


class StackDeployError(Exception):
    """Base exception for all stackdeploy errors."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(StackDeployError):
    """Raised when a required input is missing or invalid."""

    pass


class FilesystemError(StackDeployError):
    """Raised when key material or trust files cannot be written."""

    pass


class PrerequisiteMissingError(StackDeployError):
    """Raised when a tool needed for the run is not installed."""

    def __init__(self, tool: str, reason: Optional[str] = None):
        self.tool = tool
        message = f"'{tool}' is required but not found"
        super().__init__(message, reason)


class AuthenticationError(StackDeployError):
    """Raised on registry login, key unlock or identity failures."""

    pass


class ConnectivityError(AuthenticationError):
    """Raised when the remote identity probe fails or reports the wrong user."""

    pass


class UnreachableHostError(StackDeployError):
    """Raised when the remote host returns no host keys."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        message = f"No host keys returned by {host}:{port}"
        context = "Remote is not listening or the network is unreachable"
        super().__init__(message, context)


class DeploymentError(StackDeployError):
    """Raised when stack deploy or the status poll fails."""

    pass

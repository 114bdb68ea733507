"""
Deployment Models
"""

from dataclasses import dataclass
from pathlib import Path

from stackdeploy.constants import DEFAULT_DEPLOY_TIMEOUT


@dataclass(frozen=True)
class DeploymentRequest:
    """Stack descriptor and name to deploy, with the convergence timeout."""

    stack_file: Path
    stack_name: str
    timeout: int = DEFAULT_DEPLOY_TIMEOUT

    def __repr__(self) -> str:
        return f"DeploymentRequest(stack={self.stack_name}, file={self.stack_file})"

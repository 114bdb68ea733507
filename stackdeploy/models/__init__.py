"""
stackdeploy Domain Models

Dataclass-based models for type-safe data handling.
"""

from .results import (
    ResultStatus,
    StageResult,
    ValidationResult,
    ExecutionResult,
)
from .ssh import (
    RemoteTarget,
    KeyPair,
    SSHPaths,
    TrustStore,
)
from .deployment import DeploymentRequest

__all__ = [
    # Results
    "ResultStatus",
    "StageResult",
    "ValidationResult",
    "ExecutionResult",
    # SSH
    "RemoteTarget",
    "KeyPair",
    "SSHPaths",
    "TrustStore",
    # Deployment
    "DeploymentRequest",
]

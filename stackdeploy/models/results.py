"""
Result Models

Dataclass models for stage outcomes and command outputs.
"""

from dataclasses import dataclass, field
from typing import Optional
from enum import Enum


class ResultStatus(Enum):
    """Status of a stage result."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Tagged outcome of one pipeline stage."""

    stage: str
    status: ResultStatus
    message: str
    cause: Optional[str] = None

    @classmethod
    def success(cls, stage: str, message: str) -> "StageResult":
        return cls(stage=stage, status=ResultStatus.SUCCESS, message=message)

    @classmethod
    def skipped(cls, stage: str, message: str) -> "StageResult":
        return cls(stage=stage, status=ResultStatus.SKIPPED, message=message)

    @classmethod
    def failure(cls, stage: str, message: str, cause: Optional[str] = None) -> "StageResult":
        return cls(
            stage=stage, status=ResultStatus.FAILURE, message=message, cause=cause
        )

    @property
    def is_failure(self) -> bool:
        """Check if the stage halted the run."""
        return self.status == ResultStatus.FAILURE

    def __repr__(self) -> str:
        return f"StageResult(stage={self.stage}, status={self.status.value})"


@dataclass
class ValidationResult:
    """Result of a validation operation."""

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if validation has errors."""
        return len(self.errors) > 0

    def add_error(self, error: str) -> None:
        """Add an error to the validation result."""
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, warning: str) -> None:
        """Add a warning to the validation result."""
        self.warnings.append(warning)

    def __repr__(self) -> str:
        return f"ValidationResult(valid={self.is_valid}, errors={len(self.errors)}, warnings={len(self.warnings)})"


@dataclass
class ExecutionResult:
    """Result of an external command execution."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    command: str = ""

    @property
    def is_success(self) -> bool:
        """Check if execution succeeded."""
        return self.returncode == 0

    @property
    def is_failure(self) -> bool:
        """Check if execution failed."""
        return self.returncode != 0

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def __repr__(self) -> str:
        return f"ExecutionResult(returncode={self.returncode}, command='{self.command[:50]}...')"

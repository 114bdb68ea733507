"""stackdeploy CLI commands"""

from .deploy import deploy
from .validate import validate

__all__ = ["deploy", "validate"]

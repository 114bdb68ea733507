"""
Deploy Configuration

Immutable run configuration, assembled once from the environment with all
defaults applied here rather than in the individual stages.
"""

from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Mapping, Optional, Tuple

import yaml

from stackdeploy.constants import (
    DEBUG_OFF_VALUES,
    DEFAULT_DEPLOY_TIMEOUT,
    DEFAULT_REMOTE_PORT,
    DEFAULT_SSH_ADD_TIMEOUT,
    DEFAULT_SSH_DIR,
    DEFAULT_STACK_WAIT_SCRIPT,
)
from stackdeploy.models import (
    DeploymentRequest,
    KeyPair,
    RemoteTarget,
    SSHPaths,
    ValidationResult,
)


def is_debug(value: Optional[str]) -> bool:
    """DEBUG is on once set, to anything but "0"."""
    if value is None:
        return False
    return value.strip() not in DEBUG_OFF_VALUES


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() == "":
        return None
    return value


def _expand(value: Optional[str], default: str) -> Path:
    return Path(_blank_to_none(value) or default).expanduser()


@dataclass(frozen=True)
class DeployConfig:
    """All inputs of a deployment run."""

    remote_host: Optional[str] = None
    remote_user: Optional[str] = None
    remote_port: str = str(DEFAULT_REMOTE_PORT)
    private_key: Optional[str] = field(default=None, repr=False)
    public_key: str = field(default="", repr=False)
    private_key_password: Optional[str] = field(default=None, repr=False)
    stack_file: Optional[str] = None
    stack_name: Optional[str] = None
    deploy_timeout: str = str(DEFAULT_DEPLOY_TIMEOUT)
    registry: str = ""
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    debug: bool = False
    ssh_dir: Path = Path(DEFAULT_SSH_DIR).expanduser()
    stack_wait_script: str = DEFAULT_STACK_WAIT_SCRIPT
    ssh_add_timeout: str = str(DEFAULT_SSH_ADD_TIMEOUT)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "DeployConfig":
        """
        Build the configuration from environment variables.

        Empty values count as unset so defaults still apply, except for
        USERNAME/PASSWORD where presence alone decides registry login.

        Args:
            environ: Environment mapping (after env file export)

        Returns:
            DeployConfig instance (not yet validated)
        """
        get = environ.get
        return cls(
            remote_host=_blank_to_none(get("REMOTE_HOST")),
            remote_user=_blank_to_none(get("REMOTE_USER")),
            remote_port=_blank_to_none(get("REMOTE_PORT")) or str(DEFAULT_REMOTE_PORT),
            private_key=_blank_to_none(get("REMOTE_PRIVATE_KEY")),
            public_key=get("REMOTE_PUBLIC_KEY", ""),
            private_key_password=(
                _blank_to_none(get("REMOTE_PRIVATE_KEY_PASSWORD"))
                or _blank_to_none(get("INPUT_REMOTE_PRIVATE_KEY_PASSWORD"))
            ),
            stack_file=_blank_to_none(get("STACK_FILE")),
            stack_name=_blank_to_none(get("STACK_NAME")),
            deploy_timeout=_blank_to_none(get("DEPLOY_TIMEOUT")) or str(DEFAULT_DEPLOY_TIMEOUT),
            registry=get("REGISTRY", ""),
            username=get("USERNAME"),
            password=get("PASSWORD"),
            debug=is_debug(get("DEBUG")),
            ssh_dir=_expand(get("SSH_DIR"), DEFAULT_SSH_DIR),
            stack_wait_script=_blank_to_none(get("STACK_WAIT_SCRIPT")) or DEFAULT_STACK_WAIT_SCRIPT,
            ssh_add_timeout=_blank_to_none(get("SSH_ADD_TIMEOUT")) or str(DEFAULT_SSH_ADD_TIMEOUT),
        )

    def validate(self) -> ValidationResult:
        """
        Check required inputs in the order they are reported.

        Returns:
            ValidationResult; the first error is the one shown to the user
        """
        result = ValidationResult()

        if not self.remote_host:
            result.add_error("remote_host is required!")
        if not _is_int(self.remote_port):
            result.add_error(f"remote_port must be a number, got '{self.remote_port}'")
        elif not 0 < int(self.remote_port) < 65536:
            result.add_error(f"remote_port out of range: {self.remote_port}")
        if not self.remote_user:
            result.add_error("remote_user is required!")
        if not self.private_key:
            result.add_error("private_key is required!")

        if not self.stack_file:
            result.add_error("stack_file is required!")
        elif not Path(self.stack_file).is_file():
            result.add_error(f"{self.stack_file} does not exist.")
        else:
            error, _ = self._stack_file_check
            if error:
                result.add_error(error)

        if not self.stack_name:
            result.add_error("stack_name is required!")
        if not _is_int(self.deploy_timeout):
            result.add_error(f"deploy_timeout must be a number, got '{self.deploy_timeout}'")
        if not _is_number(self.ssh_add_timeout):
            result.add_error(f"SSH_ADD_TIMEOUT must be a number, got '{self.ssh_add_timeout}'")

        if not self.public_key:
            result.add_warning("No public key provided, installing an empty docker.pub")
        if not self.uses_default_ssh_dir:
            result.add_warning(
                f"SSH_DIR is {self.ssh_dir}: docker's ssh:// transport only reads "
                f"{DEFAULT_SSH_DIR}, so the Deploy stage will not see its host keys"
            )

        return result

    @property
    def uses_default_ssh_dir(self) -> bool:
        return self.ssh_dir == Path(DEFAULT_SSH_DIR).expanduser()

    @property
    def registry_auth_enabled(self) -> bool:
        return self.username is not None and self.password is not None

    @property
    def target(self) -> RemoteTarget:
        return RemoteTarget(
            host=self.remote_host, user=self.remote_user, port=int(self.remote_port)
        )

    @property
    def key_pair(self) -> KeyPair:
        return KeyPair(
            private_key=self.private_key,
            public_key=self.public_key,
            passphrase=self.private_key_password,
        )

    @property
    def deployment(self) -> DeploymentRequest:
        return DeploymentRequest(
            stack_file=Path(self.stack_file),
            stack_name=self.stack_name,
            timeout=int(self.deploy_timeout),
        )

    @property
    def paths(self) -> SSHPaths:
        return SSHPaths(ssh_dir=self.ssh_dir)

    @property
    def unlock_timeout(self) -> float:
        return float(self.ssh_add_timeout)

    @cached_property
    def _stack_file_check(self) -> Tuple[Optional[str], list[str]]:
        # Parsed once per config; cached_property bypasses the frozen __setattr__
        return _check_stack_file(Path(self.stack_file))

    def stack_services(self) -> list[str]:
        """Service names declared in the stack file (empty if it is invalid)."""
        _, services = self._stack_file_check
        return services


def _is_int(value: str) -> bool:
    try:
        int(value)
    except (TypeError, ValueError):
        return False
    return True


def _is_number(value: str) -> bool:
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


def _check_stack_file(path: Path) -> Tuple[Optional[str], list[str]]:
    """Return (error, service names) for a stack file."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError:
        return f"{path} is not valid UTF-8", []
    except OSError as e:
        return f"{path} is not readable: {e.strerror}", []
    except yaml.YAMLError as e:
        return f"{path} is not valid YAML: {e}", []
    if not isinstance(data, dict):
        return f"{path} is not a stack file (expected a YAML mapping)", []

    services = data.get("services") or {}
    if not isinstance(services, dict):
        return f"{path}: services must be a mapping of service names", []
    for name in services:
        if not isinstance(name, str):
            return f"{path}: service name {name!r} is not a string", []
    return None, sorted(services)

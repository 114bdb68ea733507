"""
SSH Models

Dataclass models for the remote target, key material and trust store.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from stackdeploy.constants import (
    DEFAULT_REMOTE_PORT,
    KNOWN_HOSTS_NAME,
    SSH_CONFIG_NAME,
    SSH_KEY_NAME,
)


@dataclass(frozen=True)
class RemoteTarget:
    """Remote Docker engine reached over SSH."""

    host: str
    user: str
    port: int = DEFAULT_REMOTE_PORT

    @property
    def destination(self) -> str:
        """Get SSH destination (user@host)."""
        return f"{self.user}@{self.host}"

    @property
    def docker_host(self) -> str:
        """Get DOCKER_HOST connection string."""
        return f"ssh://{self.user}@{self.host}:{self.port}"

    def __repr__(self) -> str:
        return f"RemoteTarget(host={self.host}, port={self.port}, user={self.user})"


@dataclass(frozen=True)
class KeyPair:
    """Private/public key material supplied for one run."""

    private_key: str
    public_key: str = ""
    passphrase: Optional[str] = field(default=None, repr=False)

    @property
    def is_protected(self) -> bool:
        """Check if a passphrase was supplied."""
        return bool(self.passphrase)


@dataclass(frozen=True)
class SSHPaths:
    """Fixed file layout under the SSH configuration directory."""

    ssh_dir: Path

    @property
    def private_key(self) -> Path:
        return self.ssh_dir / SSH_KEY_NAME

    @property
    def public_key(self) -> Path:
        return self.ssh_dir / f"{SSH_KEY_NAME}.pub"

    @property
    def client_config(self) -> Path:
        return self.ssh_dir / SSH_CONFIG_NAME

    @property
    def known_hosts(self) -> Path:
        return self.ssh_dir / KNOWN_HOSTS_NAME


@dataclass
class TrustStore:
    """Host key lines accepted for this run."""

    known_hosts_path: Path
    entries: list[str] = field(default_factory=list)

    @classmethod
    def from_keyscan(cls, known_hosts_path: Path, output: str) -> "TrustStore":
        entries = [
            line.strip()
            for line in output.splitlines()
            if line.strip() and not line.lstrip().startswith("#")
        ]
        return cls(known_hosts_path=known_hosts_path, entries=entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def __repr__(self) -> str:
        return f"TrustStore(path={self.known_hosts_path}, entries={len(self.entries)})"

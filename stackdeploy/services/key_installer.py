"""Key material installer: writes the SSH identity and client config to disk."""

import os
from pathlib import Path

from stackdeploy.constants import (
    PRIVATE_KEY_MODE,
    PUBLIC_KEY_MODE,
    SSH_CONFIG_MODE,
    SSH_DIR_MODE,
)
from stackdeploy.exceptions import FilesystemError
from stackdeploy.models.ssh import KeyPair, SSHPaths


def normalize_key(content: str) -> str:
    """Ensure key content ends with a newline without ever adding a second one."""
    if not content or content.endswith("\n"):
        return content
    return content + "\n"


def _write(path: Path, content: str, mode: int) -> None:
    # Created with its final mode; fchmod also covers a pre-existing file
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "w") as f:
            os.fchmod(f.fileno(), mode)
            f.write(content)
    except OSError as e:
        raise FilesystemError(f"Cannot write {path}", context=e.strerror)


class KeyInstaller:
    """Installs key material under the SSH configuration directory."""

    def __init__(self, paths: SSHPaths):
        """
        Initialize installer.

        Args:
            paths: SSH file layout
        """
        self.paths = paths

    def ensure_ssh_dir(self) -> None:
        """Create the SSH directory with owner-only access."""
        try:
            self.paths.ssh_dir.mkdir(parents=True, exist_ok=True)
            os.chmod(self.paths.ssh_dir, SSH_DIR_MODE)
        except OSError as e:
            raise FilesystemError(
                f"Cannot create {self.paths.ssh_dir}", context=e.strerror
            )

    def write_client_config(self) -> Path:
        """
        Write the SSH client config pinning the known hosts file.

        Returns:
            Path of the config file
        """
        self.ensure_ssh_dir()
        config_path = self.paths.client_config
        _write(
            config_path,
            f"UserKnownHostsFile={self.paths.known_hosts}\n",
            SSH_CONFIG_MODE,
        )
        return config_path

    def install(self, key_pair: KeyPair) -> None:
        """
        Write the private and public key with restrictive permissions.

        Args:
            key_pair: Key material for this run

        Raises:
            FilesystemError: If the directory or a key file cannot be written
        """
        self.ensure_ssh_dir()
        _write(self.paths.private_key, normalize_key(key_pair.private_key), PRIVATE_KEY_MODE)
        _write(self.paths.public_key, normalize_key(key_pair.public_key), PUBLIC_KEY_MODE)

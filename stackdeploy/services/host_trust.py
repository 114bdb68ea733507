"""Host trust: record the remote host keys in a dedicated known_hosts file."""

import os

from stackdeploy.constants import KNOWN_HOSTS_MODE
from stackdeploy.exceptions import FilesystemError, UnreachableHostError
from stackdeploy.models.ssh import RemoteTarget, SSHPaths, TrustStore
from stackdeploy.runner import CommandRunner


class HostTrustConfigurator:
    """Fetches host keys with ssh-keyscan and writes the trust store."""

    def __init__(self, runner: CommandRunner, paths: SSHPaths):
        self.runner = runner
        self.paths = paths

    def configure(self, target: RemoteTarget) -> TrustStore:
        """
        Scan the target and overwrite known_hosts with its keys.

        Args:
            target: Remote host and port to trust

        Returns:
            TrustStore with the recorded entries

        Raises:
            UnreachableHostError: If no host keys were returned
            FilesystemError: If known_hosts cannot be written
        """
        result = self.runner.run(
            ["ssh-keyscan", "-p", str(target.port), target.host]
        )

        store = TrustStore.from_keyscan(self.paths.known_hosts, result.stdout)
        if store.is_empty:
            raise UnreachableHostError(target.host, target.port)

        try:
            store.known_hosts_path.write_text(result.stdout)
            os.chmod(store.known_hosts_path, KNOWN_HOSTS_MODE)
        except OSError as e:
            raise FilesystemError(
                f"Cannot write {store.known_hosts_path}", context=e.strerror
            )

        self.runner.logger.debug(
            f"Trusted {len(store.entries)} host key(s) for {target.host}:{target.port}"
        )
        return store

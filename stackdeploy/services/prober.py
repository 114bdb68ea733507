"""Connectivity probe: run `whoami` on the remote and compare the user."""

from stackdeploy.constants import SSH_VERBOSE_FLAG
from stackdeploy.exceptions import ConnectivityError
from stackdeploy.models.ssh import RemoteTarget, SSHPaths
from stackdeploy.runner import CommandRunner


class ConnectivityProber:
    """Checks that the installed identity logs in as the expected user."""

    def __init__(self, runner: CommandRunner, paths: SSHPaths, verbose: bool = False):
        self.runner = runner
        self.paths = paths
        self.verbose = verbose

    def build_command(self, target: RemoteTarget) -> list[str]:
        cmd = ["ssh", "-F", str(self.paths.client_config), "-o", "BatchMode=yes"]
        if self.verbose:
            cmd.append(SSH_VERBOSE_FLAG)
        cmd.extend(["-p", str(target.port), target.destination, "whoami"])
        return cmd

    def probe(self, target: RemoteTarget) -> str:
        """
        Run the identity check.

        Returns:
            The remote-reported user

        Raises:
            ConnectivityError: On a non-zero exit or a user mismatch
        """
        result = self.runner.run(self.build_command(target), new_session=True)
        if result.is_failure:
            raise ConnectivityError(
                f"ssh exited with code {result.returncode}",
                context=_last_line(result.stderr),
            )

        user = result.stdout.strip()
        if user != target.user:
            raise ConnectivityError(
                f"Remote reported user '{user}', expected '{target.user}'"
            )
        return user


def _last_line(text: str):
    lines = [line for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else None

"""Container registry login."""

from typing import Optional

from stackdeploy.constants import DEFAULT_DOCKER_REGISTRY
from stackdeploy.exceptions import AuthenticationError
from stackdeploy.runner import CommandRunner


class RegistryClient:
    """Logs the Docker CLI in so `--with-registry-auth` can forward credentials."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    @staticmethod
    def display_name(registry: Optional[str]) -> str:
        return registry or DEFAULT_DOCKER_REGISTRY

    def login(self, registry: str, username: str, password: str) -> None:
        """
        Run `docker login` with the password on stdin.

        Args:
            registry: Registry host; empty means Docker Hub
            username: Registry user
            password: Registry password or token

        Raises:
            AuthenticationError: If docker login fails
        """
        self.runner.logger.add_secret(password)

        cmd = ["docker", "login"]
        if registry:
            cmd.append(registry)
        cmd.extend(["-u", username, "--password-stdin"])

        result = self.runner.run(cmd, input=password)
        if result.is_failure:
            raise AuthenticationError(
                f"docker login exited with code {result.returncode}",
                context=result.stderr.strip() or None,
            )

"""Stack deploy and status poll against the remote Docker engine."""

from stackdeploy.exceptions import DeploymentError
from stackdeploy.models.deployment import DeploymentRequest
from stackdeploy.models.ssh import RemoteTarget
from stackdeploy.runner import CommandRunner


class StackDeployer:
    """Runs `docker stack deploy` and hands convergence off to the wait script."""

    def __init__(self, runner: CommandRunner, wait_script: str):
        """
        Initialize deployer.

        Args:
            runner: CommandRunner instance
            wait_script: Polling script called as `<script> -t <timeout> <stack>`
        """
        self.runner = runner
        self.wait_script = wait_script

    def deploy(self, target: RemoteTarget, request: DeploymentRequest) -> None:
        """
        Deploy the stack on the remote engine over SSH.

        Raises:
            DeploymentError: If docker stack deploy fails
        """
        # Later docker calls (and the wait script) talk to the same engine
        self.runner.export({"DOCKER_HOST": target.docker_host})

        result = self.runner.run(
            [
                "docker",
                "stack",
                "deploy",
                "--with-registry-auth",
                "-c",
                str(request.stack_file),
                request.stack_name,
            ]
        )
        if result.is_failure:
            raise DeploymentError(
                f"docker stack deploy exited with code {result.returncode}",
                context=result.stderr.strip() or None,
            )

    def wait(self, request: DeploymentRequest) -> None:
        """
        Block until the stack converges or the wait script gives up.

        Raises:
            DeploymentError: If the script reports failure
        """
        result = self.runner.run(
            [self.wait_script, "-t", str(request.timeout), request.stack_name],
            stream=True,
        )
        if result.is_failure:
            raise DeploymentError(
                f"Stack {request.stack_name} did not converge within {request.timeout}s",
                context=f"{self.wait_script} exited with code {result.returncode}",
            )

"""
Command Runner

Runs external CLIs (ssh, ssh-keyscan, docker, ...) with a shared
environment and routes their output through the DeployLogger.
"""

import os
import shlex
import subprocess
from typing import Optional, Sequence, Mapping

from stackdeploy.exceptions import PrerequisiteMissingError
from stackdeploy.logger import DeployLogger
from stackdeploy.models.results import ExecutionResult


class CommandRunner:
    """
    Execute commands for the pipeline.

    Responsibilities:
    - Hold the run environment (env file exports, agent socket)
    - Capture output and log it, or stream it straight to the terminal
    - Turn a missing binary into PrerequisiteMissingError
    """

    def __init__(self, logger: DeployLogger, env: Optional[Mapping[str, str]] = None):
        """
        Initialize runner.

        Args:
            logger: DeployLogger instance for logging
            env: Base environment for every command (defaults to os.environ)
        """
        self.logger = logger
        self.env: dict[str, str] = dict(os.environ if env is None else env)

    def export(self, values: Mapping[str, str]) -> None:
        """Add variables to the environment of all later commands."""
        self.env.update(values)

    def run(
        self,
        args: Sequence[str],
        input: Optional[str] = None,
        stream: bool = False,
        extra_env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        new_session: bool = False,
    ) -> ExecutionResult:
        """
        Run a command.

        Args:
            args: Command argv
            input: Text written to stdin (stdin is /dev/null otherwise)
            stream: Pass output through to the terminal instead of capturing
            extra_env: Variables added for this command only
            timeout: Seconds before the command is killed
            new_session: Run without a controlling terminal so the tool cannot
                prompt on /dev/tty

        Returns:
            ExecutionResult with exit code and captured output
        """
        command = shlex.join(args)
        self.logger.log_command(command)

        env = dict(self.env)
        if extra_env:
            env.update(extra_env)

        try:
            if stream:
                result = subprocess.run(
                    list(args),
                    env=env,
                    input=input,
                    text=True,
                    stdin=None if input is not None else subprocess.DEVNULL,
                    timeout=timeout,
                    start_new_session=new_session,
                )
                return ExecutionResult(returncode=result.returncode, command=command)

            result = subprocess.run(
                list(args),
                env=env,
                input=input,
                stdin=None if input is not None else subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout,
                start_new_session=new_session,
            )
        except FileNotFoundError:
            raise PrerequisiteMissingError(args[0], f"Command: {command}")
        except subprocess.TimeoutExpired:
            self.logger.log(f"Command timed out after {timeout}s: {command}", "WARNING")
            return ExecutionResult(returncode=124, stderr="timed out", command=command)

        if result.stdout:
            self.logger.log_output(result.stdout, "stdout")
        if result.stderr:
            self.logger.log_output(result.stderr, "stderr")

        return ExecutionResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            command=command,
        )

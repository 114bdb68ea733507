"""SSH identity agent: start once per run and add keys without a passphrase."""

import re
from pathlib import Path
from typing import Dict

from stackdeploy.exceptions import AuthenticationError
from stackdeploy.runner import CommandRunner

AGENT_VAR = re.compile(r"(SSH_AUTH_SOCK|SSH_AGENT_PID)=([^;\s]+)")

# ssh-add -l: 0 = has identities, 1 = agent reachable but empty, 2 = no agent
AGENT_REACHABLE_CODES = (0, 1)

# No askpass helper, and new_session=True leaves no /dev/tty to fall back on
NON_INTERACTIVE_ENV = {"SSH_ASKPASS_REQUIRE": "never"}


def parse_agent_env(output: str) -> Dict[str, str]:
    """Extract SSH_AUTH_SOCK / SSH_AGENT_PID from `ssh-agent -s` output."""
    return dict(AGENT_VAR.findall(output))


class SSHAgent:
    """Controls the identity agent used by every later SSH operation."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def is_running(self) -> bool:
        """Check whether SSH_AUTH_SOCK points at a live agent."""
        if not self.runner.env.get("SSH_AUTH_SOCK"):
            return False
        result = self.runner.run(["ssh-add", "-l"])
        return result.returncode in AGENT_REACHABLE_CODES

    def start(self) -> Dict[str, str]:
        """
        Start ssh-agent unless one is already reachable.

        Returns:
            Agent variables exported into the runner environment

        Raises:
            AuthenticationError: If the agent cannot be started
        """
        if self.is_running():
            self.runner.logger.debug(
                f"Reusing ssh-agent at {self.runner.env['SSH_AUTH_SOCK']}"
            )
            return {"SSH_AUTH_SOCK": self.runner.env["SSH_AUTH_SOCK"]}

        result = self.runner.run(["ssh-agent", "-s"])
        agent_env = parse_agent_env(result.stdout)
        if result.is_failure or "SSH_AUTH_SOCK" not in agent_env:
            raise AuthenticationError(
                "Failed to start ssh-agent", context=result.output or None
            )

        self.runner.export(agent_env)
        self.runner.logger.debug(f"Agent pid {agent_env.get('SSH_AGENT_PID', '?')}")
        return agent_env

    def add_key(self, key_path: Path) -> None:
        """
        Add an unprotected key non-interactively.

        Raises:
            AuthenticationError: On any non-zero exit of ssh-add
        """
        result = self.runner.run(
            ["ssh-add", str(key_path)],
            extra_env=NON_INTERACTIVE_ENV,
            new_session=True,
        )
        if result.is_failure:
            raise AuthenticationError(
                f"ssh-add exited with code {result.returncode}",
                context=result.stderr.strip() or None,
            )

"""Deploy command - Full stack deployment to a remote Docker engine"""

import os
from pathlib import Path
from typing import Optional

import click

from stackdeploy.base import BaseCommand
from stackdeploy.pipeline import DeployPipeline
from stackdeploy.runner import CommandRunner


class DeployCommand(BaseCommand):
    """Runs every pipeline stage, from env file export to the status poll."""

    def execute(self) -> int:
        logger = self.init_logger("deploy")
        runner = CommandRunner(logger, env=os.environ)
        if self.verbose:
            runner.export({"DEBUG": "1"})
            logger.log("Verbose logging", "INFO")
        return DeployPipeline(runner).run()


@click.command(name="deploy")
@click.option("--debug", is_flag=True, help="Verbose output (same as DEBUG=1)")
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="LOG_DIR",
    help="Write a run log under this directory",
)
def deploy(debug: bool, log_dir: Optional[Path]):
    """
    Deploy a stack to a remote Docker engine over SSH

    All inputs are read from the environment (REMOTE_HOST, REMOTE_USER,
    REMOTE_PRIVATE_KEY, STACK_FILE, STACK_NAME, ...).

    \b
    Stages:
      env file -> input check -> registry login -> ssh config
      -> private key -> host keys -> ssh probe -> stack deploy -> wait
    """
    DeployCommand(verbose=debug, log_dir=log_dir).run()

"""Validate command - Check deployment inputs without touching SSH or the registry"""

import os
from pathlib import Path
from typing import Optional

import click

from stackdeploy.base import BaseCommand
from stackdeploy.pipeline import DeployPipeline
from stackdeploy.runner import CommandRunner


class ValidateCommand(BaseCommand):
    def execute(self) -> int:
        logger = self.init_logger("validate")
        runner = CommandRunner(logger, env=os.environ)
        if self.verbose:
            runner.export({"DEBUG": "1"})
        return DeployPipeline(runner).run(until="InputValidation")


@click.command(name="validate")
@click.option("--debug", is_flag=True, help="Verbose output (same as DEBUG=1)")
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="LOG_DIR",
    help="Write a run log under this directory",
)
def validate(debug: bool, log_dir: Optional[Path]):
    """Export ENV_FILE and validate inputs, then stop"""
    ValidateCommand(verbose=debug, log_dir=log_dir).run()

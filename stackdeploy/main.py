#!/usr/bin/env python3
"""stackdeploy CLI - Main entry point"""

import os
from pathlib import Path

import rich_click as click

from stackdeploy import __version__
from stackdeploy.commands import deploy, validate

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.MAX_WIDTH = 100

click.rich_click.STYLE_COMMAND = "bold cyan"
click.rich_click.STYLE_OPTION = "bold magenta"
click.rich_click.STYLE_SWITCH = "bold green"
click.rich_click.STYLE_HEADER_TEXT = "bold cyan"
click.rich_click.STYLE_USAGE = "bold yellow"
click.rich_click.STYLE_OPTIONS_PANEL_BORDER = "cyan"
click.rich_click.STYLE_COMMANDS_PANEL_BORDER = "cyan"


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """
    stackdeploy - Deploy a Docker stack to a remote engine over SSH.

    \b
    Container entrypoint (no subcommand runs deploy):
      stackdeploy              # Same as: stackdeploy deploy
      stackdeploy --help       # This help
    \b
    Commands:
      stackdeploy deploy       # Full run, fails fast per stage
      stackdeploy validate     # Check inputs only
    """
    if ctx.invoked_subcommand is None:
        # invoke() applies defaults only, so pick up LOG_DIR here
        log_dir = os.environ.get("LOG_DIR")
        ctx.invoke(deploy, log_dir=Path(log_dir) if log_dir else None)


cli.add_command(deploy)
cli.add_command(validate)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()

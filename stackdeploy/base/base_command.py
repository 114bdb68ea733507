"""
Base Command Class

Abstract base for stackdeploy CLI commands.
Provides logger setup and uniform error handling.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.markup import escape

from stackdeploy.logger import DeployLogger


class BaseCommand(ABC):
    """
    Abstract base command class.

    Provides:
    - Logger initialization
    - Error handling
    - Consistent exit codes
    """

    def __init__(
        self,
        verbose: bool = False,
        log_dir: Optional[Path] = None,
        console: Optional[Console] = None,
    ):
        self.verbose = verbose
        self.log_dir = log_dir
        self.console = console or Console()
        self.logger: Optional[DeployLogger] = None

    def init_logger(self, command_name: str) -> DeployLogger:
        """
        Initialize command logger.

        Args:
            command_name: Command name, used in the log file name

        Returns:
            DeployLogger instance
        """
        self.logger = DeployLogger(
            command_name,
            verbose=self.verbose,
            log_dir=self.log_dir,
            output=self.console,
        )
        return self.logger

    def print_error(self, message: str) -> None:
        """Print error message."""
        self.console.print(f"[red]✗ {escape(message)}[/red]")

    def print_dim(self, message: str) -> None:
        """Print dim message."""
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def _show_log_path(self) -> None:
        if self.logger and self.logger.log_path:
            self.print_dim(f"Logs saved to: {self.logger.log_path}")

    @abstractmethod
    def execute(self, **kwargs) -> int:
        """
        Execute command logic.

        Must be implemented by subclasses; returns the exit code.
        """
        pass

    def run(self, **kwargs) -> None:
        """
        Run command with error handling and exit with its code.

        Args:
            **kwargs: Command arguments
        """
        try:
            code = self.execute(**kwargs)
        except KeyboardInterrupt:
            self.console.print("\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            self._show_log_path()
            raise SystemExit(130)
        except SystemExit:
            raise
        except Exception as e:
            if self.logger:
                self.logger.has_errors = True
            error_type = type(e).__name__
            self.console.print(f"\n[bold red]✗ {error_type}:[/bold red] {escape(str(e))}\n")
            self._show_log_path()
            raise SystemExit(1)
        finally:
            if self.logger:
                self.logger.close()

        if code != 0:
            self._show_log_path()
        raise SystemExit(code)

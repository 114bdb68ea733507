"""
Logging system for stackdeploy
Prints one status line per stage and optionally mirrors everything to a run log file
"""

import re
from pathlib import Path
from datetime import datetime
from typing import Optional, TextIO
from rich.console import Console
from rich.markup import escape

from stackdeploy.constants import LOG_DATE_FORMAT, LOG_TIME_FORMAT

console = Console()

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
REDACTED = "********"
# Secrets shorter than this are left alone in stage lines
STAGE_SECRET_MIN_LENGTH = 4


class DeployLogger:
    """
    Manages output for a deployment run
    - Prints `<Stage>: <outcome>` lines to the console
    - Shows command output and debug diagnostics only when verbose
    - Writes all output to a log file when a log directory is configured
    - Redacts registered secrets everywhere
    """

    def __init__(
        self,
        operation: str,
        verbose: bool = False,
        log_dir: Optional[Path] = None,
        output: Optional[Console] = None,
    ):
        """
        Initialize logger

        Args:
            operation: Operation name (e.g., 'deploy', 'validate')
            verbose: If True, show debug lines and command output in console
            log_dir: Root directory for run logs; no file is written if None
            output: Console to print to (defaults to the module console)
        """
        self.operation = operation
        self.verbose = verbose
        self.console = output or console
        self.log_file: Optional[TextIO] = None
        self.log_path: Optional[Path] = None
        self.has_errors = False
        self._secrets: list[str] = []

        if log_dir is not None:
            # Structure: {log_dir}/{date}/{time}_{operation}.log
            now = datetime.now()
            run_dir = Path(log_dir) / now.strftime(LOG_DATE_FORMAT)
            run_dir.mkdir(parents=True, exist_ok=True)
            self.log_path = run_dir / f"{now.strftime(LOG_TIME_FORMAT)}_{operation}.log"
            self.log_file = open(self.log_path, "w", buffering=1)
            self._write_log_header()

    def _write_log_header(self):
        """Write log file header"""
        header = f"""
{"=" * 80}
stackdeploy Run Log
{"=" * 80}
Operation: {self.operation}
Started: {datetime.now().isoformat()}
{"=" * 80}

"""
        self.log_file.write(header)
        self.log_file.flush()

    def add_secret(self, secret: Optional[str]) -> None:
        """Register a value that must never appear in output."""
        if secret and secret not in self._secrets:
            self._secrets.append(secret)

    def redact(self, text: str, min_length: int = 1) -> str:
        for secret in self._secrets:
            if len(secret) >= min_length:
                text = text.replace(secret, REDACTED)
        return text

    def _write(self, line: str) -> None:
        if self.log_file:
            self.log_file.write(line)
            self.log_file.flush()

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file and, in verbose mode, to the console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        message = self.redact(message)
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._write(f"[{timestamp}] [{level}] {message}\n")

        if self.verbose:
            if level == "ERROR":
                self.console.print(f"[red]{escape(message)}[/red]")
            elif level == "WARNING":
                self.console.print(f"[yellow]{escape(message)}[/yellow]")
            elif level == "DEBUG":
                self.console.print(f"[dim]Debug: {escape(message)}[/dim]")
            else:
                self.console.print(escape(message))

    def debug(self, message: str):
        self.log(message, "DEBUG")

    def log_command(self, command: str):
        """Log a command being executed"""
        self.log(f"Executing: {command}", "DEBUG")

    def log_output(self, output: str, stream: str = "stdout"):
        """
        Log command output

        Always written to the log file; shown in console only when verbose.

        Args:
            output: Command output (single line or multiline)
            stream: Stream name (stdout, stderr, pty)
        """
        if not output:
            return

        clean_output = self.redact(ANSI_ESCAPE.sub("", output))

        for line in clean_output.splitlines():
            self._write(f"  [{stream}] {line}\n")

        if self.verbose:
            self.console.print(escape(clean_output.rstrip("\n")), highlight=False)

    def stage_success(self, stage: str, message: str):
        """Print the success line of a stage"""
        line = self.redact(f"{stage}: {message}", STAGE_SECRET_MIN_LENGTH)
        self._write(f"{line}\n")
        self.console.print(escape(line), highlight=False)

    def stage_failure(self, stage: str, message: str, cause: Optional[str] = None):
        """
        Print the failure line of a stage with its proximate cause

        Args:
            stage: Stage label
            message: Failure line
            cause: Underlying error, shown indented below the line
        """
        self.has_errors = True
        line = self.redact(f"{stage}: {message}", STAGE_SECRET_MIN_LENGTH)
        error_block = f"""
{"!" * 80}
{line}
"""
        if cause:
            cause = self.redact(cause)
            error_block += f"\nCause: {cause}\n"
        error_block += f"{'!' * 80}\n\n"
        self._write(error_block)

        self.console.print(f"[bold red]{escape(line)}[/bold red]", highlight=False)
        if cause:
            for cause_line in cause.splitlines():
                self.console.print(f"  [color(208)]{escape(cause_line)}[/color(208)]")

    def close(self):
        """Close log file"""
        if self.log_file:
            footer = f"""
{"=" * 80}
Completed: {datetime.now().isoformat()}
Status: {"FAILED" if self.has_errors else "SUCCESS"}
{"=" * 80}
"""
            self.log_file.write(footer)
            self.log_file.close()
            self.log_file = None

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        """Context manager exit"""
        if exc_type is not None and exc_type != SystemExit:
            self.has_errors = True
            self._write(f"Unhandled {exc_type.__name__}: {self.redact(str(exc_val))}\n")
        self.close()
        return False  # Don't suppress exceptions

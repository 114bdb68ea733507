"""
Passphrase Unlock

Loads a passphrase-protected key into the agent without a human at the
keyboard. `ssh-add` is spawned on a pseudo-terminal (it only prompts on a
tty) and its output is matched against a fixed set of markers:

    PROMPT  "Enter passphrase"  -> send passphrase, keep watching (capped)
    ADDED   "Identity added"    -> UNLOCKED
    BAD     "Bad passphrase"    -> BAD_PASSPHRASE
    deadline reached            -> TIMEOUT
    end of output               -> UNEXPECTED_CLOSE

The child is always terminated (if still alive) and reaped, and the pty
master closed, whatever the outcome.
"""

import errno
import fcntl
import os
import re
import selectors
import shutil
import subprocess
import termios
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from stackdeploy.constants import (
    DEFAULT_SSH_ADD_TIMEOUT,
    MAX_PASSPHRASE_SENDS,
    UNLOCK_KILL_GRACE,
)
from stackdeploy.exceptions import AuthenticationError, PrerequisiteMissingError
from stackdeploy.runner import CommandRunner

READ_SIZE = 1024
BUFFER_LIMIT = 4096


class UnlockOutcome(Enum):
    """State of an unlock session."""

    PENDING = "pending"
    UNLOCKED = "unlocked"
    BAD_PASSPHRASE = "bad_passphrase"
    TIMEOUT = "timeout"
    UNEXPECTED_CLOSE = "unexpected_close"


class Marker(Enum):
    PROMPT = "prompt"
    ADDED = "added"
    BAD = "bad"


# Listed in priority order; used to break ties at the same offset
MARKERS = (
    (Marker.PROMPT, re.compile(rb"Enter passphrase")),
    (Marker.ADDED, re.compile(rb"Identity added")),
    (Marker.BAD, re.compile(rb"Bad passphrase")),
)

OUTCOME_MESSAGES = {
    UnlockOutcome.UNLOCKED: "Key added successfully",
    UnlockOutcome.BAD_PASSPHRASE: "Wrong passphrase provided",
    UnlockOutcome.TIMEOUT: "Timeout waiting for password prompt",
    UnlockOutcome.UNEXPECTED_CLOSE: "SSH add failed",
}


def find_marker(buffer: bytes) -> Optional[tuple[Marker, "re.Match[bytes]"]]:
    """Return the earliest marker in the buffer, or None."""
    best = None
    for marker, pattern in MARKERS:
        match = pattern.search(buffer)
        if match and (best is None or match.start() < best[1].start()):
            best = (marker, match)
    return best


@dataclass
class UnlockSession:
    """Transient state of one ssh-add interaction."""

    process: subprocess.Popen
    master_fd: int
    passphrase: str = field(repr=False)
    outcome: UnlockOutcome = UnlockOutcome.PENDING
    reason: Optional[str] = None
    sends: int = 0
    stream_closed: bool = False
    buffer: bytearray = field(default_factory=bytearray, repr=False)

    @property
    def is_resolved(self) -> bool:
        return self.outcome is not UnlockOutcome.PENDING

    @property
    def message(self) -> str:
        return OUTCOME_MESSAGES.get(self.outcome, self.outcome.value)

    def resolve(self, outcome: UnlockOutcome, reason: Optional[str] = None) -> None:
        self.outcome = outcome
        self.reason = reason


def _set_controlling_tty() -> None:
    # Runs in the child after setsid(); makes the pty its controlling terminal
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _disable_echo(fd: int) -> None:
    # Keep the passphrase out of the transcript
    attrs = termios.tcgetattr(fd)
    attrs[3] &= ~termios.ECHO
    termios.tcsetattr(fd, termios.TCSANOW, attrs)


class PassphraseUnlocker:
    """
    Prompt-response automaton for `ssh-add`.

    Responsibilities:
    - Verify pty support and the ssh-add binary before spawning
    - Answer each passphrase prompt, at most `max_sends` times
    - Resolve exactly one outcome and never leave the child running
    """

    def __init__(
        self,
        runner: CommandRunner,
        timeout: float = DEFAULT_SSH_ADD_TIMEOUT,
        max_sends: int = MAX_PASSPHRASE_SENDS,
        command: Sequence[str] = ("ssh-add",),
    ):
        """
        Initialize unlocker.

        Args:
            runner: CommandRunner providing the environment (agent socket) and logger
            timeout: Seconds from spawn until the session times out
            max_sends: Maximum number of passphrase answers
            command: Key-add command; the key path is appended
        """
        self.runner = runner
        self.logger = runner.logger
        self.timeout = timeout
        self.max_sends = max_sends
        self.command = list(command)

    def check_prerequisites(self) -> None:
        """
        Raises:
            PrerequisiteMissingError: If pty support or the key-add binary is absent
        """
        if not hasattr(os, "openpty"):
            raise PrerequisiteMissingError("pty", "Pseudo-terminals are not supported here")
        if shutil.which(self.command[0], path=self.runner.env.get("PATH")) is None:
            raise PrerequisiteMissingError(self.command[0])

    def unlock(self, key_path: Path, passphrase: str) -> UnlockSession:
        """
        Add a protected key to the agent.

        Raises:
            AuthenticationError: For every outcome other than UNLOCKED
        """
        session = self.run(key_path, passphrase)
        if session.outcome is not UnlockOutcome.UNLOCKED:
            raise AuthenticationError(session.message, context=session.reason)
        self.logger.debug(session.message)
        return session

    def run(self, key_path: Path, passphrase: str) -> UnlockSession:
        """
        Drive one session to a terminal outcome.

        Returns:
            The resolved UnlockSession (its process is already reaped)
        """
        self.check_prerequisites()
        self.logger.add_secret(passphrase)

        session = self._spawn(key_path, passphrase)
        try:
            self._observe(session)
        finally:
            self._close(session)

        self.logger.debug(
            f"ssh-add session: {session.outcome.value} after {session.sends} passphrase send(s)"
        )
        return session

    def _spawn(self, key_path: Path, passphrase: str) -> UnlockSession:
        env = dict(self.runner.env)
        env.pop("SSH_ASKPASS", None)
        env.pop("DISPLAY", None)
        env["SSH_ASKPASS_REQUIRE"] = "never"

        args = self.command + [str(key_path)]
        self.logger.log_command(" ".join(args))

        master_fd, slave_fd = os.openpty()
        _disable_echo(slave_fd)
        try:
            process = subprocess.Popen(
                args,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                env=env,
                start_new_session=True,
                preexec_fn=_set_controlling_tty,
            )
        except FileNotFoundError:
            os.close(master_fd)
            raise PrerequisiteMissingError(self.command[0])
        except (OSError, subprocess.SubprocessError):
            os.close(master_fd)
            raise
        finally:
            os.close(slave_fd)

        return UnlockSession(process=process, master_fd=master_fd, passphrase=passphrase)

    def _observe(self, session: UnlockSession) -> None:
        deadline = time.monotonic() + self.timeout

        sel = selectors.DefaultSelector()
        sel.register(session.master_fd, selectors.EVENT_READ)
        try:
            while not session.is_resolved:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    session.resolve(
                        UnlockOutcome.TIMEOUT, f"No response from ssh-add within {self.timeout}s"
                    )
                    break

                if not sel.select(timeout=remaining):
                    continue

                chunk = self._read(session.master_fd)
                if not chunk:
                    session.stream_closed = True
                    session.resolve(
                        UnlockOutcome.UNEXPECTED_CLOSE,
                        "ssh-add closed its output without adding the identity",
                    )
                    break

                self.logger.log_output(chunk.decode(errors="replace"), "ssh-add")
                session.buffer.extend(chunk)
                self._consume(session)
        finally:
            sel.close()

    def _consume(self, session: UnlockSession) -> None:
        """Apply every marker currently in the buffer, in stream order."""
        while not session.is_resolved:
            found = find_marker(bytes(session.buffer))
            if found is None:
                if len(session.buffer) > BUFFER_LIMIT:
                    del session.buffer[:-256]
                return

            marker, match = found
            del session.buffer[: match.end()]

            if marker is Marker.ADDED:
                session.resolve(UnlockOutcome.UNLOCKED)
            elif marker is Marker.BAD:
                session.resolve(UnlockOutcome.BAD_PASSPHRASE)
            elif session.sends >= self.max_sends:
                session.resolve(
                    UnlockOutcome.UNEXPECTED_CLOSE,
                    f"Passphrase requested too many times ({session.sends} sent)",
                )
            else:
                self._send(session)

    def _send(self, session: UnlockSession) -> None:
        try:
            os.write(session.master_fd, session.passphrase.encode() + b"\r")
        except OSError as e:
            session.resolve(UnlockOutcome.UNEXPECTED_CLOSE, f"Cannot write to ssh-add: {e}")
            return
        session.sends += 1

    @staticmethod
    def _read(fd: int) -> bytes:
        try:
            return os.read(fd, READ_SIZE)
        except OSError as e:
            # Linux reports EIO on the master once the child side is closed
            if e.errno == errno.EIO:
                return b""
            raise

    def _close(self, session: UnlockSession) -> None:
        process = session.process
        try:
            # The child normally exits on its own after success or EOF
            if session.outcome is UnlockOutcome.UNLOCKED or session.stream_closed:
                try:
                    process.wait(timeout=UNLOCK_KILL_GRACE)
                except subprocess.TimeoutExpired:
                    pass

            if process.poll() is None:
                process.terminate()
                try:
                    process.wait(timeout=UNLOCK_KILL_GRACE)
                except subprocess.TimeoutExpired:
                    process.kill()
                    process.wait()
        finally:
            os.close(session.master_fd)


def log_key_diagnostics(runner: CommandRunner, key_path: Path, passphrase: str) -> None:
    """Debug-only checks on the installed key before unlocking it."""
    logger = runner.logger
    logger.add_secret(passphrase)
    logger.debug("Adding key with password")

    exists = key_path.is_file()
    logger.debug(f"Key file exists: {'yes' if exists else 'no'}")
    if not exists:
        return

    logger.debug(f"Key file permissions: {oct(key_path.stat().st_mode & 0o777)[2:]}")
    first_line = key_path.read_text().splitlines()[:1]
    valid = bool(first_line) and "BEGIN" in first_line[0]
    logger.debug(f"Key file contents check: {'valid' if valid else 'invalid'}")

    logger.debug("Testing key decryption...")
    try:
        result = runner.run(["ssh-keygen", "-y", "-f", str(key_path), "-P", passphrase])
    except PrerequisiteMissingError:
        logger.debug("ssh-keygen not available, skipping decryption test")
        return
    outcome = "successful" if result.is_success else "failed"
    logger.debug(f"Key decryption test {outcome}")

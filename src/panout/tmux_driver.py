"""Execution of resolved plans against a live tmux session."""

import logging
import os
import shlex
import subprocess
from typing import Protocol

from panout.errors import NotInTmuxError, OperationFailed
from panout.plan import ApplyLayout, CreatePane, CreateWindow, Operation, Plan, SelectWindow, SendKeys

logger = logging.getLogger(__name__)

# Timeout for all tmux subprocess calls (seconds)
_TMUX_TIMEOUT = 10

# Errors that mean a dispatched operation failed
_OPERATION_ERRORS = (subprocess.SubprocessError, OSError, LookupError, ValueError)


def is_inside_tmux() -> bool:
    """Check if we're running inside a tmux session."""
    return os.environ.get("TMUX") is not None


def _run_tmux(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    """Run a tmux subprocess command with standard timeout.

    Args:
        cmd: Command to execute.

    Returns:
        CompletedProcess result with captured text output.
    """
    logger.debug("Running: %s", shlex.join(cmd))
    return subprocess.run(cmd, check=True, timeout=_TMUX_TIMEOUT, capture_output=True, text=True)


class Driver(Protocol):
    """Anything that can carry out plan operations."""

    def execute(self, operation: Operation) -> list[str]: ...


class TmuxDriver:
    """Runs plan operations through the tmux CLI.

    Logical window 0 is the window that was active when the first operation
    ran; later windows are tracked as they are created. Logical pane numbers
    are mapped through ``list-panes`` so ``pane-base-index`` is respected.
    In dry-run mode nothing is executed and logical numbers are used as-is.
    """

    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self._windows: list[str] = []
        self._panes: dict[str, list[str]] = {}

    def execute(self, operation: Operation) -> list[str]:
        """Run one operation.

        Returns:
            List of commands that were (or would be) executed.
        """
        self._ensure_started()

        if isinstance(operation, CreateWindow):
            return self._create_window(operation)

        target = self._window_target(operation.window)
        if isinstance(operation, CreatePane):
            cmd = ["tmux", "split-window", "-t", target]
            self._panes.pop(target, None)
        elif isinstance(operation, ApplyLayout):
            cmd = ["tmux", "select-layout", "-t", target, operation.layout.tmux_name]
        elif isinstance(operation, SendKeys):
            pane_target = f"{target}.{self._pane_target(target, operation.pane)}"
            cmd = ["tmux", "send-keys", "-t", pane_target, operation.command, "Enter"]
        elif isinstance(operation, SelectWindow):
            cmd = ["tmux", "select-window", "-t", target]
        else:
            raise TypeError(f"Unknown operation: {operation!r}")

        if not self.dry_run:
            _run_tmux(cmd)
        return [shlex.join(cmd)]

    def _ensure_started(self) -> None:
        if self._windows:
            return
        if self.dry_run:
            self._windows.append("0")
            return
        if not is_inside_tmux():
            raise NotInTmuxError()
        result = _run_tmux(["tmux", "display-message", "-p", "#{window_index}"])
        self._windows.append(result.stdout.strip())

    def _create_window(self, operation: CreateWindow) -> list[str]:
        cmd = ["tmux", "new-window", "-P", "-F", "#{window_index}"]
        if operation.name:
            cmd.extend(["-n", operation.name])

        if self.dry_run:
            self._windows.append(str(operation.window))
        else:
            result = _run_tmux(cmd)
            self._windows.append(result.stdout.strip())
        return [shlex.join(cmd)]

    def _window_target(self, window: int) -> str:
        if window >= len(self._windows):
            raise LookupError(f"window {window} has not been created")
        # ":N" names a window of the current session; a bare number would be read as a pane
        return f":{self._windows[window]}"

    def _pane_target(self, window_target: str, pane: int) -> str:
        if self.dry_run:
            return str(pane)
        panes = self._panes.get(window_target)
        if panes is None:
            result = _run_tmux(["tmux", "list-panes", "-t", window_target, "-F", "#{pane_index}"])
            panes = [line.strip() for line in result.stdout.splitlines() if line.strip()]
            self._panes[window_target] = panes
        if pane >= len(panes):
            raise LookupError(f"pane {pane} does not exist in window {window_target}")
        return panes[pane]


def _failure_reason(error: Exception) -> str:
    if isinstance(error, subprocess.CalledProcessError):
        stderr = (error.stderr or "").strip() if isinstance(error.stderr, str) else ""
        return stderr or f"exit status {error.returncode}"
    return str(error)


def execute_plan(plan: Plan, driver: Driver) -> list[str]:
    """Run every operation of a plan in order, stopping at the first failure.

    Already-executed operations are not rolled back.

    Args:
        plan: The plan to execute.
        driver: Driver that carries out each operation.

    Returns:
        List of commands that were (or would be) executed.

    Raises:
        OperationFailed: With the failing operation's index and description.
    """
    commands: list[str] = []
    for index, operation in enumerate(plan):
        try:
            commands.extend(driver.execute(operation))
        except _OPERATION_ERRORS as e:
            logger.debug("Operation %d failed: %s", index, e)
            raise OperationFailed(index, operation.describe(), _failure_reason(e)) from e
    return commands

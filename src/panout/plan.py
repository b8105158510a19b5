"""Resolved plans: the ordered tmux operations for one invocation.

A plan is pure data. Building one never touches tmux, so every resolution or
planning error is raised before the first operation is dispatched. Window and
pane numbers are logical zero-based indices; the driver maps them onto the
live session.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from panout.config import Layout, ServerConfig, Workspace
from panout.errors import InvalidRequest, PaneOutOfRange
from panout.resolver import Broadcast, PaneCommand
from panout.ssh import connect_command, disconnect_command, interpolate, pane_prefix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreatePane:
    """Split the window to add one pane."""

    window: int

    def describe(self) -> str:
        return f"create pane in window {self.window}"


@dataclass(frozen=True)
class CreateWindow:
    """Open a new window; it becomes the active one."""

    window: int
    name: str | None = None

    def describe(self) -> str:
        label = f" '{self.name}'" if self.name else ""
        return f"create window {self.window}{label}"


@dataclass(frozen=True)
class SelectWindow:
    """Focus a window. Safe to repeat."""

    window: int

    def describe(self) -> str:
        return f"select window {self.window}"


@dataclass(frozen=True)
class ApplyLayout:
    """Arrange the panes of a window."""

    window: int
    layout: Layout

    def describe(self) -> str:
        return f"apply layout {self.layout.value} to window {self.window}"


@dataclass(frozen=True)
class SendKeys:
    """Type a command into a pane and press Enter."""

    window: int
    pane: int
    command: str

    def describe(self) -> str:
        return f"send {self.command!r} to window {self.window} pane {self.pane}"


Operation = CreatePane | CreateWindow | SelectWindow | ApplyLayout | SendKeys


@dataclass(frozen=True)
class Plan:
    """Ordered, reference-free operation list."""

    operations: tuple[Operation, ...]

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    def describe(self) -> list[str]:
        """One human-readable line per operation."""
        return [f"{i}: {op.describe()}" for i, op in enumerate(self.operations)]


def resolve_layout(
    override: Layout | None = None,
    bundle_layout: Layout | None = None,
    default_layout: Layout | None = None,
) -> Layout:
    """Pick a layout: CLI override > bundle > config default > tiled."""
    for candidate in (override, bundle_layout, default_layout):
        if candidate is not None:
            return candidate
    return Layout.TILED


def infer_pane_count(commands: list[PaneCommand]) -> int:
    """Smallest pane count that covers every resolved command."""
    if not commands:
        return 1
    return max(cmd.pane for cmd in commands) + 1


def _check_pane(pane: int, pane_count: int, command: str) -> None:
    if pane >= pane_count:
        raise PaneOutOfRange(pane, pane_count, command)


def _window_panes(window: int, pane_count: int, layout: Layout) -> list[Operation]:
    """Splits for ``pane_count`` panes (the active pane is the first) then one layout."""
    ops: list[Operation] = [CreatePane(window) for _ in range(pane_count - 1)]
    ops.append(ApplyLayout(window, layout))
    return ops


def plan_bundle(commands: list[PaneCommand], pane_count: int, layout: Layout, window: int = 0) -> Plan:
    """Build the plan for a resolved bundle.

    Args:
        commands: Resolved (pane, command) pairs.
        pane_count: Total panes in the window, including the active one.
        layout: Layout applied after the splits.
        window: Logical window the panes live in.

    Returns:
        Pane creation, layout, then one SendKeys per command in resolved order.

    Raises:
        PaneOutOfRange: If a command targets a pane >= pane_count.
        InvalidRequest: If pane_count is less than 1.
    """
    if pane_count < 1:
        raise InvalidRequest(f"pane count must be at least 1, got {pane_count}")
    for cmd in commands:
        _check_pane(cmd.pane, pane_count, cmd.command)

    ops = _window_panes(window, pane_count, layout)
    ops.extend(SendKeys(window, cmd.pane, cmd.command) for cmd in commands)
    logger.debug("Planned bundle: %d pane(s), %d command(s)", pane_count, len(commands))
    return Plan(tuple(ops))


def plan_workspace(
    workspace: Workspace,
    window_commands: list[list[PaneCommand | Broadcast]],
    default_layout: Layout | None = None,
) -> Plan:
    """Build the plan for a multi-window workspace.

    The first window reuses the active window. Every pane first gets the
    workspace's cd/ssh prefix, then the window's own commands: broadcast
    commands go to every pane, referenced bundles keep their own pane. Focus
    returns to the first window at the end.

    Args:
        workspace: The workspace definition.
        window_commands: Resolved commands per window (see ``Resolver.resolve_windows``).
        default_layout: Config-wide default layout.

    Raises:
        PaneOutOfRange: If a referenced bundle targets a pane the window doesn't have.
    """
    if len(window_commands) != len(workspace.windows):
        raise ValueError("window_commands must have one entry per workspace window")

    prefix = pane_prefix(workspace.host, workspace.dir)
    ops: list[Operation] = []

    for index, (window, resolved) in enumerate(zip(workspace.windows, window_commands, strict=True)):
        per_pane: list[list[str]] = [[] for _ in range(window.panes)]
        if prefix:
            for pane_cmds in per_pane:
                pane_cmds.append(prefix)

        for item in resolved:
            command = interpolate(item.command, workspace.host) if workspace.host else item.command
            if isinstance(item, Broadcast):
                for pane_cmds in per_pane:
                    pane_cmds.append(command)
            else:
                _check_pane(item.pane, window.panes, command)
                per_pane[item.pane].append(command)

        if index > 0:
            ops.append(CreateWindow(index, window.name))
        ops.extend(_window_panes(index, window.panes, resolve_layout(None, window.layout, default_layout)))
        for pane, pane_cmds in enumerate(per_pane):
            ops.extend(SendKeys(index, pane, command) for command in pane_cmds)

    ops.append(SelectWindow(0))
    logger.debug("Planned workspace: %d window(s), %d operation(s)", len(workspace.windows), len(ops))
    return Plan(tuple(ops))


def plan_server(server: ServerConfig, resolved: list[PaneCommand | Broadcast]) -> Plan:
    """Build the plan for connecting the active pane to a server.

    All resolved commands run in the one pane, after the login command.
    """
    commands = [interpolate(item.command, server.host) for item in resolved]

    ops: list[Operation] = [SendKeys(0, 0, connect_command(server.host))]
    ops.extend(SendKeys(0, 0, command) for command in commands)
    if server.disconnect:
        ops.append(SendKeys(0, 0, disconnect_command()))
    return Plan(tuple(ops))

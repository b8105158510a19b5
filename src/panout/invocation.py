"""One panout invocation: load, resolve, plan, execute.

Each invocation is a single linear pass through its phases. Every phase only
consumes the previous phase's output, and all loading, resolution and
planning errors are raised before the first tmux operation is dispatched.
"""

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from panout.config import Config, ConfigWarning, Layout, ServerConfig, Workspace, load_config
from panout.errors import ServerNotFound, WorkspaceNotFound
from panout.plan import Plan, infer_pane_count, plan_bundle, plan_server, plan_workspace, resolve_layout
from panout.references import GroupRef, parse_target
from panout.resolver import Broadcast, PaneCommand, Resolver
from panout.tmux_driver import Driver, execute_plan

logger = logging.getLogger(__name__)


class Phase(StrEnum):
    """Lifecycle of an invocation."""

    IDLE = "idle"
    LOADING = "loading"
    RESOLVING = "resolving"
    PLANNING = "planning"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


_PHASE_ORDER: list[Phase] = [
    Phase.IDLE,
    Phase.LOADING,
    Phase.RESOLVING,
    Phase.PLANNING,
    Phase.EXECUTING,
    Phase.DONE,
]


@dataclass(frozen=True)
class BundleRequest:
    """Run ``group.name`` (or every bundle of ``group.*``) in the active window."""

    target: str
    pane_count: int | None = None  # inferred from the resolved panes if None
    layout_override: Layout | None = None


@dataclass(frozen=True)
class WorkspaceRequest:
    """Build every window of a workspace."""

    name: str


@dataclass(frozen=True)
class ServerRequest:
    """Connect the active pane to a server."""

    name: str


Request = BundleRequest | WorkspaceRequest | ServerRequest


@dataclass(frozen=True)
class _ResolvedBundle:
    commands: list[PaneCommand]
    bundle_layout: Layout | None
    pane_count: int | None
    layout_override: Layout | None


@dataclass(frozen=True)
class _ResolvedWorkspace:
    workspace: Workspace
    windows: list[list[PaneCommand | Broadcast]]


@dataclass(frozen=True)
class _ResolvedServer:
    server: ServerConfig
    commands: list[PaneCommand | Broadcast]


# Output of the resolving phase, one shape per request kind
_Resolved = _ResolvedBundle | _ResolvedWorkspace | _ResolvedServer


@dataclass
class Invocation:
    """State machine for a single request.

    ``config`` may be supplied up front (the LOADING phase then only records
    it); otherwise it is read from ``config_path`` or the default location.
    """

    request: Request
    config_path: Path | None = None
    config: Config | None = None
    strict: bool = False
    phase: Phase = Phase.IDLE
    failure: str | None = None
    warnings: list[ConfigWarning] = field(default_factory=list)
    plan: Plan | None = None

    def _advance(self, phase: Phase) -> None:
        if self.phase in (Phase.DONE, Phase.FAILED):
            raise RuntimeError(f"Invocation already finished ({self.phase})")
        if _PHASE_ORDER.index(phase) <= _PHASE_ORDER.index(self.phase):
            raise RuntimeError(f"Cannot move from {self.phase} to {phase}")
        logger.debug("Invocation %s -> %s", self.phase, phase)
        self.phase = phase

    def _fail(self, error: Exception) -> None:
        logger.debug("Invocation failed during %s: %s", self.phase, error)
        self.phase = Phase.FAILED
        self.failure = str(error)

    def prepare(self) -> Plan:
        """Load, resolve and plan without touching tmux.

        Returns:
            The resolved plan.

        Raises:
            PanoutError: Any loading, resolution or planning error.
        """
        if self.phase is not Phase.IDLE:
            raise RuntimeError("An invocation can only be run once")
        try:
            self._advance(Phase.LOADING)
            config = self._load()
            self._advance(Phase.RESOLVING)
            resolved = self._resolve(config)
            self._advance(Phase.PLANNING)
            self.plan = self._plan(config, resolved)
        except Exception as e:
            self._fail(e)
            raise
        return self.plan

    def run(self, driver: Driver) -> list[str]:
        """Run the whole invocation.

        Args:
            driver: Executes the plan's operations.

        Returns:
            List of commands that were (or would be) executed.

        Raises:
            PanoutError: The first error from any phase; the invocation ends FAILED.
        """
        self.prepare()
        return self.execute(driver)

    def execute(self, driver: Driver) -> list[str]:
        """Execute the plan built by ``prepare``.

        Raises:
            OperationFailed: If an operation fails; the remaining plan is aborted.
        """
        if self.phase is not Phase.PLANNING or self.plan is None:
            raise RuntimeError(f"Cannot execute an invocation in phase {self.phase}")
        try:
            self._advance(Phase.EXECUTING)
            commands = execute_plan(self.plan, driver)
        except Exception as e:
            self._fail(e)
            raise
        self._advance(Phase.DONE)
        return commands

    def _load(self) -> Config:
        if self.config is None:
            self.config, self.warnings = load_config(self.config_path, strict=self.strict)
        return self.config

    def _resolve(self, config: Config) -> _Resolved:
        resolver = Resolver(config)
        request = self.request
        if isinstance(request, BundleRequest):
            target = parse_target(request.target)
            if isinstance(target, GroupRef):
                commands = resolver.resolve_group(target.group)
                bundle_layout = None
            else:
                commands = resolver.resolve(target.group, target.name)
                bundle = config.get_bundle(target.group, target.name)
                bundle_layout = bundle.layout if bundle is not None else None
            return _ResolvedBundle(commands, bundle_layout, request.pane_count, request.layout_override)
        if isinstance(request, WorkspaceRequest):
            workspace = config.get_workspace(request.name)
            if workspace is None:
                raise WorkspaceNotFound(request.name)
            return _ResolvedWorkspace(workspace, resolver.resolve_windows(workspace))
        server = config.get_server(request.name)
        if server is None:
            raise ServerNotFound(request.name)
        return _ResolvedServer(server, resolver.resolve_server(server))

    def _plan(self, config: Config, resolved: _Resolved) -> Plan:
        default_layout = config.defaults.layout
        if isinstance(resolved, _ResolvedBundle):
            pane_count = resolved.pane_count
            if pane_count is None:
                pane_count = infer_pane_count(resolved.commands)
            layout = resolve_layout(resolved.layout_override, resolved.bundle_layout, default_layout)
            return plan_bundle(resolved.commands, pane_count, layout)
        if isinstance(resolved, _ResolvedWorkspace):
            return plan_workspace(resolved.workspace, resolved.windows, default_layout)
        return plan_server(resolved.server, resolved.commands)

"""Bundle reference resolution.

Expands ``@group.name`` and ``@group.*`` tokens into a flat, ordered list of
(pane, command) pairs. Referenced bundles are spliced in place and keep their
own pane. Cycles are detected against the bundles currently being expanded,
so a bundle may still be reached twice along different paths.

Example::

    [dev.frontend]
    cmd = "npm run dev"
    pane = 0

    [dev.backend]
    cmd = ["cd ~/api", "cargo run"]
    pane = 1

    [dev.all]
    cmd = ["@dev.frontend", "@dev.backend"]

Resolving ``dev.all`` yields
``[(0, "npm run dev"), (1, "cd ~/api"), (1, "cargo run")]``.
"""

import logging
from collections.abc import Iterable
from typing import NamedTuple

from panout.config import Bundle, Config, ServerConfig, Workspace
from panout.errors import ReferenceCycle, ReferenceNotFound
from panout.references import BundleRef, Literal, parse_token

logger = logging.getLogger(__name__)

BundleKey = tuple[str, str]


class PaneCommand(NamedTuple):
    """A literal command bound to a logical pane index."""

    pane: int
    command: str


class Broadcast(NamedTuple):
    """A literal command meant for every pane of a window."""

    command: str


class _Resolution:
    """State for a single top-level resolution call."""

    def __init__(self, config: Config) -> None:
        self._config = config
        # Ordered set of bundles on the active expansion path
        self._in_flight: dict[BundleKey, None] = {}
        self._panes: dict[BundleKey, int] = {}
        self._next_position = 0
        self.output: list[PaneCommand | Broadcast] = []

    def bundle(self, group: str, name: str, reference: str) -> None:
        bundle = self._config.get_bundle(group, name)
        if bundle is None:
            raise ReferenceNotFound(reference)

        key = (group, name)
        if key in self._in_flight:
            path = [f"{g}.{n}" for g, n in self._in_flight]
            raise ReferenceCycle([*path, bundle.path])

        self._in_flight[key] = None
        logger.debug("Resolving %s (depth %d)", bundle.path, len(self._in_flight))
        self.walk(bundle.cmd, owner=bundle)
        del self._in_flight[key]

    def group(self, group: str, reference: str) -> None:
        bundles = self._config.get_group(group)
        if bundles is None:
            raise ReferenceNotFound(reference)
        for name in bundles:
            self.bundle(group, name, f"{group}.{name}")

    def walk(self, tokens: Iterable[str], owner: Bundle | None = None, pane: int | None = None) -> None:
        for text in tokens:
            token = parse_token(text)
            if isinstance(token, Literal):
                self._emit(token.command, owner, pane)
            elif isinstance(token, BundleRef):
                self.bundle(token.group, token.name, str(token))
            else:
                self.group(token.group, str(token))

    def _emit(self, command: str, owner: Bundle | None, pane: int | None) -> None:
        if owner is not None:
            self.output.append(PaneCommand(self._pane_for(owner), command))
        elif pane is not None:
            self.output.append(PaneCommand(pane, command))
        else:
            self.output.append(Broadcast(command))

    def _pane_for(self, bundle: Bundle) -> int:
        """Pane of a bundle: explicit, or its position among invoked bundles."""
        key = (bundle.group, bundle.name)
        assigned = self._panes.get(key)
        if assigned is not None:
            return assigned
        assigned = bundle.pane if bundle.pane is not None else self._next_position
        self._next_position += 1
        self._panes[key] = assigned
        return assigned


def _pane_commands(items: list[PaneCommand | Broadcast]) -> list[PaneCommand]:
    return [item for item in items if isinstance(item, PaneCommand)]


class Resolver:
    """Expands bundle references against an immutable config."""

    def __init__(self, config: Config) -> None:
        self._config = config

    def resolve(self, group: str, name: str) -> list[PaneCommand]:
        """Resolve a single bundle.

        Args:
            group: Bundle group name.
            name: Bundle name within the group.

        Returns:
            Flat list of (pane, command) pairs in execution order.

        Raises:
            ReferenceNotFound: If the bundle or any referenced bundle/group doesn't exist.
            ReferenceCycle: If references form a cycle.
            MalformedReference: If a token starting with ``@`` is not a valid reference.
        """
        resolution = _Resolution(self._config)
        resolution.bundle(group, name, f"{group}.{name}")
        return _pane_commands(resolution.output)

    def resolve_group(self, group: str) -> list[PaneCommand]:
        """Resolve every bundle of a group, in declaration order (``group.*``)."""
        resolution = _Resolution(self._config)
        resolution.group(group, f"{group}.*")
        return _pane_commands(resolution.output)

    def resolve_tokens(self, tokens: Iterable[str], pane: int | None = None) -> list[PaneCommand | Broadcast]:
        """Resolve an anonymous token list (window or server commands).

        Literal tokens are bound to ``pane``, or returned as Broadcast when
        ``pane`` is None. Referenced bundles keep their own panes.
        """
        resolution = _Resolution(self._config)
        resolution.walk(tokens, pane=pane)
        return resolution.output

    def resolve_windows(self, workspace: Workspace) -> list[list[PaneCommand | Broadcast]]:
        """Resolve each window's commands; literal tokens become Broadcast."""
        return [self.resolve_tokens(window.cmd or ()) for window in workspace.windows]

    def resolve_server(self, server: ServerConfig) -> list[PaneCommand | Broadcast]:
        """Resolve a server's commands, all bound to the connected pane."""
        return self.resolve_tokens(server.cmd or (), pane=0)

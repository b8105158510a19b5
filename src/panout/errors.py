"""Custom exceptions for panout."""

from pathlib import Path


class PanoutError(Exception):
    """Base exception for panout errors."""

    pass


class ConfigNotFoundError(PanoutError):
    """Config file does not exist at the expected path."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Config file not found: {path}")


class ConfigShapeError(PanoutError):
    """A bundle, workspace, server or defaults entry is malformed."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}" if path else message)


class ReferenceNotFound(PanoutError):
    """A `@group.name` or `@group.*` reference points at nothing."""

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"Reference not found: {reference}")


class ReferenceCycle(PanoutError):
    """Bundle references form a cycle (a -> b -> a)."""

    def __init__(self, path: list[str]) -> None:
        self.path = path
        super().__init__(f"Circular reference detected: {' -> '.join(path)}")


class MalformedReference(PanoutError):
    """Token starts with `@` but is not `@group.name` or `@group.*`."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Invalid bundle reference: {token!r} (expected @group.name or @group.*)")


class PaneOutOfRange(PanoutError):
    """A resolved command targets a pane that will never be created."""

    def __init__(self, pane: int, pane_count: int, command: str) -> None:
        self.pane = pane
        self.pane_count = pane_count
        self.command = command
        super().__init__(f"Command {command!r} targets pane {pane}, but only {pane_count} pane(s) requested")


class InvalidRequest(PanoutError):
    """The request itself is unusable, e.g. fewer than one pane."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid request: {message}")


class WorkspaceNotFound(PanoutError):
    """Requested workspace does not exist in config."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Workspace not found: {name}")


class ServerNotFound(PanoutError):
    """Requested server does not exist in config."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Server not found: {name}")


class NotInTmuxError(PanoutError):
    """Plan execution was requested outside of a tmux session."""

    def __init__(self) -> None:
        super().__init__("Not running inside tmux")


class OperationFailed(PanoutError):
    """A tmux operation reported failure; the rest of the plan was aborted."""

    def __init__(self, index: int, description: str, reason: str) -> None:
        self.index = index
        self.description = description
        self.reason = reason
        super().__init__(f"Operation {index} ({description}) failed: {reason}")

"""Configuration model and loading for panout.

The config file is TOML with a small set of reserved top-level keys
(``defaults``, ``servers``, ``workspaces``). Every other top-level key is a
bundle group and every sub-table under it is a bundle::

    [defaults]
    layout = "tiled"

    [dev.frontend]
    cmd = "npm run dev"
    pane = 0

    [dev.backend]
    cmd = ["cd ~/api", "cargo run"]
    pane = 1

    [workspaces.myproject]
    host = "user@server"
    dir = "~/src/project"
    windows = [{ panes = 2, layout = "vertical" }, { panes = 4 }]
"""

import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictBool, StrictInt, TypeAdapter, ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from panout.errors import ConfigNotFoundError, ConfigShapeError
from panout.xdg_paths import ensure_config_dir, get_config_file_path

logger = logging.getLogger(__name__)


class Layout(StrEnum):
    """Pane layouts understood by panout."""

    TILED = "tiled"  # spread evenly in both directions
    VERTICAL = "vertical"  # side-by-side panes
    HORIZONTAL = "horizontal"  # stacked panes

    @property
    def tmux_name(self) -> str:
        """Name passed to ``tmux select-layout``."""
        return _TMUX_LAYOUT_NAMES[self]


_TMUX_LAYOUT_NAMES: dict[Layout, str] = {
    Layout.TILED: "tiled",
    Layout.VERTICAL: "even-horizontal",
    Layout.HORIZONTAL: "even-vertical",
}


def _normalize_cmd(value: object) -> object:
    """Accept ``cmd = "x"`` as shorthand for ``cmd = ["x"]``."""
    if isinstance(value, str):
        return (value,)
    return value


# Ordered, non-empty command tokens (literals or @references)
CommandTokens = Annotated[tuple[str, ...], BeforeValidator(_normalize_cmd), Field(min_length=1)]


class _ConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class Defaults(_ConfigModel):
    """Global defaults applied when nothing more specific is set."""

    layout: Layout | None = None


class Bundle(_ConfigModel):
    """A named set of commands targeting one pane."""

    group: str
    name: str
    cmd: CommandTokens
    pane: StrictInt | None = Field(default=None, ge=0)
    role: str | None = None
    layout: Layout | None = None

    @property
    def path(self) -> str:
        """Dotted ``group.name`` identifier."""
        return f"{self.group}.{self.name}"


class ServerConfig(_ConfigModel):
    """A remote host plus commands to run after connecting."""

    host: str = Field(min_length=1)
    disconnect: StrictBool = False
    cmd: CommandTokens | None = None


class WindowDef(_ConfigModel):
    """One window of a workspace."""

    panes: StrictInt = Field(ge=1)
    layout: Layout | None = None
    name: str | None = None
    cmd: CommandTokens | None = None


class Workspace(_ConfigModel):
    """Ordered windows sharing an optional directory and host."""

    host: str | None = None
    dir: str | None = None
    windows: tuple[WindowDef, ...] = Field(min_length=1)


@dataclass
class ConfigWarning:
    """A config validation warning."""

    file: str
    field_name: str
    message: str
    value: object = field(default=None, repr=False)


@dataclass(frozen=True)
class ConfigListing:
    """Read-only projection of a config for listing, in declaration order."""

    groups: Mapping[str, tuple[str, ...]]
    workspaces: tuple[str, ...]
    servers: tuple[str, ...]

    @property
    def bundle_paths(self) -> list[str]:
        """All bundles as ``group.name``."""
        return [f"{group}.{name}" for group, names in self.groups.items() for name in names]


class Config(_ConfigModel):
    """Fully decoded panout configuration."""

    defaults: Defaults = Defaults()
    servers: Mapping[str, ServerConfig] = {}
    workspaces: Mapping[str, Workspace] = {}
    groups: Mapping[str, Mapping[str, Bundle]] = {}

    def get_group(self, group: str) -> Mapping[str, Bundle] | None:
        """Get all bundles of a group, in declaration order."""
        return self.groups.get(group)

    def get_bundle(self, group: str, name: str) -> Bundle | None:
        """Look up a bundle by group and name."""
        bundles = self.groups.get(group)
        if bundles is None:
            return None
        return bundles.get(name)

    def get_bundle_path(self, path: str) -> Bundle | None:
        """Look up a bundle by its dotted ``group.name`` path."""
        group, dot, name = path.partition(".")
        if not dot:
            return None
        return self.get_bundle(group, name)

    def get_workspace(self, name: str) -> Workspace | None:
        """Get a workspace by name."""
        return self.workspaces.get(name)

    def get_server(self, name: str) -> ServerConfig | None:
        """Get a server by name."""
        return self.servers.get(name)

    def listing(self) -> ConfigListing:
        """Project the config into names for display."""
        return ConfigListing(
            groups=MappingProxyType({group: tuple(bundles) for group, bundles in self.groups.items()}),
            workspaces=tuple(self.workspaces),
            servers=tuple(self.servers),
        )

    def to_data(self) -> dict[str, Any]:
        """Dump back to the on-disk key layout (bundle groups at top level)."""
        data: dict[str, Any] = {}
        defaults = self.defaults.model_dump(mode="json", exclude_none=True)
        if defaults:
            data["defaults"] = defaults
        for group, bundles in self.groups.items():
            data[group] = {
                name: bundle.model_dump(mode="json", exclude_none=True, exclude={"group", "name"})
                for name, bundle in bundles.items()
            }
        if self.workspaces:
            data["workspaces"] = {
                name: ws.model_dump(mode="json", exclude_none=True) for name, ws in self.workspaces.items()
            }
        if self.servers:
            data["servers"] = {
                name: server.model_dump(mode="json", exclude_none=True) for name, server in self.servers.items()
            }
        return data


# Reserved top-level keys and the Config field each one decodes into.
# Everything else at the top level is a bundle group.
RESERVED_KEYS: dict[str, str] = {
    "defaults": "defaults",
    "servers": "servers",
    "workspaces": "workspaces",
    "workspace": "workspaces",
}

_RESERVED_ADAPTERS: dict[str, TypeAdapter[Any]] = {
    "defaults": TypeAdapter(Defaults),
    "servers": TypeAdapter(dict[str, ServerConfig]),
    "workspaces": TypeAdapter(dict[str, Workspace]),
}


def _shape_error(error: ValidationError, prefix: str) -> ConfigShapeError:
    """Convert the first pydantic error into a ConfigShapeError with a dotted path."""
    first = error.errors()[0]
    parts = [prefix, *(str(loc) for loc in first["loc"])]
    return ConfigShapeError(".".join(p for p in parts if p), first["msg"])


def _parse_group(group: str, value: object) -> dict[str, Bundle]:
    """Decode one bundle group, keeping declaration order."""
    if not isinstance(value, Mapping):
        raise ConfigShapeError(group, "bundle group must be a table of bundles")

    bundles: dict[str, Bundle] = {}
    for name, entry in value.items():
        if not isinstance(entry, Mapping):
            raise ConfigShapeError(f"{group}.{name}", "bundle must be a table with a 'cmd' field")
        try:
            bundles[name] = Bundle.model_validate({**entry, "group": group, "name": name})
        except ValidationError as e:
            raise _shape_error(e, f"{group}.{name}") from None
    return bundles


def _check_pane_collisions(
    groups: dict[str, dict[str, Bundle]],
    source: str,
    strict: bool,
) -> list[ConfigWarning]:
    """Report bundles of one group that claim the same explicit pane.

    Non-strict mode keeps last-write-wins: both bundles' commands are typed
    into the shared pane in plan order.
    """
    warnings: list[ConfigWarning] = []
    for group, bundles in groups.items():
        claimed: dict[int, str] = {}
        for name, bundle in bundles.items():
            if bundle.pane is None:
                continue
            owner = claimed.get(bundle.pane)
            if owner is not None:
                message = f"pane {bundle.pane} is already claimed by {group}.{owner}"
                if strict:
                    raise ConfigShapeError(f"{group}.{name}.pane", message)
                warnings.append(
                    ConfigWarning(
                        file=source,
                        field_name=f"{group}.{name}.pane",
                        message=f"{message}; commands for both will be sent to the same pane",
                        value=bundle.pane,
                    )
                )
            claimed[bundle.pane] = name
    return warnings


def parse_config(
    data: Mapping[str, object],
    source: str = "<config>",
    strict: bool = False,
) -> tuple[Config, list[ConfigWarning]]:
    """Decode parsed TOML data into a Config.

    Reserved keys are decoded first, then every remaining key is decoded as a
    bundle group.

    Args:
        data: Parsed TOML key/value tree.
        source: Label used in warnings (usually the file path).
        strict: Reject pane collisions instead of warning about them.

    Returns:
        Tuple of (Config, list of ConfigWarnings).

    Raises:
        ConfigShapeError: If any entry is malformed.
    """
    reserved: dict[str, Any] = {}
    for key, value in data.items():
        field_name = RESERVED_KEYS.get(key)
        if field_name is None:
            continue
        if field_name in reserved:
            raise ConfigShapeError(key, f"duplicates '{field_name}'; use only one of them")
        try:
            reserved[field_name] = _RESERVED_ADAPTERS[field_name].validate_python(value)
        except ValidationError as e:
            raise _shape_error(e, key) from None

    groups: dict[str, dict[str, Bundle]] = {}
    for key, value in data.items():
        if key in RESERVED_KEYS:
            continue
        groups[key] = _parse_group(key, value)

    warnings = _check_pane_collisions(groups, source, strict)
    config = Config(groups=groups, **reserved)
    logger.debug(
        "Parsed config from %s: %d group(s), %d workspace(s), %d server(s)",
        source,
        len(config.groups),
        len(config.workspaces),
        len(config.servers),
    )
    return config, warnings


def load_config(config_path: Path | None = None, strict: bool = False) -> tuple[Config, list[ConfigWarning]]:
    """Read and decode a TOML config file.

    Args:
        config_path: Optional path to config file. Uses default if None.
        strict: Reject pane collisions instead of warning about them.

    Returns:
        Tuple of (Config, list of ConfigWarnings).

    Raises:
        ConfigNotFoundError: If the file doesn't exist.
        ConfigShapeError: If the file can't be read, isn't valid TOML, or is malformed.
    """
    path = config_path or get_config_file_path()
    if not path.exists():
        raise ConfigNotFoundError(path)

    logger.info("Loading config from %s", path)
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigShapeError("(file)", f"TOML parse error in {path}: {e}") from None
    except OSError as e:
        raise ConfigShapeError("(file)", f"File read error in {path}: {e}") from None

    return parse_config(data, source=str(path), strict=strict)


def display_config_warnings(warnings: list[ConfigWarning], console: Console) -> None:
    """Display config warnings using Rich formatting.

    Args:
        warnings: List of warnings to display.
        console: Rich console to output to.
    """
    if not warnings:
        return

    text = Text()
    for i, warning in enumerate(warnings):
        if i > 0:
            text.append("\n")
        text.append(f"  {warning.file}", style="dim")
        text.append(": ", style="dim")
        text.append(warning.field_name, style="bold")
        text.append(f" - {warning.message}", style="yellow")
        if warning.value is not None:
            text.append(f" (got: {warning.value!r})", style="dim")

    console.print(Panel(text, title="[yellow]Config Warnings[/]", border_style="yellow"))


SAMPLE_CONFIG = """\
# panout configuration
#
# Top-level keys other than [defaults], [servers] and [workspaces] are bundle
# groups. Run a bundle with: panout run -b dev.all

[defaults]
layout = "tiled"  # tiled | vertical | horizontal

[dev.frontend]
cmd = "npm run dev"
pane = 0

[dev.backend]
cmd = ["cd ~/api", "cargo run"]
pane = 1

[dev.all]
cmd = ["@dev.frontend", "@dev.backend"]

# [workspaces.myproject]
# host = "user@server"
# dir = "~/src/myproject"
# windows = [
#     { panes = 2, layout = "vertical" },
#     { panes = 4, name = "logs" },
# ]

# [servers.prod]
# host = "admin@192.168.1.100"
# disconnect = true
# cmd = "cd /home/{user} && tail -f app.log"
"""


def write_sample_config(config_path: Path | None = None) -> Path:
    """Write the sample config file.

    Args:
        config_path: Optional path to config file. Uses default if None.

    Returns:
        The path that was written.
    """
    if config_path is None:
        path = ensure_config_dir()
    else:
        path = config_path
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    return path

"""CLI entry point for panout."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from panout import __version__
from panout.config import Layout, display_config_warnings, load_config, write_sample_config
from panout.errors import PanoutError
from panout.invocation import BundleRequest, Invocation, Request, ServerRequest, WorkspaceRequest
from panout.tmux_driver import TmuxDriver
from panout.xdg_paths import get_config_file_path

app = typer.Typer(
    name="panout",
    help="Tmux pane orchestrator - create panes and windows from TOML bundles and workspaces.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"panout {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: int) -> None:
    """Route log records to stderr through Rich."""
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, show_time=False)],
        force=True,
    )


def _fail(error: PanoutError) -> typer.Exit:
    err_console.print(f"[red]Error:[/] {escape(str(error))}")
    return typer.Exit(1)


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity (-v info, -vv debug)."),
    ] = 0,
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version."),
    ] = None,
) -> None:
    """Create tmux panes and windows from TOML configuration."""
    _configure_logging(verbose)


@app.command()
def run(
    bundle: Annotated[
        str | None,
        typer.Option("--bundle", "-b", metavar="GROUP.NAME", help="Bundle to run (group.name or group.*)."),
    ] = None,
    workspace: Annotated[
        str | None,
        typer.Option("--workspace", "-w", metavar="NAME", help="Workspace to build (creates windows)."),
    ] = None,
    server: Annotated[
        str | None,
        typer.Option("--server", "-s", metavar="NAME", help="Server to connect the current pane to."),
    ] = None,
    num: Annotated[
        int | None,
        typer.Option("--num", "-n", min=1, help="Number of panes (default: enough for the bundle's panes)."),
    ] = None,
    layout: Annotated[
        Layout | None,
        typer.Option("--layout", "-l", help="Layout override for bundles."),
    ] = None,
    vertical: Annotated[
        bool,
        typer.Option("--vertical", "-V", help="Vertical split (panes side by side)."),
    ] = False,
    horizontal: Annotated[
        bool,
        typer.Option("--horizontal", "-H", help="Horizontal split (panes stacked)."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Preview commands without executing."),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Reject configs with pane collisions instead of warning."),
    ] = False,
) -> None:
    """Run a bundle, workspace or server."""
    selected = [value for value in (bundle, workspace, server) if value is not None]
    if len(selected) != 1:
        err_console.print("[red]Error:[/] Specify exactly one of --bundle, --workspace or --server.")
        raise typer.Exit(1)
    if vertical and horizontal:
        err_console.print("[red]Error:[/] --vertical and --horizontal are mutually exclusive.")
        raise typer.Exit(1)

    layout_override = layout
    if vertical:
        layout_override = Layout.VERTICAL
    elif horizontal:
        layout_override = Layout.HORIZONTAL

    request: Request
    if bundle is not None:
        request = BundleRequest(bundle, pane_count=num, layout_override=layout_override)
    elif workspace is not None:
        request = WorkspaceRequest(workspace)
    else:
        request = ServerRequest(server or "")

    invocation = Invocation(request, config_path=config_path, strict=strict)
    try:
        invocation.prepare()
        display_config_warnings(invocation.warnings, err_console)
        commands = invocation.execute(TmuxDriver(dry_run=dry_run))
    except PanoutError as e:
        raise _fail(e) from None

    if dry_run:
        console.print("[yellow]Commands that would be executed:[/]")
        for cmd in commands:
            console.print(f"  {escape(cmd)}")
        console.print("[dim]Note: Actual execution maps windows and panes to live tmux indices.[/]")


@app.command("list")
def list_cmd(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
) -> None:
    """List bundles, workspaces and servers."""
    try:
        config, warnings = load_config(config_path)
    except PanoutError as e:
        raise _fail(e) from None
    display_config_warnings(warnings, err_console)

    listing = config.listing()
    if listing.groups:
        table = Table(title="Bundles")
        table.add_column("Bundle", style="cyan")
        table.add_column("Pane", style="dim")
        table.add_column("Commands")
        for group, names in listing.groups.items():
            for name in names:
                entry = config.get_bundle(group, name)
                if entry is None:
                    continue
                pane = "auto" if entry.pane is None else str(entry.pane)
                table.add_row(f"{group}.{name}", pane, escape("; ".join(entry.cmd)))
        console.print(table)

    if listing.workspaces:
        table = Table(title="Workspaces")
        table.add_column("Workspace", style="cyan")
        table.add_column("Windows", style="dim")
        table.add_column("Host")
        for name in listing.workspaces:
            ws = config.get_workspace(name)
            if ws is None:
                continue
            table.add_row(name, str(len(ws.windows)), ws.host or "")
        console.print(table)

    if listing.servers:
        table = Table(title="Servers")
        table.add_column("Server", style="cyan")
        table.add_column("Host")
        for name in listing.servers:
            srv = config.get_server(name)
            table.add_row(name, srv.host if srv is not None else "")
        console.print(table)

    if not (listing.groups or listing.workspaces or listing.servers):
        console.print("[yellow]No bundles, workspaces or servers defined.[/]")


@app.command()
def init_config(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
) -> None:
    """Create a sample configuration file."""
    config_file = config_path or get_config_file_path()

    if config_file.exists():
        err_console.print(f"[yellow]Config file already exists:[/] {config_file}")
        raise typer.Exit(1)

    written = write_sample_config(config_file)
    console.print(f"[green]✓[/] Created config file: {written}")


config_app = typer.Typer(
    name="config",
    help="Configuration management commands.",
)
app.add_typer(config_app, name="config")


@config_app.command("validate")
def config_validate(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
) -> None:
    """Validate the config file, treating pane collisions as errors."""
    try:
        load_config(config_path, strict=True)
    except PanoutError as e:
        raise _fail(e) from None

    console.print("[green]✓[/] Config file is valid.")


@config_app.command("show")
def config_show(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
) -> None:
    """Show the normalized configuration."""
    import yaml

    try:
        config, warnings = load_config(config_path)
    except PanoutError as e:
        raise _fail(e) from None

    display_config_warnings(warnings, err_console)
    console.print(escape(yaml.dump(config.to_data(), default_flow_style=False, sort_keys=False)))


if __name__ == "__main__":
    app()

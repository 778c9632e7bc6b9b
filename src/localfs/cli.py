"""
LocalFS CLI - mount local directories and inspect them through virtual addresses.

Usage:
    localfs --help
    localfs mount ~/projects/demo
    localfs hosts
    localfs ls localfs://h0/
    localfs resolve localfs://h0/src/main.py
    localfs watch localfs://h0/
"""

import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import NoReturn, Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import LocalFsConfig
from .events import FileChangeEvent
from .exceptions import LocalFsError
from .fileops import FileType
from .service import LocalFsService

console = Console()
err_console = Console(stderr=True)

_EVENT_STYLES = {
    "created": "green",
    "changed": "yellow",
    "deleted": "red",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _fail(error: Exception) -> NoReturn:
    err_console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    if isinstance(error, LocalFsError) and error.suggestion:
        err_console.print(f"[dim]{escape(error.suggestion)}[/dim]")
    sys.exit(1)


def _service(ctx: click.Context) -> LocalFsService:
    return LocalFsService(ctx.obj)


@click.group()
@click.version_option(package_name="localfs")
@click.option(
    "--state",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Host registry state file (default: $LOCALFS_STATE_PATH or ~/.localfs/state.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, state: Optional[Path], verbose: bool):
    """LocalFS - local directories behind stable virtual addresses.

    Mounted directories are remembered across runs, so an address such as
    localfs://h0/src/main.py keeps pointing at the same file.
    """
    load_dotenv()
    _configure_logging(verbose)
    overrides = {"state_path": state} if state is not None else {}
    try:
        ctx.obj = LocalFsConfig.from_env(**overrides)
    except LocalFsError as e:
        _fail(e)


@main.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, resolve_path=True, path_type=Path),
)
@click.pass_context
def mount(ctx: click.Context, directory: Path):
    """Mount DIRECTORY and print its virtual root address.

    \b
    Examples:
        localfs mount .
        localfs mount /srv/data
    """
    try:
        root = _service(ctx).mount(directory)
    except LocalFsError as e:
        _fail(e)
    click.echo(str(root))


@main.command()
@click.pass_context
def hosts(ctx: click.Context):
    """List mounted hosts and their base directories."""
    service = _service(ctx)
    mappings = service.registry.mappings()
    if not mappings:
        console.print("[dim]No directories mounted.[/dim]")
        return

    table = Table(title="Mounted hosts")
    table.add_column("Host", style="cyan", no_wrap=True)
    table.add_column("Address", style="green")
    table.add_column("Base directory")
    for mapping in mappings:
        table.add_row(
            mapping.host,
            escape(str(service.translator.root_address(mapping.host))),
            escape(mapping.base_dir),
        )
    console.print(table)


@main.command()
@click.argument("target")
@click.pass_context
def resolve(ctx: click.Context, target: str):
    """Translate a virtual address to its real path, or a real path to its address.

    \b
    Examples:
        localfs resolve localfs://h0/src/main.py
        localfs resolve /srv/data/report.csv
    """
    translator = _service(ctx).translator
    try:
        if "://" in target:
            click.echo(translator.to_real_path(target))
        else:
            click.echo(str(translator.to_virtual_address(os.path.abspath(target))))
    except LocalFsError as e:
        _fail(e)


@main.command("ls")
@click.argument("address")
@click.pass_context
def list_directory(ctx: click.Context, address: str):
    """List the directory at ADDRESS."""
    provider = _service(ctx).provider
    try:
        entries = asyncio.run(provider.read_directory(address))
    except LocalFsError as e:
        _fail(e)

    for name, kind in entries:
        if kind is FileType.DIRECTORY:
            console.print(f"[bold blue]{escape(name)}/[/bold blue]")
        elif kind is FileType.SYMBOLIC_LINK:
            console.print(f"[cyan]{escape(name)}@[/cyan]")
        else:
            console.print(escape(name), highlight=False)


@main.command()
@click.argument("address")
@click.pass_context
def cat(ctx: click.Context, address: str):
    """Write the content of the file at ADDRESS to stdout."""
    provider = _service(ctx).provider
    try:
        content = asyncio.run(provider.read_file(address))
    except LocalFsError as e:
        _fail(e)
    stdout = click.get_binary_stream("stdout")
    stdout.write(content)
    stdout.flush()


@main.command("open")
@click.argument("uri")
@click.pass_context
def open_uri(ctx: click.Context, uri: str):
    """Mount the directory named by an absolute address (localfsabs:///path).

    \b
    Examples:
        localfs open localfsabs:///srv/data
        localfs open file:///srv/data
    """
    try:
        root = _service(ctx).handle_uri(uri)
    except LocalFsError as e:
        _fail(e)
    if root is None:
        _fail(click.UsageError(f"Not an absolute address: {uri}"))
    click.echo(str(root))


@main.command()
@click.argument("address")
@click.pass_context
def watch(ctx: click.Context, address: str):
    """Print change events under ADDRESS until interrupted."""
    service = _service(ctx)

    def on_change(event: FileChangeEvent) -> None:
        kind = event.type.name.lower()
        style = _EVENT_STYLES.get(kind, "white")
        console.print(f"[{style}]{kind:<8}[/{style}] {escape(str(event.address))}", highlight=False)

    with service:
        try:
            service.provider.watch(address)
        except LocalFsError as e:
            _fail(e)
        service.provider.on_did_change_file(on_change)
        console.print(f"[dim]Watching {escape(address)} (Ctrl+C to stop)[/dim]")
        try:
            while True:
                time.sleep(0.5)
        except KeyboardInterrupt:
            console.print("[dim]Stopped.[/dim]")


if __name__ == "__main__":
    main()

"""Thin CLI wrapper for asset_pipe_client.

This module provides the command-line interface using Typer.
All business logic is delegated to the client and writer modules.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console

from asset_pipe_client import __version__
from asset_pipe_client.config import get_settings, print_settings_json

app = typer.Typer(
    name="asset-pipe",
    help="Asset Pipe Client - publish asset feeds and bundle instructions",
    no_args_is_help=True,
)
console = Console()

ServerOption = Annotated[
    str | None,
    typer.Option("--server", "-s", help="Build server base URI"),
]
TagOption = Annotated[
    str | None,
    typer.Option("--tag", "-t", help="Tag to publish under"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"asset-pipe-client version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Logging level (defaults to settings)"),
    ] = None,
) -> None:
    """Asset Pipe Client - publish asset feeds and bundle instructions."""
    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_json(data: Any) -> None:
    console.print(json.dumps(data, indent=2), markup=False, soft_wrap=True)


@app.command()
def config(json_output: JsonOption = False) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), markup=False, soft_wrap=True)
        return

    def show(value: object) -> str:
        return "(server default)" if value is None else str(value)

    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Build server:[/bold]")
    console.print(f"  Server URI:          {settings.server}")
    console.print(f"  Server ID:           {settings.server_id or '(none)'}")
    console.print(f"  Tag:                 {settings.tag or '(none)'}")
    console.print()
    console.print("[bold]Bundling:[/bold]")
    console.print(f"  Minify:              {show(settings.minify)}")
    console.print(f"  Source maps:         {show(settings.source_maps)}")
    console.print(f"  Rebundle:            {show(settings.rebundle)}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Development mode:    {settings.development}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Request timeout:     {settings.request_timeout}")


@app.command()
def write(
    source: Annotated[
        list[Path],
        typer.Option("--source", help="Entrypoint file to read (can be repeated)"),
    ],
    destination: Annotated[
        Path,
        typer.Option("--destination", "-d", help="File to write the feed to"),
    ],
    asset_type: Annotated[
        str,
        typer.Option("--type", help="Asset type: js or css"),
    ] = "js",
) -> None:
    """Write an asset feed to a local file."""
    from asset_pipe_client.errors import ValidationError
    from asset_pipe_client.schemas import validate_asset_type
    from asset_pipe_client.writer import create_writer, write_feed

    try:
        kind = validate_asset_type(asset_type)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    for path in source:
        if not path.exists():
            console.print(f"[red]File not found: {path}[/red]")
            raise typer.Exit(code=1)

    writer = create_writer([str(p) for p in source], kind)
    size = write_feed(writer.bundle(), destination)
    console.print(f"[green]Wrote {kind.value} feed to {destination} ({size} bytes)[/green]")


def _run(coro: Any) -> Any:
    """Run a client coroutine, turning client errors into exit code 1."""
    from asset_pipe_client.errors import AssetPipeError

    try:
        return asyncio.run(coro)
    except AssetPipeError as e:
        console.print(f"[red]Error ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None


def _make_client(server: str | None, tag: str | None) -> Any:
    from asset_pipe_client.client import Client
    from asset_pipe_client.errors import ValidationError

    try:
        return Client(server, tag=tag, development=False)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None


@app.command()
def publish(
    js: Annotated[
        list[str] | None,
        typer.Option("--js", help="JavaScript entrypoint (can be repeated)"),
    ] = None,
    css: Annotated[
        list[str] | None,
        typer.Option("--css", help="CSS entrypoint (can be repeated)"),
    ] = None,
    server: ServerOption = None,
    tag: TagOption = None,
    minify: Annotated[
        bool | None,
        typer.Option("--minify/--no-minify", help="Ask the server to minify"),
    ] = None,
    source_maps: Annotated[
        bool | None,
        typer.Option("--source-maps/--no-source-maps", help="Ask for source maps"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Publish asset feeds and print the resulting feed hashes."""
    client = _make_client(server, tag)
    entrypoints = {"js": js or None, "css": css or None}
    options = {"minify": minify, "source_maps": source_maps}

    async def run() -> dict[str, str]:
        async with client:
            return await client.publish(entrypoints, options)

    hashes = _run(run())

    if json_output:
        _print_json(hashes)
        return
    if not hashes:
        console.print("[yellow]Nothing to publish[/yellow]")
        return
    for asset_type, feed_hash in hashes.items():
        console.print(f"  [green]{asset_type}[/green]: {feed_hash}")


@app.command()
def bundle(
    js: Annotated[
        list[str] | None,
        typer.Option("--js", help="Tag to include in the js bundle (ordered, repeatable)"),
    ] = None,
    css: Annotated[
        list[str] | None,
        typer.Option("--css", help="Tag to include in the css bundle (ordered, repeatable)"),
    ] = None,
    server: ServerOption = None,
    tag: TagOption = None,
) -> None:
    """Submit bundle instructions for the tag."""
    client = _make_client(server, tag)
    instructions = {"js": js or [], "css": css or []}

    async def run() -> dict[str, Any]:
        async with client:
            return await client.bundle_instructions(instructions)

    submitted = _run(run())
    if not submitted:
        console.print("[yellow]No bundle instructions given[/yellow]")
        return
    for asset_type in submitted:
        console.print(f"[green]Submitted {asset_type} bundle instruction[/green]")


@app.command()
def sync(server: ServerOption = None, json_output: JsonOption = False) -> None:
    """Show the public feed and bundle URLs of the build server."""
    client = _make_client(server, None)

    async def run() -> dict[str, str]:
        async with client:
            return await client.sync()

    data = _run(run())
    if json_output:
        _print_json(data)
        return
    console.print(f"  Feeds:   {data['publicFeedUrl']}")
    console.print(f"  Bundles: {data['publicBundleUrl']}")


if __name__ == "__main__":
    app()

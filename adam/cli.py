"""Command line interface for adam."""

import sys
from typing import Optional

import typer

from . import __version__
from .config import build_store, load_settings
from .log import setup_logging
from .snapshot import restore_file, write_snapshot

app = typer.Typer(
    help="adam - self-hosted file store with checksum and identity indices.",
    no_args_is_help=True,
)

ConfigOption = typer.Option(None, "--config", help="Path to the TOML config file.",
                            envvar="ADAM_CONFIG")
CacheDirOption = typer.Option(None, "-c", "--cache-dir",
                              help="Directory holding the checksum and id caches.")
BaseDirOption = typer.Option(None, "-d", "--base-dir",
                             help="Root directory of the stored files.")
BackendOption = typer.Option(None, "--backend",
                             help="Cache backend: leveldb, sqlite or memory.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo("adam {0}".format(__version__))
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback,
                                 is_eager=True, help="Show the version and exit."),
) -> None:
    """adam command line."""


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "-p", "--port",
                                       help="The port adam will listen to."),
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    base_dir: Optional[str] = BaseDirOption,
    cache_dir: Optional[str] = CacheDirOption,
    backend: Optional[str] = BackendOption,
    config: Optional[str] = ConfigOption,
) -> None:
    """Run the HTTP server."""
    import uvicorn

    from .api import create_app

    settings = load_settings(config, port=port, host=host, base_dir=base_dir,
                             cache_dir=cache_dir, cache_backend=backend)
    setup_logging(settings.log_level)

    store = build_store(settings)
    uvicorn.run(create_app(store), host=settings.host, port=settings.port,
                log_config=None)


@app.command()
def restore(
    snapshot: str = typer.Argument(..., help="JSON snapshot to load into the caches."),
    base_dir: Optional[str] = BaseDirOption,
    cache_dir: Optional[str] = CacheDirOption,
    backend: Optional[str] = BackendOption,
    config: Optional[str] = ConfigOption,
) -> None:
    """Rebuild the caches from a snapshot. Files on disk are not touched."""
    settings = load_settings(config, base_dir=base_dir, cache_dir=cache_dir,
                             cache_backend=backend)
    setup_logging(settings.log_level)

    errors = restore_file(build_store(settings), snapshot)
    if errors:
        for error in errors:
            typer.echo(str(error), err=True)
        raise typer.Exit(code=1)

    typer.echo("ok")


@app.command()
def dump(
    output: Optional[str] = typer.Argument(None, help="Snapshot file, stdout if omitted."),
    base_dir: Optional[str] = BaseDirOption,
    cache_dir: Optional[str] = CacheDirOption,
    backend: Optional[str] = BackendOption,
    config: Optional[str] = ConfigOption,
) -> None:
    """Write a snapshot of the caches."""
    settings = load_settings(config, base_dir=base_dir, cache_dir=cache_dir,
                             cache_backend=backend)
    setup_logging(settings.log_level)

    records, errors = build_store(settings).dump()
    write_snapshot(output if output else sys.stdout, records)

    for error in errors:
        typer.echo(str(error), err=True)
    if errors:
        raise typer.Exit(code=1)


@app.command()
def repair(
    base_dir: Optional[str] = BaseDirOption,
    cache_dir: Optional[str] = CacheDirOption,
    backend: Optional[str] = BackendOption,
    config: Optional[str] = ConfigOption,
) -> None:
    """Bring the caches back in line with the files on disk."""
    settings = load_settings(config, base_dir=base_dir, cache_dir=cache_dir,
                             cache_backend=backend)
    setup_logging(settings.log_level)

    repaired = build_store(settings).repair()
    for reason, record in repaired:
        typer.echo("{0}\t{1}\t{2}".format(reason, record.path, record.identifier or "-"))
    typer.echo("{0} entries repaired".format(len(repaired)))


def run() -> None:
    app()

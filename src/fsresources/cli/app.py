# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import json
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import typer

from ..adapters.filesystem import default_filesystem
from ..adapters.filters import default_registry
from ..config import Settings
from ..domain.errors import ResourceError
from ..logging_config import setup_logging
from ..ports.filesystem import FilesystemPort
from ..services import Link, Pipe, Stream, TypeResolver

setup_logging()

app = typer.Typer(help="fsresources CLI - inspect and stream files, pipes, links and URIs")

logger = logging.getLogger(__name__)


def _verbose(enabled: bool) -> None:
    if enabled:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")


def _wire() -> FilesystemPort:
    """Build the provider once per command from FSRES_* settings."""
    try:
        return default_filesystem(Settings.from_env())
    except ResourceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@contextmanager
def _errors_exit() -> Iterator[None]:
    try:
        yield
    except (ResourceError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _parse_permissions(value: str) -> int:
    try:
        return int(value, 8)
    except ValueError:
        raise typer.BadParameter(f"--permissions must be octal (e.g. 644), got {value!r}")


@app.command()
def kind(
    path: str = typer.Argument(..., help="Path or stream URI (memory://, fd://0, ...)"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Print what a path points at (file, dir, link, fifo, char, block, socket).
    """
    _verbose(verbose)
    fs = _wire()
    with _errors_exit():
        typer.echo(TypeResolver(fs).resolve_from_path(path).value)


@app.command()
def stat(
    path: str = typer.Argument(..., help="Path to inspect"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of key: value lines"),
    no_follow: bool = typer.Option(
        False, "--no-follow", help="Describe a symlink itself rather than its target"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Print the stat snapshot for a path.
    """
    _verbose(verbose)
    fs = _wire()
    with _errors_exit():
        snapshot = fs.lstat_path(path) if no_follow else fs.stat_path(path)
    data = snapshot.as_dict()
    if as_json:
        typer.echo(json.dumps(data, indent=2, sort_keys=True))
        return
    for key, value in data.items():
        if key == "mode":
            value = oct(value)
        typer.echo(f"{key}: {value}")


@app.command()
def cat(
    path: str = typer.Argument(..., help="Path or stream URI to read"),
    filters: Optional[List[str]] = typer.Option(
        None, "--filter", "-f", help="Read filter to apply; repeat to chain (e.g. string.rot13)"
    ),
    mode: str = typer.Option("r", "--mode", help="Open mode"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Stream a location to stdout through optional read filters.
    """
    _verbose(verbose)
    fs = _wire()
    out = typer.get_binary_stream("stdout")
    with _errors_exit():
        with Stream(path, mode, fs=fs) as stream:
            for name in filters or []:
                stream.append_filter(name)
            count = stream.pass_thru(out)
    logger.debug("cat: wrote %d bytes from %s", count, path)


@app.command()
def mkfifo(
    path: str = typer.Argument(..., help="Where to create the named pipe"),
    permissions: str = typer.Option("644", "--permissions", help="Octal permission bits"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Create a named pipe (FIFO).
    """
    _verbose(verbose)
    perms = _parse_permissions(permissions)
    fs = _wire()
    with _errors_exit():
        created = Pipe.create(path, perms, fs=fs)
    if not created:
        typer.echo(f"Error: {path} already exists", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Created pipe {path}")


@app.command()
def link(
    path: str = typer.Argument(..., help="Where to create the symlink"),
    target: str = typer.Argument(..., help="What the link points to"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Create a symbolic link at PATH pointing to TARGET.
    """
    _verbose(verbose)
    fs = _wire()
    with _errors_exit():
        created = Link.create(path, target, fs=fs)
    if not created:
        typer.echo(f"Error: {path} already exists", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Linked {path} -> {target}")


@app.command(name="filters")
def list_filters(verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging")):
    """
    List the registered stream filter names.
    """
    _verbose(verbose)
    for name in default_registry.names():
        typer.echo(name)


if __name__ == "__main__":
    app()

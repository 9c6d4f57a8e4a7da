"""
SwipeSort Command-Line Interface

Click-based CLI for launching SwipeSort.
"""
from __future__ import annotations

import asyncio
import logging
import sys
import webbrowser
from pathlib import Path
from threading import Timer
from typing import NoReturn

import click
import uvicorn
from pydantic import ValidationError

from swipesort.config import DEFAULT_TRASH_ALBUM, PRIMARY_THRESHOLD, EngineConfig
from swipesort.filesystem import validate_library_directory


def setup_logging(debug: bool) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.ERROR
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


@click.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option(
    "--destination",
    "-d",
    "destinations",
    multiple=True,
    help="Album offered by the destination picker (repeatable, in order)",
)
@click.option(
    "--source",
    "-s",
    "sources",
    multiple=True,
    help="Only triage photos in this collection (repeatable)",
)
@click.option(
    "--trash-album",
    default=DEFAULT_TRASH_ALBUM,
    show_default=True,
    help="Album that swiped-left photos are collected in",
)
@click.option(
    "--threshold",
    default=PRIMARY_THRESHOLD,
    show_default=True,
    type=float,
    help="Swipe distance needed to commit a decision",
)
@click.option(
    "--reset-clears-history",
    is_flag=True,
    help="Also clear undo history when the session is reset",
)
@click.option(
    "--host",
    "-h",
    default="127.0.0.1",
    show_default=True,
    help="Server host address",
)
@click.option(
    "--port",
    "-p",
    default=8765,
    show_default=True,
    type=int,
    help="Server port",
)
@click.option(
    "--no-browser",
    is_flag=True,
    help="Don't open browser automatically",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug logging",
)
@click.version_option(package_name="swipesort")
def main(
    directory: Path,
    destinations: tuple[str, ...],
    sources: tuple[str, ...],
    trash_album: str,
    threshold: float,
    reset_clears_history: bool,
    host: str,
    port: int,
    no_browser: bool,
    debug: bool,
) -> None:
    """
    SwipeSort - Swipe-based photo triage.

    DIRECTORY is the photo library to sort through.

    Example:

        swipesort ./photos -d Family -d Work
    """
    setup_logging(debug)

    try:
        config = EngineConfig(
            primary_threshold=threshold,
            trash_album_name=trash_album,
            reset_clears_history=reset_clears_history,
        )
    except ValidationError as e:
        _fail("Invalid configuration:", *(error["msg"] for error in e.errors()))

    is_valid, issues = asyncio.run(validate_library_directory(directory))
    if not is_valid:
        _fail("Library cannot be used:", *issues)

    library = directory.resolve()
    base_url = f"http://{host}:{port}"
    _print_banner(library, destinations, sources, base_url)

    if not no_browser:
        # The API docs page is the only UI shipped with the server
        Timer(1.5, webbrowser.open, args=[f"{base_url}/docs"]).start()

    from swipesort.server import create_app

    uvicorn.run(
        create_app(
            library_directory=library,
            config=config,
            destination_names=list(destinations),
            source_names=list(sources),
            host=host,
            port=port,
        ),
        host=host,
        port=port,
        log_level="debug" if debug else "warning",
        access_log=debug,
    )


def _fail(message: str, *issues: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    for issue in issues:
        click.echo(f"  - {issue}", err=True)
    sys.exit(1)


def _print_banner(
    library: Path,
    destinations: tuple[str, ...],
    sources: tuple[str, ...],
    base_url: str,
) -> None:
    lines = [
        "SwipeSort starting...",
        f"  Library: {library}",
        f"  Destinations: {', '.join(destinations) or '(none)'}",
        f"  Sources: {', '.join(sources) or 'all photos'}",
        f"  Server: {base_url}",
        "",
        "Press Ctrl+C to stop",
    ]
    click.echo("\n".join(lines) + "\n")


if __name__ == "__main__":
    main()

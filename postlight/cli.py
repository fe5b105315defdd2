"""Command-line interface for Postlight.

This module defines the CLI commands using Click framework.

Commands:
- serve: Run the content server, with live reload in development mode.
- new: Scaffold a new project with a starter content directory.
- post: Create a new post interactively.
"""

from __future__ import annotations

import logging
import os
import shutil
from datetime import date
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .config import ConfigError, load_config
from .errors import PostlightError
from .repository import PostRepository
from .utils import slugify

# Path to the starter project
_STARTER_DIR = Path(__file__).parent / "starter"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging for the CLI process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


@click.group()
@click.version_option(version=__version__, prog_name="postlight")
@click.option(
    "--log-level",
    envvar="POSTLIGHT_LOG",
    default="INFO",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity.",
)
def cli(log_level: str):
    """Postlight content server."""
    configure_logging(log_level)


@cli.command()
@click.option(
    "--dev/--no-dev",
    "development",
    default=None,
    help="Enable live reload (overrides POSTLIGHT_ENV and postlight.yaml).",
)
@click.option("--port", type=int, required=False, help="HTTP port (overrides PORT).")
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server.",
)
@click.option(
    "--content",
    "content_dir",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
    help="Content directory (overrides postlight.yaml).",
)
def serve(development: bool | None, port: int | None, ws_port: int | None, content_dir: Path | None):
    """Serve the content directory."""
    project_root = Path.cwd()
    from .server import ContentServer

    try:
        config = load_config(
            project_root,
            overrides={
                "development": development,
                "port": port,
                "ws_port": ws_port,
                "content_dir": str(content_dir) if content_dir else None,
            },
        )
        server = ContentServer(config)
        server.open()
    except (ConfigError, PostlightError, OSError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Serving {config.content_dir} at http://localhost:{config.port}")
    server.wait()


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Postlight project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Postlight site created at {target}")


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    try:
        config = load_config(project_root)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    posts_dir = config.content_dir / config.posts_dir

    if not posts_dir.is_dir():
        raise click.ClickException(
            f"No posts directory found at {posts_dir}. Run `postlight new` first."
        )

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    slug = questionary.text(
        "Slug:",
        default=slugify(title, strip_date=False),
        validate=lambda x: len(x.strip()) > 0 or "Slug cannot be empty",
        style=_questionary_style(),
    ).ask()
    if slug is None:
        raise click.Abort()
    slug = slugify(slug, strip_date=False)

    add_date = questionary.confirm(
        "Prefix filename with today's date? (YYYY-MM-DD-)",
        default=True,
        style=_questionary_style(),
    ).ask()
    if add_date is None:
        raise click.Abort()

    today = date.today()
    filename = f"{today.isoformat()}-{slug}.md" if add_date else f"{slug}.md"
    target_path = posts_dir / filename
    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {os.path.relpath(target_path, project_root)}"
        )
    if slug in PostRepository.load(posts_dir):
        raise click.ClickException(f"A post with slug '{slug}' already exists")

    target_path.write_text(_new_post_source(title, slug, today), encoding="utf-8")
    click.echo(f"Created {os.path.relpath(target_path, project_root)}")


def _new_post_source(title: str, slug: str, day: date) -> str:
    """Return the initial source of a post with front-matter."""
    frontmatter = yaml.safe_dump(
        {"title": title, "date": day, "slug": slug},
        sort_keys=False,
        allow_unicode=True,
    )
    return f"---\n{frontmatter}---\n\n"


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the starter project into a new location.

    Args:
        root: Root directory for the new project.
    """
    for src_path in _STARTER_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_STARTER_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
    (root / "content" / "static").mkdir(parents=True, exist_ok=True)

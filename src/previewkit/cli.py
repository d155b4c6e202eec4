"""Command-line interface for previewkit."""

import logging
from pathlib import Path

import click
import yaml

from . import __version__
from .config import (
    CONFIG_FILENAME,
    config_to_dict,
    create_default_config,
    find_config_file,
    load_config,
)
from .errors import PreviewError
from .files import FileInfo, Mount
from .manager import MODE_COVER, MODE_FILL, PreviewManager


def _build_manager(config_path: str | None) -> PreviewManager:
    """Load configuration and return a bootstrapped manager."""
    cfg = load_config(config_path=Path(config_path) if config_path else None)
    manager = PreviewManager(cfg)
    manager.coordinator.run_registration()
    return manager


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Config file path",
)


@click.group()
@click.version_option(version=__version__, prog_name="previewkit")
@click.option("-v", "--verbose", is_flag=True, help="Log provider resolution details")
def main(verbose):
    """Find and run preview providers for files.

    \b
    Quick start:
      previewkit config init            # Create .previewkit.yaml
      previewkit providers              # List registered patterns
      previewkit check photo.png        # Is a preview available?
      previewkit render doc.pdf -o p.png -w 256 -h 256
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@config_option
def providers(config_path):
    """List registered MIME patterns, most specific first."""
    try:
        manager = _build_manager(config_path)
        table = manager.get_providers()
    except PreviewError as e:
        raise click.ClickException(str(e))

    if not table:
        click.echo("No preview providers registered")
        return

    for pattern, factories in table.items():
        names = ", ".join(f.identifier for f in factories)
        click.echo(f"{pattern}  ->  {names}")


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, dir_okay=False))
@config_option
@click.option("--no-previews", is_flag=True, help="Treat the files as on a mount with previews off")
def check(paths, config_path, no_previews):
    """Report whether previews are available for files.

    \b
    Examples:
      previewkit check photo.png notes.md
    """
    if not paths:
        raise click.UsageError("No files specified")

    mount = Mount(options={"previews": False}) if no_previews else None

    try:
        manager = _build_manager(config_path)
    except PreviewError as e:
        raise click.ClickException(str(e))

    for path in paths:
        info = FileInfo.from_path(path, mount=mount)
        supported = manager.is_mime_supported(info.mime_type)
        available = manager.is_available(info)
        click.echo(
            f"{path}: {info.mime_type} "
            f"supported={'yes' if supported else 'no'} "
            f"available={'yes' if available else 'no'}"
        )


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", type=click.Path(), required=True, help="Output PNG file")
@click.option("-w", "--width", type=int, default=-1, help="Maximum width (-1 = source)")
@click.option("-h", "--height", type=int, default=-1, help="Maximum height (-1 = source)")
@click.option("--crop", is_flag=True, help="Crop to exactly width x height")
@click.option(
    "--mode",
    type=click.Choice([MODE_FILL, MODE_COVER]),
    default=MODE_FILL,
    help="Fit inside the box or cover it",
)
@click.option("--mime-type", help="Override the detected MIME type")
@config_option
def render(path, output, width, height, crop, mode, mime_type, config_path):
    """Render a preview image for a file.

    \b
    Examples:
      previewkit render photo.jpg -o thumb.png -w 200 -h 200 --crop
    """
    try:
        manager = _build_manager(config_path)
        info = FileInfo.from_path(path)
        preview = manager.get_preview(info, width, height, crop, mode, mime_type)
    except PreviewError as e:
        raise click.ClickException(str(e))

    try:
        Path(output).write_bytes(preview.data)
    except OSError as e:
        raise click.ClickException(f"Cannot write {output}: {e}")

    click.echo(f"Wrote {output} ({preview.width}x{preview.height})")


@main.group()
def config():
    """Manage previewkit configuration."""
    pass


@config.command("init")
@click.option(
    "-d",
    "--directory",
    type=click.Path(),
    default=".",
    help="Directory to create config in",
)
def config_init(directory):
    """Create a new .previewkit.yaml configuration file."""
    try:
        config_path = create_default_config(Path(directory))
        click.echo(f"Created: {config_path}")
    except PreviewError as e:
        raise click.ClickException(str(e))


@config.command("show")
@config_option
def config_show(config_path):
    """Display current configuration.

    Shows merged configuration from file, environment, and defaults.
    """
    try:
        cfg = load_config(config_path=Path(config_path) if config_path else None)
        data = config_to_dict(cfg)
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))
    except PreviewError as e:
        raise click.ClickException(str(e))


@config.command("where")
@click.option(
    "-d",
    "--directory",
    type=click.Path(exists=True),
    help="Directory to search from",
)
def config_where(directory):
    """Show which config file would be used.

    Searches up the directory tree for .previewkit.yaml.
    """
    start = Path(directory) if directory else Path.cwd()
    config_path = find_config_file(start)

    if config_path:
        click.echo(f"Config file: {config_path}")
    else:
        click.echo(f"No {CONFIG_FILENAME} found (searched from {start})")

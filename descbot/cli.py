"""CLI interface for descbot."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .bot import create_bot
from .client import ConsoleClient
from .descriptions import DescriptionSet
from .errors import ConfigError, StorageError
from .log import configure_logging
from .models import MAX_DURATION, DescriptionDocument
from .settings import BotSettings
from .storage import DescriptionFile
from .validator import display_length, max_length, validate


def _settings(ctx: click.Context, **overrides) -> BotSettings:
    values = {k: v for k, v in overrides.items() if v is not None}
    if ctx.obj and ctx.obj.get("config"):
        values.setdefault("descriptions_path", ctx.obj["config"])
    return BotSettings(**values)


@click.group()
@click.version_option(__version__, prog_name="descbot")
@click.option("-c", "--config", type=click.Path(path_type=Path), help="Path to the descriptions JSON file")
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path]):
    """descbot - Rotating profile descriptions"""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.option("--prefix", help="Command prefix for control messages")
@click.option("--min-interval", type=float, help="Minimum seconds between description updates")
@click.option("--premium/--no-premium", default=None, help="Account tier reported by the console client")
@click.option("-l", "--log-level", help="Log level (debug, info, warning, error)")
@click.option("--log-json/--no-log-json", default=None, help="Emit logs as JSON lines")
@click.pass_context
def run(ctx, prefix, min_interval, premium, log_level, log_json):
    """Run the bot with a console client.

    Control commands are read from stdin; description updates are printed.

    Example:
        descbot -c descriptions.json run --min-interval 5
    """
    settings = _settings(
        ctx,
        command_prefix=prefix,
        min_update_interval=min_interval,
        log_level=log_level,
        log_json=log_json,
    )
    configure_logging(settings.log_level, settings.log_json)
    client = ConsoleClient(premium=premium)

    async def main():
        bot = await create_bot(client, settings)
        await bot.run()

    try:
        asyncio.run(main())
    except ConfigError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nStopped")


@cli.command("validate")
@click.pass_context
def validate_config(ctx):
    """Validate the descriptions file and report on every entry.

    Example:
        descbot -c descriptions.json validate
    """
    settings = _settings(ctx)
    source = DescriptionFile(settings.descriptions_path)
    try:
        document = source.load()
    except ConfigError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    limit = max_length(document.is_premium)
    click.echo(f"\n{'ID':<20} {'Length':<10} {'Duration':<10} {'Result':<30}")
    click.echo("-" * 70)
    for entry in document.descriptions:
        verdict = validate(entry.text, document.is_premium)
        result = "ok" if verdict.ok else verdict.message
        if verdict.ok and not 0 < entry.duration_secs <= MAX_DURATION:
            result = f"duration must be 1..{MAX_DURATION}"
        length = f"{display_length(entry.text)}/{limit}"
        duration = entry.duration_secs if entry.duration_secs <= MAX_DURATION else "too long"
        click.echo(f"{entry.id:<20} {length:<10} {duration:<10} {result:<30}")
    click.echo()

    try:
        descriptions = DescriptionSet.from_document(document)
    except ConfigError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ {len(descriptions)} descriptions are valid")


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def generate_config(ctx, force: bool):
    """Write an example descriptions file.

    Example:
        descbot -c descriptions.json generate-config
    """
    settings = _settings(ctx)
    target = DescriptionFile(settings.descriptions_path)
    if target.exists() and not force:
        click.echo(f"✗ {target.path} already exists (use --force to overwrite)", err=True)
        sys.exit(1)
    try:
        target.save(DescriptionDocument.example())
    except StorageError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Example configuration written to {target.path}")


@cli.group()
def config():
    """Inspect settings"""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Show the effective settings.

    Example:
        DESCBOT_MIN_UPDATE_INTERVAL=120 descbot config show
    """
    settings = _settings(ctx)

    click.echo("\nCurrent Configuration:")
    click.echo(f"  descriptions-path:   {settings.descriptions_path}")
    click.echo(f"  command-prefix:      {settings.command_prefix}")
    click.echo(f"  min-update-interval: {settings.min_update_interval:g} seconds")
    click.echo(f"  backoff-max-delay:   {settings.backoff_max_delay:g} seconds")
    click.echo(f"  inbox-size:          {settings.inbox_size}")
    click.echo(f"  persist-edits:       {settings.persist_edits}")
    click.echo(f"  log-level:           {settings.log_level}")
    click.echo()


if __name__ == "__main__":
    cli()

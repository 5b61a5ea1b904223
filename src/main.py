"""
gcrsync — CLI Entry Point

Usage:
    python -m src.main sync [--sync-timeout SECONDS] [--process-limit N]
    python -m src.main monitor [--count N] [--interval SECONDS]
    python -m src.main check-config [--json]
    python -m src.main sync --metrics
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from typing import Optional

import click

from .cli.ops import check_config
from .cli.sync import monitor, sync
from .config.settings import SyncSettings
from .logging_config import setup_logging

# Initialize logging
setup_logging()


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file (environment variables take precedence)",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-format", type=click.Choice(["text", "json"]), default=None)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[Path],
    debug: bool,
    log_format: Optional[str],
) -> None:
    """gcrsync — Mirror gcr.io images to Docker Hub and keep a changelog."""
    ctx.ensure_object(dict)
    try:
        settings = SyncSettings.load(config_file=config_file)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="configuration")

    if debug or settings.debug or log_format:
        setup_logging(format_type=log_format, debug=debug or settings.debug)

    ctx.obj["settings"] = settings
    ctx.obj["root"] = _project_root


cli.add_command(sync)
cli.add_command(monitor)
cli.add_command(check_config)


if __name__ == "__main__":
    cli()

"""
CLI ops commands — configuration check.

Usage:
    python -m src.main check-config [--command sync|monitor] [--json]
"""

from __future__ import annotations

import json

import click


@click.command("check-config")
@click.option(
    "--command",
    "command_name",
    type=click.Choice(["sync", "monitor"]),
    default="sync",
    help="Validate the settings this command needs",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check_config(ctx: click.Context, command_name: str, as_json: bool) -> None:
    """Validate settings and show the effective configuration."""
    from ..config.validator import has_errors, validate_settings

    settings = ctx.obj["settings"]
    issues = validate_settings(settings, command=command_name)

    if as_json:
        click.echo(json.dumps({
            "settings": settings.redacted(),
            "issues": [i.to_dict() for i in issues],
            "ok": not has_errors(issues),
        }, indent=2))
        if has_errors(issues):
            raise SystemExit(1)
        return

    click.echo("\n⚙️  Effective configuration\n")
    for key, value in settings.redacted().items():
        click.echo(f"  {key:18} {value}")
    click.echo()

    if not issues:
        click.secho(f"✓ Ready to {command_name}", fg="green")
        return

    for issue in issues:
        color = "red" if issue.level == "error" else "yellow"
        icon = "✗" if issue.level == "error" else "⚠"
        click.secho(f"  {icon} {issue.message}", fg=color)
        if issue.guidance:
            click.echo(f"      → {issue.guidance}")
    click.echo()

    if has_errors(issues):
        raise SystemExit(1)

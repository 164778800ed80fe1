"""rizz CLI - inspect and migrate SQLite databases."""

from pathlib import Path

import click

from rizz.cli.inspect import inspect_command
from rizz.cli.migrate import migrate_command, plan_command
from rizz.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="rizz")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (default: ./rizz.yaml when present)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """rizz - schema-checked SQLite access."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(inspect_command, name="inspect")
cli.add_command(plan_command, name="plan")
cli.add_command(migrate_command, name="migrate")


if __name__ == "__main__":
    cli()

"""rizz plan / rizz migrate commands - reconcile a database with a declared schema."""

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from rizz.cli.inspect import read_live_schema
from rizz.cli.utils import database_config, load_schema
from rizz.core.errors import InternalError, RizzError
from rizz.db import Database
from rizz.migrate import MigrationPlan, plan_migration
from rizz.schema import LiveSchema, SchemaModel


def render_plan(plan: MigrationPlan, console: Console, *, applied: bool) -> None:
    if plan.is_empty:
        console.print("[green]Schema is up to date[/green]")
        return

    grid = Table(show_edge=False)
    grid.add_column("#", justify="right", style="dim")
    grid.add_column("operation", style="cyan")
    grid.add_column("sql")
    for i, (op, sql) in enumerate(zip(plan, plan.statements(), strict=True), start=1):
        grid.add_row(str(i), type(op).__name__, sql)
    console.print(grid)

    counts = ", ".join(f"{n} {kind}" for kind, n in plan.summary().items() if n)
    verb = "Applied" if applied else "Would apply"
    console.print(f"\n{verb} {len(plan)} operation(s): {counts}")


async def compute_plan(
    database: Path, schema: SchemaModel, config_path: Path | None = None
) -> MigrationPlan:
    """Plan against the live file without writing; a missing file is empty."""
    live = (
        await read_live_schema(database, config_path) if database.exists() else LiveSchema.of()
    )
    return plan_migration(schema, live)


async def apply_plan(
    database: Path, schema: SchemaModel, config_path: Path | None = None
) -> MigrationPlan:
    config = database_config(database, config_path=config_path)
    async with await Database.open(schema, config) as db:
        if db.last_migration is None:
            raise InternalError.unexpected("open finished without a migration plan")
        return db.last_migration


@click.command()
@click.argument("database", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--schema", "schema_target", required=True, help="Declared schema as module:attr")
@click.pass_context
def plan_command(ctx: click.Context, database: Path, schema_target: str) -> None:
    """Print the DDL needed to bring DATABASE up to the declared schema."""
    schema = load_schema(schema_target)
    try:
        plan = asyncio.run(compute_plan(database, schema, (ctx.obj or {}).get("config_path")))
    except RizzError as e:
        raise click.ClickException(str(e)) from e
    render_plan(plan, Console(), applied=False)


@click.command()
@click.argument("database", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--schema", "schema_target", required=True, help="Declared schema as module:attr")
@click.pass_context
def migrate_command(ctx: click.Context, database: Path, schema_target: str) -> None:
    """Apply the DDL needed to bring DATABASE up to the declared schema.

    Only additive changes are made: tables, columns and indexes are created,
    nothing is dropped.
    """
    schema = load_schema(schema_target)
    try:
        plan = asyncio.run(apply_plan(database, schema, (ctx.obj or {}).get("config_path")))
    except RizzError as e:
        raise click.ClickException(str(e)) from e
    render_plan(plan, Console(), applied=True)

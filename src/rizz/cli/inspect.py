"""rizz inspect command - show the live schema of a database file."""

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from rizz.cli.utils import database_config
from rizz.core.errors import RizzError
from rizz.db import Database
from rizz.schema import LiveSchema, SchemaModel


async def read_live_schema(path: Path, config_path: Path | None = None) -> LiveSchema:
    """Open an existing ``path`` with an empty declared schema and read the catalog."""
    config = database_config(path, config_path=config_path, create_if_missing=False)
    async with await Database.open(SchemaModel.build([]), config) as db:
        return await db.catalog()


def live_schema_to_dict(live: LiveSchema) -> dict[str, object]:
    return {
        "tables": {
            name: [
                {
                    "name": col.name,
                    "kind": col.kind.value,
                    "not_null": col.not_null,
                    "primary_key": col.primary_key,
                    "unique": col.unique,
                    "default": col.default,
                    "references": (
                        f"{col.references.table}.{col.references.column}"
                        if col.references
                        else None
                    ),
                }
                for col in table.columns
            ]
            for name, table in sorted(live.tables.items())
        },
        "indexes": {
            name: {"table": index.table, "columns": list(index.columns), "unique": index.unique}
            for name, index in sorted(live.indexes.items())
        },
    }


def render_live_schema(live: LiveSchema, console: Console) -> None:
    if not live.tables:
        console.print("[yellow]No tables[/yellow]")
        return

    for name, table in sorted(live.tables.items()):
        grid = Table(title=name, title_justify="left", show_edge=False)
        grid.add_column("column", style="cyan")
        grid.add_column("type")
        grid.add_column("constraints", style="dim")
        for col in table.columns:
            flags = []
            if col.primary_key:
                flags.append("PRIMARY KEY")
            if col.unique:
                flags.append("UNIQUE")
            if col.not_null:
                flags.append("NOT NULL")
            if col.default is not None:
                flags.append(f"DEFAULT {col.default}")
            if col.references is not None:
                flags.append(f"-> {col.references.table}.{col.references.column}")
            grid.add_row(col.name, col.kind.value, " ".join(flags))
        console.print(grid)

    if live.indexes:
        grid = Table(title="indexes", title_justify="left", show_edge=False)
        grid.add_column("name", style="cyan")
        grid.add_column("table")
        grid.add_column("columns")
        grid.add_column("unique")
        for name, index in sorted(live.indexes.items()):
            grid.add_row(name, index.table, ", ".join(index.columns), "yes" if index.unique else "")
        console.print(grid)


@click.command()
@click.argument("database", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def inspect_command(ctx: click.Context, database: Path, as_json: bool) -> None:
    """Show tables, columns and indexes of DATABASE."""
    config_path = (ctx.obj or {}).get("config_path")
    try:
        live = asyncio.run(read_live_schema(database, config_path))
    except RizzError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps(live_schema_to_dict(live), indent=2))
        return
    render_live_schema(live, Console())

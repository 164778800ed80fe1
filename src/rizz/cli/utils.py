"""CLI utilities."""

import importlib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import click
from sqlalchemy import MetaData

from rizz.config import DatabaseConfig, load_config
from rizz.core.errors import RizzError
from rizz.schema import SchemaModel, schema_from_metadata, schema_from_models


def load_schema(target: str) -> SchemaModel:
    """Resolve ``module:attr`` to a SchemaModel.

    The attribute may be a SchemaModel, a SQLAlchemy MetaData (SQLModel.metadata
    included), or a list of table model classes.

    Raises:
        click.ClickException: If the target cannot be imported or converted
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise click.ClickException(f"Schema must be given as module:attr, got '{target}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.ClickException(f"Cannot import '{module_name}': {e}") from e

    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise click.ClickException(f"'{module_name}' has no attribute '{attr}'") from e

    try:
        if isinstance(obj, SchemaModel):
            return obj
        if isinstance(obj, MetaData):
            return schema_from_metadata(obj)
        if isinstance(obj, Iterable) and not isinstance(obj, str):
            return schema_from_models(*obj)
    except RizzError as e:
        raise click.ClickException(str(e)) from e
    raise click.ClickException(
        f"'{target}' is a {type(obj).__name__}, expected a SchemaModel, MetaData or model list"
    )


def database_config(
    path: Path, *, config_path: Path | None = None, **overrides: Any
) -> DatabaseConfig:
    """Database config for ``path``: rizz.yaml and env vars, then CLI overrides."""
    try:
        config = load_config(config_path, database={"path": str(path), **overrides})
    except RizzError as e:
        raise click.ClickException(str(e)) from e
    return config.database

"""Apply a migration plan inside one write transaction."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from rizz.core.errors import ExecutionError, MigrationError
from rizz.migrate.reconciler import MigrationPlan, plan_migration

if TYPE_CHECKING:
    from rizz.db.engine import SqliteConnection
    from rizz.schema.model import SchemaModel

logger = structlog.get_logger()


def apply_migration(
    connection: SqliteConnection, declared: SchemaModel, *, read_only: bool = False
) -> MigrationPlan:
    """Reconcile ``declared`` against the connection's catalog and apply the DDL.

    The catalog read, planning and every DDL statement share one
    BEGIN IMMEDIATE transaction. Any failure rolls the whole plan back, so the
    live schema is either fully migrated or untouched.

    A read-only connection only checks: any needed DDL is an error.

    Raises:
        MigrationError: planning rejected the schema, or a DDL statement failed.
    """
    if read_only:
        try:
            live = connection.read_catalog()
        finally:
            connection.end_read()
        plan = plan_migration(declared, live)
        if not plan.is_empty:
            raise MigrationError.ddl_failed(plan.statements()[0], "database is read-only")
        return plan

    connection.begin()
    try:
        live = connection.read_catalog()
        plan = plan_migration(declared, live)
        for op in plan:
            compiled = op.compile()
            try:
                connection.execute(connection.prepare(compiled.sql), ())
            except ExecutionError as e:
                raise MigrationError.ddl_failed(
                    compiled.sql, str(e.details.get("reason", e.message))
                ) from e
        connection.commit()
    except BaseException:
        connection.rollback()
        raise

    if plan.is_empty:
        logger.debug("migration_not_needed", tables=len(declared.tables))
    else:
        logger.info("migration_applied", operations=len(plan), **plan.summary())
    return plan

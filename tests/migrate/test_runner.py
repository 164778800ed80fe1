"""Tests for applying migration plans on a live connection."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from rizz.config.models import DatabaseConfig
from rizz.core.errors import ErrorCode, ExecutionError, MigrationError
from rizz.db.engine import SqliteConnection, create_sqlite_engine
from rizz.migrate import apply_migration
from rizz.schema.model import ColumnDescription, ColumnKind, SchemaModel, TableDescription


@pytest.fixture
def connection(memory_config: DatabaseConfig) -> Iterator[SqliteConnection]:
    engine = create_sqlite_engine(memory_config)
    conn = SqliteConnection(engine, memory_config)
    yield conn
    conn.close()
    engine.dispose()


def _live_tables(conn: SqliteConnection) -> set[str]:
    try:
        return set(conn.read_catalog().tables)
    finally:
        conn.end_read()


class TestApplyMigration:
    def test_creates_declared_objects(
        self, connection: SqliteConnection, blog_schema: SchemaModel
    ) -> None:
        # When
        plan = apply_migration(connection, blog_schema)

        # Then
        assert plan.summary() == {"create_table": 2, "add_column": 0, "create_index": 1}
        assert _live_tables(connection) == {"posts", "comments"}
        try:
            assert connection.read_catalog().has_index("comments_post_id")
        finally:
            connection.end_read()

    def test_second_run_is_empty(
        self, connection: SqliteConnection, blog_schema: SchemaModel
    ) -> None:
        apply_migration(connection, blog_schema)

        assert apply_migration(connection, blog_schema).is_empty

    def test_ddl_failure_rolls_back_every_operation(
        self, connection: SqliteConnection, blog_schema: SchemaModel
    ) -> None:
        # Given: the index statement fails after both tables were created
        real_execute = connection.execute

        def failing_execute(handle, values):  # type: ignore[no-untyped-def]
            if handle.sql.startswith("CREATE INDEX"):
                raise ExecutionError.engine_error(handle.sql, "disk I/O error")
            return real_execute(handle, values)

        # When
        with (
            patch.object(connection, "execute", side_effect=failing_execute),
            pytest.raises(MigrationError) as exc_info,
        ):
            apply_migration(connection, blog_schema)

        # Then
        assert exc_info.value.code == ErrorCode.MIGRATION_DDL_FAILED
        assert exc_info.value.details["reason"] == "disk I/O error"
        assert _live_tables(connection) == set()

    def test_planning_error_leaves_database_untouched(
        self, connection: SqliteConnection, posts_table: TableDescription
    ) -> None:
        apply_migration(connection, SchemaModel.build([posts_table]))
        strict = TableDescription(
            "posts",
            (*posts_table.columns, ColumnDescription("title", ColumnKind.TEXT, not_null=True)),
        )

        with pytest.raises(MigrationError):
            apply_migration(connection, SchemaModel.build([strict]))

        live = connection.read_catalog()
        connection.end_read()
        posts = live.find_table("posts")
        assert posts is not None and posts.column("title") is None


class TestReadOnly:
    def test_read_only_up_to_date(self, tmp_path: Path, posts_schema: SchemaModel) -> None:
        # Given
        path = str(tmp_path / "ro.db")
        writable = DatabaseConfig(path=path, journal_mode="DELETE")
        engine = create_sqlite_engine(writable)
        conn = SqliteConnection(engine, writable)
        apply_migration(conn, posts_schema)
        conn.close()
        engine.dispose()

        read_only = DatabaseConfig(path=path, read_only=True)
        engine = create_sqlite_engine(read_only)
        conn = SqliteConnection(engine, read_only)

        # When / Then
        try:
            assert apply_migration(conn, posts_schema, read_only=True).is_empty
            extra = TableDescription(
                "tags", (ColumnDescription("id", ColumnKind.INTEGER, primary_key=True),)
            )
            with pytest.raises(MigrationError) as exc_info:
                apply_migration(
                    conn,
                    SchemaModel.build([posts_schema.tables["posts"], extra]),
                    read_only=True,
                )
            assert "read-only" in exc_info.value.details["reason"]
        finally:
            conn.close()
            engine.dispose()

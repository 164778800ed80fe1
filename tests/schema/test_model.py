"""Tests for declared and live schema descriptions."""

import pytest

from rizz.core.errors import ErrorCode, QueryBuildError, SchemaError
from rizz.schema.model import (
    ColumnDescription,
    ColumnKind,
    ForeignKey,
    IndexDescription,
    LiveSchema,
    SchemaModel,
    TableDescription,
    order_by_foreign_keys,
)


def _table(name: str, *refs: str) -> TableDescription:
    columns = [ColumnDescription("id", ColumnKind.INTEGER, primary_key=True)]
    columns += [
        ColumnDescription(f"{ref}_id", ColumnKind.INTEGER, references=ForeignKey(ref, "id"))
        for ref in refs
    ]
    return TableDescription(name, tuple(columns))


class TestColumnKind:
    @pytest.mark.parametrize(
        ("declared", "kind"),
        [
            ("INTEGER", ColumnKind.INTEGER),
            ("BIGINT", ColumnKind.INTEGER),
            ("VARCHAR(20)", ColumnKind.TEXT),
            ("CLOB", ColumnKind.TEXT),
            ("BLOB", ColumnKind.BLOB),
            ("", ColumnKind.BLOB),
            (None, ColumnKind.BLOB),
            ("DOUBLE", ColumnKind.REAL),
            ("NUMERIC", ColumnKind.REAL),
        ],
    )
    def test_affinity_rules(self, declared: str | None, kind: ColumnKind) -> None:
        assert ColumnKind.from_declared_type(declared) == kind


class TestTableDescription:
    def test_column_lookup_ignores_case(self, posts_table: TableDescription) -> None:
        column = posts_table.column("BODY")
        assert column is not None
        assert column.name == "body"

    def test_primary_key(self, posts_table: TableDescription) -> None:
        assert posts_table.primary_key is not None
        assert posts_table.primary_key.name == "id"

    def test_columns_list_becomes_tuple(self) -> None:
        table = TableDescription(
            "t", [ColumnDescription("id", ColumnKind.INTEGER, primary_key=True)]  # type: ignore[arg-type]
        )
        assert isinstance(table.columns, tuple)


class TestIndexDescription:
    def test_on_names_index_after_table_and_columns(self) -> None:
        index = IndexDescription.on("comments", "post_id", "id", unique=True)

        assert index.name == "comments_post_id_id"
        assert index.columns == ("post_id", "id")
        assert index.unique is True


class TestSchemaModelBuild:
    """SchemaModel.build validation."""

    def test_valid_schema(self, blog_schema: SchemaModel) -> None:
        assert set(blog_schema.tables) == {"posts", "comments"}
        assert "comments_post_id" in blog_schema.indexes

    def test_duplicate_table(self, posts_table: TableDescription) -> None:
        with pytest.raises(SchemaError) as exc_info:
            SchemaModel.build([posts_table, posts_table])
        assert exc_info.value.code == ErrorCode.SCHEMA_DUPLICATE_TABLE

    def test_duplicate_column_ignores_case(self) -> None:
        table = TableDescription(
            "t",
            (
                ColumnDescription("id", ColumnKind.INTEGER, primary_key=True),
                ColumnDescription("Name", ColumnKind.TEXT),
                ColumnDescription("name", ColumnKind.TEXT),
            ),
        )
        with pytest.raises(SchemaError) as exc_info:
            SchemaModel.build([table])
        assert exc_info.value.code == ErrorCode.SCHEMA_DUPLICATE_COLUMN

    @pytest.mark.parametrize("keys", [0, 2])
    def test_requires_exactly_one_primary_key(self, keys: int) -> None:
        columns = tuple(
            ColumnDescription(f"c{i}", ColumnKind.INTEGER, primary_key=i < keys) for i in range(3)
        )
        with pytest.raises(SchemaError) as exc_info:
            SchemaModel.build([TableDescription("t", columns)])
        assert exc_info.value.code == ErrorCode.SCHEMA_PRIMARY_KEY

    def test_dangling_foreign_key(self, comments_table: TableDescription) -> None:
        with pytest.raises(SchemaError) as exc_info:
            SchemaModel.build([comments_table])
        assert exc_info.value.code == ErrorCode.SCHEMA_DANGLING_FOREIGN_KEY

    def test_foreign_key_cycle(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            SchemaModel.build([_table("a", "b"), _table("b", "a")])
        assert exc_info.value.code == ErrorCode.SCHEMA_FOREIGN_KEY_CYCLE

    def test_self_reference_allowed(self) -> None:
        schema = SchemaModel.build([_table("nodes", "nodes")])
        assert "nodes" in schema.tables

    def test_index_on_unknown_column(self, posts_table: TableDescription) -> None:
        with pytest.raises(SchemaError) as exc_info:
            SchemaModel.build([posts_table], [IndexDescription.on("posts", "title")])
        assert exc_info.value.code == ErrorCode.SCHEMA_INVALID_INDEX

    def test_duplicate_index(self, posts_table: TableDescription) -> None:
        index = IndexDescription.on("posts", "body")
        with pytest.raises(SchemaError) as exc_info:
            SchemaModel.build([posts_table], [index, index])
        assert exc_info.value.code == ErrorCode.SCHEMA_DUPLICATE_INDEX


class TestOrderByForeignKeys:
    def test_referenced_tables_come_first(self) -> None:
        ordered, cycle = order_by_foreign_keys([_table("c", "b"), _table("b", "a"), _table("a")])

        assert [t.name for t in ordered] == ["a", "b", "c"]
        assert cycle == []

    def test_ties_keep_declaration_order(self) -> None:
        ordered, _ = order_by_foreign_keys([_table("z"), _table("y"), _table("x")])
        assert [t.name for t in ordered] == ["z", "y", "x"]

    def test_references_outside_input_ignored(self) -> None:
        ordered, cycle = order_by_foreign_keys([_table("comments", "posts")])
        assert [t.name for t in ordered] == ["comments"]
        assert cycle == []

    def test_cycle_reported(self) -> None:
        ordered, cycle = order_by_foreign_keys([_table("a", "b"), _table("b", "a"), _table("c")])

        assert [t.name for t in ordered] == ["c"]
        assert sorted(cycle) == ["a", "b"]


class TestTableRef:
    def test_column_access(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        assert posts.c.body.name == "body"
        assert posts["id"].table == "posts"
        assert [c.name for c in posts.columns] == ["id", "body"]

    def test_unknown_table(self, blog_schema: SchemaModel) -> None:
        with pytest.raises(QueryBuildError) as exc_info:
            blog_schema.table("users")
        assert exc_info.value.code == ErrorCode.QUERY_UNKNOWN_TABLE

    def test_unknown_column(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        with pytest.raises(QueryBuildError) as exc_info:
            posts.c.title  # noqa: B018
        assert exc_info.value.code == ErrorCode.QUERY_UNKNOWN_COLUMN


class TestLiveSchema:
    def test_lookups_ignore_case(self, posts_table: TableDescription) -> None:
        live = LiveSchema.of([posts_table], [IndexDescription.on("posts", "body")])

        assert live.find_table("POSTS") is posts_table
        assert live.find_table("comments") is None
        assert live.has_index("Posts_Body")

"""Tests for rendering statements to SQLite text.

Covers:
- DDL forms
- SELECT / INSERT / UPDATE / DELETE forms, including RETURNING
- Predicate parenthesization
- Compile determinism and binding order
- CompiledStatement.bind
"""

import pytest

from rizz.core.errors import ErrorCode, ExecutionError, QueryBuildError
from rizz.query import (
    add_column,
    and_,
    count,
    create_index,
    create_table,
    delete_from,
    drop_index,
    eq,
    gt,
    insert_into,
    is_null,
    like,
    lit,
    lt,
    or_,
    param,
    select,
    update,
)
from rizz.query.compiler import quote_identifier, render_literal
from rizz.schema.model import (
    ColumnDescription,
    ColumnKind,
    ForeignKey,
    IndexDescription,
    SchemaModel,
    TableDescription,
)


class TestDDL:
    def test_create_table_posts(self, posts_table: TableDescription) -> None:
        assert create_table(posts_table).sql == (
            'CREATE TABLE "posts" ("id" INTEGER PRIMARY KEY, "body" TEXT NOT NULL)'
        )

    def test_create_table_with_reference(self, comments_table: TableDescription) -> None:
        assert create_table(comments_table).sql == (
            'CREATE TABLE "comments" ("id" INTEGER PRIMARY KEY, '
            '"post_id" INTEGER NOT NULL REFERENCES "posts"("id"), '
            '"body" TEXT NOT NULL)'
        )

    def test_column_constraint_order(self) -> None:
        column = ColumnDescription(
            "slug",
            ColumnKind.TEXT,
            not_null=True,
            unique=True,
            default="''",
            references=ForeignKey("pages", "slug"),
        )
        table = TableDescription(
            "links", (ColumnDescription("id", ColumnKind.INTEGER, primary_key=True), column)
        )

        assert create_table(table).sql == (
            'CREATE TABLE "links" ("id" INTEGER PRIMARY KEY, '
            '"slug" TEXT UNIQUE NOT NULL DEFAULT \'\' REFERENCES "pages"("slug"))'
        )

    def test_add_column(self) -> None:
        column = ColumnDescription("title", ColumnKind.TEXT, not_null=True, default="'untitled'")
        compiled = add_column("posts", column).compile()

        assert compiled.sql == (
            'ALTER TABLE "posts" ADD COLUMN "title" TEXT NOT NULL DEFAULT \'untitled\''
        )
        assert compiled.is_ddl and compiled.is_write and not compiled.returns_rows

    def test_create_and_drop_index(self) -> None:
        index = IndexDescription.on("posts", "body", unique=True)

        assert create_index(index).sql == (
            'CREATE UNIQUE INDEX IF NOT EXISTS "posts_body" ON "posts" ("body")'
        )
        assert drop_index(index).sql == 'DROP INDEX IF EXISTS "posts_body"'

    def test_multi_column_index(self) -> None:
        index = IndexDescription.on("comments", "post_id", "id")
        assert create_index(index).sql == (
            'CREATE INDEX IF NOT EXISTS "comments_post_id_id" ON "comments" ("post_id", "id")'
        )


class TestSelect:
    def test_select_all_columns(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        compiled = select().from_(posts).compile()

        assert compiled.sql == 'SELECT "posts"."id", "posts"."body" FROM "posts"'
        assert compiled.result_columns == (("posts", "id"), ("posts", "body"))
        assert compiled.returns_rows and not compiled.is_write
        assert compiled.placeholder_count == 0

    def test_select_where_order_limit(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        compiled = (
            select(posts.c.body)
            .from_(posts)
            .where(gt(posts.c.id, 10))
            .order_by(posts.c.id, descending=True)
            .limit(5)
            .compile()
        )

        assert compiled.sql == (
            'SELECT "posts"."body" FROM "posts" WHERE "posts"."id" > ? '
            'ORDER BY "posts"."id" DESC LIMIT ?'
        )
        assert [slot.value for slot in compiled.bindings] == [10, 5]

    def test_inner_join_expands_both_tables(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        comments = blog_schema.table("comments")

        sql = (
            select()
            .from_(comments)
            .inner_join(posts, eq(comments.c.post_id, posts.c.id))
            .sql
        )

        assert sql == (
            'SELECT "comments"."id", "comments"."post_id", "comments"."body", '
            '"posts"."id", "posts"."body" FROM "comments" '
            'INNER JOIN "posts" ON "comments"."post_id" = "posts"."id"'
        )

    def test_count(self, blog_schema: SchemaModel) -> None:
        comments = blog_schema.table("comments")

        compiled = select(count()).from_(comments).where(eq(comments.c.post_id, 1)).compile()

        assert compiled.sql == (
            'SELECT COUNT(*) AS "count" FROM "comments" WHERE "comments"."post_id" = ?'
        )
        assert compiled.result_columns == (("", "count"),)

    def test_missing_from_is_incomplete(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        with pytest.raises(QueryBuildError) as exc_info:
            select(posts.c.id).compile()
        assert exc_info.value.code == ErrorCode.QUERY_INCOMPLETE

    def test_column_outside_scope_rejected(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        comments = blog_schema.table("comments")

        with pytest.raises(QueryBuildError) as exc_info:
            select(comments.c.body).from_(posts).compile()
        assert exc_info.value.code == ErrorCode.QUERY_TABLE_NOT_IN_SCOPE

    def test_literal_is_inlined(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        compiled = select().from_(posts).where(eq(posts.c.body, lit("it's"))).compile()

        assert compiled.sql.endswith(""""posts"."body" = 'it''s'""")
        assert compiled.placeholder_count == 0

    def test_is_null(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        assert select().from_(posts).where(is_null(posts.c.body)).sql.endswith(
            '"posts"."body" IS NULL'
        )


class TestPredicates:
    def test_or_inside_and_is_parenthesized(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        predicate = and_(
            gt(posts.c.id, 1),
            or_(eq(posts.c.body, "a"), like(posts.c.body, "b%")),
        )

        sql = select(posts.c.id).from_(posts).where(predicate).sql

        assert sql.endswith(
            'WHERE "posts"."id" > ? AND ("posts"."body" = ? OR "posts"."body" LIKE ?)'
        )

    def test_and_inside_or_needs_no_parentheses(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        predicate = or_(
            and_(gt(posts.c.id, 1), lt(posts.c.id, 5)),
            eq(posts.c.body, "x"),
        )

        sql = select(posts.c.id).from_(posts).where(predicate).sql

        assert sql.endswith(
            'WHERE "posts"."id" > ? AND "posts"."id" < ? OR "posts"."body" = ?'
        )

    def test_chained_where_calls_are_anded(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        sql = (
            select(posts.c.id)
            .from_(posts)
            .where(gt(posts.c.id, 1))
            .where(lt(posts.c.id, 9))
            .sql
        )

        assert sql.endswith('WHERE "posts"."id" > ? AND "posts"."id" < ?')

    def test_nested_same_kind_is_flattened(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        a, b, c = (eq(posts.c.id, i) for i in range(3))

        assert and_(and_(a, b), c) == and_(a, b, c)
        assert or_(a) is a


class TestWrites:
    def test_insert_follows_declared_column_order(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        compiled = insert_into(posts).values({"body": "hello", "id": 1}).compile()

        assert compiled.sql == 'INSERT INTO "posts" ("id", "body") VALUES (?, ?)'
        assert compiled.bind() == (1, "hello")
        assert compiled.is_write and not compiled.returns_rows

    def test_insert_returning(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        compiled = insert_into(posts).values({"body": "hello"}).returning().compile()

        assert compiled.sql == 'INSERT INTO "posts" ("body") VALUES (?) RETURNING *'
        assert compiled.returns_rows
        assert compiled.result_columns == (("posts", "id"), ("posts", "body"))

    def test_update_returning(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        sql = (
            update(posts)
            .set({"body": "goodbye"})
            .where(eq(posts.c.id, 1))
            .returning()
            .sql
        )

        assert sql == 'UPDATE "posts" SET "body" = ? WHERE "posts"."id" = ? RETURNING *'

    def test_delete(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        assert delete_from(posts).sql == 'DELETE FROM "posts"'
        assert delete_from(posts).where(eq(posts.c.id, 1)).returning().sql == (
            'DELETE FROM "posts" WHERE "posts"."id" = ? RETURNING *'
        )

    def test_update_without_values_incomplete(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        with pytest.raises(QueryBuildError) as exc_info:
            update(posts).where(eq(posts.c.id, 1)).compile()
        assert exc_info.value.code == ErrorCode.QUERY_INCOMPLETE

    def test_update_where_on_other_table_rejected(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        comments = blog_schema.table("comments")

        with pytest.raises(QueryBuildError):
            update(posts).set({"body": "x"}).where(eq(comments.c.id, 1))

    def test_unknown_column_in_values(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        with pytest.raises(QueryBuildError) as exc_info:
            insert_into(posts).values({"title": "x"})
        assert exc_info.value.code == ErrorCode.QUERY_UNKNOWN_COLUMN


class TestDeterminism:
    def test_equal_statements_compile_identically(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        def build() -> str:
            return (
                select(posts.c.id, posts.c.body)
                .from_(posts)
                .where(and_(gt(posts.c.id, 3), eq(posts.c.body, "x")))
                .order_by(posts.c.id)
                .limit(2)
                .sql
            )

        assert build() == build()

    def test_values_do_not_change_text(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")

        first = select().from_(posts).where(eq(posts.c.id, 1)).sql
        second = select().from_(posts).where(eq(posts.c.id, 2)).sql

        assert first == second

    def test_builders_do_not_mutate_receiver(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        base = select().from_(posts)

        base.where(eq(posts.c.id, 1))

        assert base.predicate is None


class TestBind:
    def test_named_parameters(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        compiled = (
            select().from_(posts).where(and_(gt(posts.c.id, param("low")), lt(posts.c.id, 9)))
        ).compile()

        assert compiled.bind({"low": 4}) == (4, 9)

    def test_unbound_named_parameter(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        compiled = select().from_(posts).where(eq(posts.c.id, param("id"))).compile()

        with pytest.raises(ExecutionError) as exc_info:
            compiled.bind()
        assert exc_info.value.code == ErrorCode.EXECUTION_BINDING_MISMATCH

    def test_positional_count_mismatch(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        compiled = select().from_(posts).where(eq(posts.c.id, 1)).compile()

        with pytest.raises(ExecutionError) as exc_info:
            compiled.bind([1, 2])
        assert exc_info.value.details["expected"] == 1
        assert exc_info.value.details["got"] == 2

    def test_positional_replaces_captured_values(self, blog_schema: SchemaModel) -> None:
        posts = blog_schema.table("posts")
        compiled = select().from_(posts).where(eq(posts.c.id, 1)).compile()

        assert compiled.bind([7]) == (7,)


class TestHelpers:
    def test_quote_identifier_escapes_quotes(self) -> None:
        assert quote_identifier('we"ird') == '"we""ird"'

    @pytest.mark.parametrize(
        ("value", "rendered"),
        [
            (None, "NULL"),
            (True, "1"),
            (3, "3"),
            (1.5, "1.5"),
            ("a'b", "'a''b'"),
            (b"\x01\xff", "X'01ff'"),
        ],
    )
    def test_render_literal(self, value: object, rendered: str) -> None:
        assert render_literal(value) == rendered

    def test_render_literal_rejects_nan(self) -> None:
        with pytest.raises(QueryBuildError):
            render_literal(float("nan"))

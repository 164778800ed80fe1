"""Tests for mapping result rows onto pydantic row models."""

from typing import ClassVar

import pytest
from pydantic import BaseModel, Field

from rizz.core.errors import ErrorCode, ShapeMismatch
from rizz.db.rows import RowMapper
from rizz.schema.model import SchemaModel


class Post(BaseModel):
    __tablename__: ClassVar[str] = "posts"

    id: int
    body: str


class Comment(BaseModel):
    __tablename__: ClassVar[str] = "comments"

    id: int
    post_id: int
    body: str


class CommentWithPost(BaseModel):
    comment: Comment
    post: Post


class PostBody(BaseModel):
    text: str = Field(alias="body")


class CommentCount(BaseModel):
    count: int


class Loose(BaseModel):
    id: int
    note: str | None = None


@pytest.fixture
def mapper(blog_schema: SchemaModel) -> RowMapper:
    return RowMapper(blog_schema)


class TestPlainShapes:
    def test_table_bound_model(self, mapper: RowMapper) -> None:
        rows = mapper.map_rows(("id", "body"), [(1, "hello"), (2, "bye")], Post)

        assert rows == [Post(id=1, body="hello"), Post(id=2, body="bye")]

    def test_column_order_does_not_matter(self, mapper: RowMapper) -> None:
        rows = mapper.map_rows(("body", "id"), [("hello", 1)], Post)
        assert rows == [Post(id=1, body="hello")]

    def test_table_bound_model_needs_full_column_set(self, mapper: RowMapper) -> None:
        with pytest.raises(ShapeMismatch) as exc_info:
            mapper.map_rows(("id",), [(1,)], Post)
        assert exc_info.value.code == ErrorCode.SHAPE_COLUMN_SET

    def test_alias_maps_column(self, mapper: RowMapper) -> None:
        rows = mapper.map_rows(("body",), [("hello",)], PostBody)
        assert rows[0].text == "hello"

    def test_aggregate_into_unbound_model(self, mapper: RowMapper) -> None:
        rows = mapper.map_rows(("count",), [(3,)], CommentCount)
        assert rows == [CommentCount(count=3)]

    def test_missing_required_field(self, mapper: RowMapper) -> None:
        with pytest.raises(ShapeMismatch) as exc_info:
            mapper.map_rows(("count",), [(3,)], Loose)
        assert exc_info.value.code == ErrorCode.SHAPE_MISSING_COLUMN

    def test_optional_field_may_be_absent(self, mapper: RowMapper) -> None:
        rows = mapper.map_rows(("id",), [(9,)], Loose)
        assert rows == [Loose(id=9)]

    def test_duplicated_source_column(self, mapper: RowMapper) -> None:
        with pytest.raises(ShapeMismatch) as exc_info:
            mapper.map_rows(("id", "id"), [(1, 2)], Loose)
        assert exc_info.value.code == ErrorCode.SHAPE_AMBIGUOUS_COLUMN

    def test_value_that_fails_validation(self, mapper: RowMapper) -> None:
        with pytest.raises(ShapeMismatch) as exc_info:
            mapper.map_rows(("id", "body"), [(None, "x")], Post)
        assert exc_info.value.code == ErrorCode.SHAPE_INVALID_MODEL

    def test_no_model_gives_dicts(self, mapper: RowMapper) -> None:
        rows = mapper.map_rows(("id", "body"), [(1, "a")])
        assert rows == [{"id": 1, "body": "a"}]

    def test_joined_dict_rows_keep_every_column(self, mapper: RowMapper) -> None:
        # Given
        columns = ("id", "post_id", "body", "id", "body")
        sources = (
            ("comments", "id"),
            ("comments", "post_id"),
            ("comments", "body"),
            ("posts", "id"),
            ("posts", "body"),
        )

        # When
        rows = mapper.map_rows(columns, [(1, 7, "c1", 7, "hi")], sources=sources)

        # Then
        assert rows == [
            {
                "comments.id": 1,
                "post_id": 7,
                "comments.body": "c1",
                "posts.id": 7,
                "posts.body": "hi",
            }
        ]

    def test_duplicated_dict_column_without_sources_rejected(self, mapper: RowMapper) -> None:
        with pytest.raises(ShapeMismatch) as exc_info:
            mapper.map_rows(("id", "id"), [(1, 7)])
        assert exc_info.value.code == ErrorCode.SHAPE_AMBIGUOUS_COLUMN


class TestCompositeShapes:
    def test_join_row_sliced_per_part(self, mapper: RowMapper) -> None:
        # Given
        columns = ("id", "post_id", "body", "id", "body")
        row = (10, 1, "nice post", 1, "hello")

        # When
        rows = mapper.map_rows(columns, [row], CommentWithPost)

        # Then
        assert rows == [
            CommentWithPost(
                comment=Comment(id=10, post_id=1, body="nice post"),
                post=Post(id=1, body="hello"),
            )
        ]

    def test_width_mismatch(self, mapper: RowMapper) -> None:
        with pytest.raises(ShapeMismatch) as exc_info:
            mapper.map_rows(("id", "post_id", "body", "id"), [(1, 1, "x", 1)], CommentWithPost)
        assert exc_info.value.code == ErrorCode.SHAPE_WIDTH

    def test_shape_width(self, mapper: RowMapper) -> None:
        shape = mapper.shape(CommentWithPost)

        assert shape.is_composite
        assert shape.width == 5


class TestShapeAnalysis:
    def test_shapes_cached_per_class(self, mapper: RowMapper) -> None:
        assert mapper.shape(Post) is mapper.shape(Post)

    def test_mixed_composite_rejected(self, mapper: RowMapper) -> None:
        class Mixed(BaseModel):
            post: Post
            extra: int

        with pytest.raises(ShapeMismatch) as exc_info:
            mapper.register(Mixed)
        assert exc_info.value.code == ErrorCode.SHAPE_INVALID_MODEL

    def test_undeclared_table_rejected(self, mapper: RowMapper) -> None:
        class User(BaseModel):
            __tablename__: ClassVar[str] = "users"

            id: int

        with pytest.raises(ShapeMismatch):
            mapper.shape(User)

    def test_field_not_on_bound_table_rejected(self, mapper: RowMapper) -> None:
        class BadPost(BaseModel):
            __tablename__: ClassVar[str] = "posts"

            id: int
            title: str

        with pytest.raises(ShapeMismatch):
            mapper.shape(BadPost)

"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides the blog schema (posts and comments) most tests build on.
"""

import sys
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local rizz package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of rizz modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("rizz"):
        del sys.modules[module_name]

from rizz.config.models import DatabaseConfig  # noqa: E402
from rizz.schema.model import (  # noqa: E402
    ColumnDescription,
    ColumnKind,
    ForeignKey,
    IndexDescription,
    SchemaModel,
    TableDescription,
)


@pytest.fixture
def posts_table() -> TableDescription:
    return TableDescription(
        name="posts",
        columns=(
            ColumnDescription("id", ColumnKind.INTEGER, primary_key=True),
            ColumnDescription("body", ColumnKind.TEXT, not_null=True),
        ),
    )


@pytest.fixture
def comments_table() -> TableDescription:
    return TableDescription(
        name="comments",
        columns=(
            ColumnDescription("id", ColumnKind.INTEGER, primary_key=True),
            ColumnDescription(
                "post_id",
                ColumnKind.INTEGER,
                not_null=True,
                references=ForeignKey("posts", "id"),
            ),
            ColumnDescription("body", ColumnKind.TEXT, not_null=True),
        ),
    )


@pytest.fixture
def posts_schema(posts_table: TableDescription) -> SchemaModel:
    return SchemaModel.build([posts_table])


@pytest.fixture
def blog_schema(posts_table: TableDescription, comments_table: TableDescription) -> SchemaModel:
    """Comments declared first so creation order has to follow the foreign key."""
    return SchemaModel.build(
        [comments_table, posts_table],
        [IndexDescription.on("comments", "post_id")],
    )


@pytest.fixture
def memory_config() -> DatabaseConfig:
    return DatabaseConfig()


@pytest.fixture
def file_config(tmp_path: Path) -> DatabaseConfig:
    return DatabaseConfig(path=str(tmp_path / "blog.db"), read_pool_size=2)

"""Statement builder: immutable ASTs, predicates and the SQL compiler."""

from rizz.query.ast import (
    AddColumn,
    Count,
    CreateIndex,
    CreateTable,
    DDLOperation,
    Delete,
    DropIndex,
    Insert,
    Join,
    Select,
    Statement,
    Update,
    add_column,
    count,
    create_index,
    create_table,
    delete_from,
    drop_index,
    insert_into,
    select,
    update,
)
from rizz.query.compiler import (
    BindSlot,
    CompiledStatement,
    SqlCompiler,
    compile_statement,
    quote_identifier,
    render_literal,
)
from rizz.query.predicates import (
    And,
    Comparison,
    Literal,
    Or,
    Param,
    Predicate,
    and_,
    eq,
    ge,
    gt,
    is_not_null,
    is_null,
    le,
    like,
    lit,
    lt,
    ne,
    or_,
    param,
)

__all__ = [
    # AST
    "AddColumn",
    "Count",
    "CreateIndex",
    "CreateTable",
    "DDLOperation",
    "Delete",
    "DropIndex",
    "Insert",
    "Join",
    "Select",
    "Statement",
    "Update",
    "add_column",
    "count",
    "create_index",
    "create_table",
    "delete_from",
    "drop_index",
    "insert_into",
    "select",
    "update",
    # Compiler
    "BindSlot",
    "CompiledStatement",
    "SqlCompiler",
    "compile_statement",
    "quote_identifier",
    "render_literal",
    # Predicates
    "And",
    "Comparison",
    "Literal",
    "Or",
    "Param",
    "Predicate",
    "and_",
    "eq",
    "ge",
    "gt",
    "is_not_null",
    "is_null",
    "le",
    "like",
    "lit",
    "lt",
    "ne",
    "or_",
    "param",
]

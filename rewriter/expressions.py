# ============================================================================
# EXPRESSION SYNTHESIZER
# ============================================================================
# STATUS: Rewriter - Identity/revision expression builders
# PURPOSE: Build composite identity and revision targets from table references
# CREATED: 18 OCT 2026
# DEPENDENCIES: sqlglot
# ============================================================================
"""
Expression Synthesizer

Leaf builders plus the two composite targets injected into every SELECT.

Identity
    Each table contributes ``<ref>.<identity> || '|'``. Plain queries
    concatenate the per-table values of the row. Grouped queries fold every
    contributing row of a table with an ordered string_agg (so row order
    does not matter), hash the fold with md5, then concatenate the hashes.

Revision
    Plain queries take GREATEST over the per-table revision columns of the
    row. Grouped queries aggregate MAX per table first, then GREATEST across
    tables. Swapping the two steps is wrong for grouped multi-table queries.

Derived tables (subqueries, CTE references) contribute the identity/revision
outputs already synthesized inside them, which is what lets composition
nest to any depth.

All identifiers are emitted quoted so configured names survive deparsing.
"""

from typing import Dict, Iterable, List, Sequence, Union

from sqlglot import exp

from core.config import RowIdentityConfig
from core.contracts import TableKey, TableReference

SEPARATOR = "|"


# ============================================================================
# LEAF BUILDERS
# ============================================================================

def identifier(name: str) -> exp.Identifier:
    return exp.to_identifier(name, quoted=True)


def column_ref(parts: Sequence[str]) -> exp.Column:
    """
    Column reference from qualifier parts plus the column name.

    ``["public", "users", "__id__"]`` -> ``"public"."users"."__id__"``
    """
    if not parts:
        raise ValueError("A column reference needs at least a column name")

    *qualifiers, column = parts
    if len(qualifiers) > 3:
        raise ValueError(f"Too many qualifiers for a column reference: {parts}")

    args = {"this": identifier(column)}
    for key, part in zip(("table", "db", "catalog"), reversed(qualifiers)):
        args[key] = identifier(part)
    return exp.Column(**args)


def function_call(name: str, args: Iterable[exp.Expression]) -> exp.Expression:
    """Call of a function by name (emitted as written, lower case)."""
    return exp.Anonymous(this=name.lower(), expressions=list(args))


def literal(value: Union[str, int, float]) -> exp.Literal:
    """Typed literal: strings quoted, integers and floats as numbers."""
    if isinstance(value, bool):
        raise TypeError("Boolean literals are not supported")
    if isinstance(value, (int, float)):
        return exp.Literal.number(value)
    if isinstance(value, str):
        return exp.Literal.string(value)
    raise TypeError(f"Unsupported literal type: {type(value).__name__}")


def concat(left: exp.Expression, right: exp.Expression) -> exp.DPipe:
    """``left || right``"""
    return exp.DPipe(this=left, expression=right)


def concat_all(nodes: Sequence[exp.Expression]) -> exp.Expression:
    """Right-nested ``||`` chain; a single node is returned unchanged."""
    if not nodes:
        raise ValueError("Nothing to concatenate")
    if len(nodes) == 1:
        return nodes[0]
    return concat(nodes[0], concat_all(nodes[1:]))


def min_max(nodes: Sequence[exp.Expression], mode: str) -> exp.Expression:
    """LEAST/GREATEST across nodes; a single node is returned unchanged."""
    if not nodes:
        raise ValueError("min_max needs at least one node")
    if mode not in ("min", "max"):
        raise ValueError(f"Unknown min_max mode: {mode}")
    if len(nodes) == 1:
        return nodes[0]

    func = exp.Least if mode == "min" else exp.Greatest
    return func(this=nodes[0], expressions=list(nodes[1:]))


def ordered(node: exp.Expression, by: exp.Expression) -> exp.Order:
    """``node ORDER BY by``, for ordered aggregate arguments."""
    return exp.Order(this=node, expressions=[exp.Ordered(this=by)])


def target(node: exp.Expression, name: str) -> exp.Alias:
    """Named output target: ``node AS "name"``."""
    return exp.Alias(this=node, alias=identifier(name))


# ============================================================================
# COMPOSITE TARGETS
# ============================================================================

def _source_column(table: TableReference, column: str, output: str) -> exp.Column:
    if table.is_derived:
        return column_ref([table.alias, output])
    return column_ref(table.reference_parts() + [column])


def _require_tables(tables: Dict[TableKey, TableReference]) -> List[TableReference]:
    if not tables:
        raise ValueError("At least one table is required")
    return list(tables.values())


def composite_identity(
    tables: Dict[TableKey, TableReference],
    grouped: bool,
    config: RowIdentityConfig,
) -> exp.Alias:
    """
    Identity target summarizing every table contributing to an output row.
    """
    parts = []
    for table in _require_tables(tables):
        node = _source_column(table, config.identity_column, config.identity_output)
        node = concat(node, literal(SEPARATOR))

        if grouped:
            node = function_call(
                "string_agg",
                [node, ordered(literal(SEPARATOR), node.copy())],
            )
            node = exp.MD5(this=node)

        parts.append(node)

    return target(concat_all(parts), config.identity_output)


def composite_revision(
    tables: Dict[TableKey, TableReference],
    grouped: bool,
    config: RowIdentityConfig,
) -> exp.Alias:
    """
    Revision target: the latest revision among contributing rows.
    """
    parts = []
    for table in _require_tables(tables):
        node = _source_column(table, config.revision_column, config.revision_output)

        if grouped:
            node = exp.Max(this=node)

        parts.append(node)

    return target(min_max(parts, "max"), config.revision_output)


__all__ = [
    "SEPARATOR",
    "identifier",
    "column_ref",
    "function_call",
    "literal",
    "concat",
    "concat_all",
    "min_max",
    "ordered",
    "target",
    "composite_identity",
    "composite_revision",
]

# ============================================================================
# META-COLUMN INJECTOR
# ============================================================================
# STATUS: Rewriter - Tree mutation
# PURPOSE: Prepend identity/revision targets to every SELECT body with a FROM
# CREATED: 18 OCT 2026
# DEPENDENCIES: sqlglot
# ============================================================================
"""
Meta-Column Injector

Walks a statement at every depth. Each SELECT body with a FROM clause gets
two targets prepended, identity first, then revision:

    SELECT name FROM users
    ->
    SELECT "public"."users"."__id__" || '|' AS "__id__'",
           "public"."users"."__rev__" AS "__rev__'",
           name
    FROM users

Bodies are rewritten innermost first, so when an outer SELECT reads from a
derived table the synthesized columns of that derived table already exist
and are reused rather than recomputed. A derived table whose body ends up
without synthesized columns (e.g. ``(SELECT 1) AS s``) does not contribute.

Only target lists change; WHERE/JOIN/GROUP/ORDER/LIMIT are left as written.
The one exception is a column alias list on a derived table or CTE, e.g.
``AS sub(x)``: it names outputs by position, so the two synthesized names
are prepended to it to keep ``x`` bound to the column it named before.
"""

from typing import Dict, Iterable, List, Optional, Set

from sqlglot import exp

from core.config import RowIdentityConfig
from core.logging import ComponentType, get_logger
from rewriter.expressions import composite_identity, composite_revision, identifier
from rewriter.resolver import collect_cte_names, identifier_name, resolve_tables

logger = get_logger(__name__, ComponentType.REWRITER)

_SET_OPERATIONS = (exp.Union, exp.Except, exp.Intersect)

# Built-in PostgreSQL aggregates. sqlglot only types some of them as AggFunc;
# the rest come back as Anonymous or plain Func nodes.
POSTGRES_AGGREGATES = frozenset({
    "array_agg", "avg", "bit_and", "bit_or", "bit_xor", "bool_and", "bool_or",
    "count", "every", "json_agg", "jsonb_agg", "json_object_agg",
    "jsonb_object_agg", "json_objectagg", "json_arrayagg", "max", "min",
    "range_agg", "range_intersect_agg", "string_agg", "sum", "xmlagg",
    "any_value", "corr", "covar_pop", "covar_samp", "regr_avgx", "regr_avgy",
    "regr_count", "regr_intercept", "regr_r2", "regr_slope", "regr_sxx",
    "regr_sxy", "regr_syy", "stddev", "stddev_pop", "stddev_samp", "variance",
    "var_pop", "var_samp", "mode", "percentile_cont", "percentile_disc",
})


def _child(node: exp.Expression, kind) -> Optional[exp.Expression]:
    """First direct child of the given type."""
    for child in node.iter_expressions():
        if isinstance(child, kind):
            return child
    return None


def _function_name(node: exp.Expression) -> Optional[str]:
    if isinstance(node, exp.Anonymous):
        return node.name.lower()
    if isinstance(node, exp.Func):
        return node.sql_name().lower()
    return None


def is_aggregate_call(node: exp.Expression) -> bool:
    """Aggregate function call, or a call carrying WITHIN GROUP / FILTER."""
    if isinstance(node, (exp.AggFunc, exp.WithinGroup, exp.Filter)):
        return True
    return _function_name(node) in POSTGRES_AGGREGATES


def _has_aggregate(node: exp.Expression) -> bool:
    """Aggregate call in this expression, ignoring windows and subqueries."""
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, (exp.Window, exp.Subquery, exp.Select)):
            continue
        if is_aggregate_call(current):
            return True
        stack.extend(current.iter_expressions())
    return False


def is_grouped(select: exp.Select) -> bool:
    """
    Whether output rows of this body fold several input rows.

    True for GROUP BY, HAVING, or an aggregate in the body's own targets.
    """
    if _child(select, exp.Group) is not None or _child(select, exp.Having) is not None:
        return True
    return any(_has_aggregate(projection) for projection in select.expressions)


def from_sources(select: exp.Select) -> List[exp.Expression]:
    """FROM clause plus any JOINs of a SELECT body."""
    from_clause = _child(select, exp.From)
    if from_clause is None:
        return []
    joins = [child for child in select.iter_expressions() if isinstance(child, exp.Join)]
    return [from_clause, *joins]


class MetaColumnInjector:
    """
    Adds synthesized identity/revision targets to a parsed statement.

    Usage:
        injector = MetaColumnInjector(RowIdentityConfig())
        injector.inject(tree)   # mutates tree in place
    """

    def __init__(self, config: RowIdentityConfig):
        self.config = config

    def inject(self, tree: exp.Expression) -> int:
        """
        Rewrite every eligible SELECT body in place.

        Returns:
            Number of SELECT bodies that received synthesized targets
        """
        cte_names = collect_cte_names(tree)
        cte_bodies = {
            identifier_name(cte.args.get("alias")): cte.this
            for cte in tree.find_all(exp.CTE)
        }

        # Collected up front; reversed pre-order visits descendants first
        selects = list(tree.find_all(exp.Select, bfs=False))
        injected: Set[int] = set()

        for select in reversed(selects):
            if self._inject_select(select, cte_names, cte_bodies, injected):
                injected.add(id(select))

        renamed = self._extend_column_lists(tree, cte_bodies, injected)
        if renamed:
            logger.debug(f"Extended {renamed} derived-table column alias list(s)")

        logger.debug(f"Injected meta columns into {len(injected)}/{len(selects)} SELECT bodies")
        return len(injected)

    def _inject_select(
        self,
        select: exp.Select,
        cte_names: Iterable[str],
        cte_bodies: Dict[str, exp.Expression],
        injected: Set[int],
    ) -> bool:
        sources = from_sources(select)
        if not sources:
            return False

        tables = resolve_tables(
            sources,
            default_schema=self.config.default_schema,
            top_level_only=True,
            include_subselects=True,
            cte_names=cte_names,
        )

        # Derived tables only contribute if their body carries the columns
        bodies = self._derived_bodies(sources, cte_bodies)
        tables = {
            key: table for key, table in tables.items()
            if not table.is_derived or self._carries(bodies.get(table.alias), injected)
        }

        if not tables:
            logger.debug("No resolvable tables in FROM clause, SELECT left unchanged")
            return False

        grouped = is_grouped(select)
        identity = composite_identity(tables, grouped, self.config)
        revision = composite_revision(tables, grouped, self.config)

        select.set("expressions", [identity, revision, *select.expressions])
        return True

    def _extend_column_lists(
        self,
        tree: exp.Expression,
        cte_bodies: Dict[str, exp.Expression],
        injected: Set[int],
    ) -> int:
        """
        Prepend the synthesized names to derived-table column alias lists.

        Covers ``(...) AS sub(x)``, ``WITH r(x) AS (...)`` and a CTE
        reference renamed at its use site (``FROM r AS rr(x)``).
        """
        renamed = 0
        for node in list(tree.find_all(exp.Subquery, exp.CTE, exp.Table)):
            alias = node.args.get("alias")
            if not isinstance(alias, exp.TableAlias) or not alias.args.get("columns"):
                continue

            if isinstance(node, exp.Table):
                if node.args.get("db") is not None or not isinstance(node.this, exp.Identifier):
                    continue
                body = cte_bodies.get(identifier_name(node.this))
            else:
                body = node.this

            if not self._carries(body, injected):
                continue

            alias.set("columns", [
                identifier(self.config.identity_output),
                identifier(self.config.revision_output),
                *alias.args["columns"],
            ])
            renamed += 1
        return renamed

    @staticmethod
    def _derived_bodies(
        sources: List[exp.Expression],
        cte_bodies: Dict[str, exp.Expression],
    ) -> Dict[str, exp.Expression]:
        """Map derived-table alias -> body, for the sources of one SELECT."""
        bodies = {}
        stack = list(sources)
        while stack:
            node = stack.pop()
            if isinstance(node, exp.Select):
                continue
            if isinstance(node, exp.Subquery) and node.alias:
                bodies[identifier_name(node.args.get("alias"))] = node.this
            elif isinstance(node, exp.Table) and node.args.get("db") is None:
                name = identifier_name(node.this) if isinstance(node.this, exp.Identifier) else None
                if name in cte_bodies:
                    alias = identifier_name(node.args.get("alias")) or name
                    bodies[alias] = cte_bodies[name]
            stack.extend(node.iter_expressions())
        return bodies

    def _carries(self, body: Optional[exp.Expression], injected: Set[int]) -> bool:
        """Whether a derived-table body outputs the synthesized columns."""
        if body is None:
            return False
        if isinstance(body, exp.Select):
            return id(body) in injected
        if isinstance(body, _SET_OPERATIONS):
            return self._carries(body.this, injected) and self._carries(body.expression, injected)
        if isinstance(body, (exp.Subquery, exp.Paren)):
            return self._carries(body.this, injected)
        return False


def inject_meta_columns(tree: exp.Expression, config: RowIdentityConfig) -> int:
    """Convenience wrapper around MetaColumnInjector.inject()."""
    return MetaColumnInjector(config).inject(tree)


__all__ = [
    "POSTGRES_AGGREGATES",
    "MetaColumnInjector",
    "inject_meta_columns",
    "is_aggregate_call",
    "is_grouped",
    "from_sources",
]

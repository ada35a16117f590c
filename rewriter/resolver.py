# ============================================================================
# TABLE REFERENCE RESOLVER
# ============================================================================
# STATUS: Rewriter - Table discovery
# PURPOSE: Find the base and derived tables touched by a (sub)tree
# CREATED: 18 OCT 2026
# DEPENDENCIES: sqlglot, pydantic (TableReference)
# ============================================================================
"""
Table Reference Resolver

A tagged visitor over the node kinds the rewriter cares about:

    SELECT         a SELECT body; not entered below the root in top-level mode
    BASE_TABLE     a named table (schema defaulted when unqualified)
    DERIVED_TABLE  an aliased subquery, or a reference to a CTE
    OTHER          anything else; children are visited generically

Resolution is pure: the tree is never modified. The result maps each
fully-qualified key to its TableReference in discovery order, which fixes
the order of the synthesized expressions.

Known behaviour: several references to the same base table (a self-join,
with or without aliases) share one key and collapse into one entry. The
entry keeps its first position and the last alias seen.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Union

from sqlglot import exp

from core.contracts import TableKey, TableReference


class NodeKind(str, Enum):
    """Node kinds handled by the resolver."""
    SELECT = "select"
    BASE_TABLE = "base_table"
    DERIVED_TABLE = "derived_table"
    OTHER = "other"


def identifier_name(node: Optional[exp.Expression]) -> Optional[str]:
    """
    Name of an identifier as Postgres sees it.

    Unquoted identifiers fold to lower case; quoted ones are kept verbatim.
    """
    if node is None:
        return None
    if isinstance(node, exp.TableAlias):
        node = node.this
        if node is None:
            return None
    if isinstance(node, exp.Identifier):
        return node.this if node.quoted else node.this.lower()
    return node.name or None


def collect_cte_names(tree: exp.Expression) -> FrozenSet[str]:
    """Names of every CTE defined anywhere in a statement."""
    names = set()
    for cte in tree.find_all(exp.CTE):
        name = identifier_name(cte.args.get("alias"))
        if name:
            names.add(name)
    return frozenset(names)


class TableResolver:
    """
    Collects table references from a sqlglot tree.

    Args:
        default_schema: Schema assumed for unqualified base tables
        top_level_only: Stop at nested SELECT bodies (the root is entered)
        include_subselects: Capture derived tables as placeholder entries
        cte_names: CTE names in scope; matching unqualified tables are derived
    """

    def __init__(
        self,
        default_schema: str,
        top_level_only: bool = False,
        include_subselects: bool = False,
        cte_names: Iterable[str] = (),
    ):
        self.default_schema = default_schema
        self.top_level_only = top_level_only
        self.include_subselects = include_subselects
        self.cte_names = frozenset(cte_names)

        self._handlers = {
            NodeKind.SELECT: self._visit_select,
            NodeKind.BASE_TABLE: self._visit_base_table,
            NodeKind.DERIVED_TABLE: self._visit_derived_table,
            NodeKind.OTHER: self._visit_children,
        }

    def classify(self, node: exp.Expression) -> NodeKind:
        if isinstance(node, exp.Select):
            return NodeKind.SELECT
        if isinstance(node, exp.Table):
            if self._is_cte_reference(node):
                return NodeKind.DERIVED_TABLE
            if isinstance(node.this, exp.Identifier):
                return NodeKind.BASE_TABLE
            # Table functions and other unnamed sources are not resolvable
            return NodeKind.OTHER
        if isinstance(node, exp.Subquery) and node.alias:
            return NodeKind.DERIVED_TABLE
        return NodeKind.OTHER

    def resolve(
        self,
        node: Union[exp.Expression, Iterable[exp.Expression], None],
    ) -> Dict[TableKey, TableReference]:
        tables: Dict[TableKey, TableReference] = {}
        if node is None:
            return tables

        roots = [node] if isinstance(node, exp.Expression) else list(node)
        for root in roots:
            if root is not None:
                self._visit(root, tables, is_root=True)
        return tables

    # =========================================================================
    # VISITORS
    # =========================================================================

    def _visit(self, node: exp.Expression, tables: dict, is_root: bool = False) -> None:
        self._handlers[self.classify(node)](node, tables, is_root)

    def _visit_children(self, node: exp.Expression, tables: dict, is_root: bool = False) -> None:
        for child in node.iter_expressions():
            self._visit(child, tables)

    def _visit_select(self, node: exp.Select, tables: dict, is_root: bool = False) -> None:
        if self.top_level_only and not is_root:
            return
        self._visit_children(node, tables)

    def _visit_base_table(self, node: exp.Table, tables: dict, is_root: bool = False) -> None:
        schema = identifier_name(node.args.get("db")) or self.default_schema
        table = identifier_name(node.this)
        alias = identifier_name(node.args.get("alias"))

        ref = TableReference.base(schema, table, alias)
        tables[ref.key] = ref

    def _visit_derived_table(self, node: exp.Expression, tables: dict, is_root: bool = False) -> None:
        if self.include_subselects:
            alias = identifier_name(node.args.get("alias"))
            if alias is None and isinstance(node, exp.Table):
                alias = identifier_name(node.this)
            ref = TableReference.derived(alias)
            tables[ref.key] = ref

        # Keep walking: the subquery's own FROM may hold tables (full mode)
        self._visit_children(node, tables)

    def _is_cte_reference(self, node: exp.Table) -> bool:
        if not self.cte_names or node.args.get("db") is not None:
            return False
        return identifier_name(node.this) in self.cte_names


def resolve_tables(
    node: Union[exp.Expression, Iterable[exp.Expression], None],
    *,
    default_schema: str,
    top_level_only: bool = False,
    include_subselects: bool = False,
    cte_names: Iterable[str] = (),
) -> Dict[TableKey, TableReference]:
    """
    Resolve the tables touched by a tree (or a list of trees).

    Returns:
        Mapping of fully-qualified key to TableReference, in discovery order
    """
    resolver = TableResolver(
        default_schema=default_schema,
        top_level_only=top_level_only,
        include_subselects=include_subselects,
        cte_names=cte_names,
    )
    return resolver.resolve(node)


__all__ = [
    "NodeKind",
    "TableResolver",
    "resolve_tables",
    "collect_cte_names",
    "identifier_name",
]

"""
Claim query executor.

Evaluates a parsed SELECT query against a ``StatementStore``.

Translation strategy:
- One anchor pattern (``prop:`` or ``claim:`` predicate) seeds the search
  with a single capped statement lookup
- Each candidate statement becomes one result row
- ``qual:``/``ref:`` patterns on the statement variable are strict joins:
  a missing qualifier or reference removes the row
- Only requested variables are projected; missing ones are null-filled

Two shapes of anchor are understood:

    ?item prop:P31 item:Q5                 direct value
    ?item claim:P31 ?stmt .
    ?stmt value: item:Q5                   statement node with its value

Store calls are the only suspension points. Candidates are processed
sequentially in the order the store returned them; LIMIT and OFFSET are
parsed but not applied.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, TYPE_CHECKING
import logging

from claimgraph.query_context import ExplainPlan, QueryContext
from claimgraph.sparql.ast import (
    ANCHOR_NAMESPACES,
    Namespace,
    ParsedQuery,
    QueryType,
    Term,
    TriplePattern,
)

if TYPE_CHECKING:
    from claimgraph.store import StatementStore

logger = logging.getLogger(__name__)


# Hard cap on candidate statements fetched for the anchor. Queries matching
# more statements are silently truncated.
ANCHOR_STATEMENT_CAP = 100

LABEL_VARIABLE = "?label"
WILDCARD = "*"


# =============================================================================
# Errors
# =============================================================================

class QueryExecutionError(Exception):
    """Base class for errors that fail a whole query."""
    pass


class UnsupportedQueryTypeError(QueryExecutionError):
    """Raised for any query form other than SELECT."""
    pass


class EmptyWhereClauseError(QueryExecutionError):
    """Raised when the query has no triple patterns."""
    pass


class MissingAnchorPatternError(QueryExecutionError):
    """Raised when no pattern has a prop: or claim: predicate."""
    pass


class AnchorLookupError(QueryExecutionError):
    """Raised when the store fails to return the anchor statements."""
    pass


# =============================================================================
# Plan
# =============================================================================

class AnchorShape(Enum):
    DIRECT_VALUE = "direct_value"
    STATEMENT = "statement"


@dataclass(frozen=True)
class QueryPlan:
    """How a query's patterns are used, resolved before any store access."""
    anchor: TriplePattern
    shape: AnchorShape
    property_id: str
    subject_variable: str
    target_value: Optional[str] = None
    statement_variable: Optional[str] = None
    value_variable: Optional[str] = None
    value_pattern: Optional[TriplePattern] = None
    joins: tuple[TriplePattern, ...] = ()
    ignored: tuple[TriplePattern, ...] = ()


def find_anchor_pattern(patterns: Sequence[TriplePattern]) -> Optional[int]:
    """
    Index of the anchor pattern: the first pattern whose predicate is in the
    ``prop:`` or ``claim:`` namespace. Later candidates are not anchors.
    """
    for i, pattern in enumerate(patterns):
        if pattern.predicate.namespace in ANCHOR_NAMESPACES:
            return i
    return None


def find_value_pattern(patterns: Sequence[TriplePattern], statement_variable: str) -> Optional[int]:
    """
    Index of the first ``<statement_variable> value: <object>`` pattern.
    Later value patterns for the same statement are ignored.
    """
    for i, pattern in enumerate(patterns):
        if (pattern.predicate.namespace is Namespace.VALUE
                and pattern.subject.raw == statement_variable):
            return i
    return None


def term_target(term: Term) -> str:
    """The store value a non-variable term stands for (``item:Q5`` -> ``Q5``)."""
    if term.namespace in (Namespace.ITEM, Namespace.LITERAL):
        return term.value
    return term.raw


# =============================================================================
# Executor
# =============================================================================

class ClaimQueryExecutor:
    """
    Executes claim queries against a StatementStore.

    The executor holds no per-query state; one instance can serve many
    queries.
    """

    def __init__(
        self,
        store: "StatementStore",
        max_anchor_statements: int = ANCHOR_STATEMENT_CAP,
        slow_query_threshold_seconds: Optional[float] = None,
    ):
        """
        Initialize executor with a statement store.

        Args:
            store: The StatementStore to query
            max_anchor_statements: Cap on statements fetched for the anchor
            slow_query_threshold_seconds: Log a warning for queries slower than this
        """
        self.store = store
        self.max_anchor_statements = max_anchor_statements
        self.slow_query_threshold_seconds = slow_query_threshold_seconds

    # -------------------------------------------------------------------------
    # Validation and planning
    # -------------------------------------------------------------------------

    def resolve_plan(self, query: ParsedQuery) -> QueryPlan:
        """
        Validate a query and work out its anchor, joins and ignored patterns.

        Raises:
            UnsupportedQueryTypeError: query is not a SELECT
            EmptyWhereClauseError: no triple patterns
            MissingAnchorPatternError: no prop:/claim: pattern
        """
        if query.type is not QueryType.SELECT:
            raise UnsupportedQueryTypeError(
                f"Only SELECT queries are supported, got {query.type.value}"
            )
        patterns = query.where_pattern
        if not patterns:
            raise EmptyWhereClauseError("WHERE clause cannot be empty")

        anchor_idx = find_anchor_pattern(patterns)
        if anchor_idx is None:
            raise MissingAnchorPatternError(
                "At least one `prop:Pxx` or `claim:Pxx` pattern is required"
            )
        anchor = patterns[anchor_idx]
        consumed = {anchor_idx}

        shape = AnchorShape.DIRECT_VALUE
        target_value = None
        statement_variable = None
        value_variable = None
        value_pattern = None

        if anchor.predicate.namespace is Namespace.CLAIM and anchor.object.is_variable:
            shape = AnchorShape.STATEMENT
            statement_variable = anchor.object.raw
            value_idx = find_value_pattern(patterns, statement_variable)
            if value_idx is not None:
                value_pattern = patterns[value_idx]
                consumed.add(value_idx)
                if value_pattern.object.is_variable:
                    value_variable = value_pattern.object.raw
                else:
                    target_value = term_target(value_pattern.object) or None
        elif anchor.object.is_variable:
            value_variable = anchor.object.raw
        else:
            target_value = term_target(anchor.object) or None

        joins = []
        ignored = []
        for i, pattern in enumerate(patterns):
            if i in consumed:
                continue
            if (statement_variable is not None
                    and pattern.subject.raw == statement_variable
                    and pattern.predicate.namespace in (Namespace.QUALIFIER, Namespace.REFERENCE)):
                joins.append(pattern)
            else:
                ignored.append(pattern)

        plan = QueryPlan(
            anchor=anchor,
            shape=shape,
            property_id=anchor.predicate.value,
            subject_variable=anchor.subject.raw,
            target_value=target_value,
            statement_variable=statement_variable,
            value_variable=value_variable,
            value_pattern=value_pattern,
            joins=tuple(joins),
            ignored=tuple(ignored),
        )
        logger.debug(
            f"Anchor {plan.shape.value} on {plan.property_id} "
            f"(target={plan.target_value}, joins={len(plan.joins)}, ignored={len(plan.ignored)})"
        )
        return plan

    def explain(self, query: ParsedQuery) -> ExplainPlan:
        """
        Describe how a query will be executed without executing it.

        Raises the same validation errors as ``execute``.
        """
        plan = self.resolve_plan(query)
        return ExplainPlan(
            query_type=query.type.value,
            anchor={
                "shape": plan.shape.value,
                "property_id": plan.property_id,
                "pattern": str(plan.anchor),
            },
            subject_variable=plan.subject_variable,
            statement_variable=plan.statement_variable,
            value_variable=plan.value_variable,
            target_value=plan.target_value,
            joins=[
                {
                    "type": "qualifier" if p.predicate.namespace is Namespace.QUALIFIER else "reference",
                    "property_id": p.predicate.value,
                    "object": p.object.raw,
                }
                for p in plan.joins
            ],
            ignored_patterns=[str(p) for p in plan.ignored],
            limit=query.limit,
            offset=query.offset,
            max_anchor_statements=self.max_anchor_statements,
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(
        self,
        query: ParsedQuery,
        context: Optional[QueryContext] = None,
    ) -> list[dict[str, Any]]:
        """
        Execute a parsed query.

        Args:
            query: ParsedQuery from ``parse_query``
            context: Optional context collecting statistics

        Returns:
            Binding rows in store order, each mapping a requested variable
            name (e.g. ``"?item"``) to a value or None
        """
        plan = self.resolve_plan(query)
        context = context or QueryContext()
        context.start()
        try:
            rows = await self._execute_plan(query, plan, context)
        except Exception as e:
            context.fail(str(e))
            raise
        context.complete(rows_returned=len(rows))

        stats = context.stats
        logger.info(
            f"Query {context.query_id}: {stats.rows_returned} rows from "
            f"{stats.statements_scanned} statements in {stats.duration_ms:.1f} ms"
        )
        if (self.slow_query_threshold_seconds is not None
                and stats.duration_ms > self.slow_query_threshold_seconds * 1000):
            logger.warning(
                f"Slow query {context.query_id} ({stats.duration_ms:.1f} ms, "
                f"{stats.store_calls} store calls): {plan.anchor}"
            )
        return rows

    async def _execute_plan(
        self,
        query: ParsedQuery,
        plan: QueryPlan,
        context: QueryContext,
    ) -> list[dict[str, Any]]:
        requested = set(query.variables)
        select_all = query.is_select_all()

        def wants(variable: Optional[str]) -> bool:
            if variable is None:
                return False
            return variable in requested or (select_all and variable.startswith("?"))

        try:
            context.record_store_call()
            statements = await self.store.find_statements(
                plan.property_id,
                plan.target_value,
                self.max_anchor_statements,
            )
        except Exception as e:
            raise AnchorLookupError(f"Failed to fetch anchor statements: {e}") from e
        context.add_scanned_statements(len(statements))

        results = []
        for statement in statements:
            row: dict[str, Any] = {}
            if wants(plan.statement_variable):
                row[plan.statement_variable] = statement.id
            if wants(plan.value_variable):
                row[plan.value_variable] = statement.resolved_value

            matched = True
            for pattern in plan.joins:
                if not await self._join(pattern, statement.id, row, wants, context):
                    matched = False
                    break
            if not matched:
                context.record_discard()
                continue

            if select_all or LABEL_VARIABLE in requested:
                row[LABEL_VARIABLE] = await self._fetch_label(statement.subject_id, context)

            result = {}
            if wants(plan.subject_variable):
                result[plan.subject_variable] = statement.subject_id
            for key, value in row.items():
                if key != plan.subject_variable:
                    result[key] = value
            for variable in query.variables:
                if variable != WILDCARD and variable not in result:
                    result[variable] = None

            results.append(result)

        return results

    async def _join(
        self,
        pattern: TriplePattern,
        statement_id: str,
        row: dict[str, Any],
        wants,
        context: QueryContext,
    ) -> bool:
        """
        Resolve a qual:/ref: pattern for one statement.

        Returns False when the row must be discarded: no record, a store
        error, or a fixed object that does not match.
        """
        property_id = pattern.predicate.value
        if pattern.predicate.namespace is Namespace.QUALIFIER:
            lookup = self.store.find_qualifier
        else:
            lookup = self.store.find_reference

        try:
            context.record_store_call()
            record = await lookup(statement_id, property_id)
        except Exception as e:
            logger.debug(f"Lookup {pattern.predicate.raw} failed for statement {statement_id}: {e}")
            return False

        if record is None:
            logger.debug(f"No {pattern.predicate.raw} on statement {statement_id}; row discarded")
            return False

        value = record.resolved_value
        if pattern.object.is_variable:
            if wants(pattern.object.raw):
                row[pattern.object.raw] = value
        elif value != term_target(pattern.object):
            return False
        return True

    async def _fetch_label(self, entity_id: str, context: QueryContext) -> Optional[str]:
        """Label lookup failures degrade to None."""
        try:
            context.record_store_call()
            return await self.store.get_entity_label(entity_id)
        except Exception as e:
            logger.warning(f"Label lookup failed for {entity_id}: {e}")
            return None


async def run_query(
    store: "StatementStore",
    query_string: str,
    context: Optional[QueryContext] = None,
    slow_query_threshold_seconds: Optional[float] = None,
) -> dict[str, list[dict[str, Any]]]:
    """
    Parse and execute a claim query.

    Args:
        store: The StatementStore to query
        query_string: Raw query text
        context: Optional context collecting statistics
        slow_query_threshold_seconds: Log a warning for queries slower than this

    Returns:
        ``{"bindings": [...]}``

    Raises:
        QueryExecutionError: validation failed or the anchor lookup failed
    """
    from claimgraph.sparql.parser import parse_query

    query = parse_query(query_string)
    executor = ClaimQueryExecutor(store, slow_query_threshold_seconds=slow_query_threshold_seconds)
    return {"bindings": await executor.execute(query, context)}

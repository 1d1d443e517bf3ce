"""
Claim query language: parser and executor.
"""

from claimgraph.sparql.ast import (
    Namespace,
    ParsedQuery,
    QueryType,
    Term,
    TriplePattern,
)
from claimgraph.sparql.parser import ClaimQueryParser, parse_query
from claimgraph.sparql.executor import (
    ANCHOR_STATEMENT_CAP,
    AnchorLookupError,
    AnchorShape,
    ClaimQueryExecutor,
    EmptyWhereClauseError,
    MissingAnchorPatternError,
    QueryExecutionError,
    QueryPlan,
    UnsupportedQueryTypeError,
    run_query,
)

__all__ = [
    "Namespace",
    "ParsedQuery",
    "QueryType",
    "Term",
    "TriplePattern",
    "ClaimQueryParser",
    "parse_query",
    "ANCHOR_STATEMENT_CAP",
    "AnchorShape",
    "ClaimQueryExecutor",
    "QueryPlan",
    "run_query",
    # Errors
    "QueryExecutionError",
    "UnsupportedQueryTypeError",
    "EmptyWhereClauseError",
    "MissingAnchorPatternError",
    "AnchorLookupError",
]

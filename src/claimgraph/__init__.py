"""
claimgraph: SPARQL-style queries over entity claims, powered by Polars.

Entities carry statements; statements carry qualifiers and references.
"""

__version__ = "0.1.0"

from claimgraph.models import Entity, Statement, Qualifier, Reference
from claimgraph.store import StatementStore, MemoryStatementStore
from claimgraph.sparql import (
    parse_query,
    ClaimQueryParser,
    ClaimQueryExecutor,
    QueryExecutionError,
    run_query,
)
from claimgraph.query_context import QueryContext, ExplainPlan
from claimgraph.config import ServiceConfig, ConfigValidationError
from claimgraph.search import SchemaSearcher, SearchSchema

__all__ = [
    "Entity",
    "Statement",
    "Qualifier",
    "Reference",
    "StatementStore",
    "MemoryStatementStore",
    "parse_query",
    "ClaimQueryParser",
    "ClaimQueryExecutor",
    "QueryExecutionError",
    "run_query",
    "QueryContext",
    "ExplainPlan",
    "ServiceConfig",
    "ConfigValidationError",
    # Schema search
    "SchemaSearcher",
    "SearchSchema",
]

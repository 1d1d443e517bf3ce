"""
Query API Router.

Provides REST endpoints for querying the statement store:
- Claim queries (SPARQL-style SELECT over statements)
- Schema search over entities
- Query parsing and EXPLAIN
"""

from typing import Any, Optional
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from claimgraph.config import ServiceConfig
from claimgraph.query_context import QueryContext
from claimgraph.search import SchemaSearcher, SearchSchema
from claimgraph.sparql import ClaimQueryExecutor, QueryExecutionError, parse_query
from claimgraph.store import StatementStore

logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================

class QueryRequest(BaseModel):
    """A claim query or a schema search; exactly one is expected."""
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = Field(None, description="Claim query string")
    search_schema: Optional[SearchSchema] = Field(
        None, alias="schema", description="Schema search definition"
    )
    limit: Optional[int] = Field(None, ge=1, description="Page size for schema search")
    offset: int = Field(default=0, ge=0, description="Page offset for schema search")


class ClaimQueryRequest(BaseModel):
    """Claim query for parse/explain."""
    query: str = Field(..., description="Claim query string")


# =============================================================================
# Router Factory
# =============================================================================

def create_query_router(store: StatementStore, config: Optional[ServiceConfig] = None) -> APIRouter:
    """
    Create the query router.

    Args:
        store: StatementStore queries run against
        config: Service configuration (defaults if not provided)

    Returns:
        APIRouter mounted at /query
    """
    config = config or ServiceConfig()
    router = APIRouter(prefix="/query", tags=["Query"])
    executor = ClaimQueryExecutor(
        store, slow_query_threshold_seconds=config.slow_query_threshold_seconds
    )
    searcher = SchemaSearcher(store)

    @router.get("")
    async def query_redirect():
        """Queries are POST-only; browsers are sent to the query UI."""
        return RedirectResponse(url=f"{config.frontend_url.rstrip('/')}/query", status_code=302)

    @router.post("")
    async def run(request: QueryRequest) -> dict[str, Any]:
        """
        Run a schema search (``schema``) or a claim query (``query``).

        Schema search returns ``{"results": [entity, ...]}``; a claim query
        returns ``{"results": {"bindings": [...]}}``.
        """
        if request.search_schema is not None:
            limit = request.limit or config.search_default_limit
            try:
                entities = await searcher.search(request.search_schema, limit=limit, offset=request.offset)
            except Exception as e:
                logger.exception("Schema search failed")
                raise HTTPException(status_code=500, detail=f"Search error: {str(e)}")
            return {"results": entities}

        if request.query is not None:
            context = QueryContext()
            try:
                rows = await executor.execute(parse_query(request.query), context)
            except QueryExecutionError as e:
                raise HTTPException(status_code=400, detail=f"Query error: {str(e)}")
            except Exception as e:
                logger.exception(f"Query {context.query_id} failed")
                raise HTTPException(status_code=500, detail=f"Query error: {str(e)}")
            return {"results": {"bindings": rows}}

        raise HTTPException(
            status_code=400,
            detail="Missing `schema` or `query` parameter in request body",
        )

    @router.post("/parse")
    async def parse(request: ClaimQueryRequest) -> dict[str, Any]:
        """Parse a claim query and return its structure."""
        return parse_query(request.query).to_dict()

    @router.post("/explain")
    async def explain(request: ClaimQueryRequest) -> dict[str, Any]:
        """Describe how a claim query would be executed."""
        try:
            plan = executor.explain(parse_query(request.query))
        except QueryExecutionError as e:
            raise HTTPException(status_code=400, detail=f"Query error: {str(e)}")
        return {"plan": plan.to_dict(), "text": str(plan)}

    return router

"""
claimgraph API Layer

FastAPI-based REST API for the claimgraph query engine.
Separates API concerns from the core engine (claimgraph).
"""

__version__ = "0.1.0"

from api.query_api import QueryRequest, ClaimQueryRequest, create_query_router

# Note: api.web builds a default app at import time; import it directly:
# from api.web import create_app

__all__ = [
    "QueryRequest",
    "ClaimQueryRequest",
    "create_query_router",
]

"""
claimgraph Web API

FastAPI-based REST API over the statement store.
Provides endpoints for:
- Claim queries and schema search
- Query parsing and EXPLAIN
- Store statistics
"""

from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from claimgraph import __version__
from claimgraph.config import ServiceConfig
from claimgraph.store import MemoryStatementStore, StatementStore

from api.query_api import create_query_router

logger = logging.getLogger(__name__)


def _default_store(config: ServiceConfig) -> StatementStore:
    if config.data_file:
        return MemoryStatementStore.load_json(config.data_file)
    return MemoryStatementStore()


def create_app(store: Optional[StatementStore] = None, config: Optional[ServiceConfig] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        store: Optional StatementStore (loads ``config.data_file`` or starts empty if not provided)
        config: Optional ServiceConfig (read from ``CLAIMGRAPH_*`` environment variables if not provided)

    Returns:
        Configured FastAPI application
    """
    config = config or ServiceConfig.from_env()
    config.validate()
    logging.getLogger().setLevel(config.log_level.upper())

    app = FastAPI(
        title="claimgraph API",
        description="SPARQL-style claim queries and schema search over entity statements",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # State
    app.state.config = config
    app.state.store = store if store is not None else _default_store(config)

    app.include_router(create_query_router(app.state.store, config))

    # ==========================================================================
    # Health & Info
    # ==========================================================================

    @app.get("/", tags=["Info"])
    async def root():
        """API root with basic info."""
        return {
            "name": "claimgraph",
            "version": __version__,
            "description": "SPARQL-style claim queries over entity statements",
            "docs": "/docs",
        }

    @app.get("/health", tags=["Info"])
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/stats", tags=["Info"])
    async def stats():
        """Get store statistics."""
        store_stats = getattr(app.state.store, "stats", None)
        return {"store": store_stats() if callable(store_stats) else {}}

    logger.info(f"claimgraph API ready ({app.state.store!r})")
    return app


# Default app instance for running directly
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.web:app", host="0.0.0.0", port=8000, reload=True)

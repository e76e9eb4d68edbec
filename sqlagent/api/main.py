"""
FastAPI Application

HTTP surface for the SQL agent with:
- Lifespan management for store, connections and LLM provider
- CORS middleware for browser clients
- Exception handlers for agent and database errors
- Health, query and streaming endpoints

Usage:
    uvicorn sqlagent.api.main:app --reload --port 8000
    sqlagent-api  # API_HOST / API_PORT from settings
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlagent import __version__
from sqlagent.api.routes import health, query
from sqlagent.bootstrap import AgentComponents, build_components
from sqlagent.config import get_settings
from sqlagent.connectors.base import ConnectionError as ConnectorConnectionError
from sqlagent.connectors.base import ConnectorError
from sqlagent.models.errors import SqlAgentError

logger = logging.getLogger(__name__)

app_state: dict[str, AgentComponents | None] = {
    "components": None,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the agent components on startup and release them on shutdown."""
    settings = get_settings()
    settings.logging.configure()
    logger.info("Starting SqlAgent API server...")

    try:
        components = await build_components(settings)
        app_state["components"] = components
        logger.info(
            "SqlAgent API server started successfully",
            extra={"connections": components.connections.get_connection_names()},
        )

        yield

    finally:
        logger.info("Shutting down SqlAgent API server...")
        components = app_state["components"]
        if components is not None:
            try:
                await components.close()
            except Exception as e:
                logger.error(f"Error closing components: {e}")
        app_state["components"] = None
        logger.info("SqlAgent API server shut down complete")


app = FastAPI(
    title="SqlAgent API",
    description="Natural language questions answered with validated SQL",
    version=__version__,
    lifespan=lifespan,
)

cors_origins_env = os.getenv("CORS_ORIGINS", "")
cors_origins = (
    [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    if cors_origins_env
    else ["http://localhost:3000", "http://localhost:3001"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SqlAgentError)
async def agent_error_handler(request: Request, exc: SqlAgentError) -> JSONResponse:
    """Handle agent errors with context."""
    logger.error(
        f"Agent error: {exc}",
        extra={"component": exc.component, "recoverable": exc.recoverable},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "agent_error", **exc.to_dict()},
    )


@app.exception_handler(ConnectorConnectionError)
async def connection_error_handler(request: Request, exc: ConnectorConnectionError) -> JSONResponse:
    """Handle database connection errors."""
    logger.error(f"Database connection error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "connection_error",
            "message": "Database connection failed. Please try again later.",
        },
    )


@app.exception_handler(ConnectorError)
async def connector_error_handler(request: Request, exc: ConnectorError) -> JSONResponse:
    logger.error(f"Connector error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "connector_error", "message": str(exc)},
    )


app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(query.router, prefix="/api/v1", tags=["query"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "SqlAgent API",
        "version": __version__,
        "description": "Natural language interface for SQL databases",
        "docs": "/docs",
    }


def get_components() -> AgentComponents:
    """Get the initialized agent components."""
    components = app_state["components"]
    if components is None:
        raise RuntimeError("Agent not initialized")
    return components


def run() -> None:
    """Serve the API with uvicorn on API_HOST:API_PORT."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sqlagent.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.logging.level.lower(),
    )

"""
Health Check Routes

Liveness endpoint reporting configured connections and the LLM provider.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status

from sqlagent import __version__
from sqlagent.api.models import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Reports "degraded" while the agent is not initialized.
    """
    from sqlagent.api.main import app_state

    components = app_state.get("components")
    if components is None:
        return HealthResponse(
            status="degraded",
            version=__version__,
            timestamp=datetime.now(UTC).isoformat(),
        )

    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        connections=components.connections.get_connection_names(),
        llm_provider=components.llm.provider_name,
    )

"""
Query Routes

Buffered and streaming question answering.
"""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import StreamingResponse

from sqlagent.api.models import QueryRequest, QueryResponse
from sqlagent.bootstrap import AgentComponents
from sqlagent.models.agent import StreamChunk, encode_json

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_components(query_request: QueryRequest) -> AgentComponents:
    from sqlagent.api.main import get_components

    components = get_components()
    connection = query_request.connection
    if connection is not None and not components.connections.has(connection):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown connection: {connection}",
        )
    return components


def format_sse(chunk: StreamChunk) -> str:
    return f"data: {encode_json(chunk.to_event())}\n\n"


@router.post("/query", response_model=QueryResponse)
async def query(query_request: QueryRequest) -> QueryResponse:
    """Run the agent to completion and return its answer, SQL and rows."""
    logger.info(f"Query request received: {query_request.question[:100]}")
    components = _get_components(query_request)
    agent = components.agent

    response = await agent.run(
        query_request.question,
        connection=query_request.connection,
        history=query_request.history_dicts(),
    )

    prompt = agent.last_prompt if components.settings.debug else None
    return QueryResponse(**response.model_dump(), prompt=prompt)


@router.post("/stream")
async def stream(query_request: QueryRequest) -> StreamingResponse:
    """Stream agent output as Server-Sent Events, one StreamChunk per event."""
    logger.info(f"Stream request received: {query_request.question[:100]}")
    agent = _get_components(query_request).agent

    async def events() -> AsyncIterator[str]:
        async for chunk in agent.stream(
            query_request.question,
            history=query_request.history_dicts(),
            connection=query_request.connection,
        ):
            yield format_sse(chunk)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

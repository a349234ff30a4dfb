"""
API endpoints for analysis interactions.

POST submits content (optionally containing an @mention) and returns at once;
the analysis runs as a background task on its own database session.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acn_python_backend.db_session import get_async_session, get_session_factory
from acn_python_backend.ledger_api import http_error_for
from acn_python_backend.models import AnalysisInteraction
from acn_python_backend.schemas import InteractionAccepted, InteractionResponse, SubmitInteractionRequest
from acn_python_backend.services.analysis_orchestrator import AnalysisOrchestrator
from acn_python_backend.services.embedding_service import EmbeddingService, get_embedding_service
from acn_python_backend.services.reasoning_client import ReasoningClient, get_reasoning_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/acn", tags=["interactions"])


def serialize_interaction(interaction: AnalysisInteraction) -> InteractionResponse:
    return InteractionResponse(
        id=str(interaction.id),
        status=interaction.status,
        trigger_content_id=interaction.trigger_content_id,
        trigger_reply_id=interaction.trigger_reply_id,
        trigger_author_id=interaction.trigger_author_id,
        target_content=interaction.target_content,
        analysis_result=interaction.analysis_result,
        entropy_score=interaction.entropy_score,
        fallacies_found=interaction.fallacies_found,
        arguments_referenced=interaction.arguments_referenced,
        response_content=interaction.response_content,
        response_content_id=str(interaction.response_content_id) if interaction.response_content_id else None,
        error_message=interaction.error_message,
        created_at=interaction.created_at,
        completed_at=interaction.completed_at,
    )


async def run_interaction(
    interaction_id: str,
    session_factory: async_sessionmaker,
    embedding_service: EmbeddingService,
    reasoning_client: ReasoningClient,
) -> None:
    """Background task body; owns its session for the whole pipeline."""
    async with session_factory() as db:
        orchestrator = AnalysisOrchestrator(
            db,
            embedding_service=embedding_service,
            reasoning_client=reasoning_client,
        )
        try:
            await orchestrator.process_interaction(interaction_id)
        except Exception:
            # process_interaction records its own failures; this only catches lifecycle errors
            logger.exception("[ANALYSIS] Background processing of %s aborted", interaction_id)


@router.post("/interactions", status_code=202, response_model=InteractionAccepted)
async def submit_interaction(
    request: SubmitInteractionRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_async_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
    reasoning_client: ReasoningClient = Depends(get_reasoning_client),
):
    orchestrator = AnalysisOrchestrator(
        db,
        embedding_service=embedding_service,
        reasoning_client=reasoning_client,
    )
    try:
        interaction = await orchestrator.submit_interaction(
            trigger_content=request.content,
            trigger_content_id=request.content_id,
            trigger_author_id=request.author_id,
            trigger_reply_id=request.reply_id,
        )
    except Exception as exc:
        raise http_error_for(exc, "submit interaction") from exc

    background_tasks.add_task(
        run_interaction,
        str(interaction.id),
        session_factory,
        embedding_service,
        reasoning_client,
    )
    return InteractionAccepted(interaction_id=str(interaction.id), status=interaction.status)


@router.get("/interactions/{interaction_id}", response_model=InteractionResponse)
async def get_interaction(
    interaction_id: str,
    db: AsyncSession = Depends(get_async_session),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
):
    orchestrator = AnalysisOrchestrator(db, embedding_service=embedding_service)
    try:
        interaction = await orchestrator.get_interaction(interaction_id)
    except Exception as exc:
        raise http_error_for(exc, "fetch interaction") from exc
    return serialize_interaction(interaction)


@router.get("/authors/{author_id}/interactions")
async def get_author_interactions(
    author_id: str,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
):
    orchestrator = AnalysisOrchestrator(db, embedding_service=embedding_service)
    interactions = await orchestrator.get_author_interactions(author_id, limit=limit)
    return {
        "interactions": [serialize_interaction(i).model_dump() for i in interactions],
        "count": len(interactions),
    }

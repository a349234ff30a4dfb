"""
API endpoints for the argument ledger and fact registry.

Provides endpoints for:
- Browsing arguments (top, by id, by cluster, by source content)
- Support / refute / direct confidence updates with propagation
- Linking arguments to facts and recomputing effective confidence
- Merging clusters
- Creating, searching, challenging and citing fact claims
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from acn_python_backend.db_session import get_async_session
from acn_python_backend.schemas import (
    ChallengeFactRequest,
    CiteFactRequest,
    ConfidenceRequest,
    ConfidenceUpdateResponse,
    CreateFactRequest,
    EffectiveConfidenceResponse,
    EngagementRequest,
    FactLinkRequest,
    FactLinkResponse,
    FactUpdateResponse,
    MergeClustersRequest,
    MergeClustersResponse,
)
from acn_python_backend.services.argument_clustering import ArgumentClustering
from acn_python_backend.services.argument_ledger import (
    ArgumentLedger,
    load_argument,
    serialize_argument,
    serialize_confidence_update,
)
from acn_python_backend.services.confidence_propagation import ConfidencePropagator, ConfidenceUpdateResult
from acn_python_backend.services.embedding_service import (
    EmbeddingService,
    EmbeddingUnavailableError,
    get_embedding_service,
)
from acn_python_backend.services.fact_claim_service import FactClaimService, FactUpdateResult, serialize_fact
from acn_python_backend.services.fact_linkage import FactLinkageResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/acn", tags=["argument-ledger"])


def http_error_for(exc: Exception, action: str) -> HTTPException:
    """Translate a service exception into the matching HTTP error.

    Must be called from inside the ``except`` block so unexpected errors are
    logged with their traceback.
    """
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, EmbeddingUnavailableError):
        logger.warning("[LEDGER] %s: embedding unavailable (%s)", action, exc)
        return HTTPException(status_code=503, detail=f"Embedding service unavailable: {exc}")
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    logger.exception("[LEDGER] Failed to %s", action)
    return HTTPException(status_code=500, detail=f"Failed to {action}")


def _update_response(result: ConfidenceUpdateResult) -> ConfidenceUpdateResponse:
    return ConfidenceUpdateResponse(
        argument_id=str(result.argument_id),
        old_confidence=result.old_confidence,
        new_confidence=result.new_confidence,
        propagated_to=[str(argument_id) for argument_id in result.propagated_to],
    )


def _fact_update_response(result: FactUpdateResult) -> FactUpdateResponse:
    return FactUpdateResponse(
        fact_id=str(result.fact_id),
        old_confidence=result.old_confidence,
        new_confidence=result.new_confidence,
        affected_arguments=[str(argument_id) for argument_id in result.affected_arguments],
    )


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------

@router.get("/arguments")
async def list_top_arguments(
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_async_session),
):
    arguments = await ArgumentLedger(db).get_top_arguments(limit)
    return {"arguments": [serialize_argument(a) for a in arguments], "count": len(arguments)}


@router.get("/arguments/{argument_id}")
async def get_argument(argument_id: str, db: AsyncSession = Depends(get_async_session)):
    try:
        detail = await ArgumentLedger(db).get_argument(argument_id)
    except Exception as exc:
        raise http_error_for(exc, "fetch argument") from exc

    payload = serialize_argument(detail.argument)
    payload["confidence_updates"] = [serialize_confidence_update(u) for u in detail.confidence_updates]
    payload["fact_links"] = [
        {**link, "fact_claim_id": str(link["fact_claim_id"])} for link in detail.fact_links
    ]
    return payload


@router.get("/clusters/{cluster_id}/arguments")
async def get_cluster_arguments(cluster_id: str, db: AsyncSession = Depends(get_async_session)):
    try:
        arguments = await ArgumentLedger(db).get_cluster_arguments(cluster_id)
    except Exception as exc:
        raise http_error_for(exc, "fetch cluster arguments") from exc
    return {"arguments": [serialize_argument(a) for a in arguments], "count": len(arguments)}


@router.get("/content/{content_id}/arguments")
async def get_content_arguments(content_id: str, db: AsyncSession = Depends(get_async_session)):
    arguments = await ArgumentLedger(db).get_content_arguments(content_id)
    return {"arguments": [serialize_argument(a) for a in arguments], "count": len(arguments)}


@router.post("/arguments/{argument_id}/support", response_model=ConfidenceUpdateResponse)
async def support_argument(
    argument_id: str,
    request: EngagementRequest,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        result = await ConfidencePropagator(db).support_argument(
            argument_id, request.actor_id, request.interaction_id
        )
    except Exception as exc:
        raise http_error_for(exc, "support argument") from exc
    return _update_response(result)


@router.post("/arguments/{argument_id}/refute", response_model=ConfidenceUpdateResponse)
async def refute_argument(
    argument_id: str,
    request: EngagementRequest,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        result = await ConfidencePropagator(db).refute_argument(
            argument_id, request.actor_id, request.interaction_id
        )
    except Exception as exc:
        raise http_error_for(exc, "refute argument") from exc
    return _update_response(result)


@router.put("/arguments/{argument_id}/confidence", response_model=ConfidenceUpdateResponse)
async def update_confidence(
    argument_id: str,
    request: ConfidenceRequest,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        result = await ConfidencePropagator(db).update_confidence(
            argument_id, request.confidence, request.reason, request.interaction_id
        )
    except Exception as exc:
        raise http_error_for(exc, "update confidence") from exc
    return _update_response(result)


@router.post("/arguments/{argument_id}/facts", response_model=FactLinkResponse)
async def link_argument_to_fact(
    argument_id: str,
    request: FactLinkRequest,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        link = await FactLinkageResolver(db).link_to_fact(argument_id, request.fact_id, request.dependency_strength)
        argument = await load_argument(db, link.argument_id)
    except Exception as exc:
        raise http_error_for(exc, "link argument to fact") from exc

    return FactLinkResponse(
        argument_id=str(link.argument_id),
        fact_claim_id=str(link.fact_claim_id),
        dependency_strength=link.dependency_strength,
        effective_confidence=argument.effective_confidence,
    )


@router.post("/arguments/{argument_id}/effective-confidence", response_model=EffectiveConfidenceResponse)
async def recalculate_effective_confidence(argument_id: str, db: AsyncSession = Depends(get_async_session)):
    try:
        effective = await FactLinkageResolver(db).recalculate_effective_confidence(argument_id)
    except Exception as exc:
        raise http_error_for(exc, "recalculate effective confidence") from exc
    return EffectiveConfidenceResponse(argument_id=argument_id, effective_confidence=effective)


@router.post("/clusters/merge", response_model=MergeClustersResponse)
async def merge_clusters(
    request: MergeClustersRequest,
    db: AsyncSession = Depends(get_async_session),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
):
    ledger = ArgumentLedger(db, embedding_service=embedding_service)
    try:
        moved = await ArgumentClustering(db, ledger).merge_clusters(
            request.source_cluster_id, request.target_cluster_id
        )
    except Exception as exc:
        raise http_error_for(exc, "merge clusters") from exc
    return MergeClustersResponse(target_cluster_id=request.target_cluster_id, moved=moved)


# ---------------------------------------------------------------------------
# Facts
# ---------------------------------------------------------------------------

@router.post("/facts", status_code=201)
async def create_fact(
    request: CreateFactRequest,
    db: AsyncSession = Depends(get_async_session),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
):
    try:
        fact = await FactClaimService(db, embedding_service=embedding_service).create_fact(
            request.claim,
            source_content_id=request.source_content_id,
            source_author_id=request.source_author_id,
            initial_confidence=request.initial_confidence,
        )
    except Exception as exc:
        raise http_error_for(exc, "create fact") from exc
    return serialize_fact(fact)


@router.get("/facts")
async def search_facts(
    query: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
):
    service = FactClaimService(db)
    if query:
        facts = await service.search_facts(query, limit=limit)
    else:
        facts = await service.get_established_facts(threshold=0.0, limit=limit)
    return {"facts": [serialize_fact(f) for f in facts], "count": len(facts)}


@router.get("/facts/low-confidence")
async def get_low_confidence_facts(
    threshold: float = Query(0.3, ge=0.0, le=1.0),
    db: AsyncSession = Depends(get_async_session),
):
    facts = await FactClaimService(db).get_low_confidence_facts(threshold)
    return {"facts": [serialize_fact(f) for f in facts], "count": len(facts)}


@router.get("/facts/established")
async def get_established_facts(
    threshold: float = Query(0.8, ge=0.0, le=1.0),
    db: AsyncSession = Depends(get_async_session),
):
    facts = await FactClaimService(db).get_established_facts(threshold)
    return {"facts": [serialize_fact(f) for f in facts], "count": len(facts)}


@router.get("/facts/{fact_id}")
async def get_fact(fact_id: str, db: AsyncSession = Depends(get_async_session)):
    service = FactClaimService(db)
    try:
        fact = await service.get_fact(fact_id)
        dependents = await service.get_dependent_argument_ids(fact.id)
    except Exception as exc:
        raise http_error_for(exc, "fetch fact") from exc

    payload = serialize_fact(fact)
    payload["dependent_arguments"] = [str(argument_id) for argument_id in dependents]
    return payload


@router.post("/facts/{fact_id}/challenge", response_model=FactUpdateResponse)
async def challenge_fact(
    fact_id: str,
    request: ChallengeFactRequest,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        result = await FactClaimService(db).challenge_fact(fact_id, request.reason)
    except Exception as exc:
        raise http_error_for(exc, "challenge fact") from exc
    return _fact_update_response(result)


@router.post("/facts/{fact_id}/cite", response_model=FactUpdateResponse)
async def cite_fact(
    fact_id: str,
    request: CiteFactRequest,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        result = await FactClaimService(db).cite_fact(fact_id, request.context_content_id)
    except Exception as exc:
        raise http_error_for(exc, "cite fact") from exc
    return _fact_update_response(result)

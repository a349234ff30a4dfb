"""
Argument Ledger

Persistent store of arguments extracted from user discourse. Creation embeds
the content, seeds confidence at a neutral 0.5 and hands the new row to the
clustering engine. Similarity lookups go through the pluggable similarity
index.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from acn_python_backend.models import Argument, ArgumentFactLink, ConfidenceUpdate, FactClaim
from acn_python_backend.services.embedding_service import EmbeddingService, get_embedding_service
from acn_python_backend.services.similarity_index import SimilarityIndex, get_similarity_index

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.85
MIN_CONFIDENCE = 0.0
MAX_CONFIDENCE = 1.0
INITIAL_CONFIDENCE = 0.5
RECENT_UPDATES_LIMIT = 10
# Digits kept when comparing confidence changes against thresholds
CONFIDENCE_PRECISION = 9

UUIDLike = Union[str, uuid.UUID]


class ArgumentNotFoundError(LookupError):
    pass


def parse_uuid(value: UUIDLike, field_name: str = "id") -> uuid.UUID:
    """Parse a string to UUID, raising ``ValueError`` with a clear message."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid UUID for {field_name}: {value}") from exc


def clamp_confidence(value: float) -> float:
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, float(value)))


def confidence_change(new: float, old: float) -> float:
    """``new - old`` rounded so 0.55 - 0.5 compares equal to 0.05."""
    return round(new - old, CONFIDENCE_PRECISION)


def history_entry(confidence: float, reason: str, previous: Optional[float] = None) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "confidence": confidence,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "reason": reason,
    }
    if previous is not None:
        entry["previous_confidence"] = previous
    return entry


async def load_argument(db: AsyncSession, argument_id: UUIDLike) -> Argument:
    """Fetch an argument, bypassing stale identity-map state."""
    argument_uuid = parse_uuid(argument_id, "argument_id")
    result = await db.execute(
        select(Argument)
        .where(Argument.id == argument_uuid)
        .execution_options(populate_existing=True)
    )
    argument = result.scalar_one_or_none()
    if argument is None:
        raise ArgumentNotFoundError(f"Argument {argument_id} not found")
    return argument


@dataclass
class ArgumentScores:
    logical_validity: Optional[float] = None
    evidence_quality: Optional[float] = None
    coherence: Optional[float] = None
    entropy_score: Optional[float] = None


@dataclass
class SimilarArgument:
    id: uuid.UUID
    content: str
    summary: Optional[str]
    confidence: float
    effective_confidence: Optional[float]
    similarity: float


@dataclass
class ArgumentDetail:
    argument: Argument
    confidence_updates: List[ConfidenceUpdate] = field(default_factory=list)
    fact_links: List[Dict[str, Any]] = field(default_factory=list)


class ArgumentLedger:
    """
    Store and query arguments.

    Each instance is bound to one AsyncSession. Collaborators default to the
    process-wide singletons and can be swapped for tests.
    """

    def __init__(
        self,
        db: AsyncSession,
        embedding_service: Optional[EmbeddingService] = None,
        similarity_index: Optional[SimilarityIndex] = None,
    ):
        self.db = db
        self._embedding_service = embedding_service
        self.similarity_index = similarity_index or get_similarity_index()

    @property
    def embedding_service(self) -> EmbeddingService:
        if self._embedding_service is None:
            self._embedding_service = get_embedding_service()
        return self._embedding_service

    async def create_argument(
        self,
        content: str,
        source_content_id: str,
        source_author_id: str,
        summary: Optional[str] = None,
        scores: Optional[ArgumentScores] = None,
        embedding: Optional[List[float]] = None,
    ) -> Argument:
        """
        Embed and persist a new argument, then cluster it.

        A precomputed ``embedding`` skips the embedding call.

        Raises:
            EmbeddingUnavailableError: Nothing is written when embedding fails
        """
        if not embedding:
            embedding = await self.embedding_service.embed_text(content)
        scores = scores or ArgumentScores()

        argument = Argument(
            id=uuid.uuid4(),
            content=content,
            summary=summary,
            source_content_id=source_content_id,
            source_author_id=source_author_id,
            embedding=embedding,
            confidence=INITIAL_CONFIDENCE,
            effective_confidence=INITIAL_CONFIDENCE,
            confidence_history=[history_entry(INITIAL_CONFIDENCE, "initial")],
        )
        for name in ("logical_validity", "evidence_quality", "coherence", "entropy_score"):
            value = getattr(scores, name)
            if value is not None:
                setattr(argument, name, value)

        self.db.add(argument)
        await self.db.commit()
        logger.info("[LEDGER] Created argument %s", argument.id)

        # Imported here to avoid a module cycle (clustering queries through the ledger)
        from acn_python_backend.services.argument_clustering import ArgumentClustering

        try:
            await ArgumentClustering(self.db, self).assign_cluster(argument)
        except Exception as exc:
            await self.db.rollback()
            logger.warning("[CLUSTER] Clustering check failed for %s: %s", argument.id, exc)

        return await load_argument(self.db, argument.id)

    async def find_similar_arguments(
        self,
        embedding: Optional[List[float]],
        limit: int = 10,
        exclude_id: Optional[UUIDLike] = None,
        threshold: float = SIMILARITY_THRESHOLD,
    ) -> List[SimilarArgument]:
        if not embedding:
            return []

        exclude_uuid = parse_uuid(exclude_id, "exclude_id") if exclude_id is not None else None

        result = await self.db.execute(
            select(
                Argument.id,
                Argument.content,
                Argument.summary,
                Argument.confidence,
                Argument.effective_confidence,
                Argument.embedding,
            ).order_by(Argument.created_at)
        )
        rows = {row.id: row for row in result.all()}

        matches = self.similarity_index.search(
            embedding,
            ((row_id, row.embedding) for row_id, row in rows.items()),
            threshold=threshold,
            limit=limit,
            exclude_id=exclude_uuid,
        )

        return [
            SimilarArgument(
                id=match.id,
                content=rows[match.id].content,
                summary=rows[match.id].summary,
                confidence=rows[match.id].confidence,
                effective_confidence=rows[match.id].effective_confidence,
                similarity=match.similarity,
            )
            for match in matches
        ]

    async def get_argument(self, argument_id: UUIDLike) -> ArgumentDetail:
        """Argument with its 10 most recent audit rows and fact links."""
        argument = await load_argument(self.db, argument_id)

        updates_result = await self.db.execute(
            select(ConfidenceUpdate)
            .where(ConfidenceUpdate.argument_id == argument.id)
            .order_by(ConfidenceUpdate.created_at.desc())
            .limit(RECENT_UPDATES_LIMIT)
        )

        links_result = await self.db.execute(
            select(ArgumentFactLink, FactClaim)
            .join(FactClaim, FactClaim.id == ArgumentFactLink.fact_claim_id)
            .where(ArgumentFactLink.argument_id == argument.id)
        )
        fact_links = [
            {
                "fact_claim_id": fact.id,
                "claim": fact.claim,
                "fact_confidence": fact.confidence,
                "dependency_strength": link.dependency_strength,
            }
            for link, fact in links_result.all()
        ]

        return ArgumentDetail(
            argument=argument,
            confidence_updates=list(updates_result.scalars().all()),
            fact_links=fact_links,
        )

    async def get_cluster_arguments(self, cluster_id: UUIDLike) -> List[Argument]:
        result = await self.db.execute(
            select(Argument)
            .where(Argument.cluster_id == parse_uuid(cluster_id, "cluster_id"))
            .order_by(Argument.confidence.desc())
        )
        return list(result.scalars().all())

    async def get_top_arguments(self, limit: int = 20) -> List[Argument]:
        result = await self.db.execute(
            select(Argument).order_by(Argument.confidence.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_content_arguments(self, source_content_id: str) -> List[Argument]:
        result = await self.db.execute(
            select(Argument)
            .where(Argument.source_content_id == source_content_id)
            .order_by(Argument.created_at.desc())
        )
        return list(result.scalars().all())

    async def increment_counter(self, argument_id: UUIDLike, counter: str) -> None:
        """Atomic ``counter = counter + 1``; does not commit."""
        if counter not in {"support_count", "refute_count", "citation_count"}:
            raise ValueError(f"Unknown argument counter: {counter}")

        column = getattr(Argument, counter)
        result = await self.db.execute(
            update(Argument)
            .where(Argument.id == parse_uuid(argument_id, "argument_id"))
            .values({counter: column + 1})
        )
        if result.rowcount == 0:
            raise ArgumentNotFoundError(f"Argument {argument_id} not found")

    async def record_citation(self, argument_id: UUIDLike) -> None:
        await self.increment_counter(argument_id, "citation_count")
        await self.db.commit()
        logger.info("[LEDGER] Citation recorded on %s", argument_id)


def serialize_argument(argument: Argument) -> Dict[str, Any]:
    return {
        "id": str(argument.id),
        "content": argument.content,
        "summary": argument.summary,
        "source_content_id": argument.source_content_id,
        "source_author_id": argument.source_author_id,
        "confidence": argument.confidence,
        "effective_confidence": argument.effective_confidence,
        "confidence_history": argument.confidence_history or [],
        "logical_validity": argument.logical_validity,
        "evidence_quality": argument.evidence_quality,
        "coherence": argument.coherence,
        "entropy_score": argument.entropy_score,
        "cluster_id": str(argument.cluster_id) if argument.cluster_id else None,
        "is_cluster_head": bool(argument.is_cluster_head),
        "support_count": argument.support_count,
        "refute_count": argument.refute_count,
        "citation_count": argument.citation_count,
        "created_at": argument.created_at,
        "updated_at": argument.updated_at,
    }


def serialize_confidence_update(row: ConfidenceUpdate) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "argument_id": str(row.argument_id),
        "interaction_id": str(row.interaction_id) if row.interaction_id else None,
        "old_confidence": row.old_confidence,
        "new_confidence": row.new_confidence,
        "reason": row.reason,
        "propagated_from": str(row.propagated_from) if row.propagated_from else None,
        "cosine_similarity": row.cosine_similarity,
        "created_at": row.created_at,
    }

"""
Fact Claim registry.

Factual claims that arguments depend on. Challenging or citing a fact moves
its confidence with diminishing returns, and every change cascades to the
effective confidence of dependent arguments.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from acn_python_backend.models import ArgumentFactLink, FactClaim
from acn_python_backend.services.argument_ledger import UUIDLike, clamp_confidence, history_entry
from acn_python_backend.services.embedding_service import EmbeddingService, get_embedding_service
from acn_python_backend.services.fact_linkage import FactLinkageResolver, FactNotFoundError, load_fact
from acn_python_backend.services.similarity_index import SimilarityIndex, get_similarity_index

logger = logging.getLogger(__name__)

FACT_SIMILARITY_THRESHOLD = 0.8
LOW_CONFIDENCE_THRESHOLD = 0.3
ESTABLISHED_THRESHOLD = 0.8
CHALLENGE_IMPACT = 0.05
CITATION_BOOST = 0.02

__all__ = [
    "FactClaimService",
    "FactMatch",
    "FactNotFoundError",
    "FactUpdateResult",
    "serialize_fact",
]


@dataclass
class FactMatch:
    id: uuid.UUID
    claim: str
    confidence: float
    similarity: float


@dataclass
class FactUpdateResult:
    fact_id: uuid.UUID
    old_confidence: float
    new_confidence: float
    affected_arguments: List[uuid.UUID] = field(default_factory=list)


class FactClaimService:
    def __init__(
        self,
        db: AsyncSession,
        embedding_service: Optional[EmbeddingService] = None,
        similarity_index: Optional[SimilarityIndex] = None,
    ):
        self.db = db
        self._embedding_service = embedding_service
        self.similarity_index = similarity_index or get_similarity_index()
        self.linkage = FactLinkageResolver(db)

    @property
    def embedding_service(self) -> EmbeddingService:
        if self._embedding_service is None:
            self._embedding_service = get_embedding_service()
        return self._embedding_service

    async def create_fact(
        self,
        claim: str,
        source_content_id: Optional[str] = None,
        source_author_id: Optional[str] = None,
        initial_confidence: float = 0.5,
    ) -> FactClaim:
        embedding = await self.embedding_service.embed_text(claim)
        confidence = clamp_confidence(initial_confidence)

        fact = FactClaim(
            id=uuid.uuid4(),
            claim=claim,
            source_content_id=source_content_id,
            source_author_id=source_author_id,
            embedding=embedding,
            confidence=confidence,
            confidence_history=[history_entry(confidence, "initial")],
        )
        self.db.add(fact)
        await self.db.commit()

        logger.info("[FACTS] Created fact claim %s", fact.id)
        return fact

    async def get_fact(self, fact_id: UUIDLike) -> FactClaim:
        return await load_fact(self.db, fact_id)

    async def get_dependent_argument_ids(self, fact_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.db.execute(
            select(ArgumentFactLink.argument_id).where(ArgumentFactLink.fact_claim_id == fact_id)
        )
        return list(result.scalars().all())

    async def find_similar_facts(
        self,
        query: str,
        limit: int = 5,
        min_similarity: float = FACT_SIMILARITY_THRESHOLD,
    ) -> List[FactMatch]:
        embedding = await self.embedding_service.embed_text(query)

        result = await self.db.execute(
            select(FactClaim.id, FactClaim.claim, FactClaim.confidence, FactClaim.embedding)
            .order_by(FactClaim.created_at)
        )
        rows = {row.id: row for row in result.all()}

        matches = self.similarity_index.search(
            embedding,
            ((row_id, row.embedding) for row_id, row in rows.items()),
            threshold=min_similarity,
            limit=limit,
        )
        return [
            FactMatch(
                id=match.id,
                claim=rows[match.id].claim,
                confidence=rows[match.id].confidence,
                similarity=match.similarity,
            )
            for match in matches
        ]

    async def update_fact_confidence(self, fact_id: UUIDLike, new_confidence: float, reason: str) -> FactUpdateResult:
        new_confidence = clamp_confidence(new_confidence)
        fact = await load_fact(self.db, fact_id)
        old_confidence = fact.confidence

        fact.confidence = new_confidence
        fact.confidence_history = [
            *(fact.confidence_history or []),
            history_entry(new_confidence, reason, previous=old_confidence),
        ]
        await self.db.commit()

        affected = await self.get_dependent_argument_ids(fact.id)
        for argument_id in affected:
            await self.linkage.recalculate_effective_confidence(argument_id)

        logger.info(
            "[FACTS] Fact %s %.3f -> %.3f (cascaded to %d arguments)",
            fact.id,
            old_confidence,
            new_confidence,
            len(affected),
        )
        return FactUpdateResult(
            fact_id=fact.id,
            old_confidence=old_confidence,
            new_confidence=new_confidence,
            affected_arguments=affected,
        )

    async def _increment(self, fact_id: UUIDLike, counter: str) -> FactClaim:
        fact = await load_fact(self.db, fact_id)
        column = getattr(FactClaim, counter)
        await self.db.execute(
            update(FactClaim).where(FactClaim.id == fact.id).values({counter: column + 1})
        )
        return await load_fact(self.db, fact.id)

    async def challenge_fact(self, fact_id: UUIDLike, reason: str) -> FactUpdateResult:
        """Lower confidence by 0.05 / sqrt(challenge_count)."""
        fact = await self._increment(fact_id, "challenge_count")
        impact = CHALLENGE_IMPACT / math.sqrt(fact.challenge_count)
        return await self.update_fact_confidence(fact.id, fact.confidence - impact, f"Challenge: {reason}")

    async def cite_fact(self, fact_id: UUIDLike, context_content_id: Optional[str] = None) -> FactUpdateResult:
        """Raise confidence by 0.02 / sqrt(citation_count)."""
        fact = await self._increment(fact_id, "citation_count")
        boost = CITATION_BOOST / math.sqrt(fact.citation_count)
        reason = f"Cited in content {context_content_id}" if context_content_id else "Cited"
        return await self.update_fact_confidence(fact.id, fact.confidence + boost, reason)

    async def get_low_confidence_facts(self, threshold: float = LOW_CONFIDENCE_THRESHOLD, limit: int = 20) -> List[FactClaim]:
        result = await self.db.execute(
            select(FactClaim)
            .where(FactClaim.confidence < threshold)
            .order_by(FactClaim.confidence.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_established_facts(self, threshold: float = ESTABLISHED_THRESHOLD, limit: int = 20) -> List[FactClaim]:
        result = await self.db.execute(
            select(FactClaim)
            .where(FactClaim.confidence >= threshold)
            .order_by(FactClaim.confidence.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def search_facts(self, query: str, limit: int = 10) -> List[FactClaim]:
        result = await self.db.execute(
            select(FactClaim)
            .where(FactClaim.claim.ilike(f"%{query}%"))
            .order_by(FactClaim.confidence.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


def serialize_fact(fact: FactClaim) -> Dict[str, Any]:
    return {
        "id": str(fact.id),
        "claim": fact.claim,
        "source_content_id": fact.source_content_id,
        "source_author_id": fact.source_author_id,
        "confidence": fact.confidence,
        "confidence_history": fact.confidence_history or [],
        "citation_count": fact.citation_count,
        "challenge_count": fact.challenge_count,
        "created_at": fact.created_at,
    }

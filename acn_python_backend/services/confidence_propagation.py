"""
Confidence Propagation Engine

A direct confidence change on one argument ripples to semantically similar
arguments, scaled by ``PROPAGATION_DECAY * similarity``. Every applied change,
direct or propagated, is written to the ``confidence_updates`` audit table.

Fan-out is deliberately not atomic: each neighbour is its own unit of work,
committed separately. A failed neighbour is rolled back and skipped; the ones
already applied stay applied.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from acn_python_backend.models import Argument, ConfidenceUpdate
from acn_python_backend.services.argument_ledger import (
    ArgumentLedger,
    ArgumentNotFoundError,
    SimilarArgument,
    UUIDLike,
    clamp_confidence,
    confidence_change,
    history_entry,
    load_argument,
    parse_uuid,
)

logger = logging.getLogger(__name__)

PROPAGATION_DECAY = 0.9
PROPAGATION_MIN_DELTA = 0.05
PROPAGATION_MIN_CHANGE = 0.01
PROPAGATION_CANDIDATE_LIMIT = 20
ENGAGEMENT_STEP = 0.02


@dataclass
class ConfidenceUpdateResult:
    argument: Argument
    old_confidence: float
    new_confidence: float
    propagated_to: List[uuid.UUID] = field(default_factory=list)

    @property
    def argument_id(self) -> uuid.UUID:
        return self.argument.id


def propagated_change(delta: float, similarity: float) -> float:
    return delta * PROPAGATION_DECAY * similarity


class ConfidencePropagator:
    def __init__(self, db: AsyncSession, ledger: Optional[ArgumentLedger] = None):
        self.db = db
        self.ledger = ledger or ArgumentLedger(db)

    async def update_confidence(
        self,
        argument_id: UUIDLike,
        new_confidence: float,
        reason: str,
        interaction_id: Optional[UUIDLike] = None,
    ) -> ConfidenceUpdateResult:
        new_confidence = clamp_confidence(new_confidence)
        interaction_uuid = parse_uuid(interaction_id, "interaction_id") if interaction_id else None

        argument = await load_argument(self.db, argument_id)
        old_confidence = argument.confidence
        delta = confidence_change(new_confidence, old_confidence)

        argument.confidence = new_confidence
        argument.confidence_history = [
            *(argument.confidence_history or []),
            history_entry(new_confidence, reason, previous=old_confidence),
        ]
        self.db.add(ConfidenceUpdate(
            argument_id=argument.id,
            interaction_id=interaction_uuid,
            old_confidence=old_confidence,
            new_confidence=new_confidence,
            reason=reason,
        ))
        await self.db.commit()

        origin_id = argument.id
        embedding = list(argument.embedding or [])

        propagated_to: List[uuid.UUID] = []
        if abs(delta) > PROPAGATION_MIN_DELTA and embedding:
            candidates = await self.ledger.find_similar_arguments(
                embedding,
                limit=PROPAGATION_CANDIDATE_LIMIT,
                exclude_id=origin_id,
            )
            for candidate in candidates:
                try:
                    applied = await self._apply_propagation(origin_id, candidate, delta, interaction_uuid)
                except SQLAlchemyError as exc:
                    await self.db.rollback()
                    logger.warning("[PROPAGATION] Skipped %s after write failure: %s", candidate.id, exc)
                    continue
                if applied:
                    propagated_to.append(candidate.id)

        logger.info(
            "[PROPAGATION] %s %.3f -> %.3f (propagated to %d)",
            origin_id,
            old_confidence,
            new_confidence,
            len(propagated_to),
        )

        return ConfidenceUpdateResult(
            argument=await load_argument(self.db, origin_id),
            old_confidence=old_confidence,
            new_confidence=new_confidence,
            propagated_to=propagated_to,
        )

    async def _apply_propagation(
        self,
        origin_id: uuid.UUID,
        candidate: SimilarArgument,
        delta: float,
        interaction_id: Optional[uuid.UUID],
    ) -> bool:
        try:
            target = await load_argument(self.db, candidate.id)
        except ArgumentNotFoundError:
            return False

        current = target.confidence
        updated = clamp_confidence(current + propagated_change(delta, candidate.similarity))
        if abs(confidence_change(updated, current)) <= PROPAGATION_MIN_CHANGE:
            return False

        reason = f"Propagated from {origin_id}"
        target.confidence = updated
        target.confidence_history = [
            *(target.confidence_history or []),
            history_entry(updated, reason, previous=current),
        ]
        self.db.add(ConfidenceUpdate(
            argument_id=target.id,
            interaction_id=interaction_id,
            old_confidence=current,
            new_confidence=updated,
            reason=reason,
            propagated_from=origin_id,
            cosine_similarity=candidate.similarity,
        ))
        await self.db.commit()
        return True

    async def support_argument(
        self,
        argument_id: UUIDLike,
        actor_id: str,
        interaction_id: Optional[UUIDLike] = None,
    ) -> ConfidenceUpdateResult:
        await self.ledger.increment_counter(argument_id, "support_count")
        argument = await load_argument(self.db, argument_id)
        return await self.update_confidence(
            argument.id,
            argument.confidence + ENGAGEMENT_STEP,
            f"Supported by user {actor_id}",
            interaction_id,
        )

    async def refute_argument(
        self,
        argument_id: UUIDLike,
        actor_id: str,
        interaction_id: Optional[UUIDLike] = None,
    ) -> ConfidenceUpdateResult:
        await self.ledger.increment_counter(argument_id, "refute_count")
        argument = await load_argument(self.db, argument_id)
        return await self.update_confidence(
            argument.id,
            argument.confidence - ENGAGEMENT_STEP,
            f"Refuted by user {actor_id}",
            interaction_id,
        )

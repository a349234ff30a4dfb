"""
Fact-Linkage Resolver

effective_confidence = confidence * prod((1 - w) + w * fact.confidence)

over every fact the argument depends on, with ``w`` the link's dependency
strength. With no links the effective confidence equals the confidence.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from acn_python_backend.models import ArgumentFactLink, FactClaim
from acn_python_backend.services.argument_ledger import UUIDLike, clamp_confidence, load_argument, parse_uuid

logger = logging.getLogger(__name__)


class FactNotFoundError(LookupError):
    pass


async def load_fact(db: AsyncSession, fact_id: UUIDLike) -> FactClaim:
    fact_uuid = parse_uuid(fact_id, "fact_id")
    result = await db.execute(
        select(FactClaim)
        .where(FactClaim.id == fact_uuid)
        .execution_options(populate_existing=True)
    )
    fact = result.scalar_one_or_none()
    if fact is None:
        raise FactNotFoundError(f"Fact {fact_id} not found")
    return fact


def fact_multiplier(links: List[tuple]) -> float:
    """``links`` is a list of (dependency_strength, fact_confidence) pairs."""
    multiplier = 1.0
    for weight, fact_confidence in links:
        multiplier *= (1 - weight) + weight * fact_confidence
    return multiplier


class FactLinkageResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def recalculate_effective_confidence(self, argument_id: UUIDLike) -> float:
        argument = await load_argument(self.db, argument_id)

        result = await self.db.execute(
            select(ArgumentFactLink.dependency_strength, FactClaim.confidence)
            .join(FactClaim, FactClaim.id == ArgumentFactLink.fact_claim_id)
            .where(ArgumentFactLink.argument_id == argument.id)
        )
        links = [(row.dependency_strength, row.confidence) for row in result.all()]

        effective = argument.confidence
        if links:
            effective = clamp_confidence(argument.confidence * fact_multiplier(links))

        argument.effective_confidence = effective
        await self.db.commit()

        logger.debug("[FACTS] Effective confidence of %s = %.4f (%d links)", argument.id, effective, len(links))
        return effective

    async def _find_link(self, argument_id, fact_id) -> Optional[ArgumentFactLink]:
        result = await self.db.execute(
            select(ArgumentFactLink)
            .where(
                ArgumentFactLink.argument_id == argument_id,
                ArgumentFactLink.fact_claim_id == fact_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def link_to_fact(
        self,
        argument_id: UUIDLike,
        fact_id: UUIDLike,
        dependency_strength: float = 1.0,
    ) -> ArgumentFactLink:
        """Upsert the (argument, fact) link and refresh effective confidence."""
        strength = clamp_confidence(dependency_strength)
        argument = await load_argument(self.db, argument_id)
        fact = await load_fact(self.db, fact_id)

        link = await self._find_link(argument.id, fact.id)
        if link is None:
            link = ArgumentFactLink(
                argument_id=argument.id,
                fact_claim_id=fact.id,
                dependency_strength=strength,
            )
            self.db.add(link)
            try:
                await self.db.commit()
            except IntegrityError:
                # Lost an insert race; the row exists now, so update it instead
                await self.db.rollback()
                link = await self._find_link(argument.id, fact.id)
                link.dependency_strength = strength
                await self.db.commit()
        else:
            link.dependency_strength = strength
            await self.db.commit()

        logger.info("[FACTS] Linked argument %s -> fact %s (strength=%.2f)", argument.id, fact.id, strength)

        await self.recalculate_effective_confidence(argument.id)
        return link

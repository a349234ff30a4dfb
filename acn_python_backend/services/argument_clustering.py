"""
Clustering of near-duplicate arguments.

A newly created argument joins the cluster of its closest match when the
match is above ``CLUSTER_SIMILARITY_THRESHOLD`` and already clustered;
otherwise the pair founds a fresh cluster. Head selection is deterministic:
the higher confidence wins and ties go to the existing argument.

Once set, ``cluster_id`` only changes through ``merge_clusters``.
"""

import logging
import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from acn_python_backend.models import Argument
from acn_python_backend.services.argument_ledger import UUIDLike, load_argument, parse_uuid

if TYPE_CHECKING:
    from acn_python_backend.services.argument_ledger import ArgumentLedger

logger = logging.getLogger(__name__)

CLUSTER_SIMILARITY_THRESHOLD = 0.95
CLUSTER_CANDIDATE_LIMIT = 5


class ClusterNotFoundError(LookupError):
    pass


def choose_cluster_head(new_argument: Argument, existing: Argument) -> Argument:
    if new_argument.confidence > existing.confidence:
        return new_argument
    return existing


class ArgumentClustering:
    def __init__(self, db: AsyncSession, ledger: "ArgumentLedger"):
        self.db = db
        self.ledger = ledger

    async def assign_cluster(self, argument: Argument) -> Optional[uuid.UUID]:
        """
        Cluster ``argument`` with its nearest neighbour, if close enough.

        Returns the cluster id the argument ends up in, or None.
        """
        if argument.cluster_id is not None:
            return argument.cluster_id

        similar = await self.ledger.find_similar_arguments(
            argument.embedding,
            limit=CLUSTER_CANDIDATE_LIMIT,
            exclude_id=argument.id,
        )
        clustered = next((s for s in similar if s.similarity > CLUSTER_SIMILARITY_THRESHOLD), None)
        if clustered is None:
            return None

        match = await load_argument(self.db, clustered.id)

        if match.cluster_id is not None:
            argument.cluster_id = match.cluster_id
            argument.is_cluster_head = False
        else:
            cluster_id = uuid.uuid4()
            head = choose_cluster_head(argument, match)
            for member in (argument, match):
                member.cluster_id = cluster_id
                member.is_cluster_head = member is head

        await self.db.commit()
        logger.info(
            "[CLUSTER] %s clustered with %s (similarity=%.3f, cluster=%s)",
            argument.id,
            match.id,
            clustered.similarity,
            argument.cluster_id,
        )
        return argument.cluster_id

    async def merge_clusters(self, source_cluster_id: UUIDLike, target_cluster_id: UUIDLike) -> int:
        """Move every member of the source cluster into the target cluster.

        The target keeps its head; source members are demoted.
        Returns the number of arguments moved.
        """
        source = parse_uuid(source_cluster_id, "source_cluster_id")
        target = parse_uuid(target_cluster_id, "target_cluster_id")
        if source == target:
            raise ValueError("Cannot merge a cluster into itself")

        for cluster_id in (source, target):
            count = await self.db.scalar(
                select(func.count()).select_from(Argument).where(Argument.cluster_id == cluster_id)
            )
            if not count:
                raise ClusterNotFoundError(f"Cluster {cluster_id} not found")

        result = await self.db.execute(
            update(Argument)
            .where(Argument.cluster_id == source)
            .values(cluster_id=target, is_cluster_head=False)
        )
        await self.db.commit()

        logger.info("[CLUSTER] Merged %s into %s (%s arguments)", source, target, result.rowcount)
        return result.rowcount


async def get_cluster_head(db: AsyncSession, cluster_id: UUIDLike) -> Optional[Argument]:
    result = await db.execute(
        select(Argument).where(
            Argument.cluster_id == parse_uuid(cluster_id, "cluster_id"),
            Argument.is_cluster_head.is_(True),
        )
    )
    return result.scalars().first()

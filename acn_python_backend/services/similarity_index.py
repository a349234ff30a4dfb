"""
Similarity search over stored embeddings.

The default index is an exhaustive linear scan. Anything implementing
``SimilarityIndex.search`` with the same call shape can replace it without
touching the ledger, clustering or propagation code.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

# Digits kept when comparing a score against a threshold
SIMILARITY_PRECISION = 9


@dataclass(frozen=True)
class SimilarityMatch:
    id: Any
    similarity: float


def cosine_similarity(embedding1: Optional[Sequence[float]], embedding2: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity between two embeddings.

    Returns 0.0 for missing, empty, mismatched-length or zero-norm vectors.
    """
    if not embedding1 or not embedding2 or len(embedding1) != len(embedding2):
        return 0.0

    vec1 = np.asarray(embedding1, dtype=float)
    vec2 = np.asarray(embedding2, dtype=float)

    norm1 = np.linalg.norm(vec1)
    norm2 = np.linalg.norm(vec2)
    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(vec1, vec2) / (norm1 * norm2))


class SimilarityIndex(Protocol):
    def search(
        self,
        query: Sequence[float],
        candidates: Iterable[Tuple[Any, Optional[Sequence[float]]]],
        threshold: float,
        limit: int,
        exclude_id: Any = None,
    ) -> List[SimilarityMatch]:
        ...


class LinearScanIndex:
    """Exhaustive scan: O(n) per query, exact results."""

    def search(
        self,
        query: Sequence[float],
        candidates: Iterable[Tuple[Any, Optional[Sequence[float]]]],
        threshold: float,
        limit: int,
        exclude_id: Any = None,
    ) -> List[SimilarityMatch]:
        matches: List[SimilarityMatch] = []
        cutoff = round(threshold, SIMILARITY_PRECISION)

        for candidate_id, embedding in candidates:
            if exclude_id is not None and candidate_id == exclude_id:
                continue
            if not embedding:
                continue

            similarity = cosine_similarity(query, embedding)
            if round(similarity, SIMILARITY_PRECISION) >= cutoff:
                matches.append(SimilarityMatch(id=candidate_id, similarity=similarity))

        # list.sort is stable, so equal scores keep candidate order
        matches.sort(key=lambda match: match.similarity, reverse=True)

        return matches[:limit]


_default_index: Optional[LinearScanIndex] = None


def get_similarity_index() -> SimilarityIndex:
    global _default_index

    if _default_index is None:
        _default_index = LinearScanIndex()

    return _default_index

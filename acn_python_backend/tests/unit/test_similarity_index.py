import pytest

from acn_python_backend.services.similarity_index import (
    LinearScanIndex,
    SimilarityMatch,
    cosine_similarity,
    get_similarity_index,
)
from acn_python_backend.tests.fixtures.fakes import base_vector, orthogonal_vector, vector_with_similarity


def test_cosine_similarity_basic_cases():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([3.0, 4.0], [6.0, 8.0]) == pytest.approx(1.0)


@pytest.mark.parametrize(
    "left,right",
    [
        (None, [1.0]),
        ([], [1.0]),
        ([1.0, 0.0], [1.0]),
        ([0.0, 0.0], [1.0, 0.0]),
    ],
)
def test_cosine_similarity_degenerate_inputs_score_zero(left, right):
    assert cosine_similarity(left, right) == 0.0


def test_designed_vectors_hit_their_target_similarity():
    assert cosine_similarity(base_vector(), vector_with_similarity(0.9)) == pytest.approx(0.9)
    assert cosine_similarity(vector_with_similarity(0.9, axis=1), vector_with_similarity(0.9, axis=2)) == pytest.approx(0.81)


def test_linear_scan_filters_sorts_and_limits():
    candidates = [
        ("low", vector_with_similarity(0.5)),
        ("mid", vector_with_similarity(0.86)),
        ("high", vector_with_similarity(0.97)),
        ("exact", base_vector()),
    ]

    matches = LinearScanIndex().search(base_vector(), candidates, threshold=0.85, limit=2)

    assert [match.id for match in matches] == ["exact", "high"]
    assert matches[0].similarity == pytest.approx(1.0)


def test_linear_scan_threshold_is_inclusive():
    candidates = [("on-threshold", [1.0, 1.0])]
    threshold = cosine_similarity([1.0, 0.0], [1.0, 1.0])

    matches = LinearScanIndex().search([1.0, 0.0], candidates, threshold=threshold, limit=5)

    assert matches == [SimilarityMatch(id="on-threshold", similarity=threshold)]


def test_linear_scan_ignores_float_noise_at_threshold():
    # the edge vector has unit norm only up to rounding
    candidates = [("edge", [0.85, (1 - 0.85 ** 2) ** 0.5]), ("below", vector_with_similarity(0.849)[:2])]

    matches = LinearScanIndex().search([1.0, 0.0], candidates, threshold=0.85, limit=5)

    assert [match.id for match in matches] == ["edge"]


def test_linear_scan_skips_excluded_and_missing_embeddings():
    candidates = [
        ("self", base_vector()),
        ("no-embedding", None),
        ("empty", []),
        ("other", vector_with_similarity(0.9)),
    ]

    matches = LinearScanIndex().search(base_vector(), candidates, threshold=0.0, limit=10, exclude_id="self")

    assert [match.id for match in matches] == ["other"]


def test_linear_scan_ties_keep_candidate_order():
    candidates = [("first", base_vector()), ("second", base_vector()), ("third", orthogonal_vector(3))]

    matches = LinearScanIndex().search(base_vector(), candidates, threshold=0.5, limit=10)

    assert [match.id for match in matches] == ["first", "second"]


def test_get_similarity_index_is_shared():
    assert get_similarity_index() is get_similarity_index()

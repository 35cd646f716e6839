"""
Tests for the similarity signals between memories.
"""

import pytest

from conftest import FakeEntityExtractor, make_memory
from entanglement.services.similarity import (cosine_similarity, emotional_resonance, entity_overlap, jaccard,
                                              temporal_proximity)


class TestCosineSimilarity:

    def test_vector_with_itself_is_one(self):
        vector = [0.3, -1.2, 4.5, 0.01]
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_zero_vector_is_zero(self):
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
        assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0

    def test_symmetric_and_bounded(self):
        a, b = [1.0, 2.0, 0.5], [-0.5, 1.0, 3.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
        assert -1.0 <= cosine_similarity(a, b) <= 1.0

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


class TestTemporalProximity:

    def test_same_moment_is_one(self):
        assert temporal_proximity(make_memory('a'), make_memory('b'), 30) == 1.0

    def test_at_or_beyond_window_is_exactly_zero(self):
        assert temporal_proximity(make_memory('a'), make_memory('b', days_ago=30), 30) == 0.0
        assert temporal_proximity(make_memory('a'), make_memory('b', days_ago=45), 30) == 0.0

    def test_strictly_decreasing_inside_window(self):
        target = make_memory('a')
        scores = [temporal_proximity(target, make_memory('b', days_ago=d), 30) for d in (0, 1, 5, 10, 29)]
        assert all(earlier > later for earlier, later in zip(scores, scores[1:]))

    def test_order_of_memories_does_not_matter(self):
        older, newer = make_memory('a', days_ago=7), make_memory('b', days_ago=2)
        assert temporal_proximity(older, newer, 30) == pytest.approx(temporal_proximity(newer, older, 30))
        assert temporal_proximity(older, newer, 30) == pytest.approx(1 - 5 / 30)

    def test_missing_timestamp_scores_zero(self):
        undated = make_memory('b')
        undated.timestamp = None
        assert temporal_proximity(make_memory('a'), undated, 30) == 0.0


class TestEmotionalResonance:

    def test_documented_example(self):
        a = make_memory('a', emotions=['joy', 'nostalgia'], intensity=0.8)
        b = make_memory('b', emotions=['joy', 'relief'], intensity=0.6)
        assert emotional_resonance(a, b) == pytest.approx((1 / 3 + 0.8) / 2)
        assert emotional_resonance(a, b) == pytest.approx(0.567, abs=1e-3)

    def test_no_emotions_is_zero(self):
        a = make_memory('a', emotions=[], intensity=0.5)
        b = make_memory('b', emotions=['joy'], intensity=0.5)
        assert emotional_resonance(a, b) == 0.0
        assert emotional_resonance(b, a) == 0.0

    def test_missing_intensity_defaults_to_half(self):
        a = make_memory('a', emotions=['joy'])
        b = make_memory('b', emotions=['joy'], intensity=0.5)
        assert emotional_resonance(a, b) == pytest.approx(1.0)


class TestEntityOverlap:

    def test_jaccard_of_extracted_entities(self):
        extractor = FakeEntityExtractor({'a': ['grandma', 'lake house'], 'b': ['grandma', 'boat']})
        assert entity_overlap(make_memory('a'), make_memory('b'), extractor) == pytest.approx(1 / 3)

    def test_empty_entity_set_is_zero(self):
        extractor = FakeEntityExtractor({'a': ['grandma'], 'b': []})
        assert entity_overlap(make_memory('a'), make_memory('b'), extractor) == 0.0

    def test_extraction_failure_is_zero(self):
        extractor = FakeEntityExtractor({'a': ['grandma'], 'b': ['grandma']}, failures={'b'})
        assert entity_overlap(make_memory('a'), make_memory('b'), extractor) == 0.0


def test_jaccard_handles_duplicates_and_empty():
    assert jaccard(['x', 'x', 'y'], ['y']) == pytest.approx(0.5)
    assert jaccard([], ['y']) == 0.0

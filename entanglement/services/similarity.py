"""
Similarity signals between two memories.

Every signal is in 0..1 for well-formed input; cosine similarity can dip below
zero for arbitrary vectors but embedding vectors keep it non-negative in practice.
"""

import math
from typing import Iterable, Sequence

from ..models.core import MemoryRecord
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import days_between
from .entity_extraction import EntityExtractionError, EntityExtractionService

logger = get_logger(__name__)

DEFAULT_INTENSITY = 0.5


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors, 0 if either has zero norm."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard similarity of two collections, 0 if either is empty."""
    set_a, set_b = set(a), set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def temporal_proximity(memory_a: MemoryRecord, memory_b: MemoryRecord, window_days: float) -> float:
    """1 for simultaneous memories, falling linearly to 0 at the window edge."""
    if memory_a.timestamp is None or memory_b.timestamp is None or window_days <= 0:
        return 0.0
    return max(0.0, 1.0 - days_between(memory_a.timestamp, memory_b.timestamp) / window_days)


def emotional_resonance(memory_a: MemoryRecord, memory_b: MemoryRecord) -> float:
    """Mean of emotion-tag Jaccard similarity and intensity closeness."""
    if not memory_a.emotions or not memory_b.emotions:
        return 0.0

    intensity_a = memory_a.emotional_intensity if memory_a.emotional_intensity is not None else DEFAULT_INTENSITY
    intensity_b = memory_b.emotional_intensity if memory_b.emotional_intensity is not None else DEFAULT_INTENSITY
    intensity_similarity = 1.0 - abs(intensity_a - intensity_b)

    return (jaccard(memory_a.emotions, memory_b.emotions) + intensity_similarity) / 2


def entity_overlap(memory_a: MemoryRecord, memory_b: MemoryRecord, extractor: EntityExtractionService) -> float:
    """Jaccard similarity of extracted entities; extraction failures score 0."""
    try:
        entities_a = extractor.extract_for_memory(memory_a)
        entities_b = extractor.extract_for_memory(memory_b)
    except EntityExtractionError as e:
        logger.warning(f'Entity extraction failed for {memory_a.id}/{memory_b.id}: {e}')
        return 0.0

    return jaccard(entities_a, entities_b)

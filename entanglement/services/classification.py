"""
Relationship classification: four similarity signals in, typed and graded entanglements out.
"""

import math
import threading
import time
from typing import Dict, List, Optional, Sequence, Tuple

from ..models.core import (Entanglement, EntanglementMetadata, EntanglementStrength, EntanglementType, MemoryRecord,
                           SignalScores)
from ..utils.logging_config import get_logger
from .embedding_service import MemoryEmbedder
from .entity_extraction import EntityExtractionService
from .similarity import cosine_similarity, emotional_resonance, entity_overlap, temporal_proximity

logger = get_logger(__name__)

# Entity overlap may mean a shared person, place or theme; it is recorded as person
SIGNAL_TYPES: Dict[str, EntanglementType] = {
    'semantic': EntanglementType.SEMANTIC,
    'temporal': EntanglementType.TEMPORAL,
    'emotional': EntanglementType.EMOTIONAL,
    'entity': EntanglementType.PERSON,
}


def strength_for(confidence: float) -> EntanglementStrength:
    """Bucket a confidence value into a strength level."""
    if confidence >= 0.8:
        return EntanglementStrength.VERY_STRONG
    if confidence >= 0.6:
        return EntanglementStrength.STRONG
    if confidence >= 0.4:
        return EntanglementStrength.MODERATE
    return EntanglementStrength.WEAK


def classify(scores: SignalScores) -> Tuple[EntanglementType, EntanglementStrength, float]:
    """
    Pick the dominant signal and blend it with the mean of all signals.

    Returns:
        Tuple of (type, strength, confidence)
    """
    values = scores.as_dict()
    dominant_signal, dominant_score = 'semantic', float('-inf')
    for signal, score in values.items():
        # Ties go to the later signal
        if score >= dominant_score:
            dominant_signal, dominant_score = signal, score
    average = sum(values.values()) / len(values)
    confidence = (dominant_score + average) / 2

    return SIGNAL_TYPES.get(dominant_signal, EntanglementType.ASSOCIATIVE), strength_for(confidence), confidence


def percent(score: float) -> int:
    """Score as a whole percentage, halves rounded up."""
    return math.floor(score * 100 + 0.5)


def build_reason(entanglement_type: EntanglementType, scores: SignalScores) -> str:
    """Short human-readable explanation of an entanglement."""
    if entanglement_type == EntanglementType.SEMANTIC:
        return f'These memories share similar themes and content ({percent(scores.semantic)}% similarity)'
    if entanglement_type == EntanglementType.TEMPORAL:
        return 'These memories occurred close together in time'
    if entanglement_type == EntanglementType.EMOTIONAL:
        return f'These memories evoke similar emotional responses ({percent(scores.emotional)}% resonance)'
    if entanglement_type == EntanglementType.PERSON:
        return 'These memories involve the same people or places'
    return 'These memories are connected through multiple associations'


class RelationshipClassifier:
    """Score candidates against a target memory and keep the confident relationships."""

    def __init__(self,
                 embedder: MemoryEmbedder,
                 entity_extractor: EntityExtractionService,
                 min_confidence_threshold: float = 0.3,
                 max_entanglements_per_memory: int = 20,
                 temporal_window_days: float = 30):
        self.embedder = embedder
        self.entity_extractor = entity_extractor
        self.min_confidence_threshold = min_confidence_threshold
        self.max_entanglements_per_memory = max_entanglements_per_memory
        self.temporal_window_days = temporal_window_days

    def score(self, target: MemoryRecord, candidate: MemoryRecord, target_embedding: Sequence[float],
              candidate_embedding: Sequence[float]) -> SignalScores:
        return SignalScores(semantic=cosine_similarity(target_embedding, candidate_embedding),
                            temporal=temporal_proximity(target, candidate, self.temporal_window_days),
                            emotional=emotional_resonance(target, candidate),
                            entity=entity_overlap(target, candidate, self.entity_extractor))

    def build_entanglement(self, target: MemoryRecord, candidate: MemoryRecord, scores: SignalScores) -> Optional[Entanglement]:
        """Classify one scored pair, returning None when confidence is below the threshold."""
        entanglement_type, strength, confidence = classify(scores)
        if confidence < self.min_confidence_threshold:
            return None

        shared = sorted(set(target.emotions) & set(candidate.emotions))
        return Entanglement(id=f'ent-{target.id}-{candidate.id}-{int(time.time() * 1000)}',
                            memory_a=str(target.id),
                            memory_b=str(candidate.id),
                            type=entanglement_type,
                            strength=strength.value,
                            confidence=confidence,
                            metadata=EntanglementMetadata(reason=build_reason(entanglement_type, scores),
                                                          shared_elements=shared,
                                                          temporal_distance=scores.temporal,
                                                          emotional_resonance=scores.emotional,
                                                          semantic_similarity=scores.semantic))

    def analyze(self,
                target: MemoryRecord,
                candidates: List[MemoryRecord],
                target_embedding: Sequence[float],
                cancel_event: Optional[threading.Event] = None) -> List[Entanglement]:
        """
        Score and classify every candidate against the target.

        Args:
            target: Memory being analyzed
            candidates: Candidate pool
            target_embedding: Embedding of the target memory
            cancel_event: Stops scoring further candidates when set

        Returns:
            Accepted entanglements, most confident first, capped at the per-memory maximum
        """
        entanglements = []

        for candidate in candidates:
            if cancel_event is not None and cancel_event.is_set():
                break
            try:
                candidate_embedding = self.embedder.embed_memory(candidate)
                scores = self.score(target, candidate, target_embedding, candidate_embedding)
                entanglement = self.build_entanglement(target, candidate, scores)
            except Exception as e:
                logger.warning(f'Failed to analyze relationship {target.id} -> {candidate.id}: {e}')
                continue

            if entanglement is not None:
                entanglements.append(entanglement)

        entanglements.sort(key=lambda e: e.confidence, reverse=True)
        return entanglements[:self.max_entanglements_per_memory]

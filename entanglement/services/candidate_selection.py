"""
Candidate pool assembly for entanglement discovery.
"""

import threading
from datetime import datetime
from typing import List, Optional, Sequence

from ..models.core import MemoryRecord
from ..utils.bedrock_embed import BedrockEmbedError
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import days_between, to_datetime
from .embedding_service import MemoryEmbedder
from .memory_store import MemoryStore, MemoryStoreError
from .similarity import cosine_similarity

logger = get_logger(__name__)

SEMANTIC_THRESHOLD = 0.5
MAX_SEMANTIC_CANDIDATES = 10
MAX_EMOTIONAL_CANDIDATES = 10


class CandidateSelector:
    """Merge temporal, semantic and emotional candidates into one pool per target memory."""

    def __init__(self, memory_store: MemoryStore, embedder: MemoryEmbedder, temporal_window_days: float = 30):
        self.memory_store = memory_store
        self.embedder = embedder
        self.temporal_window_days = temporal_window_days

    def select(self,
               target: MemoryRecord,
               user_id: str,
               target_embedding: Sequence[float],
               now: Optional[datetime] = None,
               cancel_event: Optional[threading.Event] = None) -> List[MemoryRecord]:
        """
        Build the deduplicated candidate pool for a target memory.

        Args:
            target: Memory being analyzed
            user_id: Owner of the memories
            target_embedding: Embedding of the target memory
            now: Reference time for the temporal window (defaults to the current time)
            cancel_event: Stops the semantic scan early when set

        Returns:
            Candidates keyed by id in first-seen order, never including the target
        """
        try:
            memories = [m for m in self.memory_store.list_memories(user_id) if m.id != target.id]
        except MemoryStoreError as e:
            logger.error(f'Failed to list memories for candidate selection: {e}')
            return []
        except Exception as e:
            logger.error(f'Unexpected error listing memories for candidate selection: {e}')
            return []

        pool = {}
        for candidate in (self.temporal_candidates(memories, now) +
                          self.semantic_candidates(memories, target_embedding, cancel_event) +
                          self.emotional_candidates(memories, target)):
            if candidate.id != target.id:
                pool.setdefault(candidate.id, candidate)

        logger.debug(f'Candidate pool for memory {target.id}: {len(pool)} memories')
        return list(pool.values())

    def temporal_candidates(self, memories: List[MemoryRecord], now: Optional[datetime] = None) -> List[MemoryRecord]:
        """Memories within the temporal window of the current time."""
        # Measured from now rather than the target's own timestamp
        now = now or to_datetime()
        try:
            return [m for m in memories if days_between(now, m.timestamp or now) <= self.temporal_window_days]
        except Exception as e:
            logger.error(f'Failed to get recent memories: {e}')
            return []

    def semantic_candidates(self,
                            memories: List[MemoryRecord],
                            target_embedding: Sequence[float],
                            cancel_event: Optional[threading.Event] = None) -> List[MemoryRecord]:
        """Top memories by cosine similarity above the semantic threshold."""
        try:
            scored = []
            for memory in memories:
                if cancel_event is not None and cancel_event.is_set():
                    break
                try:
                    similarity = cosine_similarity(target_embedding, self.embedder.embed_memory(memory))
                except BedrockEmbedError as e:
                    logger.debug(f'Skipping memory {memory.id} in semantic scan: {e}')
                    continue

                if similarity > SEMANTIC_THRESHOLD:
                    scored.append((similarity, memory))

            scored.sort(key=lambda item: item[0], reverse=True)
            return [memory for _, memory in scored[:MAX_SEMANTIC_CANDIDATES]]
        except Exception as e:
            logger.error(f'Failed to find similar memories: {e}')
            return []

    def emotional_candidates(self, memories: List[MemoryRecord], target: MemoryRecord) -> List[MemoryRecord]:
        """Memories sharing at least one emotion tag with the target."""
        try:
            target_emotions = set(target.emotions)
            if not target_emotions:
                return []
            return [m for m in memories if target_emotions.intersection(m.emotions)][:MAX_EMOTIONAL_CANDIDATES]
        except Exception as e:
            logger.error(f'Failed to find emotionally resonant memories: {e}')
            return []

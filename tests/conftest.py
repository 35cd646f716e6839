"""
Pytest fixtures and in-memory fakes for the entanglement engine tests.
"""

from datetime import timedelta
from typing import Dict, List, Optional

import pytest

from entanglement.models.core import MemoryRecord, TraversalResult
from entanglement.services.entity_extraction import EntityExtractionError
from entanglement.utils.bedrock_embed import BedrockEmbedError
from entanglement.utils.config import EntanglementConfig
from entanglement.utils.neptune_client import NeptuneError
from entanglement.utils.timestamp_utils import to_datetime

NOW = to_datetime(1_750_000_000)


def make_memory(memory_id: str,
                days_ago: float = 0,
                emotions: Optional[List[str]] = None,
                intensity: Optional[float] = None,
                user_id: str = 'user-1',
                title: str = '',
                content: str = '',
                now=None) -> MemoryRecord:
    """Memory record timestamped days_ago before now (NOW by default)."""
    return MemoryRecord(id=memory_id,
                        user_id=user_id,
                        title=title or f'Memory {memory_id}',
                        content=content or f'Content of {memory_id}',
                        emotions=list(emotions or []),
                        emotional_intensity=intensity,
                        timestamp=(now or NOW) - timedelta(days=days_ago))


class FakeMemoryStore:
    """Dictionary-backed memory store."""

    def __init__(self, memories: Optional[List[MemoryRecord]] = None):
        self.memories: Dict[str, MemoryRecord] = {m.id: m for m in memories or []}
        self.list_calls = 0

    def add(self, memory: MemoryRecord) -> None:
        self.memories[memory.id] = memory

    def get_memory(self, memory_id, user_id):
        memory = self.memories.get(str(memory_id))
        return memory if memory is not None and memory.user_id == str(user_id) else None

    def list_memories(self, user_id):
        self.list_calls += 1
        return [m for m in self.memories.values() if m.user_id == str(user_id)]


class FakeEmbedder:
    """Returns preset vectors per memory id; ids listed in failures raise."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, failures=(), healthy: bool = True):
        self.vectors = dict(vectors or {})
        self.failures = set(failures)
        self.healthy = healthy
        self.calls: List[str] = []

    def embed_memory(self, memory):
        self.calls.append(memory.id)
        if memory.id in self.failures:
            raise BedrockEmbedError(f'embedding failed for {memory.id}')
        return self.vectors.get(memory.id, [0.0, 0.0, 1.0])

    def embed_text(self, text):
        if not self.healthy:
            raise BedrockEmbedError('UnrecognizedClientException: invalid security token')
        return [1.0, 0.0, 0.0]


class FakeEntityExtractor:
    """Returns preset entity lists per memory id; ids listed in failures raise."""

    def __init__(self, entities: Optional[Dict[str, List[str]]] = None, failures=()):
        self.entities = dict(entities or {})
        self.failures = set(failures)

    def extract_for_memory(self, memory):
        if memory.id in self.failures:
            raise EntityExtractionError(f'extraction failed for {memory.id}')
        return self.entities.get(memory.id, [])


class FakeGraph:
    """Records persistence calls in place of GraphPersistence."""

    def __init__(self, fail_on_write: Optional[int] = None):
        self.indexes_ensured = 0
        self.memories: List[str] = []
        self.written = []
        self.fail_on_write = fail_on_write
        self.edges = []
        self.neighbor_calls = []

    def ensure_indexes(self):
        self.indexes_ensured += 1

    def ensure_memory(self, memory):
        self.memories.append(memory.id)

    def upsert_entanglement(self, entanglement):
        if self.fail_on_write is not None and len(self.written) == self.fail_on_write:
            raise NeptuneError('Failed to upsert_edge: connection reset')
        self.written.append(entanglement)

    def edges_for(self, memory_id):
        return list(self.edges)

    def neighbors(self, root_id, depth, min_strength=None, types=None, limit=100):
        self.neighbor_calls.append({'root_id': root_id, 'depth': depth, 'min_strength': min_strength, 'types': types,
                                    'limit': limit})
        return TraversalResult(nodes=[], edges=[], root_memory_id=root_id)


@pytest.fixture
def engine_config():
    """Discovery settings with auto-discovery off so no timer thread starts."""
    return EntanglementConfig(enable_auto_discovery=False)


@pytest.fixture
def memory_store():
    return FakeMemoryStore()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def entity_extractor():
    return FakeEntityExtractor()


@pytest.fixture
def graph():
    return FakeGraph()

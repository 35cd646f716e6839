"""
Core data models for the memory entanglement engine.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.timestamp_utils import parse_timestamp, to_datetime


class EntanglementType(str, Enum):
    """Ways two memories can be connected."""
    TEMPORAL = 'temporal'  # Close in time
    SEMANTIC = 'semantic'  # Similar content or meaning
    EMOTIONAL = 'emotional'  # Similar emotional states
    PERSON = 'person'  # Same people mentioned
    LOCATION = 'location'  # Same places
    THEME = 'theme'  # Similar themes or topics
    CAUSAL = 'causal'  # One led to another
    CONTINUATION = 'continuation'  # Part of the same story
    CONTRAST = 'contrast'  # Opposing but related
    ASSOCIATIVE = 'associative'  # General association


class EntanglementStrength(float, Enum):
    """Graded strength levels derived from confidence."""
    WEAK = 0.25
    MODERATE = 0.5
    STRONG = 0.75
    VERY_STRONG = 1.0


class DiscoveryEvent(str, Enum):
    """Lifecycle events published by the engine."""
    DISCOVERY_STARTED = 'discovery:started'
    DISCOVERY_COMPLETED = 'discovery:completed'
    ENTANGLEMENT_CREATED = 'entanglement:created'
    ENTANGLEMENT_UPDATED = 'entanglement:updated'
    ENTANGLEMENT_REMOVED = 'entanglement:removed'
    ERROR = 'error'


@dataclass
class MemoryRecord:
    """A journaled memory, owned by the memory store and read-only here."""
    id: str
    user_id: str
    title: str = ''
    content: str = ''
    emotional_narrative: str = ''
    emotions: List[str] = field(default_factory=list)
    emotional_intensity: Optional[float] = None  # 0..1
    tags: List[str] = field(default_factory=list)
    timestamp: Optional[datetime] = None

    def text_for_embedding(self) -> str:
        """Title, content, narrative, emotions and tags joined for embedding."""
        parts = [self.title, self.content, self.emotional_narrative, *self.emotions, *self.tags]
        return ' '.join(part for part in parts if part)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'MemoryRecord':
        """Build a record from a memory store document."""
        intensity = doc.get('emotional_intensity', doc.get('emotionalIntensity'))
        timestamp = doc.get('timestamp') or doc.get('created_at') or doc.get('createdAt')

        return cls(id=str(doc.get('id', '')),
                   user_id=str(doc.get('user_id', doc.get('userId', ''))),
                   title=doc.get('title') or '',
                   content=doc.get('content') or '',
                   emotional_narrative=doc.get('emotional_narrative') or doc.get('emotionalNarrative') or '',
                   emotions=list(doc.get('emotions') or []),
                   emotional_intensity=float(intensity) if intensity is not None else None,
                   tags=list(doc.get('tags') or []),
                   timestamp=parse_timestamp(timestamp))


@dataclass
class SignalScores:
    """The four independent 0..1 similarity signals between two memories."""
    semantic: float = 0.0
    temporal: float = 0.0
    emotional: float = 0.0
    entity: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        # Ordering matters: the last maximum wins when picking the dominant signal
        return {'semantic': self.semantic, 'temporal': self.temporal, 'emotional': self.emotional, 'entity': self.entity}


@dataclass
class EntanglementMetadata:
    """Reason text and raw sub-scores attached to an entanglement."""
    reason: str
    shared_elements: List[str] = field(default_factory=list)
    temporal_distance: Optional[float] = None
    emotional_resonance: Optional[float] = None
    semantic_similarity: Optional[float] = None


@dataclass
class Entanglement:
    """A typed, weighted relationship between two memories."""
    id: str
    memory_a: str
    memory_b: str
    type: EntanglementType
    strength: float
    confidence: float
    metadata: EntanglementMetadata
    bidirectional: bool = True
    created_at: datetime = field(default_factory=to_datetime)
    last_accessed: datetime = field(default_factory=to_datetime)
    access_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        data['created_at'] = self.created_at.isoformat()
        data['last_accessed'] = self.last_accessed.isoformat()
        return data


@dataclass
class Suggestion:
    """A non-persisted, low-confidence connection hint for display."""
    type: EntanglementType
    target_memory_id: str
    reason: str
    confidence: float


@dataclass
class DiscoveryResult:
    """Outcome of one discovery run."""
    memory: MemoryRecord
    entanglements: List[Entanglement]
    suggestions: List[Suggestion]


@dataclass
class GraphNode:
    id: str
    title: str = ''
    timestamp: Optional[str] = None


@dataclass
class GraphEdge:
    id: str
    source: str
    target: str
    type: str
    strength: float


@dataclass
class TraversalResult:
    """Nodes and edges reachable from a root memory, ready for visualization."""
    nodes: List[GraphNode]
    edges: List[GraphEdge]
    root_memory_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

"""
Persistence of entanglements as ENTANGLED_WITH edges in the memory graph.
"""

from typing import Any, Dict, Iterable, List, Optional

from ..models.core import (Entanglement, EntanglementMetadata, EntanglementType, GraphEdge, GraphNode, MemoryRecord,
                           TraversalResult)
from ..utils.logging_config import get_logger
from ..utils.neptune_client import EDGE_LABEL, MEMORY_LABEL, NeptuneClient, NeptuneError
from ..utils.timestamp_utils import parse_timestamp, to_datetime

logger = get_logger(__name__)

INDEXES = (('entanglement_type', 'type'), ('entanglement_strength', 'strength'))
MAX_TRAVERSAL_PATHS = 100
REVERSE_SUFFIX = '_reverse'


class GraphPersistence:
    """Write and read entanglement edges through the Neptune client."""

    def __init__(self, neptune: NeptuneClient):
        self.neptune = neptune

    def ensure_indexes(self) -> None:
        """Declare the type and strength indexes; failures are logged and skipped."""
        for name, property_key in INDEXES:
            try:
                self.neptune.ensure_index(name, EDGE_LABEL, property_key)
            except NeptuneError as e:
                logger.warning(f'Index creation failed for {name} (may already exist): {e}')

        logger.info('Entanglement indexes ensured')

    def ensure_memory(self, memory: MemoryRecord) -> None:
        """Make sure the memory has a vertex to attach edges to."""
        timestamp = memory.timestamp.isoformat() if memory.timestamp else None
        self.neptune.upsert_memory_vertex(memory.id, memory.user_id, memory.title, timestamp)

    @staticmethod
    def edge_properties(entanglement: Entanglement, reverse: bool = False) -> Dict[str, Any]:
        """Edge properties, with endpoints swapped for the reverse edge."""
        now = to_datetime().isoformat()
        return {
            'memory_a': entanglement.memory_b if reverse else entanglement.memory_a,
            'memory_b': entanglement.memory_a if reverse else entanglement.memory_b,
            'type': entanglement.type.value,
            'strength': entanglement.strength,
            'confidence': entanglement.confidence,
            'reason': entanglement.metadata.reason,
            'bidirectional': entanglement.bidirectional,
            'created_at': now,
            'last_accessed': now,
            'access_count': 0,
        }

    def upsert_entanglement(self, entanglement: Entanglement) -> None:
        """
        Write the forward edge and, when bidirectional, the reverse edge.

        The two writes are independent: if the reverse write fails the forward
        edge stays in place.

        Raises:
            NeptuneError: If either write fails
        """
        self.neptune.upsert_edge(entanglement.memory_a, entanglement.memory_b, entanglement.id,
                                 self.edge_properties(entanglement))

        if entanglement.bidirectional:
            self.neptune.upsert_edge(entanglement.memory_b, entanglement.memory_a, f'{entanglement.id}{REVERSE_SUFFIX}',
                                     self.edge_properties(entanglement, reverse=True))

    def edges_for(self, memory_id: str) -> List[Entanglement]:
        """Every entanglement edge touching a memory, seen from that memory."""
        entanglements = []
        for row in self.neptune.query_edges(memory_id):
            edge = row['edge']
            entanglements.append(
                Entanglement(id=edge.get('id', ''),
                             memory_a=str(memory_id),
                             memory_b=str(row['other_id']),
                             type=EntanglementType(edge.get('type', EntanglementType.ASSOCIATIVE.value)),
                             strength=float(edge.get('strength', 0.0)),
                             confidence=float(edge.get('confidence', 0.0)),
                             metadata=EntanglementMetadata(reason=edge.get('reason', '')),
                             bidirectional=bool(edge.get('bidirectional', True)),
                             created_at=parse_timestamp(edge.get('created_at')) or to_datetime(0),
                             last_accessed=parse_timestamp(edge.get('last_accessed')) or to_datetime(0),
                             access_count=int(edge.get('access_count', 0))))
        return entanglements

    def neighbors(self,
                  root_id: str,
                  depth: int,
                  min_strength: Optional[float] = None,
                  types: Optional[Iterable[EntanglementType]] = None,
                  limit: int = MAX_TRAVERSAL_PATHS) -> TraversalResult:
        """
        Collect the subgraph reachable from a root memory within depth hops.

        Returns:
            De-duplicated nodes, one edge entry per hop of every path, and the root id
        """
        type_values = [t.value if isinstance(t, EntanglementType) else str(t) for t in types] if types else None
        paths = self.neptune.query_neighbors(root_id,
                                             max_hops=depth,
                                             min_strength=min_strength,
                                             types=type_values,
                                             limit=min(limit, MAX_TRAVERSAL_PATHS))

        nodes: Dict[str, GraphNode] = {}
        edges: List[GraphEdge] = []
        for path in paths:
            for element in path:
                if element.get('label') == MEMORY_LABEL:
                    node_id = str(element.get('id', ''))
                    if node_id not in nodes:
                        nodes[node_id] = GraphNode(id=node_id, title=element.get('title', ''), timestamp=element.get('timestamp'))
                elif element.get('label') == EDGE_LABEL:
                    edges.append(
                        GraphEdge(id=element.get('id', ''),
                                  source=str(element.get('memory_a', '')),
                                  target=str(element.get('memory_b', '')),
                                  type=element.get('type', ''),
                                  strength=float(element.get('strength', 0.0))))

        return TraversalResult(nodes=list(nodes.values()), edges=edges, root_memory_id=str(root_id))

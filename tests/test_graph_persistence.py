"""
Tests for entanglement edge persistence and traversal decoding.
"""

from unittest.mock import Mock

import pytest

from conftest import make_memory
from entanglement.models.core import Entanglement, EntanglementMetadata, EntanglementType
from entanglement.services.graph_persistence import GraphPersistence
from entanglement.utils.neptune_client import EDGE_LABEL, MEMORY_LABEL, NeptuneError


def entanglement(bidirectional=True):
    return Entanglement(id='ent-1-2-1700000000000',
                        memory_a='1',
                        memory_b='2',
                        type=EntanglementType.SEMANTIC,
                        strength=0.75,
                        confidence=0.66,
                        metadata=EntanglementMetadata(reason='These memories share similar themes'),
                        bidirectional=bidirectional)


@pytest.fixture
def neptune():
    return Mock()


@pytest.fixture
def persistence(neptune):
    return GraphPersistence(neptune)


class TestEnsureIndexes:

    def test_creates_type_and_strength_indexes(self, persistence, neptune):
        persistence.ensure_indexes()

        neptune.ensure_index.assert_any_call('entanglement_type', EDGE_LABEL, 'type')
        neptune.ensure_index.assert_any_call('entanglement_strength', EDGE_LABEL, 'strength')

    def test_failure_is_logged_and_remaining_index_still_created(self, persistence, neptune):
        neptune.ensure_index.side_effect = [NeptuneError('Failed to ensure_index: exists'), True]

        persistence.ensure_indexes()

        assert neptune.ensure_index.call_count == 2


class TestUpsertEntanglement:

    def test_writes_forward_and_independent_reverse_edge(self, persistence, neptune):
        persistence.upsert_entanglement(entanglement())

        assert neptune.upsert_edge.call_count == 2
        forward, reverse = neptune.upsert_edge.call_args_list

        assert forward.args[:3] == ('1', '2', 'ent-1-2-1700000000000')
        forward_props = forward.args[3]
        assert forward_props['memory_a'] == '1'
        assert forward_props['memory_b'] == '2'
        assert forward_props['type'] == 'semantic'
        assert forward_props['strength'] == 0.75
        assert forward_props['confidence'] == 0.66
        assert forward_props['access_count'] == 0

        assert reverse.args[:3] == ('2', '1', 'ent-1-2-1700000000000_reverse')
        reverse_props = reverse.args[3]
        assert reverse_props['memory_a'] == '2'
        assert reverse_props['memory_b'] == '1'
        assert reverse_props['type'] == 'semantic'

    def test_one_directional_entanglement_writes_one_edge(self, persistence, neptune):
        persistence.upsert_entanglement(entanglement(bidirectional=False))
        assert neptune.upsert_edge.call_count == 1

    def test_reverse_failure_leaves_forward_edge(self, persistence, neptune):
        neptune.upsert_edge.side_effect = [True, NeptuneError('Failed to upsert_edge: timeout')]

        with pytest.raises(NeptuneError):
            persistence.upsert_entanglement(entanglement())

        assert neptune.upsert_edge.call_count == 2

    def test_ensure_memory_upserts_vertex(self, persistence, neptune):
        memory = make_memory('7', title='Lake weekend')
        persistence.ensure_memory(memory)

        neptune.upsert_memory_vertex.assert_called_once_with('7', 'user-1', 'Lake weekend', memory.timestamp.isoformat())


class TestEdgesFor:

    def test_maps_rows_to_entanglements(self, persistence, neptune):
        neptune.query_edges.return_value = [{
            'edge': {
                'label': EDGE_LABEL,
                'id': 'ent-1-2-5',
                'type': 'emotional',
                'strength': 0.5,
                'confidence': 0.45,
                'reason': 'similar feelings',
                'created_at': '2026-01-02T03:04:05+00:00',
                'last_accessed': '2026-01-03T03:04:05+00:00',
                'access_count': 3
            },
            'other_id': '2'
        }]

        result = persistence.edges_for('1')

        assert len(result) == 1
        edge = result[0]
        assert (edge.id, edge.memory_a, edge.memory_b) == ('ent-1-2-5', '1', '2')
        assert edge.type == EntanglementType.EMOTIONAL
        assert edge.metadata.reason == 'similar feelings'
        assert edge.created_at.year == 2026
        assert edge.access_count == 3


class TestNeighbors:

    def test_deduplicates_nodes_and_keeps_edge_per_hop(self, persistence, neptune):
        a = {'label': MEMORY_LABEL, 'id': 'a', 'title': 'A'}
        b = {'label': MEMORY_LABEL, 'id': 'b', 'title': 'B'}
        c = {'label': MEMORY_LABEL, 'id': 'c', 'title': 'C'}
        ab = {'label': EDGE_LABEL, 'id': 'e1', 'memory_a': 'a', 'memory_b': 'b', 'type': 'semantic', 'strength': 0.75}
        bc = {'label': EDGE_LABEL, 'id': 'e2', 'memory_a': 'b', 'memory_b': 'c', 'type': 'temporal', 'strength': 1.0}
        neptune.query_neighbors.return_value = [[a, ab, b], [a, ab, b, bc, c]]

        result = persistence.neighbors('a', 2, min_strength=0.6, types=[EntanglementType.SEMANTIC, 'temporal'])

        assert [node.id for node in result.nodes] == ['a', 'b', 'c']
        assert [(e.source, e.target) for e in result.edges] == [('a', 'b'), ('a', 'b'), ('b', 'c')]
        assert result.root_memory_id == 'a'
        neptune.query_neighbors.assert_called_once_with('a',
                                                        max_hops=2,
                                                        min_strength=0.6,
                                                        types=['semantic', 'temporal'],
                                                        limit=100)

    def test_path_limit_never_exceeds_one_hundred(self, persistence, neptune):
        neptune.query_neighbors.return_value = []
        persistence.neighbors('a', 3, limit=500)
        assert neptune.query_neighbors.call_args.kwargs['limit'] == 100

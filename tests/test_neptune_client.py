"""
Tests for the Neptune client, using a fluent stand-in for the traversal source.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from gremlin_python.process.traversal import T

from entanglement.utils.config import NeptuneConfig
from entanglement.utils.neptune_client import NeptuneClient, NeptuneError, flatten_element

STEPS = ('with_', 'V', 'E', 'has', 'fold', 'coalesce', 'property', 'both_e', 'as_', 'other_v', 'select', 'by', 'repeat',
         'emit', 'times', 'path', 'limit', 'count')


def fluent_g(result=None):
    """Traversal source where every step returns the same mock."""
    g = MagicMock()
    for step in STEPS:
        getattr(g, step).return_value = g
    g.to_list.return_value = result if result is not None else []
    return g


@pytest.fixture
def neptune_config():
    return NeptuneConfig(endpoint='neptune.local', port=8182, region='us-east-1', timeout=30)


def test_flatten_element_unwraps_vertex_lists_and_keeps_label():
    element = {T.id: 42, T.label: 'Memory', 'id': ['m1'], 'title': ['Beach day'], 'tags': []}

    assert flatten_element(element) == {'label': 'Memory', 'id': 'm1', 'title': 'Beach day', 'tags': []}


def test_queries_apply_evaluation_timeout(neptune_config):
    g = fluent_g()
    client = NeptuneClient(neptune_config, g=g)

    client.query_edges('m1')

    g.with_.assert_called_with('evaluationTimeout', 30000)


def test_upsert_edge_sets_properties_and_skips_none(neptune_config):
    g = fluent_g(result=['edge'])
    client = NeptuneClient(neptune_config, g=g)

    assert client.upsert_edge('a', 'b', 'ent-a-b-1', {'type': 'semantic', 'strength': 0.75, 'reason': None})

    g.property.assert_any_call('type', 'semantic')
    g.property.assert_any_call('strength', 0.75)
    assert all(call.args[0] != 'reason' for call in g.property.call_args_list)


def test_upsert_edge_with_missing_vertex_raises(neptune_config):
    client = NeptuneClient(neptune_config, g=fluent_g(result=[]))

    with pytest.raises(NeptuneError, match='missing'):
        client.upsert_edge('a', 'ghost', 'ent-a-ghost-1', {'type': 'temporal'})


def test_query_edges_flattens_edge_maps(neptune_config):
    rows = [{'edge': {T.label: 'ENTANGLED_WITH', 'id': 'e1', 'strength': 0.5}, 'other': 'm2'}]
    client = NeptuneClient(neptune_config, g=fluent_g(result=rows))

    assert client.query_edges('m1') == [{'edge': {'label': 'ENTANGLED_WITH', 'id': 'e1', 'strength': 0.5}, 'other_id': 'm2'}]


def test_query_neighbors_returns_flattened_paths(neptune_config):
    path = SimpleNamespace(objects=[
        {T.label: 'Memory', 'id': ['a']},
        {T.label: 'ENTANGLED_WITH', 'id': 'e1', 'memory_a': 'a', 'memory_b': 'b'},
        {T.label: 'Memory', 'id': ['b']},
    ])
    g = fluent_g(result=[path])
    client = NeptuneClient(neptune_config, g=g)

    paths = client.query_neighbors('a', max_hops=2, min_strength=0.6, types=['semantic'], limit=100)

    assert paths == [[{'label': 'Memory', 'id': 'a'},
                      {'label': 'ENTANGLED_WITH', 'id': 'e1', 'memory_a': 'a', 'memory_b': 'b'},
                      {'label': 'Memory', 'id': 'b'}]]
    g.times.assert_called_once_with(2)
    g.limit.assert_called_with(100)


def test_closed_transport_reconnects_once(neptune_config):
    g = fluent_g()
    g.to_list.side_effect = [RuntimeError('Cannot write to closing transport'), []]
    client = NeptuneClient(neptune_config, g=g)

    with patch.object(NeptuneClient, '_connect') as connect:
        assert client.query_edges('m1') == []

    connect.assert_called_once()


def test_other_errors_are_wrapped(neptune_config):
    g = fluent_g()
    g.to_list.side_effect = RuntimeError('ConstraintViolationException')
    client = NeptuneClient(neptune_config, g=g)

    with pytest.raises(NeptuneError, match='query_edges'):
        client.query_edges('m1')

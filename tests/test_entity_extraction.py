"""
Tests for LLM-backed entity extraction.
"""

from unittest.mock import Mock

import pytest

from conftest import make_memory
from entanglement.services.entity_extraction import EntityExtractionError, EntityExtractionService
from entanglement.utils.bedrock_llm import BedrockLLMError
from entanglement.utils.ttl_cache import TTLCache


def service_replying(reply, cache=None):
    llm = Mock()
    llm.complete.return_value = reply
    return EntityExtractionService(llm, cache), llm


def test_parses_json_array_and_normalizes_names():
    service, llm = service_replying('```json\n["Grandma", "Lake House", " grandma "]\n')

    assert service.extract_entities('Grandma took us to the lake house') == ['grandma', 'lake house']
    assert llm.complete.call_args.kwargs['prefill'] == '```json'
    assert llm.complete.call_args.kwargs['stop_sequences'] == ['```']


def test_falls_back_to_comma_separated_reply():
    service, _ = service_replying('```json Grandma, "Boat", grandma')
    assert service.extract_entities('Grandma bought a boat') == ['grandma', 'boat']


def test_non_string_items_are_ignored():
    service, _ = service_replying('```json["Paris", 3, null]')
    assert service.extract_entities('Paris trip') == ['paris']


def test_blank_text_skips_the_llm():
    service, llm = service_replying('["x"]')
    assert service.extract_entities('   ') == []
    llm.complete.assert_not_called()


def test_llm_failure_raises_extraction_error():
    llm = Mock()
    llm.complete.side_effect = BedrockLLMError('ThrottlingException')
    service = EntityExtractionService(llm)

    with pytest.raises(EntityExtractionError, match='ThrottlingException'):
        service.extract_entities('Grandma')


def test_memory_extraction_is_cached_by_id():
    service, llm = service_replying('```json["Grandma"]', cache=TTLCache())
    memory = make_memory('m1', title='Sunday', content='Lunch with grandma')

    assert service.extract_for_memory(memory) == ['grandma']
    assert service.extract_for_memory(memory) == ['grandma']

    llm.complete.assert_called_once()
    assert 'Sunday - Lunch with grandma' in llm.complete.call_args.args[0]

"""
Named entity extraction for memory text using a Bedrock LLM.
"""

from typing import List, Optional

from ..models.core import MemoryRecord
from ..utils.bedrock_llm import BedrockLLM, BedrockLLMError
from ..utils.json_utils import parse_json_list
from ..utils.logging_config import get_logger
from ..utils.ttl_cache import TTLCache

logger = get_logger(__name__)

SYSTEM_PROMPT = """
You are an expert entity extraction system for a personal memory journal.

Extract all people, places, and important objects mentioned in the memory.
Only extract entities that are explicitly mentioned. Do not infer or assume entities.

Return a JSON array of entity names with this exact format:
```json
["entity name", "another entity"]
```

Return empty array [] if no entities found."""


class EntityExtractionError(Exception):
    """Custom exception for entity extraction errors."""
    pass


class EntityExtractionService:
    """Extract named entities from memory text using Bedrock LLMs."""

    def __init__(self, llm: BedrockLLM, cache: Optional[TTLCache] = None):
        """
        Initialize the entity extraction service.

        Args:
            llm: Bedrock LLM client
            cache: Optional cache of extracted entities keyed by memory id
        """
        self.llm = llm
        self.cache = cache

        logger.info('Initialized EntityExtractionService')

    def extract_entities(self, text: str) -> List[str]:
        """Extract entity names from free text.

        Args:
            text: Text to analyze

        Returns:
            Lower-cased, de-duplicated entity names in order of appearance

        Raises:
            EntityExtractionError: If the LLM call fails
        """
        if not text or not text.strip():
            logger.debug('Empty text provided for entity extraction')
            return []

        try:
            response = self.llm.complete(f'Memory: "{text}"\n\nEntities:',
                                         system_prompt=SYSTEM_PROMPT,
                                         prefill='```json',
                                         stop_sequences=['```'])
        except BedrockLLMError as e:
            logger.warning(f'LLM error during entity extraction: {e}')
            raise EntityExtractionError(f'Entity extraction failed: {e}')

        names = parse_json_list(response)
        if names is None:
            # Fall back to a comma-separated reply
            names = response.replace('```json', '').replace('```', '').split(',')

        entities = []
        for name in names:
            if not isinstance(name, str):
                continue
            name = name.strip().strip('"\'').strip().lower()
            if name and name not in entities:
                entities.append(name)

        logger.debug(f'Extracted {len(entities)} entities')
        return entities

    def extract_for_memory(self, memory: MemoryRecord) -> List[str]:
        """Extract entities from a memory's title and content, using the cache when set."""
        if self.cache is not None:
            cached = self.cache.get(memory.id)
            if cached is not None:
                return cached

        entities = self.extract_entities(f'{memory.title} - {memory.content}')

        if self.cache is not None:
            self.cache.set(memory.id, entities)
        return entities

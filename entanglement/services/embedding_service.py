"""
Memory embeddings with an optional time-bounded cache keyed by memory id.
"""

from typing import List, Optional

from ..models.core import MemoryRecord
from ..utils.bedrock_embed import BedrockEmbed
from ..utils.logging_config import get_logger
from ..utils.ttl_cache import TTLCache

logger = get_logger(__name__)


class MemoryEmbedder:
    """Embed memory records, consulting the cache before every Bedrock call."""

    def __init__(self, embed: BedrockEmbed, cache: Optional[TTLCache] = None):
        self.embed = embed
        self.cache = cache

    def embed_memory(self, memory: MemoryRecord) -> List[float]:
        """
        Embed a memory's combined text.

        Raises:
            BedrockEmbedError: If embedding generation fails
        """
        if self.cache is not None:
            cached = self.cache.get(memory.id)
            if cached is not None:
                return cached

        embedding = self.embed.embed_document(memory.text_for_embedding())

        if self.cache is not None:
            self.cache.set(memory.id, embedding)
        return embedding

    def embed_text(self, text: str) -> List[float]:
        return self.embed.embed_document(text)

    def invalidate(self, memory_id: Optional[str] = None) -> None:
        """Drop one cached embedding, or all of them."""
        if self.cache is not None:
            self.cache.invalidate(memory_id)
            logger.debug(f'Invalidated embedding cache for {memory_id or "all memories"}')

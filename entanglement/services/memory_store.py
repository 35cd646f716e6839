"""
Read-only access to the journaling application's memory records.
"""

from typing import List, Optional

from ..models.core import MemoryRecord
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import OpenSearchClient, OpenSearchError

logger = get_logger(__name__)


class MemoryStoreError(Exception):
    """Custom exception for memory store errors."""
    pass


class MemoryStore:
    """Fetch memory records owned by the journaling application."""

    def __init__(self, opensearch: OpenSearchClient):
        self.opensearch = opensearch

    def get_memory(self, memory_id: str, user_id: str) -> Optional[MemoryRecord]:
        """Get one memory for a user, or None if it does not exist."""
        try:
            doc = self.opensearch.get_document(user_id=str(user_id), doc_id=str(memory_id))
        except OpenSearchError as e:
            raise MemoryStoreError(f'Failed to get memory {memory_id}: {e}')

        if doc is None:
            logger.debug(f'Memory {memory_id} not found for user {user_id}')
            return None

        try:
            return MemoryRecord.from_document(doc)
        except (TypeError, ValueError) as e:
            raise MemoryStoreError(f'Memory {memory_id} has a malformed document: {e}')

    def list_memories(self, user_id: str) -> List[MemoryRecord]:
        """List every memory belonging to a user, skipping documents that cannot be parsed."""
        try:
            docs = self.opensearch.list_documents(user_id=str(user_id))
        except OpenSearchError as e:
            raise MemoryStoreError(f'Failed to list memories for user {user_id}: {e}')

        memories = []
        for doc in docs:
            try:
                memories.append(MemoryRecord.from_document(doc))
            except (TypeError, ValueError) as e:
                logger.warning(f'Skipping malformed memory {doc.get("id")} for user {user_id}: {e}')
        return memories

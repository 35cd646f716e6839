"""
Entanglement Engine: discovers, scores and persists relationships between memories.

Relationships are found with several independent signals:
1. Semantic similarity via embeddings
2. Temporal proximity
3. Emotional resonance
4. Entity overlap (people, places, things)
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, List, Optional

from ..models.core import (DiscoveryEvent, DiscoveryResult, Entanglement, EntanglementType, MemoryRecord, Suggestion,
                           TraversalResult)
from ..utils.bedrock_embed import BedrockEmbed, BedrockEmbedError
from ..utils.bedrock_llm import BedrockLLM
from ..utils.config import AppConfig, EntanglementConfig
from ..utils.logging_config import get_logger
from ..utils.neptune_client import NeptuneClient, NeptuneError
from ..utils.opensearch_client import OpenSearchClient
from ..utils.ttl_cache import TTLCache
from .candidate_selection import CandidateSelector
from .classification import RelationshipClassifier
from .discovery_scheduler import DiscoveryScheduler
from .embedding_service import MemoryEmbedder
from .entity_extraction import EntityExtractionService
from .events import EventBus, EventHandler
from .graph_persistence import MAX_TRAVERSAL_PATHS, GraphPersistence
from .memory_store import MemoryStore, MemoryStoreError

logger = get_logger(__name__)

MAX_SUGGESTIONS = 5
SUGGESTION_CONFIDENCE = 0.25
SUGGESTION_REASON = 'Potential connection identified through pattern analysis'


class EntanglementEngineError(Exception):
    """Custom exception for entanglement engine errors."""
    pass


class EngineNotInitializedError(EntanglementEngineError):
    """Raised when the engine is used before initialize()."""
    pass


class MemoryNotFoundError(EntanglementEngineError):
    """Raised when the memory to analyze does not exist."""
    pass


class DiscoveryCancelledError(EntanglementEngineError):
    """Raised when a discovery run observes its cancellation event."""
    pass


class EntanglementEngine:
    """Runs the discovery pipeline and answers entanglement queries."""

    def __init__(self,
                 memory_store: MemoryStore,
                 embedder: MemoryEmbedder,
                 entity_extractor: EntityExtractionService,
                 graph: GraphPersistence,
                 config: Optional[EntanglementConfig] = None,
                 event_bus: Optional[EventBus] = None):
        """
        Initialize the entanglement engine.

        Args:
            memory_store: Source of memory records
            embedder: Memory embedding service
            entity_extractor: Named entity extraction service
            graph: Entanglement edge persistence
            config: Discovery settings, defaults when None
            event_bus: Lifecycle event bus, a synchronous one when None
        """
        self.config = config or EntanglementConfig()
        self.memory_store = memory_store
        self.embedder = embedder
        self.graph = graph
        self.events = event_bus or EventBus()
        self.selector = CandidateSelector(memory_store, embedder, self.config.temporal_window_days)
        self.classifier = RelationshipClassifier(embedder,
                                                 entity_extractor,
                                                 min_confidence_threshold=self.config.min_confidence_threshold,
                                                 max_entanglements_per_memory=self.config.max_entanglements_per_memory,
                                                 temporal_window_days=self.config.temporal_window_days)
        self.scheduler = DiscoveryScheduler(self._run_queued,
                                            batch_size=self.config.discovery_batch_size,
                                            interval_seconds=self.config.discovery_interval_seconds)
        self.is_initialized = False

    @classmethod
    def from_config(cls, app_config: AppConfig) -> 'EntanglementEngine':
        """Build the engine and every AWS-backed collaborator from application config."""
        settings = app_config.entanglement
        embedding_cache = TTLCache(default_ttl=settings.cache_ttl) if settings.cache_enabled else None
        entity_cache = TTLCache(default_ttl=settings.cache_ttl) if settings.cache_enabled else None

        memory_store = MemoryStore(OpenSearchClient(app_config.opensearch))
        embedder = MemoryEmbedder(BedrockEmbed(app_config.bedrock_embed), embedding_cache)
        entity_extractor = EntityExtractionService(BedrockLLM(app_config.bedrock_llm), entity_cache)
        graph = GraphPersistence(NeptuneClient(app_config.neptune))
        event_bus = EventBus(ThreadPoolExecutor(max_workers=1, thread_name_prefix='entanglement-events'))

        return cls(memory_store, embedder, entity_extractor, graph, settings, event_bus)

    def initialize(self) -> None:
        """
        Verify the embedding service, ensure graph indexes and start auto-discovery.

        Raises:
            EntanglementEngineError: If the embedding service is unreachable or unauthorized
        """
        if self.is_initialized:
            logger.warning('Entanglement Engine already initialized')
            return

        logger.info(f'Initializing Entanglement Engine with {self.config}')

        try:
            self.embedder.embed_text('test')
        except BedrockEmbedError as e:
            logger.error(f'Failed to initialize Entanglement Engine: {e}')
            raise EntanglementEngineError(f'Embedding service connection failed: {e}')
        logger.info('Embedding service connection verified')

        self.graph.ensure_indexes()
        self.is_initialized = True
        logger.info('Entanglement Engine initialized successfully')

        if self.config.enable_auto_discovery:
            self.scheduler.start()

    def subscribe(self, event: DiscoveryEvent, handler: EventHandler) -> None:
        self.events.subscribe(event, handler)

    def unsubscribe(self, event: DiscoveryEvent, handler: EventHandler) -> None:
        self.events.unsubscribe(event, handler)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event], memory_id: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise DiscoveryCancelledError(f'Discovery for memory {memory_id} cancelled')

    def discover(self, memory_id: str, user_id: str, cancel_event: Optional[threading.Event] = None) -> DiscoveryResult:
        """
        Discover entanglements for a memory.

        Args:
            memory_id: Memory to analyze
            user_id: Owner of the memory
            cancel_event: Aborts the run at the next phase boundary when set

        Returns:
            The memory, its persisted entanglements and display-only suggestions

        Raises:
            EngineNotInitializedError: If initialize() has not completed
            MemoryNotFoundError: If the memory does not exist
            DiscoveryCancelledError: If cancel_event was set mid-run
            EntanglementEngineError: If embedding, the memory store or a graph write fails
        """
        if not self.is_initialized:
            raise EngineNotInitializedError('Entanglement Engine not initialized')

        memory_id, user_id = str(memory_id), str(user_id)
        started = time.monotonic()

        try:
            self.events.publish(DiscoveryEvent.DISCOVERY_STARTED, {'memory_id': memory_id, 'user_id': user_id})

            memory = self.memory_store.get_memory(memory_id, user_id)
            if memory is None:
                raise MemoryNotFoundError(f'Memory {memory_id} not found')

            self._check_cancelled(cancel_event, memory_id)
            embedding = self.embedder.embed_memory(memory)

            self._check_cancelled(cancel_event, memory_id)
            candidates = self.selector.select(memory, user_id, embedding, cancel_event=cancel_event)

            self._check_cancelled(cancel_event, memory_id)
            entanglements = self.classifier.analyze(memory, candidates, embedding, cancel_event=cancel_event)

            self._check_cancelled(cancel_event, memory_id)
            self._store_entanglements(memory, candidates, entanglements)

            suggestions = self.generate_suggestions(candidates, entanglements)

        except EntanglementEngineError as e:
            self._report_failure(memory_id, e)
            raise
        except (BedrockEmbedError, MemoryStoreError, NeptuneError) as e:
            self._report_failure(memory_id, e)
            raise EntanglementEngineError(f'Entanglement discovery failed for memory {memory_id}: {e}')
        except Exception as e:
            self._report_failure(memory_id, e)
            raise EntanglementEngineError(f'Unexpected error discovering entanglements for memory {memory_id}: {e}')

        duration = time.monotonic() - started
        self.events.publish(DiscoveryEvent.DISCOVERY_COMPLETED, {
            'memory_id': memory_id,
            'user_id': user_id,
            'entanglements_found': len(entanglements),
            'duration': duration
        })
        logger.info(f'Entanglement discovery completed for memory {memory_id}: {len(entanglements)} entanglements, '
                    f'{len(suggestions)} suggestions in {duration:.2f}s')

        return DiscoveryResult(memory=memory, entanglements=entanglements, suggestions=suggestions)

    def _report_failure(self, memory_id: str, error: Exception) -> None:
        logger.error(f'Entanglement discovery failed for memory {memory_id}: {error}')
        self.events.publish(DiscoveryEvent.ERROR, {'memory_id': memory_id, 'error': str(error)})

    def _store_entanglements(self, memory: MemoryRecord, candidates: List[MemoryRecord],
                             entanglements: List[Entanglement]) -> None:
        """Persist entanglements in order; a failed write aborts the rest without rollback."""
        if not entanglements:
            return

        by_id = {candidate.id: candidate for candidate in candidates}
        self.graph.ensure_memory(memory)

        for entanglement in entanglements:
            candidate = by_id.get(entanglement.memory_b)
            if candidate is not None:
                self.graph.ensure_memory(candidate)
            self.graph.upsert_entanglement(entanglement)
            self.events.publish(DiscoveryEvent.ENTANGLEMENT_CREATED, entanglement)

        logger.info(f'Stored {len(entanglements)} entanglements for memory {memory.id}')

    def generate_suggestions(self, candidates: List[MemoryRecord], entanglements: List[Entanglement]) -> List[Suggestion]:
        """Low-confidence associative hints for candidates that did not become entanglements."""
        entangled_ids = {entanglement.memory_b for entanglement in entanglements}
        return [
            Suggestion(type=EntanglementType.ASSOCIATIVE,
                       target_memory_id=candidate.id,
                       reason=SUGGESTION_REASON,
                       confidence=SUGGESTION_CONFIDENCE) for candidate in candidates if candidate.id not in entangled_ids
        ][:MAX_SUGGESTIONS]

    def get_entanglements(self, memory_id: str) -> List[Entanglement]:
        """
        Get every entanglement touching a memory.

        Returns:
            Entanglements sorted by strength, then confidence, both descending

        Raises:
            EntanglementEngineError: If the graph query fails
        """
        try:
            entanglements = self.graph.edges_for(str(memory_id))
        except NeptuneError as e:
            logger.error(f'Failed to get entanglements for memory {memory_id}: {e}')
            raise EntanglementEngineError(f'Failed to get entanglements: {e}')

        return sorted(entanglements, key=lambda e: (e.strength, e.confidence), reverse=True)

    def traverse(self,
                 memory_id: str,
                 depth: int = 2,
                 min_strength: Optional[float] = None,
                 types: Optional[Iterable[EntanglementType]] = None) -> TraversalResult:
        """
        Walk the entanglement graph from a memory.

        Args:
            memory_id: Root memory
            depth: Maximum number of hops (at least 1)
            min_strength: Edges weaker than this are not followed
            types: Only edges of these types are followed

        Returns:
            Nodes and edges from at most 100 paths, plus the root id

        Raises:
            ValueError: If depth is below 1
            EntanglementEngineError: If the graph query fails
        """
        if depth < 1:
            raise ValueError(f'Traversal depth must be at least 1, got {depth}')

        try:
            return self.graph.neighbors(str(memory_id), depth, min_strength=min_strength, types=types,
                                        limit=MAX_TRAVERSAL_PATHS)
        except NeptuneError as e:
            logger.error(f'Failed to traverse memory graph from {memory_id}: {e}')
            raise EntanglementEngineError(f'Failed to traverse memory graph: {e}')

    def queue_for_discovery(self, memory_id: str, user_id: str) -> bool:
        """Queue a memory for the next auto-discovery batch."""
        return self.scheduler.queue_for_discovery(memory_id, user_id)

    def _run_queued(self, memory_id: str, user_id: str, cancel_event: threading.Event) -> Any:
        return self.discover(memory_id, user_id, cancel_event=cancel_event)

    def shutdown(self) -> None:
        """Stop auto-discovery, drop queued work and subscribers."""
        logger.info('Shutting down Entanglement Engine...')

        self.scheduler.stop()
        self.scheduler.clear()
        self.events.close()

        self.is_initialized = False
        logger.info('Entanglement Engine shutdown complete')

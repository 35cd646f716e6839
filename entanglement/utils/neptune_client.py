"""
Amazon Neptune graph database client with Gremlin Python driver and AWS SigV4 authentication.

All Gremlin traversal construction for memory vertices and ENTANGLED_WITH edges
lives in this module; callers only pass plain values.
"""

from functools import wraps
from typing import Any, Dict, Iterable, List, Optional

from boto3 import Session
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from gremlin_python.driver.aiohttp.transport import AiohttpTransport
from gremlin_python.driver.driver_remote_connection import DriverRemoteConnection
from gremlin_python.process.anonymous_traversal import traversal
from gremlin_python.process.graph_traversal import __
from gremlin_python.process.traversal import Cardinality, P, T

from .config import NeptuneConfig
from .logging_config import get_logger

logger = get_logger(__name__)

MEMORY_LABEL = 'Memory'
EDGE_LABEL = 'ENTANGLED_WITH'
INDEX_LABEL = 'EntanglementIndex'


class NeptuneError(Exception):
    """Custom exception for Neptune errors."""
    pass


def flatten_element(data: Dict[Any, Any]) -> Dict[str, Any]:
    """Turn a Gremlin property map into a plain dict with a 'label' key.

    Vertex properties come back as lists; edge properties as single values.
    """
    flat = {'label': data.get(T.label, '')}
    for key, value in data.items():
        if isinstance(key, str):
            flat[key] = value[0] if isinstance(value, list) and value else value
    return flat


def retry_on_connection_error(func):
    """Decorator to retry Neptune operations on connection errors."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except NeptuneError:
            raise
        except Exception as e:
            if 'cannot write to closing transport' in str(e).lower():
                logger.warning(f'Connection error detected: {e}. Reconnecting...')
                self.close()
                self._connect()
                try:
                    return func(self, *args, **kwargs)
                except Exception as retry_e:
                    logger.error(f'Error in {func.__name__}: {retry_e}')
                    raise NeptuneError(f'Failed to {func.__name__}: {retry_e}')
            else:
                logger.error(f'Error in {func.__name__}: {e}')
                raise NeptuneError(f'Failed to {func.__name__}: {e}')

    return wrapper


class NeptuneClient:
    """Amazon Neptune client using Gremlin Python driver with AWS authentication."""

    def __init__(self, config: NeptuneConfig, g=None):
        """
        Initialize Neptune client with Gremlin driver.

        Args:
            config: NeptuneConfig instance with connection parameters
            g: Optional ready-made traversal source, skips connecting
        """
        self.config = config
        self.connection = None
        self._g = g
        if g is None:
            self._connect()
            logger.info(f'Connected to Neptune at {config.endpoint}')

    def _connect(self):
        """Establish connection to Neptune."""
        conn_string = f'wss://{self.config.endpoint}:{self.config.port}/gremlin'

        credentials = Session().get_credentials()
        if credentials is None:
            raise NeptuneError('No AWS credentials found')
        creds = credentials.get_frozen_credentials()

        region = Session().region_name or self.config.region or 'us-east-1'

        # Create signed request for WebSocket connection
        request = AWSRequest(method='GET', url=conn_string, data=None)
        SigV4Auth(creds, 'neptune-db', region).add_auth(request)

        self.connection = DriverRemoteConnection(conn_string,
                                                 'g',
                                                 headers=request.headers.items(),
                                                 transport_factory=lambda: AiohttpTransport(call_from_event_loop=True))
        self._g = traversal().with_remote(self.connection)

    @property
    def g(self):
        """Traversal source with the per-request evaluation timeout applied."""
        return self._g.with_('evaluationTimeout', int(self.config.timeout * 1000))

    def close(self):
        """Close the Neptune connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    @retry_on_connection_error
    def ensure_index(self, name: str, edge_label: str, property_key: str) -> bool:
        """
        Idempotently record an index definition for an edge property.

        Neptune indexes every property implicitly; the definition vertex records
        which properties the engine filters and sorts on so that repeated
        startups are no-ops.

        Args:
            name: Index name
            edge_label: Edge label the index applies to
            property_key: Indexed property

        Returns:
            True once the definition exists
        """
        self.g.V().has(INDEX_LABEL, 'name', name).fold()\
            .coalesce(__.unfold(),
                      __.add_v(INDEX_LABEL).property('name', name)
                      .property('edge_label', edge_label)
                      .property('property_key', property_key))\
            .iterate()
        logger.debug(f'Ensured index {name} on {edge_label}.{property_key}')
        return True

    @retry_on_connection_error
    def upsert_memory_vertex(self, memory_id: str, user_id: str, title: str = '', timestamp: Optional[str] = None) -> bool:
        """
        Create the vertex for a memory, or refresh its properties if it exists.

        Returns:
            True if the vertex exists after the call
        """
        upsert = self.g.V().has(MEMORY_LABEL, 'id', memory_id).fold()\
            .coalesce(__.unfold(), __.add_v(MEMORY_LABEL).property('id', memory_id))\
            .property(Cardinality.single, 'user_id', user_id)\
            .property(Cardinality.single, 'title', title or '')

        if timestamp:
            upsert = upsert.property(Cardinality.single, 'timestamp', timestamp)

        upsert.iterate()
        logger.debug(f'Upserted memory vertex: {memory_id}')
        return True

    @retry_on_connection_error
    def upsert_edge(self, from_id: str, to_id: str, edge_id: str, properties: Dict[str, Any]) -> bool:
        """
        Create or update a directed ENTANGLED_WITH edge between two memory vertices.

        Args:
            from_id: Source memory id
            to_id: Target memory id
            edge_id: Stable edge identifier used for the merge
            properties: Edge properties to set

        Returns:
            True if the edge was written

        Raises:
            NeptuneError: If either vertex is missing or the write fails
        """
        upsert = self.g.E().has(EDGE_LABEL, 'id', edge_id).fold()\
            .coalesce(__.unfold(),
                      __.V().has(MEMORY_LABEL, 'id', from_id)
                      .add_e(EDGE_LABEL).to(__.V().has(MEMORY_LABEL, 'id', to_id))
                      .property('id', edge_id))

        for key, value in properties.items():
            if value is not None:
                upsert = upsert.property(key, value)

        written = upsert.to_list()
        if not written:
            raise NeptuneError(f'Cannot write edge {edge_id}: memory vertex {from_id} or {to_id} is missing')

        logger.debug(f'Upserted edge {edge_id}: {from_id} -> {to_id}')
        return True

    @retry_on_connection_error
    def query_edges(self, memory_id: str) -> List[Dict[str, Any]]:
        """
        Get every ENTANGLED_WITH edge touching a memory, in either direction.

        Returns:
            List of dicts with 'edge' (flattened properties) and 'other_id' keys
        """
        rows = self.g.V().has(MEMORY_LABEL, 'id', memory_id)\
            .both_e(EDGE_LABEL).as_('edge')\
            .other_v().as_('other')\
            .select('edge', 'other')\
            .by(__.value_map(True))\
            .by(__.values('id'))\
            .to_list()

        logger.debug(f'Found {len(rows)} edges touching memory {memory_id}')
        return [{'edge': flatten_element(row['edge']), 'other_id': row['other']} for row in rows]

    @retry_on_connection_error
    def query_neighbors(self,
                        root_id: str,
                        max_hops: int,
                        min_strength: Optional[float] = None,
                        types: Optional[Iterable[str]] = None,
                        limit: int = 100) -> List[List[Dict[Any, Any]]]:
        """
        Walk 1..max_hops ENTANGLED_WITH edges from a root memory.

        Every hop applies the strength and type filters. Vertices are never
        revisited within a path.

        Args:
            root_id: Memory id to start from
            max_hops: Maximum path length in edges
            min_strength: Minimum edge strength, inclusive
            types: Allowed entanglement types
            limit: Maximum number of paths returned

        Returns:
            Paths as lists of flattened elements (vertex, edge, vertex, ...)
        """
        hop = __.both_e(EDGE_LABEL)
        if min_strength is not None:
            hop = hop.has('strength', P.gte(min_strength))
        if types:
            hop = hop.has('type', P.within(list(types)))
        hop = hop.other_v().simple_path()

        paths = self.g.V().has(MEMORY_LABEL, 'id', root_id)\
            .repeat(hop).emit().times(max_hops)\
            .path().by(__.value_map(True))\
            .limit(limit)\
            .to_list()

        logger.debug(f'Traversal from {root_id} returned {len(paths)} paths within {max_hops} hops')
        return [[flatten_element(element) for element in path.objects] for path in paths]

    @retry_on_connection_error
    def health_check(self) -> bool:
        """
        Perform a health check on the Neptune service.

        Returns:
            True if service is healthy, False otherwise
        """
        # Simple query to test connectivity
        self.g.V().limit(1).count().next()
        return True

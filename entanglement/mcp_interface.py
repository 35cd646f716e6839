"""
MCP Interface Layer exposing the entanglement engine through fastmcp.
"""
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from .models.core import EntanglementType
from .services.entanglement_engine import EntanglementEngine, EntanglementEngineError
from .utils.config import config
from .utils.health_check import get_health_status
from .utils.logging_config import get_logger

logger = get_logger(__name__)

mcp = FastMCP('Memory Entanglement')
_engine: Optional[EntanglementEngine] = None


def get_engine() -> EntanglementEngine:
    """Build and initialize the shared engine on first use."""
    global _engine
    if _engine is None:
        engine = EntanglementEngine.from_config(config)
        engine.initialize()
        _engine = engine
    return _engine


def _require(value: str, name: str) -> str:
    if not value or not str(value).strip():
        raise ValueError(f'{name} is required')
    return str(value).strip()


@mcp.tool()
def queue_memory_for_discovery(memory_id: str, user_id: str) -> Dict[str, Any]:
    """Queue a memory for background entanglement discovery.

    Args:
        memory_id: Memory ID
        user_id: User ID owning the memory

    Returns:
        Whether the memory was newly queued and the current queue length
    """
    memory_id, user_id = _require(memory_id, 'Memory ID'), _require(user_id, 'User ID')
    engine = get_engine()
    queued = engine.queue_for_discovery(memory_id, user_id)
    return {'queued': queued, 'pending': engine.scheduler.pending_count}


@mcp.tool()
def discover_memory_entanglements(memory_id: str, user_id: str) -> Dict[str, Any]:
    """Run entanglement discovery for a memory right away.

    Args:
        memory_id: Memory ID
        user_id: User ID owning the memory

    Returns:
        Persisted entanglements and suggested connections
    """
    memory_id, user_id = _require(memory_id, 'Memory ID'), _require(user_id, 'User ID')

    try:
        result = get_engine().discover(memory_id, user_id)
    except EntanglementEngineError as e:
        logger.error(f'Entanglement discovery error in MCP call: {e}')
        raise Exception(f'Entanglement discovery failed: {e}')

    return {
        'memory_id': result.memory.id,
        'entanglements': [entanglement.to_dict() for entanglement in result.entanglements],
        'suggestions': [{
            'type': suggestion.type.value,
            'target_memory_id': suggestion.target_memory_id,
            'reason': suggestion.reason,
            'confidence': suggestion.confidence
        } for suggestion in result.suggestions]
    }


@mcp.tool()
def get_memory_entanglements(memory_id: str) -> List[Dict[str, Any]]:
    """List entanglements of a memory, strongest first.

    Args:
        memory_id: Memory ID

    Returns:
        List of entanglement dictionaries
    """
    memory_id = _require(memory_id, 'Memory ID')

    try:
        return [entanglement.to_dict() for entanglement in get_engine().get_entanglements(memory_id)]
    except EntanglementEngineError as e:
        logger.error(f'Entanglement lookup error in MCP call: {e}')
        raise Exception(f'Entanglement lookup failed: {e}')


@mcp.tool()
def traverse_memory_graph(memory_id: str,
                          depth: int = 2,
                          min_strength: Optional[float] = None,
                          types: Optional[List[str]] = None) -> Dict[str, Any]:
    """Walk the entanglement graph around a memory.

    Args:
        memory_id: Root memory ID
        depth: Maximum hops (default: 2)
        min_strength: Minimum edge strength between 0.25 and 1.0
        types: Allowed entanglement types, e.g. ["semantic", "temporal"]

    Returns:
        Nodes, edges and the root memory ID
    """
    memory_id = _require(memory_id, 'Memory ID')
    allowed = [EntanglementType(t) for t in types] if types else None

    try:
        return get_engine().traverse(memory_id, depth=depth, min_strength=min_strength, types=allowed).to_dict()
    except EntanglementEngineError as e:
        logger.error(f'Graph traversal error in MCP call: {e}')
        raise Exception(f'Graph traversal failed: {e}')


@mcp.tool()
def entanglement_health() -> Dict[str, Any]:
    """Report the health of the engine's backing services."""
    return get_health_status(config)


if __name__ == '__main__':
    mcp.run(transport=config.mcp.transport, host=config.mcp.host, port=config.mcp.port)

"""
Health check utilities for the entanglement engine's backing services.
"""

from typing import Any, Dict, Optional

from .bedrock_embed import BedrockEmbed
from .bedrock_llm import BedrockLLM
from .config import AppConfig
from .logging_config import get_logger
from .neptune_client import NeptuneClient
from .opensearch_client import OpenSearchClient

logger = get_logger(__name__)


def check_health(app_config: Optional[AppConfig] = None) -> bool:
    """Check the health of all backing services.

    Returns:
        True if all components are healthy, False otherwise
    """
    health_status = get_health_status(app_config)
    all_healthy = all(status.get('healthy', False) for status in health_status.values())

    if all_healthy:
        logger.info('All system components are healthy')
    else:
        unhealthy = [name for name, status in health_status.items() if not status.get('healthy', False)]
        logger.warning(f'Unhealthy components: {", ".join(unhealthy)}')

    return all_healthy


def _probe(service: str, detail: Dict[str, Any], build) -> Dict[str, Any]:
    try:
        client = build()
        return {'healthy': client.health_check(), 'service': service, **detail}
    except Exception as e:
        return {'healthy': False, 'service': service, 'error': str(e)}


def get_health_status(app_config: Optional[AppConfig] = None) -> Dict[str, Any]:
    """Get detailed health status of each backing service.

    Returns:
        Dictionary with health status of each component
    """
    if app_config is None:
        from .config import config as default_config
        app_config = default_config

    return {
        'bedrock_llm':
        _probe('Amazon Bedrock LLM', {'model': app_config.bedrock_llm.model_id},
               lambda: BedrockLLM(app_config.bedrock_llm)),
        'bedrock_embed':
        _probe('Amazon Bedrock Embed', {'model': app_config.bedrock_embed.model_id},
               lambda: BedrockEmbed(app_config.bedrock_embed)),
        'neptune':
        _probe('Amazon Neptune', {'endpoint': app_config.neptune.endpoint}, lambda: NeptuneClient(app_config.neptune)),
        'opensearch':
        _probe('Amazon OpenSearch', {'endpoint': app_config.opensearch.endpoint},
               lambda: OpenSearchClient(app_config.opensearch)),
    }

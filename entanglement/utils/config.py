"""
Configuration management for AWS services and entanglement engine settings.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class BedrockLLMConfig:
    """Configuration for Amazon Bedrock LLM service."""
    region: str
    model_id: str
    max_tokens: int
    temperature: float
    retry_attempts: int
    retry_delay: float
    timeout: float


@dataclass
class BedrockEmbedConfig:
    """Configuration for Amazon Bedrock Embed service."""
    region: str
    model_id: str
    dimension: int
    retry_attempts: int
    retry_delay: float
    timeout: float


@dataclass
class NeptuneConfig:
    """Configuration for Amazon Neptune graph database."""
    endpoint: str
    port: int
    region: str
    timeout: float


@dataclass
class OpenSearchConfig:
    """Configuration for the OpenSearch index holding memory records."""
    endpoint: str
    port: int
    region: str
    index_name: str
    timeout: float


@dataclass
class EntanglementConfig:
    """Configuration for entanglement discovery."""
    min_confidence_threshold: float = 0.3
    max_entanglements_per_memory: int = 20
    temporal_window_days: int = 30
    enable_auto_discovery: bool = True
    discovery_batch_size: int = 10
    discovery_interval_seconds: float = 300.0
    cache_enabled: bool = True
    cache_ttl: int = 3600


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_llm: BedrockLLMConfig
    bedrock_embed: BedrockEmbedConfig
    neptune: NeptuneConfig
    opensearch: OpenSearchConfig
    entanglement: EntanglementConfig
    mcp: MCPConfig


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock configuration
    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-haiku-20240307-v1:0'),
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '512')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.3')),
                                          retry_attempts=int(os.getenv('BEDROCK_LLM_RETRY_ATTEMPTS', '3')),
                                          retry_delay=float(os.getenv('BEDROCK_LLM_RETRY_DELAY', '1.0')),
                                          timeout=float(os.getenv('BEDROCK_LLM_TIMEOUT', '60')))

    # Bedrock Embed configuration
    bedrock_embed_config = BedrockEmbedConfig(region=os.getenv('BEDROCK_EMBED_AWS_REGION', 'us-east-1'),
                                              model_id=os.getenv('BEDROCK_EMBED_MODEL_ID', 'amazon.titan-embed-text-v2:0'),
                                              dimension=int(os.getenv('BEDROCK_EMBED_DIMENSION', '1024')),
                                              retry_attempts=int(os.getenv('BEDROCK_EMBED_RETRY_ATTEMPTS', '3')),
                                              retry_delay=float(os.getenv('BEDROCK_EMBED_RETRY_DELAY', '1.0')),
                                              timeout=float(os.getenv('BEDROCK_EMBED_TIMEOUT', '30')))

    # Neptune configuration
    neptune_config = NeptuneConfig(endpoint=os.getenv('NEPTUNE_ENDPOINT', 'localhost'),
                                   port=int(os.getenv('NEPTUNE_PORT', '8182')),
                                   region=os.getenv('NEPTUNE_AWS_REGION', 'us-east-1'),
                                   timeout=float(os.getenv('NEPTUNE_TIMEOUT', '30')))

    # Memory record index configuration
    opensearch_config = OpenSearchConfig(endpoint=os.getenv('OPENSEARCH_ENDPOINT', 'localhost'),
                                         port=int(os.getenv('OPENSEARCH_PORT', '443')),
                                         region=os.getenv('OPENSEARCH_AWS_REGION', 'us-east-1'),
                                         index_name=os.getenv('OPENSEARCH_MEMORY_INDEX', 'memory_records'),
                                         timeout=float(os.getenv('OPENSEARCH_TIMEOUT', '30')))

    # Entanglement discovery configuration (zero falls back to the default)
    entanglement_config = EntanglementConfig(
        min_confidence_threshold=float(os.getenv('ENTANGLEMENT_MIN_CONFIDENCE', '0') or 0) or 0.3,
        max_entanglements_per_memory=int(os.getenv('ENTANGLEMENT_MAX_PER_MEMORY', '0') or 0) or 20,
        temporal_window_days=int(os.getenv('ENTANGLEMENT_TEMPORAL_WINDOW_DAYS', '0') or 0) or 30,
        enable_auto_discovery=_env_bool('ENTANGLEMENT_AUTO_DISCOVERY', True),
        discovery_batch_size=int(os.getenv('ENTANGLEMENT_DISCOVERY_BATCH_SIZE', '0') or 0) or 10,
        discovery_interval_seconds=float(os.getenv('ENTANGLEMENT_DISCOVERY_INTERVAL_SECONDS', '0') or 0) or 300.0,
        cache_enabled=_env_bool('ENTANGLEMENT_CACHE_ENABLED', True),
        cache_ttl=int(os.getenv('ENTANGLEMENT_CACHE_TTL', '0') or 0) or 3600)

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_llm=bedrock_llm_config,
                     bedrock_embed=bedrock_embed_config,
                     neptune=neptune_config,
                     opensearch=opensearch_config,
                     entanglement=entanglement_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()

"""
Amazon Bedrock LLM client used for entity extraction prompts.
"""

import random
import time
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockLLMConfig
from .logging_config import get_logger

logger = get_logger(__name__)

# Request errors that a retry cannot fix
NON_RETRYABLE_CODES = ('AccessDeniedException', 'UnrecognizedClientException', 'ValidationException',
                       'ResourceNotFoundException')


class BedrockLLMError(Exception):
    """Custom exception for Bedrock LLM errors."""
    pass


class BedrockLLM:
    """Streaming Converse client with manual retries."""

    def __init__(self, config: BedrockLLMConfig, client=None):
        """
        Args:
            config: BedrockLLMConfig instance with connection parameters
            client: Optional pre-built bedrock-runtime client
        """
        self.config = config
        self.model_id = config.model_id

        # botocore retries are off; _converse retries with backoff instead
        self.bedrock_runtime = client or boto3.client('bedrock-runtime',
                                                      region_name=config.region,
                                                      config=BotoConfig(connect_timeout=config.timeout,
                                                                        read_timeout=config.timeout,
                                                                        retries={'max_attempts': 0}))

        logger.info(f'Initialized Bedrock LLM client with model: {self.model_id}')

    def _converse(self, request: Dict[str, Any]) -> str:
        attempts = self.config.retry_attempts

        for attempt in range(attempts):
            try:
                logger.debug(f'Converse request {attempt + 1}/{attempts} to {self.model_id}')
                stream = self.bedrock_runtime.converse_stream(**request).get('stream') or []
                return ''.join(event['contentBlockDelta']['delta'].get('text', '')
                               for event in stream
                               if 'contentBlockDelta' in event)

            except (ClientError, BotoCoreError) as e:
                code = e.response.get('Error', {}).get('Code', '') if isinstance(e, ClientError) else ''
                if code in NON_RETRYABLE_CODES:
                    raise BedrockLLMError(f'Bedrock LLM request rejected ({code}): {e}')

                logger.warning(f'Converse attempt {attempt + 1}/{attempts} failed: {e}')
                if attempt == attempts - 1:
                    raise BedrockLLMError(f'Bedrock LLM failed after {attempts} attempts: {e}')
                time.sleep(self.config.retry_delay * (2**attempt) + random.uniform(0, 1))

            except Exception as e:
                logger.error(f'Unexpected error in Bedrock LLM: {e}')
                raise BedrockLLMError(f'Unexpected Bedrock LLM error: {e}')

        raise BedrockLLMError(f'Bedrock LLM failed after {attempts} attempts')

    def complete(self,
                 prompt: str,
                 system_prompt: str,
                 prefill: Optional[str] = None,
                 max_tokens: Optional[int] = None,
                 temperature: Optional[float] = None,
                 stop_sequences: Optional[List[str]] = None) -> str:
        """
        Single-turn completion.

        Args:
            prompt: User message
            system_prompt: System instructions
            prefill: Start of the assistant reply; prepended to the returned text
            max_tokens: Defaults to the configured limit
            temperature: Defaults to the configured temperature
            stop_sequences: Generation stops at any of these

        Returns:
            The completion text

        Raises:
            BedrockLLMError: If the request is rejected or all retries fail
        """
        messages = [{'role': 'user', 'content': [{'text': prompt}]}]
        if prefill:
            messages.append({'role': 'assistant', 'content': [{'text': prefill}]})

        completion = self._converse({
            'modelId': self.model_id,
            'messages': messages,
            'system': [{
                'text': system_prompt
            }],
            'inferenceConfig': {
                'maxTokens': max_tokens or self.config.max_tokens,
                'temperature': self.config.temperature if temperature is None else temperature,
                'stopSequences': stop_sequences or []
            }
        })
        return f'{prefill or ""}{completion}'

    def health_check(self) -> bool:
        """True if the model answers a trivial prompt."""
        try:
            return bool(self.complete('Hi', system_prompt="Respond with just 'OK'.", max_tokens=10, temperature=0.0).strip())
        except BedrockLLMError as e:
            logger.error(f'Bedrock LLM health check failed: {e}')
            return False

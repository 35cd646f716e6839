"""
OpenSearch client wrapper for reading journaled memory records.
"""

from typing import Any, Dict, List, Optional

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import OpenSearchException
from requests_aws4auth import AWS4Auth

from .config import OpenSearchConfig
from .logging_config import get_logger

logger = get_logger(__name__)


class OpenSearchError(Exception):
    """Custom exception for OpenSearch errors."""
    pass


class OpenSearchClient:
    """OpenSearch client with AWS authentication and error handling."""

    def __init__(self, config: OpenSearchConfig, client: Optional[OpenSearch] = None):
        """
        Initialize OpenSearch client.

        Args:
            config: OpenSearchConfig instance with connection parameters
            client: Optional pre-built OpenSearch client
        """
        self.config = config
        self.index_name = config.index_name

        if client is not None:
            self.client = client
            return

        credentials = boto3.Session().get_credentials()
        auth = AWS4Auth(region=config.region, service='aoss', refreshable_credentials=credentials)

        endpoint = config.endpoint
        if '://' in endpoint:
            # Remove protocol if present
            endpoint = endpoint.split('://', 1)[1]

        self.client = OpenSearch(hosts=[{
            'host': endpoint,
            'port': config.port
        }],
                                 http_auth=auth,
                                 use_ssl=True,
                                 verify_certs=True,
                                 timeout=config.timeout,
                                 connection_class=RequestsHttpConnection)

        logger.info(f'Initialized OpenSearch client for endpoint: {config.endpoint}')

    def get_document(self, user_id: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a memory document by user_id and memory id.

        Args:
            user_id: Owner of the memory
            doc_id: Memory id

        Returns:
            Document source if found, None otherwise
        """
        search_body = {
            'size': 1,
            'query': {
                'bool': {
                    'filter': [{
                        'term': {
                            'user_id': user_id
                        }
                    }, {
                        'term': {
                            'id': doc_id
                        }
                    }]
                }
            },
            '_source': {
                'excludes': ['embedding']
            }
        }

        try:
            response = self.client.search(index=self.index_name, body=search_body)
        except OpenSearchException as e:
            logger.error(f'Error getting document {doc_id} for user {user_id}: {e}')
            raise OpenSearchError(f'Failed to get document: {e}')
        except Exception as e:
            logger.error(f'Unexpected error getting document {doc_id}: {e}')
            raise OpenSearchError(f'Unexpected error getting document: {e}')

        hits = response['hits']['hits']
        return hits[0]['_source'] if hits else None

    def list_documents(self, user_id: str, page_size: int = 500) -> List[Dict[str, Any]]:
        """
        List every memory document for a user, paging with search_after.

        Args:
            user_id: Owner of the memories
            page_size: Documents fetched per request

        Returns:
            List of document sources
        """
        documents = []
        search_after = None

        try:
            while True:
                search_body = {
                    'size': page_size,
                    'query': {
                        'bool': {
                            'filter': [{
                                'term': {
                                    'user_id': user_id
                                }
                            }]
                        }
                    },
                    'sort': [{
                        'id': 'asc'
                    }],
                    '_source': {
                        'excludes': ['embedding']
                    }
                }
                if search_after is not None:
                    search_body['search_after'] = search_after

                response = self.client.search(index=self.index_name, body=search_body)
                hits = response['hits']['hits']
                documents.extend(hit['_source'] for hit in hits)

                if len(hits) < page_size:
                    break
                search_after = hits[-1]['sort']

        except OpenSearchException as e:
            logger.error(f'Error listing documents for user {user_id}: {e}')
            raise OpenSearchError(f'Failed to list documents: {e}')
        except Exception as e:
            logger.error(f'Unexpected error listing documents for user {user_id}: {e}')
            raise OpenSearchError(f'Unexpected error listing documents: {e}')

        logger.debug(f'Listed {len(documents)} documents for user {user_id}')
        return documents

    def health_check(self) -> bool:
        """
        Perform a health check on the OpenSearch service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            return bool(self.client.indices.exists(index=self.index_name))

        except Exception as e:
            logger.error(f'OpenSearch health check failed: {e}')
            return False

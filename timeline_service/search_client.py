"""
HTTP client for the external search index (OpenSearch / Elasticsearch REST API)
"""
import httpx
from typing import Optional, Dict, Any
import logging

from .config import settings
from .domain.repositories import ISearchIndex
from .errors import DependencyError

logger = logging.getLogger(__name__)


class SearchClient(ISearchIndex):
    """Indexes documents through the search cluster's document API"""

    def __init__(self, base_url: Optional[str] = None, enabled: Optional[bool] = None):
        self.base_url = (base_url or settings.SEARCH_URL).rstrip("/")
        self.enabled = settings.SEARCH_ENABLED if enabled is None else enabled
        self.timeout = httpx.Timeout(settings.EXTERNAL_CALL_TIMEOUT)
        self.client: Optional[httpx.AsyncClient] = None

    async def start(self):
        """Initialize HTTP client"""
        if not self.enabled:
            logger.warning("Search indexing is disabled")
            return

        headers = {"Content-Type": "application/json"}
        if settings.SEARCH_API_KEY:
            headers["Authorization"] = f"ApiKey {settings.SEARCH_API_KEY}"

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
        )
        logger.info(f"Search client initialized for {self.base_url}")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            logger.info("Search client closed")

    async def index_document(self, index: str, doc_id: str, body: Dict[str, Any]) -> bool:
        """
        Index (create or replace) a document

        Returns:
            True if indexed, False when indexing is disabled

        Raises:
            DependencyError: on HTTP errors or timeouts
        """
        if not self.client:
            logger.debug(f"Search client not available, skipping index of {doc_id}")
            return False

        try:
            response = await self.client.put(f"/{index}/_doc/{doc_id}", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DependencyError(
                "search", f"HTTP error {e.response.status_code} indexing {doc_id}"
            ) from e
        except httpx.HTTPError as e:
            raise DependencyError("search", f"request failed indexing {doc_id}: {e}") from e

        logger.debug(f"Indexed document {doc_id} into '{index}'")
        return True

"""
Datafiniti property search client with retry logic.
"""
import logging
from typing import Optional

import requests
from pydantic import ValidationError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import DatafinitiConfig, get_config
from ..models.listing import SearchResponse


logger = logging.getLogger(__name__)


class DatafinitiError(Exception):
    """Base error for the property search API."""


class ConfigurationError(DatafinitiError):
    """Raised when the API credential is missing. Retrying cannot help."""


class UpstreamCallError(DatafinitiError):
    """Raised when one search call fails: network, HTTP status or payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


STATUS_HINTS = {
    400: "bad request, check the query syntax",
    401: "authentication failed, check the API key",
    429: "rate limit exceeded",
}


class DatafinitiClient:
    """
    Thin wrapper around the Datafiniti property search endpoint.
    Returns the parsed response envelope; record validation happens downstream.
    """

    def __init__(self, config: Optional[DatafinitiConfig] = None):
        self.config = config or get_config().datafiniti
        self.search_url = f"{self.config.base_url.rstrip('/')}/properties/search"
        if not self.is_available():
            logger.warning("No Datafiniti API key configured")

    def is_available(self) -> bool:
        """Check if the client has a usable credential."""
        return self.config.has_credentials

    @staticmethod
    def build_query(locality: str, user_query: str = "", jurisdiction: str = "CA") -> str:
        """Search expression scoped to one city in the allowed jurisdiction."""
        query = f'province:{jurisdiction} AND city:"{locality}"'
        user_query = (user_query or "").strip()
        if user_query:
            query = f"{query} AND ({user_query})"
        return query

    def _post(self, query: str, num_records: int) -> requests.Response:
        return requests.post(
            self.search_url,
            json={
                "query": query,
                "format": "JSON",
                "num_records": num_records,
            },
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.config.api_key.strip()}",
            },
            timeout=self.config.request_timeout,
        )

    def _post_with_retry(self, query: str, num_records: int) -> requests.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
            before_sleep=lambda retry_state: logger.warning(
                f"Retry attempt {retry_state.attempt_number} for query: {query}"
            ),
            reraise=True,
        )
        return retrying(self._post, query, num_records)

    def search(self, query: str, num_records: int = 1) -> SearchResponse:
        """
        Run one search call.

        Args:
            query: Datafiniti query expression
            num_records: Records requested from this call

        Returns:
            Parsed SearchResponse

        Raises:
            ConfigurationError: No API key configured
            UpstreamCallError: Network failure, non-success status or malformed payload
        """
        if not self.is_available():
            raise ConfigurationError("Datafiniti API key is missing")

        logger.info(f"Searching Datafiniti ({num_records} records): {query}")

        try:
            response = self._post_with_retry(query, num_records)
        except requests.RequestException as e:
            raise UpstreamCallError(f"Request failed: {e}") from e

        if not response.ok:
            hint = STATUS_HINTS.get(response.status_code)
            if hint is None and response.status_code >= 500:
                hint = "server error, the API may be down"
            logger.error(
                f"Datafiniti returned {response.status_code}"
                + (f" ({hint})" if hint else "")
                + f" for query: {query}"
            )
            raise UpstreamCallError(
                f"Datafiniti API error: {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamCallError(f"Invalid JSON response: {e}") from e

        if not isinstance(payload, dict):
            raise UpstreamCallError(f"Unexpected payload type: {type(payload).__name__}")

        try:
            result = SearchResponse.model_validate(payload)
        except ValidationError as e:
            raise UpstreamCallError(f"Malformed search response: {e}") from e

        logger.info(
            f"Received {len(result.record_list)} records "
            f"(num_found: {result.num_found if result.num_found is not None else 'N/A'})"
        )
        return result

"""
Provider Client Base
Single-attempt HTTP call to one vendor with one credential, a hard timeout
and uniform failure classification.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from pencilx.ai.exceptions import (
    ExhaustedCredential,
    MalformedResponse,
    TransientProviderFailure,
)
from pencilx.ai.key_manager import Credential, KeyRotationTable
from pencilx.ai.models import CompletionRequest, CompletionResponse
from pencilx.utils.logger import get_logger

logger = get_logger(__name__)

EXHAUSTION_STATUS_CODES = frozenset({402, 403, 429})
QUOTA_INDICATORS = ("quota", "limit")


def is_exhaustion_signal(status_code: int, body: str) -> bool:
    """Detect rate-limit or quota responses"""
    if status_code in EXHAUSTION_STATUS_CODES:
        return True
    body_lower = body.lower()
    return any(indicator in body_lower for indicator in QUOTA_INDICATORS)


class HTTPProviderClient:
    """
    HTTP transport shared by every vendor client.

    Owns the connection pool, the hard timeout and the classification of
    failed responses. A client never retries and never touches the
    rotation state: outcome bookkeeping belongs to the caller.
    """

    name: str = "provider"

    def __init__(
        self,
        key_table: KeyRotationTable,
        base_url: str,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ):
        if name:
            self.name = name
        self.key_table = key_table
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    async def _post_json(
        self,
        request_kwargs: Dict[str, Any],
        credential: Credential,
        timeout: Optional[float] = None,
    ) -> Any:
        """POST under a hard timeout, classify failures, return parsed JSON"""
        limit = timeout if timeout is not None else self.timeout_seconds
        try:
            response = await asyncio.wait_for(
                self.http_client.post(**request_kwargs), timeout=limit
            )
        except asyncio.TimeoutError as e:
            raise TransientProviderFailure(
                f"{self.name} request timed out after {limit}s",
                provider=self.name,
                key_name=credential.name,
                original_error=e,
            )
        except httpx.HTTPError as e:
            raise TransientProviderFailure(
                f"{self.name} request failed: {type(e).__name__}: {e}",
                provider=self.name,
                key_name=credential.name,
                original_error=e,
            )

        if response.status_code < 200 or response.status_code >= 300:
            body = response.text
            message = f"{self.name} API error: {response.status_code} - {body[:500]}"
            if is_exhaustion_signal(response.status_code, body):
                raise ExhaustedCredential(
                    message,
                    provider=self.name,
                    key_name=credential.name,
                    status_code=response.status_code,
                )
            raise TransientProviderFailure(
                message,
                provider=self.name,
                key_name=credential.name,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"{self.name} returned a non-JSON body",
                provider=self.name,
                key_name=credential.name,
                original_error=e,
            )


class ProviderClient(HTTPProviderClient, ABC):
    """
    Base class for text completion clients.

    Subclasses build the vendor request and decode the vendor payload;
    this class adds credential lookup and the malformed-payload check.
    """

    default_confidence: Optional[float] = None

    @abstractmethod
    def build_request(
        self, request: CompletionRequest, credential: Credential
    ) -> Dict[str, Any]:
        """Keyword arguments for ``httpx.AsyncClient.post``"""

    @abstractmethod
    def decode(self, payload: Any, request: CompletionRequest) -> CompletionResponse:
        """Vendor payload to CompletionResponse; raise MalformedResponse on shape errors"""

    async def call(
        self,
        request: CompletionRequest,
        credential: Optional[Credential] = None,
        timeout: Optional[float] = None,
    ) -> CompletionResponse:
        """
        Perform one completion attempt.

        Args:
            request: Messages, model and options
            credential: Key to use; defaults to the provider's current key
            timeout: Overrides the client's hard timeout in seconds

        Raises:
            ExhaustedCredential: Rate limit or quota signal
            TransientProviderFailure: Timeout, network error, unexpected status
            MalformedResponse: 2xx with an unexpected payload
        """
        credential = credential or self.key_table.current(self.name)
        start_time = time.perf_counter()

        payload = await self._post_json(self.build_request(request, credential), credential, timeout)

        try:
            response = self.decode(payload, request)
        except (ValidationError, KeyError, IndexError, TypeError) as e:
            raise MalformedResponse(
                f"Unexpected response format from {self.name}: {e}",
                provider=self.name,
                key_name=credential.name,
                original_error=e,
            )

        response.processing_time_ms = (time.perf_counter() - start_time) * 1000
        if response.confidence is None:
            response.confidence = self.default_confidence
        return response

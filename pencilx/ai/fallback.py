"""
AI Fallback Orchestrator
Priority-ordered provider chain with key rotation, used for chat, code and
image generation.
"""

import time
from typing import Dict, List, Optional, Sequence, Union

import httpx

from pencilx.ai.clients import (
    FalClient,
    GeminiClient,
    HTTPProviderClient,
    LLM7Client,
    ProviderClient,
)
from pencilx.ai.config import (
    CODING_MODELS,
    GEMINI,
    LLM7,
    AIConfig,
    ProviderConfig,
    get_ai_config,
)
from pencilx.ai.exceptions import (
    AIProviderError,
    AllProvidersFailed,
    ExhaustedCredential,
    ImageGenerationFailed,
    NoProvidersAvailable,
    TransientProviderFailure,
)
from pencilx.ai.key_manager import KeyRotationTable
from pencilx.ai.models import ChatMessage, CompletionRequest, CompletionResponse, ImageResult
from pencilx.utils.logger import get_logger
from pencilx.utils.logging_config import log_performance
from pencilx.utils.metrics import CHAIN_FAILURES, record_attempt

logger = get_logger(__name__)

HEALTH_CHECK_PROMPT = 'Hello, this is a health check. Please respond with "OK".'

MessageInput = Union[ChatMessage, Dict[str, str]]


class FallbackOrchestrator:
    """
    Runs one logical request through the provider chain.

    Features:
    - Providers tried strictly one at a time in ascending priority
    - Rotation to the next key on quota or rate-limit signals
    - Bounded retries within a provider before moving on
    - One whole-table reset and re-run when every provider ends exhausted
    """

    def __init__(
        self,
        providers: Sequence[ProviderConfig],
        clients: Dict[str, ProviderClient],
        key_table: KeyRotationTable,
        image_clients: Optional[Sequence[HTTPProviderClient]] = None,
        reset_on_total_exhaustion: bool = True,
    ):
        self.providers = list(providers)
        self.clients = clients
        self.key_table = key_table
        self.image_clients = list(image_clients or [])
        self.reset_on_total_exhaustion = reset_on_total_exhaustion
        self._last_errors: Dict[str, Optional[str]] = {}

    # ------------------------------------------------------------------
    # Provider selection
    # ------------------------------------------------------------------

    def _is_usable(self, provider: ProviderConfig) -> bool:
        return (
            provider.enabled
            and provider.name in self.clients
            and self.key_table.has_credentials(provider.name)
        )

    def available_providers(self) -> List[ProviderConfig]:
        """Enabled providers with at least one unexhausted key, by priority"""
        return sorted(
            (
                p
                for p in self.providers
                if self._is_usable(p) and self.key_table.is_available(p.name)
            ),
            key=lambda p: p.priority,
        )

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

    async def complete(
        self,
        messages: Sequence[MessageInput],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        fallback_enabled: bool = True,
    ) -> CompletionResponse:
        """
        Chat completion with automatic provider fallback.

        Args:
            messages: Role-tagged messages, oldest first
            model: Target model id; providers map foreign ids to their default
            temperature: Optional sampling temperature
            max_tokens: Optional output cap
            fallback_enabled: When False only the first provider is tried

        Returns:
            CompletionResponse: First successful provider answer

        Raises:
            NoProvidersAvailable: Nothing to try
            AllProvidersFailed: Every provider in the chain failed
        """
        request = CompletionRequest(
            messages=[
                m if isinstance(m, ChatMessage) else ChatMessage(**m) for m in messages
            ],
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        providers = self.available_providers()
        if not providers:
            CHAIN_FAILURES.labels(reason="no_providers").inc()
            raise NoProvidersAvailable()

        try:
            return await self._run_chain(providers, request, fallback_enabled)
        except AllProvidersFailed:
            if not self.reset_on_total_exhaustion or any(
                self.key_table.is_available(p.name) for p in providers
            ):
                CHAIN_FAILURES.labels(reason="all_failed").inc()
                raise

        logger.warning("Every provider exhausted its keys; resetting and retrying once")
        for provider in providers:
            self.key_table.rotate(provider.name)
        try:
            return await self._run_chain(providers, request, fallback_enabled)
        except AllProvidersFailed:
            CHAIN_FAILURES.labels(reason="all_failed").inc()
            raise

    # Name used by the HTTP layer and external callers
    ai_completion = complete

    async def _run_chain(
        self,
        providers: List[ProviderConfig],
        request: CompletionRequest,
        fallback_enabled: bool,
    ) -> CompletionResponse:
        last_error: Optional[Exception] = None

        for provider in providers:
            logger.info(f"Attempting to use provider: {provider.name}")
            try:
                response = await self._attempt_provider(provider, request)
            except (ExhaustedCredential, TransientProviderFailure) as e:
                logger.warning(f"Provider {provider.name} failed: {e}")
                last_error = e
                if not fallback_enabled:
                    break
                continue

            logger.info(f"Successfully used provider: {provider.name}")
            return response

        raise AllProvidersFailed(last_error)

    async def _attempt_provider(
        self, provider: ProviderConfig, request: CompletionRequest
    ) -> CompletionResponse:
        """Call one provider, rotating keys on exhaustion up to max_retries times"""
        client = self.clients[provider.name]
        retries = 0

        while True:
            credential = self.key_table.current(provider.name)
            try:
                response = await client.call(
                    request, credential=credential, timeout=provider.timeout_seconds
                )
            except ExhaustedCredential as e:
                self.key_table.mark_exhausted(provider.name, credential, str(e))
                record_attempt(provider.name, "exhausted")
                self._last_errors[provider.name] = str(e)
                if retries < provider.max_retries and self.key_table.is_available(
                    provider.name
                ):
                    self.key_table.rotate(provider.name)
                    retries += 1
                    continue
                raise
            except TransientProviderFailure as e:
                self.key_table.record_error(provider.name, credential, str(e))
                record_attempt(provider.name, "transient")
                self._last_errors[provider.name] = str(e)
                raise

            self.key_table.mark_success(
                provider.name, credential, response.processing_time_ms
            )
            record_attempt(provider.name, "success", response.processing_time_ms)
            self._last_errors[provider.name] = None
            log_performance(
                logger,
                f"{provider.name} completion",
                round(response.processing_time_ms, 2),
                {"provider": provider.name},
            )
            return response

    # ------------------------------------------------------------------
    # Code and image generation
    # ------------------------------------------------------------------

    async def generate_code(
        self, prompt: str, language: str = "javascript"
    ) -> CompletionResponse:
        """Try the coding models in turn, then whatever the chain defaults to"""
        messages = [
            ChatMessage(
                role="system",
                content=f"You are an expert {language} developer. Generate clean, "
                "well-documented code based on the user's request. Include comments "
                "explaining the logic and best practices. Return only the code "
                "without explanations.",
            ),
            ChatMessage(role="user", content=prompt),
        ]

        for model in CODING_MODELS:
            try:
                return await self.complete(messages, model=model)
            except AIProviderError as e:
                logger.warning(f"Model {model} failed for code generation: {e}")

        return await self.complete(messages)

    async def generate_image(
        self, prompt: str, width: int = 512, height: int = 512
    ) -> ImageResult:
        """
        Generate an image with the first image provider that succeeds.

        Raises:
            ImageGenerationFailed: Every image provider failed or was unconfigured
        """
        errors: List[Exception] = []

        for client in self.image_clients:
            if not self.key_table.has_credentials(client.name):
                continue
            if not self.key_table.is_available(client.name):
                logger.warning(f"Skipping {client.name} image generation: all keys exhausted")
                continue

            credential = self.key_table.current(client.name)
            start_time = time.perf_counter()
            try:
                result = await client.generate_image(
                    prompt, width, height, credential=credential
                )
            except ExhaustedCredential as e:
                self.key_table.mark_exhausted(client.name, credential, str(e))
                record_attempt(client.name, "exhausted")
                self._last_errors[client.name] = str(e)
                logger.warning(f"{client.name} image generation failed: {e}")
                errors.append(e)
                continue
            except AIProviderError as e:
                self.key_table.record_error(client.name, credential, str(e))
                record_attempt(client.name, "transient")
                self._last_errors[client.name] = str(e)
                logger.warning(f"{client.name} image generation failed: {e}")
                errors.append(e)
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            self.key_table.mark_success(client.name, credential, latency_ms)
            record_attempt(client.name, "success", latency_ms)
            self._last_errors[client.name] = None
            return result

        raise ImageGenerationFailed(errors)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def provider_status(self) -> Dict:
        """Snapshot of every provider for the status endpoint"""
        available = {p.name for p in self.available_providers()}
        return {
            "providers": [
                {
                    "name": p.name,
                    "priority": p.priority,
                    "enabled": p.enabled,
                    "available": p.name in available,
                    "last_error": self._last_errors.get(p.name),
                    "credentials": self.key_table.snapshot(p.name),
                }
                for p in sorted(self.providers, key=lambda p: p.priority)
            ],
            "image_providers": [
                {
                    "name": client.name,
                    "available": self.key_table.is_available(client.name),
                    "last_error": self._last_errors.get(client.name),
                    "credentials": self.key_table.snapshot(client.name),
                }
                for client in self.image_clients
            ],
            "available_count": len(available),
            "total_count": len(self.providers),
        }

    async def health_check(self) -> Dict[str, bool]:
        """One direct call per configured completion provider"""
        request = CompletionRequest(
            messages=[ChatMessage(role="user", content=HEALTH_CHECK_PROMPT)]
        )
        results: Dict[str, bool] = {}

        for provider in self.providers:
            if not self._is_usable(provider):
                results[provider.name] = False
                continue
            try:
                await self._attempt_provider(provider, request)
                results[provider.name] = True
            except AIProviderError as e:
                logger.warning(f"Health check failed for {provider.name}: {e}")
                results[provider.name] = False

        return results

    async def aclose(self) -> None:
        closed = set()
        for client in [*self.clients.values(), *self.image_clients]:
            http_client = client._http_client
            if http_client is not None and id(http_client) not in closed:
                closed.add(id(http_client))
                await http_client.aclose()


def build_orchestrator(
    config: Optional[AIConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FallbackOrchestrator:
    """
    Build the process-wide orchestrator from configuration.

    All clients share one rotation table and one HTTP connection pool.
    """
    config = config or get_ai_config()
    http_client = http_client or httpx.AsyncClient()
    key_table = KeyRotationTable(
        config.credentials(), cooldown_seconds=config.credential_cooldown_seconds
    )

    llm7 = LLM7Client(
        key_table,
        base_url=config.llm7_base_url,
        timeout_seconds=config.llm7_timeout_seconds,
        http_client=http_client,
        default_model=config.llm7_default_model,
    )
    gemini = GeminiClient(
        key_table,
        base_url=config.gemini_base_url,
        timeout_seconds=config.gemini_timeout_seconds,
        http_client=http_client,
        default_model=config.gemini_default_model,
    )
    fal = FalClient(
        key_table,
        base_url=config.fal_base_url,
        timeout_seconds=config.fal_timeout_seconds,
        http_client=http_client,
        model=config.fal_image_model,
    )

    logger.info(
        f"FallbackOrchestrator configured: "
        f"llm7_keys={len(config.llm7_api_keys)}, "
        f"gemini_keys={len(config.gemini_api_keys)}, "
        f"fal_keys={len(config.fal_api_keys)}, "
        f"cooldown={config.credential_cooldown_seconds}s"
    )

    return FallbackOrchestrator(
        providers=config.completion_providers(),
        clients={LLM7: llm7, GEMINI: gemini},
        key_table=key_table,
        image_clients=[fal, llm7],
        reset_on_total_exhaustion=config.reset_on_total_exhaustion,
    )

"""
Instant Response Selector
Fans one prompt out across several Gemini keys with different framings and
keeps the best-scoring answer.
"""

import asyncio
import re
import time
from typing import Dict, List, Optional, Sequence, Tuple

from pencilx.ai.clients import GeminiInstantClient, ProviderClient
from pencilx.ai.config import GEMINI, AIConfig, get_ai_config
from pencilx.ai.exceptions import (
    AIProviderError,
    AllKeysFailed,
    ExhaustedCredential,
    NoValidKeysError,
)
from pencilx.ai.fallback import FallbackOrchestrator
from pencilx.ai.key_manager import Credential, KeyRotationTable
from pencilx.ai.models import ChatMessage, CompletionRequest, CompletionResponse
from pencilx.utils.logger import get_logger
from pencilx.utils.metrics import record_attempt

logger = get_logger(__name__)

DEFAULT_FRAMINGS: Tuple[str, ...] = (
    "Respond quickly and concisely to: {prompt}",
    "Answer directly in one or two sentences: {prompt}",
    "Give a clear, complete answer to: {prompt}",
)

MAX_ALTERNATIVES = 2
HEALTH_PROBE_KEYS = 3

# length + punctuation + no-ellipsis + diversity
_BASE_SCORE_CEILING = 3 + 2 + 2 + 2

_TERMINAL_PUNCTUATION = (".", "!", "?")
_WORD_PATTERN = re.compile(r"\w+")


def _prompt_terms(prompt: str) -> List[str]:
    """Distinct content words (longer than 3 chars) of the prompt"""
    return list(dict.fromkeys(w for w in _WORD_PATTERN.findall(prompt.lower()) if len(w) > 3))


def score_response(content: str, prompt: str) -> float:
    """
    Heuristic quality score of an instant answer.

    Length, completeness, overlap with the prompt's content words and
    lexical diversity each contribute; higher is better.
    """
    text = content.strip()
    length = len(text)
    score = 0.0

    if 20 <= length <= 200:
        score += 3
    elif 10 <= length <= 300:
        score += 2
    elif 5 <= length <= 500:
        score += 1

    if text.endswith(_TERMINAL_PUNCTUATION):
        score += 2
    if length > 30 and not text.endswith("..."):
        score += 2

    words = text.lower().split()
    for term in _prompt_terms(prompt):
        if any(term in word for word in words):
            score += 1

    if words:
        score += len(set(words)) / len(words) * 2

    return score


def score_confidence(score: float, prompt: str) -> float:
    """Normalise a score into [0, 1]; not a calibrated probability"""
    ceiling = _BASE_SCORE_CEILING + len(_prompt_terms(prompt))
    return round(max(0.0, min(1.0, score / ceiling)), 3)


class ResponseSelector:
    """Multi-key parallel completion with heuristic answer selection"""

    def __init__(
        self,
        client: ProviderClient,
        key_table: KeyRotationTable,
        timeout_seconds: float = 2.0,
    ):
        self.client = client
        self.key_table = key_table
        self.timeout_seconds = timeout_seconds

    @property
    def provider(self) -> str:
        return self.client.name

    def _ordered_credentials(self) -> List[Credential]:
        """Usable keys in ring order, starting at the current one"""
        ring = self.key_table.credentials(self.provider)
        if not ring:
            raise NoValidKeysError(self.provider)

        if not self.key_table.is_available(self.provider):
            self.key_table.rotate(self.provider)

        current = self.key_table.current(self.provider)
        start = ring.index(current)
        ordered = ring[start:] + ring[:start]
        return [c for c in ordered if not self.key_table.status(self.provider, c).exhausted]

    async def _attempt(self, content: str, credential: Credential) -> CompletionResponse:
        request = CompletionRequest(messages=[ChatMessage(role="user", content=content)])
        try:
            response = await self.client.call(
                request, credential=credential, timeout=self.timeout_seconds
            )
        except ExhaustedCredential as e:
            self.key_table.mark_exhausted(self.provider, credential, str(e))
            record_attempt(self.provider, "exhausted")
            raise
        except AIProviderError as e:
            self.key_table.record_error(self.provider, credential, str(e))
            record_attempt(self.provider, "transient")
            raise

        self.key_table.mark_success(self.provider, credential, response.processing_time_ms)
        record_attempt(self.provider, "success", response.processing_time_ms)
        return response

    async def select(
        self, prompt: str, framings: Optional[Sequence[str]] = None
    ) -> CompletionResponse:
        """
        Issue every framing concurrently and return the best answer.

        Args:
            prompt: User text
            framings: Templates with a ``{prompt}`` placeholder

        Returns:
            CompletionResponse: Winner with up to two distinct alternatives

        Raises:
            AllKeysFailed: No attempt succeeded
        """
        framings = list(framings or DEFAULT_FRAMINGS)
        credentials = self._ordered_credentials()
        start_time = time.perf_counter()

        pairs = [
            (framing.format(prompt=prompt), credentials[i % len(credentials)])
            for i, framing in enumerate(framings)
        ]
        logger.debug(f"Instant fan-out: {len(pairs)} request(s) over {len(credentials)} key(s)")

        results = await asyncio.gather(
            *(self._attempt(content, credential) for content, credential in pairs),
            return_exceptions=True,
        )

        successes: List[CompletionResponse] = []
        errors: List[Exception] = []
        for result in results:
            if isinstance(result, AIProviderError):
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                successes.append(result)

        for error in errors:
            logger.warning(f"Instant attempt failed: {error}")

        if not successes:
            raise AllKeysFailed(errors)

        best, best_score = successes[0], score_response(successes[0].content, prompt)
        for candidate in successes[1:]:
            candidate_score = score_response(candidate.content, prompt)
            if candidate_score > best_score:
                best, best_score = candidate, candidate_score

        alternatives: List[str] = []
        for candidate in successes:
            if len(alternatives) >= MAX_ALTERNATIVES:
                break
            if candidate.content != best.content and candidate.content not in alternatives:
                alternatives.append(candidate.content)

        return best.model_copy(
            update={
                "processing_time_ms": (time.perf_counter() - start_time) * 1000,
                "confidence": score_confidence(best_score, prompt),
                "alternatives": alternatives,
            }
        )

    def gemini_status(self) -> Dict:
        return self.key_table.snapshot(self.provider)

    async def gemini_health(self) -> Dict:
        """
        Probe up to three keys and grade the provider.

        healthy: at least 80% of keys usable and under 1s average
        degraded: at least 50% of keys usable and under 2s average
        """
        ring = self.key_table.credentials(self.provider)
        errors: List[str] = []
        timings: List[float] = []

        for i, credential in enumerate(ring[:HEALTH_PROBE_KEYS]):
            try:
                response = await self._attempt("Test", credential)
                timings.append(response.processing_time_ms)
            except AIProviderError as e:
                errors.append(f"Key {i + 1}: {e}")

        total = len(ring)
        available_keys = total - len(errors)
        average = sum(timings) / len(timings) if timings else 0.0

        if total and available_keys >= total * 0.8 and average < 1000:
            status = "healthy"
        elif total and available_keys >= total * 0.5 and average < 2000:
            status = "degraded"
        else:
            status = "unhealthy"

        return {
            "status": status,
            "available_keys": available_keys,
            "average_response_time_ms": average,
            "errors": errors,
        }


def build_selector(
    orchestrator: FallbackOrchestrator, config: Optional[AIConfig] = None
) -> ResponseSelector:
    """Instant selector sharing the orchestrator's rotation table and HTTP pool"""
    config = config or get_ai_config()
    gemini = orchestrator.clients.get(GEMINI)
    client = GeminiInstantClient(
        orchestrator.key_table,
        base_url=gemini.base_url if gemini else config.gemini_base_url,
        timeout_seconds=config.instant_timeout_seconds,
        http_client=gemini.http_client if gemini else None,
        default_model=config.gemini_default_model,
    )
    return ResponseSelector(
        client, orchestrator.key_table, timeout_seconds=config.instant_timeout_seconds
    )

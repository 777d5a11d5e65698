"""
Test doubles and factories shared by the PencilX test suite.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

import httpx
from prometheus_client import REGISTRY

from pencilx.ai.key_manager import Credential, KeyRotationTable
from pencilx.ai.models import CompletionResponse


class FakeClock:
    """Manually advanced clock for cool-down tests"""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_credentials(prefix: str, count: int) -> List[Credential]:
    return [Credential(value=f"{prefix}-secret-{i}", name=f"{prefix}_{i}") for i in range(count)]


def make_table(clock: FakeClock | None = None, **rings: int) -> KeyRotationTable:
    """make_table(llm7=2, gemini=3) -> table with that many keys per provider"""
    return KeyRotationTable(
        {provider: make_credentials(provider, n) for provider, n in rings.items()},
        cooldown_seconds=300,
        clock=clock or FakeClock(),
    )


def make_response(content: str, provider: str = "llm7", model: str = "m") -> CompletionResponse:
    return CompletionResponse(
        content=content, provider=provider, model=model, processing_time_ms=1.0
    )


def mock_http(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def json_response(status_code: int, payload: Dict[str, Any]) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def metric_value(name: str, **labels: str) -> float:
    """Current value of a sample in the default registry, 0.0 when unseen"""
    return REGISTRY.get_sample_value(name, labels) or 0.0

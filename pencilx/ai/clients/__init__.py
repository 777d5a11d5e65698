"""
Provider clients: one per upstream vendor
"""

from pencilx.ai.clients.base import (
    HTTPProviderClient,
    ProviderClient,
    is_exhaustion_signal,
)
from pencilx.ai.clients.fal import FalClient
from pencilx.ai.clients.gemini import GeminiClient, GeminiInstantClient
from pencilx.ai.clients.llm7 import LLM7Client

__all__ = [
    "HTTPProviderClient",
    "ProviderClient",
    "is_exhaustion_signal",
    "LLM7Client",
    "GeminiClient",
    "GeminiInstantClient",
    "FalClient",
]

"""
AI Provider Module
Exports key rotation, provider clients, the fallback orchestrator and the
instant response selector
"""

from pencilx.ai.config import (
    AVAILABLE_MODELS,
    CODING_MODELS,
    AIConfig,
    ProviderConfig,
    get_ai_config,
    get_recommended_model,
)
from pencilx.ai.exceptions import (
    AIProviderError,
    AllKeysFailed,
    AllProvidersFailed,
    ExhaustedCredential,
    ImageGenerationFailed,
    InvalidKeyConfigError,
    MalformedResponse,
    NoProvidersAvailable,
    NoValidKeysError,
    TransientProviderFailure,
)
from pencilx.ai.fallback import FallbackOrchestrator, build_orchestrator
from pencilx.ai.key_manager import Credential, CredentialStatus, KeyRotationTable
from pencilx.ai.models import (
    ChatMessage,
    CompletionRequest,
    CompletionResponse,
    ImageResult,
)
from pencilx.ai.selector import ResponseSelector, build_selector, score_response
from pencilx.ai.super_mode import SuperModePipeline, SuperModeResult

__all__ = [
    # Config
    "AIConfig",
    "ProviderConfig",
    "AVAILABLE_MODELS",
    "CODING_MODELS",
    "get_ai_config",
    "get_recommended_model",
    # Key rotation
    "Credential",
    "CredentialStatus",
    "KeyRotationTable",
    # Models
    "ChatMessage",
    "CompletionRequest",
    "CompletionResponse",
    "ImageResult",
    # Orchestration
    "FallbackOrchestrator",
    "build_orchestrator",
    "ResponseSelector",
    "build_selector",
    "score_response",
    "SuperModePipeline",
    "SuperModeResult",
    # Exceptions
    "AIProviderError",
    "ExhaustedCredential",
    "TransientProviderFailure",
    "MalformedResponse",
    "NoProvidersAvailable",
    "AllProvidersFailed",
    "AllKeysFailed",
    "ImageGenerationFailed",
    "NoValidKeysError",
    "InvalidKeyConfigError",
]

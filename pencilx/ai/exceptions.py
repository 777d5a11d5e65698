"""
AI Provider Exceptions
Failure taxonomy for provider calls, key rotation and the fallback chain
"""

from typing import List, Optional


class AIProviderError(Exception):
    """Base exception for the AI provider layer"""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        key_name: Optional[str] = None,
    ):
        self.message = message
        self.provider = provider
        self.key_name = key_name
        super().__init__(self.message)


class ExhaustedCredential(AIProviderError):
    """Rate limit or quota signal; the credential should be rotated out"""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        key_name: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, provider=provider, key_name=key_name)
        self.status_code = status_code


class TransientProviderFailure(AIProviderError):
    """Timeout, network error or unexpected status; try the next provider"""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        key_name: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, provider=provider, key_name=key_name)
        self.status_code = status_code
        self.original_error = original_error


class MalformedResponse(TransientProviderFailure):
    """Provider answered 2xx but the payload did not match its schema"""


class NoProvidersAvailable(AIProviderError):
    """Raised before any attempt when every provider is disabled or exhausted"""

    def __init__(self):
        super().__init__("No AI providers available. Please try again later.")


class AllProvidersFailed(AIProviderError):
    """Raised when the whole fallback chain failed"""

    def __init__(self, last_error: Optional[Exception] = None):
        detail = str(last_error) if last_error else "Unknown error"
        super().__init__(f"All AI providers failed. Last error: {detail}")
        self.last_error = last_error


class AllKeysFailed(AIProviderError):
    """Raised when none of the parallel multi-key attempts succeeded"""

    def __init__(self, errors: Optional[List[Exception]] = None):
        self.errors = errors or []
        detail = "; ".join(str(e) for e in self.errors) or "no attempts made"
        super().__init__(f"All API keys failed: {detail}", provider="gemini")


class ImageGenerationFailed(AIProviderError):
    """Raised when every image provider failed"""

    def __init__(self, errors: Optional[List[Exception]] = None):
        self.errors = errors or []
        detail = "; ".join(str(e) for e in self.errors)
        message = "All image generation providers failed"
        super().__init__(f"{message}. {detail}" if detail else message)


class NoValidKeysError(AIProviderError):
    """Raised when a provider is used without any configured key"""

    def __init__(self, provider: str):
        super().__init__(
            f"No valid API keys configured for provider '{provider}'.",
            provider=provider,
        )


class InvalidKeyConfigError(AIProviderError):
    """Raised when an API key list cannot be parsed"""

    def __init__(self, reason: str):
        super().__init__(f"Invalid API key configuration: {reason}")

"""
AI Provider Configuration Module
Centralized configuration for provider endpoints, fallback priorities,
API keys and the LLM7 model catalog.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from pencilx.ai.key_manager import (
    DEFAULT_COOLDOWN_SECONDS,
    Credential,
    parse_credentials,
    parse_legacy_credentials,
)

LLM7 = "llm7"
GEMINI = "gemini"
FAL = "fal"


@dataclass(frozen=True)
class ProviderConfig:
    """Static description of one provider in the fallback chain"""

    name: str
    priority: int  # lower is tried first
    enabled: bool = True
    timeout_seconds: float = 30.0
    max_retries: int = 1


# Upstream ids for the short aliases accepted by the LLM7 gateway
AVAILABLE_MODELS: Dict[str, str] = {
    # GPT
    "gpt-4.1-nano": "gpt-4.1-nano-2025-04-14",
    "gpt-4o-mini": "gpt-4o-mini-2024-07-18",
    "gpt-o4-mini": "gpt-o4-mini-2025-04-16",
    # Mistral
    "mistral-large-2411": "mistral-large-2411",
    "mistral-large-2407": "mistral-large-2407",
    "mistral-medium": "mistral-medium",
    "mistral-small-2503": "mistral-small-2503",
    "mistral-small-3.1-24b": "mistral-small-3.1-24b-instruct-2503",
    "mistral-saba": "mistral-saba-2502",
    "codestral-2501": "codestral-2501",
    "codestral-2405": "codestral-2405",
    "ministral-8b": "ministral-8b-2410",
    "ministral-3b": "ministral-3b-2410",
    "open-mixtral-8x7b": "open-mixtral-8x7b",
    "open-mixtral-8x22b": "open-mixtral-8x22b",
    "open-mistral-nemo": "open-mistral-nemo",
    # Specialized
    "deepseek-r1": "deepseek-r1-0528",
    "qwen2.5-coder": "qwen2.5-coder-32b-instruct",
    "roblox-rp": "roblox-rp",
    "nova-fast": "nova-fast",
    # Multimodal
    "bidara": "bidara",
    "mirexa": "mirexa",
    "rtist": "rtist",
    "pixtral-12b": "pixtral-12b-2409",
    "pixtral-large": "pixtral-large-2411",
}

MODEL_CATEGORIES: Dict[str, List[str]] = {
    "GPT Models": ["gpt-4.1-nano", "gpt-4o-mini", "gpt-o4-mini"],
    "Mistral Large": ["mistral-large-2411", "mistral-large-2407"],
    "Mistral Small": ["mistral-medium", "mistral-small-2503", "mistral-small-3.1-24b"],
    "Coding Models": ["codestral-2501", "codestral-2405", "qwen2.5-coder"],
    "Efficient Models": ["ministral-8b", "ministral-3b", "nova-fast"],
    "Open Source": ["open-mixtral-8x7b", "open-mixtral-8x22b", "open-mistral-nemo"],
    "Specialized": ["deepseek-r1", "roblox-rp", "mistral-saba"],
    "Multimodal": ["bidara", "mirexa", "rtist", "pixtral-12b", "pixtral-large"],
}

CODING_MODELS: List[str] = ["codestral-2501", "qwen2.5-coder", "gpt-4.1-nano"]

# (keywords, model) pairs checked in order
_TASK_ROUTES = [
    (("code", "programming", "debug"), "codestral-2501"),
    (("image", "visual", "art"), "pixtral-large"),
    (("reasoning", "analysis", "complex"), "deepseek-r1"),
    (("fast", "quick"), "nova-fast"),
    (("roleplay", "story"), "roblox-rp"),
]


def resolve_llm7_model(model: str) -> str:
    """Map a catalog alias to its upstream id; unknown ids pass through"""
    return AVAILABLE_MODELS.get(model, model)


def get_model_category(model: str) -> str:
    for category, models in MODEL_CATEGORIES.items():
        if model in models:
            return category
    return "Other"


def get_recommended_model(task: str) -> str:
    """
    Pick a catalog model from a free-text task description.

    Args:
        task: Description such as "debug my python code"

    Returns:
        str: Model alias
    """
    task_lower = task.lower()
    for keywords, model in _TASK_ROUTES:
        if any(keyword in task_lower for keyword in keywords):
            return model
    return "mistral-large-2411"


class AIConfig(BaseModel):
    """
    Central AI provider configuration.
    Every value can be overridden via environment variables.
    """

    model_config = {"protected_namespaces": ()}

    # API keys (format: key1|name1,key2|name2)
    llm7_api_keys: List[Credential] = Field(default_factory=list)
    gemini_api_keys: List[Credential] = Field(default_factory=list)
    fal_api_keys: List[Credential] = Field(default_factory=list)

    # Endpoints
    llm7_base_url: str = "https://api.llm7.io/v1"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    fal_base_url: str = "https://fal.run"

    # Models
    llm7_default_model: str = "gpt-4.1-nano"
    gemini_default_model: str = "gemini-1.5-flash"
    fal_image_model: str = "fal-ai/flux/dev"

    # Timeouts
    llm7_timeout_seconds: float = Field(default=30.0, gt=0)
    gemini_timeout_seconds: float = Field(default=15.0, gt=0)
    fal_timeout_seconds: float = Field(default=60.0, gt=0)
    instant_timeout_seconds: float = Field(default=2.0, gt=0)

    # Rotation
    credential_cooldown_seconds: float = Field(default=DEFAULT_COOLDOWN_SECONDS, ge=0)
    reset_on_total_exhaustion: bool = True

    # Fallback chain
    llm7_enabled: bool = True
    gemini_enabled: bool = True
    llm7_max_retries: int = Field(default=2, ge=0)
    gemini_max_retries: int = Field(default=1, ge=0)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AIConfig":
        """Load configuration from environment variables"""
        env = os.environ if env is None else env

        def keys(list_var: str, legacy_prefix: str, default_prefix: str) -> List[Credential]:
            keys_str = (env.get(list_var) or "").strip()
            if keys_str:
                return parse_credentials(keys_str, default_prefix=default_prefix)
            return parse_legacy_credentials(env, legacy_prefix)

        def flag(name: str, default: str = "true") -> bool:
            return env.get(name, default).lower() == "true"

        return cls(
            llm7_api_keys=keys("LLM7_API_KEYS", "LLM7_API_KEY", "llm7"),
            gemini_api_keys=keys("GEMINI_API_KEYS", "GEMINI_API_KEY", "gemini"),
            fal_api_keys=keys("FAL_KEYS", "FAL_KEY", "fal"),
            llm7_base_url=env.get("LLM7_BASE_URL", "https://api.llm7.io/v1"),
            gemini_base_url=env.get(
                "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
            ),
            fal_base_url=env.get("FAL_BASE_URL", "https://fal.run"),
            llm7_default_model=env.get("LLM7_DEFAULT_MODEL", "gpt-4.1-nano"),
            gemini_default_model=env.get("GEMINI_DEFAULT_MODEL", "gemini-1.5-flash"),
            fal_image_model=env.get("FAL_IMAGE_MODEL", "fal-ai/flux/dev"),
            llm7_timeout_seconds=float(env.get("LLM7_TIMEOUT_SECONDS", "30")),
            gemini_timeout_seconds=float(env.get("GEMINI_TIMEOUT_SECONDS", "15")),
            fal_timeout_seconds=float(env.get("FAL_TIMEOUT_SECONDS", "60")),
            instant_timeout_seconds=float(env.get("INSTANT_TIMEOUT_SECONDS", "2")),
            credential_cooldown_seconds=float(
                env.get("CREDENTIAL_COOLDOWN_SECONDS", str(DEFAULT_COOLDOWN_SECONDS))
            ),
            reset_on_total_exhaustion=flag("RESET_ON_TOTAL_EXHAUSTION"),
            llm7_enabled=flag("LLM7_ENABLED"),
            gemini_enabled=flag("GEMINI_ENABLED"),
            llm7_max_retries=int(env.get("LLM7_MAX_RETRIES", "2")),
            gemini_max_retries=int(env.get("GEMINI_MAX_RETRIES", "1")),
        )

    def credentials(self) -> Dict[str, List[Credential]]:
        """Credential rings keyed by provider name"""
        return {
            LLM7: list(self.llm7_api_keys),
            GEMINI: list(self.gemini_api_keys),
            FAL: list(self.fal_api_keys),
        }

    def completion_providers(self) -> List[ProviderConfig]:
        """Text completion fallback chain"""
        return [
            ProviderConfig(
                name=LLM7,
                priority=1,
                enabled=self.llm7_enabled,
                timeout_seconds=self.llm7_timeout_seconds,
                max_retries=self.llm7_max_retries,
            ),
            ProviderConfig(
                name=GEMINI,
                priority=2,
                enabled=self.gemini_enabled,
                timeout_seconds=self.gemini_timeout_seconds,
                max_retries=self.gemini_max_retries,
            ),
        ]


@lru_cache()
def get_ai_config() -> AIConfig:
    """
    Get cached AI configuration instance.
    Configuration is loaded once and cached for performance.
    """
    return AIConfig.from_env()

"""
Gemini Client
REST generateContent calls with per-request API keys
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from pencilx.ai.clients.base import ProviderClient
from pencilx.ai.config import GEMINI
from pencilx.ai.key_manager import Credential
from pencilx.ai.models import CompletionRequest, CompletionResponse


class _Part(BaseModel):
    text: str


class _Content(BaseModel):
    parts: List[_Part] = Field(min_length=1)


class _Candidate(BaseModel):
    content: _Content


class _UsageMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_token_count: Optional[int] = Field(default=None, alias="totalTokenCount")


class GeminiGenerateResponse(BaseModel):
    """Subset of the generateContent schema we rely on"""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    candidates: List[_Candidate] = Field(min_length=1)
    usage_metadata: Optional[_UsageMetadata] = Field(default=None, alias="usageMetadata")
    model_version: Optional[str] = Field(default=None, alias="modelVersion")


class GeminiClient(ProviderClient):
    name = GEMINI
    default_confidence = 0.8

    # Sampling defaults for general completions
    temperature = 0.7
    max_output_tokens = 2000
    top_p = 0.95
    top_k = 40

    def __init__(self, *args, default_model: str = "gemini-1.5-flash", **kwargs):
        super().__init__(*args, **kwargs)
        self.default_model = default_model

    def resolve_model(self, model: Optional[str]) -> str:
        """Catalog ids of other vendors fall back to the configured Gemini model"""
        if model and model.startswith("gemini-"):
            return model
        return self.default_model

    def build_request(
        self, request: CompletionRequest, credential: Credential
    ) -> Dict[str, Any]:
        model = self.resolve_model(request.model)

        contents = []
        system_parts = []
        for message in request.messages:
            if message.role == "system":
                system_parts.append({"text": message.content})
                continue
            role = "model" if message.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": message.content}]})

        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": (
                    request.temperature
                    if request.temperature is not None
                    else self.temperature
                ),
                "maxOutputTokens": request.max_tokens or self.max_output_tokens,
                "topP": self.top_p,
                "topK": self.top_k,
            },
        }
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}

        return {
            "url": f"{self.base_url}/models/{model}:generateContent",
            "params": {"key": credential.value},
            "headers": {"Content-Type": "application/json"},
            "json": body,
        }

    def decode(self, payload: Any, request: CompletionRequest) -> CompletionResponse:
        data = GeminiGenerateResponse.model_validate(payload)
        usage = data.usage_metadata
        return CompletionResponse(
            content=data.candidates[0].content.parts[0].text,
            provider=self.name,
            model=data.model_version or self.resolve_model(request.model),
            processing_time_ms=0.0,
            tokens=usage.total_token_count if usage else None,
        )


class GeminiInstantClient(GeminiClient):
    """Short, low-temperature answers for instant mode"""

    temperature = 0.3
    max_output_tokens = 150
    top_p = 0.8
    top_k = 10

"""
LLM7 Client
OpenAI-compatible chat completions against the LLM7 gateway
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from pencilx.ai.clients.base import ProviderClient
from pencilx.ai.config import LLM7, resolve_llm7_model
from pencilx.ai.exceptions import MalformedResponse
from pencilx.ai.key_manager import Credential
from pencilx.ai.models import (
    ChatMessage,
    CompletionRequest,
    CompletionResponse,
    ImageResult,
)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
IMAGE_MODEL = "rtist"

_URL_PATTERN = re.compile(r"https?://[^\s)\]\"'>]+")


class _Message(BaseModel):
    content: str


class _Choice(BaseModel):
    message: _Message


class _Usage(BaseModel):
    total_tokens: Optional[int] = None


class LLM7ChatResponse(BaseModel):
    """Subset of the OpenAI chat completion schema we rely on"""

    choices: List[_Choice] = Field(min_length=1)
    usage: Optional[_Usage] = None
    model: Optional[str] = None


class LLM7Client(ProviderClient):
    name = LLM7
    default_confidence = 0.9

    def __init__(self, *args, default_model: str = "gpt-4.1-nano", **kwargs):
        super().__init__(*args, **kwargs)
        self.default_model = default_model

    def build_request(
        self, request: CompletionRequest, credential: Credential
    ) -> Dict[str, Any]:
        model = resolve_llm7_model(request.model or self.default_model)
        return {
            "url": f"{self.base_url}/chat/completions",
            "headers": {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {credential.value}",
            },
            "json": {
                "model": model,
                "messages": [m.model_dump() for m in request.messages],
                "stream": False,
                "temperature": (
                    request.temperature
                    if request.temperature is not None
                    else DEFAULT_TEMPERATURE
                ),
                "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            },
        }

    def decode(self, payload: Any, request: CompletionRequest) -> CompletionResponse:
        data = LLM7ChatResponse.model_validate(payload)
        return CompletionResponse(
            content=data.choices[0].message.content,
            provider=self.name,
            model=data.model or resolve_llm7_model(request.model or self.default_model),
            processing_time_ms=0.0,
            tokens=data.usage.total_tokens if data.usage else None,
        )

    async def generate_image(
        self,
        prompt: str,
        width: int = 512,
        height: int = 512,
        credential: Optional[Credential] = None,
    ) -> ImageResult:
        """Ask the multimodal model for an image and pull the URL out of the reply"""
        request = CompletionRequest(
            model=IMAGE_MODEL,
            messages=[
                ChatMessage(
                    role="system",
                    content="You are an expert image generator. Create detailed, "
                    "high-quality images based on the user's prompt. Reply with the "
                    "image URL.",
                ),
                ChatMessage(
                    role="user",
                    content=f"Generate an image: {prompt}. Dimensions: {width}x{height}",
                ),
            ],
        )
        credential = credential or self.key_table.current(self.name)
        response = await self.call(request, credential=credential)

        match = _URL_PATTERN.search(response.content)
        if not match:
            raise MalformedResponse(
                f"{self.name} image reply contained no URL",
                provider=self.name,
                key_name=credential.name,
            )
        return ImageResult(
            url=match.group(0).rstrip(".,"),
            model=IMAGE_MODEL,
            provider=self.name,
            prompt=prompt,
            width=width,
            height=height,
        )

"""
AI Request/Response Models
Provider-independent shapes passed between clients, orchestrator and routes
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    role: Role
    content: str


class CompletionRequest(BaseModel):
    """Ordered messages plus the target model and per-call options"""

    messages: List[ChatMessage]
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)

    @property
    def last_user_content(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content
        return self.messages[-1].content if self.messages else ""


class CompletionResponse(BaseModel):
    content: str
    provider: str
    model: str
    processing_time_ms: float
    tokens: Optional[int] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    alternatives: List[str] = Field(default_factory=list)


class ImageResult(BaseModel):
    url: str
    model: str
    provider: str
    prompt: str
    width: int
    height: int

"""
Super Mode Pipeline
Analysis, primary answer, alternative perspective and synthesis, each run
through the fallback chain.
"""

import json
import re
import time
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from pencilx.ai.fallback import FallbackOrchestrator
from pencilx.ai.models import ChatMessage
from pencilx.utils.logger import get_logger
from pencilx.utils.logging_config import log_error_with_context

logger = get_logger(__name__)

ANALYSIS_MODEL = "mistral-large-2411"
TEXT_MODEL = "gpt-4.1-nano"

ResultType = Literal["code", "image", "text"]

ANALYSIS_PROMPT = """You are an expert AI analyst. Analyze this prompt and determine the best approach.

Respond with a JSON object containing:
{
  "type": "code|image|text",
  "complexity": "simple|moderate|complex",
  "reasoning": "detailed explanation of your analysis",
  "enhanced_prompt": "improved version optimized for the determined type",
  "confidence": 0.95
}"""

SYNTHESIS_PROMPT = """You are an expert synthesizer. Combine these AI responses into one comprehensive, well-structured answer that incorporates the best insights from each.

For code responses: Provide the best implementation with explanations.
For text responses: Create a thorough, well-organized response that addresses all aspects."""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class ProcessingStep(BaseModel):
    step: int
    description: str
    model: str
    duration_ms: float = 0.0
    status: Literal["processing", "completed", "failed"] = "processing"


class ModelUsage(BaseModel):
    model: str
    purpose: str
    tokens: int = 0
    confidence: float = Field(ge=0.0, le=1.0)


class PromptAnalysis(BaseModel):
    type: ResultType = "text"
    complexity: str = "moderate"
    reasoning: str = "Default analysis due to parsing error"
    enhanced_prompt: str = ""
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)


class SuperModeResult(BaseModel):
    type: ResultType
    content: str
    reasoning: str
    processing_steps: List[ProcessingStep]
    model_usage: List[ModelUsage]
    confidence: float = Field(ge=0.0, le=1.0)
    alternatives: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None


def parse_analysis(raw: str, prompt: str) -> PromptAnalysis:
    """Lenient parse of the analyst's JSON; falls back to a text analysis"""
    match = _JSON_OBJECT.search(raw)
    if match:
        try:
            data: Dict[str, Any] = json.loads(match.group(0))
            analysis = PromptAnalysis.model_validate(data)
            if not analysis.enhanced_prompt:
                analysis.enhanced_prompt = prompt
            return analysis
        except ValueError as e:
            logger.warning(f"Could not parse prompt analysis: {e}")
    return PromptAnalysis(enhanced_prompt=prompt)


class SuperModePipeline:
    def __init__(self, orchestrator: FallbackOrchestrator):
        self.orchestrator = orchestrator

    async def run(self, prompt: str) -> SuperModeResult:
        steps: List[ProcessingStep] = []
        usage: List[ModelUsage] = []

        try:
            return await self._run(prompt, steps, usage)
        except Exception as e:
            for step in steps:
                if step.status == "processing":
                    step.status = "failed"
            log_error_with_context(
                logger,
                e,
                {
                    "pipeline": "super_mode",
                    "steps_completed": sum(1 for s in steps if s.status == "completed"),
                },
            )
            raise

    async def _timed(self, steps: List[ProcessingStep], description: str, model: str, coro):
        step = ProcessingStep(step=len(steps) + 1, description=description, model=model)
        steps.append(step)
        start_time = time.perf_counter()
        result = await coro
        step.duration_ms = (time.perf_counter() - start_time) * 1000
        step.status = "completed"
        return result

    async def _run(
        self, prompt: str, steps: List[ProcessingStep], usage: List[ModelUsage]
    ) -> SuperModeResult:
        # 1. analysis
        analysis_response = await self._timed(
            steps,
            "Analyzing prompt and determining optimal approach",
            ANALYSIS_MODEL,
            self.orchestrator.complete(
                [
                    ChatMessage(role="system", content=ANALYSIS_PROMPT),
                    ChatMessage(role="user", content=prompt),
                ],
                model=ANALYSIS_MODEL,
            ),
        )
        analysis = parse_analysis(analysis_response.content, prompt)
        usage.append(
            ModelUsage(
                model=analysis_response.model,
                purpose="Prompt Analysis",
                tokens=analysis_response.tokens or 0,
                confidence=analysis.confidence,
            )
        )

        # 2. primary
        if analysis.type == "image":
            image = await self._timed(
                steps,
                "Generating primary image response",
                "image",
                self.orchestrator.generate_image(analysis.enhanced_prompt),
            )
            return SuperModeResult(
                type="image",
                content=f'I\'ve created an enhanced image for: "{prompt}"',
                reasoning=analysis.reasoning,
                processing_steps=steps,
                model_usage=usage,
                confidence=analysis.confidence,
                image_url=image.url,
            )

        if analysis.type == "code":
            primary_call = self.orchestrator.generate_code(analysis.enhanced_prompt)
        else:
            primary_call = self.orchestrator.complete(
                [
                    ChatMessage(
                        role="system",
                        content="You are a helpful AI assistant. Provide a comprehensive, detailed response.",
                    ),
                    ChatMessage(role="user", content=analysis.enhanced_prompt),
                ],
                model=TEXT_MODEL,
            )
        primary = await self._timed(
            steps,
            f"Generating primary {analysis.type} response",
            "codestral-2501" if analysis.type == "code" else TEXT_MODEL,
            primary_call,
        )
        usage.append(
            ModelUsage(
                model=primary.model,
                purpose="Primary Response",
                tokens=primary.tokens or 0,
                confidence=primary.confidence or 0.8,
            )
        )

        # 3. alternative perspective
        alt_model = TEXT_MODEL if analysis.type == "code" else ANALYSIS_MODEL
        if analysis.type == "code":
            alt_messages = [
                ChatMessage(
                    role="system",
                    content="You are a senior code reviewer. Provide an alternative implementation approach and review the solution for best practices.",
                ),
                ChatMessage(
                    role="user",
                    content=f"Review and provide an alternative to this code solution for: "
                    f"{analysis.enhanced_prompt}\n\nOriginal solution: {primary.content}",
                ),
            ]
        else:
            alt_messages = [
                ChatMessage(
                    role="system",
                    content="You are a critical thinking expert. Provide an alternative perspective and additional insights on this topic.",
                ),
                ChatMessage(
                    role="user",
                    content=f"Provide alternative insights for: {analysis.enhanced_prompt}",
                ),
            ]
        alternative = await self._timed(
            steps,
            "Generating alternative perspective",
            alt_model,
            self.orchestrator.complete(alt_messages, model=alt_model),
        )
        usage.append(
            ModelUsage(
                model=alternative.model,
                purpose="Alternative Perspective",
                tokens=alternative.tokens or 0,
                confidence=0.85,
            )
        )

        # 4. synthesis
        synthesis = await self._timed(
            steps,
            "Synthesizing enhanced final response",
            ANALYSIS_MODEL,
            self.orchestrator.complete(
                [
                    ChatMessage(role="system", content=SYNTHESIS_PROMPT),
                    ChatMessage(
                        role="user",
                        content=f"Original prompt: {prompt}\n\n"
                        f"Analysis: {analysis.reasoning}\n\n"
                        f"Primary response: {primary.content}\n\n"
                        f"Alternative perspective: {alternative.content}\n\n"
                        "Please synthesize these into one enhanced response.",
                    ),
                ],
                model=ANALYSIS_MODEL,
            ),
        )
        usage.append(
            ModelUsage(
                model=synthesis.model,
                purpose="Response Synthesis",
                tokens=synthesis.tokens or 0,
                confidence=0.9,
            )
        )

        return SuperModeResult(
            type=analysis.type,
            content=synthesis.content,
            reasoning=analysis.reasoning,
            processing_steps=steps,
            model_usage=usage,
            confidence=sum(u.confidence for u in usage) / len(usage),
            alternatives=[alternative.content],
        )

"""
Super mode: analysis parsing and the four-step pipeline.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from pencilx.ai.exceptions import AllProvidersFailed
from pencilx.ai.models import ImageResult
from pencilx.ai.super_mode import SuperModePipeline, parse_analysis
from tests.helpers import make_response


def analysis_json(kind, enhanced="improved prompt", confidence=0.9):
    return "Sure! " + json.dumps(
        {
            "type": kind,
            "complexity": "moderate",
            "reasoning": f"looks like {kind}",
            "enhanced_prompt": enhanced,
            "confidence": confidence,
        }
    )


def fake_orchestrator(analysis_reply, text_replies=("primary text",)):
    """Orchestrator double answering by target model"""
    replies = {
        "mistral-large-2411": [analysis_reply, "alternative view", "final synthesis"],
        "gpt-4.1-nano": list(text_replies),
    }

    async def complete(messages, model=None, **kwargs):
        return make_response(replies[model].pop(0), model=model)

    orchestrator = MagicMock()
    orchestrator.complete = AsyncMock(side_effect=complete)
    orchestrator.generate_code = AsyncMock(
        return_value=make_response("print('hi')", model="codestral-2501")
    )
    orchestrator.generate_image = AsyncMock(
        return_value=ImageResult(
            url="https://img.test/a.jpg",
            model="fal-ai/flux/dev",
            provider="fal",
            prompt="improved prompt",
            width=512,
            height=512,
        )
    )
    return orchestrator


# ============================================================================
# ANALYSIS PARSING
# ============================================================================


@pytest.mark.unit
def test_parse_analysis_extracts_embedded_json():
    analysis = parse_analysis(analysis_json("code", confidence=0.95), "write fizzbuzz")

    assert analysis.type == "code"
    assert analysis.enhanced_prompt == "improved prompt"
    assert analysis.confidence == 0.95


@pytest.mark.unit
def test_parse_analysis_defaults_enhanced_prompt():
    analysis = parse_analysis('{"type": "text"}', "tell me a story")

    assert analysis.enhanced_prompt == "tell me a story"


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw",
    ["no json here", "{not valid json}", '{"type": "video"}', '{"confidence": 7}'],
)
def test_parse_analysis_falls_back_to_text(raw):
    analysis = parse_analysis(raw, "prompt")

    assert analysis.type == "text"
    assert analysis.confidence == 0.7
    assert analysis.enhanced_prompt == "prompt"


# ============================================================================
# PIPELINE
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_text_pipeline_runs_four_steps():
    orchestrator = fake_orchestrator(analysis_json("text"))

    result = await SuperModePipeline(orchestrator).run("why is the sky blue")

    assert result.type == "text"
    assert result.content == "final synthesis"
    assert result.reasoning == "looks like text"
    assert result.alternatives == ["alternative view"]
    assert [s.step for s in result.processing_steps] == [1, 2, 3, 4]
    assert all(s.status == "completed" for s in result.processing_steps)
    assert [u.purpose for u in result.model_usage] == [
        "Prompt Analysis",
        "Primary Response",
        "Alternative Perspective",
        "Response Synthesis",
    ]
    assert 0.0 <= result.confidence <= 1.0
    orchestrator.generate_code.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_code_pipeline_uses_code_generation():
    orchestrator = fake_orchestrator(analysis_json("code"), text_replies=["code review"])

    result = await SuperModePipeline(orchestrator).run("write fizzbuzz")

    assert result.type == "code"
    orchestrator.generate_code.assert_awaited_once_with("improved prompt")
    assert result.alternatives == ["code review"]
    review_call = orchestrator.complete.await_args_list[1]
    assert "print('hi')" in review_call.args[0][1].content


@pytest.mark.unit
@pytest.mark.asyncio
async def test_image_pipeline_returns_early():
    orchestrator = fake_orchestrator(analysis_json("image"))

    result = await SuperModePipeline(orchestrator).run("draw a fox")

    assert result.type == "image"
    assert result.image_url == "https://img.test/a.jpg"
    assert len(result.processing_steps) == 2
    orchestrator.generate_image.assert_awaited_once_with("improved prompt")
    assert orchestrator.complete.await_count == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failure_marks_running_step_and_propagates():
    orchestrator = fake_orchestrator(analysis_json("code"))
    orchestrator.generate_code.side_effect = AllProvidersFailed(None)
    pipeline = SuperModePipeline(orchestrator)

    with pytest.raises(AllProvidersFailed):
        await pipeline.run("write fizzbuzz")

"""
Vendor clients: request shapes, decoding and failure classification.
"""

import asyncio
import json

import httpx
import pytest

from pencilx.ai.clients import (
    FalClient,
    GeminiClient,
    GeminiInstantClient,
    HTTPProviderClient,
    LLM7Client,
    ProviderClient,
    is_exhaustion_signal,
)
from pencilx.ai.exceptions import (
    AIProviderError,
    ExhaustedCredential,
    MalformedResponse,
    TransientProviderFailure,
)
from pencilx.ai.models import ChatMessage, CompletionRequest
from tests.helpers import json_response, make_table, mock_http

LLM7_URL = "https://llm7.test/v1"
GEMINI_URL = "https://gemini.test/v1beta"
FAL_URL = "https://fal.test"


def chat_payload(content, model="gpt-4.1-nano-2025-04-14"):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": 12},
        "model": model,
    }


def gemini_payload(text):
    return {
        "candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}],
        "usageMetadata": {"totalTokenCount": 7},
        "modelVersion": "gemini-1.5-flash-002",
    }


def user_request(content="hi", **kwargs):
    return CompletionRequest(messages=[ChatMessage(role="user", content=content)], **kwargs)


def llm7_client(handler, keys=1):
    table = make_table(llm7=keys)
    return LLM7Client(table, LLM7_URL, http_client=mock_http(handler)), table


# ============================================================================
# CLASSIFICATION
# ============================================================================


@pytest.mark.unit
@pytest.mark.parametrize(
    "status,body,expected",
    [
        (429, "", True),
        (402, "payment required", True),
        (403, "forbidden", True),
        (400, "Quota exceeded for this project", True),
        (500, "rate LIMIT reached", True),
        (500, "internal error", False),
        (404, "not found", False),
    ],
)
def test_exhaustion_signal(status, body, expected):
    assert is_exhaustion_signal(status, body) is expected


# ============================================================================
# LLM7
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_success_builds_openai_request():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return json_response(200, chat_payload("hello"))

    client, _ = llm7_client(handler)
    response = await client.call(user_request("hi"))

    assert seen["url"] == f"{LLM7_URL}/chat/completions"
    assert seen["auth"] == "Bearer llm7-secret-0"
    assert seen["body"]["model"] == "gpt-4.1-nano-2025-04-14"
    assert seen["body"]["stream"] is False
    assert seen["body"]["temperature"] == 0.7
    assert seen["body"]["max_tokens"] == 2000
    assert seen["body"]["messages"] == [{"role": "user", "content": "hi"}]

    assert response.content == "hello"
    assert response.provider == "llm7"
    assert response.tokens == 12
    assert response.confidence == 0.9
    assert response.processing_time_ms >= 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_uses_explicit_credential_and_options():
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return json_response(200, chat_payload("ok"))

    client, table = llm7_client(handler, keys=2)
    second = table.credentials("llm7")[1]

    await client.call(
        user_request(model="codestral-2501", temperature=0.0, max_tokens=50),
        credential=second,
    )

    assert seen["auth"] == "Bearer llm7-secret-1"
    assert seen["body"]["model"] == "codestral-2501"
    assert seen["body"]["temperature"] == 0.0
    assert seen["body"]["max_tokens"] == 50


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_429_is_exhaustion():
    client, _ = llm7_client(lambda request: httpx.Response(429, text="slow down"))

    with pytest.raises(ExhaustedCredential) as exc_info:
        await client.call(user_request())

    assert exc_info.value.status_code == 429
    assert exc_info.value.provider == "llm7"
    assert exc_info.value.key_name == "llm7_0"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_quota_body_is_exhaustion():
    client, _ = llm7_client(
        lambda request: json_response(400, {"error": "Daily quota exceeded"})
    )

    with pytest.raises(ExhaustedCredential):
        await client.call(user_request())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_server_error_is_transient():
    client, _ = llm7_client(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(TransientProviderFailure) as exc_info:
        await client.call(user_request())

    assert not isinstance(exc_info.value, ExhaustedCredential)
    assert exc_info.value.status_code == 500
    assert "boom" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_missing_choices_is_malformed():
    client, _ = llm7_client(lambda request: json_response(200, {}))

    with pytest.raises(MalformedResponse):
        await client.call(user_request())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_empty_choices_is_malformed():
    client, _ = llm7_client(lambda request: json_response(200, {"choices": []}))

    with pytest.raises(MalformedResponse):
        await client.call(user_request())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_json_body_is_malformed():
    client, _ = llm7_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(MalformedResponse):
        await client.call(user_request())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_network_error_is_transient():
    def handler(request: httpx.Request):
        raise httpx.ReadTimeout("read timed out", request=request)

    client, _ = llm7_client(handler)

    with pytest.raises(TransientProviderFailure) as exc_info:
        await client.call(user_request())

    assert isinstance(exc_info.value.original_error, httpx.ReadTimeout)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hard_timeout_is_transient():
    async def handler(request: httpx.Request):
        await asyncio.sleep(1)
        return json_response(200, chat_payload("too late"))

    client, _ = llm7_client(handler)

    with pytest.raises(TransientProviderFailure) as exc_info:
        await client.call(user_request(), timeout=0.01)

    assert "timed out" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_image_extracts_url():
    seen = {}

    def handler(request: httpx.Request):
        seen["body"] = json.loads(request.content)
        return json_response(
            200, chat_payload("Here it is: https://img.test/cat.png. Enjoy!", model="rtist")
        )

    client, _ = llm7_client(handler)
    image = await client.generate_image("a cat", width=256, height=256)

    assert seen["body"]["model"] == "rtist"
    assert "256x256" in seen["body"]["messages"][1]["content"]
    assert image.url == "https://img.test/cat.png"
    assert image.provider == "llm7"
    assert image.width == 256


@pytest.mark.unit
@pytest.mark.asyncio
async def test_llm7_image_without_url_is_malformed():
    client, _ = llm7_client(lambda request: json_response(200, chat_payload("I cannot draw")))

    with pytest.raises(MalformedResponse):
        await client.generate_image("a cat")


# ============================================================================
# GEMINI
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_gemini_request_shape_and_decode():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = request.url
        seen["body"] = json.loads(request.content)
        return json_response(200, gemini_payload("bonjour"))

    table = make_table(gemini=2)
    client = GeminiClient(table, GEMINI_URL, http_client=mock_http(handler))
    request = CompletionRequest(
        messages=[
            ChatMessage(role="system", content="be brief"),
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello"),
            ChatMessage(role="user", content="translate"),
        ]
    )

    response = await client.call(request)

    assert seen["url"].path == "/v1beta/models/gemini-1.5-flash:generateContent"
    assert seen["url"].params["key"] == "gemini-secret-0"
    body = seen["body"]
    assert body["systemInstruction"] == {"parts": [{"text": "be brief"}]}
    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
    assert body["generationConfig"] == {
        "temperature": 0.7,
        "maxOutputTokens": 2000,
        "topP": 0.95,
        "topK": 40,
    }

    assert response.content == "bonjour"
    assert response.provider == "gemini"
    assert response.model == "gemini-1.5-flash-002"
    assert response.tokens == 7
    assert response.confidence == 0.8


@pytest.mark.unit
def test_gemini_model_resolution():
    client = GeminiClient(make_table(gemini=1), GEMINI_URL, default_model="gemini-1.5-pro")

    assert client.resolve_model("gemini-2.0-flash") == "gemini-2.0-flash"
    assert client.resolve_model("gpt-4.1-nano") == "gemini-1.5-pro"
    assert client.resolve_model(None) == "gemini-1.5-pro"


@pytest.mark.unit
def test_instant_client_sampling():
    table = make_table(gemini=1)
    client = GeminiInstantClient(table, GEMINI_URL)

    kwargs = client.build_request(user_request("2+2?"), table.current("gemini"))

    assert kwargs["json"]["generationConfig"] == {
        "temperature": 0.3,
        "maxOutputTokens": 150,
        "topP": 0.8,
        "topK": 10,
    }
    assert "systemInstruction" not in kwargs["json"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_gemini_empty_candidates_is_malformed():
    table = make_table(gemini=1)
    client = GeminiClient(
        table,
        GEMINI_URL,
        http_client=mock_http(lambda request: json_response(200, {"candidates": []})),
    )

    with pytest.raises(MalformedResponse):
        await client.call(user_request())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_gemini_resource_exhausted():
    table = make_table(gemini=1)
    client = GeminiClient(
        table,
        GEMINI_URL,
        http_client=mock_http(
            lambda request: json_response(429, {"error": {"status": "RESOURCE_EXHAUSTED"}})
        ),
    )

    with pytest.raises(ExhaustedCredential) as exc_info:
        await client.call(user_request())

    assert exc_info.value.provider == "gemini"


# ============================================================================
# FAL
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fal_generates_image():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return json_response(
            200, {"images": [{"url": "https://fal.test/out.jpg", "width": 512, "height": 512}]}
        )

    client = FalClient(make_table(fal=1), FAL_URL, http_client=mock_http(handler))
    image = await client.generate_image("a lighthouse")

    assert seen["url"] == f"{FAL_URL}/fal-ai/flux/dev"
    assert seen["auth"] == "Key fal-secret-0"
    assert seen["body"]["image_size"] == {"width": 512, "height": 512}
    assert seen["body"]["num_inference_steps"] == 28
    assert seen["body"]["enable_safety_checker"] is True
    assert image.url == "https://fal.test/out.jpg"
    assert image.provider == "fal"
    assert image.model == "fal-ai/flux/dev"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fal_without_images_is_malformed():
    client = FalClient(
        make_table(fal=1),
        FAL_URL,
        http_client=mock_http(lambda request: json_response(200, {"images": []})),
    )

    with pytest.raises(MalformedResponse):
        await client.generate_image("a lighthouse")


@pytest.mark.unit
def test_fal_is_not_a_completion_client():
    client = FalClient(make_table(fal=1), FAL_URL)

    assert isinstance(client, HTTPProviderClient)
    assert not isinstance(client, ProviderClient)
    assert not hasattr(client, "call")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fal_quota_is_exhaustion():
    client = FalClient(
        make_table(fal=1),
        FAL_URL,
        http_client=mock_http(
            lambda request: json_response(403, {"detail": "User is locked. Exhausted balance."})
        ),
    )

    with pytest.raises(ExhaustedCredential) as exc_info:
        await client.generate_image("a lighthouse")

    assert isinstance(exc_info.value, AIProviderError)
    assert exc_info.value.provider == "fal"
    assert exc_info.value.key_name == "fal_0"

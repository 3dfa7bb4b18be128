"""Tests for the OpenAI-compatible adapters (OpenRouter, A4F).

HTTP is served by httpx.MockTransport; no network access.
"""

import json

import httpx
import pytest

from chatforge.config import ProviderFamily
from chatforge.core.credentials import Credential
from chatforge.core.providers import (
    A4FAdapter,
    AuthenticationError,
    ContentPart,
    ContentPolicyError,
    FailureKind,
    OpenRouterAdapter,
    ProviderError,
    ProviderRequest,
    ProviderTimeoutError,
    QuotaExhaustedError,
    RateLimitError,
)


def _adapter(handler, cls=OpenRouterAdapter, family=ProviderFamily.OPENROUTER):
    credential = Credential(1, family, "sk-test")
    return cls(credential, timeout=5, transport=httpx.MockTransport(handler))


def _chat_ok(content="Hello there"):
    return httpx.Response(
        200,
        json={
            "choices": [{"message": {"content": content}}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 3},
        },
    )


@pytest.mark.fast
class TestOpenRouterComplete:
    @pytest.mark.asyncio
    async def test_complete_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return _chat_ok()

        adapter = _adapter(handler)
        response = await adapter.complete("qwen/qwen3-4b:free", ProviderRequest(prompt="hi"))

        assert response.content == "Hello there"
        assert response.family == ProviderFamily.OPENROUTER
        assert response.usage == {"input_tokens": 12, "output_tokens": 3}
        assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "qwen/qwen3-4b:free"
        assert seen["body"]["max_tokens"] == 2048
        assert seen["body"]["temperature"] == 0.7
        await adapter.close()

    @pytest.mark.asyncio
    async def test_analyze_sends_image_parts(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return _chat_ok("A red square")

        adapter = _adapter(handler)
        request = ProviderRequest(
            prompt="What is this?",
            parts=[
                ContentPart.from_image("aGVsbG8=", "image/png"),
                ContentPart.from_image("https://example.com/cat.jpg"),
            ],
        )
        response = await adapter.analyze("openai/gpt-4o", request)

        content = seen["body"]["messages"][0]["content"]
        assert response.content == "A red square"
        assert content[0] == {"type": "text", "text": "What is this?"}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,aGVsbG8="
        assert content[2]["image_url"]["url"] == "https://example.com/cat.jpg"

    @pytest.mark.asyncio
    async def test_empty_content_is_server_error(self):
        adapter = _adapter(lambda request: _chat_ok("   "))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete("m", ProviderRequest(prompt="hi"))
        assert exc_info.value.kind == FailureKind.SERVER


@pytest.mark.fast
class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,body,error_cls",
        [
            (401, {"error": {"message": "No auth credentials found"}}, AuthenticationError),
            (429, {"error": {"message": "Too many requests"}}, RateLimitError),
            (429, {"error": {"message": "You exceeded your current quota"}}, QuotaExhaustedError),
            (402, {"error": {"message": "Insufficient credits"}}, QuotaExhaustedError),
            (400, {"error": {"message": "Flagged by content policy"}}, ContentPolicyError),
        ],
    )
    async def test_status_mapping(self, status, body, error_cls):
        adapter = _adapter(lambda request: httpx.Response(status, json=body))
        with pytest.raises(error_cls):
            await adapter.complete("m", ProviderRequest(prompt="hi"))

    @pytest.mark.asyncio
    async def test_model_not_found(self):
        adapter = _adapter(lambda request: httpx.Response(404, json={"error": {"message": "No endpoints found"}}))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete("nope/model", ProviderRequest(prompt="hi"))
        assert exc_info.value.kind == FailureKind.MODEL_UNAVAILABLE
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        adapter = _adapter(handler)
        with pytest.raises(ProviderTimeoutError):
            await adapter.complete("m", ProviderRequest(prompt="hi"))

    @pytest.mark.asyncio
    async def test_connection_error_is_server(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        adapter = _adapter(handler)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete("m", ProviderRequest(prompt="hi"))
        assert exc_info.value.kind == FailureKind.SERVER

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        adapter = _adapter(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete("m", ProviderRequest(prompt="hi"))
        assert exc_info.value.kind == FailureKind.SERVER


@pytest.mark.fast
class TestA4FImages:
    @pytest.mark.asyncio
    async def test_image_url(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"url": "https://cdn.a4f.co/img.png"}]})

        adapter = _adapter(handler, cls=A4FAdapter, family=ProviderFamily.A4F)
        response = await adapter.generate_image(
            "provider-4/flux-schnell", ProviderRequest(prompt="a lighthouse", size="1024x1024")
        )

        assert seen["url"] == "https://api.a4f.co/v1/images/generations"
        assert seen["body"] == {
            "model": "provider-4/flux-schnell",
            "prompt": "a lighthouse",
            "n": 1,
            "size": "1024x1024",
            "response_format": "url",
        }
        assert response.content_type == "image_url"
        assert response.content == "https://cdn.a4f.co/img.png"

    @pytest.mark.asyncio
    async def test_image_base64(self):
        adapter = _adapter(
            lambda request: httpx.Response(200, json={"data": [{"b64_json": "aGVsbG8="}]}),
            cls=A4FAdapter,
            family=ProviderFamily.A4F,
        )
        response = await adapter.generate_image("provider-5/dall-e-2", ProviderRequest(prompt="x"))
        assert response.content_type == "image_base64"
        assert response.content == "aGVsbG8="

    @pytest.mark.asyncio
    async def test_no_image(self):
        adapter = _adapter(
            lambda request: httpx.Response(200, json={"data": []}),
            cls=A4FAdapter,
            family=ProviderFamily.A4F,
        )
        with pytest.raises(ProviderError, match="No image generated"):
            await adapter.generate_image("provider-4/imagen-4", ProviderRequest(prompt="x"))

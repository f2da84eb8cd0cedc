import asyncio
import json

import pytest
from aiohttp import web
from aiohttp import test_utils

from code_review_backend.services.errors import ModelError, ModelErrorCode
from code_review_backend.services.llm_service import LLMService, classify_status

MESSAGES = [{"role": "user", "content": "Review this diff"}]


def _sse(payload) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode()


def _openai_chunk(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}, "finish_reason": None}]}


async def _stream_from(handler, provider_config: dict | None = None) -> tuple[list[str], list[dict]]:
    received_payloads: list[dict] = []

    async def capture(request: web.Request):
        received_payloads.append(await request.json())
        return await handler(request)

    app = web.Application()
    app.router.add_post("/v1/chat/completions", capture)
    async with test_utils.TestServer(app) as server:
        config = {
            "provider": "vllm",
            "vllm": {"endpoint": str(server.make_url("/")), "model": "test-model", **(provider_config or {})},
        }
        service = LLMService(config)
        chunks = [chunk async for chunk in service.stream_chat(MESSAGES)]
    return chunks, received_payloads


def test_vllm_stream_yields_deltas_in_order():
    async def handler(request):
        response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await response.prepare(request)
        await response.write(_sse({"choices": [{"delta": {"role": "assistant"}}]}))
        for text in ("Looks ", "good", "!"):
            await response.write(_sse(_openai_chunk(text)))
        await response.write(b"data: [DONE]\n\n")
        return response

    chunks, payloads = asyncio.run(_stream_from(handler))

    assert chunks == ["Looks ", "good", "!"]
    assert payloads[0]["stream"] is True
    assert payloads[0]["model"] == "test-model"
    assert payloads[0]["messages"] == MESSAGES


def test_rate_limit_is_classified_as_quota():
    async def handler(request):
        return web.json_response({"error": {"message": "Rate limit reached"}}, status=429)

    with pytest.raises(ModelError) as excinfo:
        asyncio.run(_stream_from(handler))

    assert excinfo.value.code is ModelErrorCode.QUOTA_EXCEEDED
    assert "Rate limit reached" in excinfo.value.message


def test_content_filter_finish_is_blocked():
    async def handler(request):
        response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await response.prepare(request)
        await response.write(_sse(_openai_chunk("Partial")))
        await response.write(_sse({"choices": [{"delta": {}, "finish_reason": "content_filter"}]}))
        return response

    with pytest.raises(ModelError) as excinfo:
        asyncio.run(_stream_from(handler))

    assert excinfo.value.code is ModelErrorCode.BLOCKED


def test_unreachable_endpoint_is_transient():
    config = {"provider": "vllm", "vllm": {"endpoint": "http://127.0.0.1:9", "model": "m"}}

    async def run():
        return [chunk async for chunk in LLMService(config).stream_chat(MESSAGES)]

    with pytest.raises(ModelError) as excinfo:
        asyncio.run(run())

    assert excinfo.value.code is ModelErrorCode.TRANSIENT
    assert excinfo.value.cause is not None


def test_missing_api_key_is_no_permissions():
    async def run():
        return [chunk async for chunk in LLMService({"provider": "openai"}).stream_chat(MESSAGES)]

    with pytest.raises(ModelError) as excinfo:
        asyncio.run(run())

    assert excinfo.value.code is ModelErrorCode.NO_PERMISSIONS


def test_unsupported_provider():
    async def run():
        return [chunk async for chunk in LLMService({"provider": "carrier-pigeon"}).stream_chat(MESSAGES)]

    with pytest.raises(ValueError, match="Unsupported provider"):
        asyncio.run(run())


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (429, "slow down", ModelErrorCode.QUOTA_EXCEEDED),
        (401, "bad key", ModelErrorCode.NO_PERMISSIONS),
        (403, "forbidden", ModelErrorCode.NO_PERMISSIONS),
        (404, "no such model", ModelErrorCode.NOT_FOUND),
        (503, "overloaded", ModelErrorCode.TRANSIENT),
        (400, '{"error": {"message": "Request blocked by safety settings"}}', ModelErrorCode.BLOCKED),
        (400, '{"error": {"message": "max_tokens too large"}}', ModelErrorCode.REQUEST_FAILED),
    ],
)
def test_classify_status(status, body, expected):
    error = classify_status(status, body, "Test")

    assert error.code is expected
    assert error.message.startswith(f"Test API error ({status}): ")


def test_classify_status_extracts_json_message():
    error = classify_status(400, '[{"error": {"code": 400, "message": "API key not valid"}}]', "Gemini")

    assert error.message == "Gemini API error (400): API key not valid"


# Stream line parsing


def test_gemini_line_skips_thought_parts():
    service = LLMService({"provider": "gemini"})
    line = "data: " + json.dumps(
        {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "thinking...", "thought": True},
                            {"text": "Answer"},
                        ]
                    }
                }
            ]
        }
    )

    assert service._parse_gemini_stream_line(line) == "Answer"


def test_gemini_prompt_block_raises():
    service = LLMService({"provider": "gemini"})
    line = "data: " + json.dumps({"promptFeedback": {"blockReason": "SAFETY"}})

    with pytest.raises(ModelError) as excinfo:
        service._parse_gemini_stream_line(line)

    assert excinfo.value.code is ModelErrorCode.BLOCKED


def test_gemini_safety_finish_raises():
    service = LLMService({"provider": "gemini"})
    line = "data: " + json.dumps({"candidates": [{"finishReason": "SAFETY"}]})

    with pytest.raises(ModelError):
        service._parse_gemini_stream_line(line)


@pytest.mark.parametrize("line", ["", ": keep-alive", "event: ping", "data: [DONE]", "data: {not json"])
def test_non_content_lines_are_ignored(line):
    service = LLMService({"provider": "openai"})

    assert service._parse_openai_stream_line(line) is None


def test_gemini_payload_maps_roles():
    service = LLMService({"provider": "gemini", "gemini": {"model": "gemini-2.0-flash"}})
    payload = service._build_gemini_payload(
        [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
    )

    assert [content["role"] for content in payload["contents"]] == ["user", "model"]
    assert "thinkingConfig" not in payload["generationConfig"]

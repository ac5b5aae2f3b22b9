import json

import httpx
import pytest
from openai import AsyncOpenAI

from mockinterview.exceptions import GenerationError
from mockinterview.services.llm_client import TextGenerationClient


def _completion(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "test-model",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
    }


def _generator(handler):
    generator = TextGenerationClient(api_key="test", model="test-model")
    generator.client = AsyncOpenAI(
        api_key="test",
        base_url="http://llm.test/v1",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    return generator


async def test_prompt_with_system_message():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_completion("  Hello there.  "))

    text = await _generator(handler).generate("Say hi", max_output_tokens=50, temperature=0.2, system="Be brief.")
    assert text == "Hello there."
    body = bodies[0]
    assert body["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Say hi"},
    ]
    assert body["max_tokens"] == 50
    assert body["temperature"] == 0.2


async def test_backend_failure_raises_generation_error():
    generator = _generator(lambda request: httpx.Response(500, json={"error": {"message": "down"}}))
    with pytest.raises(GenerationError):
        await generator.generate([{"role": "user", "content": "hi"}], max_output_tokens=10, temperature=0)


async def test_empty_content_raises_generation_error():
    generator = _generator(lambda request: httpx.Response(200, json=_completion("   ")))
    with pytest.raises(GenerationError):
        await generator.generate("hi", max_output_tokens=10, temperature=0)

"""
Tests for the Groq completion gateway and its model cascade
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from groq import APIConnectionError

from zenberry_assistant.exceptions import CompletionEngineError
from zenberry_assistant.llm_gateway import LLMGateway

MESSAGES = [{"role": "system", "content": "rules"}, {"role": "user", "content": "What is CBD?"}]


def api_error():
    return APIConnectionError(request=httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions"))


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class FakeStream:
    def __init__(self, pieces):
        self.pieces = pieces
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for piece in self.pieces:
            if piece is None:
                yield SimpleNamespace(choices=[])
            else:
                yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=piece))])

    async def close(self):
        self.closed = True


def gateway_with(create):
    client = MagicMock()
    client.chat.completions.create = create
    return LLMGateway(None, ["primary", "backup"], temperature=0.2, max_tokens=100, client=client)


@pytest.mark.asyncio
async def test_complete_uses_first_model():
    create = AsyncMock(return_value=completion("CBD is a cannabinoid found in hemp."))
    gateway = gateway_with(create)

    assert await gateway.complete(MESSAGES) == "CBD is a cannabinoid found in hemp."
    create.assert_awaited_once_with(model="primary", messages=MESSAGES, temperature=0.2, max_tokens=100)


@pytest.mark.asyncio
async def test_complete_falls_back_to_next_model():
    create = AsyncMock(side_effect=[api_error(), completion("From the backup model.")])
    gateway = gateway_with(create)

    assert await gateway.complete(MESSAGES) == "From the backup model."
    assert [c.kwargs["model"] for c in create.await_args_list] == ["primary", "backup"]


@pytest.mark.asyncio
async def test_complete_raises_when_all_models_fail():
    gateway = gateway_with(AsyncMock(side_effect=[api_error(), api_error()]))
    with pytest.raises(CompletionEngineError):
        await gateway.complete(MESSAGES)


@pytest.mark.asyncio
async def test_stream_yields_non_empty_deltas_and_closes():
    stream = FakeStream(["Hel", None, "", "lo"])
    create = AsyncMock(return_value=stream)
    gateway = gateway_with(create)

    assert [c async for c in gateway.complete_stream(MESSAGES)] == ["Hel", "lo"]
    assert stream.closed is True
    assert create.await_args.kwargs["stream"] is True


@pytest.mark.asyncio
async def test_stream_cascade_only_on_open():
    stream = FakeStream(["ok"])
    create = AsyncMock(side_effect=[api_error(), stream])
    gateway = gateway_with(create)

    assert [c async for c in gateway.complete_stream(MESSAGES)] == ["ok"]
    assert create.await_count == 2


@pytest.mark.asyncio
async def test_stream_raises_when_no_model_opens():
    gateway = gateway_with(AsyncMock(side_effect=[api_error(), api_error()]))
    with pytest.raises(CompletionEngineError):
        async for _ in gateway.complete_stream(MESSAGES):
            pass

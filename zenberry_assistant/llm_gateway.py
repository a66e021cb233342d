import logging
from typing import AsyncIterator, Dict, List, Optional
from groq import AsyncGroq, APIError
from .exceptions import CompletionEngineError

logger = logging.getLogger(__name__)


class LLMGateway:
    """Completion engine backed by Groq, trying each model of the cascade in turn."""

    def __init__(
        self,
        api_key: Optional[str],
        model_cascade: List[str],
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 30.0,
        client: Optional[AsyncGroq] = None,
    ):
        if not api_key and client is None:
            logger.error("CRITICAL: GROQ_API_KEY missing.")
        # The SDK refuses to build without a key; an empty one fails at call time instead
        self.client = client or AsyncGroq(api_key=api_key or "missing", timeout=timeout)
        self.model_cascade = list(model_cascade)
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        last_error = None
        for model in self.model_cascade:
            try:
                chat_completion = await self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                )
                return chat_completion.choices[0].message.content or ""
            except APIError as e:
                logger.warning("Model %s failed: %s", model, e)
                last_error = e

        raise CompletionEngineError(f"All models failed: {last_error}")

    async def complete_stream(self, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        stream = None
        last_error = None
        for model in self.model_cascade:
            try:
                stream = await self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    stream=True,
                )
                break
            except APIError as e:
                logger.warning("Model %s failed to open stream: %s", model, e)
                last_error = e

        if stream is None:
            raise CompletionEngineError(f"All models failed: {last_error}")

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        finally:
            await stream.close()

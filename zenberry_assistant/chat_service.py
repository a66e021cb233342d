import logging
from typing import Any, AsyncGenerator, AsyncIterator, Dict, List, Optional, Protocol

from .business_rules import ConversationPolicy, ResponseQuality
from .exceptions import ChatProcessingError, ValidationError
from .prompt_builder import PromptBuilder
from .tools import ChatTools

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 6

GENERIC_ERROR_MESSAGE = "We could not process your question. Please try again."
STREAM_ERROR_MESSAGE = "Sorry, an error occurred while processing your question. Please try again."
INVALID_HISTORY_MESSAGE = "Invalid history format."


class CompletionEngine(Protocol):
    async def complete(self, messages: List[Dict[str, str]]) -> str: ...

    def complete_stream(self, messages: List[Dict[str, str]]) -> AsyncGenerator[str, None]: ...


class ChatService:
    """
    Turns a customer question plus caller-held history into a grounded answer.

    Requests are independent: no conversation state is kept server-side, and
    only the last HISTORY_WINDOW turns of the supplied history reach the model.
    """

    def __init__(self, prompt_builder: PromptBuilder, engine: CompletionEngine, tools: Optional[ChatTools] = None):
        self.prompt_builder = prompt_builder
        self.engine = engine
        self.tools = tools

    def check_request(self, question: str, history: Any) -> str:
        """Validates question and history; returns the sanitized question."""
        sanitized = ConversationPolicy.check_question(question)
        if not ConversationPolicy.validate_history(history):
            raise ValidationError(INVALID_HISTORY_MESSAGE)
        return sanitized

    async def build_messages(self, question: str, history: List[dict], category: Optional[str] = None) -> List[Dict[str, str]]:
        system_prompt = await self.prompt_builder.build_system_prompt(category)
        turns = ConversationPolicy.to_turns(history)[-HISTORY_WINDOW:]
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": t.role, "content": t.content} for t in turns)
        messages.append({"role": "user", "content": question})
        return messages

    async def ask(self, question: str, history: Optional[List[dict]] = None, category: Optional[str] = None) -> str:
        history = [] if history is None else history
        try:
            sanitized = self.check_request(question, history)
            messages = await self.build_messages(sanitized, history, category)
            response = await self.engine.complete(messages)
        except ValidationError:
            raise
        except Exception as e:
            logger.exception("Error in ask: %s", e)
            raise ChatProcessingError(GENERIC_ERROR_MESSAGE) from e

        # Fallback text only; the model is never called twice per request
        if ResponseQuality.is_low_quality(response):
            logger.warning("Low quality response detected, returning fallback")
            return ResponseQuality.fallback()
        return response

    async def stream(self, question: str, history: Optional[List[dict]] = None) -> AsyncIterator[str]:
        """
        Yields answer fragments as the engine produces them.

        No quality gate here (it would need the whole answer first). Any
        failure ends the sequence with one apology chunk instead of raising.
        """
        history = [] if history is None else history
        try:
            sanitized = self.check_request(question, history)
            messages = await self.build_messages(sanitized, history)
            chunks = self.engine.complete_stream(messages)
            try:
                async for chunk in chunks:
                    if chunk:
                        yield chunk
            finally:
                await chunks.aclose()
        except Exception as e:
            logger.exception("Error in stream: %s", e)
            yield STREAM_ERROR_MESSAGE

    async def invoke_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        if self.tools is None:
            raise ValidationError("Tools are not enabled.")
        return await self.tools.dispatch(name, arguments)

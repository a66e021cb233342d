import json
import logging
from typing import Any, AsyncGenerator, AsyncIterator, Dict

logger = logging.getLogger(__name__)

STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}
TRANSPORT_ERROR_MESSAGE = "Sorry, the response stream was interrupted. Please try again."


def encode_frame(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class StreamingTransport:
    """
    Frames chat chunks as server-sent events.

    Every stream ends with exactly one `{"done": true}` frame, whether the
    upstream finished, failed, or was rejected before it started. A client
    disconnect closes the upstream and emits nothing further.
    """

    media_type = "text/event-stream"
    headers = STREAM_HEADERS

    async def relay(self, chunks: AsyncIterator[str]) -> AsyncGenerator[str, None]:
        try:
            async for chunk in chunks:
                if chunk:
                    yield encode_frame({"chunk": chunk})
        except Exception as e:
            # Upstream errors are delivered in-band, like any other chunk
            logger.exception("Error in stream relay: %s", e)
            yield encode_frame({"chunk": TRANSPORT_ERROR_MESSAGE})
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()
        yield encode_frame({"done": True})

    async def reject(self, message: str) -> AsyncGenerator[str, None]:
        yield encode_frame({"error": message})
        yield encode_frame({"done": True})

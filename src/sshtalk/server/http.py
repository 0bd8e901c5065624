"""Stateless HTTP endpoint.

Each call to /api/chat builds a one-shot conversation from the request
body, streams the model's reply back as raw text as it arrives and throws
the conversation away. Calls share nothing but the provider client.
"""

import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from ..config import ChatConfig
from ..conversation import (
    CompleteEvent,
    FailedEvent,
    MessageStore,
    PartialEvent,
    StreamEvent,
    StreamingResponseDriver,
)
from ..errors import ErrorKind
from ..llm import ChatMessage, LLMProvider

logger = logging.getLogger(__name__)


def _error_status(event: FailedEvent) -> int:
    return 504 if event.kind == ErrorKind.TIMEOUT else 502


async def _relay(
    store: MessageStore,
    first: StreamEvent,
    events: AsyncIterator[StreamEvent],
) -> AsyncIterator[str]:
    """Turn accumulated driver events back into the deltas the caller sees."""
    sent = 0
    event = first
    try:
        while True:
            if isinstance(event, PartialEvent):
                store.apply_chunk(event.content)
                delta = event.content[sent:]
                sent = len(event.content)
                if delta:
                    yield delta
            elif isinstance(event, CompleteEvent):
                tail = event.content[sent:]
                if tail:
                    yield tail
                store.finalize(event.content)
                logger.info("Chat stream complete (%d chars)", len(event.content))
                return
            else:
                # Headers are already out; ending the body is all that is left
                logger.error("Chat stream failed mid-response (%s): %s", event.kind.value, event.message)
                return
            event = await events.__anext__()
    finally:
        await events.aclose()


def create_app(llm: LLMProvider, config: ChatConfig) -> FastAPI:
    """Build the HTTP application.

    Args:
        llm: Provider shared by all calls
        config: Process-wide configuration

    Returns:
        FastAPI app exposing POST /api/chat and GET /teapot
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Serving model %s (base URL: %s)", config.model, config.base_url or "default")
        yield
        await llm.close()

    app = FastAPI(
        title="sshtalk",
        description="Stream chat completions as plain text.",
        lifespan=lifespan,
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> Response:
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return PlainTextResponse("Invalid request body", status_code=400)

    @app.get("/teapot")
    async def teapot() -> Response:
        return PlainTextResponse("I'm a teapot", status_code=418)

    @app.post("/api/chat")
    async def chat(messages: list[ChatMessage]) -> Response:
        """Stream the reply to the conversation in the request body."""
        store = MessageStore(config.system_prompt)
        store.load_context(messages)
        store.mark_awaiting()

        driver = StreamingResponseDriver(
            llm,
            store.model_context,
            model=config.model,
            timeout=config.request_timeout,
        )
        events = driver.stream()

        # Wait for the first event so an early failure can still set the status
        first = await events.__anext__()
        if isinstance(first, FailedEvent):
            await events.aclose()
            store.fail()
            logger.error("Chat request failed (%s): %s", first.kind.value, first.message)
            return PlainTextResponse(
                f"Chat request failed: {first.kind.value}",
                status_code=_error_status(first),
            )

        return StreamingResponse(
            _relay(store, first, events),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    return app

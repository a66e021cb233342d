import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .catalog import ProductCatalog
from .chat_service import ChatService
from .config import Settings
from .exceptions import ChatProcessingError, ValidationError
from .knowledge_base import DirectoryDocumentSource, KnowledgeBase
from .llm_gateway import LLMGateway
from .models import AskQuestionRequest, ChatResponse, ToolCallRequest, ToolCallResponse
from .prompt_builder import PromptBuilder
from .rate_limiter import InMemoryRateLimiter, enforce_chat_rate_limit
from .shopify_client import ShopifyClient
from .streaming import StreamingTransport
from .tools import ChatTools

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


@dataclass
class ServiceContainer:
    """Process-wide singletons, built once by the composition root."""

    knowledge_base: KnowledgeBase
    catalog: ProductCatalog
    chat_service: ChatService
    transport: StreamingTransport
    rate_limiter: InMemoryRateLimiter
    trust_proxy_headers: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceContainer":
        knowledge_base = KnowledgeBase(DirectoryDocumentSource(settings.knowledge_dir))
        catalog = ProductCatalog(
            ShopifyClient(settings.shopify_domain, settings.shopify_token, settings.shopify_api_version),
            storefront_url=settings.app_url,
            ttl=settings.catalog_ttl,
            fetch_limit=settings.catalog_fetch_limit,
        )
        gateway = LLMGateway(
            settings.groq_api_key,
            settings.model_cascade,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.llm_timeout,
        )
        chat_service = ChatService(
            PromptBuilder(knowledge_base, catalog),
            gateway,
            tools=ChatTools(knowledge_base, catalog),
        )
        return cls(
            knowledge_base=knowledge_base,
            catalog=catalog,
            chat_service=chat_service,
            transport=StreamingTransport(),
            rate_limiter=InMemoryRateLimiter(settings.chat_rate_limit, settings.chat_rate_window),
            trust_proxy_headers=settings.trust_proxy_headers,
        )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


router = APIRouter(prefix="/api/v1")


@router.post("/chat/ask", response_model=ChatResponse, dependencies=[Depends(enforce_chat_rate_limit)])
async def ask(body: AskQuestionRequest, container: ServiceContainer = Depends(get_container)):
    logger.info("Received question: %s...", body.question[:50])
    if body.category:
        logger.info("Category filter: %s", body.category)

    answer = await container.chat_service.ask(body.question, body.history or [], body.category)
    return ChatResponse(answer=answer, timestamp=datetime.now(timezone.utc).isoformat())


@router.post("/chat/stream", dependencies=[Depends(enforce_chat_rate_limit)])
async def stream(body: AskQuestionRequest, container: ServiceContainer = Depends(get_container)):
    logger.info("Starting stream for question: %s...", body.question[:50])
    if body.category:
        logger.info("Category '%s' ignored in streaming mode", body.category)

    transport = container.transport
    history = body.history or []
    try:
        container.chat_service.check_request(body.question, history)
    except ValidationError as e:
        frames = transport.reject(str(e))
    else:
        frames = transport.relay(container.chat_service.stream(body.question, history))
    return StreamingResponse(frames, media_type=transport.media_type, headers=transport.headers)


@router.post("/chat/tools", response_model=ToolCallResponse)
async def call_tool(body: ToolCallRequest, container: ServiceContainer = Depends(get_container)):
    output = await container.chat_service.invoke_tool(body.name, body.arguments)
    return ToolCallResponse(name=body.name, output=output)


@router.get("/chat/products/search")
async def search_products(keywords: str = Query(..., min_length=1), container: ServiceContainer = Depends(get_container)):
    return {"result": await container.catalog.search(keywords)}


@router.delete("/chat/products/cache")
async def clear_products_cache(container: ServiceContainer = Depends(get_container)):
    container.catalog.clear()
    return container.catalog.cache_info()


@router.post("/chat/context/reload")
async def reload_context(container: ServiceContainer = Depends(get_container)):
    await container.knowledge_base.reload()
    return container.knowledge_base.info()


def create_app(container: Optional[ServiceContainer] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            configure_logging(settings.log_level)
            settings.validate()
            app.state.container = ServiceContainer.from_settings(settings)
        # A failure here aborts startup
        await app.state.container.knowledge_base.load()
        yield

    app = FastAPI(title="Zenberry Assistant", version="1.0.0", lifespan=lifespan)
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ChatProcessingError)
    async def chat_error_handler(request: Request, exc: ChatProcessingError):
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/health")
    async def health(request: Request):
        container: ServiceContainer = request.app.state.container
        return {
            "status": "ok",
            "knowledge": container.knowledge_base.info(),
            "catalog": container.catalog.cache_info(),
        }

    app.include_router(router)
    return app


app = create_app()

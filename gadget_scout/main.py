"""
FastAPI Application Entry Point
===============================
Main application with lifecycle management, middleware, and route mounting.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gadget_scout.config import get_settings
from gadget_scout.core.exceptions import GadgetScoutException
from gadget_scout.api.routes import catalog, conversation, health, voice
from gadget_scout.catalog.repository import CatalogRepository, load_catalog
from gadget_scout.core.events import EventBus
from gadget_scout.core.orchestrator import ConversationOrchestrator
from gadget_scout.core.prompts import PromptComposer
from gadget_scout.core.session import SessionManager
from gadget_scout.logging.agent_logger import AgentLogger
from gadget_scout.retrieval.retriever import build_retriever
from gadget_scout.services.embeddings import EmbeddingService
from gadget_scout.services.llm import LLMService
from gadget_scout.services.realtime import LiveService
from gadget_scout.tools.recommend import RecommendationProtocol, build_tool_registry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def wire_app(
    app: FastAPI,
    catalog: CatalogRepository,
    llm_service: LLMService,
    embedding_service: Optional[EmbeddingService] = None,
    live_service: Optional[LiveService] = None,
    agent_logger: Optional[AgentLogger] = None
) -> ConversationOrchestrator:
    """
    Build the chat engine around already-created services and put every
    component on `app.state`.
    """
    registry = build_tool_registry()
    protocol = RecommendationProtocol(catalog, registry)
    composer = PromptComposer(
        catalog,
        store_name=settings.STORE_NAME,
        promo_code=settings.PROMO_CODE,
        promo_discount_percent=settings.PROMO_DISCOUNT_PERCENT
    )
    retriever = build_retriever(settings, catalog, embedding_service)

    orchestrator = ConversationOrchestrator(
        catalog=catalog,
        retriever=retriever,
        composer=composer,
        llm_service=llm_service,
        protocol=protocol,
        registry=registry,
        live_service=live_service,
        events=EventBus(),
        agent_logger=agent_logger
    )

    app.state.catalog = catalog
    app.state.llm_service = llm_service
    app.state.embedding_service = embedding_service
    app.state.live_service = live_service
    app.state.agent_logger = agent_logger
    app.state.tool_registry = registry
    app.state.retriever = retriever
    app.state.orchestrator = orchestrator
    app.state.session_manager = SessionManager(closer=orchestrator.close_session)
    return orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}")
    logger.info("=" * 60)

    # ==================
    # STARTUP
    # ==================

    logger.info("Initializing agent logger...")
    agent_logger = AgentLogger(str(settings.AGENT_LOG_PATH))
    await agent_logger.initialize_log(settings.STORE_NAME, settings.APP_VERSION)
    await agent_logger.log_system_event("Application starting", {
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    })

    logger.info("Loading catalog...")
    catalog_snapshot = await load_catalog(
        settings.CATALOG_SOURCE,
        featured_id=settings.FEATURED_PRODUCT_ID,
        timeout=settings.CATALOG_TIMEOUT_SECONDS
    )

    logger.info("Initializing LLM service...")
    llm_service = LLMService()
    await llm_service.initialize()

    logger.info("Initializing embedding service...")
    embedding_service = EmbeddingService()
    await embedding_service.initialize()

    live_service = LiveService()

    wire_app(app, catalog_snapshot, llm_service, embedding_service, live_service, agent_logger)
    await app.state.session_manager.start()

    logger.info("=" * 60)
    logger.info(f"{settings.APP_NAME} Ready!")
    logger.info(f"Server: http://{settings.HOST}:{settings.PORT}")
    logger.info(f"Docs: http://{settings.HOST}:{settings.PORT}/docs")
    logger.info("=" * 60)

    await agent_logger.log_system_event("Application started successfully", {
        "products": len(catalog_snapshot),
        "catalog_version": catalog_snapshot.version,
        "llm_provider": llm_service.provider,
        "retrieval": app.state.retriever.kind,
        "voice": "available" if live_service.is_configured else "unavailable"
    })

    yield  # Application runs here

    # ==================
    # SHUTDOWN
    # ==================

    logger.info(f"Shutting down {settings.APP_NAME}...")

    await agent_logger.log_system_event("Application shutting down", {})

    await app.state.session_manager.stop()
    await embedding_service.cleanup()
    await llm_service.cleanup()
    await agent_logger.close()

    logger.info("Shutdown complete.")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Gadget Scout

    Conversational product discovery for the store's gadget catalog.

    ### Features:
    - 💬 Typed chat with retrieval-augmented recommendations
    - 🎤 Live voice mode via WebSocket with barge-in
    - 🛍️ Structured recommendation cards resolved against the catalog

    ### Turn pipeline:
    ```
    Message → Retrieval → Augmented Prompt → Model → Recommendation
    ```
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# ==================
# MIDDLEWARE
# ==================

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_timing_header(request: Request, call_next):
    """Add request timing information to response headers."""
    start_time = datetime.now()
    response = await call_next(request)
    process_time = (datetime.now() - start_time).total_seconds() * 1000
    response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
    return response


# ==================
# EXCEPTION HANDLERS
# ==================

@app.exception_handler(GadgetScoutException)
async def gadget_scout_exception_handler(request: Request, exc: GadgetScoutException):
    """Handle application exceptions."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": str(exc) if settings.DEBUG else None
        }
    )


# ==================
# ROUTES
# ==================

app.include_router(health.router, tags=["Health"])
app.include_router(catalog.router, prefix="/api/v1/catalog", tags=["Catalog"])
app.include_router(conversation.router, prefix="/api/v1/conversation", tags=["Conversation"])
app.include_router(voice.router, prefix="/api/v1/voice", tags=["Voice"])


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


# ==================
# DEBUG ENDPOINTS
# ==================

if settings.DEBUG:
    @app.get("/debug/config")
    async def debug_config():
        """Debug endpoint to view configuration (DEBUG mode only)."""
        return {
            "environment": settings.ENVIRONMENT,
            "llm_provider": settings.LLM_PROVIDER,
            "chat_model": settings.CHAT_MODEL_ID,
            "live_model": settings.LIVE_MODEL_ID,
            "embedding_model": settings.EMBEDDING_MODEL_ID,
            "retrieval_mode": settings.RETRIEVAL_MODE,
            "catalog_source": settings.CATALOG_SOURCE
        }

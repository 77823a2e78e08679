"""
Support Relay - Main Application
================================

Support-ticket relay bot service.

Wires the triage pipeline (spam guard, FAQ, knowledge responder, ticket
routing) to its collaborators and exposes it over HTTP.

Layers, outermost first:
- triage.interfaces: HTTP routes
- triage.application: orchestrator, spam guard, knowledge responder
- triage.domain: messages, tickets, reply composition
- triage.infrastructure: LLM adapter, webhook messenger, ticket store
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from support_relay.config import RelayConfig, Settings, get_settings
from support_relay.core import ConfigurationException
from support_relay.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    global_exception_handler,
)
from support_relay.shared.infrastructure.logging import setup_logging, get_logger
from support_relay.triage.application import (
    IMessenger,
    ITicketRepository,
    KnowledgeResponder,
    SpamGuard,
    TriageOrchestrator,
)
from support_relay.triage.infrastructure import (
    InMemoryTicketRepository,
    LLMClientAdapter,
    RelayConfigManager,
    WebhookMessenger,
)
from support_relay.triage.interfaces import relay_router

logger = get_logger(__name__)


def build_orchestrator(
    settings: Settings,
    relay_config: RelayConfig,
    messenger: IMessenger,
    tickets: ITicketRepository
) -> TriageOrchestrator:
    """Assemble the triage pipeline from a validated configuration."""
    responder = None
    if relay_config.use_llm:
        if not (relay_config.llm.api_key or settings.llm_api_key):
            raise ConfigurationException(
                "use_llm is enabled but no LLM API key is configured (llm.api_key or LLM_API_KEY)"
            )
        responder = KnowledgeResponder(
            relay_config.llm,
            client_factory=lambda cfg: LLMClientAdapter(cfg, settings.llm_api_key)
        )

    return TriageOrchestrator(
        config=relay_config,
        messenger=messenger,
        tickets=tickets,
        spam_guard=SpamGuard.from_config(relay_config),
        responder=responder
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Build the relay on startup and release its clients on shutdown.

    A missing or invalid relay config aborts startup with
    ConfigurationException; the service never runs half-configured.
    """
    settings: Settings = app.state.settings

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Support Relay", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    config_manager = RelayConfigManager()
    relay_config = config_manager.load(settings.relay_config_path)

    messenger = WebhookMessenger(
        settings.delivery_webhook_url,
        parse_mode=relay_config.parse_mode,
        timeout_seconds=settings.delivery_timeout_seconds
    )
    if not settings.delivery_webhook_url:
        logger.warning("Delivery webhook not configured - outbound messages will be dropped")

    tickets = InMemoryTicketRepository()
    orchestrator = build_orchestrator(settings, relay_config, messenger, tickets)

    app.state.relay_config = relay_config
    app.state.messenger = messenger
    app.state.ticket_repository = tickets
    app.state.orchestrator = orchestrator

    logger.info("Support Relay started successfully", extra={
        "use_llm": relay_config.use_llm,
        "staffchat_type": relay_config.staffchat_type
    })

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Support Relay")

    responder = orchestrator.responder
    if isinstance(responder, KnowledgeResponder):
        await responder.close()

    await messenger.close()

    logger.info("Support Relay shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Support Relay API",
        description="""
        ## Support-Ticket Relay Bot

        Bridges messenger users to a staff chat and answers what it can on its own.

        **Endpoints:**
        - `POST /relay/messages` - Triage an incoming user message
        - `GET /relay/tickets/{messenger}/{user_id}` - Open ticket of a user
        """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = settings

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it runs first and the logging middleware sees the id
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(relay_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint for load balancers and orchestrators."""
        relay_config = getattr(request.app.state, "relay_config", None)
        checks = {
            "relay_config": "loaded" if relay_config else "not_loaded",
            "llm": "enabled" if relay_config and relay_config.use_llm else "disabled",
            "delivery_webhook": "configured" if settings.delivery_webhook_url else "not_configured"
        }
        return {
            "status": "healthy" if relay_config else "degraded",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
            "endpoints": [
                "POST /relay/messages - Triage an incoming message",
                "GET /relay/tickets/{messenger}/{user_id} - Get open ticket"
            ]
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "support_relay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )

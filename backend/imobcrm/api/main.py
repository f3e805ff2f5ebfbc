"""
FastAPI application
"""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..services.database import db
from ..services.realtime import create_message_fanout
from ..services.realtime_channel import MessageChannel
from .routes import (
    lead_webhooks_router,
    assistant_router,
    contacts_router,
    integrations_router,
    integrations_api_router,
    flow_executor_router,
    flows_router,
    prompts_router,
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title=settings.APP_NAME,
        description="ImobCRM - WhatsApp CRM para imobiliárias",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    # Edge-function style endpoints (no /api prefix)
    app.include_router(lead_webhooks_router)
    app.include_router(assistant_router)
    app.include_router(contacts_router)
    app.include_router(integrations_router)
    app.include_router(flow_executor_router)

    # Dashboard API
    app.include_router(flows_router, prefix="/api")
    app.include_router(prompts_router, prefix="/api")
    app.include_router(integrations_api_router, prefix="/api")

    # Realtime fan-out of the messages table (optional)
    app.state.fanout = create_message_fanout(resolve_department=db.get_conversation_department)
    app.state.message_channel = None

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "status": "running"
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "ok"}

    @app.on_event("startup")
    async def startup():
        logger.info(f"Starting {settings.APP_NAME}...")
        if settings.REALTIME_ENABLED:
            channel = MessageChannel(app.state.fanout)
            await channel.start()
            app.state.message_channel = channel
            logger.info("Realtime message channel started")

    @app.on_event("shutdown")
    async def shutdown():
        logger.info(f"Shutting down {settings.APP_NAME}...")
        if app.state.message_channel is not None:
            await app.state.message_channel.stop()
            logger.info("Realtime message channel stopped")

    return app


# Create app instance
app = create_app()

"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.middleware import IdempotencyMiddleware, RequestIdMiddleware
from app.api.routes import api_router, webhook_router
from app.domain.services.forwarding_dispatcher import ForwardingDispatcher
from app.infrastructure.delivery_queue import get_delivery_queue
from app.infrastructure.redis import redis_client
from app.infrastructure.webhook_client import webhook_client
from app.logging_config import setup_logging
from app.settings import settings
from app.workers import forwarding_worker

# Setup logging
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    await redis_client.connect()

    queue = get_delivery_queue()
    dispatcher = ForwardingDispatcher(queue)
    queue.start(dispatcher.dispatch)
    # Deliveries left pending by a previous process (retries included)
    await dispatcher.recover()

    yield

    # Shutdown
    await queue.stop()
    await webhook_client.close()
    await redis_client.disconnect()


# Create FastAPI app
app = FastAPI(
    title="Lead Router API",
    description="Lead identity resolution and rule-based forwarding",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add idempotency middleware
app.add_middleware(IdempotencyMiddleware)

# Outermost, so every log line of a request carries its ID
app.add_middleware(RequestIdMiddleware)

# Public lead intake
app.include_router(webhook_router)

# Admin API
app.include_router(api_router, prefix=settings.api_v1_prefix)

# Include worker routes (for Cloud Tasks)
app.include_router(forwarding_worker.router, prefix="/workers", tags=["workers"])


@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Lead Router API",
        "version": "0.1.0",
        "docs": "/docs",
    }

"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import awards, contexts, depletion, inventory, marketplace
from config import settings
from database import get_session_local
from logging_config import setup_logging
from services.depletion_events import depletion_bus
from services.depletion_service import make_depletion_handler

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Record a depletion trigger whenever an award empties a context's batch."""
    handler = make_depletion_handler(get_session_local())
    depletion_bus.subscribe(handler)
    logger.info("Depletion handler subscribed")
    try:
        yield
    finally:
        depletion_bus.unsubscribe(handler)


app = FastAPI(
    title="Badge Issuance",
    description="Badge inventory, award issuance and resale settlement",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(inventory.router)
app.include_router(contexts.router)
app.include_router(awards.router)
app.include_router(marketplace.router)
app.include_router(depletion.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}

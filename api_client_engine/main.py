"""
API Client Engine - FastAPI Application Entry Point

Runs Postman-style request definitions: variable resolution, scripted
pre-request and test hooks, and HTTP execution.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import get_settings
from .database import SessionLocal, init_db
from .exceptions import register_exception_handlers
from .logging_config import setup_logging
from .routers import execute
from .services.http_executor import HttpTransport
from .services.orchestrator import RequestExecutor
from .services.script_sandbox import JavaScriptSandbox
from .services.variable_store import SqlVariableStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    init_db()

    transport = HttpTransport(settings)
    app.state.executor = RequestExecutor(
        store=SqlVariableStore(SessionLocal, settings.MAX_FOLDER_DEPTH),
        script_runner=JavaScriptSandbox(settings.SCRIPT_TIMEOUT_MS),
        transport=transport,
    )
    logger.info("Request executor ready")
    yield
    await transport.aclose()
    logger.info("HTTP clients closed")


app = FastAPI(
    title="API Client Engine",
    description="Request execution engine for a Postman-like API testing client",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

# Configure CORS middleware
# Allow all origins for development; restrict in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure specific origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register global exception handlers
register_exception_handlers(app)


@app.get("/")
async def root():
    """Root endpoint returning API information."""
    return {
        "name": "API Client Engine",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Register routers
app.include_router(execute.router)


def run():
    """Serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()

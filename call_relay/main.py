"""
Call Relay - Main Application Entry Point

Receives voice AI call events, stores call records and fans them out to
CRMs, tenant webhooks and the enrichment pipeline.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from call_relay.context import AppContext, build_context, close_context
from call_relay.core.config import settings
from call_relay.core.exceptions import AuthenticationError, CallRelayException
from call_relay.core.logging import get_logger, setup_logging
from call_relay.api.routes import (
    calls,
    connect,
    health,
    ingest,
    maintenance,
    outbound_webhooks,
    tenants,
)

setup_logging()
logger = get_logger(__name__)

VERSION = "1.0.0"


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application.

    A prebuilt context (tests) is used as-is; otherwise one is built from
    settings during startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info("Starting Call Relay")
        logger.info(f"Version: {VERSION}")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Database Type: {settings.database_type}")
        logger.info("=" * 60)

        ctx = context or build_context(settings)
        if not await ctx.repository.initialize():
            raise RuntimeError(f"Database ({ctx.settings.database_type}) initialization failed")
        app.state.context = ctx
        logger.info(f"Loaded {len(ctx.connectors)} CRM connector(s)")

        yield

        logger.info("Shutting down Call Relay")
        await close_context(ctx)
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Call Relay API",
        description="""
    ## Voice AI call event relay

    - **Ingestion**: `POST /webhook/{id}` receives status updates and end-of-call reports
    - **CRM sync**: Salesforce, HubSpot and Dynamics 365 over OAuth
    - **Outbound webhooks**: `call.started` / `call.ended` fan-out
    - **Enrichment**: LLM intent/sentiment, keywords, scheduling triggers, addons

    ### Authentication

    Include your API key in requests using one of these methods:
    - Header: `X-API-Key: your-api-key`
    - Bearer Token: `Authorization: Bearer your-api-key`
    - Query Parameter: `?api_key=your-api-key`
    """,
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuthenticationError)
    async def auth_exception_handler(request: Request, exc: AuthenticationError):
        """Handle authentication errors"""
        logger.warning(f"AuthenticationError: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(CallRelayException)
    async def call_relay_exception_handler(request: Request, exc: CallRelayException):
        """Handle custom call relay exceptions"""
        logger.warning(f"CallRelayException: {exc.error_code} - {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict()
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": {"exception": str(exc)} if settings.debug else {}
            }
        )

    app.include_router(health.router)
    app.include_router(ingest.router)
    app.include_router(connect.router, prefix="/api/v1")
    app.include_router(outbound_webhooks.router, prefix="/api/v1")
    app.include_router(calls.router, prefix="/api/v1")
    app.include_router(tenants.router, prefix="/api/v1")
    app.include_router(maintenance.router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Call Relay",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "call_relay.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug
    )

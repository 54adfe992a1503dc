"""Transaction Risk Evaluation Service.

This service scores submitted payment transactions against behavioural
fraud rules and commits each outcome (status, evaluation record,
notification, audit entry, learned statistics) as one atomic unit of work.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from risk_evaluation.alerts.channels import build_alert_channel
from risk_evaluation.api.routes.health import router as health_router
from risk_evaluation.api.routes.transactions import router as transactions_router
from risk_evaluation.core.config import AppEnvironment, Settings, get_settings
from risk_evaluation.core.database import create_async_engine, create_session_factory, init_models
from risk_evaluation.core.errors import RiskEvaluationError, get_status_code
from risk_evaluation.core.logging import setup_logging
from risk_evaluation.services.alert_dispatcher import AlertDispatcher
from risk_evaluation.services.evaluation_service import EvaluationOrchestrator

logger = logging.getLogger(__name__)

# API version prefix
API_V1_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan context manager."""
    settings = get_settings()

    setup_logging(settings)

    logger.info(
        "Starting Transaction Risk Evaluation Service",
        extra={
            "app": settings.app.name,
            "env": settings.app.env,
            "version": settings.app.version,
        },
    )

    engine = create_async_engine(settings.database)
    session_factory = create_session_factory(engine)
    if settings.database.create_schema:
        await init_models(engine)

    channel = build_alert_channel(settings.alerts)
    await channel.start()
    dispatcher = AlertDispatcher(session_factory, channel, subject=settings.alerts.subject)
    dispatcher.start_sweeper(settings.alerts.sweep_interval_seconds)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.alert_channel = channel
    app.state.dispatcher = dispatcher
    app.state.orchestrator = EvaluationOrchestrator.from_settings(
        settings, session_factory, dispatcher=dispatcher
    )

    yield

    await dispatcher.stop_sweeper()
    await dispatcher.drain()
    await channel.stop()
    await engine.dispose()

    logger.info("Transaction Risk Evaluation Service stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Transaction Risk Evaluation API",
        description=(
            "API for submitting payment transactions and evaluating their fraud risk. "
            "Each evaluation is committed atomically with its notification and audit trail."
        ),
        version=settings.app.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.app.env != AppEnvironment.PROD else None,
        redoc_url="/redoc" if settings.app.env != AppEnvironment.PROD else None,
        openapi_url="/openapi.json" if settings.app.env != AppEnvironment.PROD else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_allowed_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=settings.security.cors_allow_methods,
        allow_headers=settings.security.cors_allow_headers,
    )

    app.include_router(health_router, prefix=API_V1_PREFIX)
    app.include_router(transactions_router, prefix=API_V1_PREFIX)

    setup_telemetry(app, settings)

    @app.exception_handler(RiskEvaluationError)
    async def domain_error_handler(  # type: ignore[reportUnusedFunction]
        request: Request, exc: RiskEvaluationError
    ) -> JSONResponse:
        """Handle domain-specific errors and return appropriate HTTP responses."""
        status_code = get_status_code(exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, **({"errors": exc.details} if exc.details else {})},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(  # type: ignore[reportUnusedFunction]
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions and return 500 error responses."""
        logger.exception(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


def setup_telemetry(app: FastAPI, settings: Settings) -> None:
    """Setup OpenTelemetry instrumentation."""
    if not settings.observability.otlp_endpoint:
        return

    resource = Resource(
        attributes={
            SERVICE_NAME: settings.observability.service_name,
        }
    )

    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=settings.observability.otlp_endpoint,
        insecure=settings.observability.otlp_insecure,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "risk_evaluation.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.app.env == AppEnvironment.LOCAL,
        workers=1 if settings.app.env == AppEnvironment.LOCAL else settings.server.workers,
        log_level=settings.app.log_level.lower(),
    )


if __name__ == "__main__":
    run()

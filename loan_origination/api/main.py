"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from loan_origination.api.middleware import RequestIDMiddleware, MetricsMiddleware
from loan_origination.api.v1 import applications, calculator
from loan_origination.infrastructure.observability.logging import setup_logging
from loan_origination.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Plan Loan Origination",
        description="Eligibility, amortization and origination workflow for retirement-plan loans",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(calculator.router, prefix="/v1/loans", tags=["calculator"])
    app.include_router(applications.router, prefix="/v1/loans", tags=["applications"])

    return app


app = create_app()

"""Builds one FastAPI application per backend service."""

import logging

from fastapi import APIRouter, Depends, FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from healthbar.api.envelope import envelope, install_error_handlers
from healthbar.config import settings
from healthbar.models.database import Base, engine, get_db
from healthbar.schemas.api import Envelope, HealthStatus
from healthbar.services.trust import TrustHeadersMiddleware

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")


def health_router(service_name: str) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    def health_check(db: Session = Depends(get_db)):
        """Liveness probe used by the gateway – verifies DB connectivity."""
        try:
            db.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning("Health check failed for %s: %s", service_name, exc)
            status = HealthStatus(
                service=service_name, environment=settings.ENVIRONMENT, database="disconnected"
            )
            body = Envelope(success=False, error="Database unavailable", data=status.model_dump())
            return JSONResponse(body.model_dump(exclude_none=True), status_code=503)
        return envelope(
            200,
            "Service healthy",
            HealthStatus(service=service_name, environment=settings.ENVIRONMENT),
        )

    return router


def create_service_app(service_name: str, *routers: APIRouter) -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=f"Health Bar {service_name} service",
        version="1.0.0",
    )
    app.add_middleware(TrustHeadersMiddleware)
    install_error_handlers(app)

    for router in routers:
        app.include_router(router)
    app.include_router(health_router(service_name))

    @app.on_event("startup")
    def on_startup():
        Base.metadata.create_all(bind=engine)
        logger.info("%s service ready", service_name)

    return app

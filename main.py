import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from myai.api.dependencies import ServiceContainer, build_services
from myai.api.routes.completions import router as completions_router
from myai.api.routes.conversations import router as conversations_router
from myai.api.routes.embeddings import router as embeddings_router
from myai.api.routes.health import router as health_router
from myai.api.routes.models import router as models_router
from myai.core.errors import ConfigurationError, NotFoundError, UpstreamError, ValidationError
from myai.core.logging_config import configure_logging
from myai.services.pricing_cache_service import utc_now
from myai.settings import Settings, settings as default_settings


logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "detail": exc.message,
                "upstream_status": exc.status_code,
                "upstream_body": exc.body,
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})


def create_app(settings: Settings | None = None, services: ServiceContainer | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)
    settings.require_openrouter_credentials()

    services = services or build_services(settings)
    services.database.setup()
    services.auth_service.ensure_default_user(settings.api_key, utc_now())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await services.aclose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Model gateway over the OpenRouter aggregator with conversations and usage accounting",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(models_router)
    app.include_router(completions_router)
    app.include_router(embeddings_router)
    app.include_router(conversations_router)

    logger.info("%s %s started", settings.app_name, settings.app_version)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

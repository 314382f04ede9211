import asyncio
from dataclasses import dataclass
from typing import Annotated, Awaitable, Callable

import httpx
from fastapi import Depends, Request

from myai.db.conversation_repo import ConversationRepo
from myai.db.database import Database
from myai.db.user_repo import UserRepo
from myai.request_context import RequestContext
from myai.services.auth_service import AuthService
from myai.services.cache.cache_backend import create_cache_backend
from myai.services.chat_service import ChatService
from myai.services.completion_stream_service import CompletionStreamService
from myai.services.gateway.gateway_base import GatewayClient
from myai.services.gateway.gateway_client import OpenRouterGatewayClient
from myai.services.gateway.retry_policy import RetryPolicy
from myai.services.model_registry_service import ModelRegistryService
from myai.services.model_selection.model_recommendation_service import ModelRecommendationService
from myai.services.pricing_cache_service import PricingCacheService
from myai.settings import Settings


@dataclass
class ServiceContainer:
    settings: Settings
    database: Database
    user_repo: UserRepo
    conversation_repo: ConversationRepo
    gateway: GatewayClient
    pricing_service: PricingCacheService
    registry: ModelRegistryService
    recommendation_service: ModelRecommendationService
    chat_service: ChatService
    completion_stream_service: CompletionStreamService
    auth_service: AuthService

    async def aclose(self) -> None:
        if isinstance(self.gateway, OpenRouterGatewayClient):
            await self.gateway.aclose()


def build_services(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ServiceContainer:
    """Wire every service from settings. `http_client` and `sleep` are seams for tests."""
    database = Database(settings.db_path, preserve_old_db=settings.preserve_old_db)
    user_repo = UserRepo(database)
    conversation_repo = ConversationRepo(database)

    gateway = OpenRouterGatewayClient(
        settings,
        retry_policy=RetryPolicy(
            max_attempts=settings.openrouter_max_retries,
            base_delay=settings.openrouter_retry_delay_seconds,
            sleep=sleep,
        ),
        http_client=http_client,
    )
    pricing_service = PricingCacheService(
        gateway,
        create_cache_backend(settings.pricing_cache_enabled),
        ttl_seconds=settings.pricing_cache_ttl_seconds,
    )
    registry = ModelRegistryService(gateway, pricing_service, ttl_seconds=settings.model_catalog_ttl_seconds)

    return ServiceContainer(
        settings=settings,
        database=database,
        user_repo=user_repo,
        conversation_repo=conversation_repo,
        gateway=gateway,
        pricing_service=pricing_service,
        registry=registry,
        recommendation_service=ModelRecommendationService(registry),
        chat_service=ChatService(
            gateway=gateway,
            registry=registry,
            pricing=pricing_service,
            conversation_repo=conversation_repo,
            user_repo=user_repo,
            default_model=settings.default_chat_model,
            max_history_length=settings.chat_max_history_length,
        ),
        completion_stream_service=CompletionStreamService(gateway, settings.default_chat_model),
        auth_service=AuthService(user_repo),
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    return get_services(request).settings


def get_gateway(request: Request) -> GatewayClient:
    return get_services(request).gateway


def get_pricing_service(request: Request) -> PricingCacheService:
    return get_services(request).pricing_service


def get_registry(request: Request) -> ModelRegistryService:
    return get_services(request).registry


def get_recommendation_service(request: Request) -> ModelRecommendationService:
    return get_services(request).recommendation_service


def get_chat_service(request: Request) -> ChatService:
    return get_services(request).chat_service


def get_completion_stream_service(request: Request) -> CompletionStreamService:
    return get_services(request).completion_stream_service


def get_auth_service(request: Request) -> AuthService:
    return get_services(request).auth_service


def get_auth_context(
    request: Request,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> RequestContext:
    """Requires the X-API-Key header"""
    return auth_service.authenticate(request)


# Type annotations for dependencies
SettingsDep = Annotated[Settings, Depends(get_settings)]
GatewayDep = Annotated[GatewayClient, Depends(get_gateway)]
PricingServiceDep = Annotated[PricingCacheService, Depends(get_pricing_service)]
RegistryDep = Annotated[ModelRegistryService, Depends(get_registry)]
RecommendationServiceDep = Annotated[ModelRecommendationService, Depends(get_recommendation_service)]
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
CompletionStreamServiceDep = Annotated[CompletionStreamService, Depends(get_completion_stream_service)]
AuthContextDep = Annotated[RequestContext, Depends(get_auth_context)]

"""radio-service - 电台目录同步与服务入口。"""

import sentry_sdk
from fastapi import FastAPI
from fastapi.concurrency import asynccontextmanager
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from loguru import logger

from radio_service.core.config import settings
from radio_service.core.domain.exceptions import DomainException
from radio_service.core.infrastructure.database.session import check_db_health, init_db
from radio_service.core.infrastructure.health import CatalogHealthResult, HealthStatus
from radio_service.core.infrastructure.logging import setup_logging
from radio_service.core.infrastructure.redis import redis_client
from radio_service.core.interfaces.http.exceptions import (
    domain_exception_handler,
    global_exception_handler,
    request_validation_exception_handler,
)
from radio_service.core.interfaces.http.routers import api_router
from radio_service.modules.favorites.application import (
    dependencies as favorites_app_deps,
)
from radio_service.modules.favorites.infrastructure import (
    dependencies as favorites_infra_deps,
)
from radio_service.modules.stations.application import (
    dependencies as stations_app_deps,
)
from radio_service.modules.stations.infrastructure import (
    dependencies as stations_infra_deps,
)
from radio_service.modules.stations.infrastructure.dependencies import (
    stations_container,
)

APP_VERSION = "0.1.0"


def custom_generate_unique_id(route: APIRoute) -> str:
    """Generate unique operation IDs for OpenAPI."""
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


# Initialize Sentry if configured
if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(
        dsn=str(settings.SENTRY_DSN),
        enable_tracing=True,
        environment=settings.ENVIRONMENT,
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting radio-service...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # 配置错误是致命的，直接阻止启动
    settings.validate_runtime()

    logger.info("Initializing database connection...")
    await init_db()

    await stations_container.warm_up()

    yield

    logger.info("Shutting down radio-service...")
    await stations_container.shutdown()
    await redis_client.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="电台目录同步与服务：抓取、缓存、持久化、查询、收藏与流代理",
    version=APP_VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)

# Dependency overrides (application -> infrastructure)
app.dependency_overrides[stations_app_deps.get_catalog_service] = (
    stations_infra_deps.get_catalog_service
)
app.dependency_overrides[stations_app_deps.get_query_service] = (
    stations_infra_deps.get_query_service
)
app.dependency_overrides[stations_app_deps.get_stream_validator] = (
    stations_infra_deps.get_stream_validator
)
app.dependency_overrides[stations_app_deps.get_stream_relay] = (
    stations_infra_deps.get_stream_relay
)

app.dependency_overrides[favorites_app_deps.get_favorites_service] = (
    favorites_infra_deps.get_favorites_service
)

# Exception handlers
app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Include API router
app.include_router(api_router, prefix=settings.API_PREFIX)


async def check_catalog_health() -> CatalogHealthResult:
    """当前目录状态：只读取已加载或缓存中的快照，不触发抓取。"""
    catalog = stations_container.catalog
    current = catalog.current
    if current is None:
        return CatalogHealthResult(
            status=HealthStatus.DEGRADED,
            error="catalog not loaded",
        )
    return CatalogHealthResult(
        status=HealthStatus.OK,
        total=current.total,
        fingerprint=current.fingerprint,
        updated_at=current.updated_at.isoformat(),
        cache_source=catalog.current_source,
    )


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint.

    - healthy: 所有依赖正常且目录已加载
    - degraded: Redis 或目录异常，但数据库可用（仍可降级服务）
    - unhealthy: 数据库异常
    """
    db_health_result = await check_db_health()
    redis_health_result = await redis_client.health_check()
    catalog_health_result = await check_catalog_health()

    db_ok = db_health_result.status == HealthStatus.OK
    all_ok = (
        db_ok
        and redis_health_result.status == HealthStatus.OK
        and catalog_health_result.status == HealthStatus.OK
    )

    if all_ok:
        overall_status = "healthy"
    elif db_ok:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    return {
        "status": overall_status,
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "components": {
            "database": db_health_result.to_dict(),
            "redis": redis_health_result.to_dict(),
            "catalog": catalog_health_result.to_dict(),
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.SERVER_PORT,
        reload=settings.ENVIRONMENT == "local",
    )

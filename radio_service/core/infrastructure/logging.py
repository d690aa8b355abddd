"""Logging configuration with structlog integration.

提供两种日志记录方式：
1. loguru: 用于一般调试日志
2. structlog: 用于关键业务事件的结构化日志
"""

import sys
from typing import Any

import structlog
from loguru import logger

from radio_service.core.config import settings


def setup_logging() -> None:
    """Configure application logging with structlog and loguru."""
    _configure_structlog()
    _configure_loguru()

    logger.info(f"Logging configured with level: {settings.LOG_LEVEL}")


def _configure_structlog() -> None:
    """配置 structlog 处理器链。"""
    # 本地开发使用人类可读格式，其余环境输出 JSON
    if settings.ENVIRONMENT == "local":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _get_log_level_number(settings.LOG_LEVEL)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _configure_loguru() -> None:
    """配置 loguru。"""
    logger.remove()

    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=settings.ENVIRONMENT == "local",
    )

    if settings.ENVIRONMENT != "local":
        logger.add(
            "logs/radio_service_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="14 days",
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )


def _get_log_level_number(level: str) -> int:
    """将日志级别字符串转换为数字。"""
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 20)


# ============================================================================
# 业务事件日志记录器
# ============================================================================


def get_business_logger() -> structlog.BoundLogger:
    """获取业务事件日志记录器。

    Usage:
        log = get_business_logger()
        log.info("stations_refresh_scheduled", interval_sec=900)
    """
    return structlog.get_logger("business")


class BusinessEvents:
    """业务事件日志助手类。

    Usage:
        BusinessEvents.catalog_refreshed(total=1200, countries=80, duration_ms=5300)
        BusinessEvents.favorite_saved(session="abc...", station_id="...", slot=2)
    """

    _log = structlog.get_logger("business.events")

    @classmethod
    def catalog_refreshed(
        cls,
        total: int,
        fingerprint: str,
        duration_ms: int,
        failed_requests: int = 0,
        **extra: Any,
    ) -> None:
        """记录电台目录刷新完成事件。"""
        cls._log.info(
            "catalog_refreshed",
            event_type="ingest",
            total=total,
            fingerprint=fingerprint,
            duration_ms=duration_ms,
            failed_requests=failed_requests,
            **extra,
        )

    @classmethod
    def country_fetch_failed(
        cls,
        country: str,
        page: int,
        error: str,
        **extra: Any,
    ) -> None:
        """记录单个国家抓取失败事件。"""
        cls._log.warning(
            "country_fetch_failed",
            event_type="ingest_error",
            country=country,
            page=page,
            error=error,
            **extra,
        )

    @classmethod
    def catalog_persisted(
        cls,
        target: str,
        fingerprint: str,
        total: int,
        **extra: Any,
    ) -> None:
        """记录目录写入存储事件（target: object-store / postgres）。"""
        cls._log.info(
            "catalog_persisted",
            event_type="persist",
            target=target,
            fingerprint=fingerprint,
            total=total,
            **extra,
        )

    @classmethod
    def refresh_skipped(cls, reason: str, **extra: Any) -> None:
        """记录因其他进程正在刷新而跳过抓取的事件。"""
        cls._log.info(
            "stations_refresh_skipped",
            event_type="refresh",
            reason=reason,
            **extra,
        )

    @classmethod
    def persistence_skipped(cls, fingerprint: str, **extra: Any) -> None:
        """记录因指纹未变化而跳过写入的事件。"""
        cls._log.info(
            "persistence_skipped",
            event_type="persist",
            fingerprint=fingerprint,
            **extra,
        )

    @classmethod
    def persistence_failed(
        cls,
        target: str,
        fingerprint: str,
        error: str,
        **extra: Any,
    ) -> None:
        """记录存储写入失败事件。"""
        cls._log.error(
            "persistence_failed",
            event_type="persist_error",
            target=target,
            fingerprint=fingerprint,
            error=error,
            **extra,
        )

    @classmethod
    def stream_validation_completed(
        cls,
        checked: int,
        online: int,
        cached: int,
        duration_ms: int,
        **extra: Any,
    ) -> None:
        """记录一轮流地址探测完成事件。"""
        cls._log.info(
            "stream_validation_completed",
            event_type="validation",
            checked=checked,
            online=online,
            offline=checked - online,
            cached=cached,
            duration_ms=duration_ms,
            **extra,
        )

    @classmethod
    def cache_tier_degraded(
        cls,
        tier: str,
        operation: str,
        reason: str,
        **extra: Any,
    ) -> None:
        """记录缓存层降级事件。"""
        cls._log.warning(
            "cache_tier_degraded",
            event_type="degradation",
            tier=tier,
            operation=operation,
            reason=reason,
            **extra,
        )

    @classmethod
    def favorite_saved(
        cls,
        session: str,
        station_id: str,
        slot: int,
        **extra: Any,
    ) -> None:
        """记录收藏保存事件。"""
        cls._log.info(
            "favorite_saved",
            event_type="favorites",
            session=session,
            station_id=station_id,
            slot=slot,
            **extra,
        )

    @classmethod
    def favorite_removed(cls, session: str, station_id: str, **extra: Any) -> None:
        """记录收藏移除事件。"""
        cls._log.info(
            "favorite_removed",
            event_type="favorites",
            session=session,
            station_id=station_id,
            **extra,
        )

    @classmethod
    def station_clicked(
        cls,
        station_id: str,
        forwarded: bool,
        **extra: Any,
    ) -> None:
        """记录电台点击事件。"""
        cls._log.info(
            "station_clicked",
            event_type="click",
            station_id=station_id,
            forwarded=forwarded,
            **extra,
        )

"""Celery 应用配置。

- 使用 JSON 序列化
- 刷新与探测拆分队列
- Beat 按 STATIONS_REFRESH_INTERVAL_SEC 周期刷新电台目录
"""

from celery import Celery
from kombu import Exchange, Queue

from radio_service.core.config import settings
from radio_service.core.infrastructure.celery.queues import TASK_ROUTES, Queues

celery_app = Celery("radio_service")

celery_app.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.CELERY_ACCEPT_CONTENT,
    timezone=settings.TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,  # 15 分钟硬超时（全量抓取较慢）
    task_soft_time_limit=840,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    worker_concurrency=1,
)

default_exchange = Exchange("default", type="direct")
celery_app.conf.task_queues = tuple(
    Queue(queue, default_exchange, routing_key=queue) for queue in Queues
)
celery_app.conf.task_routes = TASK_ROUTES
celery_app.conf.task_default_queue = Queues.INGEST

celery_app.conf.beat_schedule = {
    "refresh-stations": {
        "task": "radio_service.modules.stations.tasks.refresh_stations",
        "schedule": float(settings.STATIONS_REFRESH_INTERVAL_SEC),
        "options": {"queue": Queues.INGEST},
    },
}

celery_app.autodiscover_tasks(["radio_service.modules.stations"], related_name="tasks")

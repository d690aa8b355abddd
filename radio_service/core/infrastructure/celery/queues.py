"""Celery 队列定义。

- q_ingest: 电台目录刷新
- q_validate: 流地址探测
"""

from enum import StrEnum


class Queues(StrEnum):
    """Celery 队列枚举。"""

    INGEST = "q_ingest"
    VALIDATE = "q_validate"


# 任务名称模式 -> 队列
TASK_ROUTES = {
    "radio_service.modules.stations.tasks.refresh_*": {"queue": Queues.INGEST},
    "radio_service.modules.stations.tasks.validate_*": {"queue": Queues.VALIDATE},
}

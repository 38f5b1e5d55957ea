"""작업 이벤트 알림 패키지.

변환 작업의 라이프사이클 이벤트(시작/진행률/로그/완료/실패)를
콘솔, 로그, JSON Lines 스트림 등으로 전달하고,
스케줄러에 프로세스 시작을 알리는 채널을 제공한다.
"""

from framepress.notification.channel import (
    NullTaskChannel,
    QueueTaskChannel,
    TaskChannel,
    TaskStarted,
)
from framepress.notification.events import (
    EventType,
    TaskEvent,
    completed_event,
    failed_event,
    log_event,
    progress_event,
    started_event,
)
from framepress.notification.notifier import Notifier

__all__ = [
    "EventType",
    "Notifier",
    "NullTaskChannel",
    "QueueTaskChannel",
    "TaskChannel",
    "TaskEvent",
    "TaskStarted",
    "completed_event",
    "failed_event",
    "log_event",
    "progress_event",
    "started_event",
]

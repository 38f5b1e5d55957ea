"""작업 라이프사이클 이벤트 타입 및 데이터 모델.

변환 작업이 외부(UI, 콘솔, 로그)로 보내는 이벤트를 나타내는
불변 데이터 모델과 편의 팩토리 함수를 제공한다.

모든 이벤트는 작업 id를 가진다. ``STARTED`` 는 프로세스를 띄울 때마다
발생할 수 있지만, ``COMPLETED`` 와 ``FAILED`` 는 작업당 정확히 하나만 발생한다.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class EventType(Enum):
    """라이프사이클 이벤트 타입."""

    STARTED = "started"
    PROGRESS = "progress"
    LOG = "log"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskEvent:
    """작업 이벤트 데이터.

    Attributes:
        event_type: 이벤트 종류
        task_id: 작업 식별자
        pid: 실행된 프로세스 ID (STARTED)
        progress: 0-100 진행률 (PROGRESS)
        line: 진단 출력 한 줄 (LOG)
        output_path: 최종 출력 파일 (COMPLETED)
        error: 실패 사유 (FAILED)
    """

    event_type: EventType
    task_id: str
    pid: int | None = None
    progress: float | None = None
    line: str | None = None
    output_path: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화용 dict (None 필드 제외)."""
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return {key: value for key, value in data.items() if value is not None}


def started_event(*, task_id: str, pid: int | None) -> TaskEvent:
    """프로세스 시작 이벤트 생성."""
    return TaskEvent(event_type=EventType.STARTED, task_id=task_id, pid=pid)


def progress_event(*, task_id: str, progress: float) -> TaskEvent:
    """진행률 이벤트 생성."""
    return TaskEvent(event_type=EventType.PROGRESS, task_id=task_id, progress=progress)


def log_event(*, task_id: str, line: str) -> TaskEvent:
    """로그 이벤트 생성."""
    return TaskEvent(event_type=EventType.LOG, task_id=task_id, line=line)


def completed_event(*, task_id: str, output_path: str) -> TaskEvent:
    """완료 이벤트 생성."""
    return TaskEvent(event_type=EventType.COMPLETED, task_id=task_id, output_path=output_path)


def failed_event(*, task_id: str, error: str) -> TaskEvent:
    """실패 이벤트 생성."""
    return TaskEvent(event_type=EventType.FAILED, task_id=task_id, error=error)

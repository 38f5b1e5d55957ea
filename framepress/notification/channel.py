"""작업 디스패치 채널.

외부 스케줄러가 실행 중인 작업의 프로세스를 추적·취소할 수 있도록,
프로세스를 띄울 때마다 ``TaskStarted(task_id, pid)`` 를 보낸다.
한 작업이 여러 프로세스를 차례로 띄우면 마지막 pid가 현재 프로세스다.
"""

from __future__ import annotations

import asyncio
import logging
from typing import NamedTuple, Protocol

logger = logging.getLogger(__name__)


class TaskStarted(NamedTuple):
    """프로세스 시작 메시지."""

    task_id: str
    pid: int | None


class TaskChannel(Protocol):
    """스케줄러 방향 메시지 채널."""

    def task_started(self, task_id: str, pid: int | None) -> None:
        """프로세스 시작을 알린다 (실패해도 예외 없음)."""
        ...


class NullTaskChannel:
    """메시지를 버리는 채널 (스케줄러 없이 실행할 때)."""

    def task_started(self, task_id: str, pid: int | None) -> None:
        logger.debug("Task %s started pid %s", task_id, pid)


class QueueTaskChannel:
    """``asyncio.Queue`` 기반 채널.

    큐가 가득 차 있으면 메시지를 버리고 경고만 남긴다.
    """

    def __init__(self, queue: asyncio.Queue[TaskStarted] | None = None) -> None:
        self.queue: asyncio.Queue[TaskStarted] = queue if queue is not None else asyncio.Queue()

    def task_started(self, task_id: str, pid: int | None) -> None:
        """큐에 :class:`TaskStarted` 를 넣는다."""
        try:
            self.queue.put_nowait(TaskStarted(task_id, pid))
        except asyncio.QueueFull:
            logger.warning("Task channel full, dropped start of %s (pid %s)", task_id, pid)

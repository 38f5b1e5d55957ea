"""이벤트 제공자(Provider) 인터페이스 및 구현체.

- :class:`LoggingProvider`: 표준 logging으로 기록
- :class:`ConsoleProvider`: 터미널 프로그레스 바 + 오류 출력
- :class:`JsonLinesProvider`: 이벤트당 JSON 한 줄 (UI 연동용)
- :class:`CallbackProvider`: 임의 콜백 호출
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from typing import Protocol, TextIO

from framepress.notification.events import EventType, TaskEvent
from framepress.utils import truncate_path
from framepress.utils.progress import ProgressBar

logger = logging.getLogger(__name__)


class NotificationProvider(Protocol):
    """이벤트 제공자 프로토콜."""

    @property
    def name(self) -> str:
        """제공자 이름 (로그·테스트 식별용)."""
        ...

    def send(self, event: TaskEvent) -> bool:
        """이벤트 전달.

        Args:
            event: 전달할 이벤트

        Returns:
            전달 성공 시 True, 실패 시 False.
        """
        ...


class LoggingProvider:
    """logging 기반 제공자.

    진단 출력(LOG)은 DEBUG, 나머지는 INFO로 기록한다.
    진행률은 너무 잦으므로 DEBUG로만 남긴다.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    @property
    def name(self) -> str:
        return "logging"

    def send(self, event: TaskEvent) -> bool:
        """이벤트를 로그로 기록."""
        if event.event_type == EventType.STARTED:
            self._log.info("[%s] process started (pid=%s)", event.task_id, event.pid)
        elif event.event_type == EventType.PROGRESS:
            self._log.debug("[%s] progress %.1f%%", event.task_id, event.progress or 0.0)
        elif event.event_type == EventType.LOG:
            self._log.debug("[%s] %s", event.task_id, event.line)
        elif event.event_type == EventType.COMPLETED:
            self._log.info("[%s] completed: %s", event.task_id, event.output_path)
        elif event.event_type == EventType.FAILED:
            self._log.error("[%s] failed: %s", event.task_id, event.error)
        return True


class ConsoleProvider:
    """터미널 프로그레스 바 제공자.

    작업마다 하나의 프로그레스 바를 그리며, 완료/실패 시 줄을 바꾼다.
    ``show_logs=True`` 이면 진단 출력도 함께 표시한다.
    """

    def __init__(
        self,
        labels: dict[str, str] | None = None,
        show_logs: bool = False,
        file: TextIO | None = None,
    ) -> None:
        """
        초기화.

        Args:
            labels: 작업 id → 표시 이름 (보통 입력 파일명)
            show_logs: 진단 출력 표시 여부
            file: 출력 파일 (기본: stderr)
        """
        self._labels = labels or {}
        self._show_logs = show_logs
        self._file = file or sys.stderr
        self._bars: dict[str, ProgressBar] = {}

    @property
    def name(self) -> str:
        return "console"

    def _bar(self, task_id: str) -> ProgressBar:
        if task_id not in self._bars:
            label = truncate_path(self._labels.get(task_id, task_id), max_len=30)
            self._bars[task_id] = ProgressBar(desc=label, file=self._file)
        return self._bars[task_id]

    def send(self, event: TaskEvent) -> bool:
        """이벤트를 터미널에 표시."""
        if event.event_type == EventType.PROGRESS and event.progress is not None:
            self._bar(event.task_id).set(event.progress)
        elif event.event_type == EventType.LOG and self._show_logs:
            self._file.write(f"\n{event.line}\n")
            self._file.flush()
        elif event.event_type == EventType.COMPLETED:
            self._bar(event.task_id).finish()
            self._bars.pop(event.task_id, None)
        elif event.event_type == EventType.FAILED:
            self._file.write(f"\n❌ {event.error}\n")
            self._file.flush()
            self._bars.pop(event.task_id, None)
        return True


class JsonLinesProvider:
    """JSON Lines 제공자.

    이벤트 하나를 JSON 객체 한 줄로 출력한다. 외부 UI가 파이프로
    진행 상황을 읽을 때 사용한다.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    @property
    def name(self) -> str:
        return "jsonl"

    def send(self, event: TaskEvent) -> bool:
        """이벤트를 JSON 한 줄로 출력."""
        try:
            self._stream.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")
            self._stream.flush()
        except (OSError, ValueError) as e:
            logger.warning("JSON 이벤트 출력 실패: %s", e)
            return False
        return True


class CallbackProvider:
    """콜백 제공자 (임베딩·테스트용)."""

    def __init__(self, callback: Callable[[TaskEvent], None], name: str = "callback") -> None:
        self._callback = callback
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def send(self, event: TaskEvent) -> bool:
        """콜백 호출."""
        self._callback(event)
        return True

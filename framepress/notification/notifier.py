"""이벤트 분배기.

등록된 Provider들에게 작업 이벤트를 전달한다.
전달은 최선 노력(best-effort)이며, 전송 실패는 로그로 기록할 뿐
작업을 중단하지 않는다. 알림 전달은 작업 성공 여부에 포함되지 않는다.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from framepress.notification.events import TaskEvent
from framepress.notification.providers import NotificationProvider

logger = logging.getLogger(__name__)


class Notifier:
    """이벤트 분배기.

    Args:
        providers: 이벤트를 받을 Provider 목록
    """

    def __init__(self, providers: Iterable[NotificationProvider] = ()) -> None:
        self._providers: list[NotificationProvider] = list(providers)

    @property
    def provider_count(self) -> int:
        """활성 Provider 수."""
        return len(self._providers)

    @property
    def has_providers(self) -> bool:
        """활성 Provider가 1개 이상인지 여부."""
        return len(self._providers) > 0

    def add_provider(self, provider: NotificationProvider) -> None:
        """Provider 추가."""
        self._providers.append(provider)

    def notify(self, event: TaskEvent) -> None:
        """이벤트를 모든 Provider에 전달한다.

        Provider 예외는 로그로 기록하고 다음 Provider로 계속 진행한다.

        Args:
            event: 전달할 이벤트
        """
        for provider in self._providers:
            try:
                if not provider.send(event):
                    logger.warning("%s 이벤트 전달 실패", provider.name)
            except Exception:
                logger.exception(
                    "%s 이벤트 전달 중 예외 발생 (%s)",
                    provider.name,
                    event.event_type.value,
                )

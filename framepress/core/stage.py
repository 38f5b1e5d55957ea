"""외부 프로세스 단계 실행 공통 로직.

프로세스 하나를 띄우고, 시작을 알린 뒤, 진단 출력을 줄 단위로
콜백에 넘기고, 종료 코드를 돌려준다. 업스케일 파이프라인의 세 단계와
단일 패스 변환이 같은 경로를 사용한다.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence

from framepress.errors import TaskCancelledError
from framepress.ffmpeg.executor import ProcessExit, RunningProcess, Spawner
from framepress.notification import Notifier, TaskChannel, started_event

logger = logging.getLogger(__name__)


async def run_stage(
    spawner: Spawner,
    program: str,
    args: Sequence[str],
    *,
    task_id: str,
    notifier: Notifier,
    channel: TaskChannel,
    on_line: Callable[[str], None],
    on_started: Callable[[], None] | None = None,
    cancel_event: asyncio.Event | None = None,
) -> int | None:
    """
    프로세스 하나를 끝까지 실행.

    실행 직후 스케줄러 채널에 ``TaskStarted`` 를, 알림에 ``Started`` 를 보낸다.
    ``cancel_event`` 가 설정되면 줄을 읽을 때마다 확인하여 프로세스를 종료하고,
    프로세스가 끝날 때까지 기다린 뒤 예외를 올린다.

    Args:
        spawner: 프로세스 생성기
        program: 도구 이름
        args: 인자 리스트
        task_id: 작업 식별자
        notifier: 이벤트 분배기
        channel: 스케줄러 채널
        on_line: 빈 줄을 제외한 stderr 한 줄마다 호출 (stdout은 무시)
        on_started: 시작 알림 직후 한 번 호출
        cancel_event: 취소 신호

    Returns:
        프로세스 종료 코드

    Raises:
        ProcessLaunchError: 프로세스 실행 실패
        TaskCancelledError: 취소 신호 수신
    """
    process = await spawner.spawn(program, args)
    channel.task_started(task_id, process.pid)
    notifier.notify(started_event(task_id=task_id, pid=process.pid))
    if on_started is not None:
        on_started()

    exit_code: int | None = None
    try:
        async with contextlib.aclosing(process.events()) as events:
            async for event in events:
                if cancel_event is not None and cancel_event.is_set():
                    await _terminate(process, task_id)
                    raise TaskCancelledError(f"Task {task_id} cancelled")
                if isinstance(event, ProcessExit):
                    exit_code = event.code
                    break
                if event.stream != "stderr":
                    continue
                text = event.text.strip()
                if text:
                    on_line(text)
    except asyncio.CancelledError:
        await _terminate(process, task_id)
        raise

    logger.debug(f"{program} exited with code {exit_code} (task {task_id})")
    return exit_code


async def _terminate(process: RunningProcess, task_id: str) -> None:
    logger.info(f"Terminating process {process.pid} of task {task_id}")
    code = await process.stop()
    logger.debug(f"Process {process.pid} exited with code {code} after terminate")

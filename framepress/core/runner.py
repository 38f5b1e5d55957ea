"""작업 디스패치.

입력을 검증한 뒤 ML 업스케일 여부에 따라 업스케일 파이프라인 또는
단일 패스 변환기로 작업을 넘긴다. 어떤 실패든 작업당 ``Failed``
이벤트는 정확히 하나만 발생한다.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from framepress.config import ToolSettings
from framepress.core.converter import ConversionRunner
from framepress.core.upscaler import UpscalePipeline
from framepress.errors import ConversionError
from framepress.ffmpeg.executor import AsyncProcessRunner, Spawner
from framepress.ffmpeg.probe import FFprobeProber, Prober
from framepress.models.conversion import ConversionTask
from framepress.notification import Notifier, NullTaskChannel, TaskChannel, failed_event
from framepress.utils.validators import validate_task_input

logger = logging.getLogger(__name__)


async def run_task(
    task: ConversionTask,
    notifier: Notifier,
    channel: TaskChannel | None = None,
    settings: ToolSettings | None = None,
    spawner: Spawner | None = None,
    prober: Prober | None = None,
    workspace_root: Path | None = None,
    cancel_event: asyncio.Event | None = None,
) -> str:
    """
    변환 작업 하나 실행.

    Args:
        task: 변환 작업
        notifier: 이벤트 분배기
        channel: 스케줄러 채널 (기본: 버림)
        settings: 도구 설정 (기본: 기본값)
        spawner: 프로세스 생성기 (기본: settings 기반 AsyncProcessRunner)
        prober: 미디어 분석기 (기본: settings 기반 FFprobeProber)
        workspace_root: 업스케일 작업 디렉토리 기본 위치
        cancel_event: 취소 신호

    Returns:
        출력 파일 경로

    Raises:
        ConversionError: 검증 실패 또는 실행 실패 (``Failed`` 이벤트 발생 후 재전파)
        asyncio.CancelledError: asyncio 작업 취소 (``Failed`` 이벤트 발생 후 재전파)
    """
    settings = settings or ToolSettings()
    channel = channel or NullTaskChannel()
    spawner = spawner or AsyncProcessRunner(settings.program_paths())
    prober = prober or FFprobeProber(settings.ffprobe)

    try:
        validate_task_input(task.file_path, task.config)
        if task.config.ml_upscale:
            pipeline = UpscalePipeline(
                spawner, prober, notifier, channel, settings, workspace_root=workspace_root
            )
            return await pipeline.run(task, cancel_event)
        runner = ConversionRunner(spawner, prober, notifier, channel, settings)
        return await runner.run(task, cancel_event)
    except ConversionError as e:
        logger.error(f"Task {task.id} failed: {e}")
        notifier.notify(failed_event(task_id=task.id, error=str(e)))
        raise
    except asyncio.CancelledError:
        logger.warning(f"Task {task.id} cancelled")
        notifier.notify(failed_event(task_id=task.id, error=f"Task {task.id} cancelled"))
        raise

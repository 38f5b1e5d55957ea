"""단일 패스 변환 실행기.

:func:`~framepress.ffmpeg.args.build_ffmpeg_args` 로 만든 인자로 FFmpeg을
한 번 실행한다. 진행률은 ``time=`` 값과 분석된 전체 길이로 계산한다.
"""

from __future__ import annotations

import asyncio
import logging

from framepress.config import FFMPEG_PROGRAM, ToolSettings
from framepress.core.paths import build_output_path
from framepress.core.stage import run_stage
from framepress.errors import ProbeError, StageFailure
from framepress.ffmpeg.args import build_ffmpeg_args
from framepress.ffmpeg.executor import Spawner
from framepress.ffmpeg.parsers import FFmpegLineClassifier
from framepress.ffmpeg.probe import Prober
from framepress.models.conversion import ConversionConfig, ConversionTask
from framepress.notification import (
    Notifier,
    TaskChannel,
    completed_event,
    log_event,
    progress_event,
)
from framepress.utils.progress import COMPLETE_PERCENT, time_progress
from framepress.utils.timecode import parse_time

logger = logging.getLogger(__name__)


def calculate_active_duration(config: ConversionConfig, duration: str | None) -> float:
    """
    변환 구간 길이 (초).

    Args:
        config: 변환 설정
        duration: 분석된 전체 길이 (``HH:MM:SS.ss``)

    Returns:
        구간 길이. 알 수 없으면 0.
    """
    full_duration = (parse_time(duration) if duration else None) or 0.0
    start_t = (parse_time(config.start_time) if config.start_time else None) or 0.0
    end_t = parse_time(config.end_time) if config.end_time else None
    if end_t is None:
        end_t = full_duration
    return max(end_t - start_t, 0.0)


class ConversionRunner:
    """FFmpeg 단일 패스 변환 실행기."""

    def __init__(
        self,
        spawner: Spawner,
        prober: Prober,
        notifier: Notifier,
        channel: TaskChannel,
        settings: ToolSettings | None = None,
    ) -> None:
        """초기화."""
        self.spawner = spawner
        self.prober = prober
        self.notifier = notifier
        self.channel = channel
        self.settings = settings or ToolSettings()
        self._classifier = FFmpegLineClassifier()

    async def _probe_duration(self, task: ConversionTask) -> float:
        """전체 길이 분석. 실패하면 진행률 없이 진행한다."""
        try:
            probe = await self.prober.probe(task.file_path)
        except ProbeError as e:
            logger.warning(f"Probe failed, progress unavailable: {e}")
            return 0.0
        return calculate_active_duration(task.config, probe.duration)

    async def run(self, task: ConversionTask, cancel_event: asyncio.Event | None = None) -> str:
        """
        변환 실행.

        Args:
            task: 변환 작업
            cancel_event: 취소 신호

        Returns:
            출력 파일 경로

        Raises:
            StageFailure: FFmpeg 비정상 종료
            ProcessLaunchError: FFmpeg 실행 실패
            TaskCancelledError: 취소
        """
        output_path = build_output_path(task.file_path, task.config.container, task.output_name)
        total_duration = await self._probe_duration(task)
        args = build_ffmpeg_args(task.file_path, output_path, task.config)

        last_line = ""
        last_progress = 0.0

        def on_line(text: str) -> None:
            nonlocal last_line, last_progress
            last_line = text
            self.notifier.notify(log_event(task_id=task.id, line=text))
            line = self._classifier.classify(text)
            if line.time_seconds is None or total_duration <= 0:
                return
            progress = time_progress(line.time_seconds, total_duration)
            if progress > last_progress:
                last_progress = progress
                self.notifier.notify(progress_event(task_id=task.id, progress=progress))

        exit_code = await run_stage(
            self.spawner,
            FFMPEG_PROGRAM,
            args,
            task_id=task.id,
            notifier=self.notifier,
            channel=self.channel,
            on_line=on_line,
            on_started=lambda: self.notifier.notify(progress_event(task_id=task.id, progress=0.0)),
            cancel_event=cancel_event,
        )
        if exit_code != 0:
            logger.error(f"Conversion failed for task {task.id} (exit code {exit_code})")
            raise StageFailure("convert", exit_code=exit_code, reason=last_line or None)

        self.notifier.notify(progress_event(task_id=task.id, progress=COMPLETE_PERCENT))
        self.notifier.notify(completed_event(task_id=task.id, output_path=output_path))
        logger.info(f"Conversion completed: {output_path}")
        return output_path

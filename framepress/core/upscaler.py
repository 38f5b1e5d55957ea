"""ML 업스케일 파이프라인.

디코드 → 업스케일 → 인코드 세 단계를 순서대로 실행한다.

1. 디코드: FFmpeg으로 구간을 잘라 무손실 PNG 프레임으로 추출 (``input/``)
2. 업스케일: realesrgan-ncnn-vulkan으로 프레임 확대 (``input/`` → ``output/``)
3. 인코드: 확대된 프레임과 원본 오디오를 다시 합쳐 최종 파일 생성

각 단계는 이전 단계 프로세스가 종료된 뒤에만 시작하며, 진행률은
디코드 [0, 5] → 업스케일 [5, 90] → 인코드 [90, 99] → 완료 100 으로 합쳐진다.
작업 디렉토리는 성공·실패·취소 모든 경로에서 삭제된다.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from pathlib import Path

from framepress.config import FFMPEG_PROGRAM, UPSCALER_PROGRAM, ToolSettings
from framepress.core.converter import calculate_active_duration
from framepress.core.paths import build_output_path
from framepress.core.stage import run_stage
from framepress.errors import InvalidInputError, ProbeError, StageFailure
from framepress.ffmpeg.args import build_crop_filter, build_time_range_args, build_video_codec_args
from framepress.ffmpeg.executor import Spawner
from framepress.ffmpeg.parsers import FFmpegLineClassifier, LineKind, UpscalerLineClassifier
from framepress.ffmpeg.probe import Prober
from framepress.models.conversion import ConversionConfig, ConversionTask
from framepress.notification import (
    Notifier,
    TaskChannel,
    completed_event,
    log_event,
    progress_event,
)
from framepress.utils.progress import (
    COMPLETE_PERCENT,
    decode_progress,
    encode_progress,
    upscale_progress,
)
from framepress.utils.temp_manager import Workspace

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0

# 업스케일 모드 → (배율, 모델 이름)
UPSCALE_MODES: dict[str, tuple[int, str]] = {
    "esrgan-2x": (2, "realesr-animevideov3-x2"),
    "esrgan-4x": (4, "realesr-animevideov3-x4"),
}


@dataclass
class PipelineState:
    """작업 하나의 파이프라인 진행 상태.

    ``total_frames`` 는 디코드 후 실제 프레임 수로 보정될 수 있다.
    """

    task_id: str
    fps: float
    total_frames: int
    completed_frames: int = 0
    last_line: str = ""


def resolve_upscale_mode(mode: str | None) -> tuple[int, str]:
    """
    업스케일 모드 → (배율, 모델 이름).

    Raises:
        InvalidInputError: 지원하지 않는 모드
    """
    if mode not in UPSCALE_MODES:
        raise InvalidInputError(f"Unsupported upscale mode: {mode}")
    return UPSCALE_MODES[mode]


def calculate_total_frames(config: ConversionConfig, duration: str | None, fps: float) -> int:
    """
    구간 길이 × fps 로 총 프레임 수 추정 (올림).

    시작이 없으면 0초, 끝이 없으면 전체 길이를 사용한다.

    Args:
        config: 변환 설정
        duration: 분석된 전체 길이 (``HH:MM:SS.ss``)
        fps: 프레임레이트

    Returns:
        추정 총 프레임 수 (알 수 없으면 0)
    """
    return math.ceil(calculate_active_duration(config, duration) * fps)


def format_frame_rate(fps: float) -> str:
    """``30.0`` → ``"30"``, ``29.97`` → ``"29.97"``."""
    return str(int(fps)) if fps.is_integer() else str(fps)


def build_decode_args(input_path: str, config: ConversionConfig, workspace: Workspace) -> list[str]:
    """
    디코드 단계 FFmpeg 인자.

    구간 인자는 단일 패스 변환과 같고, 크롭만 적용한다.
    """
    args = build_time_range_args(input_path, config)
    crop_filter = build_crop_filter(config.crop)
    if crop_filter:
        args.extend(["-vf", crop_filter])
    args.append(str(workspace.input_pattern))
    return args


def build_upscaler_args(
    workspace: Workspace,
    scale: int,
    model: str,
    settings: ToolSettings,
) -> list[str]:
    """realesrgan-ncnn-vulkan 인자 (모델 디렉토리가 없으면 ``-m`` 생략)."""
    args = [
        "-v",
        "-i",
        str(workspace.input_dir),
        "-o",
        str(workspace.output_dir),
        "-s",
        str(scale),
        "-f",
        "png",
    ]
    if settings.models_dir:
        args.extend(["-m", settings.models_dir])
    args.extend(
        [
            "-n",
            model,
            "-j",
            settings.upscaler_jobs,
            "-g",
            str(settings.gpu_id),
            "-t",
            str(settings.tile_size),
        ]
    )
    return args


def build_encode_args(
    input_path: str,
    output_path: str,
    config: ConversionConfig,
    workspace: Workspace,
    fps: float,
) -> list[str]:
    """
    인코드 단계 FFmpeg 인자.

    입력 0은 업스케일된 프레임 시퀀스(1번부터), 입력 1은 같은 시작 위치로
    탐색한 원본(오디오 전용, 없어도 됨)이다. 프레임은 이미 변환되었으므로
    공간 필터는 적용하지 않는다.
    """
    args = [
        "-framerate",
        format_frame_rate(fps),
        "-start_number",
        "1",
        "-i",
        str(workspace.output_pattern),
    ]
    if config.start_time:
        args.extend(["-ss", config.start_time])
    args.extend(["-i", input_path, "-map", "0:v:0", "-map", "1:a?"])

    args.extend(build_video_codec_args(config))
    if config.fps != "original":
        args.extend(["-r", config.fps])

    args.extend(["-c:a", "copy", "-pix_fmt", "yuv420p", "-shortest", "-y", output_path])
    return args


class UpscalePipeline:
    """ML 업스케일 작업 실행기.

    외부 협력자(프로세스 생성, 미디어 분석, 알림, 스케줄러 채널)는
    모두 주입받으므로 테스트에서 가짜 구현으로 대체할 수 있다.
    """

    def __init__(
        self,
        spawner: Spawner,
        prober: Prober,
        notifier: Notifier,
        channel: TaskChannel,
        settings: ToolSettings | None = None,
        workspace_root: Path | None = None,
    ) -> None:
        """
        초기화.

        Args:
            spawner: 프로세스 생성기
            prober: 미디어 분석기
            notifier: 이벤트 분배기
            channel: 스케줄러 채널
            settings: 도구 설정
            workspace_root: 작업 디렉토리 기본 위치 (기본: settings.temp_dir 또는 OS 임시 디렉토리)
        """
        self.spawner = spawner
        self.prober = prober
        self.notifier = notifier
        self.channel = channel
        self.settings = settings or ToolSettings()
        self.workspace_root = workspace_root or self.settings.temp_dir
        self._ffmpeg_classifier = FFmpegLineClassifier()
        self._upscaler_classifier = UpscalerLineClassifier()

    async def run(self, task: ConversionTask, cancel_event: asyncio.Event | None = None) -> str:
        """
        파이프라인 실행.

        Args:
            task: 변환 작업 (``config.ml_upscale`` 필수)
            cancel_event: 취소 신호

        Returns:
            최종 출력 파일 경로

        Raises:
            InvalidInputError: 지원하지 않는 업스케일 모드
            StageFailure: 분석 또는 단계 실패
            WorkspaceError: 작업 디렉토리 생성 실패
            ProcessLaunchError: 외부 도구 실행 실패
            TaskCancelledError: 취소
        """
        config = task.config
        scale, model = resolve_upscale_mode(config.ml_upscale)
        output_path = build_output_path(task.file_path, config.container, task.output_name)

        try:
            probe = await self.prober.probe(task.file_path)
        except ProbeError as e:
            raise StageFailure("probe", reason=str(e)) from e

        fps = probe.frame_rate or DEFAULT_FPS
        state = PipelineState(
            task_id=task.id,
            fps=fps,
            total_frames=calculate_total_frames(config, probe.duration, fps),
        )
        logger.info(
            f"Upscaling {task.file_path} ({model}, x{scale}): "
            f"fps={fps}, estimated frames={state.total_frames}"
        )

        workspace = Workspace(task.id, base_dir=self.workspace_root).create()
        succeeded = False
        try:
            await self._decode(task, workspace, state, cancel_event)

            actual_frames = workspace.count_frames(workspace.input_dir)
            if actual_frames > 0:
                logger.debug(f"Decoded {actual_frames} frames (estimated {state.total_frames})")
                state.total_frames = actual_frames

            await self._upscale(workspace, scale, model, state, cancel_event)
            await self._encode(task, output_path, workspace, state, cancel_event)
            succeeded = True
        finally:
            if succeeded:
                workspace.cleanup(strict=True)
            else:
                workspace.cleanup()

        self.notifier.notify(progress_event(task_id=task.id, progress=COMPLETE_PERCENT))
        self.notifier.notify(completed_event(task_id=task.id, output_path=output_path))
        logger.info(f"Upscale completed: {output_path}")
        return output_path

    def _emit_log(self, state: PipelineState, tag: str, text: str) -> None:
        self.notifier.notify(log_event(task_id=state.task_id, line=f"[{tag}] {text}"))

    def _emit_progress(self, state: PipelineState, value: float) -> None:
        self.notifier.notify(progress_event(task_id=state.task_id, progress=value))

    async def _decode(
        self,
        task: ConversionTask,
        workspace: Workspace,
        state: PipelineState,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """디코드 단계."""

        def on_line(text: str) -> None:
            self._emit_log(state, "DECODE", text)
            line = self._ffmpeg_classifier.classify(text)
            if line.kind == LineKind.FRAME_PROGRESS and line.frame is not None:
                if state.total_frames > 0:
                    self._emit_progress(state, decode_progress(line.frame, state.total_frames))

        exit_code = await run_stage(
            self.spawner,
            FFMPEG_PROGRAM,
            build_decode_args(task.file_path, task.config, workspace),
            task_id=task.id,
            notifier=self.notifier,
            channel=self.channel,
            on_line=on_line,
            on_started=lambda: self._emit_progress(state, 0.0),
            cancel_event=cancel_event,
        )
        if exit_code != 0:
            logger.error(f"Decode failed for task {task.id} (exit code {exit_code})")
            raise StageFailure("decode", exit_code=exit_code)

    async def _upscale(
        self,
        workspace: Workspace,
        scale: int,
        model: str,
        state: PipelineState,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """업스케일 단계.

        퍼센트 노이즈 줄은 로그로 전달하지 않고 실패 사유(``last_line``)에도 쓰지 않는다.
        """

        def on_line(text: str) -> None:
            line = self._upscaler_classifier.classify(text)
            if line.kind == LineKind.PERCENTAGE_NOISE:
                return
            state.last_line = line.text
            self._emit_log(state, "UPSCALE", line.text)
            if line.kind == LineKind.TRANSITION_MARKER:
                state.completed_frames += 1
                self._emit_progress(
                    state, upscale_progress(state.completed_frames, state.total_frames)
                )

        exit_code = await run_stage(
            self.spawner,
            UPSCALER_PROGRAM,
            build_upscaler_args(workspace, scale, model, self.settings),
            task_id=state.task_id,
            notifier=self.notifier,
            channel=self.channel,
            on_line=on_line,
            cancel_event=cancel_event,
        )
        if exit_code != 0:
            logger.error(f"Upscale failed for task {state.task_id}: {state.last_line}")
            raise StageFailure("upscale", reason=state.last_line or f"exit code {exit_code}")

    async def _encode(
        self,
        task: ConversionTask,
        output_path: str,
        workspace: Workspace,
        state: PipelineState,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """인코드 단계."""

        def on_line(text: str) -> None:
            self._emit_log(state, "ENCODE", text)
            line = self._ffmpeg_classifier.classify(text)
            if line.kind == LineKind.FRAME_PROGRESS and line.frame is not None:
                if state.total_frames > 0:
                    self._emit_progress(state, encode_progress(line.frame, state.total_frames))

        exit_code = await run_stage(
            self.spawner,
            FFMPEG_PROGRAM,
            build_encode_args(task.file_path, output_path, task.config, workspace, state.fps),
            task_id=task.id,
            notifier=self.notifier,
            channel=self.channel,
            on_line=on_line,
            cancel_event=cancel_event,
        )
        if exit_code != 0:
            logger.error(f"Encode failed for task {task.id} (exit code {exit_code})")
            raise StageFailure("encode", exit_code=exit_code)

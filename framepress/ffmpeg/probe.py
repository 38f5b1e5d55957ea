"""미디어 분석기.

ffprobe를 비동기 서브프로세스로 실행하여 입력 파일의
길이·프레임레이트·비트레이트·해상도를 추출한다.

업스케일 파이프라인은 분석 결과로 총 프레임 수를 추정하고,
단일 패스 변환은 진행률 계산용 전체 길이를 얻는다.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

from framepress.errors import ProbeError
from framepress.models.media import MediaProbe
from framepress.utils.codecs import parse_frame_rate_string, parse_probe_bitrate
from framepress.utils.timecode import format_seconds

logger = logging.getLogger(__name__)


class Prober(Protocol):
    """미디어 분석 프로토콜."""

    async def probe(self, file_path: str) -> MediaProbe:
        """입력 파일을 분석한다."""
        ...


def _parse_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_probe_output(payload: dict[str, Any]) -> MediaProbe:
    """
    ffprobe JSON 출력을 :class:`MediaProbe` 로 변환.

    프레임레이트는 ``avg_frame_rate`` 를 우선하고, 없으면 ``r_frame_rate`` 를 쓴다.
    길이는 format → 비디오 스트림 순으로 찾는다.

    Args:
        payload: ``-show_streams -show_format`` JSON

    Returns:
        MediaProbe
    """
    video_stream: dict[str, Any] | None = None
    has_audio = False
    for stream in payload.get("streams", []):
        codec_type = stream.get("codec_type")
        if codec_type == "video" and video_stream is None:
            video_stream = stream
        elif codec_type == "audio":
            has_audio = True

    fmt = payload.get("format", {})

    frame_rate: float | None = None
    width: int | None = None
    height: int | None = None
    if video_stream is not None:
        frame_rate = parse_frame_rate_string(video_stream.get("avg_frame_rate"))
        if not frame_rate:
            frame_rate = parse_frame_rate_string(video_stream.get("r_frame_rate"))
        width = _parse_int(video_stream.get("width"))
        height = _parse_int(video_stream.get("height"))

    duration: str | None = None
    raw_duration = fmt.get("duration") or (video_stream or {}).get("duration")
    if raw_duration is not None:
        try:
            duration = format_seconds(float(raw_duration))
        except (TypeError, ValueError):
            logger.warning(f"Invalid duration in ffprobe output: {raw_duration!r}")

    return MediaProbe(
        duration=duration,
        frame_rate=frame_rate or None,
        bitrate_kbps=parse_probe_bitrate(fmt.get("bit_rate")),
        width=width,
        height=height,
        has_audio=has_audio,
    )


class FFprobeProber:
    """ffprobe 기반 분석기."""

    def __init__(self, ffprobe_path: str = "ffprobe") -> None:
        """초기화."""
        self.ffprobe_path = ffprobe_path

    def build_command(self, file_path: str) -> list[str]:
        """ffprobe 명령어 빌드."""
        return [
            self.ffprobe_path,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            "-show_format",
            file_path,
        ]

    async def probe(self, file_path: str) -> MediaProbe:
        """
        입력 파일 분석.

        Args:
            file_path: 입력 파일 경로

        Returns:
            MediaProbe

        Raises:
            ProbeError: ffprobe 실행 실패 또는 JSON 파싱 실패
        """
        cmd = self.build_command(file_path)
        logger.debug(f"Running ffprobe: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeError(f"Failed to launch ffprobe: {e}") from e

        stdout, stderr = await proc.communicate()

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            logger.error(f"ffprobe failed with code {proc.returncode}: {message}")
            raise ProbeError(f"ffprobe failed with exit code {proc.returncode}: {message}")

        try:
            payload = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse ffprobe output: {e}") from e

        return parse_probe_output(payload)

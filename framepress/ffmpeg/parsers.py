"""외부 도구 진단 출력 분류기.

FFmpeg과 Real-ESRGAN의 stderr 한 줄을 진행률 정보로 분류한다.
도구 출력 형식이 바뀌면 이 모듈만 수정하면 되도록
도구별 분류기를 :class:`LineClassifier` 프로토콜 뒤에 둔다.

분류:
    - ``FRAME_PROGRESS``: ``frame=<n>`` 포함 (FFmpeg)
    - ``TIME_PROGRESS``: ``time=`` 만 있고 frame 없음 (오디오 전용 FFmpeg)
    - ``PERCENTAGE_NOISE``: ``12.34%`` 같은 퍼센트 전용 줄 (Real-ESRGAN)
    - ``TRANSITION_MARKER``: ``in.png -> out.png`` 프레임 완료 줄 (Real-ESRGAN)
    - ``EMPTY`` / ``OTHER``
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

_FRAME_RE = re.compile(r"frame=\s*(\d+)")
_TIME_RE = re.compile(r"time=\s*(-?\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

# Real-ESRGAN이 프레임 하나를 끝낼 때 출력하는 화살표
TRANSITION_MARKERS = ("→", "->")


class LineKind(Enum):
    """진단 출력 줄 종류."""

    FRAME_PROGRESS = "frame_progress"
    TIME_PROGRESS = "time_progress"
    PERCENTAGE_NOISE = "percentage_noise"
    TRANSITION_MARKER = "transition_marker"
    EMPTY = "empty"
    OTHER = "other"


@dataclass(frozen=True)
class ClassifiedLine:
    """분류된 진단 출력 한 줄.

    Attributes:
        kind: 줄 종류
        text: 앞뒤 공백을 제거한 원문
        frame: ``frame=`` 값 (있을 때만)
        time_seconds: ``time=`` 값 (초, 있을 때만)
    """

    kind: LineKind
    text: str
    frame: int | None = None
    time_seconds: float | None = None


class LineClassifier(Protocol):
    """도구별 진단 출력 분류기 프로토콜."""

    def classify(self, line: str) -> ClassifiedLine:
        """한 줄을 분류한다."""
        ...


def parse_stats_time(line: str) -> float | None:
    """FFmpeg 통계 줄의 ``time=HH:MM:SS.xx`` 값을 초로 변환한다.

    Args:
        line: FFmpeg stderr 출력 한 줄.
            예: ``"frame=1234 fps=29.97 time=00:01:30.50 bitrate=5000.0kbits/s"``

    Returns:
        처리된 시점 (초). ``time=`` 이 없으면 None.
    """
    time_match = _TIME_RE.search(line)
    if not time_match:
        return None

    hours = int(time_match.group(1))
    minutes = int(time_match.group(2))
    seconds = float(time_match.group(3))
    return hours * 3600 + minutes * 60 + seconds


def is_percentage_line(text: str) -> bool:
    """숫자로 시작하고 ``%`` 로 끝나는 줄인지 (공백 제거 후)."""
    return bool(text) and text[0].isdigit() and text.endswith("%")


class FFmpegLineClassifier:
    """FFmpeg stderr 분류기."""

    def classify(self, line: str) -> ClassifiedLine:
        """``frame=`` / ``time=`` 진행률 줄을 분류한다."""
        text = line.strip()
        if not text:
            return ClassifiedLine(LineKind.EMPTY, text)

        frame_match = _FRAME_RE.search(text)
        time_seconds = parse_stats_time(text)

        if frame_match:
            return ClassifiedLine(
                LineKind.FRAME_PROGRESS,
                text,
                frame=int(frame_match.group(1)),
                time_seconds=time_seconds,
            )
        if time_seconds is not None:
            return ClassifiedLine(LineKind.TIME_PROGRESS, text, time_seconds=time_seconds)
        return ClassifiedLine(LineKind.OTHER, text)


class UpscalerLineClassifier:
    """realesrgan-ncnn-vulkan stderr 분류기.

    ``-v`` 옵션으로 실행하면 프레임마다 ``input -> output done`` 형태의
    줄을 출력하고, 그 사이에 타일 진행률(``12.50%``)을 반복 출력한다.
    """

    def classify(self, line: str) -> ClassifiedLine:
        """퍼센트 노이즈와 프레임 완료 표시를 구분한다."""
        text = line.strip()
        if not text:
            return ClassifiedLine(LineKind.EMPTY, text)
        if is_percentage_line(text):
            return ClassifiedLine(LineKind.PERCENTAGE_NOISE, text)
        if any(marker in text for marker in TRANSITION_MARKERS):
            return ClassifiedLine(LineKind.TRANSITION_MARKER, text)
        return ClassifiedLine(LineKind.OTHER, text)

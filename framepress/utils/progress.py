"""진행률 계산 및 표시 유틸리티.

업스케일 파이프라인은 세 단계의 서로 다른 진행 신호를 하나의
0-100 값으로 합친다. 단계별 구간은 겹치지 않고 순서대로 증가한다::

    디코드 [0, 5] → 업스케일 [5, 90] → 인코드 [90, 99] → 완료 100
"""

import sys
from typing import TextIO

DECODE_RANGE = (0.0, 5.0)
UPSCALE_RANGE = (5.0, 90.0)
ENCODE_RANGE = (90.0, 99.0)
COMPLETE_PERCENT = 100.0

# 단일 패스 변환은 완료 이벤트 전까지 99%를 넘지 않는다
SINGLE_PASS_CAP = 99.0


def decode_progress(frame: int, total_frames: int) -> float:
    """
    디코드 단계 진행률.

    Args:
        frame: FFmpeg ``frame=`` 값
        total_frames: 추정 총 프레임 수 (0보다 커야 함)

    Returns:
        0-5 사이 진행률
    """
    return min(frame / total_frames * DECODE_RANGE[1], DECODE_RANGE[1])


def upscale_progress(completed_frames: int, total_frames: int) -> float:
    """
    업스케일 단계 진행률.

    총 프레임 수를 모르면 완료 프레임 하나당 1%씩 (최대 85) 증가시킨다.

    Args:
        completed_frames: 업스케일 완료 프레임 수
        total_frames: 총 프레임 수 (0이면 알 수 없음)

    Returns:
        5-90 사이 진행률
    """
    start, end = UPSCALE_RANGE
    span = end - start
    if total_frames > 0:
        progress = start + completed_frames / total_frames * span
    else:
        progress = start + min(float(completed_frames), span)
    return min(progress, end)


def encode_progress(frame: int, total_frames: int) -> float:
    """
    인코드 단계 진행률.

    Args:
        frame: FFmpeg ``frame=`` 값
        total_frames: 총 프레임 수 (0보다 커야 함)

    Returns:
        90-99 사이 진행률
    """
    return min(ENCODE_RANGE[0] + frame / total_frames * 10.0, ENCODE_RANGE[1])


def time_progress(current_time: float, total_duration: float) -> float:
    """
    처리 시각 기반 진행률 (단일 패스 변환).

    Args:
        current_time: 현재 처리된 시간 (초)
        total_duration: 전체 길이 (초)

    Returns:
        0-99 사이 진행률. 전체 길이를 모르면 0.
    """
    if total_duration <= 0:
        return 0.0
    percent = current_time / total_duration * 100
    return min(max(percent, 0.0), SINGLE_PASS_CAP)


class ProgressBar:
    """터미널 프로그레스 바."""

    def __init__(
        self,
        desc: str = "",
        width: int = 40,
        file: TextIO | None = None,
    ) -> None:
        """
        초기화.

        Args:
            desc: 설명
            width: 프로그레스 바 너비
            file: 출력 파일 (기본: stderr)
        """
        self.percent = 0.0
        self.desc = desc
        self.width = width
        self.file = file or sys.stderr

    def set(self, percent: float) -> None:
        """
        절대 진행률 설정.

        Args:
            percent: 진행률 (0-100, 범위 밖은 보정)
        """
        self.percent = min(max(percent, 0.0), COMPLETE_PERCENT)
        self._display()

    def finish(self) -> None:
        """완료 처리."""
        self.percent = COMPLETE_PERCENT
        self._display()
        self.file.write("\n")
        self.file.flush()

    def render(self) -> str:
        """
        프로그레스 바 문자열 생성.

        Returns:
            렌더링된 프로그레스 바
        """
        filled = int(self.width * self.percent / COMPLETE_PERCENT)
        bar = "█" * filled + "░" * (self.width - filled)

        parts = []
        if self.desc:
            parts.append(self.desc)
        parts.append(f"[{bar}]")
        parts.append(f"{self.percent:5.1f}%")

        return " ".join(parts)

    def _display(self) -> None:
        """화면에 출력."""
        self.file.write(f"\r{self.render()}")
        self.file.flush()

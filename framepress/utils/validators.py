"""입력 검증 유틸리티.

외부 프로세스를 실행하기 전에 잘못된 요청을 거른다.
여기서 검증하지 않는 필드는 FFmpeg에 그대로 전달된다.
"""

import logging
import re
import shutil
from pathlib import Path

from framepress.errors import InvalidInputError
from framepress.models.conversion import ConversionConfig
from framepress.utils.codecs import is_audio_only_container

logger = logging.getLogger(__name__)

# 부호 + 숫자만 허용 (공백·밑줄 불허)
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


def _parse_dimension(value: str, label: str) -> int:
    """해상도 문자열을 정수로 변환한다."""
    if not _INTEGER_RE.match(value):
        raise InvalidInputError(f"Invalid custom {label}: {value}")
    return int(value)


def validate_task_input(file_path: str, config: ConversionConfig) -> None:
    """
    변환 작업 입력 검증.

    Args:
        file_path: 입력 파일 경로
        config: 변환 설정

    Raises:
        InvalidInputError: 파일이 없거나, 일반 파일이 아니거나,
            사용자 해상도 또는 비트레이트가 잘못된 경우
    """
    path = Path(file_path)
    if not path.exists():
        raise InvalidInputError(f"Input file does not exist: {file_path}")

    if not path.is_file():
        raise InvalidInputError(f"Input path is not a file: {file_path}")

    if config.resolution == "custom":
        width_str = config.custom_width if config.custom_width is not None else "-1"
        height_str = config.custom_height if config.custom_height is not None else "-1"

        width = _parse_dimension(width_str, "width")
        height = _parse_dimension(height_str, "height")

        if width == 0 or height == 0:
            raise InvalidInputError("Resolution dimensions cannot be zero")
        if width < -1 or height < -1:
            raise InvalidInputError(
                "Resolution dimensions cannot be negative (except -1 for auto)"
            )

    if config.video_bitrate_mode == "bitrate" and not is_audio_only_container(config.container):
        try:
            bitrate = float(config.video_bitrate)
        except ValueError:
            raise InvalidInputError(f"Invalid video bitrate: {config.video_bitrate}") from None
        if bitrate <= 0:
            raise InvalidInputError("Video bitrate must be positive")


def validate_tool_available(command: str) -> str:
    """
    외부 도구 가용성 확인.

    Args:
        command: 실행 파일 이름 또는 경로 (ffmpeg, realesrgan-ncnn-vulkan 등)

    Returns:
        실행 파일 경로

    Raises:
        InvalidInputError: 실행 파일을 찾을 수 없음
    """
    path = shutil.which(command)
    if path is None:
        raise InvalidInputError(f"{command} not found. Install it or set its path in config.toml")

    logger.debug(f"Found {command}: {path}")
    return path

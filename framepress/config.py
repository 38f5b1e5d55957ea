"""TOML 설정 파일 및 환경변수 기본값 관리.

``~/.framepress/config.toml`` 에서 외부 도구 경로와 업스케일러 옵션을
로드하고, 환경변수 Shim 패턴으로 설정값을 주입한다.

우선순위::

    CLI 옵션 > 환경변수 > config.toml > 기본값

실행기들은 최종 결과를 :class:`ToolSettings` 하나로 받는다
(:func:`get_tool_settings`).
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# 외부 도구 이름 (AsyncProcessRunner 매핑 키)
FFMPEG_PROGRAM = "ffmpeg"
UPSCALER_PROGRAM = "realesrgan-ncnn-vulkan"

# 환경변수 매핑
ENV_FFMPEG_PATH = "FRAMEPRESS_FFMPEG_PATH"
ENV_FFPROBE_PATH = "FRAMEPRESS_FFPROBE_PATH"
ENV_TEMP_DIR = "FRAMEPRESS_TEMP_DIR"
ENV_UPSCALER_PATH = "FRAMEPRESS_UPSCALER_PATH"
ENV_MODELS_DIR = "FRAMEPRESS_MODELS_DIR"
ENV_UPSCALER_JOBS = "FRAMEPRESS_UPSCALER_JOBS"
ENV_GPU_ID = "FRAMEPRESS_GPU_ID"
ENV_TILE_SIZE = "FRAMEPRESS_TILE_SIZE"

DEFAULT_UPSCALER_JOBS = "4:4:4"


@dataclass(frozen=True)
class GeneralConfig:
    """``config.toml`` 의 ``[general]`` 섹션.

    모든 필드가 ``None`` 이면 해당 옵션은 환경변수 또는 기본값을 사용한다.
    """

    ffmpeg_path: str | None = None
    ffprobe_path: str | None = None
    temp_dir: str | None = None


@dataclass(frozen=True)
class UpscalerConfig:
    """``config.toml`` 의 ``[upscaler]`` 섹션 (realesrgan-ncnn-vulkan)."""

    binary: str | None = None
    models_dir: str | None = None
    jobs: str | None = None  # load:proc:save 스레드 수
    gpu_id: int | None = None
    tile_size: int | None = None  # 0 = 자동


@dataclass(frozen=True)
class AppConfig:
    """애플리케이션 전체 설정 (``[general]`` + ``[upscaler]``)."""

    general: GeneralConfig = field(default_factory=GeneralConfig)
    upscaler: UpscalerConfig = field(default_factory=UpscalerConfig)


@dataclass(frozen=True)
class ToolSettings:
    """실행기가 사용하는 최종 도구 설정.

    Attributes:
        ffmpeg: ffmpeg 실행 파일
        ffprobe: ffprobe 실행 파일
        upscaler: realesrgan-ncnn-vulkan 실행 파일
        models_dir: 업스케일 모델 디렉토리 (None이면 ``-m`` 생략)
        upscaler_jobs: ``-j`` 값
        gpu_id: ``-g`` 값
        tile_size: ``-t`` 값 (0 = 자동)
        temp_dir: 작업 디렉토리 기본 위치 (None이면 OS 임시 디렉토리)
    """

    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    upscaler: str = UPSCALER_PROGRAM
    models_dir: str | None = None
    upscaler_jobs: str = DEFAULT_UPSCALER_JOBS
    gpu_id: int = 0
    tile_size: int = 0
    temp_dir: Path | None = None

    def program_paths(self) -> dict[str, str]:
        """도구 이름 → 실행 파일 경로."""
        return {FFMPEG_PROGRAM: self.ffmpeg, UPSCALER_PROGRAM: self.upscaler}


def _warn_type(field_name: str, expected: str, value: object) -> None:
    """타입 불일치 경고 출력."""
    logger.warning(
        "config: %s 타입 오류 (expected %s, got %s)",
        field_name,
        expected,
        type(value).__name__,
    )


def _parse_str(data: dict[str, object], key: str, section: str) -> str | None:
    """TOML dict에서 문자열 필드를 안전하게 파싱한다."""
    raw = data.get(key)
    if isinstance(raw, str):
        return raw
    if raw is not None:
        _warn_type(f"{section}.{key}", "str", raw)
    return None


def _parse_int(data: dict[str, object], key: str, section: str) -> int | None:
    """TOML dict에서 0 이상 정수 필드를 안전하게 파싱한다 (bool 제외)."""
    raw = data.get(key)
    if isinstance(raw, int) and not isinstance(raw, bool):
        if raw >= 0:
            return raw
        logger.warning("config: %s.%s 값 오류: %r", section, key, raw)
        return None
    if raw is not None:
        _warn_type(f"{section}.{key}", "int", raw)
    return None


def get_default_config_path() -> Path:
    """기본 설정 파일 경로 반환."""
    return Path.home() / ".framepress" / "config.toml"


def _parse_general(data: dict[str, object]) -> GeneralConfig:
    """[general] 섹션 파싱. 타입 오류 시 해당 필드 무시."""
    section = "general"
    return GeneralConfig(
        ffmpeg_path=_parse_str(data, "ffmpeg_path", section),
        ffprobe_path=_parse_str(data, "ffprobe_path", section),
        temp_dir=_parse_str(data, "temp_dir", section),
    )


def _parse_upscaler(data: dict[str, object]) -> UpscalerConfig:
    """[upscaler] 섹션 파싱. 타입 오류 시 해당 필드 무시."""
    section = "upscaler"

    # jobs: "load:proc:save" 형식 검증
    jobs = _parse_str(data, "jobs", section)
    if jobs is not None and not _is_valid_jobs(jobs):
        logger.warning("config: upscaler.jobs 값 오류: %r", jobs)
        jobs = None

    return UpscalerConfig(
        binary=_parse_str(data, "binary", section),
        models_dir=_parse_str(data, "models_dir", section),
        jobs=jobs,
        gpu_id=_parse_int(data, "gpu_id", section),
        tile_size=_parse_int(data, "tile_size", section),
    )


def _is_valid_jobs(value: str) -> bool:
    """``4:4:4`` 형식 여부."""
    parts = value.split(":")
    return len(parts) == 3 and all(part.isdigit() for part in parts)


def load_config(path: Path | None = None) -> AppConfig:
    """
    TOML 설정 파일 로드.

    Args:
        path: 설정 파일 경로 (None이면 기본 경로 사용)

    Returns:
        AppConfig (파일 없음/에러 시 빈 AppConfig)
    """
    config_path = path or get_default_config_path()

    if not config_path.is_file():
        return AppConfig()

    try:
        with config_path.open("rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        logger.warning(f"config: TOML 문법 오류 ({config_path}): {e}")
        return AppConfig()
    except OSError as e:
        logger.warning(f"config: 파일 읽기 실패 ({config_path}): {e}")
        return AppConfig()

    general_data = raw.get("general", {})
    upscaler_data = raw.get("upscaler", {})

    if isinstance(general_data, dict):
        general = _parse_general(general_data)
    else:
        logger.warning(
            "config: [general] 섹션이 테이블이 아닙니다 (got %s)",
            type(general_data).__name__,
        )
        general = GeneralConfig()

    if isinstance(upscaler_data, dict):
        upscaler = _parse_upscaler(upscaler_data)
    else:
        logger.warning(
            "config: [upscaler] 섹션이 테이블이 아닙니다 (got %s)",
            type(upscaler_data).__name__,
        )
        upscaler = UpscalerConfig()

    return AppConfig(general=general, upscaler=upscaler)


def apply_config_to_env(config: AppConfig) -> None:
    """
    설정값을 환경변수에 주입 (미설정인 경우만).

    이미 설정된 환경변수는 보존된다 (환경변수 > config).
    """
    mappings: list[tuple[str, str | None]] = [
        (ENV_FFMPEG_PATH, config.general.ffmpeg_path),
        (ENV_FFPROBE_PATH, config.general.ffprobe_path),
        (ENV_TEMP_DIR, config.general.temp_dir),
        (ENV_UPSCALER_PATH, config.upscaler.binary),
        (ENV_MODELS_DIR, config.upscaler.models_dir),
        (ENV_UPSCALER_JOBS, config.upscaler.jobs),
    ]

    # int 필드
    if config.upscaler.gpu_id is not None:
        mappings.append((ENV_GPU_ID, str(config.upscaler.gpu_id)))
    if config.upscaler.tile_size is not None:
        mappings.append((ENV_TILE_SIZE, str(config.upscaler.tile_size)))

    for env_key, value in mappings:
        if value is not None and env_key not in os.environ:
            os.environ[env_key] = value


def generate_default_config() -> str:
    """주석 포함 기본 설정 파일 템플릿 반환."""
    return """\
# framepress 설정 파일
# 위치: ~/.framepress/config.toml
#
# 우선순위: CLI 옵션 > 환경변수 > 이 파일 > 기본값
# 주석 해제 후 값을 수정하세요.

[general]
# ffmpeg_path = "/usr/local/bin/ffmpeg"     # FRAMEPRESS_FFMPEG_PATH
# ffprobe_path = "/usr/local/bin/ffprobe"   # FRAMEPRESS_FFPROBE_PATH
# temp_dir = "/tmp"                         # 업스케일 작업 디렉토리 위치 (FRAMEPRESS_TEMP_DIR)

[upscaler]
# binary = "~/bin/realesrgan-ncnn-vulkan"   # FRAMEPRESS_UPSCALER_PATH
# models_dir = "~/bin/models"               # FRAMEPRESS_MODELS_DIR
# jobs = "4:4:4"                            # load:proc:save 스레드 (FRAMEPRESS_UPSCALER_JOBS)
# gpu_id = 0                                # FRAMEPRESS_GPU_ID
# tile_size = 0                             # 0 = 자동 (FRAMEPRESS_TILE_SIZE)
"""


# ---------------------------------------------------------------------------
# 환경변수 기본값 헬퍼
# ---------------------------------------------------------------------------


def _get_env_path(env_key: str) -> str | None:
    """환경변수에서 경로 문자열을 가져온다 (``~`` 확장)."""
    env_val = os.environ.get(env_key)
    if not env_val:
        return None
    return str(Path(env_val).expanduser())


def _get_env_int(env_key: str, default: int) -> int:
    """환경변수에서 0 이상 정수를 가져온다. 잘못된 값이면 기본값."""
    env_val = os.environ.get(env_key)
    if not env_val:
        return default
    try:
        val = int(env_val)
    except ValueError:
        logger.warning("%s=%s is not a valid number", env_key, env_val)
        return default
    if val < 0:
        logger.warning("%s=%s must be >= 0, using %d", env_key, env_val, default)
        return default
    return val


def get_default_temp_dir() -> Path | None:
    """환경변수 ``FRAMEPRESS_TEMP_DIR`` 에서 작업 디렉토리 위치를 가져온다.

    Returns:
        유효한 디렉토리 경로 또는 None (OS 임시 디렉토리 사용).
    """
    env_dir = _get_env_path(ENV_TEMP_DIR)
    if env_dir:
        path = Path(env_dir)
        if path.is_dir():
            return path
        logger.warning("%s=%s is not a valid directory", ENV_TEMP_DIR, env_dir)
    return None


def get_default_upscaler_jobs() -> str:
    """환경변수 ``FRAMEPRESS_UPSCALER_JOBS`` 에서 ``-j`` 값을 가져온다."""
    env_jobs = os.environ.get(ENV_UPSCALER_JOBS)
    if not env_jobs:
        return DEFAULT_UPSCALER_JOBS
    if _is_valid_jobs(env_jobs):
        return env_jobs
    logger.warning("%s=%s is not a valid jobs value (expected L:P:S)", ENV_UPSCALER_JOBS, env_jobs)
    return DEFAULT_UPSCALER_JOBS


def get_tool_settings() -> ToolSettings:
    """환경변수(설정 파일 주입 포함)로부터 :class:`ToolSettings` 를 만든다."""
    return ToolSettings(
        ffmpeg=_get_env_path(ENV_FFMPEG_PATH) or "ffmpeg",
        ffprobe=_get_env_path(ENV_FFPROBE_PATH) or "ffprobe",
        upscaler=_get_env_path(ENV_UPSCALER_PATH) or UPSCALER_PROGRAM,
        models_dir=_get_env_path(ENV_MODELS_DIR),
        upscaler_jobs=get_default_upscaler_jobs(),
        gpu_id=_get_env_int(ENV_GPU_ID, 0),
        tile_size=_get_env_int(ENV_TILE_SIZE, 0),
        temp_dir=get_default_temp_dir(),
    )

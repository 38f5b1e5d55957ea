"""변환 요청 도메인 모델.

작업 하나의 변환 설정을 표현하는 불변(frozen) 데이터클래스 정의.
설정은 작업 시작 전에 상위 계층에서 만들어지며 작업 동안 읽기 전용이다.

클래스:
    - :class:`MetadataMode`: 메타데이터 정책 (Clean / Replace / Preserve)
    - :class:`MetadataConfig`: 정책 + 덮어쓸 태그 값
    - :class:`CropConfig`: 원본 픽셀 좌표 기준 크롭 영역
    - :class:`ConversionConfig`: 컨테이너·코덱·필터·트랙·메타데이터 전체 설정
    - :class:`ConversionTask`: 작업 단위 (id + 입력 경로 + 설정)
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# 볼륨 100%와 같다고 간주하는 허용 오차
VOLUME_EPSILON = 0.01

# 메타데이터 태그 출력 순서
METADATA_TAG_KEYS = ("title", "artist", "album", "genre", "date", "comment")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def round_half_up(value: float) -> int:
    """0.5를 0에서 먼 쪽으로 반올림 (``round()`` 의 은행가 반올림 회피)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _snake_case(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _normalize_keys(data: Mapping[str, Any], known: set[str], section: str) -> dict[str, Any]:
    """camelCase/snake_case 키를 snake_case로 통일하고 모르는 키는 버린다."""
    result: dict[str, Any] = {}
    for raw_key, value in data.items():
        key = _snake_case(raw_key)
        if key not in known:
            logger.warning("task: unknown %s field ignored: %s", section, raw_key)
            continue
        result[key] = value
    return result


class MetadataMode(Enum):
    """메타데이터 정책.

    Values:
        CLEAN: 원본 메타데이터를 모두 제거
        REPLACE: 제거 후 입력한 태그만 다시 기록
        PRESERVE: 원본을 유지하고 입력한 태그만 덮어씀
    """

    CLEAN = "clean"
    REPLACE = "replace"
    PRESERVE = "preserve"

    @classmethod
    def parse(cls, value: str | MetadataMode) -> MetadataMode:
        """대소문자 무시 문자열 → MetadataMode."""
        if isinstance(value, MetadataMode):
            return value
        return cls(value.strip().lower())


@dataclass(frozen=True)
class MetadataConfig:
    """메타데이터 정책과 태그 값.

    비어있거나 None인 태그는 절대 출력되지 않는다.
    """

    mode: MetadataMode = MetadataMode.PRESERVE
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    genre: str | None = None
    date: str | None = None
    comment: str | None = None

    def tags(self) -> Iterator[tuple[str, str]]:
        """비어있지 않은 ``(키, 값)`` 쌍을 고정 순서로 반환."""
        for key in METADATA_TAG_KEYS:
            value = getattr(self, key)
            if value:
                yield key, value

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MetadataConfig:
        """dict → MetadataConfig."""
        values = _normalize_keys(data, {f.name for f in fields(cls)}, "metadata")
        if "mode" in values:
            values["mode"] = MetadataMode.parse(values["mode"])
        return cls(**values)


@dataclass(frozen=True)
class CropConfig:
    """원본 픽셀 좌표(실수) 기준 크롭 영역."""

    enabled: bool = False
    x: float = 0.0
    y: float = 0.0
    width: float = 1.0
    height: float = 1.0

    def effective(self) -> tuple[int, int, int, int]:
        """
        실제 적용할 ``(width, height, x, y)``.

        너비·높이는 1 이상, 좌표는 0 이상으로 보정 후 반올림한다.
        """
        return (
            round_half_up(max(self.width, 1.0)),
            round_half_up(max(self.height, 1.0)),
            round_half_up(max(self.x, 0.0)),
            round_half_up(max(self.y, 0.0)),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CropConfig:
        """dict → CropConfig."""
        values = _normalize_keys(data, {f.name for f in fields(cls)}, "crop")
        for key in ("x", "y", "width", "height"):
            if key in values:
                values[key] = float(values[key])
        if "enabled" in values:
            values["enabled"] = bool(values["enabled"])
        return cls(**values)


@dataclass(frozen=True)
class ConversionConfig:
    """변환 요청 하나의 전체 설정.

    Attributes:
        container: 출력 컨테이너 (``mp4``, ``mkv``, ``mp3`` 등)
        video_codec: FFmpeg 비디오 인코더 이름
        video_bitrate_mode: ``bitrate`` 이면 고정 비트레이트, 그 외는 품질 기반
        video_bitrate: 비디오 비트레이트 (kbit/s 문자열)
        crf: 소프트웨어 인코더 CRF 값
        quality: NVENC/VideoToolbox 품질 (0-100, 높을수록 고화질)
        preset: 인코더 프리셋 (x264 스타일 이름)
        rotation: ``0`` / ``90`` / ``180`` / ``270``
        resolution: ``original`` / ``custom`` / ``1080p`` / ``720p`` / ``480p``
        custom_width: ``custom`` 해상도 너비 (``-1`` = 자동)
        custom_height: ``custom`` 해상도 높이 (``-1`` = 자동)
        fps: ``original`` 또는 출력 프레임레이트
        audio_channels: ``original`` / ``stereo`` / ``mono``
        audio_volume: 볼륨 퍼센트 (100 = 변경 없음)
        selected_audio_tracks: 유지할 오디오 스트림 인덱스
        selected_subtitle_tracks: 유지할 자막 스트림 인덱스
        start_time: 시작 시각 (``HH:MM:SS``)
        end_time: 종료 시각 (``HH:MM:SS``)
        ml_upscale: ``esrgan-2x`` / ``esrgan-4x`` (None이면 단일 패스 변환)
    """

    container: str = "mp4"
    video_codec: str = "libx264"
    video_bitrate_mode: str = "quality"
    video_bitrate: str = "5000"
    crf: int = 23
    quality: int = 50
    preset: str = "medium"
    nvenc_spatial_aq: bool = False
    nvenc_temporal_aq: bool = False
    videotoolbox_allow_sw: bool = False
    flip_horizontal: bool = False
    flip_vertical: bool = False
    rotation: str = "0"
    crop: CropConfig | None = None
    resolution: str = "original"
    custom_width: str | None = None
    custom_height: str | None = None
    scaling_algorithm: str = "bicubic"
    fps: str = "original"
    subtitle_burn_path: str | None = None
    audio_codec: str = "aac"
    audio_bitrate: str = "128"
    audio_channels: str = "original"
    audio_normalize: bool = False
    audio_volume: float = 100.0
    selected_audio_tracks: tuple[int, ...] = ()
    selected_subtitle_tracks: tuple[int, ...] = ()
    start_time: str | None = None
    end_time: str | None = None
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    ml_upscale: str | None = None

    @property
    def burns_subtitles(self) -> bool:
        """자막 번인 경로가 지정되었는지 여부."""
        return bool(self.subtitle_burn_path)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConversionConfig:
        """
        JSON 호환 dict → ConversionConfig.

        camelCase 키(UI에서 전달)와 snake_case 키를 모두 허용한다.
        모르는 키는 경고 로그 후 무시한다.

        Args:
            data: 설정 dict

        Returns:
            ConversionConfig
        """
        values = _normalize_keys(data, {f.name for f in fields(cls)}, "config")

        crop = values.get("crop")
        if isinstance(crop, Mapping):
            values["crop"] = CropConfig.from_dict(crop)

        metadata = values.get("metadata")
        if isinstance(metadata, Mapping):
            values["metadata"] = MetadataConfig.from_dict(metadata)
        elif metadata is None:
            values.pop("metadata", None)

        for key in ("selected_audio_tracks", "selected_subtitle_tracks"):
            if key in values:
                values[key] = tuple(int(i) for i in values[key] or ())

        for key in ("rotation", "video_bitrate", "audio_bitrate", "fps"):
            if key in values and values[key] is not None:
                values[key] = str(values[key])

        for key in ("custom_width", "custom_height"):
            if values.get(key) is not None:
                values[key] = str(values[key])

        if "audio_volume" in values:
            values["audio_volume"] = float(values["audio_volume"])

        return cls(**values)


@dataclass(frozen=True)
class ConversionTask:
    """변환 작업 단위.

    Attributes:
        id: 모든 이벤트를 연결하는 안정적인 작업 식별자
        file_path: 입력 파일 경로
        config: 변환 설정
        output_name: 사용자 지정 출력 파일명 (None이면 자동 생성)
    """

    id: str
    file_path: str
    config: ConversionConfig
    output_name: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConversionTask:
        """
        dict → ConversionTask.

        Raises:
            ValueError: 객체가 아니거나 ``id`` / ``file_path`` 가 없음
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"task: expected an object, got {type(data).__name__}")
        values = _normalize_keys(data, {f.name for f in fields(cls)}, "task")
        for key in ("id", "file_path"):
            if values.get(key) in (None, ""):
                raise ValueError(f"task: missing field {key}")
        config = values.get("config")
        values["config"] = (
            ConversionConfig.from_dict(config) if isinstance(config, Mapping) else ConversionConfig()
        )
        values["id"] = str(values["id"])
        values["file_path"] = str(values["file_path"])
        return cls(**values)

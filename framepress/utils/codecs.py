"""컨테이너·코덱 분류 및 ffprobe 값 파싱.

인자 컴파일러와 파이프라인이 공통으로 사용하는 판별 함수 모음.
"""

# 비디오 스트림을 담지 않는 오디오 전용 컨테이너
AUDIO_ONLY_CONTAINERS = frozenset({"mp3", "wav", "flac", "aac", "m4a"})

NVENC_CODECS = frozenset({"h264_nvenc", "hevc_nvenc", "av1_nvenc"})
VIDEOTOOLBOX_CODECS = frozenset({"h264_videotoolbox", "hevc_videotoolbox"})

# 비트레이트 옵션이 의미 없는 무손실 오디오 코덱
LOSSLESS_AUDIO_CODECS = frozenset({"flac", "alac", "pcm_s16le"})

# NVENC가 그대로 받는 프리셋
_NVENC_PASSTHROUGH_PRESETS = frozenset(
    {"fast", "medium", "slow", "default", "p1", "p2", "p3", "p4", "p5", "p6", "p7"}
)
_NVENC_FAST_PRESETS = frozenset({"ultrafast", "superfast", "veryfast", "faster"})
_NVENC_SLOW_PRESETS = frozenset({"slower", "veryslow"})


def is_audio_only_container(container: str) -> bool:
    """오디오 전용 컨테이너 여부 (대소문자 무시)."""
    return container.lower() in AUDIO_ONLY_CONTAINERS


def is_nvenc_codec(codec: str) -> bool:
    """NVIDIA NVENC 인코더 여부."""
    return codec in NVENC_CODECS


def is_videotoolbox_codec(codec: str) -> bool:
    """Apple VideoToolbox 인코더 여부."""
    return codec in VIDEOTOOLBOX_CODECS


def is_lossless_audio_codec(codec: str) -> bool:
    """무손실 오디오 코덱 여부."""
    return codec in LOSSLESS_AUDIO_CODECS


def map_nvenc_preset(preset: str) -> str:
    """
    x264 스타일 프리셋 이름을 NVENC 프리셋으로 변환.

    Args:
        preset: 사용자 설정 프리셋 (예: ``veryfast``)

    Returns:
        NVENC가 지원하는 프리셋 이름
    """
    if preset in _NVENC_PASSTHROUGH_PRESETS:
        return preset
    if preset in _NVENC_FAST_PRESETS:
        return "fast"
    if preset in _NVENC_SLOW_PRESETS:
        return "slow"
    return "medium"


def parse_frame_rate_string(value: str | None) -> float | None:
    """
    ffprobe 프레임레이트 문자열을 실수로 변환.

    ``30000/1001`` 같은 분수와 ``29.97`` 같은 실수 표기를 모두 지원한다.

    Args:
        value: ``r_frame_rate`` / ``avg_frame_rate`` 값

    Returns:
        초당 프레임 수. 비어있거나 ``N/A``, 분모가 0이면 None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == "n/a":
        return None

    try:
        if "/" in value:
            num, den = value.split("/", maxsplit=1)
            denominator = float(den.strip())
            if denominator == 0:
                return None
            return float(num.strip()) / denominator
        return float(value)
    except ValueError:
        return None


def parse_probe_bitrate(raw: str | None) -> float | None:
    """
    ffprobe ``bit_rate`` (bps)를 kbit/s로 변환.

    Args:
        raw: ffprobe 비트레이트 문자열

    Returns:
        kbit/s 값. 비어있거나 ``N/A``, 0 이하이면 None.
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw or raw.lower() == "n/a":
        return None
    try:
        numeric = float(raw)
    except ValueError:
        return None
    if numeric <= 0:
        return None
    return numeric / 1000

"""변환 설정 → FFmpeg 인자 컴파일러.

:class:`~framepress.models.conversion.ConversionConfig` 를 순서가 고정된
FFmpeg 인자 리스트로 변환한다. FFmpeg는 일부 옵션의 위치(입력 앞/뒤)에
따라 의미가 달라지므로 아래 순서를 반드시 유지한다::

    -ss → -i → -t/-to → 메타데이터 → 비디오(코덱·레이트 컨트롤·프리셋·필터·-r)
    → 스트림 매핑 → 오디오 비트레이트 → 채널 → 오디오 필터 → -y 출력

비디오 코덱 인자와 시간 범위 인자는 업스케일 파이프라인의
디코드/인코드 단계에서도 재사용된다.
"""

from framepress.models.conversion import (
    VOLUME_EPSILON,
    ConversionConfig,
    CropConfig,
    MetadataConfig,
    MetadataMode,
    round_half_up,
)
from framepress.utils.codecs import (
    is_audio_only_container,
    is_lossless_audio_codec,
    is_nvenc_codec,
    is_videotoolbox_codec,
    map_nvenc_preset,
)
from framepress.utils.timecode import parse_time

# EBU R128 라우드니스 정규화 타겟 (고정 프로파일)
LOUDNORM_FILTER = "loudnorm=I=-16:TP=-1.5:LRA=11"

# 스케일 알고리즘 → FFmpeg swscale flags
SCALING_FLAGS = {
    "lanczos": ":flags=lanczos",
    "bilinear": ":flags=bilinear",
    "nearest": ":flags=neighbor",
    "bicubic": ":flags=bicubic",
}

# 이름 있는 해상도 프리셋 → 출력 높이
RESOLUTION_HEIGHTS = {
    "1080p": 1080,
    "720p": 720,
    "480p": 480,
}

# 회전 각도 → transpose 필터
_ROTATION_FILTERS = {
    "90": "transpose=1",
    "180": "transpose=1,transpose=1",
    "270": "transpose=2",
}


def build_time_range_args(input_path: str, config: ConversionConfig) -> list[str]:
    """
    시작 위치·입력·구간 길이 인자 생성.

    ``-ss`` 는 입력 앞에 둬서 빠른 탐색(input seek)을 사용한다.
    시작과 끝이 모두 있으면 ``-t`` (구간 길이), 끝만 있으면 ``-to``
    (절대 시각)를 사용한다.

    Args:
        input_path: 입력 파일 경로
        config: 변환 설정

    Returns:
        ``[-ss START] -i INPUT [-t DURATION | -to END]``
    """
    args: list[str] = []
    start = config.start_time
    end = config.end_time

    if start:
        args.extend(["-ss", start])

    args.extend(["-i", input_path])

    if end:
        if start:
            start_t = parse_time(start)
            end_t = parse_time(end)
            if start_t is not None and end_t is not None:
                duration = end_t - start_t
                if duration > 0:
                    args.extend(["-t", f"{duration:.3f}"])
        else:
            args.extend(["-to", end])

    return args


def build_metadata_args(metadata: MetadataConfig) -> list[str]:
    """
    메타데이터 정책 인자 생성.

    - Clean: ``-map_metadata -1`` 만 (태그 값은 무시)
    - Replace: ``-map_metadata -1`` + 비어있지 않은 태그
    - Preserve: 비어있지 않은 태그만
    """
    args: list[str] = []

    if metadata.mode in (MetadataMode.CLEAN, MetadataMode.REPLACE):
        args.extend(["-map_metadata", "-1"])

    if metadata.mode in (MetadataMode.REPLACE, MetadataMode.PRESERVE):
        for key, value in metadata.tags():
            args.extend(["-metadata", f"{key}={value}"])

    return args


def calculate_nvenc_cq(quality: int) -> int:
    """
    품질(0-100)을 NVENC 고정 품질 값(cq)으로 변환.

    ``cq = round(52 - quality / 2)`` 를 [1, 51] 로 제한한다.
    quality 0 → 51, quality 100 → 1.
    """
    cq = round_half_up(52 - quality / 2)
    return min(max(cq, 1), 51)


def build_video_codec_args(config: ConversionConfig) -> list[str]:
    """
    비디오 코덱·레이트 컨트롤·프리셋·하드웨어 옵션 인자 생성.

    ``bitrate`` 모드는 코덱별 품질 옵션보다 우선한다. 품질 모드에서는
    NVENC는 VBR + cq, VideoToolbox는 ``-q:v``, 그 외는 ``-crf`` 를 쓴다.
    VideoToolbox는 프리셋 개념이 없으므로 ``-preset`` 을 생략한다.

    Args:
        config: 변환 설정

    Returns:
        ``-c:v`` 부터 하드웨어 토글까지의 인자
    """
    codec = config.video_codec
    is_nvenc = is_nvenc_codec(codec)
    is_videotoolbox = is_videotoolbox_codec(codec)

    args = ["-c:v", codec]

    if config.video_bitrate_mode == "bitrate":
        args.extend(["-b:v", f"{config.video_bitrate}k"])
    elif is_nvenc:
        args.extend(["-rc:v", "vbr", "-cq:v", str(calculate_nvenc_cq(config.quality))])
    elif is_videotoolbox:
        args.extend(["-q:v", str(config.quality)])
    else:
        args.extend(["-crf", str(config.crf)])

    if not is_videotoolbox:
        preset = map_nvenc_preset(config.preset) if is_nvenc else config.preset
        args.extend(["-preset", preset])

    if is_nvenc:
        if config.nvenc_spatial_aq:
            args.extend(["-spatial_aq", "1"])
        if config.nvenc_temporal_aq:
            args.extend(["-temporal_aq", "1"])

    if is_videotoolbox and config.videotoolbox_allow_sw:
        args.extend(["-allow_sw", "1"])

    return args


def build_crop_filter(crop: CropConfig | None) -> str | None:
    """크롭 필터 문자열 (비활성화 시 None)."""
    if crop is None or not crop.enabled:
        return None
    width, height, x, y = crop.effective()
    return f"crop={width}:{height}:{x}:{y}"


def escape_subtitle_path(path: str) -> str:
    """subtitles 필터용 경로 이스케이프 (역슬래시 → 슬래시, 콜론 이스케이프)."""
    return path.replace("\\", "/").replace(":", "\\:")


def build_scale_filter(config: ConversionConfig) -> str | None:
    """
    해상도 설정에 맞는 스케일(+패드) 필터.

    알고리즘 힌트는 scale 단계에만 붙이고 pad 에는 붙이지 않는다.

    Returns:
        스케일 필터 문자열. ``original`` 이면 None.
    """
    if config.resolution == "original":
        return None

    algorithm = SCALING_FLAGS.get(config.scaling_algorithm, "")

    if config.resolution == "custom":
        w = config.custom_width if config.custom_width is not None else "-1"
        h = config.custom_height if config.custom_height is not None else "-1"
        if w != "-1" and h != "-1":
            # 박스 안에 비율 유지 축소 후 중앙 패딩
            return (
                f"scale={w}:{h}:force_original_aspect_ratio=decrease{algorithm},"
                f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2"
            )
        if w == "-1" and h == "-1":
            return "scale=-1:-1"
        return f"scale={w}:{h}{algorithm}"

    height = RESOLUTION_HEIGHTS.get(config.resolution)
    if height is None:
        return "scale=-1:-1"
    # -2: 짝수 너비 유지 (yuv420p 호환)
    return f"scale=-2:{height}{algorithm}"


def build_video_filters(config: ConversionConfig) -> list[str]:
    """
    비디오 필터 체인 구성.

    순서: 좌우 반전 → 상하 반전 → 회전 → 크롭 → 자막 번인 → 스케일/패드
    """
    filters: list[str] = []

    if config.flip_horizontal:
        filters.append("hflip")
    if config.flip_vertical:
        filters.append("vflip")

    rotation = _ROTATION_FILTERS.get(config.rotation)
    if rotation:
        filters.append(rotation)

    crop = build_crop_filter(config.crop)
    if crop:
        filters.append(crop)

    if config.subtitle_burn_path:
        filters.append(f"subtitles='{escape_subtitle_path(config.subtitle_burn_path)}'")

    scale = build_scale_filter(config)
    if scale:
        filters.append(scale)

    return filters


def build_audio_filters(config: ConversionConfig) -> list[str]:
    """오디오 필터 체인 (라우드니스 정규화 → 볼륨)."""
    filters: list[str] = []

    if config.audio_normalize:
        filters.append(LOUDNORM_FILTER)

    if abs(config.audio_volume - 100.0) > VOLUME_EPSILON:
        filters.append(f"volume={config.audio_volume / 100.0:.2f}")

    return filters


def build_stream_mapping_args(config: ConversionConfig, video_enabled: bool) -> list[str]:
    """
    오디오/자막 트랙 매핑 인자.

    트랙을 명시적으로 고르면 FFmpeg 기본 스트림 선택이 꺼지므로
    첫 비디오 스트림도 명시적으로 매핑한다. 자막을 고르지 않았으면
    ``0:s?`` 로 자막이 없어도 실패하지 않게 한다.
    """
    args: list[str] = []
    audio_tracks = config.selected_audio_tracks
    subtitle_tracks = config.selected_subtitle_tracks

    if (audio_tracks or subtitle_tracks) and video_enabled:
        args.extend(["-map", "0:v:0"])

    for index in audio_tracks:
        args.extend(["-map", f"0:{index}"])

    if audio_tracks:
        args.extend(["-c:a", config.audio_codec])

    if subtitle_tracks:
        for index in subtitle_tracks:
            args.extend(["-map", f"0:{index}"])
    elif video_enabled:
        args.extend(["-map", "0:s?"])

    # 번인 시 자막은 영상에 합성되므로 자막 스트림을 싣지 않는다
    if not config.burns_subtitles:
        args.extend(["-c:s", "copy"])

    return args


def build_ffmpeg_args(input_path: str, output_path: str, config: ConversionConfig) -> list[str]:
    """
    단일 패스 변환용 FFmpeg 인자 생성.

    순수 함수이며 형식이 올바른 설정에 대해 실패하지 않는다
    (검증은 :func:`~framepress.utils.validators.validate_task_input` 담당).

    Args:
        input_path: 입력 파일 경로
        output_path: 출력 파일 경로
        config: 변환 설정

    Returns:
        실행 파일 이름을 제외한 FFmpeg 인자 리스트
    """
    args = build_time_range_args(input_path, config)
    args.extend(build_metadata_args(config.metadata))

    video_enabled = not is_audio_only_container(config.container)

    if not video_enabled:
        args.append("-vn")
    else:
        args.extend(build_video_codec_args(config))

        video_filters = build_video_filters(config)
        if video_filters:
            args.extend(["-vf", ",".join(video_filters)])

        if config.fps != "original":
            args.extend(["-r", config.fps])

    args.extend(build_stream_mapping_args(config, video_enabled))

    if config.selected_audio_tracks and not is_lossless_audio_codec(config.audio_codec):
        args.extend(["-b:a", f"{config.audio_bitrate}k"])

    if config.audio_channels == "stereo":
        args.extend(["-ac", "2"])
    elif config.audio_channels == "mono":
        args.extend(["-ac", "1"])

    audio_filters = build_audio_filters(config)
    if audio_filters:
        args.extend(["-af", ",".join(audio_filters)])

    args.extend(["-y", output_path])
    return args

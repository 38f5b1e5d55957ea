"""CLI 인터페이스.

명령줄 인자를 변환 설정으로 바꾸고, 파일마다 변환 작업을 만들어
순서대로 실행한다.

Usage::

    framepress clip.mov -c mkv --video-codec libx265 --crf 20
    framepress clip.mov --start 00:00:02 --end 00:00:07 --upscale esrgan-2x
    framepress --task-file task.json --json-events
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

from framepress import __version__
from framepress.config import (
    ToolSettings,
    apply_config_to_env,
    generate_default_config,
    get_default_config_path,
    get_tool_settings,
    load_config,
)
from framepress.core.runner import run_task
from framepress.errors import ConversionError
from framepress.models.conversion import METADATA_TAG_KEYS, ConversionConfig, ConversionTask
from framepress.notification import Notifier
from framepress.notification.providers import (
    ConsoleProvider,
    JsonLinesProvider,
    LoggingProvider,
    NotificationProvider,
)
from framepress.utils.validators import validate_tool_available

logger = logging.getLogger(__name__)

# CLI 옵션 → ConversionConfig 필드 (값이 None이면 미지정)
_CONFIG_OPTIONS = (
    "container",
    "video_codec",
    "crf",
    "quality",
    "preset",
    "rotation",
    "resolution",
    "custom_width",
    "custom_height",
    "scaling_algorithm",
    "fps",
    "subtitle_burn_path",
    "audio_codec",
    "audio_bitrate",
    "audio_channels",
    "audio_volume",
    "selected_audio_tracks",
    "selected_subtitle_tracks",
    "start_time",
    "end_time",
    "ml_upscale",
)

# store_true 옵션 → ConversionConfig 필드
_FLAG_OPTIONS = (
    "nvenc_spatial_aq",
    "nvenc_temporal_aq",
    "videotoolbox_allow_sw",
    "flip_horizontal",
    "flip_vertical",
    "audio_normalize",
)


def safe_input(prompt: str) -> str:
    """EOF/Ctrl-C 를 빈 입력으로 처리하는 ``input()``."""
    try:
        return input(prompt).strip()
    except (EOFError, KeyboardInterrupt):
        print()
        return ""


def parse_crop(value: str) -> dict[str, Any]:
    """
    ``W:H:X:Y`` 크롭 인자 파싱.

    Raises:
        argparse.ArgumentTypeError: 형식 오류
    """
    parts = value.split(":")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"crop must be W:H:X:Y, got {value!r}")
    try:
        width, height, x, y = (float(part) for part in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"crop values must be numbers: {value!r}") from None
    return {"enabled": True, "width": width, "height": height, "x": x, "y": y}


def create_parser() -> argparse.ArgumentParser:
    """
    CLI 파서 생성.

    Returns:
        argparse.ArgumentParser 인스턴스
    """
    parser = argparse.ArgumentParser(
        prog="framepress",
        description=f"FFmpeg 기반 미디어 변환 및 ML 업스케일. (v{__version__})",
        epilog=(
            "예시:\n"
            "  framepress clip.mov -c mkv --crf 20            # 단일 패스 변환\n"
            "  framepress clip.mov --upscale esrgan-2x        # 2배 업스케일\n"
            "  framepress --task-file task.json --json-events  # UI 연동"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "files",
        nargs="*",
        default=[],
        help="변환할 입력 파일",
    )

    output = parser.add_argument_group("출력")
    output.add_argument("-c", "--container", default=None, help="출력 컨테이너 (기본: mp4)")
    output.add_argument(
        "--output-name",
        default=None,
        help="출력 파일명 (입력 파일과 같은 디렉토리, 확장자 생략 가능)",
    )

    video = parser.add_argument_group("비디오")
    video.add_argument("--video-codec", default=None, help="비디오 인코더 (기본: libx264)")
    video.add_argument(
        "--bitrate",
        default=None,
        metavar="KBPS",
        help="고정 비트레이트 모드 (kbit/s). 지정하지 않으면 품질 모드",
    )
    video.add_argument("--crf", type=int, default=None, help="소프트웨어 인코더 CRF (기본: 23)")
    video.add_argument(
        "--quality",
        type=int,
        default=None,
        help="NVENC/VideoToolbox 품질 0-100 (기본: 50)",
    )
    video.add_argument("--preset", default=None, help="인코더 프리셋 (기본: medium)")
    video.add_argument("--spatial-aq", dest="nvenc_spatial_aq", action="store_true")
    video.add_argument("--temporal-aq", dest="nvenc_temporal_aq", action="store_true")
    video.add_argument(
        "--allow-sw",
        dest="videotoolbox_allow_sw",
        action="store_true",
        help="VideoToolbox 소프트웨어 폴백 허용",
    )
    video.add_argument("--hflip", dest="flip_horizontal", action="store_true")
    video.add_argument("--vflip", dest="flip_vertical", action="store_true")
    video.add_argument(
        "--rotate",
        dest="rotation",
        choices=["0", "90", "180", "270"],
        default=None,
    )
    video.add_argument("--crop", type=parse_crop, default=None, metavar="W:H:X:Y")
    video.add_argument(
        "--resolution",
        default=None,
        help="original / custom / 1080p / 720p / 480p",
    )
    video.add_argument("--width", dest="custom_width", default=None, help="custom 너비 (-1 = 자동)")
    video.add_argument(
        "--height", dest="custom_height", default=None, help="custom 높이 (-1 = 자동)"
    )
    video.add_argument(
        "--scaling",
        dest="scaling_algorithm",
        choices=["bicubic", "lanczos", "bilinear", "nearest"],
        default=None,
    )
    video.add_argument("--fps", default=None, help="출력 프레임레이트 (기본: original)")
    video.add_argument(
        "--burn-subtitles",
        dest="subtitle_burn_path",
        default=None,
        metavar="PATH",
        help="자막 파일을 영상에 번인",
    )
    video.add_argument(
        "--subtitle-tracks",
        dest="selected_subtitle_tracks",
        type=int,
        nargs="+",
        default=None,
        metavar="INDEX",
    )
    video.add_argument(
        "--upscale",
        dest="ml_upscale",
        choices=["esrgan-2x", "esrgan-4x"],
        default=None,
        help="Real-ESRGAN 업스케일 (디코드 → 업스케일 → 인코드)",
    )

    audio = parser.add_argument_group("오디오")
    audio.add_argument("--audio-codec", default=None, help="오디오 인코더 (기본: aac)")
    audio.add_argument("--audio-bitrate", default=None, metavar="KBPS", help="기본: 128")
    audio.add_argument(
        "--audio-channels",
        choices=["original", "stereo", "mono"],
        default=None,
    )
    audio.add_argument(
        "--normalize",
        dest="audio_normalize",
        action="store_true",
        help="EBU R128 라우드니스 정규화",
    )
    audio.add_argument(
        "--volume",
        dest="audio_volume",
        type=float,
        default=None,
        metavar="PERCENT",
        help="볼륨 퍼센트 (기본: 100)",
    )
    audio.add_argument(
        "--audio-tracks",
        dest="selected_audio_tracks",
        type=int,
        nargs="+",
        default=None,
        metavar="INDEX",
    )

    trim = parser.add_argument_group("구간")
    trim.add_argument("--start", dest="start_time", default=None, metavar="HH:MM:SS")
    trim.add_argument("--end", dest="end_time", default=None, metavar="HH:MM:SS")

    metadata = parser.add_argument_group("메타데이터")
    metadata.add_argument(
        "--metadata-mode",
        choices=["clean", "replace", "preserve"],
        default=None,
    )
    for key in METADATA_TAG_KEYS:
        metadata.add_argument(f"--{key}", default=None)

    parser.add_argument(
        "--task-file",
        default=None,
        metavar="JSON",
        help="변환 설정(또는 tasks 목록) JSON 파일. CLI 옵션이 우선",
    )

    parser.add_argument(
        "--json-events",
        action="store_true",
        help="진행 이벤트를 JSON Lines로 stdout에 출력",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="설정 파일 경로 (기본: ~/.framepress/config.toml)",
    )

    parser.add_argument(
        "--init-config",
        action="store_true",
        help="기본 설정 파일(~/.framepress/config.toml) 생성",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="상세 로그 출력",
    )

    return parser


def setup_logging(verbose: bool = False) -> None:
    """
    로깅 설정.

    Args:
        verbose: 상세 로그 여부
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_task_file(path: Path) -> dict[str, Any]:
    """
    작업 파일(JSON) 로드.

    Raises:
        FileNotFoundError: 파일 없음
        ValueError: JSON 문법 오류 또는 객체가 아님
    """
    if not path.is_file():
        raise FileNotFoundError(f"Task file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid task file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Task file must contain a JSON object: {path}")
    return data


def collect_config_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """CLI에서 명시적으로 지정한 설정만 dict로 모은다."""
    overrides: dict[str, Any] = {}
    for name in _CONFIG_OPTIONS:
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    for name in _FLAG_OPTIONS:
        if getattr(args, name):
            overrides[name] = True

    if args.bitrate is not None:
        overrides["video_bitrate_mode"] = "bitrate"
        overrides["video_bitrate"] = args.bitrate
    if args.crop is not None:
        overrides["crop"] = args.crop

    metadata = {key: getattr(args, key) for key in METADATA_TAG_KEYS if getattr(args, key)}
    if args.metadata_mode is not None:
        metadata["mode"] = args.metadata_mode
    if metadata:
        overrides["metadata"] = metadata

    return overrides


def build_config(base: dict[str, Any], overrides: dict[str, Any]) -> ConversionConfig:
    """작업 파일 설정 위에 CLI 설정을 덮어쓴다 (메타데이터는 필드 단위 병합)."""
    merged = dict(base)
    for key, value in overrides.items():
        if key == "metadata" and isinstance(merged.get("metadata"), dict):
            merged["metadata"] = {**merged["metadata"], **value}
        else:
            merged[key] = value
    return ConversionConfig.from_dict(merged)


def new_task_id() -> str:
    """작업 id (작업 디렉토리 이름에도 사용)."""
    return uuid.uuid4().hex[:12]


def build_tasks(args: argparse.Namespace) -> list[ConversionTask]:
    """
    CLI 인자로 변환 작업 목록 생성.

    작업 파일에 ``tasks`` 목록이 있으면 그 작업들을 먼저 추가하고,
    위치 인자로 받은 파일마다 작업을 하나씩 만든다. CLI 설정은 작업 파일의
    설정(목록의 각 작업 포함) 위에 덮어쓴다.

    Raises:
        ValueError: 작업 없음, 작업 파일 형식 오류, 또는 여러 파일에 같은 출력 파일명 지정
    """
    base: dict[str, Any] = {}
    tasks: list[ConversionTask] = []
    overrides = collect_config_overrides(args)

    if args.task_file:
        data = load_task_file(Path(args.task_file).expanduser())
        if isinstance(data.get("tasks"), list):
            for item in data["tasks"]:
                task = ConversionTask.from_dict(item)
                if overrides:
                    item_config = item.get("config")
                    config = build_config(
                        item_config if isinstance(item_config, dict) else {}, overrides
                    )
                    task = replace(task, config=config)
                tasks.append(task)
        else:
            base = data.get("config", data)

    if args.output_name and len(args.files) > 1:
        raise ValueError("--output-name은 입력 파일이 하나일 때만 사용할 수 있습니다.")

    if args.files:
        config = build_config(base, overrides)
        for file in args.files:
            tasks.append(
                ConversionTask(
                    id=new_task_id(),
                    file_path=str(Path(file).expanduser()),
                    config=config,
                    output_name=args.output_name,
                )
            )

    if not tasks:
        raise ValueError("변환할 파일을 지정하세요.")
    return tasks


def check_tools(tasks: Sequence[ConversionTask], settings: ToolSettings) -> None:
    """
    필요한 외부 도구가 설치되어 있는지 확인.

    Raises:
        InvalidInputError: 도구 없음
    """
    validate_tool_available(settings.ffmpeg)
    validate_tool_available(settings.ffprobe)
    if any(task.config.ml_upscale for task in tasks):
        validate_tool_available(settings.upscaler)


def create_notifier(
    tasks: Sequence[ConversionTask],
    json_events: bool = False,
    verbose: bool = False,
) -> Notifier:
    """출력 방식에 맞는 Notifier 생성."""
    providers: list[NotificationProvider] = []
    if json_events:
        providers.append(JsonLinesProvider())
    else:
        labels = {task.id: Path(task.file_path).name for task in tasks}
        providers.append(ConsoleProvider(labels=labels, show_logs=verbose))
    if verbose:
        providers.append(LoggingProvider())
    return Notifier(providers)


async def run_tasks(
    tasks: Sequence[ConversionTask],
    notifier: Notifier,
    settings: ToolSettings,
) -> list[tuple[ConversionTask, str | None]]:
    """
    작업을 순서대로 실행. 실패한 작업이 있어도 나머지는 계속 실행한다.

    Returns:
        ``(작업, 출력 경로 또는 None)`` 목록
    """
    results: list[tuple[ConversionTask, str | None]] = []
    for task in tasks:
        try:
            output_path = await run_task(task, notifier, settings=settings)
        except ConversionError:
            results.append((task, None))
        else:
            results.append((task, output_path))
    return results


def cmd_init_config() -> None:
    """
    --init-config 옵션 처리.

    기본 설정 파일(config.toml) 템플릿을 생성합니다.
    """
    config_path = get_default_config_path()

    if config_path.exists():
        response = safe_input(f"이미 존재합니다: {config_path}\n덮어쓰시겠습니까? (y/N): ")
        if response.lower() not in ("y", "yes"):
            print("취소됨")
            return

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(generate_default_config())
    print(f"설정 파일 생성됨: {config_path}")


def main(argv: Sequence[str] | None = None) -> None:
    """CLI 진입점.

    인자를 파싱하고 설정 파일을 로드한 뒤, 파일마다 변환 작업을 실행한다.
    하나라도 실패하면 종료 코드 1로 끝난다.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # --init-config 처리 (가장 먼저, 로깅/설정 로드 전)
    if args.init_config:
        cmd_init_config()
        return

    setup_logging(args.verbose)

    # 설정 파일 로드 및 환경변수 적용
    config_path = Path(args.config).expanduser() if args.config else None
    apply_config_to_env(load_config(config_path))
    settings = get_tool_settings()

    try:
        tasks = build_tasks(args)
        check_tools(tasks, settings)

        notifier = create_notifier(tasks, json_events=args.json_events, verbose=args.verbose)
        results = asyncio.run(run_tasks(tasks, notifier, settings))

        failed = [task for task, output in results if output is None]
        if not args.json_events:
            for task, output in results:
                if output is not None:
                    print(f"✅ {task.file_path} → {output}")
                else:
                    print(f"❌ {task.file_path}")
        if failed:
            logger.error(f"{len(failed)}/{len(results)} task(s) failed")
            sys.exit(1)

    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    except (ConversionError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()

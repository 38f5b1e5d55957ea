"""미디어 분석 결과 모델."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MediaProbe:
    """ffprobe로 얻은 입력 파일 정보.

    모든 필드는 선택이며, 업스케일 파이프라인은 ``duration`` 과
    ``frame_rate`` 를 총 프레임 수 추정에만 사용한다.

    Attributes:
        duration: 전체 길이 (``HH:MM:SS.ss`` 시간 문자열)
        frame_rate: 초당 프레임 수
        bitrate_kbps: 전체 비트레이트 (kbit/s)
        width: 첫 비디오 스트림 너비
        height: 첫 비디오 스트림 높이
        has_audio: 오디오 스트림 존재 여부
    """

    duration: str | None = None
    frame_rate: float | None = None
    bitrate_kbps: float | None = None
    width: int | None = None
    height: int | None = None
    has_audio: bool = False

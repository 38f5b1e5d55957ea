"""시간 문자열 파싱 유틸리티."""


def parse_time(time_str: str) -> float | None:
    """
    ``HH:MM:SS`` 형식 문자열을 초 단위로 변환.

    세 부분이 정확히 있어야 하며 각 부분은 실수로 해석된다
    (``00:01:02.5`` 허용).

    Args:
        time_str: 시간 문자열

    Returns:
        초 단위 시간. 형식이 맞지 않으면 None.
    """
    parts = time_str.split(":")
    if len(parts) != 3:
        return None
    try:
        hours = float(parts[0])
        minutes = float(parts[1])
        seconds = float(parts[2])
    except ValueError:
        return None
    return hours * 3600 + minutes * 60 + seconds


def format_seconds(seconds: float) -> str:
    """
    초를 ``HH:MM:SS.ss`` 형식으로 변환.

    Args:
        seconds: 초 (음수는 0으로 처리)

    Returns:
        :func:`parse_time` 으로 다시 읽을 수 있는 시간 문자열
    """
    seconds = max(seconds, 0.0)
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds - hours * 3600 - minutes * 60
    return f"{hours:02d}:{minutes:02d}:{secs:05.2f}"

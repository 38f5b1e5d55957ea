"""출력 경로 결정."""

import os
from pathlib import PurePath


def build_output_path(
    file_path: str,
    container: str,
    output_name: str | None = None,
) -> str:
    """
    입력 경로·컨테이너·사용자 지정 이름으로 출력 경로 생성.

    사용자 이름이 있으면 입력 파일과 같은 디렉토리에 두고,
    확장자가 없을 때만 컨테이너 확장자를 붙인다.
    이름이 없으면 원본 확장자를 포함한 전체 경로 뒤에
    ``_converted.<container>`` 를 붙인다.

    Args:
        file_path: 입력 파일 경로
        container: 출력 컨테이너 (확장자)
        output_name: 사용자 지정 파일명 (공백뿐이면 무시)

    Returns:
        출력 파일 경로. 예: ``/a/b/clip.mov_converted.mp4``
    """
    custom = output_name.strip() if output_name else ""
    if not custom:
        return f"{file_path}_converted.{container}"

    parent = os.path.dirname(file_path)
    output = PurePath(parent, custom) if parent else PurePath(custom)
    if not output.suffix:
        output = output.with_name(f"{output.name}.{container}")
    return str(output)

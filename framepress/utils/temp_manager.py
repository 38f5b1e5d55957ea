"""작업별 임시 작업 디렉토리 관리."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from types import TracebackType

from framepress.errors import WorkspaceError

logger = logging.getLogger(__name__)

# 중간 프레임 이미지 (무손실 PNG, 8자리 0 패딩 번호)
FRAME_EXTENSION = "png"
FRAME_PATTERN = f"frame_%08d.{FRAME_EXTENSION}"


class Workspace:
    """업스케일 작업 하나가 독점하는 임시 디렉토리.

    ``<tempdir>/frame_upscale_<task id>/{input,output}`` 구조이며,
    작업 id로 이름을 지어 동시에 실행되는 작업끼리 충돌하지 않는다.
    """

    def __init__(
        self,
        task_id: str,
        base_dir: Path | None = None,
        prefix: str = "frame_upscale_",
    ) -> None:
        """
        초기화.

        Args:
            task_id: 작업 식별자
            base_dir: 임시 디렉토리 기본 위치 (기본: OS 임시 디렉토리)
            prefix: 디렉토리 접두사
        """
        self.base_dir = base_dir or Path(tempfile.gettempdir())
        self.root = self.base_dir / f"{prefix}{task_id}"

    @property
    def input_dir(self) -> Path:
        """디코드된 원본 프레임 디렉토리."""
        return self.root / "input"

    @property
    def output_dir(self) -> Path:
        """업스케일된 프레임 디렉토리."""
        return self.root / "output"

    @property
    def input_pattern(self) -> Path:
        """디코드 출력 프레임 패턴."""
        return self.input_dir / FRAME_PATTERN

    @property
    def output_pattern(self) -> Path:
        """인코드 입력 프레임 패턴."""
        return self.output_dir / FRAME_PATTERN

    def create(self) -> Workspace:
        """
        작업 디렉토리 생성.

        같은 이름의 디렉토리가 남아있으면 먼저 삭제한다.

        Raises:
            WorkspaceError: 디렉토리 생성 실패
        """
        if self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)
        try:
            self.input_dir.mkdir(parents=True, exist_ok=True)
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Failed to create workspace {self.root}: {e}") from e
        logger.debug(f"Created workspace: {self.root}")
        return self

    def cleanup(self, strict: bool = False) -> None:
        """
        작업 디렉토리 삭제.

        Args:
            strict: True면 삭제 실패 시 예외, False면 경고 로그만 남김

        Raises:
            WorkspaceError: strict 모드에서 삭제 실패
        """
        if not self.root.exists():
            return
        try:
            shutil.rmtree(self.root)
            logger.debug(f"Removed workspace: {self.root}")
        except OSError as e:
            if strict:
                raise WorkspaceError(f"Failed to remove workspace {self.root}: {e}") from e
            logger.warning(f"Failed to remove workspace {self.root}: {e}")

    @staticmethod
    def count_frames(directory: Path) -> int:
        """디렉토리 안의 프레임 이미지 수."""
        if not directory.is_dir():
            return 0
        return sum(1 for _ in directory.glob(f"*.{FRAME_EXTENSION}"))

    def __enter__(self) -> Workspace:
        """Context manager 진입."""
        return self.create()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager 종료 (예외 여부와 무관하게 삭제)."""
        self.cleanup()

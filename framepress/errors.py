"""변환 작업 예외 계층.

작업 하나당 하나의 종료 실패만 호출자에게 전달된다. 자동 재시도는 없다.

예외:
    - :class:`InvalidInputError`: 잘못된 설정/모드 (프로세스 실행 전)
    - :class:`WorkspaceError`: 임시 작업 디렉토리 생성·삭제 실패
    - :class:`ProcessLaunchError`: 외부 도구 실행 실패 (바이너리 없음 등)
    - :class:`StageFailure`: 디코드/업스케일/인코드 단계의 비정상 종료
    - :class:`ProbeError`: ffprobe 분석 실패
    - :class:`TaskCancelledError`: 취소 신호에 의한 중단
"""


class ConversionError(Exception):
    """모든 변환 작업 예외의 기반 클래스."""


class InvalidInputError(ConversionError):
    """입력 파일 또는 변환 설정이 유효하지 않을 때 발생하는 예외."""


class WorkspaceError(ConversionError):
    """임시 작업 디렉토리 I/O 실패."""


class ProcessLaunchError(ConversionError):
    """외부 도구 프로세스를 시작하지 못했을 때 발생하는 예외."""


class ProbeError(ConversionError):
    """ffprobe 실행 또는 출력 파싱 실패."""


class TaskCancelledError(ConversionError):
    """취소 신호로 작업이 중단되었을 때 발생하는 예외."""


class StageFailure(ConversionError):
    """파이프라인 단계가 0이 아닌 종료 코드로 끝났을 때 발생하는 예외.

    Attributes:
        stage: 실패한 단계 이름 (``decode`` / ``upscale`` / ``encode`` / ``convert``)
        exit_code: 프로세스 종료 코드 (알 수 없으면 None)
        reason: 마지막 진단 출력 라인 등 추가 설명. 업스케일 단계에서는
            퍼센트 진행률 줄(``45.00%``)을 제외한 마지막 stderr 줄이며,
            그런 줄이 없으면 ``exit code N`` 이다.
    """

    def __init__(
        self,
        stage: str,
        exit_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        """초기화."""
        self.stage = stage
        self.exit_code = exit_code
        self.reason = reason
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        message = f"{self.stage} stage failed"
        if self.exit_code is not None:
            message += f" with exit code {self.exit_code}"
        if self.reason:
            message += f": {self.reason}"
        return message

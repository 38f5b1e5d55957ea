"""pytest 설정 및 공통 fixture."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from framepress.errors import ProbeError
from framepress.ffmpeg.executor import ProcessEvent, ProcessExit, ProcessOutput
from framepress.models.media import MediaProbe
from framepress.notification import Notifier, QueueTaskChannel, TaskEvent
from framepress.notification.providers import CallbackProvider


@dataclass
class ScriptedRun:
    """가짜 프로세스 한 번의 실행 시나리오.

    Attributes:
        lines: stderr로 출력할 줄
        stdout_lines: stdout으로 출력할 줄 (stderr보다 먼저)
        exit_code: 종료 코드
        on_spawn: 실행 직후 인자 리스트로 호출 (프레임 파일 생성 등)
    """

    lines: Sequence[str] = ()
    exit_code: int | None = 0
    stdout_lines: Sequence[str] = ()
    on_spawn: Callable[[list[str]], None] | None = None


class FakeProcess:
    """미리 정한 출력을 내보내는 프로세스."""

    def __init__(self, pid: int, run: ScriptedRun) -> None:
        self.pid = pid
        self._run = run
        self.terminated = False
        self.stopped = False

    async def events(self) -> AsyncIterator[ProcessEvent]:
        for line in self._run.stdout_lines:
            yield ProcessOutput("stdout", line.encode())
        for line in self._run.lines:
            yield ProcessOutput("stderr", line.encode())
        yield ProcessExit(self._run.exit_code)

    def terminate(self) -> None:
        self.terminated = True

    async def stop(self, timeout: float = 5.0) -> int | None:
        self.terminate()
        self.stopped = True
        return -15


@dataclass
class FakeSpawner:
    """실행 요청을 기록하고 시나리오를 순서대로 재생하는 Spawner."""

    runs: list[ScriptedRun] = field(default_factory=list)
    calls: list[tuple[str, list[str]]] = field(default_factory=list)
    processes: list[FakeProcess] = field(default_factory=list)

    async def spawn(self, program: str, args: Sequence[str]) -> FakeProcess:
        args = list(args)
        self.calls.append((program, args))
        run = self.runs[len(self.calls) - 1]
        if run.on_spawn is not None:
            run.on_spawn(args)
        process = FakeProcess(1000 + len(self.calls), run)
        self.processes.append(process)
        return process


class FakeProber:
    """고정 결과를 돌려주는 분석기."""

    def __init__(self, probe: MediaProbe | None = None, error: str | None = None) -> None:
        self.probe_result = probe or MediaProbe(duration="00:00:10.00", frame_rate=30.0)
        self.error = error
        self.calls: list[str] = []

    async def probe(self, file_path: str) -> MediaProbe:
        self.calls.append(file_path)
        if self.error:
            raise ProbeError(self.error)
        return self.probe_result


def write_frames(count: int) -> Callable[[list[str]], None]:
    """디코드 출력 패턴(마지막 인자) 디렉토리에 PNG 프레임을 만든다."""

    def _write(args: list[str]) -> None:
        directory = Path(args[-1]).parent
        for i in range(1, count + 1):
            (directory / f"frame_{i:08d}.png").write_bytes(b"png")

    return _write


@pytest.fixture
def events() -> list[TaskEvent]:
    """Notifier가 전달한 이벤트 기록."""
    return []


@pytest.fixture
def notifier(events: list[TaskEvent]) -> Notifier:
    """이벤트를 ``events`` 에 기록하는 Notifier."""
    return Notifier([CallbackProvider(events.append, name="recorder")])


@pytest.fixture
def channel() -> QueueTaskChannel:
    """스케줄러 채널 (큐 내용 확인용)."""
    return QueueTaskChannel()


@pytest.fixture
def input_file(tmp_path: Path) -> Path:
    """존재하는 입력 파일."""
    path = tmp_path / "clip.mov"
    path.write_bytes(b"fake video")
    return path

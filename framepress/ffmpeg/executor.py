"""외부 도구 비동기 프로세스 실행기.

FFmpeg / realesrgan-ncnn-vulkan 을 asyncio 서브프로세스로 실행하고,
stdout·stderr를 줄 단위 이벤트 스트림으로 제공한다.

FFmpeg 통계 줄(``frame=... time=...``)은 ``\\r`` 로 덮어쓰기 출력되므로
``\\n`` 과 ``\\r`` 모두를 줄 구분자로 취급한다.

이벤트:
    - :class:`ProcessOutput`: stdout/stderr 한 줄 (bytes)
    - :class:`ProcessExit`: 프로세스 종료 (항상 마지막 이벤트)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from framepress.errors import ProcessLaunchError

logger = logging.getLogger(__name__)

_LINE_SPLIT_RE = re.compile(rb"\r\n|\r|\n")
_READ_CHUNK_SIZE = 4096

# 종료 신호 후 강제 종료까지 기다리는 시간 (초)
STOP_TIMEOUT = 5.0


@dataclass(frozen=True)
class ProcessOutput:
    """프로세스 출력 한 줄.

    Attributes:
        stream: ``stdout`` 또는 ``stderr``
        line: 줄 구분자를 제외한 원본 바이트
    """

    stream: str
    line: bytes

    @property
    def text(self) -> str:
        """UTF-8 디코딩 (잘못된 바이트는 대체 문자)."""
        return self.line.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ProcessExit:
    """프로세스 종료.

    Attributes:
        code: 종료 코드 (시그널로 종료되면 음수)
    """

    code: int | None

    @property
    def success(self) -> bool:
        """정상 종료 여부."""
        return self.code == 0


ProcessEvent = ProcessOutput | ProcessExit


class RunningProcess(Protocol):
    """실행 중인 외부 프로세스 핸들."""

    @property
    def pid(self) -> int | None:
        """OS 프로세스 ID (외부 취소용)."""
        ...

    def events(self) -> AsyncIterator[ProcessEvent]:
        """출력 줄 이벤트 후 종료 이벤트를 하나 yield 한다."""
        ...

    def terminate(self) -> None:
        """프로세스에 종료 신호를 보낸다."""
        ...

    async def stop(self, timeout: float = STOP_TIMEOUT) -> int | None:
        """종료 신호를 보내고 프로세스가 끝날 때까지 기다린다."""
        ...


class Spawner(Protocol):
    """프로세스 생성 프로토콜 (테스트에서 대체 가능)."""

    async def spawn(self, program: str, args: Sequence[str]) -> RunningProcess:
        """프로그램을 인자와 함께 실행한다."""
        ...


async def _pump_lines(
    stream: asyncio.StreamReader,
    name: str,
    queue: asyncio.Queue[ProcessOutput | None],
) -> None:
    """스트림을 줄 단위로 잘라 큐에 넣는다. 끝나면 None을 넣는다."""
    buffer = b""
    try:
        while True:
            chunk = await stream.read(_READ_CHUNK_SIZE)
            if not chunk:
                break
            buffer += chunk
            *lines, buffer = _LINE_SPLIT_RE.split(buffer)
            for line in lines:
                if line:
                    await queue.put(ProcessOutput(name, line))
        if buffer:
            await queue.put(ProcessOutput(name, buffer))
    finally:
        await queue.put(None)


class AsyncProcess:
    """asyncio 서브프로세스 래퍼."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        """초기화."""
        self._process = process

    @property
    def pid(self) -> int | None:
        """OS 프로세스 ID."""
        return self._process.pid

    async def events(self) -> AsyncIterator[ProcessEvent]:
        """
        stdout/stderr 줄 이벤트를 도착 순서대로 yield 하고,
        두 스트림이 모두 닫히면 :class:`ProcessExit` 를 yield 한다.
        """
        queue: asyncio.Queue[ProcessOutput | None] = asyncio.Queue()
        pumps = [
            asyncio.create_task(_pump_lines(stream, name, queue))
            for name, stream in (
                ("stdout", self._process.stdout),
                ("stderr", self._process.stderr),
            )
            if stream is not None
        ]

        try:
            remaining = len(pumps)
            while remaining:
                item = await queue.get()
                if item is None:
                    remaining -= 1
                    continue
                yield item

            code = await self._process.wait()
            yield ProcessExit(code)
        finally:
            for pump in pumps:
                pump.cancel()

    def terminate(self) -> None:
        """프로세스 종료 (이미 끝났으면 무시)."""
        if self._process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._process.terminate()
            logger.info(f"Sent terminate to pid {self._process.pid}")

    async def stop(self, timeout: float = STOP_TIMEOUT) -> int | None:
        """
        종료 신호 후 프로세스가 끝날 때까지 기다린다.

        ``timeout`` 안에 끝나지 않으면 강제 종료(kill)한다.

        Returns:
            종료 코드
        """
        self.terminate()
        try:
            return await asyncio.wait_for(self._process.wait(), timeout)
        except TimeoutError:
            logger.warning(f"pid {self._process.pid} did not exit within {timeout}s, killing")
            with contextlib.suppress(ProcessLookupError):
                self._process.kill()
            return await self._process.wait()


class AsyncProcessRunner:
    """외부 도구 실행기.

    도구 이름(``ffmpeg``, ``realesrgan-ncnn-vulkan``)을 설정된 실행 파일
    경로로 바꿔 실행한다. 매핑이 없으면 이름을 그대로 PATH에서 찾는다.
    """

    def __init__(self, program_paths: Mapping[str, str] | None = None) -> None:
        """
        초기화.

        Args:
            program_paths: 도구 이름 → 실행 파일 경로
        """
        self.program_paths = dict(program_paths or {})

    def resolve(self, program: str) -> str:
        """도구 이름을 실행 파일 경로로 변환."""
        return self.program_paths.get(program, program)

    def build_command(self, program: str, args: Sequence[str]) -> list[str]:
        """실행할 전체 명령어 리스트."""
        return [self.resolve(program), *[str(arg) for arg in args]]

    async def spawn(self, program: str, args: Sequence[str]) -> AsyncProcess:
        """
        프로세스 실행.

        Args:
            program: 도구 이름
            args: 인자 리스트

        Returns:
            실행 중인 프로세스 핸들

        Raises:
            ProcessLaunchError: 실행 파일이 없거나 실행 권한이 없음
        """
        cmd = self.build_command(program, args)
        logger.info(f"Running {program}: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Failed to launch {program}: {e}")
            raise ProcessLaunchError(f"Failed to launch {cmd[0]}: {e}") from e

        return AsyncProcess(process)

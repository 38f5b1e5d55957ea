"""단계 실행 공통 로직 테스트."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeProcess, FakeSpawner, ScriptedRun

from framepress.core.stage import run_stage
from framepress.errors import TaskCancelledError
from framepress.notification import EventType, Notifier, QueueTaskChannel, TaskEvent
from framepress.ffmpeg.executor import ProcessOutput
from framepress.notification.channel import TaskStarted


def _run(spawner: FakeSpawner, notifier: Notifier, channel: QueueTaskChannel, **kwargs):  # type: ignore[no-untyped-def]
    lines: list[str] = []

    async def go() -> int | None:
        return await run_stage(
            spawner,
            "ffmpeg",
            ["-i", "in.mov", "out.mp4"],
            task_id="t1",
            notifier=notifier,
            channel=channel,
            on_line=lines.append,
            **kwargs,
        )

    return asyncio.run(go()), lines


class TestRunStage:
    """run_stage 테스트."""

    def test_started_signals(
        self, notifier: Notifier, channel: QueueTaskChannel, events: list[TaskEvent]
    ) -> None:
        """실행 직후 채널과 알림에 시작을 알린다."""
        spawner = FakeSpawner(runs=[ScriptedRun(["hello"], 0)])
        exit_code, lines = _run(spawner, notifier, channel)

        assert exit_code == 0
        assert lines == ["hello"]
        assert spawner.calls == [("ffmpeg", ["-i", "in.mov", "out.mp4"])]
        assert channel.queue.get_nowait() == TaskStarted("t1", 1001)
        assert events[0].event_type == EventType.STARTED
        assert events[0].pid == 1001

    def test_on_started_runs_after_started_event(
        self, notifier: Notifier, channel: QueueTaskChannel, events: list[TaskEvent]
    ) -> None:
        seen: list[int] = []
        spawner = FakeSpawner(runs=[ScriptedRun()])
        _run(spawner, notifier, channel, on_started=lambda: seen.append(len(events)))
        assert seen == [1]

    def test_skips_blank_lines_and_strips(
        self, notifier: Notifier, channel: QueueTaskChannel
    ) -> None:
        spawner = FakeSpawner(runs=[ScriptedRun(["", "   ", "  frame=1  \r"], 0)])
        _, lines = _run(spawner, notifier, channel)
        assert lines == ["frame=1"]

    @pytest.mark.parametrize("code", [1, 255, None])
    def test_returns_exit_code(
        self, notifier: Notifier, channel: QueueTaskChannel, code: int | None
    ) -> None:
        spawner = FakeSpawner(runs=[ScriptedRun(["x"], code)])
        exit_code, _ = _run(spawner, notifier, channel)
        assert exit_code == code

    def test_cancel_event_terminates(
        self, notifier: Notifier, channel: QueueTaskChannel
    ) -> None:
        """취소 신호가 있으면 프로세스를 종료하고 예외."""
        spawner = FakeSpawner(runs=[ScriptedRun(["a", "b"], 0)])

        async def go() -> None:
            cancel = asyncio.Event()
            cancel.set()
            await run_stage(
                spawner,
                "ffmpeg",
                [],
                task_id="t1",
                notifier=notifier,
                channel=channel,
                on_line=lambda _: None,
                cancel_event=cancel,
            )

        with pytest.raises(TaskCancelledError):
            asyncio.run(go())
        assert spawner.processes[0].terminated
        assert spawner.processes[0].stopped

    def test_stdout_not_relayed(self, notifier: Notifier, channel: QueueTaskChannel) -> None:
        """stdout 줄은 진단 출력으로 전달하지 않는다."""
        spawner = FakeSpawner(runs=[ScriptedRun(["frame=1"], 0, stdout_lines=["raw bytes"])])
        _, lines = _run(spawner, notifier, channel)
        assert lines == ["frame=1"]

    def test_task_cancellation_stops_process(
        self, notifier: Notifier, channel: QueueTaskChannel
    ) -> None:
        """asyncio 작업이 취소되면 프로세스 종료를 기다린 뒤 재전파."""

        class HangingProcess(FakeProcess):
            async def events(self):  # type: ignore[no-untyped-def, override]
                yield ProcessOutput("stderr", b"frame=1")
                await asyncio.Event().wait()

        class HangingSpawner(FakeSpawner):
            async def spawn(self, program, args):  # type: ignore[no-untyped-def]
                process = HangingProcess(2000, ScriptedRun())
                self.processes.append(process)
                return process

        spawner = HangingSpawner()

        async def go() -> None:
            first_line = asyncio.Event()
            task = asyncio.create_task(
                run_stage(
                    spawner,
                    "ffmpeg",
                    [],
                    task_id="t1",
                    notifier=notifier,
                    channel=channel,
                    on_line=lambda _: first_line.set(),
                )
            )
            await first_line.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(go())
        assert spawner.processes[0].stopped

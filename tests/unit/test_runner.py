"""작업 디스패치 테스트."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from conftest import FakeProber, FakeSpawner, ScriptedRun, write_frames

from framepress.core.runner import run_task
from framepress.errors import InvalidInputError, StageFailure
from framepress.models.conversion import ConversionConfig, ConversionTask
from framepress.notification import EventType, Notifier, TaskEvent


def _failed(events: list[TaskEvent]) -> list[TaskEvent]:
    return [e for e in events if e.event_type == EventType.FAILED]


class TestRunTask:
    """run_task 테스트."""

    def test_single_pass(
        self, input_file: Path, notifier: Notifier, events: list[TaskEvent]
    ) -> None:
        spawner = FakeSpawner(runs=[ScriptedRun()])
        task = ConversionTask(id="a", file_path=str(input_file), config=ConversionConfig())

        output = asyncio.run(run_task(task, notifier, spawner=spawner, prober=FakeProber()))

        assert output == f"{input_file}_converted.mp4"
        assert len(spawner.calls) == 1
        assert events[-1].event_type == EventType.COMPLETED

    def test_upscale_dispatch(
        self,
        input_file: Path,
        tmp_path: Path,
        notifier: Notifier,
        events: list[TaskEvent],
    ) -> None:
        spawner = FakeSpawner(
            runs=[ScriptedRun(on_spawn=write_frames(2)), ScriptedRun(), ScriptedRun()]
        )
        task = ConversionTask(
            id="b",
            file_path=str(input_file),
            config=ConversionConfig(ml_upscale="esrgan-4x"),
        )

        asyncio.run(
            run_task(
                task,
                notifier,
                spawner=spawner,
                prober=FakeProber(),
                workspace_root=tmp_path / "work",
            )
        )

        assert [program for program, _ in spawner.calls] == [
            "ffmpeg",
            "realesrgan-ncnn-vulkan",
            "ffmpeg",
        ]
        assert events[-1].event_type == EventType.COMPLETED

    def test_missing_input_fails_once(
        self, tmp_path: Path, notifier: Notifier, events: list[TaskEvent]
    ) -> None:
        """검증 실패는 프로세스 실행 없이 Failed 하나만 낸다."""
        spawner = FakeSpawner()
        task = ConversionTask(
            id="c", file_path=str(tmp_path / "missing.mov"), config=ConversionConfig()
        )

        with pytest.raises(InvalidInputError):
            asyncio.run(run_task(task, notifier, spawner=spawner, prober=FakeProber()))

        assert spawner.calls == []
        failed = _failed(events)
        assert len(failed) == 1
        assert failed[0].task_id == "c"
        assert "does not exist" in (failed[0].error or "")

    def test_invalid_custom_resolution(
        self, input_file: Path, notifier: Notifier, events: list[TaskEvent]
    ) -> None:
        task = ConversionTask(
            id="d",
            file_path=str(input_file),
            config=ConversionConfig(resolution="custom", custom_width="0", custom_height="720"),
        )
        with pytest.raises(InvalidInputError):
            asyncio.run(run_task(task, notifier, spawner=FakeSpawner(), prober=FakeProber()))
        assert len(_failed(events)) == 1

    def test_stage_failure_fails_once(
        self,
        input_file: Path,
        tmp_path: Path,
        notifier: Notifier,
        events: list[TaskEvent],
    ) -> None:
        spawner = FakeSpawner(runs=[ScriptedRun(["boom"], 1)])
        task = ConversionTask(
            id="e",
            file_path=str(input_file),
            config=ConversionConfig(ml_upscale="esrgan-2x"),
        )

        with pytest.raises(StageFailure):
            asyncio.run(
                run_task(
                    task,
                    notifier,
                    spawner=spawner,
                    prober=FakeProber(),
                    workspace_root=tmp_path / "work",
                )
            )

        failed = _failed(events)
        assert len(failed) == 1
        assert failed[0].error == "decode stage failed with exit code 1"
        assert EventType.COMPLETED not in {e.event_type for e in events}

    def test_asyncio_cancel_fails_once(
        self, input_file: Path, notifier: Notifier, events: list[TaskEvent]
    ) -> None:
        """asyncio 취소도 Failed 이벤트 하나를 남긴다."""
        spawned = asyncio.Event()

        class BlockingSpawner(FakeSpawner):
            async def spawn(self, program, args):  # type: ignore[no-untyped-def]
                spawned.set()
                await asyncio.Event().wait()

        task = ConversionTask(id="f", file_path=str(input_file), config=ConversionConfig())

        async def go() -> None:
            running = asyncio.create_task(
                run_task(task, notifier, spawner=BlockingSpawner(), prober=FakeProber())
            )
            await spawned.wait()
            running.cancel()
            with pytest.raises(asyncio.CancelledError):
                await running

        asyncio.run(go())

        failed = _failed(events)
        assert len(failed) == 1
        assert failed[0].error == "Task f cancelled"
        assert EventType.COMPLETED not in {e.event_type for e in events}

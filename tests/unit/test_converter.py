"""단일 패스 변환 실행기 테스트."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from conftest import FakeProber, FakeSpawner, ScriptedRun

from framepress.core.converter import ConversionRunner, calculate_active_duration
from framepress.errors import StageFailure
from framepress.models.conversion import ConversionConfig, ConversionTask
from framepress.models.media import MediaProbe
from framepress.notification import EventType, Notifier, QueueTaskChannel, TaskEvent


def _progress(events: list[TaskEvent]) -> list[float]:
    return [e.progress for e in events if e.event_type == EventType.PROGRESS and e.progress is not None]


def _task(input_file: Path, **config: object) -> ConversionTask:
    return ConversionTask(id="c1", file_path=str(input_file), config=ConversionConfig(**config))


class TestActiveDuration:
    """변환 구간 길이."""

    def test_full(self) -> None:
        assert calculate_active_duration(ConversionConfig(), "00:01:00.00") == 60.0

    def test_window(self) -> None:
        config = ConversionConfig(start_time="00:00:10", end_time="00:00:25")
        assert calculate_active_duration(config, "00:01:00.00") == 15.0

    def test_end_only(self) -> None:
        config = ConversionConfig(end_time="00:00:20")
        assert calculate_active_duration(config, None) == 20.0

    def test_unknown(self) -> None:
        assert calculate_active_duration(ConversionConfig(), None) == 0.0


class TestConversionRunner:
    """ConversionRunner 테스트."""

    def test_success_events(
        self,
        input_file: Path,
        notifier: Notifier,
        channel: QueueTaskChannel,
        events: list[TaskEvent],
    ) -> None:
        lines = [
            "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'clip.mov':",
            "frame=  150 fps=30 q=28.0 size=256kB time=00:00:05.00 bitrate=419.4kbits/s",
            "frame=  150 fps=30 q=28.0 size=256kB time=00:00:05.00 bitrate=419.4kbits/s",
            "frame=   60 fps=30 q=28.0 size=256kB time=00:00:02.00 bitrate=419.4kbits/s",
            "frame=  300 fps=30 q=28.0 Lsize=512kB time=00:00:09.99 bitrate=419.4kbits/s",
        ]
        spawner = FakeSpawner(runs=[ScriptedRun(lines, 0)])
        runner = ConversionRunner(spawner, FakeProber(), notifier, channel)

        output = asyncio.run(runner.run(_task(input_file)))

        assert output == f"{input_file}_converted.mp4"
        program, args = spawner.calls[0]
        assert program == "ffmpeg"
        assert args[:2] == ["-i", str(input_file)]
        assert args[-2:] == ["-y", output]

        # 중복·역행 시각은 건너뛰고, 완료 전에는 99를 넘지 않는다
        assert _progress(events) == [0.0, 50.0, 99.0, 100.0]
        assert [e.event_type for e in events][:2] == [EventType.STARTED, EventType.PROGRESS]
        assert events[-1].event_type == EventType.COMPLETED
        assert events[-1].output_path == output
        logs = [e.line for e in events if e.event_type == EventType.LOG]
        assert logs == lines
        assert channel.queue.qsize() == 1

    def test_progress_uses_trim_window(
        self,
        input_file: Path,
        notifier: Notifier,
        channel: QueueTaskChannel,
        events: list[TaskEvent],
    ) -> None:
        spawner = FakeSpawner(runs=[ScriptedRun(["size=10kB time=00:00:02.50 bitrate=1kbits/s"], 0)])
        runner = ConversionRunner(spawner, FakeProber(), notifier, channel)
        task = _task(input_file, start_time="00:00:02", end_time="00:00:07")

        asyncio.run(runner.run(task))

        assert _progress(events) == [0.0, 50.0, 100.0]
        assert spawner.calls[0][1][:6] == ["-ss", "00:00:02", "-i", str(input_file), "-t", "5.000"]

    def test_failure_carries_last_line(
        self,
        input_file: Path,
        notifier: Notifier,
        channel: QueueTaskChannel,
        events: list[TaskEvent],
    ) -> None:
        spawner = FakeSpawner(
            runs=[ScriptedRun(["frame=1", "Unknown encoder 'libx265'", ""], 1)]
        )
        runner = ConversionRunner(spawner, FakeProber(), notifier, channel)

        with pytest.raises(StageFailure) as exc_info:
            asyncio.run(runner.run(_task(input_file, video_codec="libx265")))

        assert exc_info.value.stage == "convert"
        assert exc_info.value.exit_code == 1
        assert exc_info.value.reason == "Unknown encoder 'libx265'"
        assert EventType.COMPLETED not in {e.event_type for e in events}
        # 실행기 자체는 Failed 이벤트를 내지 않는다 (디스패처 담당)
        assert EventType.FAILED not in {e.event_type for e in events}

    def test_probe_failure_is_best_effort(
        self,
        input_file: Path,
        notifier: Notifier,
        channel: QueueTaskChannel,
        events: list[TaskEvent],
    ) -> None:
        """분석 실패 시에도 변환은 진행하고 시각 진행률만 생략한다."""
        spawner = FakeSpawner(runs=[ScriptedRun(["time=00:00:05.00"], 0)])
        runner = ConversionRunner(spawner, FakeProber(error="boom"), notifier, channel)

        output = asyncio.run(runner.run(_task(input_file)))

        assert output.endswith("_converted.mp4")
        assert _progress(events) == [0.0, 100.0]

    def test_unknown_duration(
        self,
        input_file: Path,
        notifier: Notifier,
        channel: QueueTaskChannel,
        events: list[TaskEvent],
    ) -> None:
        spawner = FakeSpawner(runs=[ScriptedRun(["time=00:00:05.00"], 0)])
        prober = FakeProber(MediaProbe(duration=None))
        asyncio.run(ConversionRunner(spawner, prober, notifier, channel).run(_task(input_file)))
        assert _progress(events) == [0.0, 100.0]

    def test_audio_only_container(
        self,
        input_file: Path,
        notifier: Notifier,
        channel: QueueTaskChannel,
    ) -> None:
        spawner = FakeSpawner(runs=[ScriptedRun()])
        runner = ConversionRunner(spawner, FakeProber(), notifier, channel)
        output = asyncio.run(runner.run(_task(input_file, container="mp3", audio_codec="libmp3lame")))
        assert output.endswith(".mp3")
        assert "-vn" in spawner.calls[0][1]

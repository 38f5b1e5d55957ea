"""ffprobe 분석기 테스트."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from framepress.errors import ProbeError
from framepress.ffmpeg.probe import FFprobeProber, parse_probe_output
from framepress.models.media import MediaProbe

PROBE_PAYLOAD = {
    "streams": [
        {
            "codec_type": "video",
            "width": 1920,
            "height": 1080,
            "avg_frame_rate": "30000/1001",
            "r_frame_rate": "30/1",
        },
        {"codec_type": "audio"},
    ],
    "format": {"duration": "10.000000", "bit_rate": "8000000"},
}


def _mock_process(stdout: bytes, stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.returncode = returncode
    return proc


class TestParseProbeOutput:
    """parse_probe_output 테스트."""

    def test_full_payload(self) -> None:
        probe = parse_probe_output(PROBE_PAYLOAD)
        assert probe.duration == "00:00:10.00"
        assert probe.frame_rate == pytest.approx(29.97, abs=0.01)
        assert probe.bitrate_kbps == 8000.0
        assert (probe.width, probe.height) == (1920, 1080)
        assert probe.has_audio

    def test_falls_back_to_r_frame_rate(self) -> None:
        payload = {
            "streams": [{"codec_type": "video", "avg_frame_rate": "0/0", "r_frame_rate": "25/1"}],
            "format": {},
        }
        assert parse_probe_output(payload).frame_rate == 25.0

    def test_audio_only(self) -> None:
        payload = {"streams": [{"codec_type": "audio"}], "format": {"duration": "90.5"}}
        probe = parse_probe_output(payload)
        assert probe.frame_rate is None
        assert probe.width is None
        assert probe.duration == "00:01:30.50"

    def test_empty(self) -> None:
        assert parse_probe_output({}) == MediaProbe()


class TestFFprobeProber:
    """FFprobeProber 테스트."""

    def test_build_command(self) -> None:
        cmd = FFprobeProber("/usr/bin/ffprobe").build_command("in.mp4")
        assert cmd[0] == "/usr/bin/ffprobe"
        assert cmd[-1] == "in.mp4"
        assert "-show_streams" in cmd
        assert "-show_format" in cmd

    @patch("framepress.ffmpeg.probe.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_probe(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _mock_process(json.dumps(PROBE_PAYLOAD).encode())
        probe = asyncio.run(FFprobeProber().probe("in.mp4"))
        assert probe.width == 1920
        assert mock_exec.call_args.args[0] == "ffprobe"

    @patch("framepress.ffmpeg.probe.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_nonzero_exit(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _mock_process(b"", b"in.mp4: No such file", returncode=1)
        with pytest.raises(ProbeError, match="No such file"):
            asyncio.run(FFprobeProber().probe("in.mp4"))

    @patch("framepress.ffmpeg.probe.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_invalid_json(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _mock_process(b"not json")
        with pytest.raises(ProbeError, match="parse"):
            asyncio.run(FFprobeProber().probe("in.mp4"))

    @patch("framepress.ffmpeg.probe.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_launch_failure(self, mock_exec: AsyncMock) -> None:
        mock_exec.side_effect = FileNotFoundError("ffprobe")
        with pytest.raises(ProbeError, match="launch"):
            asyncio.run(FFprobeProber().probe("in.mp4"))

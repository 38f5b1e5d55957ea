"""변환 요청 모델 테스트."""

import dataclasses

import pytest

from framepress.models.conversion import (
    ConversionConfig,
    ConversionTask,
    CropConfig,
    MetadataConfig,
    MetadataMode,
    round_half_up,
)


class TestRoundHalfUp:
    """0.5 반올림 테스트."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0.5, 1), (1.5, 2), (2.5, 3), (2.4, 2), (-0.5, -1), (-2.5, -3)],
    )
    def test_half_away_from_zero(self, value: float, expected: int) -> None:
        assert round_half_up(value) == expected


class TestCropConfig:
    """크롭 보정."""

    def test_effective_rounds(self) -> None:
        crop = CropConfig(enabled=True, x=1.5, y=2.49, width=100.5, height=50.2)
        assert crop.effective() == (101, 50, 2, 2)

    def test_effective_clamps(self) -> None:
        crop = CropConfig(enabled=True, x=-3, y=-0.1, width=0, height=-10)
        assert crop.effective() == (1, 1, 0, 0)

    def test_from_dict(self) -> None:
        crop = CropConfig.from_dict({"enabled": 1, "x": "10", "width": 20})
        assert crop == CropConfig(enabled=True, x=10.0, width=20.0)


class TestMetadataConfig:
    """메타데이터 설정."""

    def test_tags_skip_empty_in_fixed_order(self) -> None:
        metadata = MetadataConfig(comment="c", title="t", album="", genre=None)
        assert list(metadata.tags()) == [("title", "t"), ("comment", "c")]

    def test_mode_parse(self) -> None:
        assert MetadataMode.parse("Replace") == MetadataMode.REPLACE
        assert MetadataMode.parse(MetadataMode.CLEAN) == MetadataMode.CLEAN

    def test_mode_parse_invalid(self) -> None:
        with pytest.raises(ValueError):
            MetadataMode.parse("strip")

    def test_from_dict(self) -> None:
        metadata = MetadataConfig.from_dict({"mode": "clean", "title": "x"})
        assert metadata.mode == MetadataMode.CLEAN
        assert metadata.title == "x"


class TestConversionConfig:
    """ConversionConfig 테스트."""

    def test_defaults(self) -> None:
        config = ConversionConfig()
        assert config.container == "mp4"
        assert config.video_codec == "libx264"
        assert config.crf == 23
        assert config.metadata.mode == MetadataMode.PRESERVE
        assert config.ml_upscale is None
        assert not config.burns_subtitles

    def test_frozen(self) -> None:
        config = ConversionConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.crf = 10  # type: ignore[misc]

    def test_from_dict_camel_case(self) -> None:
        """UI에서 보내는 camelCase 키를 받는다."""
        config = ConversionConfig.from_dict(
            {
                "container": "mkv",
                "videoCodec": "h264_nvenc",
                "videoBitrateMode": "bitrate",
                "videoBitrate": 8000,
                "rotation": 90,
                "customWidth": 1280,
                "selectedAudioTracks": [1, "2"],
                "audioVolume": 80,
                "crop": {"enabled": True, "width": 100, "height": 50},
                "metadata": {"mode": "replace", "title": "T"},
                "mlUpscale": "esrgan-2x",
            }
        )
        assert config.container == "mkv"
        assert config.video_codec == "h264_nvenc"
        assert config.video_bitrate == "8000"
        assert config.rotation == "90"
        assert config.custom_width == "1280"
        assert config.selected_audio_tracks == (1, 2)
        assert config.audio_volume == 80.0
        assert config.crop == CropConfig(enabled=True, width=100.0, height=50.0)
        assert config.metadata == MetadataConfig(mode=MetadataMode.REPLACE, title="T")
        assert config.ml_upscale == "esrgan-2x"

    def test_from_dict_ignores_unknown_keys(self) -> None:
        config = ConversionConfig.from_dict({"crf": 18, "colorSpace": "bt709"})
        assert config == ConversionConfig(crf=18)

    def test_from_dict_null_metadata_uses_default(self) -> None:
        assert ConversionConfig.from_dict({"metadata": None}).metadata == MetadataConfig()


class TestConversionTask:
    """ConversionTask 테스트."""

    def test_from_dict(self) -> None:
        task = ConversionTask.from_dict(
            {
                "id": 7,
                "filePath": "/a/clip.mov",
                "outputName": "final",
                "config": {"container": "webm"},
            }
        )
        assert task.id == "7"
        assert task.file_path == "/a/clip.mov"
        assert task.output_name == "final"
        assert task.config.container == "webm"

    def test_from_dict_without_config(self) -> None:
        task = ConversionTask.from_dict({"id": "a", "file_path": "/x.mp4"})
        assert task.config == ConversionConfig()

    @pytest.mark.parametrize(
        ("data", "missing"),
        [
            ({"filePath": "/a/clip.mov"}, "id"),
            ({"id": "a"}, "file_path"),
            ({"id": "a", "filePath": ""}, "file_path"),
        ],
    )
    def test_from_dict_missing_required(self, data: dict[str, str], missing: str) -> None:
        """필수 필드가 없으면 ValueError."""
        with pytest.raises(ValueError, match=f"missing field {missing}"):
            ConversionTask.from_dict(data)

    def test_from_dict_not_object(self) -> None:
        with pytest.raises(ValueError, match="expected an object"):
            ConversionTask.from_dict("clip.mov")  # type: ignore[arg-type]

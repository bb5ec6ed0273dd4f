"""Intent dispatch and variable sharpen dimension resolution"""

import asyncio
import io

import pytest

import imagickal.query as query_module
import imagickal.transformer as transformer_module
from imagickal import (
    CommandBuilder,
    Dimensions,
    ExternalToolError,
    ImagickalConfig,
    InvalidImageError,
    SharpenOptions,
    Transformer,
    transform,
)
from imagickal.transformer import needs_original_dimensions, with_sharpen_size, working_dimensions
from imagickal.utils.streams import read_all


@pytest.fixture
def captured(monkeypatch):
    """Replace execute so transform returns (commands, source) instead of running convert"""
    calls = []

    async def fake_execute(self, source, destination, output_format=None, input_format=None):
        data = await read_all(source) if hasattr(source, "read") else source
        calls.append({"commands": self.commands, "source": data, "input": self.input_options})
        return self.commands

    monkeypatch.setattr(CommandBuilder, "execute", fake_execute)
    return calls


@pytest.fixture
def fake_dimensions(monkeypatch):
    """Every identify query reports a 13x10 image"""
    queried = []

    async def fake(source, config=None):
        queried.append(await read_all(source) if hasattr(source, "read") else source)
        return Dimensions(13, 10, 1)

    monkeypatch.setattr(transformer_module, "dimensions", fake)
    return queried


class TestApplyIntents:
    def test_ignores_invalid_actions(self):
        builder = Transformer().apply_intents({"quality": 10, "exec": "no", "foobar": "monkey"})
        assert builder.commands == ["-quality 10"]

    def test_reserved_names_are_never_dispatched(self):
        builder = Transformer().apply_intents({"get": ("a", "b"), "render": 1, "execute": 2, "strip": True})
        assert builder.commands == ["-strip"]

    def test_follows_mapping_order(self):
        builder = Transformer().apply_intents({
            "gravity": "North",
            "extent": {"width": 5, "height": 6},
            "quality": 50,
        })
        assert builder.commands == ["-gravity North", "-extent 5x6", "-quality 50"]

    def test_density_goes_to_input_options(self):
        builder = Transformer().apply_intents({"strip": True, "density": 150})
        assert builder.render("in.svg", "out.png") == 'convert -density 150 "in.svg" -strip "out.png"'

    def test_strip_false_is_skipped(self):
        assert Transformer().apply_intents({"strip": False}).commands == []

    def test_uses_transformer_config(self):
        builder = Transformer(ImagickalConfig(executable="magick")).apply_intents({})
        assert builder.render("a", "b") == 'magick "a" "b"'


class TestWorkingDimensions:
    def test_resize_with_both_sides(self):
        intents = {"resize": {"width": 100, "height": 40}}
        assert not needs_original_dimensions(intents)
        assert working_dimensions(intents) == (100, 40)

    def test_resize_width_scales_height(self):
        intents = {"resize": {"width": 100}}
        assert needs_original_dimensions(intents)
        assert working_dimensions(intents, Dimensions(13, 10)) == (100, 77)

    def test_resize_height_scales_width(self):
        intents = {"resize": {"height": 20}}
        assert working_dimensions(intents, Dimensions(200, 100)) == (40, 20)

    def test_crop_size(self):
        intents = {"crop": {"width": 10, "height": 12, "x": 1, "y": 2}}
        assert not needs_original_dimensions(intents)
        assert working_dimensions(intents) == (10, 12)

    def test_resize_wins_over_crop(self):
        intents = {"crop": {"width": 10, "height": 12}, "resize": {"width": 600, "height": 600}}
        assert working_dimensions(intents) == (600, 600)

    def test_falls_back_to_original(self):
        assert needs_original_dimensions({"quality": 10})
        assert working_dimensions({"quality": 10}, Dimensions(640, 480)) == (640, 480)
        assert working_dimensions({"quality": 10}) is None

    def test_sharpen_copy_leaves_caller_intents_alone(self):
        intents = {"sharpen": {"mode": "variable"}, "quality": 5}
        modified = with_sharpen_size(intents, (250, 250))
        assert intents == {"sharpen": {"mode": "variable"}, "quality": 5}
        assert modified["sharpen"] == SharpenOptions(mode="variable", width=250, height=250)


class TestTransform:
    def test_creates_commands_in_order(self, captured, fake_dimensions):
        intents = {
            "quality": 10,
            "strip": True,
            "sharpen": {"mode": "variable"},
            "resize": {"width": 100, "flag": "!"},
            "crop": {"width": 10, "height": 12, "x": 1, "y": 2},
            "rotate": {"angle": 20},
        }
        commands = asyncio.run(transform("src.jpg", "dst.jpg", intents))

        assert commands == [
            "-quality 10",
            "-strip",
            "-unsharp 0.8x0.8+1.2+0.05",
            "-filter Catrom -resize 100x\\!",
            "-crop 10x12+1+2",
        ]
        assert fake_dimensions == ["src.jpg"]
        assert intents["sharpen"] == {"mode": "variable"}

    def test_no_query_when_size_is_known(self, captured, fake_dimensions):
        intents = {"sharpen": {"mode": "variable"}, "resize": {"width": 600, "height": 600}}
        commands = asyncio.run(transform("src.jpg", "dst.jpg", intents))
        assert commands == ["-filter Catrom -resize 600x600"]
        assert fake_dimensions == []

    def test_original_dimensions_pick_preset(self, captured, fake_dimensions):
        commands = asyncio.run(transform("src.jpg", "dst.jpg", {"sharpen": {"mode": "variable"}}))
        assert commands == ["-unsharp 1x1+1.5+0"]

    def test_stream_source_is_duplicated_before_query(self, captured, fake_dimensions):
        payload = b"\xff\xd8 fake image bytes " * 5000
        asyncio.run(transform(io.BytesIO(payload), io.BytesIO(), {"sharpen": {"mode": "variable"}}))

        assert fake_dimensions == [payload]
        assert captured[0]["source"] == payload

    def test_without_variable_sharpen_source_is_passed_through(self, captured, fake_dimensions):
        source = io.BytesIO(b"abc")
        asyncio.run(transform(source, io.BytesIO(), {"strip": True, "sharpen": {"mode": "light"}}))

        assert fake_dimensions == []
        assert captured[0]["source"] == b"abc"
        assert captured[0]["commands"] == ["-strip", "-unsharp 0.5x0.5+1+0.05"]

    def test_non_image_source_fails_dimension_query(self, captured, monkeypatch):
        async def no_delegate(command, **kwargs):
            raise ExternalToolError("failed", command=command, returncode=1,
                                    stderr="identify: no decode delegate for this image format `'")

        monkeypatch.setattr(query_module, "run_command", no_delegate)
        with pytest.raises(InvalidImageError):
            asyncio.run(transform("notes.txt", "dst.jpg", {"sharpen": {"mode": "variable"}}))
        assert captured == []

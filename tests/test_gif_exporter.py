"""Tests for GIF / PNG export."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from conftest import build_dmi, cell_color
from dmiharvester.core.errors import StateNotFound
from dmiharvester.parsers.dmi_parser import DmiDecoder
from dmiharvester.parsers.dmi_types import Direction
from dmiharvester.parsers.gif_exporter import (
    MAX_DELAY_MS, ExportRenderer, fit_image, resolve_resample,
)


def _decode(*states, **kwargs):
    return DmiDecoder().decode(build_dmi(list(states), **kwargs))


def _read_gif(data: bytes):
    """Return (frame count, durations, info of the first frame)."""
    with Image.open(io.BytesIO(data)) as gif:
        info = dict(gif.info)
        durations = []
        for i in range(gif.n_frames):
            gif.seek(i)
            durations.append(gif.info["duration"])
        return gif.n_frames, durations, info


class TestRender:
    """Tests for building animations."""

    def test_durations(self):
        """Test ticks become milliseconds, clamped to the minimum."""
        dmi = _decode({"name": "blink", "frames": 3, "delay": "1,2,0.1"})
        animation = ExportRenderer(min_delay_ms=20).render(dmi, "blink")
        assert animation.durations_ms == [100, 200, 20]
        assert animation.total_duration_ms == 320

    def test_zero_delay_clamped(self):
        dmi = _decode({"name": "flash", "frames": 2, "delay": "0,0"})
        assert ExportRenderer().render(dmi, "flash").durations_ms == [20, 20]

    def test_long_delay_capped(self):
        """Test durations stop at the longest delay a GIF frame can hold."""
        dmi = _decode({"name": "sleep", "frames": 2, "delay": "7000,1"})
        animation = ExportRenderer().render(dmi, "sleep")
        assert animation.durations_ms == [MAX_DELAY_MS, 100]

    def test_non_finite_ticks(self):
        assert ExportRenderer().ticks_to_ms(float("inf")) == MAX_DELAY_MS

    def test_direction(self):
        """Test the frames of the requested direction are used."""
        dmi = _decode({"name": "walk", "dirs": 4, "frames": 2})
        animation = ExportRenderer().render(dmi, "walk", "west")
        assert animation.direction == Direction.WEST
        colors = [tuple(int(v) for v in f.bitmap[0, 0]) for f in animation.frames]
        assert colors == [cell_color(3), cell_color(7)]

    def test_rewind(self):
        """Test rewind plays 0 1 2 3 2 1."""
        dmi = _decode({"name": "spin", "frames": 4, "rewind": 1, "delay": "1,2,3,4"})
        animation = ExportRenderer().render(dmi, "spin")
        colors = [tuple(int(v) for v in f.bitmap[0, 0]) for f in animation.frames]
        assert colors == [cell_color(i) for i in (0, 1, 2, 3, 2, 1)]
        assert animation.durations_ms == [100, 200, 300, 400, 300, 200]

    def test_rewind_two_frames(self):
        dmi = _decode({"name": "blink", "frames": 2, "rewind": 1})
        assert ExportRenderer().render(dmi, "blink").frame_count == 2

    def test_unknown_state(self):
        dmi = _decode({"name": "idle"})
        with pytest.raises(StateNotFound):
            ExportRenderer().render(dmi, "walk")

    def test_repeated_name(self):
        """Test occurrence picks the second state of the same name."""
        dmi = _decode({"name": "a"}, {"name": "a", "frames": 2})
        assert ExportRenderer().render(dmi, "a", occurrence=1).frame_count == 2


class TestEncodeGif:
    """Tests for GIF encoding."""

    def test_frames_and_durations(self):
        dmi = _decode({"name": "walk", "frames": 3, "delay": "1,2,3"})
        renderer = ExportRenderer()
        data = renderer.encode_gif(renderer.render(dmi, "walk"))
        assert data.startswith(b"GIF89a")
        count, durations, _ = _read_gif(data)
        assert count == 3
        assert durations == [100, 200, 300]

    def test_long_delay_encodes(self):
        dmi = _decode({"name": "sleep", "frames": 2, "delay": "7000,1"})
        renderer = ExportRenderer()
        count, durations, _ = _read_gif(renderer.encode_gif(renderer.render(dmi, "sleep")))
        assert count == 2
        assert durations == [MAX_DELAY_MS, 100]

    def test_loop_forever(self):
        dmi = _decode({"name": "s", "frames": 2})
        renderer = ExportRenderer()
        _, _, info = _read_gif(renderer.encode_gif(renderer.render(dmi, "s")))
        assert info["loop"] == 0

    def test_play_once(self):
        """Test loop=1 writes no looping extension."""
        dmi = _decode({"name": "s", "frames": 2, "loop": 1})
        renderer = ExportRenderer()
        _, _, info = _read_gif(renderer.encode_gif(renderer.render(dmi, "s")))
        assert info.get("loop") is None

    def test_play_three_times(self):
        """Test loop=3 becomes two repeats."""
        dmi = _decode({"name": "s", "frames": 2, "loop": 3})
        renderer = ExportRenderer()
        _, _, info = _read_gif(renderer.encode_gif(renderer.render(dmi, "s")))
        assert info["loop"] == 2

    def test_scale(self):
        dmi = _decode({"name": "s", "frames": 2})
        renderer = ExportRenderer()
        data = renderer.encode_gif(renderer.render(dmi, "s"), scale=3)
        with Image.open(io.BytesIO(data)) as gif:
            assert gif.size == (12, 12)

    def test_single_frame(self):
        dmi = _decode({"name": "s"})
        renderer = ExportRenderer()
        count, _, _ = _read_gif(renderer.encode_gif(renderer.render(dmi, "s")))
        assert count == 1


class TestEncodePng:
    """Tests for still images."""

    def _bitmap(self, width, height):
        bitmap = np.zeros((height, width, 4), dtype=np.uint8)
        bitmap[..., 0] = 200
        bitmap[..., 3] = 255
        return bitmap

    def test_native_size(self):
        data = ExportRenderer().encode_png(self._bitmap(4, 4))
        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (4, 4)
            assert image.mode == "RGBA"

    def test_scaled(self):
        data = ExportRenderer().encode_png(self._bitmap(4, 4), size=64)
        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (64, 64)
            assert image.getpixel((10, 10)) == (200, 0, 0, 255)

    def test_aspect_ratio(self):
        data = ExportRenderer().encode_png(self._bitmap(8, 4), size=32, resample="bilinear")
        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (32, 16)

    def test_fit_image_noop(self):
        image = Image.new("RGBA", (32, 32))
        assert fit_image(image, 32) is image

    def test_unknown_filter(self):
        with pytest.raises(ValueError, match="resize filter"):
            resolve_resample("sharpest")

"""
Tests for atlas packing, animation indexing and atlas validation.
"""

import dataclasses
import random
import tempfile
import unittest
from pathlib import Path

from PIL import Image

from ..processing.atlas import (
    AtlasConfig, AtlasPacker, AtlasValidator, AtlasGenerationError, build_animation_index
)
from ..processing.slicer import Frame
from ..utils.image import ImageUtils


def _frame(name, size=(64, 64), color=(255, 0, 0, 255), animation=None, index=0, fps=None):
    image = ImageUtils.decode(Image.new('RGBA', size, color))
    return Frame(name=name, image=image, animation_id=animation, frame_index=index, fps=fps)


class TestAtlasPacker(unittest.TestCase):
    """Test AtlasPacker.pack."""

    def test_pack_idle_strip(self):
        """Four idle frames at padding 2 pack into a 266x68 sheet."""
        frames = [_frame(f"idle_{i}", animation="idle", index=i, fps=8) for i in range(4)]

        result = AtlasPacker(AtlasConfig(padding=2)).pack(frames, image_name="hero.png")

        self.assertEqual((result.width, result.height), (266, 68))
        self.assertEqual(result.image.size, (266, 68))
        self.assertEqual(result.frame_rects["idle_3"]["x"], 200)
        self.assertEqual(result.frame_rects["idle_3"]["y"], 2)
        self.assertEqual(dict(result.frame_rects["idle_0"]["sourceSize"]), {"w": 64, "h": 64})
        self.assertEqual(result.sheet_meta["image_file_name"], "hero.png")
        self.assertEqual(result.animations["idle"].frame_names, [f"idle_{i}" for i in range(4)])
        self.assertEqual(result.animations["idle"].fps, 8)
        self.assertTrue(result.animations["idle"].loop)

    def test_pack_power_of_two(self):
        """Power-of-two sheets are padded with transparency."""
        frames = [_frame(f"idle_{i}", animation="idle", index=i) for i in range(4)]

        result = AtlasPacker(AtlasConfig(padding=2, power_of_two=True)).pack(frames)

        self.assertEqual((result.width, result.height), (512, 128))
        self.assertEqual(result.image.image.getpixel((511, 127)), (0, 0, 0, 0))

    def test_pixels_copied_to_rectangles(self):
        """Each frame's pixels appear exactly at its rectangle."""
        frames = [
            _frame("a", (10, 10), (255, 0, 0, 255)),
            _frame("b", (10, 20), (0, 255, 0, 255)),
        ]

        result = AtlasPacker(AtlasConfig(padding=1)).pack(frames)

        for frame in frames:
            rect = result.frame_rects[frame.name]
            region = result.image.image.crop((rect["x"], rect["y"], rect["x"] + rect["w"], rect["y"] + rect["h"]))
            self.assertEqual(list(region.getdata()), list(frame.image.image.getdata()))

        # Padding stays transparent
        self.assertEqual(result.image.image.getpixel((0, 0)), (0, 0, 0, 0))

    def test_empty_raises(self):
        """Packing nothing is an error."""
        with self.assertRaises(AtlasGenerationError) as ctx:
            AtlasPacker().pack([])
        self.assertEqual(ctx.exception.message, "No frames to pack")

    def test_duplicate_names_raise(self):
        """Frame names must be unique within a batch."""
        with self.assertRaises(AtlasGenerationError):
            AtlasPacker().pack([_frame("dup"), _frame("dup")])

    def test_animation_index_independent_of_order(self):
        """Shuffling input frames changes nothing in the animation index."""
        frames = [_frame(f"walk_{i}", (16, 16 + i), animation="walk", index=i, fps=10) for i in range(6)]
        frames += [_frame(f"idle_{i}", (16, 16), animation="idle", index=i, fps=8) for i in range(4)]
        shuffled = list(frames)
        random.Random(7).shuffle(shuffled)

        packer = AtlasPacker(AtlasConfig(padding=1))
        ordered = packer.pack(frames).animations
        mixed = packer.pack(shuffled).animations

        self.assertEqual(ordered["walk"].frame_names, [f"walk_{i}" for i in range(6)])
        self.assertEqual(mixed["walk"].frame_names, ordered["walk"].frame_names)
        self.assertEqual(mixed["idle"].frame_names, ordered["idle"].frame_names)

    def test_save_atlas(self):
        """The packed sheet can be written as PNG."""
        result = AtlasPacker().pack([_frame("solo", (8, 8))])

        with tempfile.TemporaryDirectory() as temp_dir:
            path = result.save_atlas(Path(temp_dir) / "sheet.png")
            reloaded = ImageUtils.decode(path)

        self.assertEqual(reloaded.size, (result.width, result.height))

    def test_result_is_read_only(self):
        """Packed results reject in-place changes and keep their own copies."""
        result = AtlasPacker().pack([_frame("a", (8, 8), animation="idle")])

        with self.assertRaises(TypeError):
            result.frame_rects["a"]["x"] = 99
        with self.assertRaises(TypeError):
            result.frame_rects["b"] = {"x": 0, "y": 0, "w": 1, "h": 1}
        with self.assertRaises(TypeError):
            result.sheet_meta["width"] = 1
        with self.assertRaises(dataclasses.FrozenInstanceError):
            result.animations["idle"].fps = 60
        with self.assertRaises(dataclasses.FrozenInstanceError):
            result.layout = None

    def test_result_copies_inputs(self):
        rects = {"a": {"x": 0, "y": 0, "w": 8, "h": 8, "sourceSize": {"w": 8, "h": 8}}}
        result = AtlasPacker().pack([_frame("a", (8, 8))])
        rebuilt = dataclasses.replace(result, frame_rects=rects)

        rects["a"]["x"] = 50

        self.assertEqual(rebuilt.frame_rects["a"]["x"], 0)


class TestPackGrid(unittest.TestCase):
    """Test AtlasPacker.pack_grid."""

    def test_grid_positions(self):
        """Frames fill cells left to right, top to bottom, without padding."""
        frames = [_frame(f"f{i}", (16, 16)) for i in range(5)]

        result = AtlasPacker().pack_grid(frames, 16, 16, columns=2)

        self.assertEqual((result.width, result.height), (32, 48))
        self.assertEqual((result.frame_rects["f3"]["x"], result.frame_rects["f3"]["y"]), (16, 16))
        self.assertEqual((result.frame_rects["f4"]["x"], result.frame_rects["f4"]["y"]), (0, 32))

    def test_invalid_columns(self):
        with self.assertRaises(AtlasGenerationError):
            AtlasPacker().pack_grid([_frame("a")], 64, 64, columns=0)


class TestBuildAnimationIndex(unittest.TestCase):
    """Test build_animation_index."""

    def test_default_fps_and_skips_unanimated(self):
        frames = [
            _frame("loose"),
            _frame("jump_1", animation="jump", index=1),
            _frame("jump_0", animation="jump", index=0),
        ]

        index = build_animation_index(frames)

        self.assertEqual(list(index), ["jump"])
        self.assertEqual(index["jump"].fps, 10)
        self.assertEqual(index["jump"].frames, (("jump_0", 0), ("jump_1", 1)))


class TestAtlasValidator(unittest.TestCase):
    """Test AtlasValidator checks."""

    def test_packed_atlas_is_valid(self):
        """Fresh packing output passes every check."""
        config = AtlasConfig(padding=2, max_width=200, power_of_two=True)
        frames = [_frame(f"run_{i}", (48, 32 + i * 4), animation="run", index=i) for i in range(6)]

        result = AtlasPacker(config).pack(frames)

        self.assertEqual(AtlasValidator(config).validate(result), [])

    def test_detects_overlap_and_bounds(self):
        """Tampered rectangles are reported."""
        config = AtlasConfig(padding=1)
        packed = AtlasPacker(config).pack([_frame("a", (10, 10)), _frame("b", (10, 10))])
        tampered_b = dict(packed.frame_rects["b"], x=packed.frame_rects["a"]["x"] + 5, w=1000)
        result = dataclasses.replace(packed, frame_rects=dict(packed.frame_rects, b=tampered_b))

        validator = AtlasValidator(config)
        errors = validator.validate_no_overlap(result) + validator.validate_frame_boundaries(result)

        self.assertIn("Frames 'a' and 'b' overlap", errors)
        self.assertTrue(any("extends beyond atlas width" in e for e in errors))
        self.assertEqual(validator.validate(packed), [])

    def test_power_of_two_dimensions(self):
        config = AtlasConfig(padding=2, power_of_two=True)
        result = AtlasPacker(AtlasConfig(padding=2)).pack([_frame("a")])

        self.assertEqual(len(AtlasValidator(config).validate_dimensions(result)), 2)


if __name__ == '__main__':
    unittest.main()

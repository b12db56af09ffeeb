"""
Tests for image decoding and pixel transforms.
"""

import io
import tempfile
import unittest
from pathlib import Path

from PIL import Image

from ..utils.image import ImageUtils, DecodedImage, ImageDecodeError


def _encode(image: Image.Image, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


class TestDecode(unittest.TestCase):
    """Test ImageUtils.decode."""

    def test_decode_rgba_png(self):
        """RGBA PNG bytes keep format, channels and byte size."""
        data = _encode(Image.new('RGBA', (8, 4), (0, 0, 0, 0)))

        decoded = ImageUtils.decode(data)

        self.assertEqual(decoded.format, "PNG")
        self.assertEqual(decoded.size, (8, 4))
        self.assertEqual(decoded.channels, 4)
        self.assertTrue(decoded.has_alpha)
        self.assertEqual(decoded.byte_size, len(data))

    def test_decode_rgb_png(self):
        """RGB PNG has three channels and no alpha."""
        decoded = ImageUtils.decode(_encode(Image.new('RGB', (4, 4), (255, 0, 0))))

        self.assertEqual(decoded.channels, 3)
        self.assertFalse(decoded.has_alpha)

    def test_decode_jpeg_reports_format(self):
        """JPEG input is decoded and its format recorded."""
        decoded = ImageUtils.decode(_encode(Image.new('RGB', (4, 4), (10, 20, 30)), "JPEG"))

        self.assertEqual(decoded.format, "JPEG")
        self.assertEqual(decoded.channels, 3)

    def test_decode_palette_with_transparency(self):
        """Palette images with a transparency entry expand to RGBA."""
        image = Image.new('P', (4, 4), 0)
        image.info['transparency'] = 0
        decoded = ImageUtils.decode(_encode(image))

        self.assertEqual(decoded.mode, 'RGBA')
        self.assertEqual(decoded.channels, 4)

    def test_decode_garbage_raises(self):
        """Undecodable bytes raise ImageDecodeError."""
        with self.assertRaises(ImageDecodeError):
            ImageUtils.decode(b"definitely not an image")

    def test_decode_none_raises(self):
        """Missing data raises ValueError."""
        with self.assertRaises(ValueError):
            ImageUtils.decode(None)

    def test_decode_from_path(self):
        """Paths are read and decoded."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "frame.png"
            path.write_bytes(_encode(Image.new('RGBA', (3, 5))))

            decoded = ImageUtils.decode(path)

        self.assertEqual(decoded.size, (3, 5))

    def test_decode_missing_path_raises(self):
        """Missing files raise ImageDecodeError."""
        with self.assertRaises(ImageDecodeError):
            ImageUtils.decode(Path("/nonexistent/frame.png"))

    def test_decoded_image_is_a_copy(self):
        """Mutating the source PIL image does not change the decoded image."""
        source = Image.new('RGBA', (2, 2), (0, 0, 0, 0))
        decoded = ImageUtils.decode(source)

        source.putpixel((0, 0), (255, 255, 255, 255))

        self.assertEqual(decoded.image.getpixel((0, 0)), (0, 0, 0, 0))


class TestTransforms(unittest.TestCase):
    """Test crop, resize, pad and trim."""

    def setUp(self):
        """Create a 10x10 image with an opaque 4x2 block at (3, 5)."""
        image = Image.new('RGBA', (10, 10), (0, 0, 0, 0))
        for x in range(3, 7):
            for y in range(5, 7):
                image.putpixel((x, y), (255, 0, 0, 255))
        self.image = ImageUtils.decode(image)

    def test_crop_inside(self):
        """Crop returns the requested region."""
        cropped = ImageUtils.crop(self.image, (3, 5, 7, 7))

        self.assertEqual(cropped.size, (4, 2))
        self.assertEqual(cropped.image.getpixel((0, 0)), (255, 0, 0, 255))

    def test_crop_out_of_bounds_is_transparent(self):
        """Regions past the source edge are zero filled."""
        cropped = ImageUtils.crop(self.image, (8, 8, 12, 12))

        self.assertEqual(cropped.size, (4, 4))
        self.assertEqual(cropped.image.getpixel((3, 3)), (0, 0, 0, 0))

    def test_crop_rgb_out_of_bounds_is_transparent(self):
        """RGB sources gain alpha when the crop leaves the image."""
        rgb = ImageUtils.decode(Image.new('RGB', (4, 4), (255, 255, 255)))

        cropped = ImageUtils.crop(rgb, (2, 0, 6, 4))

        self.assertTrue(cropped.has_alpha)
        self.assertEqual(cropped.image.getpixel((3, 0))[3], 0)

    def test_resize_nearest_keeps_palette(self):
        """Nearest-neighbour resize introduces no new colours."""
        resized = ImageUtils.resize(self.image, (20, 20))

        self.assertEqual(resized.size, (20, 20))
        colours = {colour for _, colour in resized.image.getcolors(maxcolors=1024)}
        self.assertEqual(colours, {(0, 0, 0, 0), (255, 0, 0, 255)})

    def test_pad_to_centers_content(self):
        """Padding centers the source on a transparent canvas."""
        small = ImageUtils.decode(Image.new('RGBA', (2, 2), (0, 255, 0, 255)))

        padded = ImageUtils.pad_to(small, (6, 6))

        self.assertEqual(padded.size, (6, 6))
        self.assertEqual(padded.image.getpixel((2, 2)), (0, 255, 0, 255))
        self.assertEqual(padded.image.getpixel((0, 0)), (0, 0, 0, 0))

    def test_trim(self):
        """Trim crops to content and reports the offset."""
        trimmed, offset = ImageUtils.trim(self.image)

        self.assertEqual(trimmed.size, (4, 2))
        self.assertEqual(offset, (3, 5))

    def test_trim_fully_transparent(self):
        """Fully transparent images come back unchanged."""
        blank = ImageUtils.decode(ImageUtils.blank((5, 5)))

        trimmed, offset = ImageUtils.trim(blank)

        self.assertEqual(trimmed.size, (5, 5))
        self.assertEqual(offset, (0, 0))

    def test_save_image_round_trip(self):
        """Saved PNGs decode back to the same pixels."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = ImageUtils.save_image(self.image, Path(temp_dir) / "nested" / "out.png")
            reloaded = ImageUtils.decode(path)

        self.assertEqual(reloaded.format, "PNG")
        self.assertEqual(list(reloaded.image.getdata()), list(self.image.image.getdata()))

    def test_pixels_shape(self):
        """pixels() returns an H×W×C array."""
        self.assertEqual(self.image.pixels().shape, (10, 10, 4))
        self.assertIsInstance(self.image, DecodedImage)


if __name__ == '__main__':
    unittest.main()

"""
Image access utilities for the sprite pipeline.

Every transform here is pure: it takes a DecodedImage and returns a new one,
leaving the input untouched.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union
from PIL import Image
import numpy as np
import io


class ImageDecodeError(ValueError):
    """Raised when a buffer cannot be decoded as an image."""


@dataclass(frozen=True)
class DecodedImage:
    """Immutable decoded raster plus the metadata it was decoded with."""
    image: Image.Image
    format: Optional[str] = None
    byte_size: int = 0

    def __post_init__(self):
        # Keep a private copy so callers can't mutate our pixels
        object.__setattr__(self, "image", self.image.copy())

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    @property
    def mode(self) -> str:
        return self.image.mode

    @property
    def channels(self) -> int:
        return len(self.image.getbands())

    @property
    def has_alpha(self) -> bool:
        return "A" in self.image.getbands()

    def pixels(self) -> np.ndarray:
        """Return a copy of the pixel buffer as an H×W×C uint8 array."""
        array = np.array(self.image, dtype=np.uint8)
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        return array

    def to_pil(self) -> Image.Image:
        """Return a copy of the underlying PIL image."""
        return self.image.copy()


class ImageUtils:
    """Utility class for decoding, encoding and transforming sprite images."""

    @staticmethod
    def decode(data: Union[bytes, str, Path, Image.Image, DecodedImage]) -> DecodedImage:
        """
        Decode image data from various sources.

        Args:
            data: Encoded bytes, file path, PIL Image or an already decoded image

        Returns:
            DecodedImage with format and byte size recorded

        Raises:
            ValueError: If data is None or of an unsupported type
            ImageDecodeError: If data cannot be decoded as an image
        """
        if data is None:
            raise ValueError("Cannot decode image: no data provided")

        if isinstance(data, DecodedImage):
            return data

        if isinstance(data, Image.Image):
            return DecodedImage(ImageUtils._expand_palette(data), data.format)

        if isinstance(data, (bytes, bytearray)):
            try:
                image = Image.open(io.BytesIO(data))
                image.load()
            except Exception as e:
                raise ImageDecodeError(f"Cannot load image from bytes: {e}")
            return DecodedImage(ImageUtils._expand_palette(image), image.format, len(data))

        if isinstance(data, (str, Path)):
            path = Path(data)
            try:
                raw = path.read_bytes()
            except OSError as e:
                raise ImageDecodeError(f"Cannot load image from path '{path}': {e}")
            return ImageUtils.decode(raw)

        raise ValueError(f"Unsupported image data type: {type(data)}")

    @staticmethod
    def _expand_palette(image: Image.Image) -> Image.Image:
        """Expand palette images so channel counts reflect the real pixel layout."""
        if image.mode == 'P':
            if 'transparency' in image.info:
                return image.convert('RGBA')
            return image.convert('RGB')
        if image.mode == 'PA':
            return image.convert('RGBA')
        return image

    @staticmethod
    def encode_png(image: Union[DecodedImage, Image.Image], compress_level: int = 9) -> bytes:
        """Encode image as PNG bytes."""
        pil_image = image.image if isinstance(image, DecodedImage) else image
        buf = io.BytesIO()
        pil_image.save(buf, format='PNG', compress_level=compress_level)
        return buf.getvalue()

    @staticmethod
    def normalized(image: Image.Image) -> DecodedImage:
        """Round-trip a PIL image through PNG so it carries a real declared format."""
        return ImageUtils.decode(ImageUtils.encode_png(image))

    @staticmethod
    def from_array(array: np.ndarray) -> DecodedImage:
        """Build a PNG-backed image from an H×W×3 or H×W×4 uint8 array."""
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ValueError(f"Expected an H×W×3 or H×W×4 array, got shape {array.shape}")
        # uint8 H×W×4 maps to RGBA and H×W×3 to RGB
        return ImageUtils.normalized(Image.fromarray(np.ascontiguousarray(array, dtype=np.uint8)))

    @staticmethod
    def blank(size: Tuple[int, int]) -> Image.Image:
        """Create a fully transparent RGBA canvas."""
        return Image.new('RGBA', size, (0, 0, 0, 0))

    @staticmethod
    def save_image(image: DecodedImage, path: Union[str, Path], compress_level: int = 9) -> Path:
        """Write image to disk as PNG, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(ImageUtils.encode_png(image, compress_level))
        return path

    @staticmethod
    def crop(image: DecodedImage, box: Tuple[int, int, int, int]) -> DecodedImage:
        """
        Crop a region as a new image.

        Regions reaching past the source edges are filled with transparent pixels.
        """
        source = image.image
        left, top, right, bottom = box
        out_of_bounds = left < 0 or top < 0 or right > source.width or bottom > source.height
        if source.mode not in ('RGBA', 'RGB') or out_of_bounds:
            source = source.convert('RGBA')
        return ImageUtils.normalized(source.crop(box))

    @staticmethod
    def resize(image: DecodedImage, target_size: Tuple[int, int],
               method: str = 'nearest') -> DecodedImage:
        """
        Resize image to exact dimensions.

        Args:
            image: Source image
            target_size: Target (width, height)
            method: Resampling method ('nearest', 'lanczos', 'bicubic', 'bilinear')

        Returns:
            Resized image; nearest-neighbour keeps pixel art crisp
        """
        resample = {
            'nearest': Image.Resampling.NEAREST,
            'lanczos': Image.Resampling.LANCZOS,
            'bicubic': Image.Resampling.BICUBIC,
            'bilinear': Image.Resampling.BILINEAR,
        }.get(method, Image.Resampling.NEAREST)

        return ImageUtils.normalized(image.image.resize(target_size, resample))

    @staticmethod
    def pad_to(image: DecodedImage, target_size: Tuple[int, int]) -> DecodedImage:
        """Center image content on a transparent canvas of target size."""
        target_width, target_height = target_size
        left = (target_width - image.width) // 2
        top = (target_height - image.height) // 2

        canvas = ImageUtils.blank(target_size)
        source = image.image.convert('RGBA')
        canvas.paste(source, (left, top))
        return ImageUtils.normalized(canvas)

    @staticmethod
    def get_bounding_box(image: DecodedImage) -> Optional[Tuple[int, int, int, int]]:
        """
        Get bounding box of non-transparent content.

        Returns:
            Bounding box as (left, top, right, bottom) or None if fully transparent
        """
        if not image.has_alpha:
            return (0, 0, image.width, image.height)
        return image.image.getchannel('A').getbbox()

    @staticmethod
    def trim(image: DecodedImage) -> Tuple[DecodedImage, Tuple[int, int]]:
        """
        Crop image to its non-transparent content.

        Returns:
            (trimmed image, (offset_x, offset_y)); fully transparent images are
            returned unchanged with a zero offset
        """
        bbox = ImageUtils.get_bounding_box(image)
        if bbox is None:
            return image, (0, 0)
        left, top, _, _ = bbox
        return ImageUtils.normalized(image.image.crop(bbox)), (left, top)

"""
Best-effort background repair for generated strips.

Nothing here runs automatically: callers decide when to apply a fix and must
re-validate afterwards.
"""

import logging
from collections import Counter
from typing import Tuple
import numpy as np

from ..utils.image import DecodedImage, ImageUtils

logger = logging.getLogger(__name__)


class BackgroundFixer:
    """Pure Image -> Image repairs for alpha and background problems."""

    @staticmethod
    def ensure_alpha_channel(image: DecodedImage) -> DecodedImage:
        """
        Guarantee a 4-channel RGBA image.

        Three-channel images gain a fully opaque alpha channel. Images that
        already have one are re-encoded as PNG. Applying this twice gives the
        same result as applying it once.
        """
        if image.channels == 3:
            logger.warning("Image missing alpha channel, adding opaque alpha")

        return ImageUtils.normalized(image.image.convert('RGBA'))

    @staticmethod
    def remove_near_color_background(image: DecodedImage,
                                     target_color: Tuple[int, int, int] = (255, 255, 255),
                                     tolerance: int = 10) -> DecodedImage:
        """
        Make pixels close to a background colour fully transparent.

        A pixel matches when each of its R, G and B values differs from
        target_color by at most tolerance. Non-matching pixels are untouched.

        Args:
            image: Source image
            target_color: Background RGB colour to remove
            tolerance: Per-channel absolute difference allowed

        Returns:
            New RGBA image with matching pixels at alpha 0
        """
        pixels = np.array(image.image.convert('RGBA'), dtype=np.uint8)

        diff = np.abs(pixels[:, :, :3].astype(np.int16) - np.array(target_color[:3], dtype=np.int16))
        mask = np.all(diff <= tolerance, axis=2)
        pixels[mask, 3] = 0

        logger.debug(f"Cleared {int(mask.sum())} background pixels matching {tuple(target_color)}")
        return ImageUtils.from_array(pixels)

    @staticmethod
    def detect_background_color(image: DecodedImage) -> Tuple[int, int, int]:
        """Use the most common corner colour as the background colour."""
        rgb = image.image.convert('RGB')
        width, height = rgb.size
        corners = [
            rgb.getpixel((0, 0)),
            rgb.getpixel((width - 1, 0)),
            rgb.getpixel((0, height - 1)),
            rgb.getpixel((width - 1, height - 1)),
        ]
        return Counter(corners).most_common(1)[0][0]

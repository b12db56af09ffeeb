"""
Utility modules for image decoding, encoding and pixel transforms.
"""

from .image import ImageUtils, DecodedImage, ImageDecodeError

__all__ = [
    "ImageUtils",
    "DecodedImage",
    "ImageDecodeError",
]

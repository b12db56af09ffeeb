"""
Sprite Pipeline for pixel art character animations

Generates animation strips with an image provider, checks them for a real
transparent background, slices them into frames and packs everything into a
single Phaser-compatible texture atlas with animation metadata.
"""

__version__ = "1.0.0"
__author__ = "Sprite Pipeline Development Team"

from .config import PipelineConfig
from .providers.base import ImageProvider, SpriteSpec
from .processing.atlas import AtlasPacker
from .processing.metadata import MetadataGenerator
from .processing.slicer import StripSlicer
from .processing.validator import AlphaValidator

__all__ = [
    "PipelineConfig",
    "ImageProvider",
    "SpriteSpec",
    "AtlasPacker",
    "MetadataGenerator",
    "StripSlicer",
    "AlphaValidator",
]

"""
Sprite processing modules for alpha validation, background repair, slicing, atlas packing and metadata.
"""

from .validator import AlphaValidator, ValidationResult
from .background import BackgroundFixer
from .slicer import Frame, SliceResult, StripSlicer, resize_frame, pad_frame, trim_frame
from .atlas import AtlasPacker, AtlasConfig, AtlasResult, AtlasValidator, AtlasGenerationError
from .metadata import MetadataGenerator

__all__ = [
    "AlphaValidator",
    "ValidationResult",
    "BackgroundFixer",
    "Frame",
    "SliceResult",
    "StripSlicer",
    "resize_frame",
    "pad_frame",
    "trim_frame",
    "AtlasPacker",
    "AtlasConfig",
    "AtlasResult",
    "AtlasValidator",
    "AtlasGenerationError",
    "MetadataGenerator",
]

"""
Alpha validation for generated sprite strips.

Checks format, channel layout and dimensions, then samples the image border
to decide whether the background is truly transparent.
"""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import List, Any, Mapping, Optional, Tuple, Union
import numpy as np

from ..config import ValidationConfig
from ..utils.image import DecodedImage, ImageUtils

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validating a single image.

    Immutable: with_error and with_warning return extended copies.
    """
    asset_name: str
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
    transparent_percent: Optional[float] = None

    @property
    def is_valid(self) -> bool:
        """Check if validation passed (no errors)."""
        return len(self.errors) == 0

    @property
    def has_warnings(self) -> bool:
        """Check if validation has warnings."""
        return len(self.warnings) > 0

    @property
    def has_transparency_issue(self) -> bool:
        """True when an error concerns transparency and a background fix may help."""
        return any('transparen' in error.lower() for error in self.errors)

    def __post_init__(self):
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def with_error(self, message: str) -> "ValidationResult":
        """Copy of this result with one more error."""
        return replace(self, errors=self.errors + (message,))

    def with_warning(self, message: str) -> "ValidationResult":
        """Copy of this result with one more warning."""
        return replace(self, warnings=self.warnings + (message,))


@dataclass
class BorderSample:
    """Outcome of the border transparency sampling."""
    transparent_pixels: int
    total_pixels: int
    threshold_percent: float
    details: List[str] = field(default_factory=list)

    @property
    def transparent_percent(self) -> float:
        if self.total_pixels == 0:
            return 0.0
        return self.transparent_pixels / self.total_pixels * 100

    @property
    def is_transparent(self) -> bool:
        return self.transparent_percent >= self.threshold_percent


class AlphaValidator:
    """Validates that sprite images carry a real, transparent alpha channel."""

    def __init__(self, config: Optional[ValidationConfig] = None):
        """Initialize validator with configuration."""
        self.config = config or ValidationConfig()

    def validate(self, image: DecodedImage, expected_width: Optional[int] = None,
                 expected_height: Optional[int] = None, name: str = "image") -> ValidationResult:
        """
        Validate an image for sprite requirements.

        All checks run independently; every violation is collected.

        Args:
            image: Decoded image to validate
            expected_width: Exact width required, if given
            expected_height: Exact height required, if given
            name: Label used in the result

        Returns:
            ValidationResult with errors, warnings and image metadata
        """
        errors: List[str] = []
        transparent_percent = None
        metadata = {
            "width": image.width,
            "height": image.height,
            "channels": image.channels,
            "has_alpha": image.has_alpha,
            "format": image.format,
            "byte_size": image.byte_size,
        }

        expected_format = self.config.expected_format.upper()
        actual_format = (image.format or "").upper()
        if actual_format != expected_format:
            errors.append(
                f"Invalid format: expected '{expected_format}', got '{image.format}'"
            )

        if image.channels != 4:
            errors.append(
                f"Invalid channels: expected 4 (RGBA), got {image.channels} - "
                f"missing alpha-capable channel layout"
            )

        if not image.has_alpha:
            errors.append("Missing alpha channel - image must have transparency support")

        if expected_width is not None and image.width != expected_width:
            errors.append(f"Invalid width: expected {expected_width}, got {image.width}")

        if expected_height is not None and image.height != expected_height:
            errors.append(f"Invalid height: expected {expected_height}, got {image.height}")

        if image.has_alpha:
            sample = self.sample_border(image)
            transparent_percent = sample.transparent_percent
            if not sample.is_transparent:
                errors.append("Background is not transparent - corners/edges have non-zero alpha")
                errors.extend(sample.details)

        return ValidationResult(name, errors=tuple(errors), metadata=metadata,
                                transparent_percent=transparent_percent)

    def validate_bytes(self, data: bytes, expected_width: Optional[int] = None,
                       expected_height: Optional[int] = None, name: str = "image") -> ValidationResult:
        """
        Decode and validate an encoded buffer.

        Decode failures are reported as errors rather than raised.
        """
        try:
            image = ImageUtils.decode(data)
        except ValueError as e:
            return ValidationResult(
                name,
                errors=(f"Failed to parse image: {e}",),
                metadata={"byte_size": len(data) if data else 0},
            )

        return self.validate(image, expected_width, expected_height, name)

    def validate_sprite_strip(self, image: Union[DecodedImage, bytes], frame_width: int,
                              frame_height: int, frame_count: int,
                              name: str = "strip") -> ValidationResult:
        """Validate a horizontal strip against its expected frame layout."""
        expected_width = frame_width * frame_count
        if isinstance(image, DecodedImage):
            result = self.validate(image, expected_width, frame_height, name)
        else:
            result = self.validate_bytes(image, expected_width, frame_height, name)

        if result.is_valid:
            logger.debug(f"Sprite strip validated: {frame_count} frames at {frame_width}x{frame_height}")

        return result

    def sample_border(self, image: DecodedImage) -> BorderSample:
        """
        Sample corner blocks and edge pixels for transparency.

        Corner blocks are corner_sample_size square, anchored inward at each
        corner. Edges are sampled every max(1, width // 20) pixels.
        """
        alpha = image.pixels()[:, :, -1].astype(np.int32)
        height, width = alpha.shape
        block = self.config.corner_sample_size
        threshold = self.config.alpha_threshold

        bw = min(block, width)
        bh = min(block, height)
        corners = {
            "top-left": alpha[:bh, :bw],
            "top-right": alpha[:bh, width - bw:],
            "bottom-left": alpha[height - bh:, :bw],
            "bottom-right": alpha[height - bh:, width - bw:],
        }

        samples = []
        for corner_name, region in corners.items():
            opaque = int(np.count_nonzero(region > threshold))
            if opaque:
                logger.debug(f"{opaque} non-transparent pixels in {corner_name} corner block")
            samples.append(region.ravel())

        interval = max(1, width // 20)
        samples.append(alpha[0, ::interval])
        samples.append(alpha[height - 1, ::interval])
        samples.append(alpha[::interval, 0])
        samples.append(alpha[::interval, width - 1])

        sampled = np.concatenate(samples)
        sample = BorderSample(
            transparent_pixels=int(np.count_nonzero(sampled <= threshold)),
            total_pixels=int(sampled.size),
            threshold_percent=self.config.min_transparent_border_percent,
        )

        if not sample.is_transparent:
            sample.details.append(
                f"Only {sample.transparent_percent:.1f}% of border pixels are transparent "
                f"(need {self.config.min_transparent_border_percent:g}%)"
            )

        return sample

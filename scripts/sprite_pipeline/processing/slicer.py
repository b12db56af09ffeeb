"""
Sprite strip slicer.
Cuts horizontal strips and fixed-cell grids into individual frames.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..utils.image import DecodedImage, ImageUtils

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """A named frame ready for packing."""
    name: str
    image: DecodedImage
    animation_id: Optional[str] = None
    frame_index: int = 0
    fps: Optional[int] = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def identity(self) -> Tuple[Optional[str], int]:
        return (self.animation_id, self.frame_index)


@dataclass(frozen=True)
class ExtractedFrame:
    """A frame cut from a strip or grid, not yet tied to an animation."""
    image: DecodedImage
    index: int
    x: int
    y: int
    width: int
    height: int


@dataclass
class SliceResult:
    """Frames extracted from a strip plus any non-fatal warnings."""
    frames: List[ExtractedFrame] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.frames)

    def __iter__(self):
        return iter(self.frames)

    def add_warning(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def to_frames(self, animation_id: str, fps: Optional[int] = None) -> List[Frame]:
        """Attach an animation to every extracted frame."""
        return [
            Frame(
                name=f"{animation_id}_{extracted.index}",
                image=extracted.image,
                animation_id=animation_id,
                frame_index=extracted.index,
                fps=fps,
            )
            for extracted in self.frames
        ]


class StripSlicer:
    """Slices strips and grids by fixed rectangle math."""

    def slice_strip(self, strip: DecodedImage, frame_width: int, frame_height: int,
                    frame_count: int) -> SliceResult:
        """
        Slice a horizontal sprite strip into frames.

        Dimension mismatches are tolerated with a warning. Extraction stops at
        the first frame that would run past the strip's right edge.

        Args:
            strip: Decoded strip image
            frame_width: Width of each frame
            frame_height: Height of each frame
            frame_count: Number of frames to extract

        Returns:
            SliceResult with up to frame_count frames, each frame_width × frame_height
        """
        result = SliceResult()

        expected_width = frame_width * frame_count
        if strip.width != expected_width:
            result.add_warning(
                f"Strip width mismatch: expected {expected_width}, got {strip.width}. "
                f"Will extract what we can."
            )

        if strip.height != frame_height:
            result.add_warning(
                f"Strip height mismatch: expected {frame_height}, got {strip.height}. "
                f"Frames may be cropped."
            )

        for i in range(frame_count):
            x = i * frame_width

            if x + frame_width > strip.width:
                result.add_warning(f"Frame {i} would exceed strip bounds, stopping extraction")
                break

            frame_image = ImageUtils.crop(strip, (x, 0, x + frame_width, frame_height))
            result.frames.append(ExtractedFrame(frame_image, i, x, 0, frame_width, frame_height))
            logger.debug(f"Extracted frame {i + 1}/{frame_count} at x={x}")

        logger.info(f"Sliced {len(result.frames)} frames from sprite strip")
        return result

    def slice_grid(self, sheet: DecodedImage, frame_width: int, frame_height: int,
                   columns: int, rows: int) -> SliceResult:
        """
        Slice a grid-based sheet into frames, row by row.

        Cells that do not fit inside the sheet are skipped individually;
        surviving cells are numbered consecutively.
        """
        result = SliceResult()
        frame_index = 0

        for row in range(rows):
            for col in range(columns):
                x = col * frame_width
                y = row * frame_height

                if x + frame_width > sheet.width or y + frame_height > sheet.height:
                    result.add_warning(f"Frame at ({col}, {row}) exceeds sheet bounds, skipping")
                    continue

                frame_image = ImageUtils.crop(sheet, (x, y, x + frame_width, y + frame_height))
                result.frames.append(
                    ExtractedFrame(frame_image, frame_index, x, y, frame_width, frame_height)
                )
                frame_index += 1

        logger.info(f"Sliced {len(result.frames)} frames from {columns}x{rows} grid")
        return result


def resize_frame(frame: DecodedImage, width: int, height: int) -> DecodedImage:
    """Resize a frame with nearest-neighbour sampling to keep pixel art crisp."""
    return ImageUtils.resize(frame, (width, height), method='nearest')


def pad_frame(frame: DecodedImage, width: int, height: int) -> DecodedImage:
    """Pad a frame to a larger size, centering the original content."""
    return ImageUtils.pad_to(frame, (width, height))


@dataclass(frozen=True)
class TrimInfo:
    offset_x: int
    offset_y: int
    original_width: int
    original_height: int
    new_width: int
    new_height: int


def trim_frame(frame: DecodedImage) -> Tuple[DecodedImage, TrimInfo]:
    """Trim transparent borders from a frame, reporting where the content sat."""
    trimmed, (offset_x, offset_y) = ImageUtils.trim(frame)
    return trimmed, TrimInfo(
        offset_x=offset_x,
        offset_y=offset_y,
        original_width=frame.width,
        original_height=frame.height,
        new_width=trimmed.width,
        new_height=trimmed.height,
    )

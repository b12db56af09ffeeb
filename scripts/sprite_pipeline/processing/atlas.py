"""
Texture atlas packing for animation frames.
"""

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Any, Mapping, Optional, Sequence, Tuple
from pathlib import Path

from ..utils.image import DecodedImage, ImageUtils
from .slicer import Frame

logger = logging.getLogger(__name__)

DEFAULT_FPS = 10


def _read_only(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    """Copy a nested mapping into read-only proxies."""
    return MappingProxyType({
        key: _read_only(value) if isinstance(value, Mapping) else value
        for key, value in mapping.items()
    })


@dataclass
class AtlasConfig:
    """Configuration for atlas packing."""
    padding: int = 1
    max_width: int = 2048
    power_of_two: bool = False


@dataclass
class Rectangle:
    """Rectangle for atlas layout calculations."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def contains_point(self, x: int, y: int) -> bool:
        """Check if point is inside rectangle."""
        return self.x <= x < self.right and self.y <= y < self.bottom

    def intersects(self, other: 'Rectangle') -> bool:
        """Check if this rectangle intersects with another."""
        return not (self.right <= other.x or other.right <= self.x or
                    self.bottom <= other.y or other.bottom <= self.y)

    def gap_to(self, other: 'Rectangle') -> int:
        """Largest axis-aligned gap between two rectangles (negative when they overlap)."""
        gap_x = max(other.x - self.right, self.x - other.right)
        gap_y = max(other.y - self.bottom, self.y - other.bottom)
        return max(gap_x, gap_y)


@dataclass(frozen=True)
class LayoutResult:
    """Frame positions aligned 1:1 with the input frame order."""
    positions: Tuple[Tuple[int, int], ...]
    sheet_width: int
    sheet_height: int


@dataclass(frozen=True)
class AnimationEntry:
    """Frames of one animation in playback order."""
    fps: int
    frames: Tuple[Tuple[str, int], ...] = ()
    loop: bool = True

    @property
    def frame_names(self) -> List[str]:
        return [name for name, _ in self.frames]


@dataclass(frozen=True)
class AtlasResult:
    """
    Result of atlas packing.

    Read-only once built: frame_rects, sheet_meta and animations are exposed
    as mapping proxies over private copies of what was passed in. Use
    dataclasses.replace to derive a modified result.
    """
    image: DecodedImage
    frame_rects: Mapping[str, Mapping[str, Any]]
    sheet_meta: Mapping[str, Any]
    animations: Mapping[str, AnimationEntry]
    layout: Optional[LayoutResult] = None

    def __post_init__(self):
        object.__setattr__(self, "frame_rects", _read_only(self.frame_rects))
        object.__setattr__(self, "sheet_meta", _read_only(self.sheet_meta))
        object.__setattr__(self, "animations", MappingProxyType(dict(self.animations)))

    @property
    def width(self) -> int:
        return self.sheet_meta["width"]

    @property
    def height(self) -> int:
        return self.sheet_meta["height"]

    def rectangles(self) -> Dict[str, Rectangle]:
        """Frame rectangles keyed by frame name."""
        return {
            name: Rectangle(rect["x"], rect["y"], rect["w"], rect["h"])
            for name, rect in self.frame_rects.items()
        }

    def save_atlas(self, path) -> Path:
        """Save packed sheet image to file."""
        return ImageUtils.save_image(self.image, path)


class AtlasLayoutEngine:
    """Deterministic row-based layout: tallest frames first, greedy row fill."""

    def __init__(self, config: AtlasConfig):
        """Initialize layout engine with configuration."""
        self.config = config

    def calculate_row_layout(self, sizes: Sequence[Tuple[int, int]]) -> LayoutResult:
        """
        Calculate row-packed positions for frames of the given sizes.

        Frames are visited by height, tallest first (ties keep input order),
        and placed left to right, wrapping to a new row when the next frame
        would pass max_width. A frame wider than max_width still gets its own
        row.

        Args:
            sizes: (width, height) per frame, in input order

        Returns:
            LayoutResult with positions in input order and the unrounded sheet size
        """
        padding = self.config.padding
        order = sorted(range(len(sizes)), key=lambda i: sizes[i][1], reverse=True)

        positions: List[Optional[Tuple[int, int]]] = [None] * len(sizes)
        current_x = padding
        current_y = padding
        row_height = 0
        sheet_width = 0
        sheet_height = 0

        for i in order:
            width, height = sizes[i]

            if current_x > padding and current_x + width + padding > self.config.max_width:
                current_x = padding
                current_y += row_height + padding
                row_height = 0

            positions[i] = (current_x, current_y)

            current_x += width + padding
            row_height = max(row_height, height)
            sheet_width = max(sheet_width, current_x)
            sheet_height = max(sheet_height, current_y + row_height + padding)

        return LayoutResult(tuple(positions), sheet_width, sheet_height)

    def round_sheet_size(self, width: int, height: int) -> Tuple[int, int]:
        """Apply the power-of-two constraint if configured."""
        if self.config.power_of_two:
            return next_power_of_two(width), next_power_of_two(height)
        return width, height


def next_power_of_two(n: int) -> int:
    """Find the next power of two greater than or equal to n."""
    if n <= 1:
        return 1

    # Check if n is already a power of two
    if n & (n - 1) == 0:
        return n

    return 1 << (n - 1).bit_length()


def build_animation_index(frames: Sequence[Frame]) -> Dict[str, AnimationEntry]:
    """
    Group frames by animation and order each group by frame index.

    Depends only on (animation_id, frame_index), never on the order frames
    were supplied or packed in. Frames without an animation are skipped.
    """
    fps: Dict[str, int] = {}
    members: Dict[str, List[Tuple[str, int]]] = {}

    for frame in frames:
        if not frame.animation_id:
            continue

        if frame.animation_id not in members:
            fps[frame.animation_id] = frame.fps or DEFAULT_FPS
            members[frame.animation_id] = []

        members[frame.animation_id].append((frame.name, frame.frame_index))

    return {
        name: AnimationEntry(
            fps=fps[name],
            frames=tuple(sorted(entries, key=lambda item: (item[1], item[0]))),
        )
        for name, entries in members.items()
    }


class AtlasPacker:
    """Packs frames into a single sheet with per-frame rectangles."""

    def __init__(self, config: Optional[AtlasConfig] = None):
        """Initialize atlas packer with configuration."""
        self.config = config or AtlasConfig()
        self.layout_engine = AtlasLayoutEngine(self.config)

    def pack(self, frames: Sequence[Frame], image_name: str = "") -> AtlasResult:
        """
        Pack frames into a texture atlas.

        Args:
            frames: Frames to pack; names must be unique
            image_name: File name recorded in the sheet metadata

        Returns:
            AtlasResult with the packed sheet, frame rectangles and animation index

        Raises:
            AtlasGenerationError: If frames is empty or frame names collide
        """
        if not frames:
            raise AtlasGenerationError("No frames to pack")

        self._check_unique_names(frames)

        layout = self.layout_engine.calculate_row_layout([(f.width, f.height) for f in frames])
        width, height = self.layout_engine.round_sheet_size(layout.sheet_width, layout.sheet_height)

        logger.info(f"Packing {len(frames)} frames into {width}x{height} sheet")

        return self._compose(frames, layout.positions, (width, height), image_name, layout)

    def pack_grid(self, frames: Sequence[Frame], frame_width: int, frame_height: int,
                  columns: int, image_name: str = "") -> AtlasResult:
        """
        Pack frames into a fixed-cell grid, in the order given.

        Every cell is frame_width × frame_height; there is no padding.
        """
        if not frames:
            raise AtlasGenerationError("No frames to pack")
        if columns < 1:
            raise AtlasGenerationError(f"Grid needs at least one column, got {columns}")

        self._check_unique_names(frames)

        rows = math.ceil(len(frames) / columns)
        width = frame_width * columns
        height = frame_height * rows

        logger.info(f"Packing {len(frames)} frames into {columns}x{rows} grid ({width}x{height})")

        positions = tuple(
            ((i % columns) * frame_width, (i // columns) * frame_height)
            for i in range(len(frames))
        )
        layout = LayoutResult(positions, width, height)
        return self._compose(frames, positions, (width, height), image_name, layout,
                             cell_size=(frame_width, frame_height))

    def _compose(self, frames: Sequence[Frame], positions: Sequence[Tuple[int, int]],
                 size: Tuple[int, int], image_name: str, layout: LayoutResult,
                 cell_size: Optional[Tuple[int, int]] = None) -> AtlasResult:
        """Paste frames onto a transparent canvas and describe where they went."""
        canvas = ImageUtils.blank(size)
        frame_rects: Dict[str, Dict[str, Any]] = {}

        for frame, (x, y) in zip(frames, positions):
            canvas.paste(frame.image.image.convert('RGBA'), (x, y))

            w, h = cell_size or (frame.width, frame.height)
            frame_rects[frame.name] = {
                "x": x,
                "y": y,
                "w": w,
                "h": h,
                "sourceSize": {"w": w, "h": h},
            }

        return AtlasResult(
            image=ImageUtils.normalized(canvas),
            frame_rects=frame_rects,
            sheet_meta={"width": size[0], "height": size[1], "image_file_name": image_name},
            animations=build_animation_index(frames),
            layout=layout,
        )

    @staticmethod
    def _check_unique_names(frames: Sequence[Frame]) -> None:
        seen = set()
        for frame in frames:
            if frame.name in seen:
                raise AtlasGenerationError(f"Duplicate frame name in batch: '{frame.name}'")
            seen.add(frame.name)


class AtlasValidator:
    """Consistency checks over a packed atlas."""

    def __init__(self, config: AtlasConfig):
        """Initialize atlas validator with configuration."""
        self.config = config

    def validate_frame_boundaries(self, result: AtlasResult) -> List[str]:
        """Check that every frame lies within the sheet."""
        errors = []

        for frame_name, rect in result.rectangles().items():
            if rect.x < 0 or rect.y < 0:
                errors.append(f"Frame '{frame_name}' has negative coordinates: ({rect.x}, {rect.y})")

            if rect.width <= 0 or rect.height <= 0:
                errors.append(f"Frame '{frame_name}' has invalid dimensions: {rect.width}x{rect.height}")

            if rect.right > result.width:
                errors.append(f"Frame '{frame_name}' extends beyond atlas width: {rect.right} > {result.width}")

            if rect.bottom > result.height:
                errors.append(f"Frame '{frame_name}' extends beyond atlas height: {rect.bottom} > {result.height}")

        return errors

    def validate_no_overlap(self, result: AtlasResult, min_gap: Optional[int] = None) -> List[str]:
        """Check that no two frames overlap or sit closer than min_gap pixels."""
        errors = []
        min_gap = self.config.padding if min_gap is None else min_gap
        items = list(result.rectangles().items())

        for i, (name_a, rect_a) in enumerate(items):
            for name_b, rect_b in items[i + 1:]:
                if rect_a.intersects(rect_b):
                    errors.append(f"Frames '{name_a}' and '{name_b}' overlap")
                elif rect_a.gap_to(rect_b) < min_gap:
                    errors.append(f"Frames '{name_a}' and '{name_b}' are closer than {min_gap}px")

        return errors

    def validate_dimensions(self, result: AtlasResult) -> List[str]:
        """Check power-of-two compliance when it was requested."""
        errors = []

        if self.config.power_of_two:
            if next_power_of_two(result.width) != result.width:
                errors.append(f"Atlas width {result.width} is not a power of two")
            if next_power_of_two(result.height) != result.height:
                errors.append(f"Atlas height {result.height} is not a power of two")

        return errors

    def validate(self, result: AtlasResult) -> List[str]:
        """Run all atlas checks."""
        return (self.validate_dimensions(result)
                + self.validate_frame_boundaries(result)
                + self.validate_no_overlap(result))


class AtlasGenerationError(Exception):
    """Exception raised when atlas packing cannot proceed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

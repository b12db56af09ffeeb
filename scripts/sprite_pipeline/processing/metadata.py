"""
Metadata documents for packed atlases, animations and validation reports.
"""

import json
import toml
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .atlas import AtlasResult
from .validator import ValidationResult

APP_NAME = "sprite-pipeline"
APP_VERSION = "1.0.0"


class MetadataGenerator:
    """Builds and writes the documents consumed by the game engine and tooling."""

    def __init__(self, app: str = APP_NAME, version: str = APP_VERSION):
        self.app = app
        self.version = version

    def atlas_document(self, result: AtlasResult, image_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Build a Phaser-compatible hash atlas.

        Args:
            result: Packed atlas
            image_name: Sheet file name; defaults to the one recorded at packing time
        """
        frames = {}
        for name, rect in result.frame_rects.items():
            frames[name] = {
                "frame": {"x": rect["x"], "y": rect["y"], "w": rect["w"], "h": rect["h"]},
                "rotated": False,
                "trimmed": False,
                "spriteSourceSize": {"x": 0, "y": 0, "w": rect["w"], "h": rect["h"]},
                "sourceSize": {"w": rect["sourceSize"]["w"], "h": rect["sourceSize"]["h"]},
            }

        return {
            "frames": frames,
            "meta": {
                "app": self.app,
                "version": self.version,
                "image": image_name if image_name is not None else result.sheet_meta.get("image_file_name", ""),
                "format": "RGBA8888",
                "size": {"w": result.width, "h": result.height},
                "scale": "1",
            },
        }

    def animations_document(self, result: AtlasResult) -> Dict[str, Any]:
        """Build the animation index: per animation, fps, loop flag and ordered frame keys."""
        return {
            name: {
                "fps": entry.fps,
                "loop": entry.loop,
                "frames": [{"key": key, "frame": index} for key, index in entry.frames],
            }
            for name, entry in result.animations.items()
        }

    def validation_report_document(self, results: Sequence[Tuple[str, ValidationResult]],
                                   timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build a validation report for a batch of sprite files.

        Args:
            results: (file name, validation result) pairs
            timestamp: Report time; defaults to now (UTC)
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        sprites: List[Dict[str, Any]] = []

        for file_name, result in results:
            percent = result.transparent_percent
            sprites.append({
                "file": file_name,
                "status": "pass" if result.is_valid else "fail",
                "alphaChannelPresent": bool(result.metadata.get("has_alpha", False)),
                "transparentPixels": round(percent, 1) if percent is not None else 0.0,
                "issues": list(result.errors) + list(result.warnings),
            })

        return {
            "validated": timestamp.isoformat(),
            "sprites": sprites,
        }

    def write_json(self, data: Dict[str, Any], path: Union[str, Path]) -> Path:
        """Write a document as pretty-printed JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(data, f, indent=2)
        return path

    def write_toml(self, data: Dict[str, Any], path: Union[str, Path]) -> Path:
        """Write a document as TOML."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            toml.dump(data, f)
        return path

    def write_atlas(self, result: AtlasResult, path: Union[str, Path], format: str = "json",
                    image_name: Optional[str] = None) -> Path:
        """Save the atlas document to JSON or TOML."""
        document = self.atlas_document(result, image_name)
        if format.lower() == "toml":
            return self.write_toml(document, path)
        return self.write_json(document, path)

    @staticmethod
    def read_json(path: Union[str, Path]) -> Dict[str, Any]:
        """Load a JSON document."""
        with open(path, 'r') as f:
            return json.load(f)

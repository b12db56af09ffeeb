"""
Sprite specifications and the abstract interface for image providers.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Any, Union


FRAME_SIZE_RANGE = (16, 256)
FRAME_COUNT_RANGE = (1, 16)
FPS_RANGE = (1, 60)


@dataclass
class AnimationSpec:
    """One animation to generate as a horizontal strip."""
    frames: int
    fps: int


@dataclass
class CharacterSpec:
    """What the character looks like."""
    description: str = ""
    details: str = ""


@dataclass
class SpriteSpec:
    """Specification for a sprite character and its animations."""
    name: str
    character: CharacterSpec
    frame_width: int = 64
    frame_height: int = 64
    animations: Dict[str, AnimationSpec] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpriteSpec":
        """
        Create a specification from its JSON form.

        Raises:
            ValueError: If the document or one of its sections is not an object
        """
        if not isinstance(data, dict):
            raise ValueError(f"Sprite specification must be a JSON object, got {type(data).__name__}")

        character = data.get('character') or {}
        if not isinstance(character, dict):
            raise ValueError("'character' must be an object")

        raw_animations = data.get('animations') or {}
        if not isinstance(raw_animations, dict):
            raise ValueError("'animations' must be an object mapping names to animations")

        animations = {}
        for name, anim in raw_animations.items():
            if not isinstance(anim, dict):
                raise ValueError(f"Animation '{name}' must be an object with 'frames' and 'fps'")
            animations[name] = AnimationSpec(frames=anim.get('frames', 0), fps=anim.get('fps', 0))

        return cls(
            name=data.get('name') or 'character',
            character=CharacterSpec(
                description=character.get('description', ''),
                details=character.get('details', ''),
            ),
            frame_width=data.get('frameWidth', 0),
            frame_height=data.get('frameHeight', 0),
            animations=animations,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SpriteSpec":
        """Load a specification from a JSON file."""
        with open(path, 'r') as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def default(cls, description: str, name: str = "character") -> "SpriteSpec":
        """Create a specification with the standard platformer animation set."""
        return cls(
            name=name,
            character=CharacterSpec(description=description, details=""),
            frame_width=64,
            frame_height=64,
            animations={
                "idle": AnimationSpec(frames=4, fps=8),
                "walk": AnimationSpec(frames=6, fps=10),
                "run": AnimationSpec(frames=6, fps=12),
                "jump": AnimationSpec(frames=4, fps=10),
                "attack": AnimationSpec(frames=4, fps=12),
                "hurt": AnimationSpec(frames=2, fps=8),
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON form read by from_dict."""
        return {
            "name": self.name,
            "character": {
                "description": self.character.description,
                "details": self.character.details,
            },
            "frameWidth": self.frame_width,
            "frameHeight": self.frame_height,
            "animations": {
                name: {"frames": anim.frames, "fps": anim.fps}
                for name, anim in self.animations.items()
            },
        }

    def save(self, path: Union[str, Path]) -> Path:
        """Write the specification as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        return path

    def validate(self) -> List[str]:
        """Validate the specification and return a list of errors."""
        errors = []

        if not self.character.description:
            errors.append("character.description is required")

        low, high = FRAME_SIZE_RANGE
        if not isinstance(self.frame_width, int) or not low <= self.frame_width <= high:
            errors.append(f"frameWidth must be between {low} and {high}")

        if not isinstance(self.frame_height, int) or not low <= self.frame_height <= high:
            errors.append(f"frameHeight must be between {low} and {high}")

        if not self.animations:
            errors.append("At least one animation is required")

        for name, anim in self.animations.items():
            low, high = FRAME_COUNT_RANGE
            if not isinstance(anim.frames, int) or not low <= anim.frames <= high:
                errors.append(f"Animation '{name}': frames must be between {low} and {high}")
            low, high = FPS_RANGE
            if not isinstance(anim.fps, (int, float)) or not low <= anim.fps <= high:
                errors.append(f"Animation '{name}': fps must be between {low} and {high}")

        return errors

    def strip_size(self, animation: str) -> tuple[int, int]:
        """Expected (width, height) of the strip for an animation."""
        return (self.frame_width * self.animations[animation].frames, self.frame_height)


class ImageProvider(ABC):
    """Abstract base class for image generation providers."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize provider with configuration."""
        self.config = config
        self._configured = False

    @abstractmethod
    def configure(self, config: Dict[str, Any]) -> None:
        """
        Configure provider with settings.

        Args:
            config: Configuration dictionary specific to this provider

        Raises:
            ConfigurationError: If configuration is invalid
        """
        pass

    @abstractmethod
    def generate_image(self, prompt: str, size: tuple[int, int]) -> bytes:
        """
        Generate an image for a prompt.

        Args:
            prompt: Full generation prompt
            size: Requested (width, height); providers may return a different size

        Returns:
            Encoded image bytes

        Raises:
            ProviderError: If generation fails
        """
        pass

    def is_configured(self) -> bool:
        """Check if provider is properly configured."""
        return self._configured

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate provider configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        return []

    def get_provider_info(self) -> Dict[str, Any]:
        """Get information about this provider."""
        return {
            "name": self.__class__.__name__,
            "configured": self.is_configured(),
        }


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str, recoverable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.recoverable = recoverable


class ConfigurationError(ProviderError):
    """Exception raised when provider configuration is invalid."""

    def __init__(self, message: str, provider: str):
        super().__init__(f"Configuration error: {message}", provider, recoverable=False)


class NetworkError(ProviderError):
    """Exception raised for network-related errors."""

    def __init__(self, message: str, provider: str):
        super().__init__(f"Network error: {message}", provider, recoverable=True)

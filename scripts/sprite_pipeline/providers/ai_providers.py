"""
AI-based image providers for generating sprite strips.
"""

import base64
import io
import logging
from typing import Dict, List, Any

import requests
from PIL import Image, ImageDraw

from .base import ImageProvider, ProviderError, NetworkError, ConfigurationError

logger = logging.getLogger(__name__)


class StubAIProvider(ImageProvider):
    """Offline provider that draws placeholder strips for dry runs and tests."""

    FIGURE_COLOR = (200, 60, 60, 255)
    OUTLINE_COLOR = (0, 0, 0, 255)

    def __init__(self, config: Dict[str, Any]):
        """Initialize stub provider."""
        super().__init__(config)
        self.frame_width = config.get("frame_width")
        self.calls: List[Dict[str, Any]] = []

    def configure(self, config: Dict[str, Any]) -> None:
        """Configure stub provider (always succeeds)."""
        self.frame_width = config.get("frame_width", self.frame_width)
        self._configured = True

    def generate_image(self, prompt: str, size: tuple[int, int]) -> bytes:
        """Draw one outlined figure per frame cell on a transparent background."""
        self.calls.append({"prompt": prompt, "size": size})

        width, height = size
        cell = self.frame_width or height
        img = Image.new('RGBA', size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)

        margin_x = max(1, cell // 4)
        margin_y = max(1, height // 4)
        for index, left in enumerate(range(0, width - cell + 1, cell)):
            # Shift each frame a little so the strip actually animates
            bob = index % 2
            draw.rectangle(
                [left + margin_x, margin_y + bob, left + cell - margin_x - 1, height - margin_y - 1],
                fill=self.FIGURE_COLOR,
                outline=self.OUTLINE_COLOR,
            )

        buf = io.BytesIO()
        img.save(buf, format='PNG')
        return buf.getvalue()


class OpenAIProvider(ImageProvider):
    """Provider for the OpenAI image generation API."""

    DEFAULT_MODEL = "gpt-image-1"
    API_URL = "https://api.openai.com/v1/images/generations"

    def __init__(self, config: Dict[str, Any]):
        """Initialize OpenAI provider."""
        super().__init__(config)
        self.api_key = config.get("api_key", "")
        self.model = config.get("model", self.DEFAULT_MODEL)
        self.quality = config.get("quality", "high")
        self.api_url = config.get("api_url", self.API_URL)
        self.timeout = config.get("timeout", 120)

    def configure(self, config: Dict[str, Any]) -> None:
        """Configure OpenAI provider."""
        errors = self.validate_config(config)
        if errors:
            raise ConfigurationError(f"Invalid configuration: {'; '.join(errors)}", "OpenAIProvider")

        self.api_key = config.get("api_key", "")
        self.model = config.get("model", self.DEFAULT_MODEL)
        self.quality = config.get("quality", "high")
        self.api_url = config.get("api_url", self.API_URL)
        self.timeout = config.get("timeout", 120)

        self._configured = True

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """Validate OpenAI configuration."""
        errors = []

        api_key = config.get("api_key")
        if not api_key or not isinstance(api_key, str):
            errors.append("'api_key' is required and must be a string")

        quality = config.get("quality", "high")
        if quality not in ["low", "medium", "high"]:
            errors.append("'quality' must be 'low', 'medium' or 'high'")

        return errors

    def generate_image(self, prompt: str, size: tuple[int, int]) -> bytes:
        """Generate an image and return the decoded PNG bytes."""
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured", "OpenAIProvider")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        api_size = self.get_supported_size(size)
        logger.debug(f"Generating image: {size[0]}x{size[1]} (using {api_size})")
        logger.debug(f"Prompt: {prompt[:100]}...")

        payload = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": api_size,
            "response_format": "b64_json",
            "quality": self.quality
        }

        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"OpenAI API error: {e}", "OpenAIProvider")

        if response.status_code == 400:
            logger.error("Bad request - prompt may be invalid or rejected")
        elif response.status_code == 429:
            logger.error("Rate limited - please wait before retrying")

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise NetworkError(f"OpenAI API error: {e}", "OpenAIProvider")

        result = response.json()
        data = result.get("data") or []
        if not data or not data[0].get("b64_json"):
            raise ProviderError("No image data in response", "OpenAIProvider", recoverable=True)

        image_data = base64.b64decode(data[0]["b64_json"])
        logger.debug(f"Generated image: {len(image_data)} bytes")
        return image_data

    @staticmethod
    def get_supported_size(target_size: tuple[int, int]) -> str:
        """Map requested dimensions to the closest supported API size by aspect ratio."""
        width, height = target_size
        aspect_ratio = width / height

        if aspect_ratio > 1.5:
            return "1792x1024"
        elif aspect_ratio < 0.7:
            return "1024x1792"
        else:
            return "1024x1024"


class AIProviderFactory:
    """Factory for creating image providers."""

    PROVIDERS = {
        "stub": StubAIProvider,
        "openai": OpenAIProvider
    }

    @classmethod
    def create_provider(cls, provider_type: str, config: Dict[str, Any]) -> ImageProvider:
        """Create provider instance."""
        if provider_type not in cls.PROVIDERS:
            raise ValueError(f"Unknown AI provider type: {provider_type}. Available: {list(cls.PROVIDERS.keys())}")

        provider_class = cls.PROVIDERS[provider_type]
        return provider_class(config)

    @classmethod
    def create_configured(cls, provider_type: str, config: Dict[str, Any]) -> ImageProvider:
        """Create a provider and configure it in one step."""
        provider = cls.create_provider(provider_type, config)
        provider.configure(config)
        return provider

    @classmethod
    def list_providers(cls) -> List[str]:
        """List available provider types."""
        return list(cls.PROVIDERS.keys())

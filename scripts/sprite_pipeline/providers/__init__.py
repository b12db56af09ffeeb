"""
Image providers for the pipeline.
Handles sprite specifications, prompt construction and remote image generation.
"""

from .base import (
    ImageProvider, SpriteSpec, CharacterSpec, AnimationSpec,
    ProviderError, ConfigurationError, NetworkError
)
from .ai_providers import StubAIProvider, OpenAIProvider, AIProviderFactory
from .prompts import PromptBuilder, ANIMATION_PROMPTS

__all__ = [
    # Specifications and base class
    "ImageProvider",
    "SpriteSpec",
    "CharacterSpec",
    "AnimationSpec",

    # Exceptions
    "ProviderError",
    "ConfigurationError",
    "NetworkError",

    # Concrete providers
    "StubAIProvider",
    "OpenAIProvider",
    "AIProviderFactory",

    # Prompts
    "PromptBuilder",
    "ANIMATION_PROMPTS",
]

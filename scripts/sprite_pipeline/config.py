"""
Configuration management system for the sprite pipeline.
Supports TOML and JSON configuration files with environment overrides.
"""

import os
import json
from dataclasses import dataclass, field

# Handle tomllib import for different Python versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python < 3.11 with tomli package
from typing import Dict, List, Any, Union
from pathlib import Path


@dataclass
class ValidationConfig:
    """Thresholds for the border transparency check."""
    corner_sample_size: int = 5
    alpha_threshold: int = 10  # of 255; anything at or below counts as transparent
    min_transparent_border_percent: float = 95.0
    expected_format: str = "PNG"


@dataclass
class BackgroundFixConfig:
    """Settings for the near-colour background repair pass."""
    target_color: tuple[int, int, int] = (255, 255, 255)
    tolerance: int = 30


@dataclass
class ErrorConfig:
    """Configuration for generation retries."""
    max_retries: int = 3
    retry_delay: float = 2.0  # seconds, multiplied by the attempt number


@dataclass
class StyleConfig:
    """Pixel art style constraints fed into generation prompts."""
    max_colors: int = 16
    outline_width: int = 1
    outline_color: str = "#000000"


@dataclass
class PipelineConfig:
    """Main configuration class for the sprite pipeline."""

    # Image generation
    provider: str = "openai"
    provider_config: Dict[str, Any] = field(default_factory=dict)
    image_quality: str = "high"

    # Atlas packing
    atlas_padding: int = 1
    atlas_max_width: int = 2048
    atlas_power_of_two: bool = False

    # Sub-configurations
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    background: BackgroundFixConfig = field(default_factory=BackgroundFixConfig)
    errors: ErrorConfig = field(default_factory=ErrorConfig)
    style: StyleConfig = field(default_factory=StyleConfig)

    # Paths
    output_dir: str = "assets/generated"
    specs_dir: str = "specs"

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "PipelineConfig":
        """Load configuration from TOML or JSON file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        if config_path.suffix.lower() == '.toml':
            return cls._from_toml(config_path)
        elif config_path.suffix.lower() == '.json':
            return cls._from_json(config_path)
        else:
            raise ValueError(f"Unsupported configuration format: {config_path.suffix}")

    @classmethod
    def _from_toml(cls, config_path: Path) -> "PipelineConfig":
        """Load configuration from TOML file."""
        with open(config_path, 'rb') as f:
            data = tomllib.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_json(cls, config_path: Path) -> "PipelineConfig":
        """Load configuration from JSON file."""
        with open(config_path, 'r') as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Create configuration from dictionary."""
        config_data: Dict[str, Any] = {}

        if 'provider' in data:
            provider = data['provider']
            config_data['provider'] = provider.get('name', 'openai')
            config_data['provider_config'] = {
                key: value for key, value in provider.items() if key != 'name'
            }

        if 'generation' in data:
            generation = data['generation']
            config_data['image_quality'] = generation.get('quality', 'high')
            config_data['errors'] = ErrorConfig(
                max_retries=generation.get('max_retries', 3),
                retry_delay=generation.get('retry_delay', 2.0),
            )

        if 'validation' in data:
            validation = data['validation']
            config_data['validation'] = ValidationConfig(
                corner_sample_size=validation.get('corner_sample_size', 5),
                alpha_threshold=validation.get('alpha_threshold', 10),
                min_transparent_border_percent=validation.get('min_transparent_border_percent', 95.0),
                expected_format=validation.get('expected_format', 'PNG'),
            )

        if 'background' in data:
            background = data['background']
            config_data['background'] = BackgroundFixConfig(
                target_color=tuple(background.get('target_color', (255, 255, 255))),
                tolerance=background.get('tolerance', 30),
            )

        if 'atlas' in data:
            atlas = data['atlas']
            config_data['atlas_padding'] = atlas.get('padding', 1)
            config_data['atlas_max_width'] = atlas.get('max_width', 2048)
            config_data['atlas_power_of_two'] = atlas.get('power_of_two', False)

        if 'style' in data:
            style = data['style']
            config_data['style'] = StyleConfig(
                max_colors=style.get('max_colors', 16),
                outline_width=style.get('outline_width', 1),
                outline_color=style.get('outline_color', '#000000'),
            )

        if 'paths' in data:
            paths = data['paths']
            config_data['output_dir'] = paths.get('output_dir', 'assets/generated')
            config_data['specs_dir'] = paths.get('specs_dir', 'specs')

        return cls(**config_data)

    @classmethod
    def default(cls) -> "PipelineConfig":
        """Create default configuration with environment variable overrides."""
        return cls._apply_env_overrides(cls())

    @classmethod
    def _apply_env_overrides(cls, config: "PipelineConfig") -> "PipelineConfig":
        """Apply environment variable overrides to configuration."""

        if os.getenv('SPRITE_PIPELINE_PROVIDER'):
            config.provider = os.getenv('SPRITE_PIPELINE_PROVIDER', 'openai')

        # The API key is never stored in config files
        if os.getenv('OPENAI_API_KEY'):
            config.provider_config['api_key'] = os.getenv('OPENAI_API_KEY')

        if os.getenv('SPRITE_PIPELINE_MAX_RETRIES'):
            config.errors.max_retries = int(os.getenv('SPRITE_PIPELINE_MAX_RETRIES', '3'))

        if os.getenv('SPRITE_PIPELINE_RETRY_DELAY'):
            config.errors.retry_delay = float(os.getenv('SPRITE_PIPELINE_RETRY_DELAY', '2.0'))

        if os.getenv('SPRITE_PIPELINE_ATLAS_PADDING'):
            config.atlas_padding = int(os.getenv('SPRITE_PIPELINE_ATLAS_PADDING', '1'))

        if os.getenv('SPRITE_PIPELINE_ATLAS_MAX_WIDTH'):
            config.atlas_max_width = int(os.getenv('SPRITE_PIPELINE_ATLAS_MAX_WIDTH', '2048'))

        if os.getenv('SPRITE_PIPELINE_ATLAS_POWER_OF_TWO'):
            config.atlas_power_of_two = os.getenv('SPRITE_PIPELINE_ATLAS_POWER_OF_TWO', 'false').lower() == 'true'

        if os.getenv('SPRITE_PIPELINE_ALPHA_THRESHOLD'):
            config.validation.alpha_threshold = int(os.getenv('SPRITE_PIPELINE_ALPHA_THRESHOLD', '10'))

        if os.getenv('SPRITE_PIPELINE_MIN_TRANSPARENT_BORDER'):
            config.validation.min_transparent_border_percent = float(
                os.getenv('SPRITE_PIPELINE_MIN_TRANSPARENT_BORDER', '95')
            )

        if os.getenv('SPRITE_PIPELINE_OUTPUT_DIR'):
            config.output_dir = os.getenv('SPRITE_PIPELINE_OUTPUT_DIR', 'assets/generated')

        if os.getenv('SPRITE_PIPELINE_SPECS_DIR'):
            config.specs_dir = os.getenv('SPRITE_PIPELINE_SPECS_DIR', 'specs')

        return config

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.atlas_padding < 0:
            errors.append("atlas padding cannot be negative")

        if self.atlas_max_width <= 0:
            errors.append("atlas max_width must be positive")

        if self.errors.max_retries < 1:
            errors.append("max_retries must be at least 1")

        if self.errors.retry_delay < 0:
            errors.append("retry_delay cannot be negative")

        if self.validation.corner_sample_size < 1:
            errors.append("corner_sample_size must be at least 1")

        if not 0 <= self.validation.alpha_threshold <= 255:
            errors.append("alpha_threshold must be between 0 and 255")

        if not 0 <= self.validation.min_transparent_border_percent <= 100:
            errors.append("min_transparent_border_percent must be between 0 and 100")

        if not 0 <= self.background.tolerance <= 255:
            errors.append("background tolerance must be between 0 and 255")

        if self.image_quality not in ['low', 'medium', 'high']:
            errors.append("quality must be low, medium, or high")

        return errors

    def validate_credentials(self) -> List[str]:
        """Check that the configured provider has what it needs to run."""
        errors = []
        if self.provider == 'openai' and not self.provider_config.get('api_key'):
            errors.append("OPENAI_API_KEY environment variable is required")
        return errors

"""
Sprite pipeline coordinator.

Runs generation, validation, background repair, slicing and packing for
every animation of a sprite specification, then writes the atlas image and
its metadata documents.
"""

import time
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any, Tuple, Union
from dataclasses import dataclass, field

from .config import PipelineConfig
from .generation import generate_with_retry, GenerationError
from .providers.base import ImageProvider, SpriteSpec
from .providers.ai_providers import AIProviderFactory
from .providers.prompts import PromptBuilder
from .processing.atlas import AtlasConfig, AtlasPacker, AtlasResult, AtlasValidator, AtlasGenerationError
from .processing.background import BackgroundFixer
from .processing.metadata import MetadataGenerator
from .processing.slicer import Frame, StripSlicer
from .processing.validator import AlphaValidator, ValidationResult
from .utils.image import DecodedImage, ImageUtils


class PipelineStep(Enum):
    """Enumeration of pipeline steps."""
    VALIDATE_SPEC = "validate_spec"
    GENERATE = "generate"
    PACK = "pack"
    METADATA = "metadata"


@dataclass
class StepResult:
    """Result of a pipeline step execution."""
    step: PipelineStep
    success: bool
    duration: float
    message: str
    target: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class PipelineState:
    """Current state of the pipeline execution."""
    current_step: Optional[PipelineStep] = None
    step_results: List[StepResult] = field(default_factory=list)
    start_time: Optional[float] = None
    frames_generated: int = 0

    @property
    def failed_steps(self) -> List[StepResult]:
        return [r for r in self.step_results if not r.success]

    @property
    def warnings(self) -> List[str]:
        return [w for r in self.step_results for w in r.warnings]


@dataclass
class PipelineResult:
    """Outcome of a pipeline run."""
    success: bool
    character_name: str
    output_dir: Path
    dry_run: bool = False
    files: Dict[str, Path] = field(default_factory=dict)
    frame_count: int = 0
    validations: List[Tuple[str, ValidationResult]] = field(default_factory=list)
    atlas: Optional[AtlasResult] = None
    state: Optional[PipelineState] = None


class PipelineError(Exception):
    """Base exception for pipeline errors."""
    def __init__(self, message: str, step: Optional[PipelineStep] = None, recoverable: bool = False):
        super().__init__(message)
        self.step = step
        self.recoverable = recoverable


class SpritePipeline:
    """
    Coordinates sprite generation from a specification to a packed atlas.

    Animations are processed one after another; the first animation that
    cannot be generated aborts the run.
    """

    def __init__(self, config: PipelineConfig, provider: Optional[ImageProvider] = None,
                 verbose: bool = False, sleep=time.sleep):
        """
        Initialize the sprite pipeline.

        Args:
            config: Pipeline configuration
            provider: Image provider; created from config.provider when omitted
            verbose: Enable debug logging
            sleep: Sleep function used between retries
        """
        self.config = config
        self.state = PipelineState()
        self.logger = self._setup_logging(verbose)
        self._provider = provider
        self._sleep = sleep
        self._pending_warnings: List[str] = []

        self.prompt_builder = PromptBuilder(config.style)
        self.validator = AlphaValidator(config.validation)
        self.slicer = StripSlicer()
        self.atlas_config = AtlasConfig(
            padding=config.atlas_padding,
            max_width=config.atlas_max_width,
            power_of_two=config.atlas_power_of_two,
        )
        self.packer = AtlasPacker(self.atlas_config)
        self.metadata = MetadataGenerator()

    def _setup_logging(self, verbose: bool = False) -> logging.Logger:
        """Set up logging for the pipeline."""
        logger = logging.getLogger("sprite_pipeline")
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)

        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        return logger

    @property
    def provider(self) -> ImageProvider:
        """Image provider, created and configured on first use."""
        if self._provider is None:
            provider_config = dict(self.config.provider_config)
            provider_config.setdefault("quality", self.config.image_quality)
            self._provider = AIProviderFactory.create_configured(self.config.provider, provider_config)
        return self._provider

    def run_file(self, spec_path: Union[str, Path], output_dir: Optional[Union[str, Path]] = None,
                 dry_run: bool = False) -> PipelineResult:
        """Load a specification from JSON and run it."""
        self.logger.info(f"Loading spec from: {spec_path}")
        return self.run(SpriteSpec.from_file(spec_path), output_dir, dry_run)

    def run(self, spec: SpriteSpec, output_dir: Optional[Union[str, Path]] = None,
            dry_run: bool = False) -> PipelineResult:
        """
        Generate every animation of a specification and pack the results.

        Args:
            spec: Sprite specification
            output_dir: Target directory; defaults to <config.output_dir>/<name>
            dry_run: Validate the specification and stop before generating

        Returns:
            PipelineResult describing the written files

        Raises:
            PipelineError: If the sprite specification or config is invalid, or any step fails
        """
        self.state = PipelineState(start_time=time.time())
        target_dir = Path(output_dir) if output_dir else Path(self.config.output_dir) / spec.name

        self._execute_step(PipelineStep.VALIDATE_SPEC, lambda: self._validate_inputs(spec, dry_run))

        self.logger.info(
            f"Generating: {spec.name} ({spec.frame_width}x{spec.frame_height}, "
            f"animations: {', '.join(spec.animations)}) -> {target_dir}"
        )

        if dry_run:
            self.logger.info("Dry run - no images will be generated")
            return PipelineResult(True, spec.name, target_dir, dry_run=True, state=self.state)

        target_dir.mkdir(parents=True, exist_ok=True)

        all_frames: List[Frame] = []
        validations: List[Tuple[str, ValidationResult]] = []
        total = len(spec.animations)

        for i, animation in enumerate(spec.animations, 1):
            anim = spec.animations[animation]
            self.logger.info(f"[{i}/{total}] Generating {animation} ({anim.frames} frames)")
            frames, validation = self._execute_step(
                PipelineStep.GENERATE,
                lambda: self._generate_animation(spec, animation, target_dir),
                target=animation,
            )
            all_frames.extend(frames)
            validations.append((f"strip_{animation}.png", validation))

        self.state.frames_generated = len(all_frames)

        image_name = f"{spec.name}.png"
        atlas = self._execute_step(PipelineStep.PACK, lambda: self._pack(all_frames, image_name))

        files = self._execute_step(
            PipelineStep.METADATA,
            lambda: self._write_outputs(spec.name, atlas, validations, target_dir),
        )

        self._log_summary(files)

        return PipelineResult(
            success=True,
            character_name=spec.name,
            output_dir=target_dir,
            files=files,
            frame_count=len(all_frames),
            validations=validations,
            atlas=atlas,
            state=self.state,
        )

    def _execute_step(self, step: PipelineStep, handler, target: Optional[str] = None):
        """
        Execute a single pipeline step with error handling and timing.

        Returns whatever the handler returns.
        """
        self.state.current_step = step
        label = f"{step.value}:{target}" if target else step.value
        self.logger.debug(f"Executing step: {label}")

        start_time = time.time()

        try:
            value = handler()
        except Exception as e:
            duration = time.time() - start_time
            self.state.step_results.append(StepResult(
                step=step,
                success=False,
                duration=duration,
                message=f"Step {label} failed: {e}",
                target=target,
                errors=[str(e)],
                warnings=self._pending_warnings,
            ))
            self._pending_warnings = []
            self.logger.error(f"Step {label} failed after {duration:.2f}s: {e}")

            if isinstance(e, PipelineError):
                raise
            raise PipelineError(f"Step {label} failed: {e}", step) from e

        duration = time.time() - start_time
        warnings = self._pending_warnings
        self._pending_warnings = []
        self.state.step_results.append(StepResult(
            step=step,
            success=True,
            duration=duration,
            message=f"Step {label} completed successfully",
            target=target,
            warnings=warnings,
        ))
        self.logger.debug(f"Step {label} completed in {duration:.2f}s")
        return value

    def _warn(self, message: str) -> None:
        self.logger.warning(message)
        self._pending_warnings.append(message)

    def _validate_inputs(self, spec: SpriteSpec, dry_run: bool) -> None:
        config_errors = self.config.validate()
        if not dry_run and self._provider is None:
            config_errors += self.config.validate_credentials()
        if config_errors:
            raise PipelineError(f"Configuration invalid: {', '.join(config_errors)}",
                                PipelineStep.VALIDATE_SPEC)

        spec_errors = spec.validate()
        if spec_errors:
            raise PipelineError(f"Spec invalid: {', '.join(spec_errors)}", PipelineStep.VALIDATE_SPEC)

    def _generate_animation(self, spec: SpriteSpec, animation: str,
                            output_dir: Path) -> Tuple[List[Frame], ValidationResult]:
        """Generate, repair, save and slice one animation strip."""
        anim = spec.animations[animation]
        strip_width, strip_height = spec.strip_size(animation)
        prompt = self.prompt_builder.build_strip_prompt(spec, animation)

        def attempt(n: int) -> DecodedImage:
            data = self.provider.generate_image(prompt, (strip_width, strip_height))
            return ImageUtils.decode(data)

        try:
            strip = generate_with_retry(
                attempt,
                max_retries=self.config.errors.max_retries,
                base_delay=self.config.errors.retry_delay,
                sleep=self._sleep,
            )
        except GenerationError as e:
            raise PipelineError(str(e), PipelineStep.GENERATE) from e

        if strip.size != (strip_width, strip_height):
            self.logger.info(f"Resizing {animation} from {strip.width}x{strip.height} "
                             f"to {strip_width}x{strip_height}")
            strip = ImageUtils.resize(strip, (strip_width, strip_height), method='nearest')

        validation = self.validator.validate_sprite_strip(
            strip, spec.frame_width, spec.frame_height, anim.frames, name=f"strip_{animation}"
        )

        if not validation.is_valid:
            self._warn(f"Validation issues for {animation}: {'; '.join(validation.errors)}")

            if validation.has_transparency_issue:
                self.logger.info(f"Fixing transparency for {animation}")
                strip = BackgroundFixer.remove_near_color_background(
                    BackgroundFixer.ensure_alpha_channel(strip),
                    self.config.background.target_color,
                    self.config.background.tolerance,
                )
                validation = self.validator.validate_sprite_strip(
                    strip, spec.frame_width, spec.frame_height, anim.frames, name=f"strip_{animation}"
                )
                if not validation.is_valid:
                    self._warn(f"{animation} still fails validation after background fix")

        ImageUtils.save_image(strip, output_dir / f"strip_{animation}.png")

        sliced = self.slicer.slice_strip(strip, spec.frame_width, spec.frame_height, anim.frames)
        self._pending_warnings.extend(sliced.warnings)

        frames = sliced.to_frames(animation, anim.fps)
        self.logger.info(f"{animation}: {len(frames)} frames")
        return frames, validation

    def _pack(self, frames: List[Frame], image_name: str) -> AtlasResult:
        try:
            atlas = self.packer.pack(frames, image_name=image_name)
        except AtlasGenerationError as e:
            raise PipelineError(f"Atlas packing failed: {e.message}", PipelineStep.PACK) from e

        for problem in AtlasValidator(self.atlas_config).validate(atlas):
            self._warn(problem)

        return atlas

    def _write_outputs(self, name: str, atlas: AtlasResult,
                       validations: List[Tuple[str, ValidationResult]],
                       output_dir: Path) -> Dict[str, Path]:
        image_path = output_dir / f"{name}.png"
        atlas_path = output_dir / f"{name}.json"
        animations_path = output_dir / "animations.json"
        report_path = output_dir / "validation.json"

        atlas.save_atlas(image_path)
        self.metadata.write_atlas(atlas, atlas_path, image_name=image_path.name)
        self.metadata.write_json(self.metadata.animations_document(atlas), animations_path)
        self.metadata.write_json(self.metadata.validation_report_document(validations), report_path)

        return {
            "image": image_path,
            "atlas": atlas_path,
            "animations": animations_path,
            "validation": report_path,
        }

    def _log_summary(self, files: Dict[str, Path]) -> None:
        elapsed = time.time() - (self.state.start_time or time.time())
        self.logger.info(f"Generated {self.state.frames_generated} frames in {elapsed:.2f}s")
        for path in files.values():
            self.logger.info(f"  - {path}")
        if self.state.warnings:
            self.logger.info(f"Completed with {len(self.state.warnings)} warnings")

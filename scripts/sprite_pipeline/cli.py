"""
Command-line interface for the sprite pipeline.
Provides commands for generation, validation, slicing and packing.
"""

import re
import sys
import os
import time
from pathlib import Path
from typing import Optional, List
import typer
from rich.console import Console
from rich.table import Table

from .config import PipelineConfig
from .pipeline import SpritePipeline, PipelineError, PipelineState
from .providers.base import SpriteSpec, ProviderError
from .processing.validator import AlphaValidator
from .processing.metadata import MetadataGenerator
from .utils.image import ImageUtils, ImageDecodeError

# Initialize typer app and rich console
app = typer.Typer(
    name="sprite-pipeline",
    help="Sprite pipeline - generate pixel art animation strips and pack them into Phaser texture atlases",
    add_completion=False,
    rich_markup_mode="rich",
    epilog="""
[bold]Examples:[/bold]
  [cyan]sprite-pipeline init knight -d "armored knight"[/cyan]   Create a spec file
  [cyan]sprite-pipeline generate specs/knight.json[/cyan]      Generate sprites
  [cyan]sprite-pipeline check strip_walk.png --frames 6[/cyan]  Check transparency
  [cyan]sprite-pipeline pack frames/ --name knight[/cyan]       Pack loose frames

[bold]Environment Variables:[/bold]
  Use [cyan]sprite-pipeline config --env-vars[/cyan] to see all available variables.
    """
)
console = Console()

FRAME_NAME_PATTERN = re.compile(r"^(?P<animation>.+)_(?P<index>\d+)$")


@app.command()
def generate(
    spec_file: Path = typer.Argument(..., help="Path to sprite specification JSON file"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (default: <output_dir>/<name>)"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Validate spec without generating images"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Image provider (openai, stub)"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path")
):
    """Generate sprites from a specification file."""
    if not spec_file.exists():
        console.print(f"[red]Spec file not found:[/red] {spec_file.resolve()}")
        raise typer.Exit(1)

    try:
        config = _load_config(config_file)
        if provider:
            config.provider = provider

        if not dry_run:
            errors = config.validate_credentials()
            if errors:
                console.print("[red]Configuration errors:[/red]")
                for error in errors:
                    console.print(f"  • {error}")
                console.print("\nSet OPENAI_API_KEY in your environment")
                raise typer.Exit(1)

        pipeline = SpritePipeline(config, verbose=verbose)
        result = pipeline.run_file(spec_file, output_dir, dry_run=dry_run)

        if result.dry_run:
            console.print(f"[green]✓[/green] Specification valid, dry run for [cyan]{result.character_name}[/cyan]")
            console.print(f"[dim]  Output would go to {result.output_dir}[/dim]")
            return

        console.print("\n[green]✓ Generation complete![/green]")
        console.print(f"[dim]  {result.frame_count} frames packed into {result.files['image']}[/dim]")
        _display_pipeline_summary(result.state)

    except typer.Exit:
        raise
    except (PipelineError, ProviderError, ValueError, OSError) as e:
        console.print(f"[red]Generation failed:[/red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)


@app.command()
def validate(
    spec_file: Path = typer.Argument(..., help="Path to sprite specification JSON file")
):
    """Validate a sprite specification file."""
    if not spec_file.exists():
        console.print(f"[red]Spec file not found:[/red] {spec_file.resolve()}")
        raise typer.Exit(1)

    try:
        spec = SpriteSpec.from_file(spec_file)
    except (ValueError, OSError) as e:
        console.print(f"[red]Validation failed:[/red] {e}")
        raise typer.Exit(1)

    errors = spec.validate()
    if errors:
        console.print("[red]✗ Specification has errors:[/red]")
        for error in errors:
            console.print(f"[red]  - {error}[/red]")
        raise typer.Exit(1)

    console.print("[green]✓ Specification is valid[/green]")


@app.command()
def check(
    images: List[Path] = typer.Argument(..., help="PNG files to check"),
    frame_width: Optional[int] = typer.Option(None, "--frame-width", help="Expected frame width"),
    frame_height: Optional[int] = typer.Option(None, "--frame-height", help="Expected frame height"),
    frames: Optional[int] = typer.Option(None, "--frames", help="Expected frame count in a horizontal strip"),
    report: Optional[Path] = typer.Option(None, "--report", "-r", help="Write a validation report JSON"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path")
):
    """Check images for a real alpha channel and a transparent background."""
    config = _load_config(config_file)
    validator = AlphaValidator(config.validation)
    results = []

    table = Table(title="Alpha Validation")
    table.add_column("File", style="cyan")
    table.add_column("Status", width=8)
    table.add_column("Transparent", style="yellow")
    table.add_column("Issues", style="dim")

    for image_path in images:
        try:
            data = image_path.read_bytes()
        except OSError as e:
            console.print(f"[red]Cannot read {image_path}:[/red] {e}")
            raise typer.Exit(1)

        expected_width = frame_width * frames if frame_width and frames else frame_width
        result = validator.validate_bytes(data, expected_width, frame_height, name=image_path.name)
        results.append((image_path.name, result))

        status = "[green]✓[/green]" if result.is_valid else "[red]✗[/red]"
        percent = f"{result.transparent_percent:.1f}%" if result.transparent_percent is not None else "-"
        table.add_row(image_path.name, status, percent, "\n".join(result.errors + result.warnings))

    console.print(table)

    if report:
        metadata = MetadataGenerator()
        metadata.write_json(metadata.validation_report_document(results), report)
        console.print(f"[green]✓[/green] Report written to {report}")

    failed = [name for name, result in results if not result.is_valid]
    if failed:
        console.print(f"[red]{len(failed)} of {len(results)} images failed validation[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ All {len(results)} images passed[/green]")


@app.command(name="slice")
def slice_strip(
    strip: Path = typer.Argument(..., help="Horizontal sprite strip PNG"),
    frame_width: int = typer.Option(..., "--frame-width", help="Width of each frame"),
    frame_height: int = typer.Option(..., "--frame-height", help="Height of each frame"),
    frames: int = typer.Option(..., "--frames", help="Number of frames in the strip"),
    animation: Optional[str] = typer.Option(None, "--animation", "-a", help="Frame name prefix (default: file stem)"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory for frames")
):
    """Slice a horizontal strip into individual frame PNGs."""
    from .processing.slicer import StripSlicer

    try:
        image = ImageUtils.decode(strip)
    except (ImageDecodeError, OSError) as e:
        console.print(f"[red]Cannot read strip:[/red] {e}")
        raise typer.Exit(1)

    prefix = animation or strip.stem.replace("strip_", "", 1)
    target = output_dir or strip.parent / f"{prefix}_frames"

    result = StripSlicer().slice_strip(image, frame_width, frame_height, frames)
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    for frame in result.to_frames(prefix):
        ImageUtils.save_image(frame.image, target / f"{frame.name}.png")

    console.print(f"[green]✓[/green] Extracted {len(result)} frames to {target}")
    if len(result) == 0:
        raise typer.Exit(1)


@app.command()
def pack(
    frames_dir: Path = typer.Argument(..., help="Directory of frame PNGs named <animation>_<index>.png"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (default: frames directory)"),
    name: str = typer.Option("atlas", "--name", "-n", help="Atlas base file name"),
    padding: Optional[int] = typer.Option(None, "--padding", help="Padding between frames"),
    max_width: Optional[int] = typer.Option(None, "--max-width", help="Maximum sheet width"),
    power_of_two: Optional[bool] = typer.Option(None, "--power-of-two/--no-power-of-two", help="Round sheet size up to powers of two"),
    fps: int = typer.Option(10, "--fps", help="Frame rate recorded for every animation"),
    atlas_format: str = typer.Option("json", "--format", "-f", help="Atlas document format (json, toml)"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path")
):
    """Pack loose frame PNGs into a texture atlas with metadata."""
    from .processing.atlas import AtlasConfig, AtlasPacker, AtlasGenerationError
    from .processing.slicer import Frame

    if not frames_dir.is_dir():
        console.print(f"[red]Frames directory not found:[/red] {frames_dir}")
        raise typer.Exit(1)

    if atlas_format not in ("json", "toml"):
        console.print(f"[red]Unsupported format:[/red] {atlas_format}")
        raise typer.Exit(1)

    config = _load_config(config_file)
    atlas_config = AtlasConfig(
        padding=config.atlas_padding if padding is None else padding,
        max_width=config.atlas_max_width if max_width is None else max_width,
        power_of_two=config.atlas_power_of_two if power_of_two is None else power_of_two,
    )

    frame_list = []
    for path in sorted(frames_dir.glob("*.png")):
        match = FRAME_NAME_PATTERN.match(path.stem)
        try:
            image = ImageUtils.decode(path)
        except ImageDecodeError as e:
            console.print(f"[yellow]Skipping {path.name}:[/yellow] {e}")
            continue
        frame_list.append(Frame(
            name=path.stem,
            image=image,
            animation_id=match.group("animation") if match else None,
            frame_index=int(match.group("index")) if match else 0,
            fps=fps,
        ))

    try:
        result = AtlasPacker(atlas_config).pack(frame_list, image_name=f"{name}.png")
    except AtlasGenerationError as e:
        console.print(f"[red]Packing failed:[/red] {e.message}")
        raise typer.Exit(1)

    target = output_dir or frames_dir
    metadata = MetadataGenerator()
    image_path = result.save_atlas(target / f"{name}.png")
    atlas_path = metadata.write_atlas(result, target / f"{name}.{atlas_format}", format=atlas_format)
    animations_path = metadata.write_json(metadata.animations_document(result), target / "animations.json")

    console.print(f"[green]✓[/green] Packed {len(frame_list)} frames into {result.width}x{result.height} sheet")
    for path in (image_path, atlas_path, animations_path):
        console.print(f"  - {path}")


@app.command()
def init(
    name: str = typer.Argument("character", help="Character name"),
    description: str = typer.Option("A game character", "--description", "-d", help="Character description"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (default: specs)")
):
    """Create a new sprite specification file."""
    spec = SpriteSpec.default(description, name=name)
    target = output_dir or Path(PipelineConfig.default().specs_dir)

    try:
        spec_path = spec.save(target / f"{name}.json")
    except OSError as e:
        console.print(f"[red]Init failed:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Created spec file: {spec_path}[/green]")
    console.print("[dim]\nEdit this file to customize your character, then run:[/dim]")
    console.print(f"[cyan]  sprite-pipeline generate {spec_path}[/cyan]")


@app.command(name="list")
def list_specs(
    specs_dir: Optional[Path] = typer.Option(None, "--specs-dir", "-s", help="Directory holding specification files")
):
    """List available sprite specifications."""
    directory = specs_dir or Path(PipelineConfig.default().specs_dir)

    if not directory.is_dir():
        console.print("[yellow]Specs directory not found.[/yellow]")
        console.print("[dim]Create a spec with: sprite-pipeline init <name>[/dim]")
        return

    spec_files = sorted(directory.glob("*.json"))
    if not spec_files:
        console.print("[yellow]No specification files found.[/yellow]")
        console.print("[dim]Create one with: sprite-pipeline init <name>[/dim]")
        return

    table = Table(title="Available Specifications")
    table.add_column("File", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Character")
    table.add_column("Animations", style="yellow")

    for spec_path in spec_files:
        try:
            spec = SpriteSpec.from_file(spec_path)
        except (OSError, ValueError) as e:
            table.add_row(spec_path.name, "[red]unreadable[/red]", str(e), "")
            continue

        table.add_row(
            spec_path.name,
            spec.name,
            spec.character.description or "no description",
            ", ".join(spec.animations),
        )

    console.print(table)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    validate_config: bool = typer.Option(False, "--validate", help="Validate configuration file"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    env_vars: bool = typer.Option(False, "--env-vars", help="Show available environment variables")
):
    """Manage pipeline configuration."""
    try:
        if env_vars:
            _display_env_vars()
            return

        if show or validate_config:
            config = _load_config(config_file)

            if show:
                _display_config(config)

            if validate_config:
                errors = config.validate()
                if errors:
                    console.print("[red]Configuration validation errors:[/red]")
                    for error in errors:
                        console.print(f"  • {error}")
                    raise typer.Exit(1)
                else:
                    console.print("[green]✓ Configuration is valid[/green]")
        else:
            console.print("Use --show to display configuration, --validate to check it, or --env-vars to see environment variables.")

    except typer.Exit:
        raise
    except (ValueError, OSError) as e:
        console.print(f"[red]Error managing configuration:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show sprite pipeline version information."""
    from . import __version__

    console.print("[bold]Sprite Pipeline[/bold]")
    console.print(f"Version: {__version__}")
    console.print("Python: " + sys.version.split()[0])

    import importlib.metadata

    table = Table(show_header=False)
    table.add_column("Status", width=3)
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="green")

    for package in ("Pillow", "numpy", "requests", "Jinja2", "typer", "rich", "toml"):
        try:
            table.add_row("[green]✓[/green]", package, importlib.metadata.version(package))
        except importlib.metadata.PackageNotFoundError:
            table.add_row("[red]✗[/red]", package, "Not installed")

    console.print("\n[bold]Dependencies:[/bold]")
    console.print(table)


def _load_config(config_file: Optional[Path]) -> PipelineConfig:
    """Load configuration from file or use defaults with environment variable support."""
    config = None

    if config_file:
        if not config_file.exists():
            console.print(f"[red]Configuration file not found:[/red] {config_file}")
            raise typer.Exit(1)
        config = PipelineConfig.from_file(config_file)
        console.print(f"[dim]Using configuration: {config_file}[/dim]")
    else:
        # Try to find default config files
        default_configs = [
            Path("sprite_pipeline.toml"),
            Path("sprite_pipeline.json"),
            Path("scripts/sprite_pipeline.toml"),
            Path("scripts/sprite_pipeline.json")
        ]

        for config_path in default_configs:
            if config_path.exists():
                console.print(f"[dim]Using configuration: {config_path}[/dim]")
                config = PipelineConfig.from_file(config_path)
                break

        if config is None:
            config = PipelineConfig.default()

    # Apply environment variable overrides
    config = PipelineConfig._apply_env_overrides(config)

    env_vars_used = [key for key in os.environ if key.startswith('SPRITE_PIPELINE_')]
    if env_vars_used:
        console.print(f"[dim]Environment overrides applied: {len(env_vars_used)} variables[/dim]")

    return config


def _display_pipeline_summary(state) -> None:
    """Display pipeline execution summary."""
    if not isinstance(state, PipelineState):
        return

    total_duration = 0
    if state.start_time:
        total_duration = time.time() - state.start_time

    table = Table(title="Pipeline Steps")
    table.add_column("Step", style="cyan")
    table.add_column("Status", width=8)
    table.add_column("Duration", style="yellow")
    table.add_column("Warnings", style="dim")

    for result in state.step_results:
        label = f"{result.step.value}:{result.target}" if result.target else result.step.value
        status = "[green]✓[/green]" if result.success else "[red]✗[/red]"
        table.add_row(label, status, f"{result.duration:.2f}s", str(len(result.warnings)))

    console.print(table)
    console.print(f"[dim]Total execution time: {total_duration:.2f}s[/dim]")


def _display_config(config: PipelineConfig) -> None:
    """Display configuration in a formatted table."""
    table = Table(title="Sprite Pipeline Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Provider", config.provider)
    table.add_row("API Key", "set" if config.provider_config.get("api_key") else "not set")
    table.add_row("Image Quality", config.image_quality)
    table.add_row("Max Retries", str(config.errors.max_retries))
    table.add_row("Retry Delay", f"{config.errors.retry_delay:g}s")

    table.add_row("Corner Sample Size", str(config.validation.corner_sample_size))
    table.add_row("Alpha Threshold", str(config.validation.alpha_threshold))
    table.add_row("Min Transparent Border", f"{config.validation.min_transparent_border_percent:g}%")

    table.add_row("Background Color", str(tuple(config.background.target_color)))
    table.add_row("Background Tolerance", str(config.background.tolerance))

    table.add_row("Atlas Padding", str(config.atlas_padding))
    table.add_row("Atlas Max Width", str(config.atlas_max_width))
    table.add_row("Power of Two", str(config.atlas_power_of_two))

    table.add_row("Max Colors", str(config.style.max_colors))
    table.add_row("Outline Width", str(config.style.outline_width))

    table.add_row("Output Directory", config.output_dir)
    table.add_row("Specs Directory", config.specs_dir)

    console.print(table)


def _display_env_vars() -> None:
    """Display available environment variables for configuration."""
    table = Table(title="Sprite Pipeline Environment Variables")
    table.add_column("Environment Variable", style="cyan")
    table.add_column("Description", style="white")
    table.add_column("Example", style="green")

    env_vars = [
        ("OPENAI_API_KEY", "API key for the OpenAI provider", "sk-..."),
        ("SPRITE_PIPELINE_PROVIDER", "Image provider to use", "stub"),
        ("SPRITE_PIPELINE_MAX_RETRIES", "Generation attempts per animation", "3"),
        ("SPRITE_PIPELINE_RETRY_DELAY", "Retry delay unit in seconds", "2.0"),
        ("SPRITE_PIPELINE_ATLAS_PADDING", "Atlas padding in pixels", "1"),
        ("SPRITE_PIPELINE_ATLAS_MAX_WIDTH", "Maximum atlas width", "2048"),
        ("SPRITE_PIPELINE_ATLAS_POWER_OF_TWO", "Round atlas size to powers of two (true/false)", "false"),
        ("SPRITE_PIPELINE_ALPHA_THRESHOLD", "Alpha at or below this counts as transparent", "10"),
        ("SPRITE_PIPELINE_MIN_TRANSPARENT_BORDER", "Required transparent border percentage", "95"),
        ("SPRITE_PIPELINE_OUTPUT_DIR", "Output directory path", "assets/generated"),
        ("SPRITE_PIPELINE_SPECS_DIR", "Specification directory path", "specs"),
    ]

    for var_name, description, example in env_vars:
        table.add_row(var_name, description, example)

    console.print(table)
    console.print("\n[dim]Set these environment variables to override configuration file settings.[/dim]")
    console.print("[dim]Example: export SPRITE_PIPELINE_PROVIDER=stub[/dim]")


if __name__ == "__main__":
    app()

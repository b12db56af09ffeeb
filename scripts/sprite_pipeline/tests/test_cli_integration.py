"""
Integration tests for the sprite pipeline CLI.
Tests command-line interface functionality and argument parsing.
"""

import os
import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import toml
from PIL import Image
from typer.testing import CliRunner

from ..cli import app
from ..providers.ai_providers import StubAIProvider


class TestCLIIntegration:
    """Test CLI integration and command functionality."""

    def setup_method(self):
        """Set up test environment before each test."""
        self.runner = CliRunner()
        self.temp_dir = tempfile.mkdtemp()
        self.original_cwd = os.getcwd()
        os.chdir(self.temp_dir)

        self.env_patch = patch.dict(os.environ)
        self.env_patch.start()
        for key in list(os.environ):
            if key == "OPENAI_API_KEY" or key.startswith("SPRITE_PIPELINE_"):
                del os.environ[key]

    def teardown_method(self):
        """Clean up test environment after each test."""
        self.env_patch.stop()
        os.chdir(self.original_cwd)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def create_spec(self, name: str = "knight", **overrides) -> Path:
        """Create a small test specification file."""
        data = {
            "name": name,
            "character": {"description": "a knight in silver armor"},
            "frameWidth": 32,
            "frameHeight": 32,
            "animations": {"idle": {"frames": 2, "fps": 8}},
        }
        data.update(overrides)
        spec_path = Path("specs") / f"{name}.json"
        spec_path.parent.mkdir(parents=True, exist_ok=True)
        spec_path.write_text(json.dumps(data, indent=2))
        return spec_path

    def create_strip(self, path: Path, frames: int = 2, size: int = 32) -> Path:
        """Write a transparent placeholder strip."""
        provider = StubAIProvider({"frame_width": size})
        path.write_bytes(provider.generate_image("strip", (size * frames, size)))
        return path

    def test_cli_help(self):
        """Test that CLI help command works."""
        result = self.runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "generate" in result.stdout

    def test_init_creates_spec(self):
        """Init writes a default spec into the specs directory."""
        result = self.runner.invoke(app, ["init", "knight", "-d", "an armored knight"])

        assert result.exit_code == 0
        assert "Created spec file" in result.stdout

        data = json.loads(Path("specs/knight.json").read_text())
        assert data["name"] == "knight"
        assert data["character"]["description"] == "an armored knight"
        assert data["frameWidth"] == 64
        assert list(data["animations"]) == ["idle", "walk", "run", "jump", "attack", "hurt"]

    def test_init_custom_output(self):
        result = self.runner.invoke(app, ["init", "slime", "-o", "elsewhere"])

        assert result.exit_code == 0
        assert Path("elsewhere/slime.json").exists()

    def test_list_without_specs_dir(self):
        result = self.runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "Specs directory not found." in result.stdout

    def test_list_empty(self):
        Path("specs").mkdir()

        result = self.runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "No specification files found." in result.stdout

    def test_list_specs(self):
        self.create_spec("knight")

        result = self.runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "knight.json" in result.stdout

    def test_validate_valid_spec(self):
        spec_path = self.create_spec()

        result = self.runner.invoke(app, ["validate", str(spec_path)])

        assert result.exit_code == 0
        assert "Specification is valid" in result.stdout

    def test_validate_invalid_spec(self):
        spec_path = self.create_spec(frameWidth=8)

        result = self.runner.invoke(app, ["validate", str(spec_path)])

        assert result.exit_code == 1
        assert "Specification has errors" in result.stdout
        assert "frameWidth must be between 16 and 256" in result.stdout

    def test_validate_malformed_spec(self):
        """Structurally broken spec files fail cleanly instead of crashing."""
        Path("specs").mkdir()
        Path("specs/bare.json").write_text(json.dumps({"animations": {"idle": 4}}))
        Path("specs/list.json").write_text(json.dumps([1, 2]))

        for spec_path in ("specs/bare.json", "specs/list.json"):
            result = self.runner.invoke(app, ["validate", spec_path])

            assert result.exit_code == 1
            assert result.exception is None or isinstance(result.exception, SystemExit)
            assert "Validation failed" in result.stdout

    def test_generate_malformed_spec(self):
        spec_path = self.create_spec(animations={"idle": 4})

        result = self.runner.invoke(app, ["generate", str(spec_path), "--provider", "stub", "--dry-run"])

        assert result.exit_code == 1
        assert "Generation failed" in result.stdout

    def test_list_marks_malformed_spec(self):
        self.create_spec("knight")
        Path("specs/broken.json").write_text(json.dumps([1, 2]))

        result = self.runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "unreadable" in result.stdout

    def test_validate_missing_file(self):
        result = self.runner.invoke(app, ["validate", "specs/missing.json"])

        assert result.exit_code == 1
        assert "Spec file not found" in result.stdout

    def test_generate_dry_run(self):
        """Dry runs need no API key and write nothing."""
        spec_path = self.create_spec()

        result = self.runner.invoke(app, ["generate", str(spec_path), "--dry-run", "-o", "out"])

        assert result.exit_code == 0
        assert "Specification valid" in result.stdout
        assert not Path("out").exists()

    def test_generate_requires_api_key(self):
        spec_path = self.create_spec()

        result = self.runner.invoke(app, ["generate", str(spec_path), "-o", "out"])

        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.stdout

    def test_generate_with_stub(self):
        """A stub generation writes the atlas and its documents."""
        spec_path = self.create_spec()

        result = self.runner.invoke(app, ["generate", str(spec_path), "--provider", "stub", "-o", "out"])

        assert result.exit_code == 0, result.stdout
        assert "Generation complete!" in result.stdout
        for name in ("knight.png", "knight.json", "animations.json", "validation.json", "strip_idle.png"):
            assert (Path("out") / name).exists()

    def test_generate_invalid_spec(self):
        spec_path = self.create_spec(animations={})

        result = self.runner.invoke(app, ["generate", str(spec_path), "--provider", "stub"])

        assert result.exit_code == 1
        assert "Generation failed" in result.stdout

    def test_generate_provider_from_env(self):
        spec_path = self.create_spec()
        os.environ["SPRITE_PIPELINE_PROVIDER"] = "stub"

        result = self.runner.invoke(app, ["generate", str(spec_path), "-o", "out"])

        assert result.exit_code == 0, result.stdout
        assert Path("out/knight.png").exists()

    def test_check_passes(self):
        """Transparent strips pass and a report is written."""
        strip = self.create_strip(Path("strip_walk.png"))

        result = self.runner.invoke(app, [
            "check", str(strip), "--frame-width", "32", "--frame-height", "32", "--frames", "2",
            "--report", "report.json",
        ])

        assert result.exit_code == 0
        assert "All 1 images passed" in result.stdout
        report = json.loads(Path("report.json").read_text())
        assert report["sprites"][0]["file"] == "strip_walk.png"
        assert report["sprites"][0]["status"] == "pass"

    def test_check_fails_on_opaque_image(self):
        Image.new('RGB', (64, 32), (255, 255, 255)).save("opaque.png")

        result = self.runner.invoke(app, ["check", "opaque.png"])

        assert result.exit_code == 1
        assert "1 of 1 images failed validation" in result.stdout

    def test_check_dimension_mismatch(self):
        strip = self.create_strip(Path("strip_walk.png"))

        result = self.runner.invoke(app, ["check", str(strip), "--frame-width", "32", "--frames", "4"])

        assert result.exit_code == 1

    def test_slice_strip(self):
        """Slicing writes one PNG per frame next to the strip."""
        strip = self.create_strip(Path("strip_walk.png"), frames=3)

        result = self.runner.invoke(app, [
            "slice", str(strip), "--frame-width", "32", "--frame-height", "32", "--frames", "3",
        ])

        assert result.exit_code == 0
        for i in range(3):
            with Image.open(Path("walk_frames") / f"walk_{i}.png") as frame:
                assert frame.size == (32, 32)

    def test_slice_short_strip_warns(self):
        strip = self.create_strip(Path("strip_run.png"), frames=2)

        result = self.runner.invoke(app, [
            "slice", str(strip), "--frame-width", "32", "--frame-height", "32", "--frames", "4",
            "-a", "run", "-o", "frames",
        ])

        assert result.exit_code == 0
        assert "Warning" in result.stdout
        assert sorted(p.name for p in Path("frames").iterdir()) == ["run_0.png", "run_1.png"]

    def test_pack_frames(self):
        """Loose frames are packed and grouped by animation name."""
        frames_dir = Path("frames")
        frames_dir.mkdir()
        for i in range(3):
            Image.new('RGBA', (16, 16), (255, 0, 0, 255)).save(frames_dir / f"walk_{i}.png")
        Image.new('RGBA', (16, 16), (0, 0, 255, 255)).save(frames_dir / "idle_0.png")

        result = self.runner.invoke(app, [
            "pack", str(frames_dir), "-o", "atlas", "--name", "hero", "--padding", "2", "--fps", "12",
        ])

        assert result.exit_code == 0, result.stdout
        atlas = json.loads(Path("atlas/hero.json").read_text())
        assert set(atlas["frames"]) == {"walk_0", "walk_1", "walk_2", "idle_0"}
        assert atlas["meta"]["image"] == "hero.png"
        animations = json.loads(Path("atlas/animations.json").read_text())
        assert animations["walk"]["fps"] == 12
        assert [f["frame"] for f in animations["walk"]["frames"]] == [0, 1, 2]
        with Image.open("atlas/hero.png") as sheet:
            # 2 + 4 * (16 + 2) wide, 2 + 16 + 2 tall
            assert sheet.size == (74, 20)

    def test_pack_toml_power_of_two(self):
        frames_dir = Path("frames")
        frames_dir.mkdir()
        Image.new('RGBA', (20, 20), (0, 255, 0, 255)).save(frames_dir / "idle_0.png")

        result = self.runner.invoke(app, [
            "pack", str(frames_dir), "--format", "toml", "--power-of-two",
        ])

        assert result.exit_code == 0, result.stdout
        atlas = toml.load(frames_dir / "atlas.toml")
        assert atlas["meta"]["size"] == {"w": 32, "h": 32}

    def test_pack_rejects_unknown_format(self):
        Path("frames").mkdir()

        result = self.runner.invoke(app, ["pack", "frames", "--format", "xml"])

        assert result.exit_code == 1
        assert "Unsupported format" in result.stdout

    def test_pack_empty_directory(self):
        Path("frames").mkdir()

        result = self.runner.invoke(app, ["pack", "frames"])

        assert result.exit_code == 1
        assert "No frames to pack" in result.stdout

    def test_config_validate(self):
        result = self.runner.invoke(app, ["config", "--validate"])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.stdout

    def test_config_validate_invalid_file(self):
        Path("sprite_pipeline.toml").write_text("[atlas]\npadding = -1\n")

        result = self.runner.invoke(app, ["config", "--validate"])

        assert result.exit_code == 1
        assert "atlas padding cannot be negative" in result.stdout

    def test_config_show(self):
        result = self.runner.invoke(app, ["config", "--show"])

        assert result.exit_code == 0
        assert "Sprite Pipeline Configuration" in result.stdout

    def test_config_env_vars(self):
        result = self.runner.invoke(app, ["config", "--env-vars"])

        assert result.exit_code == 0
        assert "Set these environment variables" in result.stdout

    def test_config_missing_file(self):
        result = self.runner.invoke(app, ["config", "--show", "-c", "nope.toml"])

        assert result.exit_code == 1

    def test_version(self):
        result = self.runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "Version: 1.0.0" in result.stdout

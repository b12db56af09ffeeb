"""
Prompt construction for pixel art sprite generation.
"""

from pathlib import Path
from typing import Optional, Union

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from ..config import StyleConfig
from .base import SpriteSpec


# Motion descriptions for well-known animations
ANIMATION_PROMPTS = {
    "idle": "standing still with subtle breathing motion, slight bob up and down",
    "walk": "walking cycle, legs moving, arms swinging naturally",
    "run": "running cycle, dynamic leg and arm movement, leaning forward",
    "jump": "jumping sequence from crouch to airborne to landing",
    "attack": "attack swing motion, weapon or fist moving through arc",
    "hurt": "taking damage, flinching backward, pained expression",
    "death": "falling down sequence, collapsing to ground",
    "cast": "casting spell, arms raised, magical gesture",
    "climb": "climbing motion, alternating arm and leg reaches",
    "swim": "swimming stroke motion, arms and legs paddling",
}


class PromptBuilder:
    """Renders generation prompts from Jinja2 templates."""

    STRIP_TEMPLATE = "strip_prompt.j2"
    FRAME_TEMPLATE = "frame_prompt.j2"

    def __init__(self, style: Optional[StyleConfig] = None,
                 template_dir: Optional[Union[str, Path]] = None):
        """
        Initialize prompt builder.

        Args:
            style: Art style constraints
            template_dir: Directory containing prompt templates
        """
        if template_dir is None:
            template_dir = Path(__file__).parent.parent / "templates"

        self.style = style or StyleConfig()
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
            autoescape=False
        )

    @staticmethod
    def motion_description(animation: str, fallback: str = "performing {name} animation") -> str:
        """Motion text for an animation, with a generic fallback for unknown names."""
        return ANIMATION_PROMPTS.get(animation.lower(), fallback.format(name=animation))

    def build_strip_prompt(self, spec: SpriteSpec, animation: str) -> str:
        """
        Build the prompt for a whole horizontal animation strip.

        Args:
            spec: Sprite specification
            animation: Animation name; must exist in spec.animations

        Returns:
            Rendered prompt text
        """
        frames = spec.animations[animation].frames
        total_width, total_height = spec.strip_size(animation)

        return self._render(
            self.STRIP_TEMPLATE,
            character=spec.character,
            frames=frames,
            frame_width=spec.frame_width,
            frame_height=spec.frame_height,
            total_width=total_width,
            total_height=total_height,
            style=self.style,
            animation=animation,
            motion=self.motion_description(animation),
        )

    def build_frame_prompt(self, spec: SpriteSpec, animation: str,
                           frame_index: int, total_frames: int) -> str:
        """Build the prompt for one frame of an animation."""
        return self._render(
            self.FRAME_TEMPLATE,
            character=spec.character,
            frame_width=spec.frame_width,
            frame_height=spec.frame_height,
            style=self.style,
            animation=animation,
            motion=self.motion_description(animation, "performing {name}"),
            phase=self.phase_description(frame_index, total_frames),
            frame_number=frame_index + 1,
            total_frames=total_frames,
        )

    @staticmethod
    def phase_description(frame_index: int, total_frames: int) -> str:
        """Describe where a frame sits in the motion."""
        if total_frames <= 1:
            return "at the start of the motion"

        progress = frame_index / (total_frames - 1)
        if progress == 0:
            return "at the start of the motion"
        if progress < 0.5:
            return f"early in the motion ({round(progress * 100)}% through)"
        if progress < 1:
            return f"late in the motion ({round(progress * 100)}% through)"
        return "at the end of the motion"

    def _render(self, template_name: str, **context) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise FileNotFoundError(f"Prompt template not found: {e}") from e
        return template.render(**context)

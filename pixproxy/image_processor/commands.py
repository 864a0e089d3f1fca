"""GraphicsMagick argument construction.

A command is an ordered list of typed stages. Every value lands in its own
argv element; nothing is ever handed to a shell. Stage order is part of the
visible output: crop, resize, grayscale, flips, rotate, blur, sharpen,
colors, dither, quality.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union

from pixproxy.common.errors import PolicyViolationError
from pixproxy.config.runtime_config import GraphicsMagickConfig
from pixproxy.transforms.models import CanvasPattern, CanvasSet, Fit, TransformSet
from pixproxy.transforms.parsing import ALIGN_GRAVITY

DEFAULT_PATTERN_SIZE = {
    CanvasPattern.CHECK: 20,
    CanvasPattern.GRID: 40,
    CanvasPattern.STRIPE: 20,
}


@dataclass(frozen=True)
class Stage:
    name: str
    args: Tuple[str, ...]


def _stage(name: str, *args: object) -> Stage:
    return Stage(name, tuple(str(a) for a in args))


def _num(value: float) -> str:
    return f"{value:g}"


def flatten(stages: Iterable[Stage]) -> List[str]:
    return [arg for stage in stages for arg in stage.args]


def limit_stages(config: GraphicsMagickConfig) -> List[Stage]:
    return [
        _stage(
            "limits",
            "-limit", "memory", config.memory_limit,
            "-limit", "map", config.map_limit,
            "-limit", "disk", config.disk_limit,
        ),
        _stage("single_thread", "-define", "thread:mode=single"),
    ]


def resize_stages(t: TransformSet) -> List[Stage]:
    """Resize per fit mode.

    ?w=800&h=600            -> FILL     (-resize 800x600!)
    ?w=800                  -> CONTAIN  (-resize 800x)
    ?w=800&fit=contain      -> CONTAIN
    ?w=800&h=600&fit=cover  -> COVER    (-resize 800x600^ -gravity center -extent 800x600)
    """
    width, height = t.width, t.height
    if width is None and height is None:
        if t.fit is not None:
            raise PolicyViolationError(f"fit={t.fit.value} requires at least one dimension: w or h.")
        return []

    box = f"{'' if width is None else width}x{'' if height is None else height}"
    fit = t.effective_fit
    if fit is Fit.CONTAIN:
        return [_stage("resize", "-resize", box)]
    if width is None or height is None:
        raise PolicyViolationError(f"fit={fit.value} requires both width and height.")
    if fit is Fit.COVER:
        return [
            _stage("resize", "-resize", f"{box}^"),
            _stage("extent", "-gravity", "center", "-extent", box),
        ]
    return [_stage("resize", "-resize", f"{box}!")]


def shared_stages(s: Union[TransformSet, CanvasSet], *, dither: bool = False) -> List[Stage]:
    stages: List[Stage] = []
    if s.grayscale:
        stages.append(_stage("grayscale", "-colorspace", "Gray"))
    if s.flip_h:
        stages.append(_stage("flip_h", "-flop"))
    if s.flip_v:
        stages.append(_stage("flip_v", "-flip"))
    if s.rotate is not None and s.rotate != 0:
        stages.append(_stage("rotate", "-rotate", _num(s.rotate)))
    if s.has_blur:
        stages.append(_stage("blur", "-blur", f"{_num(s.blur_radius)}x{_num(s.blur_sigma)}"))
    if s.sharpen is not None:
        stages.append(_stage("sharpen", "-sharpen", f"0x{_num(s.sharpen)}"))
    if s.colors is not None:
        stages.append(_stage("colors", "-colors", s.colors))
    if dither:
        stages.append(_stage("dither", "-dither"))
    if s.quality is not None:
        stages.append(_stage("quality", "-quality", s.quality))
    return stages


def transform_stages(t: TransformSet) -> List[Stage]:
    """Operations for one TransformSet, excluding limits and file paths."""
    stages: List[Stage] = []
    if t.crop:
        # crop before resize
        stages.append(_stage("crop", "-gravity", "center", "-crop", f"{t.width}x{t.height}+0+0"))
    stages.extend(resize_stages(t))
    stages.extend(shared_stages(t, dither=t.dither))
    return stages


def convert_command(
    config: GraphicsMagickConfig,
    input_path: str,
    output_path: str,
    operations: Sequence[Stage],
) -> List[str]:
    return [
        config.binary, "convert",
        *flatten(limit_stages(config)),
        input_path,
        *flatten(operations),
        output_path,
    ]


# ---------------------------------------------------------------- canvas

def escape_draw_text(text: str) -> str:
    """Make ``text`` safe inside a single-quoted draw ``text`` primitive."""
    return text.replace("%", "%%").replace("'", "\\'")


def grid_primitives(width: int, height: int, size: int) -> str:
    lines = [f"line {x},0 {x},{height}" for x in range(size, width + 1, size)]
    lines += [f"line 0,{y} {width},{y}" for y in range(size, height + 1, size)]
    return " ".join(lines)


def stripe_primitives(width: int, height: int, size: int) -> str:
    return " ".join(f"line {x},0 {x + size},{height}" for x in range(0, width + 1, size))


def check_primitives(width: int, height: int, size: int) -> str:
    cells = []
    for y in range(0, height, size):
        for x in range(0, width, size):
            if (x // size + y // size) % 2 == 0:
                cells.append(f"rectangle {x},{y} {x + size - 1},{y + size - 1}")
    return " ".join(cells)


def background_stages(c: CanvasSet) -> List[Stage]:
    stages = [_stage("size", "-size", f"{c.width}x{c.height}")]
    if c.gradient is not None:
        parts = c.gradient.split(",")
        if len(parts) == 2:
            stages.append(_stage("gradient", f"gradient:{parts[0]}-{parts[1]}"))
        else:
            angle = int(parts[0])
            colors = parts[1:]
            stages.append(_stage("gradient", f"gradient:{colors[0]}-{colors[-1]}"))
            if angle != 0:
                stages.append(_stage("gradient_angle", "-rotate", angle))
        return stages

    stages.append(_stage("background", f"xc:{c.bg_color}"))
    if c.pattern is not None:
        size = c.pattern_size or DEFAULT_PATTERN_SIZE[c.pattern]
        if c.pattern is CanvasPattern.CHECK:
            stages.append(_stage(
                "pattern", "-fill", "black", "-stroke", "none",
                "-draw", check_primitives(c.width, c.height, size),
            ))
        elif c.pattern is CanvasPattern.GRID:
            stages.append(_stage(
                "pattern", "-fill", "none", "-stroke", "black",
                "-draw", grid_primitives(c.width, c.height, size),
            ))
        else:
            stages.append(_stage(
                "pattern", "-fill", "black", "-stroke", "black",
                "-draw", stripe_primitives(c.width, c.height, size),
            ))
    return stages


def canvas_stages(c: CanvasSet) -> List[Stage]:
    stages = background_stages(c)
    if c.border:
        stages.append(_stage("border", "-bordercolor", c.border_color or "black", "-border", c.border))
    if c.text:
        gravity = ALIGN_GRAVITY[c.text_align or "center"]
        text = [_stage("text_gravity", "-gravity", gravity)]
        if c.font:
            text.append(_stage("font", "-font", c.font))
        text.append(_stage(
            "text",
            "-pointsize", c.text_size,
            "-fill", c.text_color,
            "-stroke", "none",
            "-draw", f"text 0,0 '{escape_draw_text(c.text)}'",
        ))
        stages.extend(text)
    stages.extend(shared_stages(c))
    return stages


def canvas_command(config: GraphicsMagickConfig, output_path: str, stages: Sequence[Stage]) -> List[str]:
    return [config.binary, "convert", *flatten(limit_stages(config)), *flatten(stages), output_path]


def corner_mask_command(config: GraphicsMagickConfig, width: int, height: int, radius: int, mask_path: str) -> List[str]:
    """White rounded rectangle on black: opaque inside, transparent corners."""
    return [
        config.binary, "convert",
        *flatten(limit_stages(config)),
        "-size", f"{width}x{height}",
        "xc:black",
        "-fill", "white",
        "-draw", f"roundRectangle 0,0 {width - 1},{height - 1} {radius},{radius}",
        mask_path,
    ]


def compose_mask_command(config: GraphicsMagickConfig, mask_path: str, image_path: str) -> List[str]:
    return [
        config.binary, "composite",
        "-compose", "CopyOpacity",
        mask_path, image_path, image_path,
    ]


def identify_command(config: GraphicsMagickConfig, image_path: str) -> List[str]:
    return [config.binary, "identify", "-format", "%w %h", image_path]

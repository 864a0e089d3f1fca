"""Request parameter parsing for image and canvas transforms.

Parameters arrive as an ordered multi-valued map (HTTP query string). A key
present with no value is represented by an empty string or an empty list.
"""
from __future__ import annotations

import math
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pixproxy.common.errors import MalformedInputError
from pixproxy.transforms.models import CanvasPattern, CanvasSet, Fit, TransformSet

RawParams = Mapping[str, Union[str, Sequence[str]]]

_DIMENSIONS = re.compile(r"^(\d+)x(\d+)$")
_COLOR = re.compile(
    r"^(#[0-9A-Fa-f]{3,12}"
    r"|[A-Za-z][A-Za-z0-9]{0,31}"
    r"|rgba?\(\s*[0-9.]+%?(\s*,\s*[0-9.]+%?){2,3}\s*\))$"
)
_FONT = re.compile(r"^[A-Za-z0-9 _-]{1,64}$")
MAX_TEXT_LENGTH = 256
TRUE_VALUES = ("", "1", "true")

# canvas alignment keyword -> GraphicsMagick gravity
ALIGN_GRAVITY = {
    "center": "Center",
    "top": "North",
    "bottom": "South",
    "left": "West",
    "right": "East",
    "top-left": "NorthWest",
    "top-right": "NorthEast",
    "bottom-left": "SouthWest",
    "bottom-right": "SouthEast",
}


def params_from_query(items: Sequence[Tuple[str, str]]) -> Dict[str, List[str]]:
    """Group ``(key, value)`` pairs (e.g. ``QueryParams.multi_items()``) into a multi-map."""
    grouped: Dict[str, List[str]] = {}
    for key, value in items:
        grouped.setdefault(key, []).append(value)
    return grouped


def _values(params: RawParams, key: str) -> Optional[List[str]]:
    if key not in params:
        return None
    raw = params[key]
    if isinstance(raw, str):
        return [raw]
    return list(raw)


def _first(params: RawParams, key: str) -> Optional[str]:
    values = _values(params, key)
    if values is None:
        return None
    return values[0] if values else ""


def is_param_true(key: str, params: RawParams) -> bool:
    """``?flipV``, ``?flipV=1`` and ``?flipV=true`` are all true; anything else is false."""
    value = _first(params, key)
    return value is not None and value in TRUE_VALUES


def parse_int(key: str, params: RawParams) -> Optional[int]:
    value = _first(params, key)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        raise MalformedInputError(f"Failed to parse integer for key {key}={value}") from None


def parse_float(key: str, params: RawParams) -> Optional[float]:
    value = _first(params, key)
    if value is None:
        return None
    try:
        parsed = float(value.strip())
    except ValueError:
        raise MalformedInputError(f"Failed to parse decimal for key {key}={value}") from None
    if not math.isfinite(parsed):
        raise MalformedInputError(f"Failed to parse decimal for key {key}={value}")
    return parsed


def parse_blur(blur: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """``R`` expands to ``(R, R * 0.5)``; ``RxS`` sets radius and sigma explicitly."""
    if blur is None:
        return None, None
    error = MalformedInputError(
        f"Failed to parse blur. blur={{radius}} or blur={{radius}}x{{sigma}}. Got: {blur}"
    )
    parts = blur.split("x")
    try:
        values = [float(p) for p in parts]
    except ValueError:
        raise error from None
    if not all(math.isfinite(v) for v in values):
        raise error
    if len(values) == 2:
        return values[0], values[1]
    if len(values) == 1:
        return values[0], values[0] * 0.5
    raise error


def parse_dimensions(value: str) -> Tuple[int, int]:
    match = _DIMENSIONS.match(value.strip())
    if not match:
        raise MalformedInputError("Invalid dimension format, expected {width}x{height}")
    return int(match.group(1)), int(match.group(2))


def parse_fit(value: Optional[str]) -> Optional[Fit]:
    if value is None:
        return None
    try:
        return Fit.parse(value)
    except ValueError:
        raise MalformedInputError(f"Invalid fit: {value}. Allowed: {Fit.allowed()}") from None


def parse(params: RawParams, path: str = "") -> TransformSet:
    """Build a TransformSet from request parameters.

    Raises MalformedInputError on unparseable values, on ``d`` combined with
    ``w``/``h``, and on ``crop`` without both dimensions.
    """
    compound = _first(params, "d")
    if compound is not None and ("w" in params or "h" in params):
        raise MalformedInputError("Conflicting dimensions specified. Use either 'w'/'h' or 'd', not both.")

    if compound is not None:
        width, height = parse_dimensions(compound)
    else:
        width = parse_int("w", params)
        height = parse_int("h", params)

    crop = is_param_true("crop", params)
    if crop and (width is None or height is None):
        raise MalformedInputError("crop requires both width and height.")

    blur_radius, blur_sigma = parse_blur(_first(params, "blur"))

    return TransformSet(
        path=path,
        width=width,
        height=height,
        fit=parse_fit(_first(params, "fit")),
        grayscale=is_param_true("grayscale", params),
        crop=crop,
        flip_h=is_param_true("flipH", params),
        flip_v=is_param_true("flipV", params),
        dither=is_param_true("dither", params),
        rotate=parse_float("rotate", params),
        quality=parse_int("quality", params),
        sharpen=parse_float("sharpen", params),
        colors=parse_int("colors", params),
        blur_radius=blur_radius,
        blur_sigma=blur_sigma,
    )


def to_params(t: TransformSet) -> Dict[str, List[str]]:
    """Inverse of :func:`parse`: ``parse(to_params(t), t.path) == t``."""
    params: Dict[str, List[str]] = {}
    if t.width is not None:
        params["w"] = [str(t.width)]
    if t.height is not None:
        params["h"] = [str(t.height)]
    if t.fit is not None:
        params["fit"] = [t.fit.value]
    for key, flag in (
        ("grayscale", t.grayscale),
        ("crop", t.crop),
        ("flipH", t.flip_h),
        ("flipV", t.flip_v),
        ("dither", t.dither),
    ):
        if flag:
            params[key] = ["1"]
    if t.rotate is not None:
        params["rotate"] = [repr(t.rotate)]
    if t.quality is not None:
        params["quality"] = [str(t.quality)]
    if t.sharpen is not None:
        params["sharpen"] = [repr(t.sharpen)]
    if t.colors is not None:
        params["colors"] = [str(t.colors)]
    if t.has_blur:
        params["blur"] = [f"{t.blur_radius!r}x{t.blur_sigma!r}"]
    return params


def _color(key: str, params: RawParams, default: Optional[str]) -> Optional[str]:
    value = _first(params, key)
    if value is None:
        return default
    value = value.strip()
    if not _COLOR.match(value):
        raise MalformedInputError(f"Invalid color for key {key}={value}")
    return value


def _non_negative_int(key: str, params: RawParams, minimum: int = 0) -> Optional[int]:
    value = parse_int(key, params)
    if value is not None and value < minimum:
        raise MalformedInputError(f"{key} must be >= {minimum}. Got: {value}")
    return value


def _gradient(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    parts = [p.strip() for p in value.split(",")]
    if len(parts) < 2:
        raise MalformedInputError("Invalid gradient, expected colorA,colorB or angle,colorA,...,colorN")
    colors = parts
    if len(parts) >= 3:
        try:
            int(parts[0])
        except ValueError:
            raise MalformedInputError(f"Invalid gradient angle: {parts[0]}") from None
        colors = parts[1:]
    for color in colors:
        if not _COLOR.match(color):
            raise MalformedInputError(f"Invalid gradient color: {color}")
    return ",".join(parts)


def parse_canvas(dimensions: str, params: RawParams, max_dimension: int = 4096) -> CanvasSet:
    width, height = parse_dimensions(dimensions)
    if width < 1 or height < 1:
        raise MalformedInputError(f"Canvas dimensions must be > 0. Got: {width}x{height}")
    if width > max_dimension or height > max_dimension:
        raise MalformedInputError(f"Canvas dimensions must be <= {max_dimension}. Got: {width}x{height}")

    text = _first(params, "text")
    if text is not None:
        if len(text) > MAX_TEXT_LENGTH or not text.isprintable() or "\\" in text:
            raise MalformedInputError(
                f"text must be printable, without backslashes, and at most {MAX_TEXT_LENGTH} characters"
            )

    font = _first(params, "font")
    if font is not None and not _FONT.match(font):
        raise MalformedInputError(f"Invalid font: {font}")

    align = _first(params, "align")
    if align is not None:
        align = align.strip().lower()
        if align not in ALIGN_GRAVITY:
            raise MalformedInputError(f"Invalid align: {align}. Allowed: {', '.join(ALIGN_GRAVITY)}")

    pattern_value = _first(params, "pattern")
    pattern = None
    if pattern_value is not None:
        try:
            pattern = CanvasPattern(pattern_value.strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in CanvasPattern)
            raise MalformedInputError(f"Invalid pattern: {pattern_value}. Allowed: {allowed}") from None

    blur_radius, blur_sigma = parse_blur(_first(params, "blur"))
    text_size = _non_negative_int("textSize", params, minimum=1)

    return CanvasSet(
        width=width,
        height=height,
        bg_color=_color("bgColor", params, "gray"),
        text=text,
        text_color=_color("textColor", params, "white"),
        text_size=text_size if text_size is not None else 20,
        font=font,
        text_align=align,
        pattern=pattern,
        pattern_size=_non_negative_int("patternSize", params, minimum=1),
        gradient=_gradient(_first(params, "gradient")),
        border=_non_negative_int("border", params),
        border_color=_color("borderColor", params, None),
        radius=_non_negative_int("radius", params),
        grayscale=is_param_true("grayscale", params),
        flip_h=is_param_true("flipH", params),
        flip_v=is_param_true("flipV", params),
        rotate=parse_float("rotate", params),
        quality=parse_int("quality", params),
        sharpen=parse_float("sharpen", params),
        colors=parse_int("colors", params),
        blur_radius=blur_radius,
        blur_sigma=blur_sigma,
    )

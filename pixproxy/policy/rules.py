"""Built-in policy rules and the line-oriented rule language.

Rule language, one directive per line or ``;``-separated, ``#`` starts a comment::

    +grayscale; -flipH
    dim 100x100 200x200
    quality 50 75 100
    rotate 0 90 180 270
    fit cover contain
    blur 1 2; blurSigma 0.5 1
"""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pixproxy.policy.models import PolicyRule
from pixproxy.transforms.models import Fit, TransformSet


class RuleConfigError(ValueError):
    """Raised for a policy rule directive that cannot be parsed."""


def _dims(t: TransformSet) -> str:
    return f"{'' if t.width is None else t.width}x{'' if t.height is None else t.height}"


def drop_dimensions(t: TransformSet, *, width: bool = True, height: bool = True) -> TransformSet:
    """Clear width and/or height, and anything that can no longer be honoured without them."""
    new_width = None if width else t.width
    new_height = None if height else t.height
    update: Dict[str, object] = {"width": new_width, "height": new_height}
    if new_width is None or new_height is None:
        update["crop"] = False
        if new_width is None and new_height is None:
            update["fit"] = None
        elif t.fit in (Fit.COVER, Fit.FILL):
            update["fit"] = None
    return t.model_copy(update=update)


def _clear(**fields) -> Callable[[TransformSet], TransformSet]:
    return lambda t: t.model_copy(update=fields)


# ---------------------------------------------------------------- base rules

dimension_positive = PolicyRule(
    name="dim gt0",
    is_valid=lambda t: (t.width is None or t.width > 0) and (t.height is None or t.height > 0),
    error_message=lambda t: f"Dimensions must be > 0. Got: {_dims(t)}",
    clear=lambda t: drop_dimensions(
        t,
        width=t.width is not None and t.width <= 0,
        height=t.height is not None and t.height <= 0,
    ),
)

quality_range = PolicyRule(
    name="quality 1..100",
    is_valid=lambda t: t.quality is None or 1 <= t.quality <= 100,
    error_message=lambda t: f"quality must be between 1 and 100. Got: {t.quality}",
    clear=_clear(quality=None),
)

colors_range = PolicyRule(
    name="colors 2..256",
    is_valid=lambda t: t.colors is None or 2 <= t.colors <= 256,
    error_message=lambda t: f"colors must be between 2 and 256. Got: {t.colors}",
    clear=_clear(colors=None),
)

sharpen_non_negative = PolicyRule(
    name="sharpen gte0",
    is_valid=lambda t: t.sharpen is None or t.sharpen >= 0,
    error_message=lambda t: f"sharpen must be >= 0. Got: {t.sharpen}",
    clear=_clear(sharpen=None),
)

blur_non_negative = PolicyRule(
    name="blur gte0",
    is_valid=lambda t: not t.has_blur or (t.blur_radius >= 0 and t.blur_sigma >= 0),
    error_message=lambda t: f"blur radius and sigma must be >= 0. Got: {t.blur_radius}x{t.blur_sigma}",
    clear=_clear(blur_radius=None, blur_sigma=None),
)

BASE_RULES: Tuple[PolicyRule, ...] = (
    dimension_positive,
    quality_range,
    colors_range,
    sharpen_non_negative,
    blur_non_negative,
)


# ---------------------------------------------------------------- allow-lists

def _joined(values: Sequence[object]) -> str:
    return " ".join(str(v) for v in values)


def allowed_dimensions(allowed: Sequence[Tuple[int, int]]) -> PolicyRule:
    rendered = " ".join(f"{w}x{h}" for w, h in allowed)
    pairs = set(allowed)
    return PolicyRule(
        name=f"dim {rendered}",
        is_valid=lambda t: (t.width is None and t.height is None) or (t.width, t.height) in pairs,
        error_message=lambda t: f"Allowed dim: {rendered}. Got: {_dims(t)}",
        clear=drop_dimensions,
    )


def allowed_width(allowed: Sequence[int]) -> PolicyRule:
    return PolicyRule(
        name=f"width {_joined(allowed)}",
        is_valid=lambda t: t.width is None or t.width in allowed,
        error_message=lambda t: f"Allowed width: {list(allowed)}. Got: {t.width}",
        clear=lambda t: drop_dimensions(t, width=True, height=False),
    )


def allowed_height(allowed: Sequence[int]) -> PolicyRule:
    return PolicyRule(
        name=f"height {_joined(allowed)}",
        is_valid=lambda t: t.height is None or t.height in allowed,
        error_message=lambda t: f"Allowed height: {list(allowed)}. Got: {t.height}",
        clear=lambda t: drop_dimensions(t, width=False, height=True),
    )


def allowed_quality(allowed: Sequence[int]) -> PolicyRule:
    return PolicyRule(
        name=f"quality {_joined(allowed)}",
        is_valid=lambda t: t.quality is None or t.quality in allowed,
        error_message=lambda t: f"Allowed quality: {list(allowed)}. Got: {t.quality}",
        clear=_clear(quality=None),
    )


def allowed_colors(allowed: Sequence[int]) -> PolicyRule:
    return PolicyRule(
        name=f"colors {_joined(allowed)}",
        is_valid=lambda t: t.colors is None or t.colors in allowed,
        error_message=lambda t: f"Allowed colors: {list(allowed)}. Got: {t.colors}",
        clear=_clear(colors=None),
    )


def allowed_rotate(allowed: Sequence[float]) -> PolicyRule:
    return PolicyRule(
        name=f"rotate {_joined(allowed)}",
        is_valid=lambda t: t.rotate is None or t.rotate in allowed,
        error_message=lambda t: f"Allowed rotation: {list(allowed)}. Got: {t.rotate}",
        clear=_clear(rotate=None),
    )


def allowed_sharpen(allowed: Sequence[float]) -> PolicyRule:
    return PolicyRule(
        name=f"sharpen {_joined(allowed)}",
        is_valid=lambda t: t.sharpen is None or t.sharpen in allowed,
        error_message=lambda t: f"Allowed sharpen: {list(allowed)}. Got: {t.sharpen}",
        clear=_clear(sharpen=None),
    )


def allowed_blur_radius(allowed: Sequence[float]) -> PolicyRule:
    return PolicyRule(
        name=f"blur {_joined(allowed)}",
        is_valid=lambda t: t.blur_radius is None or t.blur_radius in allowed,
        error_message=lambda t: f"Allowed blurRadius: {list(allowed)}. Got: {t.blur_radius}",
        clear=_clear(blur_radius=None, blur_sigma=None),
    )


def allowed_blur_sigma(allowed: Sequence[float]) -> PolicyRule:
    return PolicyRule(
        name=f"blurSigma {_joined(allowed)}",
        is_valid=lambda t: t.blur_sigma is None or t.blur_sigma in allowed,
        error_message=lambda t: f"Allowed blurSigma: {list(allowed)}. Got: {t.blur_sigma}",
        clear=_clear(blur_radius=None, blur_sigma=None),
    )


def allowed_fit(allowed: Sequence[Fit]) -> PolicyRule:
    return PolicyRule(
        name=f"fit {_joined([f.value for f in allowed])}",
        is_valid=lambda t: t.fit is None or t.fit in allowed,
        error_message=lambda t: f"Allowed fit: {[f.value for f in allowed]}. Got: {t.fit.value if t.fit else None}",
        clear=_clear(fit=None),
    )


# ---------------------------------------------------------------- feature toggles

def _toggle(field: str, label: str, message: str) -> Callable[[bool], PolicyRule]:
    def build(allowed: bool) -> PolicyRule:
        return PolicyRule(
            name=f"+{label}" if allowed else f"-{label}",
            is_valid=lambda t: allowed or not getattr(t, field),
            error_message=lambda t: message,
            clear=_clear(**{field: False}),
        )
    return build


allowed_grayscale = _toggle("grayscale", "grayscale", "Grayscale is not allowed.")
allowed_crop = _toggle("crop", "crop", "Crop is not allowed.")
allowed_flip_h = _toggle("flip_h", "flipH", "Horizontal flip is not allowed.")
allowed_flip_v = _toggle("flip_v", "flipV", "Vertical flip is not allowed.")
allowed_dither = _toggle("dither", "dither", "Dither is not allowed.")

TOGGLES: Dict[str, Callable[[bool], PolicyRule]] = {
    "grayscale": allowed_grayscale,
    "crop": allowed_crop,
    "flipH": allowed_flip_h,
    "flipV": allowed_flip_v,
    "dither": allowed_dither,
}


# ---------------------------------------------------------------- rule language

def _ints(directive: str, args: List[str]) -> List[int]:
    try:
        return [int(a) for a in args]
    except ValueError:
        raise RuleConfigError(f"'{directive}' expects integers. Got: {' '.join(args)}") from None


def _floats(directive: str, args: List[str]) -> List[float]:
    try:
        return [float(a) for a in args]
    except ValueError:
        raise RuleConfigError(f"'{directive}' expects decimals. Got: {' '.join(args)}") from None


def _dimension_pairs(args: List[str]) -> List[Tuple[int, int]]:
    pairs = []
    for arg in args:
        w, sep, h = arg.partition("x")
        if not sep:
            raise RuleConfigError(f"'dim' expects WxH pairs. Got: {arg}")
        pairs.append(tuple(_ints("dim", [w, h])))
    return pairs


def _fits(args: List[str]) -> List[Fit]:
    try:
        return [Fit.parse(a) for a in args]
    except ValueError:
        raise RuleConfigError(f"'fit' expects one of {Fit.allowed()}. Got: {' '.join(args)}") from None


_LIST_DIRECTIVES: Dict[str, Callable[[List[str]], PolicyRule]] = {
    "dim": lambda args: allowed_dimensions(_dimension_pairs(args)),
    "width": lambda args: allowed_width(_ints("width", args)),
    "height": lambda args: allowed_height(_ints("height", args)),
    "quality": lambda args: allowed_quality(_ints("quality", args)),
    "colors": lambda args: allowed_colors(_ints("colors", args)),
    "rotate": lambda args: allowed_rotate(_floats("rotate", args)),
    "sharpen": lambda args: allowed_sharpen(_floats("sharpen", args)),
    "blur": lambda args: allowed_blur_radius(_floats("blur", args)),
    "blurSigma": lambda args: allowed_blur_sigma(_floats("blurSigma", args)),
    "fit": lambda args: allowed_fit(_fits(args)),
}


def parse_rule(directive: str) -> Optional[PolicyRule]:
    line = directive.split("#", 1)[0].strip()
    if not line:
        return None
    if line[0] in "+-":
        build = TOGGLES.get(line[1:])
        if build is None:
            raise RuleConfigError(f"Unknown feature toggle: {line}")
        return build(line[0] == "+")
    head, *args = line.split()
    build = _LIST_DIRECTIVES.get(head)
    if build is None:
        raise RuleConfigError(f"Unknown rule directive: {head}")
    if not args:
        raise RuleConfigError(f"Rule '{head}' needs at least one value")
    return build(args)


def parse_rules(rules_config: str) -> List[PolicyRule]:
    """Parse a rule-language document into an ordered rule list."""
    rules: List[PolicyRule] = []
    for directive in rules_config.replace("\n", ";").split(";"):
        rule = parse_rule(directive)
        if rule is not None:
            rules.append(rule)
    return rules

"""Deterministic cache keys for transformed images.

Tokens are emitted in a fixed order (not request order), so equal
TransformSets always map to byte-identical keys::

    a/b/0.png  w=100 h=100 crop grayscale rotate=90  ->  a/b/0-w100h100c1g1r90.png
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import List

from pixproxy.common.files import get_file_extension, strip_extension
from pixproxy.transforms.models import TransformSet


def format_decimal(value: float, digits: int = 2) -> str:
    """At most ``digits`` fractional digits, half-up, trailing zeros stripped."""
    quantum = Decimal(1).scaleb(-digits)
    exact = Decimal(repr(value))
    with localcontext() as ctx:
        # room for every integer digit plus the kept fraction
        ctx.prec = max(28, exact.adjusted() + digits + 2)
        rounded = exact.quantize(quantum, rounding=ROUND_HALF_UP).normalize()
    if rounded == 0:
        return "0"
    return format(rounded, "f")


def cache_tokens(t: TransformSet) -> List[str]:
    tokens: List[str] = []
    if t.width is not None:
        tokens.append(f"w{t.width}")
    if t.height is not None:
        tokens.append(f"h{t.height}")
    if t.has_blur:
        tokens.append(f"b{format_decimal(t.blur_radius)}x{format_decimal(t.blur_sigma)}")
    if t.crop:
        tokens.append("c1")
    if t.fit is not None:
        tokens.append(t.fit.value)
    if t.colors is not None:
        # colors is never 1, so this cannot collide with c1
        tokens.append(f"c{t.colors}")
    if t.dither:
        tokens.append("d1")
    if t.grayscale:
        tokens.append("g1")
    if t.flip_h:
        # not "h1", which is also the height=1 token
        tokens.append("fh1")
    if t.quality is not None:
        tokens.append(f"q{t.quality}")
    if t.rotate is not None and t.rotate != 0:
        tokens.append(f"r{format_decimal(t.rotate)}")
    if t.sharpen is not None:
        tokens.append(f"s{format_decimal(t.sharpen)}")
    if t.flip_v:
        tokens.append("v1")
    return tokens


def cache_key(t: TransformSet) -> str:
    """``{basename}-{tokens}.{extension}``.

    The dash is always present, so the identity set maps to
    ``{basename}-.{extension}``. A path without an extension drops the
    ``.{extension}`` suffix.
    """
    basename = strip_extension(t.path)
    extension = get_file_extension(t.path)
    key = f"{basename}-{''.join(cache_tokens(t))}"
    if extension:
        key = f"{key}.{extension}"
    return key

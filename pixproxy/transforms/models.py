"""
Transform Models.

TransformSet describes what to do to one source image; CanvasSet describes a
synthetic image generated from scratch. Both are frozen: policy corrections
produce copies via ``model_copy(update=...)``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class Fit(str, Enum):
    """How a requested width/height box is reconciled with the source aspect ratio."""
    FILL = "fill"        # stretch to the exact box
    CONTAIN = "contain"  # bound within the box, keep aspect ratio
    COVER = "cover"      # fill the box, crop the centred excess

    @classmethod
    def parse(cls, token: str) -> "Fit":
        return cls(token.strip().lower())

    @classmethod
    def allowed(cls) -> str:
        return ", ".join(f.value for f in cls)


class CanvasPattern(str, Enum):
    CHECK = "check"
    GRID = "grid"
    STRIPE = "stripe"


class TransformSet(BaseModel):
    """
    The canonical, strongly typed request for one image.
    """
    model_config = ConfigDict(frozen=True)

    path: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    fit: Optional[Fit] = None

    grayscale: bool = False
    crop: bool = False
    flip_h: bool = False
    flip_v: bool = False
    dither: bool = False

    rotate: Optional[float] = None
    quality: Optional[int] = None
    sharpen: Optional[float] = None
    colors: Optional[int] = None
    blur_radius: Optional[float] = None
    blur_sigma: Optional[float] = None

    @model_validator(mode="after")
    def validate_blur_pair(self):
        if (self.blur_radius is None) != (self.blur_sigma is None):
            raise ValueError("blur radius and sigma must be set together")
        return self

    @property
    def effective_fit(self) -> Optional[Fit]:
        """Fit mode actually applied: explicit, else implied by the dimensions given."""
        if self.fit is not None:
            return self.fit
        if self.width is not None and self.height is not None:
            return Fit.FILL
        if self.width is not None or self.height is not None:
            return Fit.CONTAIN
        return None

    @property
    def has_blur(self) -> bool:
        return self.blur_radius is not None and self.blur_sigma is not None

    def is_identity(self) -> bool:
        """True when no transform would be applied to the source."""
        candidate = self.model_copy(update={"rotate": None}) if self.rotate == 0 else self
        return candidate == TransformSet(path=self.path)


class CanvasSet(BaseModel):
    """
    A synthetic image: background, gradient or pattern, optional border and text.
    """
    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    bg_color: str = "gray"

    text: Optional[str] = None
    text_color: str = "white"
    text_size: int = 20
    font: Optional[str] = None
    text_align: Optional[str] = None

    pattern: Optional[CanvasPattern] = None
    pattern_size: Optional[int] = None
    gradient: Optional[str] = None
    border: Optional[int] = None
    border_color: Optional[str] = None
    radius: Optional[int] = None

    # shared with TransformSet
    grayscale: bool = False
    flip_h: bool = False
    flip_v: bool = False
    rotate: Optional[float] = None
    quality: Optional[int] = None
    sharpen: Optional[float] = None
    colors: Optional[int] = None
    blur_radius: Optional[float] = None
    blur_sigma: Optional[float] = None

    @model_validator(mode="after")
    def validate_geometry(self):
        if self.width < 1 or self.height < 1:
            raise ValueError("canvas width and height must be >= 1")
        if (self.blur_radius is None) != (self.blur_sigma is None):
            raise ValueError("blur radius and sigma must be set together")
        return self

    @property
    def has_blur(self) -> bool:
        return self.blur_radius is not None and self.blur_sigma is not None

    def as_transforms(self) -> TransformSet:
        """Project the shared fields onto a TransformSet so policy rules can run on it."""
        return TransformSet(
            width=self.width,
            height=self.height,
            grayscale=self.grayscale,
            flip_h=self.flip_h,
            flip_v=self.flip_v,
            rotate=self.rotate,
            quality=self.quality,
            sharpen=self.sharpen,
            colors=self.colors,
            blur_radius=self.blur_radius,
            blur_sigma=self.blur_sigma,
        )

    def with_transforms(self, t: TransformSet) -> "CanvasSet":
        return self.model_copy(update={
            "grayscale": t.grayscale,
            "flip_h": t.flip_h,
            "flip_v": t.flip_v,
            "rotate": t.rotate,
            "quality": t.quality,
            "sharpen": t.sharpen,
            "colors": t.colors,
            "blur_radius": t.blur_radius,
            "blur_sigma": t.blur_sigma,
        })

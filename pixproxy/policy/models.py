from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from pixproxy.transforms.models import TransformSet


class ValidationMode(str, Enum):
    STRICT = "strict"    # collect every violation, then fail
    LENIENT = "lenient"  # correct each violation in place and carry on

    @classmethod
    def parse(cls, value: str) -> "ValidationMode":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown validation mode: {value}") from None


def _unchanged(t: TransformSet) -> TransformSet:
    return t


@dataclass(frozen=True)
class PolicyRule:
    """A named predicate over a TransformSet.

    ``clear`` must return a TransformSet that ``is_valid`` accepts, so that
    re-validating a corrected set is a no-op.
    """
    name: str
    is_valid: Callable[[TransformSet], bool]
    error_message: Callable[[TransformSet], str]
    clear: Callable[[TransformSet], TransformSet] = _unchanged

    def __str__(self) -> str:
        return self.name

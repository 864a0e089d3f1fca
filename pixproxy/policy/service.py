from __future__ import annotations

import logging
from typing import List, Sequence

from pixproxy.common.errors import PolicyViolationError
from pixproxy.policy.models import PolicyRule, ValidationMode
from pixproxy.policy.rules import BASE_RULES
from pixproxy.transforms.models import CanvasSet, TransformSet

logger = logging.getLogger(__name__)


def validate(
    t: TransformSet,
    rules: Sequence[PolicyRule] = (),
    mode: ValidationMode = ValidationMode.STRICT,
) -> TransformSet:
    """Check ``t`` against the base rules, then ``rules`` in order.

    STRICT collects every failing rule's message and raises
    PolicyViolationError; ``t`` is returned unchanged when nothing fails.
    LENIENT applies each failing rule's correction immediately, so later
    rules see the corrected set, and never raises.
    """
    current = t
    violations: List[str] = []
    for rule in (*BASE_RULES, *rules):
        if rule.is_valid(current):
            continue
        message = rule.error_message(current)
        if mode is ValidationMode.STRICT:
            violations.append(message)
        else:
            logger.debug("Rule '%s' failed, correcting: %s", rule.name, message)
            current = rule.clear(current)

    if violations:
        raise PolicyViolationError(violations)
    return current


def validate_canvas(
    canvas: CanvasSet,
    rules: Sequence[PolicyRule] = (),
    mode: ValidationMode = ValidationMode.STRICT,
) -> CanvasSet:
    """Run the policy over the canvas' shared fields.

    A canvas always needs its dimensions, so a lenient correction that would
    change them is reported as a violation instead.
    """
    projected = canvas.as_transforms()
    corrected = validate(projected, rules, mode)
    if (corrected.width, corrected.height) != (canvas.width, canvas.height):
        messages = [
            rule.error_message(projected)
            for rule in (*BASE_RULES, *rules)
            if not rule.is_valid(projected)
        ]
        raise PolicyViolationError(messages)
    return canvas.with_transforms(corrected)

import pytest

from pixproxy.common.errors import PolicyViolationError
from pixproxy.policy.models import PolicyRule, ValidationMode
from pixproxy.policy.rules import (
    RuleConfigError,
    allowed_dimensions,
    allowed_flip_h,
    allowed_grayscale,
    allowed_rotate,
    parse_rule,
    parse_rules,
)
from pixproxy.policy.service import validate, validate_canvas
from pixproxy.transforms.models import CanvasSet, Fit, TransformSet

STRICT = ValidationMode.STRICT
LENIENT = ValidationMode.LENIENT


def min_dimension(limit: int) -> PolicyRule:
    return PolicyRule(
        name=f"dim gt{limit}",
        is_valid=lambda t: (t.width is None or t.width > limit) and (t.height is None or t.height > limit),
        error_message=lambda t: f"Dimensions must be > {limit}. Got: {t.width}x{t.height}",
        clear=lambda t: t.model_copy(update={"width": None, "height": None}),
    )


def test_strict_reports_violation_and_leaves_input_untouched():
    t = TransformSet(width=5, height=5)
    with pytest.raises(PolicyViolationError) as exc:
        validate(t, [min_dimension(10)], STRICT)
    assert str(exc.value) == "Dimensions must be > 10. Got: 5x5"
    assert (t.width, t.height) == (5, 5)


def test_strict_returns_same_object_when_valid():
    t = TransformSet(width=50, height=50)
    assert validate(t, [min_dimension(10)], STRICT) is t


def test_lenient_clears_failing_fields():
    t = TransformSet(width=1, height=1, grayscale=True)
    corrected = validate(t, [min_dimension(10)], LENIENT)
    assert corrected.width is None and corrected.height is None
    assert corrected.grayscale
    assert (t.width, t.height) == (1, 1)


def test_strict_accumulates_messages_in_rule_order():
    t = TransformSet(width=50, height=50, grayscale=True, flip_h=True)
    rules = [allowed_dimensions([(100, 100), (200, 200)]), allowed_grayscale(False), allowed_flip_h(False)]
    with pytest.raises(PolicyViolationError) as exc:
        validate(t, rules, STRICT)
    assert exc.value.messages == [
        "Allowed dim: 100x100 200x200. Got: 50x50",
        "Grayscale is not allowed.",
        "Horizontal flip is not allowed.",
    ]
    assert str(exc.value) == ", ".join(exc.value.messages)


def test_base_rules_run_without_configuration():
    with pytest.raises(PolicyViolationError) as exc:
        validate(TransformSet(width=0, quality=0, colors=1), (), STRICT)
    assert len(exc.value.messages) == 3
    corrected = validate(TransformSet(width=0, height=10, quality=500, sharpen=-1.0), (), LENIENT)
    assert corrected.width is None and corrected.height == 10
    assert corrected.quality is None and corrected.sharpen is None


def test_lenient_sees_corrections_from_earlier_rules():
    seen = []

    def spy(t):
        seen.append(t.rotate)
        return True

    rules = [allowed_rotate([0.0, 90.0]), PolicyRule(name="spy", is_valid=spy, error_message=lambda t: "")]
    validate(TransformSet(rotate=45.0), rules, LENIENT)
    assert seen == [None]


def test_lenient_correction_is_stable():
    rules = parse_rules("dim 100x100; fit contain; -crop; quality 80 90; rotate 0 90; +grayscale")
    t = TransformSet(width=30, height=40, fit=Fit.COVER, crop=True, quality=85, rotate=33.0, grayscale=True)
    once = validate(t, rules, LENIENT)
    assert validate(once, rules, LENIENT) == once
    assert validate(once, rules, STRICT) == once
    assert once.grayscale


def test_dropping_one_dimension_clears_crop_and_cover():
    rules = parse_rules("width 100 200")
    corrected = validate(
        TransformSet(width=150, height=100, crop=True, fit=Fit.COVER), rules, LENIENT
    )
    assert corrected.width is None and corrected.height == 100
    assert corrected.crop is False
    assert corrected.fit is None


def test_allow_lists_accept_absent_values():
    rules = parse_rules("dim 100x100\nquality 80\nrotate 90\nfit cover")
    t = TransformSet(path="a.png")
    assert validate(t, rules, STRICT) is t


def test_rule_language_file_format():
    text = """
    # allowed output sizes
    dim 100x100 200x200
    quality 50 75 100   # jpeg quality
    -flipH; +grayscale
    blur 1 2
    """
    rules = parse_rules(text)
    assert [r.name for r in rules] == [
        "dim 100x100 200x200",
        "quality 50 75 100",
        "-flipH",
        "+grayscale",
        "blur 1.0 2.0",
    ]


def test_blur_allow_list_message():
    rules = [parse_rule("blur 1 2")]
    with pytest.raises(PolicyViolationError) as exc:
        validate(TransformSet(blur_radius=3.0, blur_sigma=1.5), rules, STRICT)
    assert str(exc.value) == "Allowed blurRadius: [1.0, 2.0]. Got: 3.0"


@pytest.mark.parametrize("directive", ["size 10", "+sepia", "dim 100", "quality high", "fit stretch", "rotate"])
def test_rule_language_errors(directive):
    with pytest.raises(RuleConfigError):
        parse_rule(directive)


def test_validation_mode_parse():
    assert ValidationMode.parse(" Lenient ") is LENIENT
    with pytest.raises(ValueError):
        ValidationMode.parse("loose")


def test_canvas_policy_corrects_shared_fields():
    canvas = CanvasSet(width=100, height=100, grayscale=True, quality=90)
    corrected = validate_canvas(canvas, parse_rules("-grayscale; quality 80"), LENIENT)
    assert corrected.grayscale is False
    assert corrected.quality is None
    assert (corrected.width, corrected.height) == (100, 100)


def test_canvas_policy_never_drops_dimensions():
    canvas = CanvasSet(width=50, height=50)
    with pytest.raises(PolicyViolationError) as exc:
        validate_canvas(canvas, parse_rules("dim 100x100"), LENIENT)
    assert "Allowed dim: 100x100. Got: 50x50" in str(exc.value)


def test_lenient_five_by_five_against_min_dimension_is_cleared():
    t = TransformSet(width=5, height=5)
    corrected = validate(t, [min_dimension(10)], LENIENT)
    assert corrected.width is None and corrected.height is None
    assert validate(corrected, [min_dimension(10)], STRICT) == corrected
    assert (t.width, t.height) == (5, 5)


def test_blur_sigma_directive():
    rules = parse_rules("blurSigma 0.5 1")
    assert [r.name for r in rules] == ["blurSigma 0.5 1.0"]
    with pytest.raises(PolicyViolationError) as exc:
        validate(TransformSet(blur_radius=2.0, blur_sigma=2.0), rules, STRICT)
    assert str(exc.value) == "Allowed blurSigma: [0.5, 1.0]. Got: 2.0"
    assert validate(TransformSet(blur_radius=2.0, blur_sigma=1.0), rules, STRICT).blur_sigma == 1.0
    corrected = validate(TransformSet(blur_radius=2.0, blur_sigma=2.0), rules, LENIENT)
    assert not corrected.has_blur

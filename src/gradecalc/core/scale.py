from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, List, Optional, Tuple
import math

from gradecalc.core.errors import NoScaleConfigured, ValidationError
from gradecalc.core.models import GradeScaleEntry


NO_SCALE_LABEL = "No Scale Set"
INCOMPLETE_GRADE = "4.00"
FAILING_GRADE = "5.00"
MAX_NUMERIC_GRADE = 5.0

DEFAULT_SCALE: Tuple[GradeScaleEntry, ...] = (
    GradeScaleEntry("1.00", 95),
    GradeScaleEntry("1.25", 90),
    GradeScaleEntry("1.50", 85),
    GradeScaleEntry("1.75", 80),
    GradeScaleEntry("2.00", 76),
    GradeScaleEntry("2.25", 72),
    GradeScaleEntry("2.50", 68),
    GradeScaleEntry("2.75", 64),
    GradeScaleEntry("3.00", 60),
    GradeScaleEntry("4.00", 55),
    GradeScaleEntry("5.00", 0),
)


class GradeStatus(Enum):
    PASSED = "Passed"
    INCOMPLETE = "Incomplete"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


def round_half_up(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def make_scale_entry(grade: str, minimum_percentage: float) -> GradeScaleEntry:
    label = str(grade or "").strip()
    if not label:
        raise ValidationError("Grade label is required")
    try:
        minimum = float(minimum_percentage)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid minimum percentage for grade {label}") from exc
    if not math.isfinite(minimum) or minimum < 0 or minimum > 100:
        raise ValidationError("Minimum percentage must be between 0 and 100")
    return GradeScaleEntry(grade=label, minimum_percentage=minimum)


def sort_scale(scale: Iterable[GradeScaleEntry]) -> List[GradeScaleEntry]:
    return sorted(scale, key=lambda entry: entry.minimum_percentage, reverse=True)


def lookup(percentage: float, scale: Iterable[GradeScaleEntry], rounding: bool = False) -> str:
    ordered = sort_scale(scale)
    if not ordered:
        raise NoScaleConfigured()

    value = round_half_up(percentage) if rounding else percentage
    for entry in ordered:
        if entry.minimum_percentage <= value:
            return entry.grade

    # Below every minimum: the lowest-ranked label is the floor.
    return ordered[-1].grade


def lookup_or_label(percentage: float, scale: Iterable[GradeScaleEntry], rounding: bool = False) -> str:
    try:
        return lookup(percentage, scale, rounding)
    except NoScaleConfigured:
        return NO_SCALE_LABEL


def grade_value(label: str) -> Optional[float]:
    """Numeric value of an institutional grade label, or None for labels like "INC"."""
    try:
        value = float(Decimal(str(label).strip()))
    except (InvalidOperation, ValueError):
        return None
    if not math.isfinite(value) or value > MAX_NUMERIC_GRADE:
        return None
    return value


def grade_status(label: str) -> GradeStatus:
    if label == FAILING_GRADE:
        return GradeStatus.FAILED
    if label == INCOMPLETE_GRADE:
        return GradeStatus.INCOMPLETE
    if grade_value(label) is None:
        return GradeStatus.UNKNOWN
    return GradeStatus.PASSED

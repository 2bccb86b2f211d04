from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional
import math

from gradecalc.core.calculator import Inclusion, course_totals, is_included
from gradecalc.core.errors import NoScaleConfigured, NothingRemaining, ValidationError
from gradecalc.core.models import Course, GradeScaleEntry
from gradecalc.core.scale import sort_scale
from gradecalc.core.weighting import WeightedTotals


EPSILON = 1e-9


class ProjectionStatus(Enum):
    ACHIEVABLE = "achievable"
    UNATTAINABLE = "unattainable"
    ALREADY_GUARANTEED = "already_guaranteed"


@dataclass(frozen=True)
class Projection:
    target_percentage: float
    required_percentage: float
    status: ProjectionStatus

    @property
    def achievable(self) -> bool:
        return self.status is ProjectionStatus.ACHIEVABLE


@dataclass(frozen=True)
class ProjectionRow:
    target_grade: str
    target_percentage: float
    required_average_percentage: float


def required_average(
    target_percentage: float,
    current_weighted_sum: float,
    current_weight_used: float,
    remaining_weight: float,
) -> Projection:
    """
    Solve target = (ws + rw * r / 100) / (wu + rw) * 100 for r, the average
    percentage needed across the remaining weight.
    """
    if not math.isfinite(target_percentage) or not 0 <= target_percentage <= 100:
        raise ValidationError("Target percentage must be between 0 and 100")
    if remaining_weight < 0:
        raise ValidationError("Remaining weight cannot be negative")
    if remaining_weight == 0:
        raise NothingRemaining()

    total_weight = current_weight_used + remaining_weight
    required = (target_percentage * total_weight / 100 - current_weighted_sum) * 100 / remaining_weight

    if required > 100 + EPSILON:
        status = ProjectionStatus.UNATTAINABLE
    elif required < -EPSILON:
        status = ProjectionStatus.ALREADY_GUARANTEED
    else:
        status = ProjectionStatus.ACHIEVABLE
        required = min(100.0, max(0.0, required))

    return Projection(
        target_percentage=target_percentage,
        required_percentage=required,
        status=status,
    )


def projection_table(
    grade_scale: Iterable[GradeScaleEntry],
    totals: WeightedTotals,
    remaining_weight: float,
) -> List[ProjectionRow]:
    """One row per grade whose minimum is still reachable; other grades are omitted."""
    ordered = sort_scale(grade_scale)
    if not ordered:
        raise NoScaleConfigured()

    rows: List[ProjectionRow] = []
    for entry in ordered:
        projection = required_average(
            entry.minimum_percentage,
            totals.weighted_sum,
            totals.weight_used,
            remaining_weight,
        )
        if not projection.achievable:
            continue
        rows.append(
            ProjectionRow(
                target_grade=entry.grade,
                target_percentage=entry.minimum_percentage,
                required_average_percentage=projection.required_percentage,
            )
        )
    return rows


def remaining_weight_for(course: Course, inclusion: Optional[Inclusion] = None) -> float:
    remaining = 0.0
    for criterion in course.criteria:
        if not is_included(inclusion, criterion):
            continue
        if not course.scores.get(criterion.id):
            remaining += criterion.weight
    final = course.final_exam
    if course.settings.has_final and final.include and not final.taken:
        remaining += course.settings.final_weight
    return remaining


def project_course(course: Course, target_percentage: float, inclusion: Optional[Inclusion] = None) -> Projection:
    totals = course_totals(course, inclusion)
    return required_average(
        target_percentage,
        totals.weighted_sum,
        totals.weight_used,
        remaining_weight_for(course, inclusion),
    )


def course_projection_table(course: Course, inclusion: Optional[Inclusion] = None) -> List[ProjectionRow]:
    return projection_table(
        course.grade_scale,
        course_totals(course, inclusion),
        remaining_weight_for(course, inclusion),
    )

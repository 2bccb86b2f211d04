import logging
from typing import List, Mapping, Optional, Tuple

from gradecalc.core import exemption, ledger, scale
from gradecalc.core.models import (
    BreakdownRow,
    CalculationResult,
    Course,
    Criterion,
    CriterionKind,
)
from gradecalc.core.weighting import (
    WeightedInput,
    WeightedTotals,
    compute_weighted,
    percentage_of,
    weighted_contribution,
)


logger = logging.getLogger(__name__)

FINAL_EXAM_NAME = "Final Exam"
WEIGHT_TOLERANCE = 1e-6

# criterion id -> included; missing ids default to included
Inclusion = Mapping[str, bool]


def is_included(inclusion: Optional[Inclusion], criterion: Criterion) -> bool:
    if inclusion is None:
        return True
    return inclusion.get(criterion.id, True)


def criterion_input(course: Course, criterion: Criterion, inclusion: Optional[Inclusion] = None) -> WeightedInput:
    return WeightedInput(
        percentage=ledger.aggregate(course.scores.get(criterion.id, [])),
        weight=criterion.weight,
        included=is_included(inclusion, criterion),
    )


def final_exam_input(course: Course) -> Optional[WeightedInput]:
    if not course.settings.has_final:
        return None
    final = course.final_exam
    percentage = None
    if final.taken and final.max_score > 0:
        percentage = (final.score / final.max_score) * 100
    return WeightedInput(
        percentage=percentage,
        weight=course.settings.final_weight,
        included=final.include,
    )


def prefinal_totals(course: Course, inclusion: Optional[Inclusion] = None) -> WeightedTotals:
    return compute_weighted(criterion_input(course, c, inclusion) for c in course.criteria)


def course_totals(course: Course, inclusion: Optional[Inclusion] = None) -> WeightedTotals:
    totals = prefinal_totals(course, inclusion)
    final_input = final_exam_input(course)
    if final_input is not None:
        totals = totals.plus(compute_weighted([final_input]))
    return totals


def configured_weight(course: Course) -> float:
    total = sum(c.weight for c in course.criteria)
    if course.settings.has_final:
        total += course.settings.final_weight
    return total


def weight_warnings(course: Course) -> List[str]:
    warnings: List[str] = []
    if not course.criteria:
        warnings.append("No grade criteria defined")
    total = configured_weight(course)
    if abs(total - 100) > WEIGHT_TOLERANCE:
        warnings.append(f"Total weight is {total:g}%, expected 100%")
    return warnings


def _breakdown_rows(course: Course, kind: CriterionKind, inclusion: Optional[Inclusion]) -> Tuple[List[BreakdownRow], List[WeightedInput]]:
    rows: List[BreakdownRow] = []
    inputs: List[WeightedInput] = []
    for criterion in course.criteria_of(kind):
        item = criterion_input(course, criterion, inclusion)
        inputs.append(item)
        if not item.counts:
            continue
        rows.append(
            BreakdownRow(
                name=criterion.name,
                kind=kind.value,
                percentage=item.percentage,
                weight=item.weight,
                weighted_contribution=weighted_contribution(item.percentage, item.weight),
            )
        )
    return rows, inputs


def calculate(course: Course, inclusion: Optional[Inclusion] = None) -> CalculationResult:
    """
    Weighted result for one course. Nothing on the course is mutated; the
    caller decides whether to keep the returned result.
    """
    normal_rows, normal_inputs = _breakdown_rows(course, CriterionKind.NORMAL, inclusion)
    exam_rows, exam_inputs = _breakdown_rows(course, CriterionKind.EXAM, inclusion)

    prefinal = compute_weighted(normal_inputs + exam_inputs)
    prefinal_percentage = percentage_of(prefinal)

    exams_passed = exemption.count_exams_passed(exam_inputs, course.settings.passing_exam_percent)
    exempt_eligible = exemption.evaluate(exams_passed, prefinal_percentage, course.settings)

    totals = prefinal
    final_row = None
    final_input = final_exam_input(course)
    if final_input is not None and final_input.counts:
        totals = totals.plus(compute_weighted([final_input]))
        final_row = BreakdownRow(
            name=FINAL_EXAM_NAME,
            kind="Final",
            percentage=final_input.percentage,
            weight=final_input.weight,
            weighted_contribution=weighted_contribution(final_input.percentage, final_input.weight),
        )

    warnings = weight_warnings(course)
    if totals.weight_used == 0:
        warnings.append("No scored criteria included; final percentage defaults to 0")
    for message in warnings:
        logger.warning("Course %s: %s", course.name, message)

    return CalculationResult(
        breakdown=tuple(normal_rows + exam_rows),
        final_score=final_row,
        prefinal_percentage=prefinal_percentage,
        final_percentage=percentage_of(totals),
        exams_passed=exams_passed,
        exempt_eligible=exempt_eligible,
        total_weight_used=totals.weight_used,
        warnings=tuple(warnings),
    )


def grade_for(course: Course, percentage: float) -> str:
    return scale.lookup(percentage, course.grade_scale, course.settings.rounding_enabled)


def course_grade(course: Course) -> Optional[str]:
    """Grade label of the last stored result, "No Scale Set" without a scale, None before calculation."""
    if course.result is None:
        return None
    return scale.lookup_or_label(
        course.result.final_percentage,
        course.grade_scale,
        course.settings.rounding_enabled,
    )

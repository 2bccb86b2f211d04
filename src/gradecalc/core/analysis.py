from dataclasses import dataclass
from typing import List, Optional

from gradecalc.core.models import CalculationResult, Course
from gradecalc.core.scale import GradeStatus, grade_status, grade_value, lookup_or_label


IMPROVEMENT_THRESHOLD = 2.5


@dataclass(frozen=True)
class Recommendation:
    kind: str
    title: str
    text: str


@dataclass(frozen=True)
class ExemptionSummary:
    eligible: bool
    exams_passed: int
    min_exams_passed: int
    prefinal_percentage: float
    min_prefinal_percent: float


@dataclass(frozen=True)
class PerformanceAnalysis:
    percentage: float
    grade: str
    status: GradeStatus
    exemption: Optional[ExemptionSummary]
    recommendations: List[Recommendation]


def recommendations_for(grade: str, exempt_eligible: bool, has_final: bool) -> List[Recommendation]:
    items: List[Recommendation] = []
    value = grade_value(grade)
    if grade_status(grade) is GradeStatus.FAILED:
        items.append(Recommendation(
            "critical",
            "Critical:",
            "You are currently failing. Focus on upcoming assessments to pass.",
        ))
    elif value is not None and value >= IMPROVEMENT_THRESHOLD:
        items.append(Recommendation(
            "improvement",
            "Improvement:",
            "You have room for improvement. Consider aiming for a higher grade.",
        ))
    else:
        items.append(Recommendation(
            "excellent",
            "Excellent:",
            "Great performance! Keep up the good work.",
        ))

    if exempt_eligible and has_final:
        items.append(Recommendation(
            "decision",
            "Decision:",
            "Consider whether taking the final exam could improve or risk your current grade.",
        ))
    return items


def analyze(course: Course, result: CalculationResult) -> PerformanceAnalysis:
    settings = course.settings
    grade = lookup_or_label(result.final_percentage, course.grade_scale, settings.rounding_enabled)

    exemption = None
    if settings.has_final and settings.has_exemption:
        exemption = ExemptionSummary(
            eligible=result.exempt_eligible,
            exams_passed=result.exams_passed,
            min_exams_passed=settings.min_exams_passed,
            prefinal_percentage=result.prefinal_percentage,
            min_prefinal_percent=settings.min_prefinal_percent,
        )

    return PerformanceAnalysis(
        percentage=result.final_percentage,
        grade=grade,
        status=grade_status(grade),
        exemption=exemption,
        recommendations=recommendations_for(grade, result.exempt_eligible, settings.has_final),
    )

from typing import Iterable

from gradecalc.core.models import CourseSettings
from gradecalc.core.weighting import WeightedInput


def count_exams_passed(exam_inputs: Iterable[WeightedInput], passing_percent: float) -> int:
    return sum(1 for item in exam_inputs if item.counts and item.percentage >= passing_percent)


def evaluate(exams_passed: int, prefinal_percentage: float, settings: CourseSettings) -> bool:
    return (
        settings.has_final
        and settings.has_exemption
        and exams_passed >= settings.min_exams_passed
        and prefinal_percentage >= settings.min_prefinal_percent
    )

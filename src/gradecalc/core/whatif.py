from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from gradecalc.core import ledger
from gradecalc.core.calculator import Inclusion, calculate
from gradecalc.core.errors import ValidationError
from gradecalc.core.models import CalculationResult, Course, FinalExam, ScoreEntry
from gradecalc.core.scale import lookup_or_label


@dataclass(frozen=True)
class WhatIfPreview:
    result: CalculationResult
    grade: str


class WhatIfLedger:
    """
    Scratch copy of a course's scores. Entries are validated like the real
    ledger but never written back to the course.
    """

    def __init__(self, course: Course, inclusion: Optional[Inclusion] = None) -> None:
        self._course = course
        self._inclusion = dict(inclusion) if inclusion is not None else None
        self._seed()

    def _seed(self) -> None:
        self._scores: Dict[str, List[ScoreEntry]] = {
            criterion_id: list(entries) for criterion_id, entries in self._course.scores.items()
        }
        self._final_exam = replace(self._course.final_exam)

    def _require_criterion(self, criterion_id: str) -> None:
        if self._course.criterion(criterion_id) is None:
            raise ValidationError(f"Unknown criterion: {criterion_id}")

    def entries(self, criterion_id: str) -> List[ScoreEntry]:
        return list(self._scores.get(criterion_id, []))

    def add(self, criterion_id: str, raw_score: float, max_score: float) -> ScoreEntry:
        self._require_criterion(criterion_id)
        entry = ledger.make_entry(raw_score, max_score)
        self._scores.setdefault(criterion_id, []).append(entry)
        return entry

    def remove(self, criterion_id: str, index: int) -> None:
        entries = self._scores.get(criterion_id, [])
        if not 0 <= index < len(entries):
            raise ValidationError(f"No score at position {index}")
        del entries[index]

    def clear(self, criterion_id: str) -> None:
        self._require_criterion(criterion_id)
        self._scores[criterion_id] = []

    def set_final_exam(self, score: Optional[float], max_score: float = 100.0) -> None:
        if score is not None:
            entry = ledger.make_entry(score, max_score)
            score, max_score = entry.raw_score, entry.max_score
        elif max_score <= 0:
            raise ValidationError("Max score must be greater than 0")
        self._final_exam = FinalExam(score=score, max_score=max_score, include=self._final_exam.include)

    def reset(self) -> None:
        self._seed()

    def preview(self) -> WhatIfPreview:
        scratch = replace(
            self._course,
            scores={key: list(value) for key, value in self._scores.items()},
            final_exam=replace(self._final_exam),
            result=None,
        )
        result = calculate(scratch, self._inclusion)
        grade = lookup_or_label(
            result.final_percentage,
            scratch.grade_scale,
            scratch.settings.rounding_enabled,
        )
        return WhatIfPreview(result=result, grade=grade)

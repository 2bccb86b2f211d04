from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
import math
import uuid

from gradecalc.config.settings import settings as app_settings
from gradecalc.core.errors import ValidationError


def new_id() -> str:
    return uuid.uuid4().hex


class CriterionKind(Enum):
    NORMAL = "Normal"
    EXAM = "Exam"


@dataclass
class Criterion:
    name: str
    weight: float
    kind: CriterionKind = CriterionKind.NORMAL
    id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class ScoreEntry:
    raw_score: float
    max_score: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.raw_score) and math.isfinite(self.max_score)):
            raise ValidationError("Score and max score must be finite numbers")
        if self.max_score <= 0:
            raise ValidationError("Max score must be greater than 0")
        if self.raw_score < 0:
            raise ValidationError("Score cannot be negative")

    @property
    def percentage(self) -> float:
        return (self.raw_score / self.max_score) * 100


@dataclass
class FinalExam:
    # None until the final exam has been taken.
    score: Optional[float] = None
    max_score: float = 100.0
    include: bool = True

    @property
    def taken(self) -> bool:
        return self.score is not None


@dataclass(frozen=True)
class GradeScaleEntry:
    grade: str
    minimum_percentage: float


@dataclass
class CourseSettings:
    has_final: bool = True
    has_exemption: bool = False
    passing_exam_percent: float = app_settings.passing_exam_percent
    min_exams_passed: int = app_settings.min_exams_passed
    min_prefinal_percent: float = app_settings.min_prefinal_percent
    final_weight: float = app_settings.final_weight
    rounding_enabled: bool = False


@dataclass(frozen=True)
class BreakdownRow:
    name: str
    kind: str
    percentage: float
    weight: float
    weighted_contribution: float


@dataclass(frozen=True)
class CalculationResult:
    breakdown: Tuple[BreakdownRow, ...]
    final_score: Optional[BreakdownRow]
    prefinal_percentage: float
    final_percentage: float
    exams_passed: int
    exempt_eligible: bool
    total_weight_used: float
    warnings: Tuple[str, ...] = ()


@dataclass
class Course:
    name: str
    units: float = app_settings.default_units
    criteria: List[Criterion] = field(default_factory=list)
    scores: Dict[str, List[ScoreEntry]] = field(default_factory=dict)
    final_exam: FinalExam = field(default_factory=FinalExam)
    grade_scale: List[GradeScaleEntry] = field(default_factory=list)
    settings: CourseSettings = field(default_factory=CourseSettings)
    result: Optional[CalculationResult] = None
    id: str = field(default_factory=new_id)

    def criterion(self, criterion_id: str) -> Optional[Criterion]:
        for item in self.criteria:
            if item.id == criterion_id:
                return item
        return None

    def criteria_of(self, kind: CriterionKind) -> List[Criterion]:
        return [item for item in self.criteria if item.kind is kind]


@dataclass(frozen=True)
class QuickEntry:
    """A course tracked only by its final grade label and credit units."""

    name: str
    grade: str
    units: float = app_settings.default_units
    id: str = field(default_factory=new_id)


@dataclass
class Semester:
    name: str
    member_ids: List[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)

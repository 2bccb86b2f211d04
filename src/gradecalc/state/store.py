from dataclasses import replace
import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple, Union

from gradecalc.core import calculator, gwa, ledger, projection, scale
from gradecalc.core.analysis import PerformanceAnalysis, analyze
from gradecalc.core.errors import (
    CourseNotFound,
    LastCourseError,
    SemesterNotFound,
    ValidationError,
)
from gradecalc.core.models import (
    CalculationResult,
    Course,
    CourseSettings,
    Criterion,
    CriterionKind,
    FinalExam,
    GradeScaleEntry,
    QuickEntry,
    ScoreEntry,
    Semester,
)
from gradecalc.core.whatif import WhatIfLedger


logger = logging.getLogger(__name__)

# (course id, criterion id, criterion kind)
InclusionKey = Tuple[str, str, str]
ScaleInput = Union[GradeScaleEntry, Tuple[str, float]]

_SETTING_FIELDS = (
    "has_final",
    "has_exemption",
    "passing_exam_percent",
    "min_exams_passed",
    "min_prefinal_percent",
    "final_weight",
    "rounding_enabled",
)


def _positive_number(value: float, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a number") from exc
    if not math.isfinite(number) or number <= 0:
        raise ValidationError(f"{label} must be a finite number greater than 0")
    return number


def _percentage(value: float, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a number") from exc
    if not 0 <= number <= 100:
        raise ValidationError(f"{label} must be between 0 and 100")
    return number


class GradebookStore:
    """
    Holds every course, quick entry and semester of one student. Commands
    validate their input before touching state and return the new value.
    """

    def __init__(self) -> None:
        self.courses: Dict[str, Course] = {}
        self.quick_entries: Dict[str, QuickEntry] = {}
        self.semesters: Dict[str, Semester] = {}
        self.inclusion: Dict[InclusionKey, bool] = {}
        self.current_course_id: Optional[str] = None
        self._course_counter = 0

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------

    def create_course(self, name: Optional[str] = None, units: Optional[float] = None) -> Course:
        clean_units = _positive_number(units, "Units") if units is not None else None
        self._course_counter += 1
        course_name = (name or "").strip() or f"Course {self._course_counter}"
        course = Course(name=course_name)
        if clean_units is not None:
            course.units = clean_units
        self.courses[course.id] = course
        self.current_course_id = course.id
        logger.info("Created course %s (%s)", course.name, course.id)
        return course

    def add_course(self, course: Course) -> Course:
        self.courses[course.id] = course
        self._course_counter = max(self._course_counter, len(self.courses))
        if self.current_course_id is None:
            self.current_course_id = course.id
        return course

    def ensure_default_course(self) -> Course:
        if not self.courses:
            return self.create_course("Course 1")
        return self.current_course()

    def get_course(self, course_id: str) -> Course:
        try:
            return self.courses[course_id]
        except KeyError as exc:
            raise CourseNotFound(f"Unknown course: {course_id}") from exc

    def current_course(self) -> Course:
        if self.current_course_id not in self.courses:
            if not self.courses:
                return self.create_course("Course 1")
            self.current_course_id = next(iter(self.courses))
        return self.courses[self.current_course_id]

    def switch_course(self, course_id: str) -> Course:
        course = self.get_course(course_id)
        self.current_course_id = course.id
        return course

    def rename_course(self, course_id: str, name: str) -> Course:
        course = self.get_course(course_id)
        new_name = (name or "").strip()
        if not new_name:
            raise ValidationError("Course name is required")
        course.name = new_name
        return course

    def set_units(self, course_id: str, units: float) -> Course:
        course = self.get_course(course_id)
        course.units = _positive_number(units, "Units")
        return course

    def delete_course(self, course_id: str) -> None:
        self.get_course(course_id)
        if len(self.courses) <= 1:
            raise LastCourseError("Cannot delete the last course. Create another course first.")

        del self.courses[course_id]
        self._drop_member(course_id)
        self.inclusion = {key: value for key, value in self.inclusion.items() if key[0] != course_id}
        if self.current_course_id == course_id:
            self.current_course_id = next(iter(self.courses))
        logger.info("Deleted course %s", course_id)

    # ------------------------------------------------------------------
    # Criteria and settings
    # ------------------------------------------------------------------

    def add_criterion(self, course_id: str, name: str, weight: float, kind: CriterionKind = CriterionKind.NORMAL) -> Criterion:
        course = self.get_course(course_id)
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Criterion name is required")
        clean_weight = _positive_number(weight, "Weight")
        if any(c.name == clean_name and c.kind is kind for c in course.criteria):
            raise ValidationError(f"{kind.value} criterion '{clean_name}' already exists")

        criterion = Criterion(name=clean_name, weight=clean_weight, kind=kind)
        course.criteria.append(criterion)
        return criterion

    def add_component(self, course_id: str, name: str, weight: float) -> Criterion:
        return self.add_criterion(course_id, name, weight, CriterionKind.NORMAL)

    def add_exam(self, course_id: str, name: str, weight: float) -> Criterion:
        return self.add_criterion(course_id, name, weight, CriterionKind.EXAM)

    def remove_criterion(self, course_id: str, criterion_id: str) -> None:
        course = self.get_course(course_id)
        criterion = self._get_criterion(course, criterion_id)
        course.criteria = [c for c in course.criteria if c.id != criterion.id]
        course.scores.pop(criterion.id, None)
        self.inclusion.pop((course.id, criterion.id, criterion.kind.value), None)

    def clear_criteria(self, course_id: str) -> None:
        course = self.get_course(course_id)
        course.criteria = []
        course.scores = {}
        self.inclusion = {key: value for key, value in self.inclusion.items() if key[0] != course.id}

    def update_settings(self, course_id: str, **changes) -> CourseSettings:
        course = self.get_course(course_id)
        unknown = set(changes) - set(_SETTING_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        for key in ("passing_exam_percent", "min_prefinal_percent", "final_weight"):
            if key in changes:
                changes[key] = _percentage(changes[key], key)
        if "min_exams_passed" in changes:
            try:
                count = int(changes["min_exams_passed"])
            except (TypeError, ValueError) as exc:
                raise ValidationError("min_exams_passed must be a whole number") from exc
            if count < 0:
                raise ValidationError("min_exams_passed cannot be negative")
            changes["min_exams_passed"] = count
        for key in ("has_final", "has_exemption", "rounding_enabled"):
            if key in changes and not isinstance(changes[key], bool):
                raise ValidationError(f"{key} must be true or false")

        updated = replace(course.settings, **changes)
        if not updated.has_final:
            updated.has_exemption = False
        course.settings = updated
        return updated

    def set_final_exam(self, course_id: str, score: Optional[float], max_score: float = 100.0, include: Optional[bool] = None) -> FinalExam:
        course = self.get_course(course_id)
        if score is not None:
            entry = ledger.make_entry(score, max_score)
            score, max_score = entry.raw_score, entry.max_score
        else:
            max_score = _positive_number(max_score, "Max score")
        keep_include = course.final_exam.include if include is None else bool(include)
        course.final_exam = FinalExam(score=score, max_score=max_score, include=keep_include)
        return course.final_exam

    # ------------------------------------------------------------------
    # Scores and inclusion flags
    # ------------------------------------------------------------------

    def submit_score(self, course_id: str, criterion_id: str, raw_score: float, max_score: float = 100.0) -> ScoreEntry:
        course = self.get_course(course_id)
        criterion = self._get_criterion(course, criterion_id)
        entry = ledger.make_entry(raw_score, max_score)
        course.scores.setdefault(criterion.id, []).append(entry)
        return entry

    def remove_scores(self, course_id: str, criterion_id: str, indices: Iterable[int]) -> List[ScoreEntry]:
        course = self.get_course(course_id)
        criterion = self._get_criterion(course, criterion_id)
        drop = set(indices)
        if not drop:
            raise ValidationError("Select scores to remove")
        entries = course.scores.get(criterion.id, [])
        if any(index < 0 or index >= len(entries) for index in drop):
            raise ValidationError("Score index out of range")
        course.scores[criterion.id] = [entry for index, entry in enumerate(entries) if index not in drop]
        return course.scores[criterion.id]

    def list_scores(self, course_id: str, criterion_id: str) -> List[ScoreEntry]:
        course = self.get_course(course_id)
        criterion = self._get_criterion(course, criterion_id)
        return list(course.scores.get(criterion.id, []))

    def is_included(self, course_id: str, criterion: Criterion) -> bool:
        return self.inclusion.get((course_id, criterion.id, criterion.kind.value), True)

    def set_included(self, course_id: str, criterion_id: str, included: bool) -> None:
        course = self.get_course(course_id)
        criterion = self._get_criterion(course, criterion_id)
        self.inclusion[(course.id, criterion.id, criterion.kind.value)] = bool(included)

    def inclusion_for(self, course_id: str) -> Dict[str, bool]:
        course = self.get_course(course_id)
        return {c.id: self.is_included(course.id, c) for c in course.criteria}

    # ------------------------------------------------------------------
    # Grade scale
    # ------------------------------------------------------------------

    def set_grade_scale(self, course_id: str, entries: Iterable[ScaleInput]) -> List[GradeScaleEntry]:
        course = self.get_course(course_id)
        validated = []
        for item in entries:
            if isinstance(item, GradeScaleEntry):
                validated.append(scale.make_scale_entry(item.grade, item.minimum_percentage))
            else:
                grade, minimum = item
                validated.append(scale.make_scale_entry(grade, minimum))
        course.grade_scale = scale.sort_scale(validated)
        return list(course.grade_scale)

    def add_grade(self, course_id: str, grade: str, minimum_percentage: float) -> List[GradeScaleEntry]:
        course = self.get_course(course_id)
        entry = scale.make_scale_entry(grade, minimum_percentage)
        course.grade_scale = scale.sort_scale(course.grade_scale + [entry])
        return list(course.grade_scale)

    def use_default_scale(self, course_id: str) -> List[GradeScaleEntry]:
        return self.set_grade_scale(course_id, scale.DEFAULT_SCALE)

    def clear_grade_scale(self, course_id: str) -> None:
        self.get_course(course_id).grade_scale = []

    # ------------------------------------------------------------------
    # Calculation and projection
    # ------------------------------------------------------------------

    def recalculate(self, course_id: str) -> CalculationResult:
        course = self.get_course(course_id)
        result = calculator.calculate(course, self.inclusion_for(course.id))
        course.result = result
        logger.info("Recalculated %s: %.2f%%", course.name, result.final_percentage)
        return result

    def grade(self, course_id: str) -> Optional[str]:
        return calculator.course_grade(self.get_course(course_id))

    def project(self, course_id: str, target_percentage: float) -> projection.Projection:
        course = self.get_course(course_id)
        return projection.project_course(course, target_percentage, self.inclusion_for(course.id))

    def projection_table(self, course_id: str) -> List[projection.ProjectionRow]:
        course = self.get_course(course_id)
        return projection.course_projection_table(course, self.inclusion_for(course.id))

    def what_if(self, course_id: str) -> WhatIfLedger:
        course = self.get_course(course_id)
        return WhatIfLedger(course, self.inclusion_for(course.id))

    def analysis(self, course_id: str) -> PerformanceAnalysis:
        course = self.get_course(course_id)
        result = course.result or self.recalculate(course.id)
        return analyze(course, result)

    # ------------------------------------------------------------------
    # Quick entries, semesters and GWA
    # ------------------------------------------------------------------

    def add_quick_entry(self, name: str, grade: str, units: Optional[float] = None) -> QuickEntry:
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Course name is required")
        label = (grade or "").strip()
        if not label:
            raise ValidationError("Grade is required")
        entry = QuickEntry(name=clean_name, grade=label)
        if units is not None:
            entry = replace(entry, units=_positive_number(units, "Units"))
        self.quick_entries[entry.id] = entry
        return entry

    def remove_quick_entry(self, entry_id: str) -> None:
        if entry_id not in self.quick_entries:
            raise CourseNotFound(f"Unknown course: {entry_id}")
        del self.quick_entries[entry_id]
        self._drop_member(entry_id)

    def create_semester(self, name: str) -> Semester:
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Semester name is required")
        semester = Semester(name=clean_name)
        self.semesters[semester.id] = semester
        return semester

    def get_semester(self, semester_id: str) -> Semester:
        try:
            return self.semesters[semester_id]
        except KeyError as exc:
            raise SemesterNotFound(f"Unknown semester: {semester_id}") from exc

    def rename_semester(self, semester_id: str, name: str) -> Semester:
        semester = self.get_semester(semester_id)
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Semester name is required")
        semester.name = clean_name
        return semester

    def delete_semester(self, semester_id: str) -> None:
        self.get_semester(semester_id)
        # member courses become unassigned
        del self.semesters[semester_id]

    def assign(self, member_id: str, semester_id: str, position: Optional[int] = None) -> Semester:
        if member_id not in self.courses and member_id not in self.quick_entries:
            raise CourseNotFound(f"Unknown course: {member_id}")
        semester = self.get_semester(semester_id)
        self._drop_member(member_id)
        if position is None:
            semester.member_ids.append(member_id)
        else:
            semester.member_ids.insert(max(0, position), member_id)
        return semester

    def unassign(self, member_id: str) -> None:
        self._drop_member(member_id)

    def semester_of(self, member_id: str) -> Optional[Semester]:
        for semester in self.semesters.values():
            if member_id in semester.member_ids:
                return semester
        return None

    def gwa_entries(self) -> List[gwa.GwaEntry]:
        entries: List[gwa.GwaEntry] = [gwa.FullCourse(course) for course in self.courses.values()]
        entries.extend(self.quick_entries.values())
        return entries

    def gwa_summary(self, *, round_to: Optional[int] = None) -> gwa.GwaSummary:
        return gwa.summarize(self.semesters.values(), self.gwa_entries(), round_to=round_to)

    # ------------------------------------------------------------------

    @staticmethod
    def _get_criterion(course: Course, criterion_id: str) -> Criterion:
        criterion = course.criterion(criterion_id)
        if criterion is None:
            raise ValidationError(f"Unknown criterion: {criterion_id}")
        return criterion

    def _drop_member(self, member_id: str) -> None:
        for semester in self.semesters.values():
            if member_id in semester.member_ids:
                semester.member_ids = [m for m in semester.member_ids if m != member_id]

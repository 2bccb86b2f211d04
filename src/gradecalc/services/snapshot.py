import json
import logging
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from gradecalc.config.settings import settings
from gradecalc.core.errors import GradeCalcError
from gradecalc.core.models import (
    Course,
    CourseSettings,
    Criterion,
    CriterionKind,
    FinalExam,
    GradeScaleEntry,
    QuickEntry,
    ScoreEntry,
    Semester,
    new_id,
)
from gradecalc.core.scale import make_scale_entry, sort_scale
from gradecalc.state.store import GradebookStore


logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 2


class SnapshotError(Exception):
    pass


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ScoreEntryModel(_Model):
    score: float = 0.0
    max_score: float = 100.0


class CriterionModel(_Model):
    id: Optional[str] = None
    name: str
    weight: float
    kind: str = CriterionKind.NORMAL.value


class FinalExamModel(_Model):
    score: Optional[float] = None
    max_score: float = 100.0
    include: bool = True


class GradeScaleEntryModel(_Model):
    grade: str
    minimum_percentage: float


class SettingsModel(_Model):
    has_final: bool = True
    has_exemption: bool = False
    passing_exam_percent: float = Field(default_factory=lambda: settings.passing_exam_percent)
    min_exams_passed: int = Field(default_factory=lambda: settings.min_exams_passed)
    min_prefinal_percent: float = Field(default_factory=lambda: settings.min_prefinal_percent)
    final_weight: float = Field(default_factory=lambda: settings.final_weight)
    rounding_enabled: bool = False


class CourseModel(_Model):
    id: Optional[str] = None
    name: str = "Course"
    units: Optional[Any] = None
    criteria: List[CriterionModel] = Field(default_factory=list)
    scores: Dict[str, List[ScoreEntryModel]] = Field(default_factory=dict)
    final_exam: FinalExamModel = Field(default_factory=FinalExamModel)
    grade_scale: List[GradeScaleEntryModel] = Field(default_factory=list)
    settings: SettingsModel = Field(default_factory=SettingsModel)


class QuickEntryModel(_Model):
    id: Optional[str] = None
    name: str
    grade: str
    units: Optional[Any] = None


class SemesterModel(_Model):
    id: Optional[str] = None
    name: str
    member_ids: List[str] = Field(default_factory=list)


class InclusionModel(_Model):
    course_id: str
    criterion_id: str
    kind: str
    included: bool = True


class SnapshotModel(_Model):
    version: int = SNAPSHOT_VERSION
    courses: List[CourseModel] = Field(default_factory=list)
    quick_entries: List[QuickEntryModel] = Field(default_factory=list)
    semesters: List[SemesterModel] = Field(default_factory=list)
    inclusion: List[InclusionModel] = Field(default_factory=list)
    current_course_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Legacy course format: positional keys (comp_0, exam_1) and min/max bands.
# Saved either alone (single course) or as a dict of courses keyed by id.
# ---------------------------------------------------------------------------


class LegacyCriterionModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    component: str
    weight: float
    type: str = CriterionKind.NORMAL.value


class LegacyScoreModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    score: float = 0.0
    max_score: float = Field(default=100.0, alias="maxScore")


class LegacyGradeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    grade: str
    min: float
    max: Optional[float] = None


class LegacyFinalExamModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    score: Optional[float] = None
    total: float = 100.0
    include: bool = True


class LegacyCourseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    criteria: List[LegacyCriterionModel] = Field(default_factory=list)
    grade_scale: List[LegacyGradeModel] = Field(default_factory=list, alias="gradeScale")
    component_scores: Dict[str, List[LegacyScoreModel]] = Field(default_factory=dict, alias="componentScores")
    exam_scores: Dict[str, List[LegacyScoreModel]] = Field(default_factory=dict, alias="examScores")
    final_exam: LegacyFinalExamModel = Field(default_factory=LegacyFinalExamModel, alias="finalExam")
    settings: SettingsModel = Field(default_factory=SettingsModel)
    units: Optional[Any] = None


class LegacyMultiCourseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    courses: Dict[str, LegacyCourseModel] = Field(default_factory=dict)
    current_course_id: Optional[str] = Field(default=None, alias="currentCourseId")


def is_legacy(data: Dict[str, Any]) -> bool:
    return "courses" not in data and ("criteria" in data or "gradeScale" in data)


def is_legacy_multi(data: Dict[str, Any]) -> bool:
    return isinstance(data.get("courses"), dict)


def _valid_units(value: Any) -> float:
    try:
        units = float(value)
    except (TypeError, ValueError):
        return settings.default_units
    if not math.isfinite(units) or units <= 0:
        return settings.default_units
    return units


def _kind(value: str) -> CriterionKind:
    try:
        return CriterionKind(value)
    except ValueError:
        logger.warning("Unknown criterion kind %r, treating as %s", value, CriterionKind.NORMAL.value)
        return CriterionKind.NORMAL


def _entries(raw: List[Any], label: str) -> List[ScoreEntry]:
    entries = []
    for item in raw:
        try:
            entries.append(ScoreEntry(raw_score=item.score, max_score=item.max_score))
        except GradeCalcError as exc:
            logger.warning("Dropping invalid score in %s: %s", label, exc)
    return entries


def _scale(raw: List[Any]) -> List[GradeScaleEntry]:
    entries = []
    for item in raw:
        try:
            entries.append(make_scale_entry(item.grade, item.minimum_percentage))
        except GradeCalcError as exc:
            logger.warning("Dropping grade scale entry %r: %s", item.grade, exc)
    return sort_scale(entries)


def _settings(raw: SettingsModel) -> CourseSettings:
    values = raw.model_dump()
    if not values["has_final"]:
        values["has_exemption"] = False
    return CourseSettings(**values)


def _final_exam(score: Optional[float], max_score: float, include: bool) -> FinalExam:
    if score is None:
        if math.isfinite(max_score) and max_score > 0:
            return FinalExam(max_score=max_score, include=include)
        logger.warning("Dropping invalid final exam total %r", max_score)
        return FinalExam(include=include)
    try:
        entry = ScoreEntry(raw_score=score, max_score=max_score)
    except GradeCalcError as exc:
        logger.warning("Dropping invalid final exam score %r/%r: %s", score, max_score, exc)
        return FinalExam(include=include)
    return FinalExam(score=entry.raw_score, max_score=entry.max_score, include=include)


def _course(raw: CourseModel) -> Course:
    criteria = []
    for item in raw.criteria:
        if not math.isfinite(item.weight) or item.weight <= 0:
            logger.warning("Dropping criterion %s with invalid weight %r", item.name, item.weight)
            continue
        criteria.append(Criterion(name=item.name, weight=item.weight, kind=_kind(item.kind), id=item.id or new_id()))
    known = {criterion.id for criterion in criteria}
    scores = {}
    for criterion_id, items in raw.scores.items():
        if criterion_id not in known:
            logger.warning("Dropping scores for unknown criterion %s in %s", criterion_id, raw.name)
            continue
        scores[criterion_id] = _entries(items, raw.name)

    return Course(
        id=raw.id or new_id(),
        name=raw.name,
        units=_valid_units(raw.units),
        criteria=criteria,
        scores=scores,
        final_exam=_final_exam(raw.final_exam.score, raw.final_exam.max_score, raw.final_exam.include),
        grade_scale=_scale(raw.grade_scale),
        settings=_settings(raw.settings),
    )


def _migrate_course(legacy: LegacyCourseModel, course_id: Optional[str], name: str) -> CourseModel:
    criteria: List[CriterionModel] = []
    scores: Dict[str, List[ScoreEntryModel]] = {}
    positions = {CriterionKind.NORMAL: 0, CriterionKind.EXAM: 0}
    for item in legacy.criteria:
        kind = _kind(item.type)
        index = positions[kind]
        positions[kind] += 1
        criterion_id = new_id()
        criteria.append(CriterionModel(id=criterion_id, name=item.component, weight=item.weight, kind=kind.value))

        if kind is CriterionKind.EXAM:
            raw_scores = legacy.exam_scores.get(f"exam_{index}", [])
        else:
            raw_scores = legacy.component_scores.get(f"comp_{index}", [])
        scores[criterion_id] = [ScoreEntryModel(score=s.score, max_score=s.max_score) for s in raw_scores]

    return CourseModel(
        id=course_id,
        name=name,
        units=legacy.units,
        criteria=criteria,
        scores=scores,
        final_exam=FinalExamModel(
            score=legacy.final_exam.score,
            max_score=legacy.final_exam.total,
            include=legacy.final_exam.include,
        ),
        grade_scale=[GradeScaleEntryModel(grade=g.grade, minimum_percentage=g.min) for g in legacy.grade_scale],
        settings=legacy.settings,
    )


def migrate_legacy(data: Dict[str, Any]) -> SnapshotModel:
    """Convert a single-course snapshot into the multi-course shape."""
    try:
        legacy = LegacyCourseModel.model_validate(data)
    except PydanticValidationError as exc:
        raise SnapshotError(f"Invalid legacy snapshot: {exc.error_count()} error(s)") from exc

    course = _migrate_course(legacy, None, "Course 1")
    logger.info("Migrated legacy snapshot with %d criteria", len(course.criteria))
    return SnapshotModel(courses=[course])


def migrate_legacy_courses(data: Dict[str, Any]) -> SnapshotModel:
    """
    Convert a snapshot whose courses are keyed by id in the legacy course
    format. Course ids and names are kept; there are no semesters to carry.
    """
    try:
        legacy = LegacyMultiCourseModel.model_validate(data)
    except PydanticValidationError as exc:
        raise SnapshotError(f"Invalid legacy snapshot: {exc.error_count()} error(s)") from exc

    courses = []
    for key, raw in legacy.courses.items():
        name = (raw.name or "").strip() or key
        courses.append(_migrate_course(raw, key, name))
    logger.info("Migrated legacy snapshot with %d course(s)", len(courses))
    return SnapshotModel(courses=courses, current_course_id=legacy.current_course_id)


def parse_snapshot(data: Dict[str, Any]) -> SnapshotModel:
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    if is_legacy(data):
        return migrate_legacy(data)
    if is_legacy_multi(data):
        return migrate_legacy_courses(data)
    try:
        return SnapshotModel.model_validate(data)
    except PydanticValidationError as exc:
        raise SnapshotError(f"Invalid snapshot: {exc.error_count()} error(s)") from exc


def load_snapshot(data: Dict[str, Any]) -> GradebookStore:
    """
    Build a store from a persisted snapshot. Invalid units fall back to the
    default and broken course/semester references are dropped.
    """
    snapshot = parse_snapshot(data)
    store = GradebookStore()

    for raw in snapshot.courses:
        course = _course(raw)
        if course.id in store.courses:
            logger.warning("Dropping duplicate course id %s", course.id)
            continue
        store.add_course(course)

    for raw in snapshot.quick_entries:
        entry = QuickEntry(name=raw.name, grade=raw.grade, units=_valid_units(raw.units), id=raw.id or new_id())
        store.quick_entries[entry.id] = entry

    assigned = set()
    for raw in snapshot.semesters:
        members = []
        for member_id in raw.member_ids:
            if member_id not in store.courses and member_id not in store.quick_entries:
                logger.warning("Dropping unknown course %s from semester %s", member_id, raw.name)
                continue
            if member_id in assigned:
                logger.warning("Course %s already belongs to a semester; dropping from %s", member_id, raw.name)
                continue
            assigned.add(member_id)
            members.append(member_id)
        semester = Semester(name=raw.name, member_ids=members, id=raw.id or new_id())
        store.semesters[semester.id] = semester

    for raw in snapshot.inclusion:
        course = store.courses.get(raw.course_id)
        criterion = course.criterion(raw.criterion_id) if course else None
        if criterion is None or criterion.kind.value != raw.kind:
            logger.warning("Dropping inclusion flag for unknown criterion %s", raw.criterion_id)
            continue
        store.inclusion[(course.id, criterion.id, criterion.kind.value)] = raw.included

    if snapshot.current_course_id in store.courses:
        store.current_course_id = snapshot.current_course_id
    store.ensure_default_course()
    for course_id in store.courses:
        store.recalculate(course_id)
    return store


def loads(text: str) -> GradebookStore:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotError("Snapshot is not valid JSON") from exc
    return load_snapshot(data)


def dump_snapshot(store: GradebookStore) -> Dict[str, Any]:
    snapshot = SnapshotModel(
        courses=[
            CourseModel(
                id=course.id,
                name=course.name,
                units=course.units,
                criteria=[
                    CriterionModel(id=c.id, name=c.name, weight=c.weight, kind=c.kind.value)
                    for c in course.criteria
                ],
                scores={
                    criterion_id: [ScoreEntryModel(score=e.raw_score, max_score=e.max_score) for e in entries]
                    for criterion_id, entries in course.scores.items()
                },
                final_exam=FinalExamModel(
                    score=course.final_exam.score,
                    max_score=course.final_exam.max_score,
                    include=course.final_exam.include,
                ),
                grade_scale=[
                    GradeScaleEntryModel(grade=g.grade, minimum_percentage=g.minimum_percentage)
                    for g in course.grade_scale
                ],
                settings=SettingsModel(**vars(course.settings)),
            )
            for course in store.courses.values()
        ],
        quick_entries=[
            QuickEntryModel(id=q.id, name=q.name, grade=q.grade, units=q.units)
            for q in store.quick_entries.values()
        ],
        semesters=[
            SemesterModel(id=s.id, name=s.name, member_ids=list(s.member_ids))
            for s in store.semesters.values()
        ],
        inclusion=[
            InclusionModel(course_id=course_id, criterion_id=criterion_id, kind=kind, included=included)
            for (course_id, criterion_id, kind), included in store.inclusion.items()
        ],
        current_course_id=store.current_course_id,
    )
    return snapshot.model_dump(by_alias=True)


def dumps(store: GradebookStore) -> str:
    return json.dumps(dump_snapshot(store), indent=2)

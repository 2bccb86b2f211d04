from dataclasses import asdict
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from gradecalc.config.settings import settings
from gradecalc.core.errors import (
    CourseNotFound,
    GradeCalcError,
    LastCourseError,
    NoScaleConfigured,
    NothingRemaining,
    SemesterNotFound,
)
from gradecalc.core.models import CalculationResult, Course, CriterionKind
from gradecalc.core.scale import NO_SCALE_LABEL
from gradecalc.services.snapshot import SnapshotError, dump_snapshot, load_snapshot
from gradecalc.state.app_state import app_state


logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="GradeCalc API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CoursePayload(BaseModel):
    name: Optional[str] = None
    units: Optional[float] = None


class CriterionPayload(BaseModel):
    name: str
    weight: float
    kind: CriterionKind = CriterionKind.NORMAL


class InclusionPayload(BaseModel):
    included: bool


class ScorePayload(BaseModel):
    score: float
    max_score: float = 100.0


class RemoveScoresPayload(BaseModel):
    indices: List[int]


class GradeScaleEntryPayload(BaseModel):
    grade: str
    minimum_percentage: float


class GradeScalePayload(BaseModel):
    entries: List[GradeScaleEntryPayload]


class SettingsPayload(BaseModel):
    has_final: Optional[bool] = None
    has_exemption: Optional[bool] = None
    passing_exam_percent: Optional[float] = None
    min_exams_passed: Optional[int] = None
    min_prefinal_percent: Optional[float] = None
    final_weight: Optional[float] = None
    rounding_enabled: Optional[bool] = None


class FinalExamPayload(BaseModel):
    score: Optional[float] = None
    max_score: float = 100.0
    include: Optional[bool] = None


class WhatIfPayload(BaseModel):
    scores: Dict[str, List[ScorePayload]] = Field(default_factory=dict)
    final_exam: Optional[FinalExamPayload] = None


class QuickEntryPayload(BaseModel):
    name: str
    grade: str
    units: Optional[float] = None


class SemesterPayload(BaseModel):
    name: str


class MemberPayload(BaseModel):
    member_id: str
    position: Optional[int] = None


def _http_error(exc: GradeCalcError) -> HTTPException:
    if isinstance(exc, (CourseNotFound, SemesterNotFound)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, LastCourseError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))


def _course_payload(course: Course) -> Dict[str, Any]:
    store = app_state.store
    return {
        "id": course.id,
        "name": course.name,
        "units": course.units,
        "criteria": [
            {
                "id": c.id,
                "name": c.name,
                "weight": c.weight,
                "kind": c.kind.value,
                "included": store.is_included(course.id, c),
                "scores": [asdict(e) for e in course.scores.get(c.id, [])],
            }
            for c in course.criteria
        ],
        "final_exam": asdict(course.final_exam),
        "grade_scale": [asdict(g) for g in course.grade_scale],
        "settings": asdict(course.settings),
        "result": _result_payload(course.result) if course.result else None,
        "grade": store.grade(course.id),
        "is_current": course.id == store.current_course_id,
    }


def _result_payload(result: CalculationResult) -> Dict[str, Any]:
    return asdict(result)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/courses")
def list_courses() -> List[Dict]:
    store = app_state.store
    store.ensure_default_course()
    return [_course_payload(course) for course in store.courses.values()]


@app.post("/courses")
def create_course(payload: CoursePayload) -> Dict:
    try:
        course = app_state.store.create_course(payload.name, payload.units)
        return _course_payload(course)
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.get("/courses/{course_id}")
def get_course(course_id: str) -> Dict:
    try:
        return _course_payload(app_state.store.get_course(course_id))
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.patch("/courses/{course_id}")
def update_course(course_id: str, payload: CoursePayload) -> Dict:
    store = app_state.store
    try:
        course = store.get_course(course_id)
        if payload.name is not None:
            store.rename_course(course.id, payload.name)
        if payload.units is not None:
            store.set_units(course.id, payload.units)
        return _course_payload(course)
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.delete("/courses/{course_id}")
def delete_course(course_id: str) -> Dict[str, str]:
    try:
        app_state.store.delete_course(course_id)
        return {"status": "deleted"}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.post("/courses/{course_id}/current")
def switch_course(course_id: str) -> Dict:
    try:
        return _course_payload(app_state.store.switch_course(course_id))
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.post("/courses/{course_id}/criteria")
def add_criterion(course_id: str, payload: CriterionPayload) -> Dict:
    try:
        criterion = app_state.store.add_criterion(course_id, payload.name, payload.weight, payload.kind)
        return {"id": criterion.id, "name": criterion.name, "weight": criterion.weight, "kind": criterion.kind.value}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.delete("/courses/{course_id}/criteria/{criterion_id}")
def remove_criterion(course_id: str, criterion_id: str) -> Dict[str, str]:
    try:
        app_state.store.remove_criterion(course_id, criterion_id)
        return {"status": "deleted"}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.delete("/courses/{course_id}/criteria")
def clear_criteria(course_id: str) -> Dict[str, str]:
    try:
        app_state.store.clear_criteria(course_id)
        return {"status": "cleared"}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.put("/courses/{course_id}/criteria/{criterion_id}/included")
def set_included(course_id: str, criterion_id: str, payload: InclusionPayload) -> Dict[str, bool]:
    try:
        app_state.store.set_included(course_id, criterion_id, payload.included)
        return {"included": payload.included}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.get("/courses/{course_id}/criteria/{criterion_id}/scores")
def list_scores(course_id: str, criterion_id: str) -> List[Dict]:
    try:
        return [asdict(e) for e in app_state.store.list_scores(course_id, criterion_id)]
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.post("/courses/{course_id}/criteria/{criterion_id}/scores")
def submit_score(course_id: str, criterion_id: str, payload: ScorePayload) -> Dict:
    try:
        entry = app_state.store.submit_score(course_id, criterion_id, payload.score, payload.max_score)
        return asdict(entry)
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.post("/courses/{course_id}/criteria/{criterion_id}/scores/remove")
def remove_scores(course_id: str, criterion_id: str, payload: RemoveScoresPayload) -> List[Dict]:
    try:
        remaining = app_state.store.remove_scores(course_id, criterion_id, payload.indices)
        return [asdict(e) for e in remaining]
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.put("/courses/{course_id}/grade-scale")
def set_grade_scale(course_id: str, payload: GradeScalePayload) -> List[Dict]:
    try:
        entries = app_state.store.set_grade_scale(
            course_id,
            [(item.grade, item.minimum_percentage) for item in payload.entries],
        )
        return [asdict(e) for e in entries]
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.post("/courses/{course_id}/grade-scale/default")
def use_default_scale(course_id: str) -> List[Dict]:
    try:
        return [asdict(e) for e in app_state.store.use_default_scale(course_id)]
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.patch("/courses/{course_id}/settings")
def update_settings(course_id: str, payload: SettingsPayload) -> Dict:
    try:
        changes = payload.model_dump(exclude_none=True)
        return asdict(app_state.store.update_settings(course_id, **changes))
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.put("/courses/{course_id}/final-exam")
def set_final_exam(course_id: str, payload: FinalExamPayload) -> Dict:
    try:
        final = app_state.store.set_final_exam(course_id, payload.score, payload.max_score, payload.include)
        return asdict(final)
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.post("/courses/{course_id}/calculate")
def recalculate(course_id: str) -> Dict:
    store = app_state.store
    try:
        result = store.recalculate(course_id)
        return {"result": _result_payload(result), "grade": store.grade(course_id)}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.get("/courses/{course_id}/projection")
def projection(course_id: str, target: Optional[float] = None) -> Dict:
    store = app_state.store
    try:
        if target is None:
            rows = store.projection_table(course_id)
            return {"rows": [asdict(row) for row in rows]}
        result = store.project(course_id, target)
        return {
            "target_percentage": result.target_percentage,
            "required_percentage": result.required_percentage if result.achievable else None,
            "status": result.status.value,
        }
    except NoScaleConfigured:
        return {"rows": [], "message": NO_SCALE_LABEL}
    except NothingRemaining as exc:
        return {"rows": [], "message": str(exc)}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.post("/courses/{course_id}/what-if")
def what_if(course_id: str, payload: WhatIfPayload) -> Dict:
    try:
        scratch = app_state.store.what_if(course_id)
        for criterion_id, entries in payload.scores.items():
            scratch.clear(criterion_id)
            for entry in entries:
                scratch.add(criterion_id, entry.score, entry.max_score)
        if payload.final_exam is not None:
            scratch.set_final_exam(payload.final_exam.score, payload.final_exam.max_score)
        preview = scratch.preview()
        return {"result": _result_payload(preview.result), "grade": preview.grade}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.get("/courses/{course_id}/analysis")
def analysis(course_id: str) -> Dict:
    try:
        report = app_state.store.analysis(course_id)
        payload = asdict(report)
        payload["status"] = report.status.value
        return payload
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.post("/quick-entries")
def add_quick_entry(payload: QuickEntryPayload) -> Dict:
    try:
        return asdict(app_state.store.add_quick_entry(payload.name, payload.grade, payload.units))
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.delete("/quick-entries/{entry_id}")
def remove_quick_entry(entry_id: str) -> Dict[str, str]:
    try:
        app_state.store.remove_quick_entry(entry_id)
        return {"status": "deleted"}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.get("/semesters")
def list_semesters() -> List[Dict]:
    return [asdict(s) for s in app_state.store.semesters.values()]


@app.post("/semesters")
def create_semester(payload: SemesterPayload) -> Dict:
    try:
        return asdict(app_state.store.create_semester(payload.name))
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.patch("/semesters/{semester_id}")
def rename_semester(semester_id: str, payload: SemesterPayload) -> Dict:
    try:
        return asdict(app_state.store.rename_semester(semester_id, payload.name))
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.delete("/semesters/{semester_id}")
def delete_semester(semester_id: str) -> Dict[str, str]:
    try:
        app_state.store.delete_semester(semester_id)
        return {"status": "deleted"}
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.put("/semesters/{semester_id}/members")
def assign_member(semester_id: str, payload: MemberPayload) -> Dict:
    try:
        return asdict(app_state.store.assign(payload.member_id, semester_id, payload.position))
    except GradeCalcError as exc:
        raise _http_error(exc) from exc


@app.delete("/semesters/members/{member_id}")
def unassign_member(member_id: str) -> Dict[str, str]:
    app_state.store.unassign(member_id)
    return {"status": "unassigned"}


@app.get("/gwa")
def gwa_summary() -> Dict:
    return asdict(app_state.store.gwa_summary(round_to=2))


@app.get("/snapshot")
def export_snapshot() -> Dict:
    return dump_snapshot(app_state.store)


@app.put("/snapshot")
def import_snapshot(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        store = load_snapshot(payload)
    except SnapshotError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    app_state.reset(store)
    logger.info("Imported snapshot with %d course(s)", len(store.courses))
    return {"status": "imported", "courses": len(store.courses)}

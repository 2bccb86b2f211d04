from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from gradecalc.core.calculator import course_grade
from gradecalc.core.models import Course, QuickEntry, Semester
from gradecalc.core.scale import grade_value


@dataclass(frozen=True)
class FullCourse:
    course: Course


GwaEntry = Union[FullCourse, QuickEntry]


@dataclass(frozen=True)
class GwaFigure:
    gwa: Optional[float]
    units: float


@dataclass(frozen=True)
class SemesterGwa:
    semester_id: str
    name: str
    gwa: Optional[float]
    units: float


@dataclass(frozen=True)
class GwaSummary:
    semesters: List[SemesterGwa]
    unassigned: GwaFigure
    overall: GwaFigure


def entry_id(entry: GwaEntry) -> str:
    if isinstance(entry, FullCourse):
        return entry.course.id
    if isinstance(entry, QuickEntry):
        return entry.id
    raise TypeError(f"Unsupported GWA entry: {entry!r}")


def contribution(entry: GwaEntry) -> Optional[Tuple[float, float]]:
    """(grade value, units) when the entry counts toward a GWA, else None."""
    if isinstance(entry, FullCourse):
        label = course_grade(entry.course)
        units = entry.course.units
    elif isinstance(entry, QuickEntry):
        label = entry.grade
        units = entry.units
    else:
        raise TypeError(f"Unsupported GWA entry: {entry!r}")

    if label is None or not units or units <= 0:
        return None
    value = grade_value(label)
    if value is None:
        return None
    return value, float(units)


def weighted_figure(entries: Iterable[GwaEntry], *, round_to: Optional[int] = None) -> GwaFigure:
    weighted_sum = 0.0
    total_units = 0.0
    for entry in entries:
        counted = contribution(entry)
        if counted is None:
            continue
        value, units = counted
        weighted_sum += value * units
        total_units += units

    if total_units == 0:
        return GwaFigure(gwa=None, units=0.0)

    gwa = weighted_sum / total_units
    if round_to is not None:
        gwa = round(gwa, round_to)
    return GwaFigure(gwa=gwa, units=total_units)


def aggregate(entries: Iterable[GwaEntry], *, round_to: Optional[int] = None) -> Optional[float]:
    """GWA = Σ(grade value * units) / Σ units; None when no units count."""
    return weighted_figure(entries, round_to=round_to).gwa


def summarize(
    semesters: Iterable[Semester],
    entries: Iterable[GwaEntry],
    *,
    round_to: Optional[int] = None,
) -> GwaSummary:
    by_id: Dict[str, GwaEntry] = {entry_id(entry): entry for entry in entries}
    assigned = set()
    semester_rows: List[SemesterGwa] = []

    for semester in semesters:
        members = [by_id[member] for member in semester.member_ids if member in by_id]
        assigned.update(entry_id(member) for member in members)
        figure = weighted_figure(members, round_to=round_to)
        semester_rows.append(
            SemesterGwa(
                semester_id=semester.id,
                name=semester.name,
                gwa=figure.gwa,
                units=figure.units,
            )
        )

    unassigned = [entry for key, entry in by_id.items() if key not in assigned]
    return GwaSummary(
        semesters=semester_rows,
        unassigned=weighted_figure(unassigned, round_to=round_to),
        overall=weighted_figure(by_id.values(), round_to=round_to),
    )

from typing import Iterable, Optional

from gradecalc.core.errors import ValidationError
from gradecalc.core.models import ScoreEntry


def make_entry(raw_score: float, max_score: float) -> ScoreEntry:
    try:
        raw = float(raw_score)
        maximum = float(max_score)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Score and max score must be numbers") from exc
    return ScoreEntry(raw_score=raw, max_score=maximum)


def aggregate(entries: Iterable[ScoreEntry]) -> Optional[float]:
    """
    Percentage for one criterion = Σ raw_score / Σ max_score * 100.
    Returns None when there are no entries.
    """
    obtained = 0.0
    maximum = 0.0
    count = 0
    for entry in entries:
        obtained += entry.raw_score
        maximum += entry.max_score
        count += 1

    if count == 0:
        return None
    return (obtained / maximum) * 100

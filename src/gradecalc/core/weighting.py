from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class WeightedInput:
    percentage: Optional[float]
    weight: float
    included: bool = True

    @property
    def counts(self) -> bool:
        return self.included and self.percentage is not None


@dataclass(frozen=True)
class WeightedTotals:
    weighted_sum: float = 0.0
    weight_used: float = 0.0

    @property
    def percentage(self) -> float:
        return percentage_of(self)

    def plus(self, other: "WeightedTotals") -> "WeightedTotals":
        return WeightedTotals(
            weighted_sum=self.weighted_sum + other.weighted_sum,
            weight_used=self.weight_used + other.weight_used,
        )


def weighted_contribution(percentage: float, weight: float) -> float:
    return percentage * (weight / 100)


def compute_weighted(inputs: Iterable[WeightedInput]) -> WeightedTotals:
    """
    Excluded or absent criteria contribute to neither the weighted sum nor the
    weight used, so a course graded on a subset still yields a percentage.
    """
    weighted_sum = 0.0
    weight_used = 0.0
    for item in inputs:
        if not item.counts:
            continue
        weighted_sum += weighted_contribution(item.percentage, item.weight)
        weight_used += item.weight
    return WeightedTotals(weighted_sum=weighted_sum, weight_used=weight_used)


def percentage_of(totals: WeightedTotals) -> float:
    if totals.weight_used == 0:
        return 0.0
    return (totals.weighted_sum / totals.weight_used) * 100

"""
Frozen point-in-time states of each metric kind.

A metric's snapshot() returns one of these. Every statistic the builder
emits for a histogram or timer is derived from the same state object, so a
concurrent update can never produce a torn read.
"""
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple, Union

Number = Union[int, float]


@dataclass(frozen=True)
class CounterState:
    """State of a monotonic counter."""
    count: int


@dataclass(frozen=True)
class GaugeState:
    """State of a gauge holding the last value set."""
    value: Number


@dataclass(frozen=True)
class GaugeFloat64State:
    """State of a float gauge holding the last value set."""
    value: float


@dataclass(frozen=True)
class HistogramState:
    """
    State of a histogram.

    count is the total number of updates seen by the histogram; values is
    the retained sample the statistics are computed from.
    """
    count: int
    values: Tuple[Number, ...] = field(default_factory=tuple)

    def min(self) -> Number:
        if not self.values:
            return 0
        return min(self.values)

    def max(self) -> Number:
        if not self.values:
            return 0
        return max(self.values)

    def sum(self) -> Number:
        return sum(self.values)

    def mean(self) -> float:
        if not self.values:
            return 0.0
        return self.sum() / len(self.values)

    def variance(self) -> float:
        """Population variance of the sample."""
        if not self.values:
            return 0.0
        mean = self.mean()
        total = 0.0
        for value in self.values:
            d = value - mean
            total += d * d
        return total / len(self.values)

    def stddev(self) -> float:
        return math.sqrt(self.variance())

    def percentile(self, p: float) -> float:
        return self.percentiles([p])[0]

    def percentiles(self, ps: Iterable[float]) -> List[float]:
        """
        Compute several percentiles over one sorted copy of the sample.

        Args:
            ps (iterable): Fractions in [0, 1]

        Returns:
            list: One value per fraction, in the same order
        """
        ps = list(ps)
        if not self.values:
            return [0.0] * len(ps)

        ordered = sorted(self.values)
        size = len(ordered)
        results = []
        for p in ps:
            pos = p * (size + 1)
            if pos < 1.0:
                results.append(float(ordered[0]))
            elif pos >= size:
                results.append(float(ordered[-1]))
            else:
                lower = ordered[int(pos) - 1]
                upper = ordered[int(pos)]
                results.append(lower + (pos - math.floor(pos)) * (upper - lower))
        return results


@dataclass(frozen=True)
class MeterState:
    """State of a meter. Rates are events per second."""
    count: int
    rate1: float
    rate5: float
    rate15: float
    rate_mean: float


@dataclass(frozen=True)
class TimerState:
    """State of a timer. Histogram values are durations in seconds."""
    histogram: HistogramState
    meter: MeterState

    @property
    def count(self) -> int:
        return self.histogram.count


MetricState = Union[
    CounterState,
    GaugeState,
    GaugeFloat64State,
    HistogramState,
    MeterState,
    TimerState,
]

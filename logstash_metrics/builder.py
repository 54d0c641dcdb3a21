"""
Flattening of metric states into snapshot fields.

Naming scheme, for a metric called <name>:
- Counter: <name>.count
- Gauge / GaugeFloat64: <name>
- Histogram: <name>.count .max .min .mean .stddev .var and one .p<NN> per percentile
- Meter: <name>.count .rate1 .rate5 .rate15 .mean
- Timer: the histogram keys, durations in milliseconds
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import InvalidKey
from .registry import MetricSource
from .snapshot import Snapshot
from .states import (
    CounterState,
    GaugeFloat64State,
    GaugeState,
    HistogramState,
    MeterState,
    TimerState,
)

logger = logging.getLogger(__name__)

DEFAULT_PERCENTILES = (0.50, 0.75, 0.95, 0.99, 0.999)

Field = Tuple[str, Any]


def percentile_suffix(fraction: float) -> str:
    """
    Build the key suffix of a percentile, e.g. 0.999 -> "p99_9".

    Args:
        fraction (float): Percentile fraction in [0, 1]

    Returns:
        str: The suffix without a leading dot
    """
    text = repr(fraction * 100)
    if text.endswith('.0'):
        text = text[:-2]
    return 'p' + text.replace('.', '_')


class PercentileSpec:
    """Ordered percentile fractions and their key suffixes."""

    def __init__(self, fractions: Optional[Sequence[float]] = None):
        """
        Initialize the percentile set.

        Args:
            fractions (sequence, optional): Fractions in [0, 1]. Defaults to
                DEFAULT_PERCENTILES.

        Raises:
            ValueError: If a fraction lies outside [0, 1]
        """
        fractions = tuple(DEFAULT_PERCENTILES if fractions is None else fractions)
        for fraction in fractions:
            if not 0.0 <= fraction <= 1.0:
                raise ValueError(f"Percentile must be between 0 and 1: {fraction}")

        self.fractions = fractions
        self.suffixes = tuple(percentile_suffix(fraction) for fraction in fractions)

    def __iter__(self):
        return iter(zip(self.fractions, self.suffixes))

    def __len__(self) -> int:
        return len(self.fractions)

    def __repr__(self) -> str:
        return f"PercentileSpec({self.fractions!r})"


def _seconds_to_ms(seconds: float) -> float:
    return seconds * 1000


def _counter_fields(name: str, state: CounterState, percentiles: PercentileSpec) -> List[Field]:
    return [(f"{name}.count", state.count)]


def _gauge_fields(name: str, state: GaugeState, percentiles: PercentileSpec) -> List[Field]:
    return [(name, float(state.value))]


def _gauge_float64_fields(name: str, state: GaugeFloat64State, percentiles: PercentileSpec) -> List[Field]:
    return [(name, state.value)]


def _histogram_fields(name: str, state: HistogramState, percentiles: PercentileSpec) -> List[Field]:
    fields = [
        (f"{name}.count", float(state.count)),
        (f"{name}.max", float(state.max())),
        (f"{name}.min", float(state.min())),
        (f"{name}.mean", state.mean()),
        (f"{name}.stddev", state.stddev()),
        (f"{name}.var", state.variance()),
    ]
    values = state.percentiles(percentiles.fractions)
    for suffix, value in zip(percentiles.suffixes, values):
        fields.append((f"{name}.{suffix}", value))
    return fields


def _meter_fields(name: str, state: MeterState, percentiles: PercentileSpec) -> List[Field]:
    return [
        (f"{name}.count", float(state.count)),
        (f"{name}.rate1", state.rate1),
        (f"{name}.rate5", state.rate5),
        (f"{name}.rate15", state.rate15),
        (f"{name}.mean", state.rate_mean),
    ]


def _timer_fields(name: str, state: TimerState, percentiles: PercentileSpec) -> List[Field]:
    histogram = state.histogram
    fields = [
        (f"{name}.count", float(histogram.count)),
        (f"{name}.max", _seconds_to_ms(histogram.max())),
        (f"{name}.min", _seconds_to_ms(histogram.min())),
        (f"{name}.mean", _seconds_to_ms(histogram.mean())),
        (f"{name}.stddev", _seconds_to_ms(histogram.stddev())),
        # variance of the millisecond values
        (f"{name}.var", histogram.variance() * 1000 * 1000),
    ]
    values = histogram.percentiles(percentiles.fractions)
    for suffix, value in zip(percentiles.suffixes, values):
        fields.append((f"{name}.{suffix}", _seconds_to_ms(value)))
    return fields


# One derivation per supported state type. Anything else is skipped.
DERIVATIONS: Dict[type, Callable[[str, Any, PercentileSpec], List[Field]]] = {
    CounterState: _counter_fields,
    GaugeState: _gauge_fields,
    GaugeFloat64State: _gauge_float64_fields,
    HistogramState: _histogram_fields,
    MeterState: _meter_fields,
    TimerState: _timer_fields,
}


def derive(name: str, state: Any, percentiles: Optional[PercentileSpec] = None) -> List[Field]:
    """
    Flatten one metric state into (key, value) pairs.

    Args:
        name (str): Name of the metric
        state: Frozen metric state
        percentiles (PercentileSpec, optional): Percentiles for histograms
            and timers. Defaults to DEFAULT_PERCENTILES.

    Returns:
        list: The fields; empty for unsupported metric kinds
    """
    derivation = DERIVATIONS.get(type(state))
    if derivation is None:
        logger.debug("Skipping metric %s of unsupported kind %s", name, type(state).__name__)
        return []
    if percentiles is None:
        percentiles = PercentileSpec()
    return derivation(name, state, percentiles)


def build_snapshot(
    source: MetricSource,
    percentiles: Optional[PercentileSpec] = None,
    defaults: Optional[Mapping[str, Any]] = None
) -> Snapshot:
    """
    Build a fresh snapshot from every metric of a source.

    Args:
        source (MetricSource): Where metrics are read from
        percentiles (PercentileSpec, optional): Percentiles for histograms and timers
        defaults (dict, optional): Fields merged in before the metric fields

    Returns:
        Snapshot: The populated snapshot
    """
    if percentiles is None:
        percentiles = PercentileSpec()
    snapshot = Snapshot(defaults)

    def add_metric(name: str, state: Any) -> None:
        for key, value in derive(name, state, percentiles):
            try:
                snapshot.set(key, value)
            except InvalidKey:
                logger.warning("Skipping field with an empty name from metric %r", name)

    source.each(add_metric)
    return snapshot


"""
In-memory metric registry and measurement objects.

The reporter only depends on MetricSource.each(); Registry is the default
implementation used by applications and tests. All metrics lock their own
state so they can be updated from any thread while a flush is enumerating.
"""
import logging
import math
import random
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, Union

from . import config
from .errors import DuplicateMetric
from .states import (
    CounterState,
    GaugeFloat64State,
    GaugeState,
    HistogramState,
    MeterState,
    MetricState,
    TimerState,
)

logger = logging.getLogger(__name__)

Number = Union[int, float]

# Seconds between EWMA ticks of a meter
TICK_INTERVAL = 5.0


class MetricSource(ABC):
    """
    Anything the reporter can read metrics from.
    """

    @abstractmethod
    def each(self, callback: Callable[[str, Any], None]) -> None:
        """
        Invoke callback once per registered metric.

        Args:
            callback (callable): Called with the metric name and its current
                frozen state. No ordering is guaranteed.
        """
        pass


class Counter:
    """A monotonic integer counter."""

    def __init__(self):
        self._lock = threading.Lock()
        self._count = 0

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    def clear(self) -> None:
        with self._lock:
            self._count = 0

    def count(self) -> int:
        with self._lock:
            return self._count

    def snapshot(self) -> CounterState:
        return CounterState(self.count())


class Gauge:
    """Holds the last integer value it was updated with."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value: Number = 0

    def update(self, value: Number) -> None:
        with self._lock:
            self._value = value

    def value(self) -> Number:
        with self._lock:
            return self._value

    def snapshot(self) -> GaugeState:
        return GaugeState(self.value())


class GaugeFloat64:
    """Holds the last float value it was updated with."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value = 0.0

    def update(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def value(self) -> float:
        with self._lock:
            return self._value

    def snapshot(self) -> GaugeFloat64State:
        return GaugeFloat64State(self.value())


class FunctionalGauge:
    """A gauge whose value is computed by a function at snapshot time."""

    def __init__(self, fn: Callable[[], Number]):
        self._fn = fn

    def value(self) -> Number:
        return self._fn()

    def snapshot(self) -> GaugeState:
        return GaugeState(self.value())


class FunctionalGaugeFloat64:
    """A float gauge whose value is computed by a function at snapshot time."""

    def __init__(self, fn: Callable[[], float]):
        self._fn = fn

    def value(self) -> float:
        return float(self._fn())

    def snapshot(self) -> GaugeFloat64State:
        return GaugeFloat64State(self.value())


class UniformSample:
    """
    Fixed-size uniform reservoir sample (Vitter's algorithm R).
    """

    def __init__(self, reservoir_size: int, rng: Optional[random.Random] = None):
        """
        Initialize the sample.

        Args:
            reservoir_size (int): Maximum number of values retained
            rng (random.Random, optional): Random source, mainly for tests
        """
        if reservoir_size <= 0:
            raise ValueError("Reservoir size must be positive")
        self.reservoir_size = reservoir_size
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._count = 0
        self._values: List[Number] = []

    def update(self, value: Number) -> None:
        with self._lock:
            self._count += 1
            if len(self._values) < self.reservoir_size:
                self._values.append(value)
            else:
                r = self._rng.randrange(self._count)
                if r < len(self._values):
                    self._values[r] = value

    def clear(self) -> None:
        with self._lock:
            self._count = 0
            self._values = []

    def count(self) -> int:
        with self._lock:
            return self._count

    def snapshot(self) -> Tuple[int, Tuple[Number, ...]]:
        """
        Get the update count and retained values in one consistent read.

        Returns:
            tuple: (count, values)
        """
        with self._lock:
            return self._count, tuple(self._values)


class Histogram:
    """Distribution of values backed by a sample."""

    def __init__(self, sample: Optional[UniformSample] = None):
        self.sample = sample or UniformSample(config.HISTOGRAM_RESERVOIR_SIZE)

    def update(self, value: Number) -> None:
        self.sample.update(value)

    def clear(self) -> None:
        self.sample.clear()

    def count(self) -> int:
        return self.sample.count()

    def snapshot(self) -> HistogramState:
        count, values = self.sample.snapshot()
        return HistogramState(count=count, values=values)


class EWMA:
    """Exponentially weighted moving average ticked every TICK_INTERVAL seconds."""

    def __init__(self, minutes: int):
        self.alpha = 1 - math.exp(-TICK_INTERVAL / 60.0 / minutes)
        self.rate = 0.0
        self._uncounted = 0
        self._initialized = False

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        instant_rate = self._uncounted / TICK_INTERVAL
        self._uncounted = 0
        if self._initialized:
            self.rate += self.alpha * (instant_rate - self.rate)
        else:
            self.rate = instant_rate
            self._initialized = True


class Meter:
    """
    Counts events and tracks 1, 5 and 15 minute rates plus the mean rate.

    Ticks are applied lazily whenever the meter is marked or read.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._start = clock()
        self._last_tick = self._start
        self._m1 = EWMA(1)
        self._m5 = EWMA(5)
        self._m15 = EWMA(15)

    def _tick_if_necessary(self, now: float) -> None:
        elapsed = now - self._last_tick
        if elapsed < TICK_INTERVAL:
            return
        ticks = int(elapsed // TICK_INTERVAL)
        self._last_tick += ticks * TICK_INTERVAL
        for _ in range(ticks):
            self._m1.tick()
            self._m5.tick()
            self._m15.tick()

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._tick_if_necessary(self._clock())
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def count(self) -> int:
        with self._lock:
            return self._count

    def snapshot(self) -> MeterState:
        with self._lock:
            now = self._clock()
            self._tick_if_necessary(now)
            elapsed = now - self._start
            rate_mean = self._count / elapsed if elapsed > 0 else 0.0
            return MeterState(
                count=self._count,
                rate1=self._m1.rate,
                rate5=self._m5.rate,
                rate15=self._m15.rate,
                rate_mean=rate_mean
            )


class Timer:
    """
    Histogram of durations (in seconds) combined with a meter of events.
    """

    def __init__(self, sample: Optional[UniformSample] = None, meter: Optional[Meter] = None):
        self.histogram = Histogram(sample)
        self.meter = meter or Meter()
        self._lock = threading.Lock()

    def update(self, seconds: float) -> None:
        """
        Record one duration.

        Args:
            seconds (float): The duration in seconds
        """
        with self._lock:
            self.histogram.update(seconds)
            self.meter.mark(1)

    def update_since(self, start: float) -> None:
        """
        Record the time elapsed since start, a time.perf_counter() reading.
        """
        self.update(time.perf_counter() - start)

    @contextmanager
    def time(self) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.update_since(start)

    def time_function(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        with self.time():
            return fn(*args, **kwargs)

    def count(self) -> int:
        return self.histogram.count()

    def snapshot(self) -> TimerState:
        with self._lock:
            return TimerState(histogram=self.histogram.snapshot(), meter=self.meter.snapshot())


class Registry(MetricSource):
    """
    Thread-safe registry of named metrics.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics: Dict[str, Any] = {}

    def each(self, callback: Callable[[str, Any], None]) -> None:
        """
        Invoke callback with the name and frozen state of every metric.

        Objects without a snapshot() method are passed through unchanged so
        the caller can decide what to do with them.
        """
        with self._lock:
            items = list(self._metrics.items())

        for name, metric in items:
            snapshot = getattr(metric, 'snapshot', None)
            state: Union[MetricState, Any] = snapshot() if callable(snapshot) else metric
            callback(name, state)

    def register(self, name: str, metric: Any) -> None:
        """
        Register a metric under a name.

        Args:
            name (str): Name of the metric
            metric: The metric object

        Raises:
            DuplicateMetric: If the name is already taken
        """
        with self._lock:
            if name in self._metrics:
                raise DuplicateMetric(f"Duplicate metric: {name}")
            self._metrics[name] = metric
        logger.debug("Registered metric: %s", name)

    def get(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._metrics.get(name)

    def get_or_register(self, name: str, factory: Callable[[], Any]) -> Any:
        """
        Get the metric registered under name, creating it with factory if missing.
        """
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = factory()
                self._metrics[name] = metric
                logger.debug("Registered metric: %s", name)
            return metric

    def _typed(self, name: str, cls: Type, factory: Callable[[], Any]) -> Any:
        metric = self.get_or_register(name, factory)
        if not isinstance(metric, cls):
            raise TypeError(f"Metric {name} is a {type(metric).__name__}, not a {cls.__name__}")
        return metric

    def counter(self, name: str) -> Counter:
        return self._typed(name, Counter, Counter)

    def gauge(self, name: str) -> Gauge:
        return self._typed(name, Gauge, Gauge)

    def gauge_float64(self, name: str) -> GaugeFloat64:
        return self._typed(name, GaugeFloat64, GaugeFloat64)

    def histogram(self, name: str, sample: Optional[UniformSample] = None) -> Histogram:
        return self._typed(name, Histogram, lambda: Histogram(sample))

    def meter(self, name: str) -> Meter:
        return self._typed(name, Meter, Meter)

    def timer(self, name: str) -> Timer:
        return self._typed(name, Timer, Timer)

    def unregister(self, name: str) -> bool:
        """
        Remove a metric.

        Returns:
            bool: True if a metric was removed
        """
        with self._lock:
            return self._metrics.pop(name, None) is not None

    def unregister_all(self) -> None:
        with self._lock:
            self._metrics.clear()

    def names(self) -> List[str]:
        with self._lock:
            return list(self._metrics.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)


# Singleton instance for easy import
default_registry = Registry()

"""Tests for the in-memory registry and measurement objects."""

import math
import random
import threading

import pytest

from logstash_metrics import (
    Counter,
    DuplicateMetric,
    FunctionalGaugeFloat64,
    Meter,
    Registry,
    Timer,
    UniformSample,
)
from logstash_metrics.registry import TICK_INTERVAL
from logstash_metrics.states import (
    CounterState,
    GaugeState,
    HistogramState,
    MeterState,
    TimerState,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def collect(registry):
    states = {}
    registry.each(lambda name, state: states.__setitem__(name, state))
    return states


class TestRegistry:
    """Test cases for Registry."""

    def test_get_or_register_returns_same_metric(self):
        registry = Registry()
        assert registry.counter("c") is registry.counter("c")
        assert len(registry) == 1

    def test_kind_mismatch(self):
        registry = Registry()
        registry.counter("m")

        with pytest.raises(TypeError):
            registry.gauge("m")

    def test_register_duplicate(self):
        registry = Registry()
        registry.register("c", Counter())

        with pytest.raises(DuplicateMetric):
            registry.register("c", Counter())

    def test_unregister(self):
        registry = Registry()
        registry.counter("a")
        registry.counter("b")

        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert registry.names() == ["b"]

        registry.unregister_all()
        assert len(registry) == 0

    def test_each_passes_frozen_states(self):
        registry = Registry()
        registry.counter("c").inc(8)
        registry.gauge("g").update(3)
        registry.histogram("h", UniformSample(2)).update(9)
        registry.meter("m").mark(2)
        registry.timer("t").update(0.25)

        states = collect(registry)

        assert states["c"] == CounterState(8)
        assert states["g"] == GaugeState(3)
        assert states["h"] == HistogramState(count=1, values=(9,))
        assert isinstance(states["m"], MeterState)
        assert states["m"].count == 2
        assert isinstance(states["t"], TimerState)
        assert states["t"].count == 1

    def test_each_passes_unknown_objects_through(self):
        registry = Registry()
        thing = object()
        registry.register("thing", thing)

        assert collect(registry) == {"thing": thing}

    def test_each_does_not_reset_metrics(self):
        registry = Registry()
        registry.counter("c").inc(6)
        collect(registry)
        registry.counter("c").inc(4)

        assert collect(registry)["c"] == CounterState(10)

    def test_functional_gauge_is_evaluated_on_each(self):
        registry = Registry()
        values = iter([1.5, 2.5])
        registry.register("f", FunctionalGaugeFloat64(lambda: next(values)))

        assert collect(registry)["f"].value == 1.5
        assert collect(registry)["f"].value == 2.5


class TestCounter:
    """Test cases for Counter."""

    def test_inc_dec_clear(self):
        counter = Counter()
        counter.inc(6)
        counter.inc(2)
        counter.dec()
        assert counter.count() == 7

        counter.clear()
        assert counter.count() == 0

    def test_concurrent_increments(self):
        counter = Counter()

        def work():
            for _ in range(1000):
                counter.inc()

        threads = [threading.Thread(target=work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert counter.count() == 4000


class TestHistogram:
    """Test cases for UniformSample and HistogramState statistics."""

    def test_reservoir_is_bounded(self):
        sample = UniformSample(2, rng=random.Random(1))
        for value in range(100):
            sample.update(value)

        count, values = sample.snapshot()
        assert count == 100
        assert len(values) == 2

    def test_invalid_reservoir_size(self):
        with pytest.raises(ValueError):
            UniformSample(0)

    def test_statistics_two_values(self):
        state = HistogramState(count=2, values=(9, 10))

        assert state.min() == 9
        assert state.max() == 10
        assert state.mean() == 9.5
        assert state.stddev() == 0.5
        assert state.variance() == 0.25
        assert state.percentiles([0.5, 0.75, 0.95, 0.99, 0.999]) == [9.5, 10, 10, 10, 10]

    def test_statistics_three_values(self):
        state = HistogramState(count=3, values=(9, 10, 12))

        assert state.mean() == pytest.approx(10.333333333333334)
        assert state.stddev() == pytest.approx(1.247219128924647)
        assert state.variance() == pytest.approx(1.5555555555555556)
        assert state.percentile(0.5) == 10
        assert state.percentile(0.75) == 12

    def test_percentile_below_first_position(self):
        state = HistogramState(count=3, values=(5, 1, 3))
        assert state.percentile(0.1) == 1
        assert state.percentile(0.0) == 1

    def test_empty_statistics(self):
        state = HistogramState(count=0)

        assert state.min() == 0
        assert state.max() == 0
        assert state.mean() == 0
        assert state.stddev() == 0
        assert state.percentile(0.5) == 0

    def test_clear(self, registry):
        histogram = registry.histogram("h")
        histogram.update(1)
        histogram.clear()
        assert histogram.snapshot() == HistogramState(count=0, values=())


class TestMeter:
    """Test cases for Meter with a fake clock."""

    def test_rates_after_one_tick(self):
        clock = FakeClock()
        meter = Meter(clock=clock)

        meter.mark(10)
        clock.advance(TICK_INTERVAL)
        state = meter.snapshot()

        assert state.count == 10
        assert state.rate1 == pytest.approx(2.0)
        assert state.rate5 == pytest.approx(2.0)
        assert state.rate15 == pytest.approx(2.0)
        assert state.rate_mean == pytest.approx(2.0)

    def test_rates_decay_without_events(self):
        clock = FakeClock()
        meter = Meter(clock=clock)

        meter.mark(10)
        clock.advance(TICK_INTERVAL * 2)
        state = meter.snapshot()

        alpha1 = 1 - math.exp(-TICK_INTERVAL / 60.0)
        assert state.rate1 == pytest.approx(2.0 - alpha1 * 2.0)
        assert state.rate1 < state.rate5 < state.rate15
        assert state.rate_mean == pytest.approx(1.0)

    def test_no_rates_before_first_tick(self):
        clock = FakeClock()
        meter = Meter(clock=clock)

        meter.mark(3)
        state = meter.snapshot()

        assert state.count == 3
        assert state.rate1 == 0.0
        assert state.rate_mean == 0.0


class TestTimer:
    """Test cases for Timer."""

    def test_update(self):
        timer = Timer(sample=UniformSample(10))
        timer.update(0.25)
        timer.update(0.75)

        state = timer.snapshot()

        assert state.count == 2
        assert state.meter.count == 2
        assert state.histogram.mean() == 0.5

    def test_time_context_manager(self):
        timer = Timer()

        with timer.time():
            pass

        state = timer.snapshot()
        assert state.count == 1
        assert state.histogram.min() >= 0

    def test_time_function(self):
        timer = Timer()

        assert timer.time_function(lambda a, b: a + b, 2, b=3) == 5
        assert timer.count() == 1

    def test_time_records_on_exception(self):
        timer = Timer()

        with pytest.raises(RuntimeError):
            with timer.time():
                raise RuntimeError("boom")

        assert timer.count() == 1

"""
Metrics reporter that flushes registry snapshots to Logstash over UDP.
"""
from .builder import DEFAULT_PERCENTILES, PercentileSpec, build_snapshot, derive
from .errors import (
    ConnectError,
    DuplicateMetric,
    InvalidKey,
    ReporterError,
    ResolutionError,
    SerializationError,
    TransportWriteError,
)
from .registry import (
    Counter,
    FunctionalGauge,
    FunctionalGaugeFloat64,
    Gauge,
    GaugeFloat64,
    Histogram,
    Meter,
    MetricSource,
    Registry,
    Timer,
    UniformSample,
    default_registry,
)
from .reporter import Reporter
from .snapshot import MetricEvent, Snapshot

__version__ = '0.1.1'

__all__ = [
    'DEFAULT_PERCENTILES',
    'PercentileSpec',
    'build_snapshot',
    'derive',
    'ReporterError',
    'ResolutionError',
    'ConnectError',
    'InvalidKey',
    'SerializationError',
    'TransportWriteError',
    'DuplicateMetric',
    'MetricSource',
    'Registry',
    'default_registry',
    'Counter',
    'Gauge',
    'GaugeFloat64',
    'FunctionalGauge',
    'FunctionalGaugeFloat64',
    'Histogram',
    'UniformSample',
    'Meter',
    'Timer',
    'Reporter',
    'Snapshot',
    'MetricEvent',
]

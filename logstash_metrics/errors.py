"""
Exceptions raised by the metrics reporter.
"""


class ReporterError(Exception):
    """Base class for all reporter errors."""


class ResolutionError(ReporterError):
    """The Logstash address could not be resolved."""


class ConnectError(ReporterError):
    """The UDP socket to Logstash could not be established."""


class InvalidKey(ReporterError, ValueError):
    """A snapshot field name was empty."""


class SerializationError(ReporterError):
    """A snapshot could not be encoded as JSON."""


class TransportWriteError(ReporterError):
    """Writing a snapshot datagram to the socket failed."""


class DuplicateMetric(ReporterError, ValueError):
    """A metric with the same name is already registered."""

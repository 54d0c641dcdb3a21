"""
Reporter that periodically flushes registry snapshots to Logstash over UDP.
"""
import logging
import socket
import threading
import time
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import pytz

from .builder import PercentileSpec, build_snapshot
from .errors import ConnectError, ResolutionError, SerializationError, TransportWriteError
from .registry import MetricSource
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

DefaultValues = Union[None, str, Mapping[str, Any]]


def resolve_address(address: str) -> Tuple[str, int]:
    """
    Resolve a host:port string to an IPv4 UDP socket address.

    Args:
        address (str): Address such as "logstash:5959". An empty host means localhost.

    Returns:
        tuple: (ip, port)

    Raises:
        ResolutionError: If the address is malformed or cannot be resolved
    """
    host, sep, port = address.rpartition(':')
    if not sep:
        raise ResolutionError(f"Missing port in address: {address}")

    host = host.strip('[]') or 'localhost'
    try:
        port_number = int(port)
    except ValueError:
        raise ResolutionError(f"Invalid port in address: {address}")
    if not 0 <= port_number <= 65535:
        raise ResolutionError(f"Port out of range in address: {address}")

    try:
        infos = socket.getaddrinfo(host, port_number, socket.AF_INET, socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise ResolutionError(f"Could not resolve {address}: {str(e)}") from e
    if not infos:
        raise ResolutionError(f"Could not resolve {address}")
    return infos[0][4]


def connect(sockaddr: Tuple[str, int]) -> socket.socket:
    """
    Open a UDP socket connected to sockaddr.

    Raises:
        ConnectError: If the socket cannot be created or connected
    """
    try:
        conn = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as e:
        raise ConnectError(f"Could not create UDP socket: {str(e)}") from e

    try:
        conn.connect(sockaddr)
    except OSError as e:
        conn.close()
        raise ConnectError(f"Could not connect to {sockaddr[0]}:{sockaddr[1]}: {str(e)}") from e
    return conn


def _default_fields(default_values: DefaultValues) -> Dict[str, Any]:
    if default_values is None:
        return {}
    if isinstance(default_values, str):
        return {'client': default_values}
    return dict(default_values)


class Reporter:
    """Flushes snapshots of a metric source to Logstash."""

    def __init__(
        self,
        registry: MetricSource,
        address: str,
        default_values: DefaultValues = None,
        percentiles: Optional[Union[PercentileSpec, Sequence[float]]] = None,
        timestamp_field: Optional[str] = None
    ):
        """
        Initialize the reporter and connect its UDP socket.

        Args:
            registry (MetricSource): Source of the metrics to report
            address (str): Logstash UDP input address as host:port
            default_values (dict or str, optional): Fields sent with every
                snapshot. A string is sent as the "client" field.
            percentiles (PercentileSpec or sequence, optional): Percentiles
                reported for histograms and timers
            timestamp_field (str, optional): If set, each snapshot carries its
                UTC flush time under this field name

        Raises:
            ResolutionError: If the address cannot be resolved
            ConnectError: If the socket cannot be established
        """
        self.registry = registry
        self.address = address
        self.default_values = MappingProxyType(_default_fields(default_values))
        if isinstance(percentiles, PercentileSpec):
            self.percentiles = percentiles
        else:
            self.percentiles = PercentileSpec(percentiles)
        self.timestamp_field = timestamp_field or None

        self.conn = connect(resolve_address(address))

        self.thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        logger.debug("Reporter connected to %s", address)

    @property
    def closed(self) -> bool:
        return self.conn.fileno() == -1

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def build_snapshot(self) -> Snapshot:
        """
        Build the snapshot for one flush.

        Returns:
            Snapshot: Default fields merged with all metric fields
        """
        defaults = dict(self.default_values)
        if self.timestamp_field:
            defaults[self.timestamp_field] = datetime.now(pytz.UTC).isoformat()
        return build_snapshot(self.registry, self.percentiles, defaults)

    def flush_once(self) -> int:
        """
        Build, serialize and send one snapshot.

        Returns:
            int: Number of bytes sent

        Raises:
            SerializationError: If the snapshot cannot be encoded
            TransportWriteError: If the datagram cannot be written
        """
        snapshot = self.build_snapshot()
        sent = self.send(snapshot)
        logger.debug("Flushed %d fields (%d bytes) to %s", len(snapshot), sent, self.address)
        return sent

    def send(self, snapshot: Snapshot) -> int:
        """
        Serialize and send one snapshot as a single datagram.

        Default fields are not merged in; build_snapshot() does that.

        Args:
            snapshot (Snapshot): Snapshot or MetricEvent to send

        Returns:
            int: Number of bytes sent

        Raises:
            SerializationError: If the snapshot cannot be encoded
            TransportWriteError: If the datagram cannot be written
        """
        data = snapshot.serialize()

        try:
            return self.conn.send(data)
        except OSError as e:
            raise TransportWriteError(f"Failed to send metrics to {self.address}: {str(e)}") from e

    def _flush_safely(self) -> bool:
        try:
            self.flush_once()
            return True
        except (TransportWriteError, SerializationError) as e:
            logger.error("Flush failed: %s", str(e))
        except Exception:
            logger.exception("Unexpected error during flush")
        return False

    def flush_each(self, interval: float, stop_event: Optional[threading.Event] = None, count: int = 0) -> None:
        """
        Flush once per interval until stopped. Blocks the calling thread.

        No error raised by a flush leaves this method; failures are logged
        and the next tick tries again with fresh state.

        Args:
            interval (float): Seconds between flushes
            stop_event (threading.Event, optional): Ends the loop when set.
                Defaults to the event used by stop(). A stop() or close()
                issued before the loop starts ends it immediately.
            count (int): Number of flushes before returning (0 for infinite)
        """
        if interval <= 0:
            raise ValueError(f"Flush interval must be positive: {interval}")

        if stop_event is None:
            stop_event = self._stop_event

        rounds = 0
        next_flush_time = time.monotonic() + interval

        while count == 0 or rounds < count:
            if stop_event.wait(max(0.0, next_flush_time - time.monotonic())):
                break

            rounds += 1
            flush_start_time = time.monotonic()
            self._flush_safely()
            logger.debug("Flush %s took %.3f seconds", rounds, time.monotonic() - flush_start_time)

            next_flush_time += interval
            current_time = time.monotonic()
            if next_flush_time <= current_time:
                logger.warning("Flush took longer than interval. Next flush will start immediately.")
                next_flush_time = current_time

    def start(self, interval: float) -> None:
        """
        Start flushing on a background thread.

        Args:
            interval (float): Seconds between flushes
        """
        if self.running:
            logger.warning("Reporter already running")
            return
        if interval <= 0:
            raise ValueError(f"Flush interval must be positive: {interval}")

        self._stop_event.clear()
        self.thread = threading.Thread(
            target=self.flush_each,
            args=(interval, self._stop_event),
            name="logstash-reporter",
            daemon=True
        )
        self.thread.start()
        logger.info("Reporter started, flushing to %s every %s seconds", self.address, interval)

    def stop(self, timeout: float = 5) -> None:
        """Stop the background flush thread."""
        self._stop_event.set()

        if self.thread:
            self.thread.join(timeout=timeout)
            if self.thread.is_alive():
                logger.warning("Reporter thread did not stop cleanly")
            self.thread = None

    def close(self) -> None:
        """Stop flushing and close the socket."""
        self.stop()
        self.conn.close()

    def __enter__(self) -> 'Reporter':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

"""
The flat field set sent to Logstash by one flush.
"""
import json
import logging
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidKey, SerializationError

logger = logging.getLogger(__name__)


class Snapshot:
    """
    Flattened fields of one flush, seeded with the default fields.

    A new Snapshot is built for every flush; it is never reused.
    """

    def __init__(self, defaults: Optional[Mapping[str, Any]] = None):
        """
        Initialize the snapshot.

        Args:
            defaults (dict, optional): Fields copied into the snapshot before
                any metric field. Metric fields with the same name overwrite them.
        """
        self._fields: Dict[str, Any] = {}

        for key, value in (defaults or {}).items():
            try:
                self.set(key, value)
            except InvalidKey:
                logger.warning("Skipping default field with an invalid name: %r", key)

    def set(self, key: str, value: Any) -> None:
        """
        Set a field, overwriting any previous value.

        Args:
            key (str): Field name
            value: Integer, float or string value

        Raises:
            InvalidKey: If key is not a string or is empty
        """
        if not isinstance(key, str) or key == '':
            raise InvalidKey("Invalid metric name")
        self._fields[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._fields.get(key, default)

    @property
    def fields(self) -> Mapping[str, Any]:
        """Read-only view of the fields."""
        return MappingProxyType(self._fields)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._fields)

    def serialize(self) -> bytes:
        """
        Encode the fields as a single compact JSON object.

        Returns:
            bytes: UTF-8 encoded JSON

        Raises:
            SerializationError: If a value is not JSON serializable or is not
                a finite number
        """
        try:
            return json.dumps(self._fields, separators=(',', ':'), allow_nan=False).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Failed to serialize snapshot: {str(e)}") from e

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Snapshot({self._fields!r})"


class MetricEvent(Snapshot):
    """
    Hand-built document for one named metric, sent outside the flush loop.

    The document starts as {"metric": <name>, "count": 1}. Unlike a flush
    snapshot it may be cleared and reused.

    Example:
        event = MetricEvent("deploy")
        event.gauge("queue", 12)
        event.count("retries", 2)
        reporter.send(event)
    """

    def __init__(self, metric: str):
        self.metric = metric
        super().__init__(self._seed())

    def _seed(self) -> Dict[str, Any]:
        return {'metric': self.metric, 'count': 1}

    def gauge(self, name: str, value: Any) -> None:
        """Set the field "<name>.gauge"."""
        if not isinstance(name, str) or name == '':
            raise InvalidKey("Invalid metric name")
        self.set(f"{name}.gauge", value)

    def count(self, name: str, value: int) -> None:
        """Set an integer count field."""
        self.set(name, int(value))

    def clear(self) -> None:
        """Drop every field except the seed."""
        self._fields = dict(self._seed())

"""
Configuration settings for the metrics reporter.
"""
import logging
import math
import os
import socket
from typing import Callable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

Number = TypeVar('Number', int, float)


def get_positive_number(name: str, default: Number, cast: Callable[[str], Number]) -> Number:
    """
    Read a positive number from the environment.

    A malformed or out-of-range value is logged and replaced by the default.

    Args:
        name (str): Environment variable name
        default: Value used when the variable is unset or invalid
        cast: Conversion applied to the raw text (int or float)

    Returns:
        The parsed value or the default
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if not 0 < value < math.inf:
        logger.warning("Ignoring out-of-range %s=%r, using %s", name, raw, default)
        return default
    return value


# Logstash configuration
LOGSTASH_ADDRESS = os.getenv('LOGSTASH_ADDRESS', 'localhost:5959')
MONITORING_URL = os.getenv('LOGSTASH_MONITORING_URL', '')

# Reporter configuration
FLUSH_INTERVAL = get_positive_number('METRICS_FLUSH_INTERVAL', 60.0, float)  # seconds
CLIENT_ID = os.getenv('METRICS_CLIENT_ID', socket.gethostname())
PERCENTILES = os.getenv('METRICS_PERCENTILES', '')
TIMESTAMP_FIELD = os.getenv('METRICS_TIMESTAMP_FIELD', '')
HISTOGRAM_RESERVOIR_SIZE = get_positive_number('HISTOGRAM_RESERVOIR_SIZE', 1028, int)

# Health check configuration
REQUEST_TIMEOUT = 5  # seconds
MAX_RETRIES = get_positive_number('MAX_RETRIES', 3, int)
RETRY_DELAY = 1  # seconds

# Logging configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def parse_percentiles(text: Optional[str]) -> Optional[Tuple[float, ...]]:
    """
    Parse a comma-separated list of percentile fractions.
    
    Args:
        text (str, optional): Text such as "0.5,0.9,0.99"
        
    Returns:
        tuple: The fractions, or None when the text is empty
        
    Raises:
        ValueError: If an entry is not a number
    """
    if not text or not text.strip():
        return None
    return tuple(float(part) for part in text.split(',') if part.strip())

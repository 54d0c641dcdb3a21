"""
HTTP health check of the Logstash node monitoring API.

The UDP transport gives no delivery feedback, so this is the only way to
tell at start-up whether a Logstash node is listening at all.
"""
import logging
from typing import Optional

import requests
from retrying import retry

from . import config

logger = logging.getLogger(__name__)


def _retry_if_connection_error(exception: Exception) -> bool:
    """Return True if we should retry (in this case when it's a connection error)"""
    return isinstance(exception, (requests.ConnectionError, requests.Timeout))


def check_endpoint(
    url: str,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    retry_delay: Optional[float] = None
) -> bool:
    """
    Check if the Logstash monitoring API is accessible.

    Args:
        url (str): Monitoring API URL, e.g. http://logstash:9600/
        timeout (float, optional): Request timeout in seconds. Defaults to config.REQUEST_TIMEOUT.
        max_retries (int, optional): Attempts on connection errors. Defaults to config.MAX_RETRIES.
        retry_delay (float, optional): Seconds between attempts. Defaults to config.RETRY_DELAY.

    Returns:
        bool: True if the endpoint answered with a 2xx status, False otherwise
    """
    timeout = timeout or config.REQUEST_TIMEOUT
    max_retries = max_retries or config.MAX_RETRIES
    retry_delay = config.RETRY_DELAY if retry_delay is None else retry_delay

    @retry(
        retry_on_exception=_retry_if_connection_error,
        stop_max_attempt_number=max_retries,
        wait_fixed=int(retry_delay * 1000)  # milliseconds
    )
    def _get_node_info():
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        return response.json()

    try:
        node = _get_node_info()
    except requests.exceptions.RequestException as e:
        logger.warning("Logstash monitoring API at %s is not accessible: %s", url, str(e))
        return False
    except ValueError as e:
        logger.warning("Logstash monitoring API at %s returned invalid JSON: %s", url, str(e))
        return False

    if not isinstance(node, dict):
        node = {}
    logger.info("Logstash node %s (version %s) is accessible",
                node.get('name', 'unknown'), node.get('version', 'unknown'))
    return True

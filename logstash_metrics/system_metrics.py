"""
Host and process gauges backed by psutil.
"""
import logging
from typing import List

import psutil

from .registry import FunctionalGauge, FunctionalGaugeFloat64, Registry

logger = logging.getLogger(__name__)


def register_system_metrics(registry: Registry, prefix: str = 'system', disk_path: str = '/') -> List[str]:
    """
    Register gauges for CPU, memory, disk and current process usage.

    The gauges are evaluated at every flush, so no background sampling is needed.

    Args:
        registry (Registry): Registry to add the gauges to
        prefix (str): Name prefix of every gauge
        disk_path (str): Path whose filesystem usage is reported

    Returns:
        list: Names of the registered gauges
    """
    process = psutil.Process()

    # The first cpu_percent() call always returns 0.0; prime it so the
    # first flush reports a real value.
    psutil.cpu_percent(interval=None)

    gauges = {
        f"{prefix}.cpu.percent": FunctionalGaugeFloat64(lambda: psutil.cpu_percent(interval=None)),
        f"{prefix}.memory.percent": FunctionalGaugeFloat64(lambda: psutil.virtual_memory().percent),
        f"{prefix}.memory.used": FunctionalGauge(lambda: psutil.virtual_memory().used),
        f"{prefix}.disk.percent": FunctionalGaugeFloat64(lambda: psutil.disk_usage(disk_path).percent),
        f"{prefix}.process.rss": FunctionalGauge(lambda: process.memory_info().rss),
        f"{prefix}.process.threads": FunctionalGauge(process.num_threads),
    }

    for name, gauge in gauges.items():
        registry.get_or_register(name, lambda gauge=gauge: gauge)

    logger.info("Registered %d system metrics with prefix %s", len(gauges), prefix)
    return list(gauges.keys())

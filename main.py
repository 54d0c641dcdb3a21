#!/usr/bin/env python3
"""
CLI application for reporting metrics to Logstash at a fixed interval.
"""
import argparse
import json
import logging
import math
import os
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from logstash_metrics import Registry, Reporter, ReporterError, default_registry
from logstash_metrics import config as reporter_config
from logstash_metrics.health import check_endpoint
from logstash_metrics.system_metrics import register_system_metrics

# Setup logging
logger = logging.getLogger(__name__)

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def setup_logging(log_level: str) -> None:
    """
    Setup logging with the specified log level.

    Args:
        log_level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )


def load_config_from_file(config_file: str) -> Dict[str, Any]:
    """
    Load configuration from a JSON file.

    Args:
        config_file (str): Path to the JSON config file

    Returns:
        dict: Configuration dictionary with argument names as keys
    """
    if not os.path.exists(config_file):
        logger.error("Config file not found: %s", config_file)
        return {}

    try:
        with open(config_file, 'r') as f:
            config = json.load(f)
            logger.debug("Loaded configuration from %s: %s", config_file, config)
            return config
    except (json.JSONDecodeError, ValueError) as e:
        logger.error("Error parsing config file %s: %s", config_file, e)
        return {}
    except OSError as e:
        logger.error("Could not read config file %s: %s", config_file, e)
        return {}


def merge_config_with_args(config: Dict[str, Any], args: argparse.Namespace) -> argparse.Namespace:
    """
    Merge configuration from a file with command line arguments.
    Command line arguments take precedence over config file values.

    Args:
        config (dict): Configuration dictionary from file
        args (argparse.Namespace): Command line arguments

    Returns:
        argparse.Namespace: Updated arguments namespace
    """
    args_dict = vars(args)

    for key, value in config.items():
        # Convert dashes to underscores in key names
        arg_key = key.replace('-', '_')

        # Only set if the value is None or not provided on command line
        if args_dict.get(arg_key) is None:
            args_dict[arg_key] = value

    return argparse.Namespace(**args_dict)


def apply_environment_defaults(args: argparse.Namespace) -> argparse.Namespace:
    """
    Fill options given neither on the command line nor in a config file
    from the environment-driven reporter configuration.
    """
    defaults = {
        'log_level': reporter_config.LOG_LEVEL,
        'address': reporter_config.LOGSTASH_ADDRESS,
        'interval': reporter_config.FLUSH_INTERVAL,
        'client_id': reporter_config.CLIENT_ID,
        'percentiles': reporter_config.PERCENTILES,
        'timestamp_field': reporter_config.TIMESTAMP_FIELD,
        'monitoring_url': reporter_config.MONITORING_URL,
        'count': 0,
        'disk_path': '/',
    }
    args_dict = vars(args)
    for key, value in defaults.items():
        if args_dict.get(key) is None:
            args_dict[key] = value
    return argparse.Namespace(**args_dict)


def parse_default_fields(fields: Union[None, Dict[str, Any], List[str]]) -> Dict[str, Any]:
    """
    Parse default fields given as "key=value" strings or as a mapping.

    Args:
        fields (list or dict): The fields from the command line or a config file

    Returns:
        dict: Field names mapped to values

    Raises:
        ValueError: If a string entry has no "=" or an empty key
    """
    if not fields:
        return {}
    if isinstance(fields, dict):
        return dict(fields)

    parsed = {}
    for field in fields:
        if '=' not in field:
            raise ValueError(f"Default field must be in format key=value: {field}")
        key, value = field.split('=', 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Default field has an empty key: {field}")
        parsed[key] = value.strip()
    return parsed


def parse_percentile_option(value: Union[None, str, Sequence[float]]) -> Optional[Sequence[float]]:
    """Accept percentiles as a comma-separated string or a list from a config file."""
    if isinstance(value, (list, tuple)):
        return tuple(float(p) for p in value)
    return reporter_config.parse_percentiles(value)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser of the reporter CLI."""
    parser = argparse.ArgumentParser(
        description='Report metrics to Logstash over UDP at a fixed interval.'
    )

    # Add config file argument again for help display
    parser.add_argument('--config-file', type=str,
                        help='Path to JSON configuration file')

    # General options
    parser.add_argument('--log-level', type=str, choices=LOG_LEVELS,
                        help='Log level (default: LOG_LEVEL or INFO)')
    parser.add_argument('--interval', type=float,
                        help='Interval between flushes in seconds (default: METRICS_FLUSH_INTERVAL or 60)')
    parser.add_argument('--count', type=int,
                        help='Number of flushes, 0 for infinite (default: 0)')
    parser.add_argument('--once', action='store_true', default=None,
                        help='Flush a single snapshot and exit')

    # Reporter configuration
    parser.add_argument('--address', type=str,
                        help='Logstash UDP input address as host:port (default: LOGSTASH_ADDRESS)')
    parser.add_argument('--client-id', type=str,
                        help='Value of the "client" field sent with every snapshot')
    parser.add_argument('--default-field', dest='default_fields', action='append',
                        help='Extra field sent with every snapshot, as key=value (repeatable)')
    parser.add_argument('--percentiles', type=str,
                        help='Comma-separated percentile fractions, e.g. 0.5,0.95,0.99')
    parser.add_argument('--timestamp-field', type=str,
                        help='Field name for the UTC flush time, e.g. @timestamp')
    parser.add_argument('--monitoring-url', type=str,
                        help='Logstash monitoring API URL checked at start-up')

    # System metrics
    parser.add_argument('--system-metrics', action='store_true', default=None,
                        help='Report CPU, memory, disk and process gauges')
    parser.add_argument('--disk-path', type=str,
                        help='Path whose disk usage is reported with --system-metrics (default: /)')

    return parser


def parse_schedule(args: argparse.Namespace) -> Tuple[float, int]:
    """
    Validate the flush interval and flush count.

    Args:
        args (argparse.Namespace): Parsed and merged arguments

    Returns:
        tuple: The interval in seconds and the number of flushes (0 for infinite)

    Raises:
        ValueError: If the interval is not positive or the count is negative
    """
    try:
        interval = float(args.interval)
        count = int(args.count)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid interval or count: {str(e)}") from e

    if not 0 < interval < math.inf:
        raise ValueError(f"Flush interval must be positive: {args.interval}")
    if count < 0:
        raise ValueError(f"Flush count must not be negative: {args.count}")
    return interval, count


def create_reporter(args: argparse.Namespace, registry: Registry) -> Reporter:
    """
    Create the reporter described by the parsed arguments.

    Args:
        args (argparse.Namespace): Parsed and merged arguments
        registry (Registry): Registry to report

    Returns:
        Reporter: The connected reporter

    Raises:
        ReporterError: If the address cannot be resolved or connected
        ValueError: If a percentile or default field is invalid
    """
    default_values = {}
    if args.client_id:
        default_values['client'] = args.client_id
    default_values.update(parse_default_fields(args.default_fields))

    return Reporter(
        registry,
        args.address,
        default_values=default_values,
        percentiles=parse_percentile_option(args.percentiles),
        timestamp_field=args.timestamp_field or None
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to parse arguments and run the reporter."""
    # Create first parser for early config file and log level
    early_parser = argparse.ArgumentParser(add_help=False)
    early_parser.add_argument('--config-file', type=str)
    early_parser.add_argument('--log-level', type=str, default=reporter_config.LOG_LEVEL,
                              choices=LOG_LEVELS)

    # Parse just these arguments first
    early_args, _ = early_parser.parse_known_args(argv)

    # Setup logging with the specified log level
    setup_logging(early_args.log_level)

    # Load config from file if specified
    config = {}
    if early_args.config_file:
        logger.info("Loading configuration from %s", early_args.config_file)
        config = load_config_from_file(early_args.config_file)

    parser = build_parser()
    args = parser.parse_args(argv)

    # Merge config file values with command line arguments
    if config:
        args = merge_config_with_args(config, args)
    args = apply_environment_defaults(args)

    setup_logging(args.log_level)

    registry = default_registry
    if args.system_metrics:
        register_system_metrics(registry, disk_path=args.disk_path)

    try:
        interval, count = parse_schedule(args)
        reporter = create_reporter(args, registry)
    except (ReporterError, ValueError) as e:
        logger.error("Could not create reporter: %s", e)
        return 1

    # Check if Logstash is accessible
    if args.monitoring_url and not check_endpoint(args.monitoring_url):
        logger.warning("Logstash is not accessible. Metrics will still be sent but may be lost.")

    try:
        if args.once:
            try:
                reporter.flush_once()
            except ReporterError as e:
                logger.error("Flush failed: %s", e)
                return 1
            logger.info("Flushed metrics to %s", args.address)
            return 0

        logger.info("Reporting metrics to %s every %s seconds", args.address, interval)
        reporter.flush_each(interval, count=count)
    except KeyboardInterrupt:
        logger.info("Reporting interrupted by user.")
    finally:
        reporter.close()

    logger.info("Reporting completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

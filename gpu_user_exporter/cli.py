import argparse
import logging
import math
import sys
import threading

from .exporter import DEFAULT_METRIC_NAME, DEFAULT_PORT, GPUUserCollector, start_gpu_user_exporter
from .gpu_processes import DEVICE_READERS, shutdown_nvml
from .process_users import USER_RESOLVERS

logger = logging.getLogger(__name__)


def positive_float(value):
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if not math.isfinite(number):
        raise argparse.ArgumentTypeError(f"must be a finite number, got {value}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def port_number(value):
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"must be between 0 and 65535, got {value}")
    return port


def build_parser():
    parser = argparse.ArgumentParser(
        prog="gpu-user-exporter",
        description="GPU User Exporter - Prometheus exporter reporting which users occupy each GPU.",
    )
    parser.add_argument("--port", type=port_number, default=DEFAULT_PORT,
                        help=f"Port to serve /metrics on (default: {DEFAULT_PORT})")
    parser.add_argument("--address", default="0.0.0.0",
                        help="Address to bind to (default: 0.0.0.0)")
    parser.add_argument("--metric-name", default=DEFAULT_METRIC_NAME,
                        help=f"Name of the exported gauge (default: {DEFAULT_METRIC_NAME})")
    parser.add_argument("--device-backend", choices=sorted(DEVICE_READERS), default="smi",
                        help="How GPU processes are listed: nvidia-smi or NVML (default: smi)")
    parser.add_argument("--user-backend", choices=sorted(USER_RESOLVERS), default="ps",
                        help="How process owners are looked up: ps or psutil (default: ps)")
    parser.add_argument("--command-timeout", type=positive_float, default=None,
                        help="Seconds to wait for each external command (default: no limit)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: INFO)")
    return parser


def setup_logging(level):
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def main(argv=None, wait=True):
    """
    Main entry point for the CLI.
    Returns the process exit code; binding the port is the only fatal error.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    collector = GPUUserCollector(
        metric_name=args.metric_name,
        reader=DEVICE_READERS[args.device_backend],
        resolver=USER_RESOLVERS[args.user_backend],
        timeout=args.command_timeout,
    )

    logger.info(f"Starting GPU User Exporter on {args.address}:{args.port}")
    try:
        start_gpu_user_exporter(collector, port=args.port, addr=args.address)
    except OSError as e:
        logger.critical(f"Failed to start HTTP server on {args.address}:{args.port}: {e}")
        return 1

    if wait:
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            logger.info("Shutting down GPU User Exporter")
        finally:
            if args.device_backend == "nvml":
                shutdown_nvml()
    return 0


if __name__ == "__main__":
    sys.exit(main())

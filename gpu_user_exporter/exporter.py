import logging

from prometheus_client import CollectorRegistry, start_http_server
from prometheus_client.core import GaugeMetricFamily

from .aggregator import collect_gpu_users
from .gpu_processes import list_device_processes
from .process_users import resolve_user

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9102
DEFAULT_METRIC_NAME = "gpu_users"
METRIC_HELP = "Current users occupying GPUs"


class GPUUserCollector(object):
    """
    Prometheus collector reporting which users currently occupy each GPU.

    Every scrape runs a fresh collection cycle, so a (gpu, user) pair only
    shows up while that user still has a process on the GPU.
    """

    def __init__(self, metric_name=DEFAULT_METRIC_NAME, reader=list_device_processes,
                 resolver=resolve_user, timeout=None):
        self.metric_name = metric_name
        self.reader = reader
        self.resolver = resolver
        self.timeout = timeout

    def _gauge(self):
        return GaugeMetricFamily(self.metric_name, METRIC_HELP, labels=["gpu", "user"])

    def describe(self):
        # Registering must not trigger nvidia-smi
        yield self._gauge()

    def collect(self):
        gauge = self._gauge()
        gpu_users = collect_gpu_users(reader=self.reader, resolver=self.resolver, timeout=self.timeout)
        for gpu, users in gpu_users.items():
            for user in users:
                gauge.add_metric([gpu, user], 1)
        yield gauge


def build_registry(collector):
    """Create a dedicated registry holding only `collector`."""
    registry = CollectorRegistry(auto_describe=True)
    registry.register(collector)
    return registry


def start_gpu_user_exporter(collector, port=DEFAULT_PORT, addr="0.0.0.0"):
    """
    Serve `collector` at http://<addr>:<port>/metrics from a background thread.
    Raises OSError if the port can't be bound.
    """
    registry = build_registry(collector)
    start_http_server(port, addr=addr, registry=registry)
    logger.info(f"GPU user metrics available at http://{addr}:{port}/metrics")
    return registry

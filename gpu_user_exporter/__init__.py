"""
gpu_user_exporter - A Prometheus exporter reporting which users occupy each GPU.

Modules:
- gpu_processes: Listing (GPU, PID) pairs via nvidia-smi or NVML.
- process_users: Resolving the user that owns a PID.
- aggregator: Building the GPU -> users mapping for one collection cycle.
- exporter: Prometheus collector and HTTP server.
- cli: Command-line entry point.
"""

from .gpu_processes import (
    DeviceProcessPair,
    parse_device_processes,
    list_device_processes,
    list_device_processes_nvml,
)
from .process_users import resolve_user, resolve_user_psutil
from .aggregator import collect_gpu_users
from .exporter import GPUUserCollector, start_gpu_user_exporter

__version__ = "1.0.0"

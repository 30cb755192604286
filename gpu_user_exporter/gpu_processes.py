import logging
import subprocess
from collections import namedtuple

import pynvml

logger = logging.getLogger(__name__)

NVIDIA_SMI_COMMAND = [
    "nvidia-smi",
    "--query-compute-apps=gpu_uuid,pid",
    "--format=csv,noheader,nounits",
]

DeviceProcessPair = namedtuple("DeviceProcessPair", ["device_id", "process_id"])

# Track NVML initialization status
_nvml_initialized = False


def parse_device_processes(output):
    """
    Parse `gpu_uuid, pid` lines into DeviceProcessPair tuples.
    Lines that don't have exactly two fields are skipped.
    """
    pairs = []
    for line in output.splitlines():
        fields = line.split(",")
        if len(fields) != 2:
            continue
        device_id, process_id = fields[0].strip(), fields[1].strip()
        pairs.append(DeviceProcessPair(device_id, process_id))
    return pairs


def list_device_processes(timeout=None):
    """
    List (GPU UUID, PID) pairs for every compute process reported by nvidia-smi.
    Returns an empty list if nvidia-smi can't be run.
    """
    try:
        result = subprocess.run(
            NVIDIA_SMI_COMMAND,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=True,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as e:
        logger.error(f"Error executing nvidia-smi (exit {e.returncode}): {e.stderr.strip() if e.stderr else ''}")
        return []
    except subprocess.TimeoutExpired:
        logger.error(f"Timeout expired after {timeout}s while executing nvidia-smi")
        return []
    except OSError as e:
        logger.error(f"Error executing nvidia-smi: {e}")
        return []

    return parse_device_processes(result.stdout)


def initialize_nvml():
    """
    Initialize NVIDIA Management Library (NVML).
    Returns True if successful, False otherwise.
    """
    global _nvml_initialized
    try:
        if not _nvml_initialized:
            pynvml.nvmlInit()
            _nvml_initialized = True
        return True
    except pynvml.NVMLError as e:
        logger.error(f"Error initializing NVML: {e}")
        return False


def shutdown_nvml():
    """
    Shutdown NVML.
    """
    global _nvml_initialized
    try:
        if _nvml_initialized:
            pynvml.nvmlShutdown()
            _nvml_initialized = False
    except pynvml.NVMLError as e:
        logger.error(f"Error shutting down NVML: {e}")


def _device_uuid(handle):
    uuid = pynvml.nvmlDeviceGetUUID(handle)
    # Older bindings return bytes
    if isinstance(uuid, bytes):
        uuid = uuid.decode()
    return uuid


def list_device_processes_nvml(timeout=None):
    """
    Same contract as list_device_processes, but asks NVML directly instead of
    running nvidia-smi. `timeout` is accepted for parity and not used.
    """
    if not initialize_nvml():
        return []

    try:
        device_count = pynvml.nvmlDeviceGetCount()
    except pynvml.NVMLError as e:
        logger.error(f"Error getting GPU count: {e}")
        return []

    pairs = []
    for i in range(device_count):
        try:
            handle = pynvml.nvmlDeviceGetHandleByIndex(i)
            device_id = _device_uuid(handle)
            compute_procs = pynvml.nvmlDeviceGetComputeRunningProcesses(handle)
        except pynvml.NVMLError as e:
            logger.error(f"Error getting compute processes for GPU {i}: {e}")
            continue
        for proc in compute_procs:
            pairs.append(DeviceProcessPair(device_id, str(proc.pid)))
    return pairs


DEVICE_READERS = {
    "smi": list_device_processes,
    "nvml": list_device_processes_nvml,
}

"""
Shared fixtures for the gpu_user_exporter test suite.
"""

import subprocess
import threading

import pytest

from gpu_user_exporter import gpu_processes
from gpu_user_exporter.gpu_processes import DeviceProcessPair


def completed(stdout="", returncode=0):
    """Build the CompletedProcess a successful subprocess.run would return."""
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


@pytest.fixture(autouse=True)
def reset_nvml_state(monkeypatch):
    """Every test starts with NVML marked uninitialized."""
    monkeypatch.setattr(gpu_processes, "_nvml_initialized", False)


class FakeResolver:
    """
    Thread-safe stand-in for resolve_user that records each PID it is asked
    about. PIDs missing from `users` resolve to "".
    """

    def __init__(self, users):
        self.users = users
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, process_id, timeout=None):
        with self._lock:
            self.calls.append(process_id)
        return self.users.get(process_id, "")


def fake_reader(*pairs):
    def reader(timeout=None):
        return [DeviceProcessPair(device_id, process_id) for device_id, process_id in pairs]
    return reader


@pytest.fixture
def sample_pairs():
    return [("GPU-1", "100"), ("GPU-1", "101"), ("GPU-2", "100")]

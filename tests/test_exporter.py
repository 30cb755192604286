import socket

import pytest
from prometheus_client import generate_latest

from gpu_user_exporter.exporter import GPUUserCollector, build_registry, start_gpu_user_exporter
from conftest import FakeResolver, fake_reader


def make_collector(pairs, users, **kwargs):
    return GPUUserCollector(reader=fake_reader(*pairs), resolver=FakeResolver(users), **kwargs)


def test_one_sample_per_gpu_user_pair(sample_pairs):
    registry = build_registry(make_collector(sample_pairs, {"100": "alice"}))

    assert registry.get_sample_value("gpu_users", {"gpu": "GPU-1", "user": "alice"}) == 1.0
    assert registry.get_sample_value("gpu_users", {"gpu": "GPU-2", "user": "alice"}) == 1.0

    exposition = generate_latest(registry).decode()
    assert "# HELP gpu_users Current users occupying GPUs" in exposition
    assert "# TYPE gpu_users gauge" in exposition
    assert exposition.count("gpu_users{") == 2


def test_samples_are_not_held_over_between_scrapes():
    pairs = [("GPU-1", "1")]
    collector = make_collector(pairs, {"1": "alice"})
    registry = build_registry(collector)
    assert registry.get_sample_value("gpu_users", {"gpu": "GPU-1", "user": "alice"}) == 1.0

    collector.reader = fake_reader()
    assert registry.get_sample_value("gpu_users", {"gpu": "GPU-1", "user": "alice"}) is None
    assert "gpu_users{" not in generate_latest(registry).decode()


def test_custom_metric_name():
    registry = build_registry(make_collector([("GPU-1", "1")], {"1": "bob"}, metric_name="gpu_active_users"))
    assert registry.get_sample_value("gpu_active_users", {"gpu": "GPU-1", "user": "bob"}) == 1.0


def test_registering_does_not_run_a_collection():
    calls = []

    def reader(timeout=None):
        calls.append(timeout)
        return []

    build_registry(GPUUserCollector(reader=reader, resolver=FakeResolver({})))
    assert calls == []


def test_timeout_reaches_reader():
    seen = []

    def reader(timeout=None):
        seen.append(timeout)
        return []

    registry = build_registry(GPUUserCollector(reader=reader, resolver=FakeResolver({}), timeout=4.0))
    generate_latest(registry)
    assert seen == [4.0]


def test_port_in_use_raises_oserror():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        port = sock.getsockname()[1]

        with pytest.raises(OSError):
            start_gpu_user_exporter(make_collector([], {}), port=port, addr="127.0.0.1")

"""Tests ensuring observability wiring is safe by default."""
from __future__ import annotations

import importlib

import pytest

from fitplan.core.config import Settings


def test_app_import_succeeds_when_opik_is_disabled(monkeypatch) -> None:
    monkeypatch.setenv("OPIK_ENABLED", "false")
    monkeypatch.delenv("OPIK_API_KEY", raising=False)

    import fitplan.core.config as core_config
    import fitplan.observability.client as client_module
    import fitplan.main as main_module

    importlib.reload(core_config)
    importlib.reload(client_module)
    reloaded_app = importlib.reload(main_module)

    assert hasattr(reloaded_app, "app")


class _RecordingTrace:
    def __init__(self, name: str, metadata) -> None:
        self.name = name
        self.metadata = metadata
        self.ended = False

    def end(self) -> None:
        self.ended = True


class _RecordingOpik:
    instances: list["_RecordingOpik"] = []

    def __init__(self, project_name: str, api_key: str) -> None:
        self.project_name = project_name
        self.api_key = api_key
        self.traces: list[_RecordingTrace] = []
        self.flushed = 0
        _RecordingOpik.instances.append(self)

    def trace(self, name: str, metadata=None) -> _RecordingTrace:
        recorded = _RecordingTrace(name, metadata)
        self.traces.append(recorded)
        return recorded

    def flush(self) -> None:
        self.flushed += 1


@pytest.fixture()
def opik_client(monkeypatch):
    import fitplan.observability.client as client_module

    _RecordingOpik.instances = []
    monkeypatch.setattr(client_module, "Opik", _RecordingOpik)
    monkeypatch.setattr(client_module, "_client", None)
    monkeypatch.setattr(client_module, "_init_attempted", False)
    return client_module


def test_disabled_tracing_builds_no_client_and_is_not_retried(opik_client) -> None:
    assert opik_client.init_opik(Settings(opik_enabled=False)) is None
    assert opik_client.get_opik_client() is None
    assert _RecordingOpik.instances == []


def test_missing_api_key_skips_init(opik_client) -> None:
    assert opik_client.init_opik(Settings(opik_enabled=True, opik_api_key=None)) is None
    assert _RecordingOpik.instances == []


def test_enabled_tracing_builds_one_client_for_the_project(opik_client) -> None:
    config = Settings(opik_enabled=True, opik_api_key="key-123", opik_project="fitplan-test")

    client = opik_client.init_opik(config)

    assert isinstance(client, _RecordingOpik)
    assert client.project_name == "fitplan-test"
    assert client.api_key == "key-123"
    assert opik_client.init_opik(config) is client
    assert opik_client.get_opik_client() is client
    assert len(_RecordingOpik.instances) == 1


def test_shutdown_flushes_and_resets_client(opik_client) -> None:
    config = Settings(opik_enabled=True, opik_api_key="key-123")
    first = opik_client.init_opik(config)

    opik_client.shutdown_opik()

    assert first.flushed == 1
    assert opik_client._client is None
    assert opik_client._init_attempted is False

    second = opik_client.init_opik(config)
    assert second is not first
    assert len(_RecordingOpik.instances) == 2


def test_shutdown_without_client_is_a_no_op(opik_client) -> None:
    opik_client.shutdown_opik()

    assert opik_client._client is None
    assert opik_client._init_attempted is False


def test_sync_metric_is_recorded_on_installed_client(opik_client) -> None:
    import fitplan.observability.metrics as metrics_module

    # Rebind to the client module the fixture patched.
    log_metric = importlib.reload(metrics_module).log_metric

    recorder = _RecordingOpik(project_name="fitplan", api_key="key")
    opik_client.set_opik_client(recorder)

    log_metric("sync.flushed", 3, metadata={"failed": 1, "dropped": 0})

    [recorded] = recorder.traces
    assert recorded.name == "metric:sync.flushed"
    assert recorded.metadata == {"value": 3, "failed": 1, "dropped": 0}
    assert recorded.ended

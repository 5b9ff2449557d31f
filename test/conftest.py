from __future__ import annotations

import logging

import pytest

from compose_tasks import backend, monitor
from compose_tasks.config import ComposeOptions


class FakeBackend:
    """Stands in for the subprocess layer; records every invocation."""

    def __init__(self):
        self.status_outputs: list[str | None] = []
        self.container_id: str | None = "3f2a9c1be0d4\n"
        # consumed first, one per lookup, before falling back to container_id
        self.container_ids: list[str | None] = []
        self.sleeps: list[float] = []
        self.filter_present = True
        self.stream_rc = 0
        self.capture_calls = []
        self.stream_calls = []
        self.run_calls = []
        self.run_rc = 0

    def capture(self, command):
        self.capture_calls.append(command)
        if "-q" in command.argv:
            if self.container_ids:
                return self.container_ids.pop(0)
            return self.container_id
        if command.argv[-1] == "ps":
            return self.status_outputs.pop(0) if self.status_outputs else None
        return None

    def stream(self, command, filter_argv=None):
        self.stream_calls.append((command, filter_argv))
        return self.stream_rc

    def sleep(self, seconds):
        self.sleeps.append(seconds)

    def command_exists(self, name):
        return self.filter_present

    def run(self, command):
        self.run_calls.append(command)
        return self.run_rc


@pytest.fixture
def fake_backend(monkeypatch: pytest.MonkeyPatch) -> FakeBackend:
    fake = FakeBackend()
    monkeypatch.setattr(backend, "capture", fake.capture)
    monkeypatch.setattr(backend, "stream", fake.stream)
    monkeypatch.setattr(backend, "command_exists", fake.command_exists)
    monkeypatch.setattr(backend, "run", fake.run)
    monkeypatch.setattr(monitor.time, "sleep", fake.sleep)
    return fake


@pytest.fixture
def options() -> ComposeOptions:
    return ComposeOptions(main_service="web")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("TAG", "DOCKER_REGISTRY", "DOCKER_REGISTRY_NAMESPACE", "DCOMP_COMPOSE_BIN", "DCOMP_LOG_FILTER"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    # CliRunner swaps stderr; drop handlers bound to its closed stream
    pkg_logger = logging.getLogger("compose_tasks")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
    pkg_logger.setLevel(logging.NOTSET)

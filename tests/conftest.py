"""Shared fakes for engine, controller and CLI tests."""

from __future__ import annotations

import pytest

from dbshuttle.executors.base import StepExecutor, StepResult
from dbshuttle.persistence import STEP_ORDER, StepName


class RecordingExecutor(StepExecutor):
    """Returns scripted outcomes and records each call with the store state it saw."""

    def __init__(self, step: StepName, outcomes, recorder: "ExecutorRecorder") -> None:
        self.step = step
        self._outcomes = list(outcomes)
        self._recorder = recorder

    def execute(self, target):
        self._recorder.calls.append(self.step)
        store = self._recorder.store
        if store is not None:
            unit = store.get(target.unit_id)
            self._recorder.observed.append((self.step, dict(unit.steps) if unit else None))
        outcome = self._outcomes.pop(0) if self._outcomes else StepResult.success()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class ExecutorRecorder:
    def __init__(self, store=None) -> None:
        self.store = store
        self.calls: list[StepName] = []
        self.observed: list = []

    def build(self, **outcomes) -> dict[StepName, StepExecutor]:
        """``build(upload=[StepResult.failure("boom")])`` scripts per-step outcomes."""
        return {
            step: RecordingExecutor(step, outcomes.get(step.value, []), self)
            for step in STEP_ORDER
        }


class FakeSharedResource:
    def __init__(self, exists: bool = True) -> None:
        self._exists = exists
        self.torn_down = False

    def describe(self) -> str:
        return "restore pod db-restore-agent in namespace test"

    def exists(self) -> bool:
        return self._exists

    def teardown(self) -> None:
        self.torn_down = True
        self._exists = False


@pytest.fixture
def recorder_factory():
    return ExecutorRecorder


@pytest.fixture
def shared_resource():
    return FakeSharedResource()


@pytest.fixture
def migration_env(monkeypatch, tmp_path):
    """Required settings for a full CLI run, with state kept under ``tmp_path``."""
    settings = {
        "AWS_PROFILE": "migration",
        "AWS_REGION": "us-west-2",
        "EC2_FILTER": "bastion",
        "S3_BUCKET": "s3://dumps/pg/",
        "SOURCE_HOST": "source.rds.example.com",
        "TARGET_HOST": "10.0.0.5",
        "KUBERNETES_NAMESPACE": "migration",
        "STATE_FILE": str(tmp_path / "migration_state.yaml"),
    }
    for name, value in settings.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("DBSHUTTLE_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("DEBUG", raising=False)
    return settings


@pytest.fixture
def absent_resource():
    return FakeSharedResource(exists=False)

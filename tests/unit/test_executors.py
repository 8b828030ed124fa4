"""Step executors build the right remote scripts and only succeed on confirmation."""

import pytest

from dbshuttle.config import ShuttleConfig
from dbshuttle.credentials import StaticSecretProvider
from dbshuttle.exceptions import SecretError
from dbshuttle.executors import DumpExecutor, RestoreExecutor, UploadExecutor, build_executors
from dbshuttle.executors.base import completion_marker
from dbshuttle.persistence import StepName
from dbshuttle.resolver import MigrationTarget
from dbshuttle.utils.shell import CommandResult

TARGET = MigrationTarget(unit_id="sales")


@pytest.fixture
def config():
    config = ShuttleConfig()
    config.source.host = "source.rds.example.com"
    config.source.aws_region = "us-west-2"
    config.target.host = "10.0.0.5"
    config.target.kubernetes_namespace = "migration"
    config.transfer.s3_bucket = "s3://dumps/pg/"
    return config


class FakeHost:
    instance_id = "i-0abc"

    def ssh_command(self):
        return ["ssh", "ubuntu@i-0abc", "bash", "-s"]


class FakePod:
    def __init__(self):
        self.ensured = 0

    def ensure(self):
        self.ensured += 1

    def exec_command(self):
        return ["kubectl", "exec", "-i", "db-restore-agent", "--", "bash", "-s"]


class ScriptedRunner:
    """Stands in for ``run_command`` and remembers the scripts it was given."""

    def __init__(self, result_for):
        self.result_for = result_for
        self.calls = []

    def __call__(self, args, input=None, timeout=None, env=None):
        self.calls.append((list(args), input))
        return self.result_for(args, input)


def _confirmed(step):
    marker = completion_marker(step, TARGET)
    return lambda args, script: CommandResult(list(args), 0, stdout=f"progress\n{marker}\n")


SECRETS = StaticSecretProvider(
    {
        "db/v16/sales": "src-pw",
        "db/opusmatch-non-pro/sales_owner": "p%40ss",
        "aws/s3-to-gcs/aws_access_key_id": "AKIA",
        "aws/s3-to-gcs/aws_secret_access_key": "shh",
    }
)


def test_dump_runs_pg_dump_over_ssh(config, monkeypatch):
    runner = ScriptedRunner(_confirmed(StepName.DUMP))
    monkeypatch.setattr("dbshuttle.executors.dump.run_command", runner)

    result = DumpExecutor(config, SECRETS, FakeHost()).execute(TARGET)

    assert result.ok
    args, script = runner.calls[0]
    assert args == ["ssh", "ubuntu@i-0abc", "bash", "-s"]
    assert "src-pw" not in " ".join(args)
    assert "export PGPASSWORD=src-pw" in script
    assert "pg_dump -h source.rds.example.com -U sales_owner -d sales_db -F c -Z 9 -f /tmp/sales.dump" in script
    assert "test -s /tmp/sales.dump" in script


def test_dump_without_completion_marker_fails(config, monkeypatch):
    runner = ScriptedRunner(lambda args, script: CommandResult(list(args), 0, stdout="done\n"))
    monkeypatch.setattr("dbshuttle.executors.dump.run_command", runner)

    result = DumpExecutor(config, SECRETS, FakeHost()).execute(TARGET)

    assert not result.ok
    assert "could not be confirmed" in result.reason


def test_dump_reports_tool_failure(config, monkeypatch):
    runner = ScriptedRunner(
        lambda args, script: CommandResult(list(args), 1, stderr="pg_dump: error: connection refused")
    )
    monkeypatch.setattr("dbshuttle.executors.dump.run_command", runner)

    result = DumpExecutor(config, SECRETS, FakeHost()).execute(TARGET)

    assert not result.ok
    assert "connection refused" in result.reason


def test_dump_timeout_is_a_failure(config, monkeypatch):
    runner = ScriptedRunner(lambda args, script: CommandResult(list(args), -1, timed_out=True))
    monkeypatch.setattr("dbshuttle.executors.dump.run_command", runner)

    result = DumpExecutor(config, SECRETS, FakeHost()).execute(TARGET)

    assert result.reason == "timed out"


def test_dump_needs_the_source_password(config):
    with pytest.raises(SecretError):
        DumpExecutor(config, StaticSecretProvider({}), FakeHost()).execute(TARGET)


def test_upload_copies_and_verifies_object(config, monkeypatch):
    runner = ScriptedRunner(_confirmed(StepName.UPLOAD))
    monkeypatch.setattr("dbshuttle.executors.upload.run_command", runner)

    result = UploadExecutor(config, FakeHost()).execute(TARGET)

    assert result.ok
    _, script = runner.calls[0]
    assert "aws s3 cp /tmp/sales.dump s3://dumps/pg/sales.dump --region us-west-2" in script
    assert "aws s3 ls s3://dumps/pg/sales.dump --region us-west-2" in script
    assert script.index("aws s3 ls") < script.index("rm -f /tmp/sales.dump")


def test_restore_provisions_pod_and_decodes_password(config, monkeypatch):
    runner = ScriptedRunner(_confirmed(StepName.RESTORE))
    monkeypatch.setattr("dbshuttle.executors.restore.run_command", runner)
    pod = FakePod()

    result = RestoreExecutor(config, SECRETS, pod).execute(TARGET)

    assert result.ok
    assert pod.ensured == 1
    args, script = runner.calls[0]
    assert args[:2] == ["kubectl", "exec"]
    assert "export PGPASSWORD=p@ss" in script
    assert "export AWS_ACCESS_KEY_ID=AKIA" in script
    assert "aws s3 cp s3://dumps/pg/sales.dump /tmp/sales.dump" in script
    assert "pg_restore --no-owner -h 10.0.0.5 -U sales_owner -d sales_db -c -F c /tmp/sales.dump" in script


def test_restore_fails_fast_without_credentials(config, monkeypatch):
    runner = ScriptedRunner(_confirmed(StepName.RESTORE))
    monkeypatch.setattr("dbshuttle.executors.restore.run_command", runner)
    pod = FakePod()

    with pytest.raises(SecretError):
        RestoreExecutor(config, StaticSecretProvider({}), pod).execute(TARGET)
    assert pod.ensured == 0
    assert runner.calls == []


def test_build_executors_covers_every_step(config):
    executors = build_executors(config, SECRETS, FakePod())

    assert set(executors) == {StepName.DUMP, StepName.UPLOAD, StepName.RESTORE}
    assert executors[StepName.DUMP].host is executors[StepName.UPLOAD].host

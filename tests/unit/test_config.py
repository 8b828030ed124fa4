"""Tests for configuration loading."""

import pytest

from dbshuttle.config import REQUIRED_SETTINGS, load_config, validate_config
from dbshuttle.exceptions import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (*REQUIRED_SETTINGS, "STATE_FILE", "DEBUG", "DBSHUTTLE_CONFIG"):
        monkeypatch.delenv(name, raising=False)


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "dbshuttle.yaml"
    config_path.write_text(
        """
source:
  host: source.rds.example.com
  aws_profile: migration
  ec2_filter: bastion
target:
  host: 10.0.0.5
  kubernetes_namespace: migration
transfer:
  s3_bucket: s3://dumps/pg/
state_file: /var/lib/dbshuttle/state.yaml
"""
    )
    monkeypatch.setenv("DBSHUTTLE_CONFIG", str(config_path))

    config = load_config()
    assert config.source.host == "source.rds.example.com"
    assert config.target.kubernetes_namespace == "migration"
    assert config.transfer.s3_bucket == "s3://dumps/pg/"
    assert config.state_file == "/var/lib/dbshuttle/state.yaml"
    assert config.target.restore_pod == "db-restore-agent"


def test_environment_overrides_file_values(tmp_path, monkeypatch):
    config_path = tmp_path / "dbshuttle.yaml"
    config_path.write_text("source:\n  aws_region: eu-west-1\n")
    monkeypatch.setenv("AWS_REGION", "us-west-2")
    monkeypatch.setenv("STATE_FILE", "other.yaml")
    monkeypatch.setenv("DEBUG", "true")

    config = load_config(str(config_path))
    assert config.source.aws_region == "us-west-2"
    assert config.state_file == "other.yaml"
    assert config.debug is True


def test_defaults_without_config_file(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"))

    assert config.state_file == "migration_state.yaml"
    assert config.label_suffix == "_db"
    assert config.secrets.backend == "pass"


def test_validate_config_names_every_missing_setting(tmp_path, monkeypatch):
    monkeypatch.setenv("AWS_PROFILE", "migration")
    monkeypatch.setenv("SOURCE_HOST", "source.rds.example.com")
    config = load_config(str(tmp_path / "absent.yaml"))

    with pytest.raises(ConfigError) as excinfo:
        validate_config(config)

    assert "AWS_PROFILE" not in excinfo.value.missing
    assert set(excinfo.value.missing) == set(REQUIRED_SETTINGS) - {"AWS_PROFILE", "SOURCE_HOST"}
    assert "KUBERNETES_NAMESPACE" in str(excinfo.value)


def test_validate_config_accepts_complete_settings(tmp_path, monkeypatch):
    for name in REQUIRED_SETTINGS:
        monkeypatch.setenv(name, f"value-{name.lower()}")

    config = validate_config(load_config(str(tmp_path / "absent.yaml")))
    assert config.target.host == "value-target_host"


def test_invalid_config_file_is_a_config_error(tmp_path):
    config_path = tmp_path / "dbshuttle.yaml"
    config_path.write_text("secrets:\n  backend: vault\n")

    with pytest.raises(ConfigError):
        load_config(str(config_path))

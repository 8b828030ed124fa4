from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError


class SourceConfig(BaseModel):
    """Source RDS instance and the EC2 host used to reach it."""

    host: Optional[str] = None
    aws_profile: Optional[str] = None
    aws_region: Optional[str] = None
    ec2_filter: Optional[str] = None
    ssh_user: str = "ubuntu"
    dump_dir: str = "/tmp"
    dump_timeout: Optional[float] = None


class TransferConfig(BaseModel):
    """Object storage used to hand dumps over to the target side."""

    s3_bucket: Optional[str] = None
    upload_timeout: Optional[float] = None


class TargetConfig(BaseModel):
    """Target Cloud SQL instance and the restore pod that reaches it."""

    host: Optional[str] = None
    kubernetes_namespace: Optional[str] = None
    restore_pod: str = "db-restore-agent"
    pod_image: str = "ubuntu:noble"
    ready_timeout: int = 120
    restore_timeout: Optional[float] = None


class SecretsConfig(BaseModel):
    """Secret store backend and the key layout used for credentials."""

    backend: Literal["pass", "env"] = "pass"
    source_prefix: str = "db/v16"
    target_prefix: str = "db/opusmatch-non-pro"
    aws_access_key_id_key: str = "aws/s3-to-gcs/aws_access_key_id"
    aws_secret_access_key_key: str = "aws/s3-to-gcs/aws_secret_access_key"


class ShuttleConfig(BaseModel):
    """Top-level configuration model."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    target: TargetConfig = Field(default_factory=TargetConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    state_file: str = "migration_state.yaml"
    state_backend: Literal["yaml", "memory"] = "yaml"
    label_suffix: str = "_db"
    debug: bool = False


# Environment variable -> (section, field). ``None`` section means top level.
ENV_OVERRIDES: dict[str, tuple[Optional[str], str]] = {
    "AWS_PROFILE": ("source", "aws_profile"),
    "AWS_REGION": ("source", "aws_region"),
    "EC2_FILTER": ("source", "ec2_filter"),
    "SOURCE_HOST": ("source", "host"),
    "S3_BUCKET": ("transfer", "s3_bucket"),
    "TARGET_HOST": ("target", "host"),
    "KUBERNETES_NAMESPACE": ("target", "kubernetes_namespace"),
    "STATE_FILE": (None, "state_file"),
}

REQUIRED_SETTINGS = (
    "AWS_PROFILE",
    "AWS_REGION",
    "EC2_FILTER",
    "S3_BUCKET",
    "SOURCE_HOST",
    "TARGET_HOST",
    "KUBERNETES_NAMESPACE",
)


def _setting(config: ShuttleConfig, env_name: str):
    section, field = ENV_OVERRIDES[env_name]
    owner = getattr(config, section) if section else config
    return getattr(owner, field)


def load_config(path: Optional[str] = None) -> ShuttleConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to DBSHUTTLE_CONFIG env
            variable or 'dbshuttle.yaml' in the current directory.

    Environment variables listed in ``ENV_OVERRIDES`` (and ``DEBUG``) take
    precedence over values read from the file.
    """

    config_path = path or os.getenv("DBSHUTTLE_CONFIG", "dbshuttle.yaml")
    try:
        if os.path.exists(config_path):
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            config = ShuttleConfig(**data)
        else:
            config = ShuttleConfig()
    except (OSError, yaml.YAMLError, TypeError, ValidationError) as exc:
        raise ConfigError(f"Invalid configuration file {config_path}: {exc}") from exc

    for env_name, (section, field) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            owner = getattr(config, section) if section else config
            setattr(owner, field, value)

    if os.getenv("DEBUG", "").lower() in ("1", "true", "yes"):
        config.debug = True
    return config


def validate_config(config: ShuttleConfig) -> ShuttleConfig:
    """Raise ``ConfigError`` naming every required setting that is unset."""

    missing = [name for name in REQUIRED_SETTINGS if not _setting(config, name)]
    if missing:
        raise ConfigError(
            "Required settings are not set: " + ", ".join(missing), missing=missing
        )
    return config

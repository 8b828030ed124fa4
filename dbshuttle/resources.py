"""Shared infrastructure used by the step executors.

``SourceHost`` is the EC2 bastion that can reach the source database and
``RestorePod`` is the Kubernetes pod that can reach the target. Both are
looked up or provisioned lazily and at most once per session.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import yaml

from .config import ShuttleConfig
from .exceptions import ResourceError
from .utils.shell import run_command

logger = logging.getLogger(__name__)

RESTORE_POD_SETUP = """set -e
apt-get update
apt-get install -y curl ca-certificates gnupg lsb-release unzip postgresql-client
update-ca-certificates
curl "https://awscli.amazonaws.com/awscli-exe-linux-x86_64.zip" -o "/tmp/awscliv2.zip"
unzip /tmp/awscliv2.zip -d /tmp
/tmp/aws/install
rm -rf /tmp/aws /tmp/awscliv2.zip
echo "All tools installed. Sleeping..."
exec sleep infinity
"""


def aws_env(config: ShuttleConfig) -> dict[str, str]:
    """Environment for local ``aws`` invocations."""
    env = dict(os.environ)
    if config.source.aws_profile:
        env["AWS_PROFILE"] = config.source.aws_profile
    if config.source.aws_region:
        env["AWS_REGION"] = config.source.aws_region
    return env


def find_instance_id(config: ShuttleConfig) -> str:
    """Return the id of the EC2 instance tagged ``Name=<ec2_filter>``."""
    logger.info(f"Finding EC2 instance ID for {config.source.ec2_filter}...")
    result = run_command(
        [
            "aws",
            "ec2",
            "describe-instances",
            "--filters",
            f"Name=tag:Name,Values={config.source.ec2_filter}",
            "--query",
            "Reservations[*].Instances[*].InstanceId",
            "--output",
            "text",
        ],
        env=aws_env(config),
        timeout=60,
    )
    instances = result.stdout.split() if result.ok else []
    if not instances:
        reason = result.describe_failure() if not result.ok else "no matching instance"
        raise ResourceError(f"Failed to find EC2 instance {config.source.ec2_filter}: {reason}")
    if len(instances) > 1:
        logger.warning(f"Several instances match {config.source.ec2_filter}, using {instances[0]}")
    logger.info(f"Found EC2 instance ID: {instances[0]}")
    return instances[0]


class SourceHost:
    """SSH endpoint for commands that run next to the source database."""

    def __init__(self, config: ShuttleConfig) -> None:
        self.config = config
        self._instance_id: Optional[str] = None

    @property
    def instance_id(self) -> str:
        if self._instance_id is None:
            self._instance_id = find_instance_id(self.config)
        return self._instance_id

    def ssh_command(self) -> list[str]:
        """``ssh`` invocation that reads a bash script from stdin."""
        return ["ssh", f"{self.config.source.ssh_user}@{self.instance_id}", "bash", "-s"]


class RestorePod:
    """Transient pod used to run ``pg_restore`` against the target.

    The pod is shared by every restore in an operator session, so it is
    created on first use and only deleted through ``teardown``.
    """

    def __init__(self, config: ShuttleConfig) -> None:
        self.config = config
        self.name = config.target.restore_pod
        self.namespace = config.target.kubernetes_namespace or "default"
        self._ready = False

    @classmethod
    def from_config(cls, config: ShuttleConfig) -> "RestorePod":
        return cls(config)

    def describe(self) -> str:
        return f"restore pod {self.name} in namespace {self.namespace}"

    def manifest(self) -> dict:
        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": {
                "restartPolicy": "Never",
                "containers": [
                    {
                        "name": "ubuntu",
                        "image": self.config.target.pod_image,
                        "command": ["/bin/bash", "-c"],
                        "args": [RESTORE_POD_SETUP],
                        "tty": True,
                        "stdin": True,
                        "resources": {
                            "requests": {
                                "cpu": "200m",
                                "memory": "512Mi",
                                "ephemeral-storage": "10Gi",
                            }
                        },
                    }
                ],
            },
        }

    def ensure(self) -> None:
        """Apply the pod manifest and wait for readiness, once per session."""
        if self._ready:
            return
        logger.info(f"Creating Kubernetes {self.describe()}...")
        applied = run_command(
            ["kubectl", "apply", "-f", "-"],
            input=yaml.safe_dump(self.manifest(), sort_keys=False),
            timeout=60,
        )
        if not applied.ok:
            raise ResourceError(f"Failed to create {self.describe()}: {applied.describe_failure()}")

        logger.info("Waiting for pod to be ready...")
        timeout = self.config.target.ready_timeout
        ready = run_command(
            [
                "kubectl",
                "wait",
                "--for=condition=Ready",
                f"pod/{self.name}",
                "-n",
                self.namespace,
                f"--timeout={timeout}s",
            ],
            timeout=timeout + 30,
        )
        if not ready.ok:
            raise ResourceError(f"{self.describe()} did not become ready: {ready.describe_failure()}")
        self._ready = True
        logger.info("Restore pod created successfully.")

    def exec_command(self) -> list[str]:
        """``kubectl exec`` invocation that reads a bash script from stdin."""
        return ["kubectl", "exec", "-i", self.name, "-n", self.namespace, "--", "bash", "-s"]

    def exists(self) -> bool:
        if self._ready:
            return True
        result = run_command(["kubectl", "get", "pod", self.name, "-n", self.namespace], timeout=60)
        return result.ok

    def teardown(self) -> None:
        result = run_command(
            ["kubectl", "delete", "pod", self.name, "-n", self.namespace], timeout=300
        )
        if not result.ok:
            raise ResourceError(f"Failed to delete {self.describe()}: {result.describe_failure()}")
        self._ready = False

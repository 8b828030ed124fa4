from __future__ import annotations

import logging
import shlex
from urllib.parse import unquote

from ..config import ShuttleConfig
from ..credentials import SecretProvider
from ..persistence.models import StepName
from ..resolver import MigrationTarget
from ..resources import RestorePod
from ..utils.shell import run_command
from .base import StepExecutor, StepResult, completion_marker, confirm_completion
from .upload import object_uri

logger = logging.getLogger(__name__)


class RestoreExecutor(StepExecutor):
    """Download the dump inside the restore pod and ``pg_restore`` it into the target."""

    step = StepName.RESTORE

    def __init__(self, config: ShuttleConfig, secrets: SecretProvider, pod: RestorePod) -> None:
        self.config = config
        self.secrets = secrets
        self.pod = pod

    def script(self, target: MigrationTarget, access_key: str, secret_key: str, password: str) -> str:
        path = shlex.quote(f"/tmp/{target.dump_name}")
        uri = shlex.quote(object_uri(self.config.transfer.s3_bucket or "", target))
        region = shlex.quote(self.config.source.aws_region or "")
        return "\n".join(
            [
                "set -e",
                f"export AWS_ACCESS_KEY_ID={shlex.quote(access_key)}",
                f"export AWS_SECRET_ACCESS_KEY={shlex.quote(secret_key)}",
                f"export AWS_DEFAULT_REGION={region}",
                "command -v aws >/dev/null",
                "command -v pg_restore >/dev/null",
                f"if [ ! -f {path} ]; then aws s3 cp {uri} {path} --region {region}; fi",
                f"export PGPASSWORD={shlex.quote(password)}",
                f"pg_restore --no-owner -h {shlex.quote(self.config.target.host or '')}"
                f" -U {shlex.quote(target.owner)} -d {shlex.quote(target.database)} -c -F c {path}",
                f"rm -f {path}",
                f"echo {completion_marker(self.step, target)}",
                "",
            ]
        )

    def execute(self, target: MigrationTarget) -> StepResult:
        keys = self.config.secrets
        logger.info("Getting AWS transfer credentials from the secret store...")
        access_key = self.secrets.get_secret(keys.aws_access_key_id_key)
        secret_key = self.secrets.get_secret(keys.aws_secret_access_key_key)
        logger.info("Getting target database password...")
        password = unquote(self.secrets.get_secret(target.target_secret_key))

        self.pod.ensure()

        logger.info(f"Restoring database {target.unit_id} into {self.config.target.host}...")
        result = run_command(
            self.pod.exec_command(),
            input=self.script(target, access_key, secret_key, password),
            timeout=self.config.target.restore_timeout,
        )
        outcome = confirm_completion(result, completion_marker(self.step, target))
        if outcome.ok:
            logger.info(f"Database {target.unit_id} restored successfully.")
        return outcome

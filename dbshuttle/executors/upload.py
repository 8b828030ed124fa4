from __future__ import annotations

import logging
import posixpath
import shlex

from ..config import ShuttleConfig
from ..persistence.models import StepName
from ..resolver import MigrationTarget
from ..resources import SourceHost
from ..utils.shell import run_command
from .base import StepExecutor, StepResult, completion_marker, confirm_completion

logger = logging.getLogger(__name__)


def object_uri(bucket: str, target: MigrationTarget) -> str:
    """S3 location of ``target``'s dump inside ``bucket``."""
    return f"{bucket.rstrip('/')}/{target.dump_name}"


class UploadExecutor(StepExecutor):
    """Copy the dump from the source bastion to S3 and confirm the object exists."""

    step = StepName.UPLOAD

    def __init__(self, config: ShuttleConfig, host: SourceHost) -> None:
        self.config = config
        self.host = host

    def script(self, target: MigrationTarget) -> str:
        path = shlex.quote(posixpath.join(self.config.source.dump_dir, target.dump_name))
        uri = shlex.quote(object_uri(self.config.transfer.s3_bucket or "", target))
        region = shlex.quote(self.config.source.aws_region or "")
        return "\n".join(
            [
                "set -e",
                f"test -s {path}",
                f"aws s3 cp {path} {uri} --region {region}",
                f"aws s3 ls {uri} --region {region}",
                f"rm -f {path}",
                f"echo {completion_marker(self.step, target)}",
                "",
            ]
        )

    def execute(self, target: MigrationTarget) -> StepResult:
        uri = object_uri(self.config.transfer.s3_bucket or "", target)
        logger.info(f"Uploading dump to {uri}")
        result = run_command(
            self.host.ssh_command(),
            input=self.script(target),
            timeout=self.config.transfer.upload_timeout,
        )
        outcome = confirm_completion(result, completion_marker(self.step, target))
        if outcome.ok:
            logger.info("Database dump uploaded to S3 successfully.")
        return outcome

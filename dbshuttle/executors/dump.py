from __future__ import annotations

import logging
import posixpath
import shlex

from ..config import ShuttleConfig
from ..credentials import SecretProvider
from ..log import mask_url
from ..persistence.models import StepName
from ..resolver import MigrationTarget
from ..resources import SourceHost
from ..utils.shell import run_command
from .base import StepExecutor, StepResult, completion_marker, confirm_completion

logger = logging.getLogger(__name__)


class DumpExecutor(StepExecutor):
    """Run ``pg_dump`` on the source bastion into a compressed custom archive."""

    step = StepName.DUMP

    def __init__(self, config: ShuttleConfig, secrets: SecretProvider, host: SourceHost) -> None:
        self.config = config
        self.secrets = secrets
        self.host = host

    def dump_path(self, target: MigrationTarget) -> str:
        return posixpath.join(self.config.source.dump_dir, target.dump_name)

    def script(self, target: MigrationTarget, password: str) -> str:
        source = self.config.source
        path = shlex.quote(self.dump_path(target))
        log_path = shlex.quote(posixpath.join(source.dump_dir, f"{target.unit_id}.log"))
        return "\n".join(
            [
                "set -e",
                f"export PGPASSWORD={shlex.quote(password)}",
                f"pg_dump -h {shlex.quote(source.host or '')} -U {shlex.quote(target.owner)}"
                f" -d {shlex.quote(target.database)} -F c -Z 9 -f {path} 2>{log_path}",
                f"test -s {path}",
                f"echo {completion_marker(self.step, target)}",
                "",
            ]
        )

    def execute(self, target: MigrationTarget) -> StepResult:
        logger.info("Getting database password from the secret store...")
        password = self.secrets.get_secret(target.source_secret_key)
        url = f"postgresql://{target.owner}:{password}@{self.config.source.host}/{target.database}"
        logger.debug(f"Database URL: {mask_url(url)}")

        logger.info(f"Dumping database {target.unit_id} from source...")
        result = run_command(
            self.host.ssh_command(),
            input=self.script(target, password),
            timeout=self.config.source.dump_timeout,
        )
        outcome = confirm_completion(result, completion_marker(self.step, target))
        if outcome.ok:
            logger.info(f"Database {target.unit_id} dumped to {self.dump_path(target)}")
        return outcome

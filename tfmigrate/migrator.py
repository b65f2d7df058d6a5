"""Migration configuration, the migrator interface and shared setup."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .executor import TfexecError

if TYPE_CHECKING:
    from .cli import TerraformCLI
    from .runner import State

logger = logging.getLogger(__name__)

OVERRIDE_FILENAME = "_tfmigrate_override.tf"


class UnexpectedDiffError(TfexecError):
    """terraform plan reported changes after the migration was computed."""

    def __init__(self, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"terraform plan command returns unexpected diffs: {cause}")


@dataclass
class MigratorOption:
    """Settings shared across migrators.

    ``exec_path`` customises how terraform is started (e.g.
    ``"direnv exec . terraform"``); ``plan_out`` is a path to save the plan to.
    """

    exec_path: str = ""
    plan_out: str = ""
    is_backend_terraform_cloud: bool = False
    backend_config: list[str] = field(default_factory=list)


class Migrator(ABC):
    """Computes and pushes migrated states."""

    @abstractmethod
    def plan(self) -> None:
        """Compute the new state(s) and fail if terraform plan shows any diff."""

    @abstractmethod
    def apply(self) -> None:
        """Compute the new state(s), check them, and push them to remote."""


class MigratorConfig(ABC):
    """A factory for a migrator."""

    @abstractmethod
    def new_migrator(self, option: MigratorOption | None) -> Migrator:
        """Return a new migrator built from this config."""


@dataclass
class MigrationConfig:
    """A named migration of a given type (``state`` or ``multi_state``)."""

    type: str
    name: str
    migrator: MigratorConfig


def setup_work_dir(
    tf: TerraformCLI,
    workspace: str,
    is_backend_terraform_cloud: bool,
    backend_config: Iterable[str] | None,
) -> tuple[State, Callable[[], None]]:
    """Prepare a working directory for a migration.

    Returns the current remote state and a function that switches the backend
    back to remote.
    """
    version = tf.version()
    logger.info("[migrator@%s] terraform version: %s", tf.dir, version)

    logger.info("[migrator@%s] initialize work dir", tf.dir)
    tf.init("-input=false", "-no-color")

    current_workspace = tf.workspace_show()
    logger.debug(
        "[migrator@%s] currentWorkspace = %s, workspace = %s",
        tf.dir,
        current_workspace,
        workspace,
    )
    if current_workspace != workspace:
        logger.info("[migrator@%s] switch to remote workspace %s", tf.dir, workspace)
        tf.workspace_select(workspace)

    logger.info("[migrator@%s] get the current remote state", tf.dir)
    current_state = tf.state_pull()

    logger.info("[migrator@%s] override backend to local", tf.dir)
    switch_back = tf.override_backend_to_local(
        OVERRIDE_FILENAME,
        workspace,
        is_backend_terraform_cloud,
        list(backend_config or ()),
    )
    return current_state, switch_back
"""Migrations that rewrite a single state in one working directory."""

from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field

from .actions import StateAction, state_action_from_string
from .cli import TerraformCLI
from .executor import Executor, ExitError
from .migrator import (
    Migrator,
    MigratorConfig,
    MigratorOption,
    UnexpectedDiffError,
    setup_work_dir,
)
from .runner import State

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE = "default"


@dataclass
class StateMigratorConfig(MigratorConfig):
    """Config for a StateMigrator.

    ``actions`` are plain-text state operations: ``mv <source> <destination>``,
    ``rm <addresses>...`` or ``import <address> <id>``. ``dir`` defaults to the
    current directory and ``workspace`` to ``default``.
    """

    dir: str = ""
    actions: list[str] = field(default_factory=list)
    force: bool = False
    workspace: str = ""

    def new_migrator(self, option: MigratorOption | None) -> StateMigrator:
        """Return a StateMigrator built from this config."""
        directory = self.dir or "."
        if not self.actions:
            raise ValueError("failed to NewMigrator with no actions")
        actions = [state_action_from_string(cmd_str) for cmd_str in self.actions]
        if not self.workspace:
            self.workspace = DEFAULT_WORKSPACE
        return StateMigrator(directory, self.workspace, actions, option, self.force)


class StateMigrator(Migrator):
    """Applies state actions to a temporary copy of one remote state."""

    def __init__(
        self,
        dir: str,
        workspace: str,
        actions: Iterable[StateAction],
        option: MigratorOption | None = None,
        force: bool = False,
    ) -> None:
        exec_path = option.exec_path if option is not None else ""
        self.tf = TerraformCLI(Executor(dir, os.environ), exec_path)
        self.workspace = workspace
        self.actions = list(actions)
        self.option = option if option is not None else MigratorOption()
        self.force = force

    def _plan_options(self) -> list[str]:
        opts = ["-input=false", "-no-color", "-detailed-exitcode"]
        if self.option.plan_out:
            opts.append(f"-out={self.option.plan_out}")
        return opts

    def _plan(self) -> State:
        """Compute the new state and check that terraform plan shows no diff."""
        with contextlib.ExitStack() as stack:
            current_state, switch_back = setup_work_dir(
                self.tf,
                self.workspace,
                self.option.is_backend_terraform_cloud,
                self.option.backend_config,
            )
            stack.callback(switch_back)

            logger.info("[migrator@%s] compute a new state", self.tf.dir)
            for action in self.actions:
                current_state = action.state_update(self.tf, current_state)

            logger.info("[migrator@%s] check diffs", self.tf.dir)
            try:
                self.tf.plan(current_state, *self._plan_options())
            except ExitError as exc:
                if exc.exit_code != 2:
                    raise
                if self.force:
                    logger.info(
                        "[migrator@%s] unexpected diffs, ignoring as force option is true: %s",
                        self.tf.dir,
                        exc,
                    )
                    return current_state
                logger.error("[migrator@%s] unexpected diffs", self.tf.dir)
                raise UnexpectedDiffError(exc) from exc
            return current_state

    def plan(self) -> None:
        """Compute the new state and fail if terraform plan shows any diff."""
        logger.info("[migrator] start state migrator plan")
        self._plan()
        logger.info("[migrator] state migrator plan success!")

    def apply(self) -> None:
        """Compute and check the new state, then push it to remote."""
        logger.info("[migrator] start state migrator plan phase for apply")
        state = self._plan()

        logger.info("[migrator] start state migrator apply phase")
        logger.info("[migrator] push the new state to remote")
        self.tf.state_push(state)
        logger.info("[migrator] state migrator apply success!")
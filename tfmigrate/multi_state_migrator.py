"""Migrations that move resources between the states of two directories."""

from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .cli import TerraformCLI
from .executor import Executor, ExitError
from .migrator import (
    Migrator,
    MigratorConfig,
    MigratorOption,
    UnexpectedDiffError,
    setup_work_dir,
)
from .multi_actions import MultiStateAction, multi_state_action_from_string
from .runner import State

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE = "default"


@dataclass
class MultiStateMigratorConfig(MigratorConfig):
    """Config for a MultiStateMigrator.

    ``actions`` are plain-text operations of the form ``mv <source> <destination>``.
    Workspaces default to ``default``.
    """

    from_dir: str = ""
    to_dir: str = ""
    from_workspace: str = ""
    to_workspace: str = ""
    actions: list[str] = field(default_factory=list)
    force: bool = False

    def new_migrator(self, option: MigratorOption | None) -> MultiStateMigrator:
        """Return a MultiStateMigrator built from this config."""
        if not self.actions:
            raise ValueError("failed to NewMigrator with no actions")
        actions = [multi_state_action_from_string(cmd_str) for cmd_str in self.actions]
        if not self.from_workspace:
            self.from_workspace = DEFAULT_WORKSPACE
        if not self.to_workspace:
            self.to_workspace = DEFAULT_WORKSPACE
        return MultiStateMigrator(
            self.from_dir,
            self.to_dir,
            self.from_workspace,
            self.to_workspace,
            actions,
            option,
            self.force,
        )


class MultiStateMigrator(Migrator):
    """Applies multi-state actions to temporary copies of two remote states."""

    def __init__(
        self,
        from_dir: str,
        to_dir: str,
        from_workspace: str,
        to_workspace: str,
        actions: Iterable[MultiStateAction],
        option: MigratorOption | None = None,
        force: bool = False,
    ) -> None:
        exec_path = option.exec_path if option is not None else ""
        self.from_tf = TerraformCLI(Executor(from_dir, os.environ), exec_path)
        self.to_tf = TerraformCLI(Executor(to_dir, os.environ), exec_path)
        self.from_workspace = from_workspace
        self.to_workspace = to_workspace
        self.actions = list(actions)
        self.option = option if option is not None else MigratorOption()
        self.force = force

    def _plan_options(self) -> list[str]:
        opts = ["-input=false", "-no-color", "-detailed-exitcode"]
        if self.option.plan_out:
            opts.append(f"-out={self.option.plan_out}")
        return opts

    def _check_diffs(self, tf: TerraformCLI, state: State, opts: Sequence[str]) -> bool:
        """Run plan on ``state``; return True if a diff was found and forced."""
        logger.info("[migrator@%s] check diffs", tf.dir)
        try:
            tf.plan(state, *opts)
        except ExitError as exc:
            if exc.exit_code != 2:
                raise
            if self.force:
                logger.info(
                    "[migrator@%s] unexpected diffs, ignoring as force option is true: %s",
                    tf.dir,
                    exc,
                )
                return True
            logger.error("[migrator@%s] unexpected diffs", tf.dir)
            raise UnexpectedDiffError(exc) from exc
        return False

    def _plan(self) -> tuple[State, State]:
        """Compute both new states and check that neither plan shows a diff."""
        with contextlib.ExitStack() as stack:
            from_state, from_switch_back = setup_work_dir(
                self.from_tf,
                self.from_workspace,
                self.option.is_backend_terraform_cloud,
                self.option.backend_config,
            )
            stack.callback(from_switch_back)
            to_state, to_switch_back = setup_work_dir(
                self.to_tf,
                self.to_workspace,
                self.option.is_backend_terraform_cloud,
                self.option.backend_config,
            )
            stack.callback(to_switch_back)

            logger.info(
                "[migrator] compute new states (%s => %s)", self.from_tf.dir, self.to_tf.dir
            )
            for action in self.actions:
                from_state, to_state = action.multi_state_update(
                    self.from_tf, self.to_tf, from_state, to_state
                )

            opts = self._plan_options()
            if self._check_diffs(self.from_tf, from_state, opts):
                return from_state, to_state
            self._check_diffs(self.to_tf, to_state, opts)
            return from_state, to_state

    def plan(self) -> None:
        """Compute new states and fail if either terraform plan shows a diff."""
        logger.info("[migrator] multi start state migrator plan")
        self._plan()
        logger.info("[migrator] multi state migrator plan success!")

    def apply(self) -> None:
        """Compute and check both new states, then push them to remote.

        The destination state is pushed first so that resources are written to
        their new home before they are removed from the old one.
        """
        logger.info("[migrator] start multi state migrator plan phase for apply")
        from_state, to_state = self._plan()

        logger.info("[migrator] start multi state migrator apply phase")
        logger.info("[migrator@%s] push the new state to remote", self.to_tf.dir)
        self.to_tf.state_push(to_state)
        logger.info("[migrator@%s] push the new state to remote", self.from_tf.dir)
        self.from_tf.state_push(from_state)
        logger.info("[migrator] multi state migrator apply success!")
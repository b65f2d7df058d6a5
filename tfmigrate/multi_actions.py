"""Migration actions that move resources between two states."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .actions import ActionError, split_state_action
from .runner import State

if TYPE_CHECKING:
    from .cli import TerraformCLI

_NO_BACKUP = "-backup=/dev/null"


class MultiStateAction(ABC):
    """An operation that turns two states into two new states."""

    @abstractmethod
    def multi_state_update(
        self,
        from_tf: TerraformCLI,
        to_tf: TerraformCLI,
        from_state: State | None,
        to_state: State | None,
    ) -> tuple[State | None, State | None]:
        """Apply the action and return the new (from_state, to_state)."""


@dataclass
class MultiStateMvAction(MultiStateAction):
    """Moves a resource from one directory's state to another's, optionally renaming it."""

    source: str
    destination: str

    def multi_state_update(
        self,
        from_tf: TerraformCLI,
        to_tf: TerraformCLI,
        from_state: State | None,
        to_state: State | None,
    ) -> tuple[State | None, State | None]:
        # Move the resource out of from_state into an empty intermediate state,
        # then from that intermediate state into to_state.
        diff_state = State(b"")
        from_new_state, diff_new_state = from_tf.state_mv(
            from_state, diff_state, self.source, self.source, _NO_BACKUP
        )
        _, to_new_state = to_tf.state_mv(
            diff_new_state, to_state, self.source, self.destination, _NO_BACKUP
        )
        return from_new_state, to_new_state


def multi_state_action_from_string(cmd_str: str) -> MultiStateAction:
    """Build a multi-state action from text; the only form is ``mv <source> <destination>``."""
    try:
        args = split_state_action(cmd_str)
    except ActionError as exc:
        raise ActionError(f"failed to parse action: {cmd_str}, err: {exc}") from exc

    if not args:
        raise ActionError(f"multi state action is empty: {cmd_str}")

    action_type, *params = args
    if action_type == "mv":
        if len(params) != 2:
            raise ActionError(f"multi state mv action is invalid: {cmd_str}")
        return MultiStateMvAction(params[0], params[1])
    raise ActionError(f"unknown multi state action type: {cmd_str}")
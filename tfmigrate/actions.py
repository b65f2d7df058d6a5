"""Single-state migration actions built from terraform state command strings."""

from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .cli import TerraformCLI
    from .runner import State

_NO_BACKUP = "-backup=/dev/null"


class ActionError(ValueError):
    """An action string could not be parsed into a valid action."""


class StateAction(ABC):
    """An operation that turns one state into a new state."""

    @abstractmethod
    def state_update(self, tf: TerraformCLI, state: State | None) -> State | None:
        """Apply the action to ``state`` and return the new state."""


@dataclass
class StateMvAction(StateAction):
    """Moves a resource from one address to another within the same state."""

    source: str
    destination: str

    def state_update(self, tf: TerraformCLI, state: State | None) -> State | None:
        # Backups of intermediate states are never restored, so discard them.
        new_state, _ = tf.state_mv(
            state, None, self.source, self.destination, _NO_BACKUP
        )
        return new_state


@dataclass
class StateRmAction(StateAction):
    """Removes resources at the given addresses from the state."""

    addresses: list[str] = field(default_factory=list)

    def state_update(self, tf: TerraformCLI, state: State | None) -> State | None:
        return tf.state_rm(state, list(self.addresses), _NO_BACKUP)


@dataclass
class StateImportAction(StateAction):
    """Imports an existing resource into the state (state only, no config)."""

    address: str
    id: str

    def state_update(self, tf: TerraformCLI, state: State | None) -> State | None:
        return tf.import_resource(
            state, self.address, self.id, "-input=false", "-no-color", _NO_BACKUP
        )


def split_state_action(cmd_str: str) -> list[str]:
    """Split an action string like a shell would.

    Addresses may contain spaces inside quotes, so a plain split is not enough.
    """
    try:
        return shlex.split(cmd_str)
    except ValueError as exc:
        raise ActionError(f"failed to split action: {cmd_str}: {exc}") from exc


def state_action_from_string(cmd_str: str) -> StateAction:
    """Build a state action from text such as ``"mv <source> <destination>"``.

    Valid forms are ``mv <source> <destination>``, ``rm <addresses>...`` and
    ``import <address> <id>``.
    """
    try:
        args = split_state_action(cmd_str)
    except ActionError as exc:
        raise ActionError(f"failed to parse action: {cmd_str}, err: {exc}") from exc

    if not args:
        raise ActionError(f"state action is empty: {cmd_str}")

    action_type, *params = args
    if action_type == "mv":
        if len(params) != 2:
            raise ActionError(f"state mv action is invalid: {cmd_str}")
        return StateMvAction(params[0], params[1])
    if action_type == "rm":
        if not params:
            raise ActionError(f"state rm action is invalid: {cmd_str}")
        return StateRmAction(params)
    if action_type == "import":
        if len(params) != 2:
            raise ActionError(f"state import action is invalid: {cmd_str}")
        return StateImportAction(params[0], params[1])
    raise ActionError(f"unknown state action type: {cmd_str}")
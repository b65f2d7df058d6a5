"""Low-level terraform invocation and shared option helpers."""

from __future__ import annotations

import os
import shlex
import tempfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .executor import Executor, TfexecError

DEFAULT_EXEC_NAME = "terraform"


@dataclass(frozen=True)
class State:
    """Raw contents of a tfstate, kept opaque."""

    data: bytes = b""

    def __bytes__(self) -> bytes:
        return self.data


@dataclass(frozen=True)
class Plan:
    """Raw contents of a tfplan, kept opaque."""

    data: bytes = b""

    def __bytes__(self) -> bytes:
        return self.data


def merge_options(a: Iterable[str], b: Iterable[str]) -> list[str]:
    """Concatenate two option lists, keeping the first of any duplicate."""
    return list(dict.fromkeys([*a, *b]))


def has_prefix_option(opts: Iterable[str], prefix: str) -> bool:
    """Return True if any option starts with ``prefix``."""
    return any(opt.startswith(prefix) for opt in opts)


def get_option_value(opts: Iterable[str], prefix: str) -> str:
    """Return the rest of the first option starting with ``prefix``, or ''."""
    return next((opt[len(prefix):] for opt in opts if opt.startswith(prefix)), "")


def write_temp_file(content: bytes) -> str:
    """Write ``content`` to a new temporary file and return its path.

    The caller is responsible for removing the file.
    """
    try:
        fd, path = tempfile.mkstemp(prefix="tmp")
    except OSError as exc:
        raise TfexecError(f"failed to create temporary file: {exc}") from exc
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
    except OSError as exc:
        raise TfexecError(f"failed to write temporary file: {exc}") from exc
    return path


class TerraformRunner:
    """Runs arbitrary terraform subcommands through an executor.

    ``exec_path`` customises how terraform is started, e.g.
    ``"direnv exec . terraform"``; empty means plain ``terraform``.
    """

    def __init__(self, executor: Executor, exec_path: str = "") -> None:
        self.executor = executor
        self.exec_path = exec_path

    @property
    def dir(self) -> str:
        """The working directory terraform runs in."""
        return self.executor.dir

    def _command_line(self, args: Sequence[str]) -> tuple[str, list[str]]:
        if not self.exec_path:
            return DEFAULT_EXEC_NAME, list(args)
        try:
            parts = shlex.split(self.exec_path)
        except ValueError as exc:
            raise TfexecError(
                f"failed to parse exec path: {self.exec_path}: {exc}"
            ) from exc
        if not parts:
            raise TfexecError(f"exec path is empty: {self.exec_path!r}")
        name, *prefix = parts
        return name, [*prefix, *args]

    def run(self, *args: str) -> tuple[str, str]:
        """Run terraform with ``args`` and return (stdout, stderr).

        A non-zero exit raises ExitError, which carries the captured output.
        """
        name, argv = self._command_line(args)
        cmd = self.executor.new_command(name, *argv)
        self.executor.run(cmd)
        return cmd.stdout, cmd.stderr
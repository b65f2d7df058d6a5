"""High-level terraform commands that work on in-memory states and plans."""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
from collections.abc import Callable, Iterable, Iterator, Sequence
from pathlib import Path

from .executor import ExitError, TfexecError
from .runner import (
    Plan,
    State,
    TerraformRunner,
    get_option_value,
    has_prefix_option,
    merge_options,
    write_temp_file,
)

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^Terraform v(.+)\s*\n")

_LOCAL_BACKEND_OVERRIDE = """
terraform {
  backend "local" {
  }
}
"""


def _remove_quietly(path: str) -> None:
    with contextlib.suppress(OSError):
        os.remove(path)


def _rmdir_quietly(path: str) -> None:
    with contextlib.suppress(OSError):
        os.rmdir(path)


@contextlib.contextmanager
def _temp_file_with(content: bytes) -> Iterator[str]:
    """Yield the path of a temporary file holding ``content``; remove it after."""
    path = write_temp_file(content)
    try:
        yield path
    finally:
        _remove_quietly(path)


@contextlib.contextmanager
def _empty_temp_file(prefix: str, what: str) -> Iterator[str]:
    """Yield the path of a new empty temporary file; remove it after."""
    try:
        fd, path = tempfile.mkstemp(prefix=prefix)
    except OSError as exc:
        raise TfexecError(f"failed to create temporary {what} file: {exc}") from exc
    try:
        try:
            os.close(fd)
        except OSError as exc:
            raise TfexecError(f"failed to close temporary {what} file: {exc}") from exc
        yield path
    finally:
        _remove_quietly(path)


def _reject_option(opts: Sequence[str], prefix: str, argument: str) -> None:
    if has_prefix_option(opts, prefix):
        raise TfexecError(
            f"failed to build options. The {argument} argument and the {prefix} "
            f"option cannot be set at the same time: opts={list(opts)}"
        )


class TerraformCLI(TerraformRunner):
    """An opinionated interface to the terraform command.

    States and plans are passed in and returned as in-memory values; any
    temporary files needed by terraform are created and removed here.
    """

    def version(self) -> str:
        """Return the version number of terraform, e.g. ``"0.12.28"``."""
        stdout, _ = self.run("version")
        match = _VERSION_RE.match(stdout)
        if match is None:
            raise TfexecError(f"failed to parse terraform version: {stdout}")
        return match.group(1)

    def init(self, *args: str) -> None:
        """Initialize the working directory."""
        self.run("init", *args)

    def plan(self, state: State | None, *args: str) -> Plan:
        """Compute expected changes, optionally against a given input state.

        An ExitError with exit code 2 signals a diff when ``-detailed-exitcode``
        is among the options.
        """
        with contextlib.ExitStack() as stack:
            argv = ["plan"]
            if state is not None:
                _reject_option(args, "-state=", "state")
                state_path = stack.enter_context(_temp_file_with(bytes(state)))
                argv.append(f"-state={state_path}")

            if has_prefix_option(args, "-out="):
                plan_out = get_option_value(args, "-out=")
            else:
                plan_out = stack.enter_context(_empty_temp_file("tfplan", "plan"))
                argv.append(f"-out={plan_out}")

            argv.extend(args)
            self.run(*argv)

            try:
                data = Path(plan_out).read_bytes()
            except OSError:
                data = b""
            return Plan(data)

    def apply(self, plan: Plan | None, *args: str) -> None:
        """Apply changes, optionally from a given plan."""
        with contextlib.ExitStack() as stack:
            argv = ["apply", *args]
            if plan is not None:
                argv.append(stack.enter_context(_temp_file_with(bytes(plan))))
            self.run(*argv)

    def destroy(self, *args: str) -> None:
        """Destroy resources."""
        self.run("destroy", *args)

    def import_resource(
        self, state: State | None, address: str, id: str, *args: str
    ) -> State:
        """Import an existing resource and return the resulting state."""
        with contextlib.ExitStack() as stack:
            argv = ["import"]
            if state is not None:
                _reject_option(args, "-state=", "state")
                state_path = stack.enter_context(_temp_file_with(bytes(state)))
                argv.append(f"-state={state_path}")

            if has_prefix_option(args, "-state-out="):
                raise TfexecError(
                    "failed to build options. The -state-out= option is not "
                    f"allowed. Read a return value: {list(args)}"
                )
            state_out_path = stack.enter_context(
                _empty_temp_file("tfstate", "state out")
            )
            argv.append(f"-state-out={state_out_path}")
            argv.extend(args)
            argv.extend([address, id])

            self.run(*argv)
            return State(Path(state_out_path).read_bytes())

    def state_list(
        self,
        state: State | None,
        addresses: Iterable[str] | None = None,
        *args: str,
    ) -> list[str]:
        """Return the resource addresses in the state."""
        with contextlib.ExitStack() as stack:
            argv = ["state", "list"]
            if state is not None:
                _reject_option(args, "-state=", "state")
                state_path = stack.enter_context(_temp_file_with(bytes(state)))
                argv.append(f"-state={state_path}")
            argv.extend(args)
            argv.extend(addresses or ())

            stdout, _ = self.run(*argv)
        return [line for line in stdout.rstrip("\n").split("\n") if line]

    def state_pull(self, *args: str) -> State:
        """Return the current state from the remote backend."""
        stdout, _ = self.run("state", "pull", *args)
        return State(stdout.encode("utf-8"))

    def state_mv(
        self,
        state: State | None,
        state_out: State | None,
        source: str,
        destination: str,
        *args: str,
    ) -> tuple[State | None, State | None]:
        """Move ``source`` to ``destination``.

        Returns the updated ``state`` and ``state_out``; each is None when the
        corresponding argument was None.
        """
        with contextlib.ExitStack() as stack:
            argv = ["state", "mv"]
            state_path = state_out_path = None
            if state is not None:
                _reject_option(args, "-state=", "state")
                state_path = stack.enter_context(_temp_file_with(bytes(state)))
                argv.append(f"-state={state_path}")
            if state_out is not None:
                _reject_option(args, "-state-out=", "state_out")
                state_out_path = stack.enter_context(_temp_file_with(bytes(state_out)))
                argv.append(f"-state-out={state_out_path}")
            argv.extend(args)
            argv.extend([source, destination])

            self.run(*argv)

            updated = State(Path(state_path).read_bytes()) if state_path else None
            updated_out = (
                State(Path(state_out_path).read_bytes()) if state_out_path else None
            )
            return updated, updated_out

    def state_rm(
        self, state: State | None, addresses: Iterable[str] | None, *args: str
    ) -> State | None:
        """Remove resources from the state.

        Returns the updated state when one was given, otherwise None, since
        terraform then changes the current state in place.
        """
        with contextlib.ExitStack() as stack:
            argv = ["state", "rm"]
            state_path = None
            if state is not None:
                _reject_option(args, "-state=", "state")
                state_path = stack.enter_context(_temp_file_with(bytes(state)))
                argv.append(f"-state={state_path}")
            argv.extend(args)
            argv.extend(addresses or ())

            self.run(*argv)

            if state_path is None:
                return None
            return State(Path(state_path).read_bytes())

    def state_push(self, state: State, *args: str) -> None:
        """Push ``state`` to the remote backend."""
        with _temp_file_with(bytes(state)) as state_path:
            self.run("state", "push", *args, state_path)

    def workspace_new(self, workspace: str, *args: str) -> None:
        """Create a new workspace."""
        argv = ["workspace", "new", *args]
        if workspace:
            argv.append(workspace)
        self.run(*argv)

    def workspace_show(self) -> str:
        """Return the currently selected workspace."""
        stdout, _ = self.run("workspace", "show")
        return stdout.rstrip("\n")

    def workspace_select(self, workspace: str) -> None:
        """Switch to an existing workspace."""
        argv = ["workspace", "select"]
        if workspace:
            argv.append(workspace)
        self.run(*argv)

    def override_backend_to_local(
        self,
        filename: str,
        workspace: str,
        is_backend_terraform_cloud: bool,
        backend_config: Iterable[str] | None,
    ) -> Callable[[], None]:
        """Switch the backend to local and return a function switching it back.

        ``filename`` must be a valid override file name such as
        ``_tfexec_override.tf``. The returned function never raises; it logs
        what it could not undo.
        """
        directory = self.dir
        path = os.path.join(directory, filename)
        workspace_path = os.path.join(directory, "terraform.tfstate.d")
        workspace_state_path = os.path.join(workspace_path, workspace)
        backend_config = list(backend_config or ())

        logger.info("[executor@%s] create an override file", directory)
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(_LOCAL_BACKEND_OVERRIDE)
        except OSError as exc:
            raise TfexecError(f"failed to create override file: {exc}") from exc

        logger.info(
            "[migrator@%s] creating local workspace folder in: %s",
            directory,
            workspace_state_path,
        )
        try:
            os.makedirs(workspace_state_path, exist_ok=True)
        except OSError as exc:
            raise TfexecError(
                f"failed to create local workspace state directory: {exc}"
            ) from exc

        logger.info("[executor@%s] switch backend to local", directory)
        try:
            self.init("-input=false", "-no-color", "-reconfigure")
        except (TfexecError, OSError) as exc:
            _remove_quietly(path)
            _rmdir_quietly(workspace_state_path)
            _rmdir_quietly(workspace_path)
            raise TfexecError(f"failed to switch backend to local: {exc}") from exc

        def switch_back_to_remote() -> None:
            logger.info("[executor@%s] remove the override file", directory)
            try:
                os.remove(path)
            except OSError as exc:
                logger.error(
                    "[executor@%s] failed to remove the override file: %s", directory, exc
                )
                logger.error(
                    "[executor@%s] please remove the override file(%s) and "
                    "re-run terraform init -reconfigure",
                    directory,
                    path,
                )

            logger.info("[executor@%s] remove the workspace state folder", directory)
            for target, label in (
                (workspace_state_path, "local workspace state directory"),
                (workspace_path, "local workspace directory"),
            ):
                try:
                    os.rmdir(target)
                except OSError as exc:
                    logger.error(
                        "[executor@%s] failed to remove %s: %s", directory, label, exc
                    )
                    logger.error(
                        "[executor@%s] please remove the %s(%s) and re-run "
                        "terraform init -reconfigure",
                        directory,
                        label,
                        target,
                    )

            logger.info("[executor@%s] switch back to remote", directory)
            argv = ["-input=false", "-no-color", "-reconfigure"]
            argv.extend(f"-backend-config={b}" for b in backend_config)
            if not is_backend_terraform_cloud:
                argv.append("-reconfigure")
            try:
                self.init(*argv)
            except (TfexecError, OSError) as exc:
                logger.error(
                    "[executor@%s] failed to switch back to remote: %s", directory, exc
                )
                logger.error(
                    "[executor@%s] please re-run terraform init -reconfigure", directory
                )

        return switch_back_to_remote

    def plan_has_change(self, state: State | None, *args: str) -> bool:
        """Run plan and return True only if it reports changes."""
        merged = merge_options(args, ["-input=false", "-no-color", "-detailed-exitcode"])
        try:
            self.plan(state, *merged)
        except ExitError as exc:
            if exc.exit_code == 2:
                return True
            raise
        return False
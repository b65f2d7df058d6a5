"""Running external commands in a fixed working directory and environment."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class TfexecError(Exception):
    """Base error for failures while driving the terraform command."""


class ExitError(TfexecError):
    """A command ran but exited with a non-zero status."""

    def __init__(
        self,
        exit_code: int,
        args: Sequence[str],
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.exit_code = exit_code
        self.command_args = list(args)
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(self._message())

    def _message(self) -> str:
        joined = " ".join(self.command_args)
        return (
            f"failed to run command (exited {self.exit_code}): {joined}\n"
            f"stdout:\n{self.stdout}\nstderr:\n{self.stderr}"
        )

    def __str__(self) -> str:
        return self._message()


@dataclass
class Command:
    """A command line ready to run, holding its captured output once run.

    ``args[0]`` is the command name as given; ``executable`` is the resolved
    program to start, when it differs from the name.
    """

    args: list[str]
    cwd: str | None = None
    env: dict[str, str] | None = None
    executable: str | None = None
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = field(default=None, compare=False)

    def run(self) -> None:
        """Run the command, capturing stdout and stderr.

        Raises ExitError if the command exits with a non-zero status and
        OSError if it cannot be started at all.
        """
        argv = [self.executable or self.args[0], *self.args[1:]]
        proc = subprocess.run(
            argv,
            cwd=self.cwd,
            env=self.env,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
        self.stdout = proc.stdout or ""
        self.stderr = proc.stderr or ""
        # A process killed by a signal has no exit status of its own.
        self.exit_code = proc.returncode if proc.returncode >= 0 else -1
        if proc.returncode != 0:
            raise ExitError(self.exit_code, self.args, self.stdout, self.stderr)


class Executor:
    """Builds and runs commands in a working directory with an environment.

    When ``env`` is None the current process environment is used.
    """

    def __init__(self, dir: str = "", env: Mapping[str, str] | None = None) -> None:
        self.dir = dir
        self.env: dict[str, str] = dict(os.environ if env is None else env)

    def new_command(self, name: str, *args: str) -> Command:
        """Return a command for ``name`` with ``args``, not yet run."""
        executable = None
        if os.sep not in name and (os.altsep is None or os.altsep not in name):
            executable = shutil.which(name)
        return Command(
            args=[name, *args],
            cwd=self.dir or None,
            env=dict(self.env),
            executable=executable,
        )

    def run(self, cmd: Command) -> None:
        """Run ``cmd``, logging the command line and any failure."""
        logger.debug("[executor@%s]$ %s", self.dir, " ".join(cmd.args))
        try:
            cmd.run()
        except Exception as exc:
            logger.debug("[executor@%s] failed to run command: %r", self.dir, exc)
            raise
        finally:
            logger.log(5, "[executor@%s] cmd=%r", self.dir, cmd)

    def append_env(self, key: str, value: str) -> None:
        """Set an environment variable for commands built afterwards."""
        self.env[key] = value
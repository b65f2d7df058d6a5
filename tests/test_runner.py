import os

import pytest

from tfmigrate.executor import ExitError, TfexecError
from tfmigrate.runner import (
    Plan,
    State,
    TerraformRunner,
    get_option_value,
    has_prefix_option,
    merge_options,
    write_temp_file,
)


class MockCommand:
    def __init__(self, args, stdout="", stderr="", exit_code=0):
        self.args = list(args)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code

    def run(self):
        if self.exit_code != 0:
            raise ExitError(self.exit_code, self.args, self.stdout, self.stderr)


class MockExecutor:
    def __init__(self, commands):
        self.commands = list(commands)
        self.calls = 0
        self.dir = "/work"

    def new_command(self, name, *args):
        cmd = self.commands[self.calls]
        self.calls += 1
        got = [name, *args]
        if got != cmd.args:
            raise AssertionError(f"unexpected command: {got}, want {cmd.args}")
        return cmd

    def run(self, cmd):
        cmd.run()


@pytest.mark.parametrize(
    "expected_args, exec_path",
    [
        (["terraform", "version"], ""),
        (["terraform-0.12.28", "version"], "terraform-0.12.28"),
        (["direnv", "exec", ".", "terraform", "version"], "direnv exec . terraform"),
    ],
)
def test_run_success(expected_args, exec_path):
    executor = MockExecutor(
        [MockCommand(expected_args, stdout="Terraform v0.12.28\n")]
    )
    runner = TerraformRunner(executor, exec_path)
    stdout, stderr = runner.run("version")
    assert stdout == "Terraform v0.12.28\n"
    assert stderr == ""
    assert executor.calls == 1


def test_run_failure():
    executor = MockExecutor([MockCommand(["terraform", "version"], exit_code=1)])
    runner = TerraformRunner(executor)
    with pytest.raises(ExitError) as excinfo:
        runner.run("version")
    assert excinfo.value.exit_code == 1
    assert excinfo.value.stdout == ""


def test_exec_path_can_be_changed_after_construction():
    executor = MockExecutor([MockCommand(["tf", "init"])])
    runner = TerraformRunner(executor)
    runner.exec_path = "tf"
    assert runner.run("init") == ("", "")
    assert executor.calls == 1


def test_run_invalid_exec_path():
    runner = TerraformRunner(MockExecutor([]), "direnv 'exec")
    with pytest.raises(TfexecError):
        runner.run("version")


def test_dir_comes_from_executor():
    runner = TerraformRunner(MockExecutor([]))
    assert runner.dir == "/work"


@pytest.mark.parametrize(
    "opts, prefix, want",
    [
        (["-input=false", "-no-color", "-out=foo.tfplan", "-detailed-exitcode"], "-out=", "foo.tfplan"),
        (["-input=false", "-no-color", "-detailed-exitcode"], "-out=", ""),
    ],
)
def test_get_option_value(opts, prefix, want):
    assert get_option_value(opts, prefix) == want


def test_has_prefix_option():
    assert has_prefix_option(["-input=false", "-state=foo"], "-state=") is True
    assert has_prefix_option(["-input=false", "-state-out=foo"], "-state=") is False
    assert has_prefix_option([], "-state=") is False


def test_merge_options_keeps_order_and_removes_duplicates():
    got = merge_options(
        ["-input=false", "-out=x"],
        ["-input=false", "-no-color", "-detailed-exitcode"],
    )
    assert got == ["-input=false", "-out=x", "-no-color", "-detailed-exitcode"]


def test_merge_options_empty():
    assert merge_options([], []) == []


def test_write_temp_file_round_trip():
    path = write_temp_file(b"dummy state")
    try:
        with open(path, "rb") as handle:
            assert handle.read() == b"dummy state"
    finally:
        os.remove(path)


def test_state_and_plan_hold_bytes():
    assert bytes(State(b"dummy state")) == b"dummy state"
    assert bytes(Plan(b"dummy plan")) == b"dummy plan"
    assert State(b"a") == State(b"a")
    assert State(b"") != State(b"a")
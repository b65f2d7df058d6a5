import pytest

from tfmigrate.executor import TfexecError
from tfmigrate.migrator import (
    MigrationConfig,
    Migrator,
    MigratorConfig,
    MigratorOption,
    UnexpectedDiffError,
    setup_work_dir,
)
from tfmigrate.runner import State


class FakeTerraform:
    def __init__(self, current_workspace="default", fail_on=None):
        self.dir = "work"
        self.current_workspace = current_workspace
        self.fail_on = fail_on
        self.calls = []
        self.switched_back = False

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name == self.fail_on:
            raise TfexecError(f"{name} failed")

    def version(self):
        self._record("version")
        return "1.0.0"

    def init(self, *args):
        self._record("init", *args)

    def workspace_show(self):
        self._record("workspace_show")
        return self.current_workspace

    def workspace_select(self, workspace):
        self._record("workspace_select", workspace)

    def state_pull(self):
        self._record("state_pull")
        return State(b"remote state")

    def override_backend_to_local(self, filename, workspace, is_cloud, backend_config):
        self._record("override", filename, workspace, is_cloud, backend_config)

        def switch_back():
            self.switched_back = True

        return switch_back


def test_setup_work_dir_same_workspace():
    tf = FakeTerraform(current_workspace="default")
    state, switch_back = setup_work_dir(tf, "default", False, None)
    assert state == State(b"remote state")
    assert tf.calls == [
        ("version",),
        ("init", "-input=false", "-no-color"),
        ("workspace_show",),
        ("state_pull",),
        ("override", "_tfmigrate_override.tf", "default", False, []),
    ]
    switch_back()
    assert tf.switched_back is True


def test_setup_work_dir_switches_workspace():
    tf = FakeTerraform(current_workspace="default")
    setup_work_dir(tf, "work1", True, ["bucket=tfstate-test"])
    assert ("workspace_select", "work1") in tf.calls
    assert tf.calls[-1] == (
        "override",
        "_tfmigrate_override.tf",
        "work1",
        True,
        ["bucket=tfstate-test"],
    )
    names = [call[0] for call in tf.calls]
    assert names.index("workspace_select") < names.index("state_pull")


@pytest.mark.parametrize("step", ["version", "init", "workspace_select", "state_pull"])
def test_setup_work_dir_stops_on_error(step):
    tf = FakeTerraform(current_workspace="other", fail_on=step)
    with pytest.raises(TfexecError, match=f"{step} failed"):
        setup_work_dir(tf, "work1", False, None)
    assert tf.calls[-1][0] == step
    assert all(call[0] != "override" for call in tf.calls)


def test_migrator_option_defaults():
    option = MigratorOption()
    assert option.exec_path == ""
    assert option.plan_out == ""
    assert option.is_backend_terraform_cloud is False
    assert option.backend_config == []


def test_unexpected_diff_error_message():
    cause = TfexecError("exit 2")
    err = UnexpectedDiffError(cause)
    assert str(err) == "terraform plan command returns unexpected diffs: exit 2"
    assert err.cause is cause
    assert isinstance(err, TfexecError)


def test_abstract_interfaces_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Migrator()
    with pytest.raises(TypeError):
        MigratorConfig()


def test_migration_config_builds_migrator_from_factory():
    class RecordingMigrator(Migrator):
        def __init__(self, option):
            self.option = option

        def plan(self):
            pass

        def apply(self):
            pass

    class RecordingConfig(MigratorConfig):
        def new_migrator(self, option):
            return RecordingMigrator(option)

    config = MigrationConfig(type="state", name="mv_foo", migrator=RecordingConfig())
    option = MigratorOption(exec_path="direnv exec . terraform")
    migrator = config.migrator.new_migrator(option)
    assert migrator.option is option
    assert config.type == "state"
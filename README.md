# tfmigrate

A library for refactoring Terraform state safely. It moves, removes and
imports resources in a temporary copy of the state. It then runs
`terraform plan -detailed-exitcode` against the result. The new state is
pushed to the remote backend only when the plan shows no changes.

The package runs the `terraform` binary found on your `PATH`. You can also
point it at a wrapper command such as `direnv exec . terraform`. It has no
third-party dependencies.

## Modules

- **`tfmigrate.executor`**: `Executor` builds and runs external commands
  in a working directory with a given environment. If no environment is
  given, the current process environment is used. `Executor.append_env`
  adds a variable for commands built later. A command that exits with a
  non-zero status raises `ExitError`. The error carries `exit_code`,
  `command_args`, `stdout` and `stderr`. `TfexecError` is the base class
  for the errors raised while running terraform.
- **`tfmigrate.runner`**: holds the opaque `State` and `Plan` values,
  which wrap raw bytes. It also holds `TerraformRunner`, which builds the
  `terraform ...` command line and returns `(stdout, stderr)`. The
  helpers are `merge_options`, `has_prefix_option`, `get_option_value` and
  `write_temp_file`.
- **`tfmigrate.cli`**: `TerraformCLI`, a high-level Python interface to
  the terraform subcommands. Despite its module name it is a class for use
  from Python, not a command-line program. Its methods are listed below.
- **`tfmigrate.actions`**: single-state operations: `StateMvAction`,
  `StateRmAction` and `StateImportAction`. `state_action_from_string`
  parses an action from text, and `split_state_action` does the shell-like
  splitting that parsing uses.
- **`tfmigrate.multi_actions`**: `MultiStateMvAction` moves a resource
  from one working directory's state to another's.
  `multi_state_action_from_string` parses it from text.
- **`tfmigrate.migrator`**: provides `MigratorOption`, the abstract
  `Migrator` and `MigratorConfig`, `MigrationConfig`,
  `UnexpectedDiffError` and `setup_work_dir`.
- **`tfmigrate.state_migrator`** and **`tfmigrate.multi_state_migrator`**:
  these provide the migrators and their configs.

### TerraformCLI methods

The methods take states and plans as in-memory values. Any temporary files
that terraform needs are written and removed for you.

- `version()` returns the version number, for example `"0.12.28"`.
- `init(*args)`, `destroy(*args)` and `apply(plan, *args)` run the
  matching subcommands. `plan` may be `None`.
- `plan(state, *args)` returns a `Plan`. When `state` is given it is used
  as the input state. If the options contain `-out=`, that path is used
  for the plan. Otherwise a temporary file is used.
- `import_resource(state, address, id, *args)` returns the new `State`.
  It rejects a `-state-out=` option.
- `state_list(state, addresses, *args)` returns a list of resource
  addresses.
- `state_pull(*args)` returns the remote `State`.
- `state_mv(state, state_out, source, destination, *args)` returns the
  updated pair `(state, state_out)`. Each item is `None` when the
  corresponding argument was `None`.
- `state_rm(state, addresses, *args)` returns the updated state when one
  was given. Otherwise it returns `None`, because terraform then changes
  the current state in place.
- `state_push(state, *args)` pushes a state to the remote backend.
- `workspace_new(workspace, *args)`, `workspace_select(workspace)` and
  `workspace_show()` manage workspaces.
- `override_backend_to_local(filename, workspace,
  is_backend_terraform_cloud, backend_config)` switches the backend to
  local and returns a function that switches it back.
- `plan_has_change(state, *args)` returns `True` when plan exits with
  status 2.

A state argument combined with a `-state=` option raises `TfexecError`.
So does a `state_out` argument combined with a `-state-out=` option.

```python
from tfmigrate.cli import TerraformCLI
from tfmigrate.executor import Executor

tf = TerraformCLI(Executor("infra/network"))
tf.init("-input=false", "-no-color")
state = tf.state_pull()
new_state, _ = tf.state_mv(state, None, "aws_security_group.foo", "aws_security_group.foo2")
print(tf.state_list(new_state))
```

## Action syntax

Actions are written like `terraform state` commands. They are split the
way a shell would split them, so an address that contains spaces can be
quoted:

```
mv <source> <destination>
rm <address> [<address>...]
import <address> <id>
```

For example:

```
mv docker_container.nginx 'docker_container.nginx["This is an example"]'
```

A multi-state action supports only `mv`. An empty, malformed or unknown
action raises `ActionError`, which is a `ValueError`.

## Example: single state

```python
from tfmigrate.migrator import MigratorOption
from tfmigrate.state_migrator import StateMigratorConfig

config = StateMigratorConfig(
    dir="infra/network",
    actions=[
        "mv aws_security_group.foo aws_security_group.foo2",
        "rm aws_security_group.bar",
        "import aws_iam_user.qux qux",
    ],
    workspace="default",
)
migrator = config.new_migrator(MigratorOption())

migrator.plan()   # dry run: fails if terraform plan shows a diff
migrator.apply()  # same check, then pushes the new state
```

`dir` defaults to `.` and `workspace` defaults to `default`. A config with
no actions raises `ValueError`. When the plan shows a diff, `plan()` and
`apply()` raise `UnexpectedDiffError`. Set `force=True` to accept the diff
anyway.

## Example: moving resources between directories

```python
from tfmigrate.migrator import MigratorOption
from tfmigrate.multi_state_migrator import MultiStateMigratorConfig

config = MultiStateMigratorConfig(
    from_dir="infra/old",
    to_dir="infra/new",
    actions=["mv aws_security_group.foo aws_security_group.foo"],
)
config.new_migrator(MigratorOption()).apply()
```

Both workspaces default to `default`. The destination state is pushed
before the source state, so a resource is written to its new home before
it is removed from the old one.

## Options

`MigratorOption` holds settings shared by all migrators:

- `exec_path`: how terraform is started. The default is `terraform`. An
  example of a wrapper is `"direnv exec . terraform"`.
- `plan_out`: a path where the checking plan is saved, passed as `-out=`.
- `is_backend_terraform_cloud`: set this when the remote backend is
  Terraform Cloud.
- `backend_config`: values passed as `-backend-config=...` when switching
  back to the remote backend.

## Side effects in the working directory

While the actions run, the migrators switch the backend to local. To do
this they write `_tfmigrate_override.tf` and create
`terraform.tfstate.d/<workspace>` in each working directory. When they
finish, they remove both and run `terraform init` again for the remote
backend. Failures during that cleanup are logged, not raised. The package
logs through the standard `logging` module.

## What this package does not do

It has no command-line program. It also does not read migration files
from disk. Configs are built in Python, and `MigrationConfig` is only a
container for a named migration.
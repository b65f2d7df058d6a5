import pytest

from tfmigrate.actions import (
    ActionError,
    StateAction,
    StateImportAction,
    StateMvAction,
    StateRmAction,
    split_state_action,
    state_action_from_string,
)
from tfmigrate.runner import State


class FakeTerraform:
    def __init__(self):
        self.calls = []

    def state_mv(self, state, state_out, source, destination, *args):
        self.calls.append(("state_mv", state, state_out, source, destination, args))
        return State(b"moved"), None

    def state_rm(self, state, addresses, *args):
        self.calls.append(("state_rm", state, addresses, args))
        return State(b"removed")

    def import_resource(self, state, address, id, *args):
        self.calls.append(("import", state, address, id, args))
        return State(b"imported")


@pytest.mark.parametrize(
    "cmd_str, want",
    [
        (
            "mv aws_security_group.foo aws_security_group.foo2",
            StateMvAction("aws_security_group.foo", "aws_security_group.foo2"),
        ),
        ("rm aws_security_group.foo", StateRmAction(["aws_security_group.foo"])),
        (
            "rm aws_security_group.foo aws_security_group.bar",
            StateRmAction(["aws_security_group.foo", "aws_security_group.bar"]),
        ),
        (
            "import aws_security_group.foo foo",
            StateImportAction("aws_security_group.foo", "foo"),
        ),
        (
            " mv  aws_security_group.foo    aws_security_group.foo2 ",
            StateMvAction("aws_security_group.foo", "aws_security_group.foo2"),
        ),
        (
            "mv docker_container.nginx 'docker_container.nginx[\"This is an example\"]'",
            StateMvAction(
                "docker_container.nginx",
                'docker_container.nginx["This is an example"]',
            ),
        ),
    ],
)
def test_state_action_from_string_valid(cmd_str, want):
    assert state_action_from_string(cmd_str) == want


@pytest.mark.parametrize(
    "cmd_str",
    [
        "mv",
        "mv aws_security_group.foo",
        "mv aws_security_group.foo aws_security_group.foo2  ws_security_group.foo3",
        "rm",
        "import",
        "import aws_security_group.foo",
        "import aws_security_group.foo foo bar",
        "foo bar baz",
        "",
        "mv foo 'bar",
    ],
)
def test_state_action_from_string_invalid(cmd_str):
    with pytest.raises(ActionError):
        state_action_from_string(cmd_str)


def test_unknown_type_message_names_input():
    with pytest.raises(ActionError, match="unknown state action type: foo bar baz"):
        state_action_from_string("foo bar baz")


@pytest.mark.parametrize(
    "cmd_str, want",
    [
        (
            "mv aws_security_group.foo aws_security_group.foo2",
            ["mv", "aws_security_group.foo", "aws_security_group.foo2"],
        ),
        (
            " mv  aws_security_group.foo    aws_security_group.foo2 ",
            ["mv", "aws_security_group.foo", "aws_security_group.foo2"],
        ),
        (
            "mv docker_container.nginx 'docker_container.nginx[\"This is an example\"]'",
            [
                "mv",
                "docker_container.nginx",
                'docker_container.nginx["This is an example"]',
            ],
        ),
    ],
)
def test_split_state_action(cmd_str, want):
    assert split_state_action(cmd_str) == want


def test_split_state_action_unmatched_quote():
    with pytest.raises(ActionError):
        split_state_action("mv foo 'bar")


def test_mv_state_update_calls_state_mv():
    tf = FakeTerraform()
    state = State(b"dummy state")
    got = StateMvAction("a.foo", "a.bar").state_update(tf, state)
    assert got == State(b"moved")
    assert tf.calls == [
        ("state_mv", state, None, "a.foo", "a.bar", ("-backup=/dev/null",))
    ]


def test_rm_state_update_calls_state_rm():
    tf = FakeTerraform()
    state = State(b"dummy state")
    got = StateRmAction(["a.foo", "a.bar"]).state_update(tf, state)
    assert got == State(b"removed")
    assert tf.calls == [("state_rm", state, ["a.foo", "a.bar"], ("-backup=/dev/null",))]


def test_import_state_update_calls_import():
    tf = FakeTerraform()
    state = State(b"dummy state")
    got = StateImportAction("a.foo", "foo").state_update(tf, state)
    assert got == State(b"imported")
    assert tf.calls == [
        (
            "import",
            state,
            "a.foo",
            "foo",
            ("-input=false", "-no-color", "-backup=/dev/null"),
        )
    ]


def test_state_action_is_abstract():
    with pytest.raises(TypeError):
        StateAction()
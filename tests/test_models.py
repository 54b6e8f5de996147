import pytest
from pydantic import ValidationError

from vdr.models import BuildAction, ContainerDescriptor, CustomAction, PullAction, RestartAction


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("restart", RestartAction()),
        ({"kind": "restart"}, RestartAction()),
        ({"pull": {"image": "repo/game", "tag": "v1"}}, PullAction(image="repo/game", tag="v1")),
        ({"build": {"context_path": "/ctx"}}, BuildAction(context_path="/ctx")),
        ({"custom": {"chdir": "/srv", "command": "make"}}, CustomAction(chdir="/srv", command="make")),
    ],
)
def test_action_spellings(raw, expected):
    desc = ContainerDescriptor.model_validate({"name": "svc1", "appid": 10, "action": raw})
    assert desc.action == expected
    assert desc.catalog_id == 10


def test_unknown_action_rejected():
    with pytest.raises(ValidationError):
        ContainerDescriptor.model_validate({"name": "svc1", "appid": 10, "action": "reboot"})


def test_pull_requires_image():
    with pytest.raises(ValidationError):
        ContainerDescriptor.model_validate({"name": "svc1", "appid": 10, "action": {"pull": {"tag": "v1"}}})


def test_invalid_name_rejected():
    with pytest.raises(ValidationError):
        ContainerDescriptor(name="../etc/passwd", catalog_id=1, action="restart")


def test_options_are_strings_and_descriptor_is_frozen():
    desc = ContainerDescriptor.model_validate(
        {"name": "svc1", "catalog_id": 1, "action": "restart", "options": {"timeout_s": 30, "force": True}}
    )
    assert desc.options == {"timeout_s": "30", "force": "True"}
    with pytest.raises(ValidationError):
        desc.name = "other"

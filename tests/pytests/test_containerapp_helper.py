from unittest.mock import patch

from scripts.deploy.containerapp_helper import ContainerAppHelper
from scripts.deploy.containerapp_models import CommandArg, CommandArgs


def _argv(mock_az):
    return mock_az.call_args[0][0]


def test_existence_checks_use_show_commands():
    helper = ContainerAppHelper()
    with patch("scripts.deploy.containerapp_helper.resource_exists", return_value=True) as mock_ok:
        assert helper.does_container_app_exist("web", "rg") is True
        assert mock_ok.call_args[0][0] == ["az", "containerapp", "show", "-n", "web", "-g", "rg", "-o", "none"]

        assert helper.does_resource_group_exist("rg") is True
        assert mock_ok.call_args[0][0] == ["az", "group", "show", "-n", "rg", "-o", "none"]

        mock_ok.return_value = False
        assert helper.does_container_app_environment_exist("env", "rg") is False


def test_get_existing_environment():
    helper = ContainerAppHelper()
    with patch("scripts.deploy.containerapp_helper.run_az_command", return_value="shared-env") as mock_az:
        assert helper.get_existing_container_app_environment("rg") == "shared-env"
        assert "[0].name" in _argv(mock_az)

    with patch("scripts.deploy.containerapp_helper.run_az_command", return_value=None):
        assert helper.get_existing_container_app_environment("rg") is None


def test_default_location_is_normalized(capsys):
    helper = ContainerAppHelper()
    with patch("scripts.deploy.containerapp_helper.run_az_command", return_value="North Central US (Stage)"):
        assert helper.get_default_container_app_location() == "northcentralusstage"
    with patch("scripts.deploy.containerapp_helper.run_az_command", return_value=None):
        assert helper.get_default_container_app_location() == "eastus2"
    assert "eastus2" in capsys.readouterr().err


def test_create_container_app_appends_optional_args():
    helper = ContainerAppHelper()
    args = CommandArgs((CommandArg("--ingress", ("external",)), CommandArg("--target-port", ("80",))))
    with patch("scripts.deploy.containerapp_helper.run_az_command") as mock_az:
        helper.create_container_app("web", "rg", "env", "repo/app:1", args)
    assert _argv(mock_az) == [
        "containerapp",
        "create",
        "-n",
        "web",
        "-g",
        "rg",
        "-i",
        "repo/app:1",
        "--environment",
        "env",
        "--ingress",
        "external",
        "--target-port",
        "80",
    ]


def test_up_adds_ingress_and_port_only_when_set():
    helper = ContainerAppHelper()
    with patch("scripts.deploy.containerapp_helper.run_az_command") as mock_az:
        helper.update_container_app_with_up("web", "rg", "repo/app:1", CommandArgs(), "internal", None)
    argv = _argv(mock_az)
    assert argv[:2] == ["containerapp", "up"]
    assert argv[-2:] == ["--ingress", "internal"]
    assert "--target-port" not in argv


def test_yaml_commands():
    helper = ContainerAppHelper()
    with patch("scripts.deploy.containerapp_helper.run_az_command") as mock_az:
        helper.create_container_app_from_yaml("web", "rg", "app.yaml")
        assert _argv(mock_az) == ["containerapp", "create", "-n", "web", "-g", "rg", "--yaml", "app.yaml"]
        helper.update_container_app_from_yaml("web", "rg", "app.yaml")
        assert _argv(mock_az) == ["containerapp", "update", "-n", "web", "-g", "rg", "--yaml", "app.yaml"]


def test_mutating_calls_honour_dry_run():
    helper = ContainerAppHelper(dry_run=True)
    with patch("scripts.deploy.containerapp_helper.run_az_command") as mock_az:
        helper.create_resource_group("rg", "eastus2")
        helper.disable_container_app_ingress("web", "rg")
    for call in mock_az.call_args_list:
        assert call.kwargs["dry_run"] is True


def test_environment_create_location_optional():
    helper = ContainerAppHelper()
    with patch("scripts.deploy.containerapp_helper.run_az_command") as mock_az:
        helper.create_container_app_environment("env", "rg")
    assert "-l" not in _argv(mock_az)


def test_dry_run_group_is_treated_as_empty():
    helper = ContainerAppHelper(dry_run=True)
    with patch("scripts.deploy.containerapp_helper.run_az_command") as mock_az, patch(
        "scripts.deploy.containerapp_helper.resource_exists"
    ) as mock_exists:
        helper.create_resource_group("new-rg", "eastus2")

        assert helper.does_resource_group_exist("new-rg") is True
        assert helper.does_container_app_exist("web", "new-rg") is False
        assert helper.does_container_app_environment_exist("web-env", "new-rg") is False
        assert helper.get_existing_container_app_environment("new-rg") is None

    mock_exists.assert_not_called()
    # Only the (printed) group create went through the runner.
    assert mock_az.call_count == 1

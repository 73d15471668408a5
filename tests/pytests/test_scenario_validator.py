from __future__ import annotations

from pathlib import Path

import pytest

from scripts.deploy.containerapp_models import DeployInputs, ScenarioInputs
from scripts.deploy.containerapp_scenario import load_yaml_config, validate_inputs, validate_scenario
from scripts.deploy.deploy_errors import ConfigurationError


@pytest.mark.parametrize(
    "image, yaml_path",
    [(None, None), ("repo/app:1", None), (None, "app.yaml"), ("repo/app:1", "app.yaml")],
)
def test_source_without_registry_fails(image, yaml_path):
    with pytest.raises(ConfigurationError) as exc:
        validate_scenario(ScenarioInputs(app_source_path="./src", image_to_deploy=image, yaml_config_path=yaml_path))
    assert "'acrName' argument must be provided" in exc.value.format()


@pytest.mark.parametrize("acr_name", [None, "myacr"])
def test_nothing_to_deploy_fails(acr_name):
    with pytest.raises(ConfigurationError) as exc:
        validate_scenario(ScenarioInputs(acr_name=acr_name))
    assert "'appSourcePath', 'imageToDeploy', or 'yamlConfigPath'" in str(exc.value)


@pytest.mark.parametrize(
    "scenario",
    [
        ScenarioInputs(app_source_path="./src", acr_name="myacr"),
        ScenarioInputs(image_to_deploy="repo/app:1"),
        ScenarioInputs(yaml_config_path="app.yaml"),
        ScenarioInputs(image_to_deploy="repo/app:1", acr_name="myacr"),
        # All three at once is accepted; the source build takes priority later.
        ScenarioInputs(app_source_path="./src", acr_name="myacr", image_to_deploy="repo/app:1", yaml_config_path="app.yaml"),
    ],
)
def test_supported_combinations_pass(scenario):
    validate_scenario(scenario)


def test_configuration_error_exit_code():
    with pytest.raises(ConfigurationError) as exc:
        validate_scenario(ScenarioInputs())
    assert exc.value.exit_code == 2


def test_validate_inputs_checks_ingress_and_port():
    inputs = DeployInputs(image_to_deploy="repo/app:1", ingress="public", target_port="99999")
    with pytest.raises(ConfigurationError) as exc:
        validate_inputs(inputs)
    assert len(exc.value.problems) == 2
    assert "'ingress' must be one of" in exc.value.problems[0]
    assert "'targetPort'" in exc.value.problems[1]


def test_validate_inputs_non_numeric_port():
    with pytest.raises(ConfigurationError):
        validate_inputs(DeployInputs(image_to_deploy="repo/app:1", target_port="http"))


def test_validate_inputs_requires_both_credentials():
    with pytest.raises(ConfigurationError) as exc:
        validate_inputs(DeployInputs(image_to_deploy="repo/app:1", acr_name="myacr", acr_username="me"))
    assert "'acrUsername' and 'acrPassword'" in str(exc.value)


def test_validate_inputs_source_path_must_be_directory(tmp_path: Path):
    inputs = DeployInputs(app_source_path=str(tmp_path / "missing"), acr_name="myacr")
    with pytest.raises(ConfigurationError) as exc:
        validate_inputs(inputs)
    assert "not a directory" in str(exc.value)

    validate_inputs(DeployInputs(app_source_path=str(tmp_path), acr_name="myacr"))


def test_validate_inputs_yaml_config(tmp_path: Path):
    good = tmp_path / "app.yaml"
    good.write_text("properties:\n  template:\n    containers: []\n")
    validate_inputs(DeployInputs(yaml_config_path=str(good)))

    bad = tmp_path / "list.yaml"
    bad.write_text("- a\n- b\n")
    with pytest.raises(ConfigurationError):
        validate_inputs(DeployInputs(yaml_config_path=str(bad)))

    with pytest.raises(ConfigurationError):
        validate_inputs(DeployInputs(yaml_config_path=str(tmp_path / "missing.yaml")))


def test_load_yaml_config_rejects_invalid_yaml(tmp_path: Path):
    p = tmp_path / "broken.yaml"
    p.write_text("properties: [unterminated\n")
    with pytest.raises(ValueError):
        load_yaml_config(p)

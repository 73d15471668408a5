"""Pre-flight validation of the supported deployment scenarios.

Supported scenarios (any combination is allowed; a source build wins over a
provided image):
- appSourcePath + acrName: build an image from source and deploy it
- imageToDeploy: deploy a previously built image
- yamlConfigPath: create/update the Container App from a YAML definition
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from scripts.deploy.containerapp_models import DeployInputs, ScenarioInputs
from scripts.deploy.deploy_errors import ConfigurationError


INGRESS_VALUES = ("external", "internal", "disabled")


def scenario_problems(scenario: ScenarioInputs) -> list[str]:
    problems: list[str] = []

    if scenario.app_source_path and not scenario.acr_name:
        problems.append("The 'acrName' argument must be provided when the 'appSourcePath' argument is provided.")

    if not (scenario.app_source_path or scenario.image_to_deploy or scenario.yaml_config_path):
        problems.append(
            "One of the following arguments must be provided: 'appSourcePath', 'imageToDeploy', or 'yamlConfigPath'."
        )

    return problems


def validate_scenario(scenario: ScenarioInputs) -> None:
    problems = scenario_problems(scenario)
    if problems:
        raise ConfigurationError(context="supported scenario arguments", problems=problems)


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Parse a Container App YAML definition; it must be a mapping."""
    if not path.is_file():
        raise FileNotFoundError(f"YAML configuration file not found: {path}")
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML configuration file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"YAML configuration file {path} must contain a mapping at the top level")
    return data


def _input_problems(inputs: DeployInputs) -> list[str]:
    problems: list[str] = []

    if inputs.ingress and inputs.ingress not in INGRESS_VALUES:
        problems.append(f"'ingress' must be one of {', '.join(INGRESS_VALUES)}; got {inputs.ingress!r}.")

    if inputs.target_port:
        try:
            port = int(inputs.target_port)
        except ValueError:
            port = 0
        if not 1 <= port <= 65535:
            problems.append(f"'targetPort' must be an integer between 1 and 65535; got {inputs.target_port!r}.")

    if bool(inputs.acr_username) != bool(inputs.acr_password):
        problems.append("'acrUsername' and 'acrPassword' must be provided together.")

    if inputs.app_source_path and not Path(inputs.app_source_path).is_dir():
        problems.append(f"'appSourcePath' is not a directory: {inputs.app_source_path}")

    if inputs.yaml_config_path:
        try:
            load_yaml_config(Path(inputs.yaml_config_path))
        except (FileNotFoundError, ValueError) as e:
            problems.append(str(e))

    return problems


def validate_inputs(inputs: DeployInputs) -> None:
    """Full pre-flight check: scenario rules first, then per-input checks."""
    problems = scenario_problems(inputs.scenario)
    problems.extend(_input_problems(inputs))
    if problems:
        raise ConfigurationError(context="deploy inputs", problems=problems)

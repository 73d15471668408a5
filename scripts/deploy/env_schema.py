"""Deterministic input schema for the Container Apps deploy step.

This module is the single source of truth for:
- which pipeline inputs exist
- how each input is spelled on the command line, in the process environment
  (GitHub Actions `INPUT_<NAME>` convention) and in an optional dotenv file
- defaults and secret handling

Precedence per input: CLI flag > process env > dotenv file > schema default.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping

from dotenv import dotenv_values

from scripts.deploy.deploy_errors import ConfigurationError


class InputsEnum(str, Enum):
    # Supported scenario inputs
    APP_SOURCE_PATH = "appSourcePath"
    ACR_NAME = "acrName"
    IMAGE_TO_DEPLOY = "imageToDeploy"
    YAML_CONFIG_PATH = "yamlConfigPath"

    # Resources
    CONTAINER_APP_NAME = "containerAppName"
    LOCATION = "location"
    RESOURCE_GROUP = "resourceGroup"
    CONTAINER_APP_ENVIRONMENT = "containerAppEnvironment"

    # Registry
    ACR_USERNAME = "acrUsername"
    ACR_PASSWORD = "acrPassword"

    # Build
    IMAGE_TO_BUILD = "imageToBuild"
    DOCKERFILE_PATH = "dockerfilePath"
    RUNTIME_STACK = "runtimeStack"

    # Container App properties
    INGRESS = "ingress"
    TARGET_PORT = "targetPort"
    ENVIRONMENT_VARIABLES = "environmentVariables"

    DISABLE_TELEMETRY = "disableTelemetry"


class CiVarsEnum(str, Enum):
    GITHUB_ACTIONS = "GITHUB_ACTIONS"
    GITHUB_RUN_ID = "GITHUB_RUN_ID"
    GITHUB_RUN_NUMBER = "GITHUB_RUN_NUMBER"


class VarsEnum(str, Enum):
    DEPLOY_HOOKS_MODULE = "DEPLOY_HOOKS_MODULE"
    DEPLOY_HOOKS_SOFT_FAIL = "DEPLOY_HOOKS_SOFT_FAIL"
    DEPLOY_ENV_FILE = "DEPLOY_ENV_FILE"
    PACK_TOOLS_DIR = "PACK_TOOLS_DIR"


@dataclass(frozen=True)
class EnvKeySpec:
    key: InputsEnum
    help: str
    default: str | None = None
    secret: bool = False

    @property
    def flag(self) -> str:
        return "--" + self.key.name.lower().replace("_", "-")

    @property
    def dest(self) -> str:
        return self.key.name.lower()

    @property
    def env_name(self) -> str:
        return input_env_name(self.key)


class EnvValidationError(ConfigurationError):
    """Raised when a dotenv file or resolved inputs fail schema validation."""


INPUTS_SCHEMA: tuple[EnvKeySpec, ...] = (
    EnvKeySpec(InputsEnum.APP_SOURCE_PATH, "Path to the application source to build into a runnable image"),
    EnvKeySpec(InputsEnum.ACR_NAME, "Name of the Azure Container Registry to push built images to"),
    EnvKeySpec(InputsEnum.IMAGE_TO_DEPLOY, "Previously built image to deploy"),
    EnvKeySpec(InputsEnum.YAML_CONFIG_PATH, "YAML file describing the Container App"),
    EnvKeySpec(InputsEnum.CONTAINER_APP_NAME, "Container App name (default: ado-task-app-<runId>-<runNumber>)"),
    EnvKeySpec(InputsEnum.LOCATION, "Azure region (default: the Container Apps service default)"),
    EnvKeySpec(InputsEnum.RESOURCE_GROUP, "Resource group (default: <containerAppName>-rg, created if missing)"),
    EnvKeySpec(InputsEnum.CONTAINER_APP_ENVIRONMENT, "Container App environment (default: discovered or <containerAppName>-env)"),
    EnvKeySpec(InputsEnum.ACR_USERNAME, "ACR username (default: log in with an access token)"),
    EnvKeySpec(InputsEnum.ACR_PASSWORD, "ACR password", secret=True),
    EnvKeySpec(InputsEnum.IMAGE_TO_BUILD, "Image to build (default: <acr>.azurecr.io/ado-task/container-app:<runId>.<runNumber>)"),
    EnvKeySpec(InputsEnum.DOCKERFILE_PATH, "Dockerfile path relative to the application source"),
    EnvKeySpec(InputsEnum.RUNTIME_STACK, "Platform version stack for the builder, e.g. python:3.9 (default: detected)"),
    EnvKeySpec(InputsEnum.INGRESS, "Ingress: external, internal or disabled (default for new apps: external)"),
    EnvKeySpec(InputsEnum.TARGET_PORT, "Target port (default for new apps: 80 for Python, else 8080)"),
    EnvKeySpec(InputsEnum.ENVIRONMENT_VARIABLES, "Space-separated KEY=VALUE pairs"),
    EnvKeySpec(InputsEnum.DISABLE_TELEMETRY, "Disable telemetry for this run", default="false"),
)


def input_env_name(key: InputsEnum) -> str:
    """GitHub Actions exposes `with:` inputs as INPUT_<NAME> (upper-cased, spaces to underscores)."""
    return "INPUT_" + key.value.upper().replace(" ", "_")


def _schema_keys(schema: Iterable[EnvKeySpec]) -> set[str]:
    return {spec.key.value for spec in schema}


def parse_dotenv_file(path: Path) -> dict[str, str]:
    """Parse dotenv file strictly.

    - Comments are ignored.
    - Keys are preserved even if they have empty values (""), so we can detect unknown keys.
    """
    kv: dict[str, str] = {}
    raw = dotenv_values(path)
    for k, v in raw.items():
        if k is None:
            continue
        key = str(k).strip()
        if not key:
            continue
        val = "" if v is None else str(v).strip()
        kv[key] = val
    return kv


def validate_known_keys(schema: Iterable[EnvKeySpec], kv: Mapping[str, str], *, context: str) -> None:
    allowed = _schema_keys(schema)
    unknown = sorted([k for k in kv.keys() if k not in allowed])
    if unknown:
        raise EnvValidationError(
            context=context,
            problems=["Unknown key(s): " + ", ".join(unknown)],
        )


def resolve_input_values(
    schema: Iterable[EnvKeySpec],
    *,
    cli: Mapping[str, str | None],
    environ: Mapping[str, str],
    file_kv: Mapping[str, str],
) -> dict[str, str]:
    """Merge the input layers. Blank values never override a lower layer."""
    out: dict[str, str] = {}
    for spec in schema:
        for candidate in (cli.get(spec.dest), environ.get(spec.env_name), file_kv.get(spec.key.value)):
            val = str(candidate or "").strip()
            if val:
                out[spec.key.value] = val
                break
    return out


def apply_defaults(schema: Iterable[EnvKeySpec], kv: dict[str, str]) -> dict[str, str]:
    out = dict(kv)
    for spec in schema:
        if spec.key.value in out and str(out.get(spec.key.value) or "").strip():
            continue
        if spec.default is None:
            continue
        out[spec.key.value] = spec.default
    return out


def format_resolved_inputs(schema: Iterable[EnvKeySpec], kv: Mapping[str, str]) -> list[str]:
    lines: list[str] = []
    for spec in schema:
        val = kv.get(spec.key.value)
        if not val:
            continue
        lines.append(f"{spec.key.value}={'***' if spec.secret else val}")
    return lines


def truthy(val: str | None) -> bool:
    v = str(val or "").strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def get_spec(schema: Iterable[EnvKeySpec], key: InputsEnum) -> EnvKeySpec:
    for spec in schema:
        if spec.key == key:
            return spec
    raise KeyError(key)

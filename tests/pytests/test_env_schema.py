from __future__ import annotations

from pathlib import Path

import pytest

from scripts.deploy.deploy_errors import ConfigurationError
from scripts.deploy.env_schema import (
    INPUTS_SCHEMA,
    EnvValidationError,
    InputsEnum,
    apply_defaults,
    format_resolved_inputs,
    get_spec,
    input_env_name,
    parse_dotenv_file,
    resolve_input_values,
    truthy,
    validate_known_keys,
)


def _write(p: Path, text: str) -> Path:
    p.write_text(text, encoding="utf-8")
    return p


def test_parse_dotenv_preserves_empty_values(tmp_path: Path) -> None:
    p = _write(tmp_path / ".env.deploy", "acrName=\ningress=\n")
    kv = parse_dotenv_file(p)
    assert kv[InputsEnum.ACR_NAME.value] == ""
    assert kv[InputsEnum.INGRESS.value] == ""


def test_unknown_keys_fail(tmp_path: Path) -> None:
    p = _write(tmp_path / ".env.deploy", "acrName=myacr\nNOT_A_KEY=1\n")
    kv = parse_dotenv_file(p)
    with pytest.raises(EnvValidationError) as exc:
        validate_known_keys(INPUTS_SCHEMA, kv, context="deploy")
    assert "NOT_A_KEY" in exc.value.format()


def test_env_validation_error_is_a_configuration_error() -> None:
    assert issubclass(EnvValidationError, ConfigurationError)


def test_input_env_name_follows_github_actions_convention() -> None:
    assert input_env_name(InputsEnum.APP_SOURCE_PATH) == "INPUT_APPSOURCEPATH"
    assert input_env_name(InputsEnum.ACR_NAME) == "INPUT_ACRNAME"


def test_spec_flags_and_dests() -> None:
    spec = get_spec(INPUTS_SCHEMA, InputsEnum.CONTAINER_APP_ENVIRONMENT)
    assert spec.flag == "--container-app-environment"
    assert spec.dest == "container_app_environment"


def test_every_input_has_a_schema_entry() -> None:
    assert {spec.key for spec in INPUTS_SCHEMA} == set(InputsEnum)


def test_resolve_precedence_cli_env_file() -> None:
    cli = {"acr_name": "from-cli", "location": None, "resource_group": "  "}
    environ = {"INPUT_ACRNAME": "from-env", "INPUT_LOCATION": "westeurope", "INPUT_RESOURCEGROUP": "rg-env"}
    file_kv = {"acrName": "from-file", "location": "northeurope", "resourceGroup": "rg-file", "ingress": "internal"}

    kv = resolve_input_values(INPUTS_SCHEMA, cli=cli, environ=environ, file_kv=file_kv)

    assert kv["acrName"] == "from-cli"
    assert kv["location"] == "westeurope"
    # Blank CLI values don't mask lower layers.
    assert kv["resourceGroup"] == "rg-env"
    assert kv["ingress"] == "internal"
    assert "appSourcePath" not in kv


def test_apply_defaults_only_fills_blanks() -> None:
    assert apply_defaults(INPUTS_SCHEMA, {})["disableTelemetry"] == "false"
    assert apply_defaults(INPUTS_SCHEMA, {"disableTelemetry": "true"})["disableTelemetry"] == "true"


def test_format_resolved_inputs_masks_secrets() -> None:
    lines = format_resolved_inputs(INPUTS_SCHEMA, {"acrUsername": "me", "acrPassword": "hunter2"})
    assert "acrUsername=me" in lines
    assert "acrPassword=***" in lines
    assert not any("hunter2" in line for line in lines)


def test_truthy() -> None:
    assert truthy("true")
    assert truthy("1")
    assert truthy("Yes")
    assert not truthy("false")
    assert not truthy("")
    assert not truthy(None)

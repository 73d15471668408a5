#!/usr/bin/env python3
"""Build and deploy an application to Azure Container Apps from a pipeline step.

Scenarios (see containerapp_scenario.py):
- appSourcePath + acrName: build from source (Dockerfile or Oryx++ builder), push, deploy
- imageToDeploy: deploy a previously built image
- yamlConfigPath: create/update from a Container App YAML definition

Inputs come from CLI flags, GitHub Actions `INPUT_*` env vars or a dotenv file
(see env_schema.py). The run is idempotent: resources are reused when they
exist and created with deterministic names when they don't.

Prereqs:
- az login (the pipeline's Azure login step)
- docker (for builds, registry login and telemetry)

Example:
    python scripts/deploy/azure_deploy_containerapp.py --app-source-path ./app --acr-name myacr
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Mapping

# Allow running as a script without installing the package.
sys.path.append(str(Path(__file__).resolve().parents[2]))

from scripts.deploy.azure_utils import COMMAND_ERRORS, describe_command_error, log_error
from scripts.deploy.container_registry_helper import ContainerRegistryHelper
from scripts.deploy.containerapp_args import build_deployment_plan
from scripts.deploy.containerapp_executor import execute_deployment
from scripts.deploy.containerapp_helper import ContainerAppHelper
from scripts.deploy.containerapp_image import authenticate_registry, build_and_push_image, existing_image_plan
from scripts.deploy.containerapp_models import DeployInputs, DeploymentResult
from scripts.deploy.containerapp_resources import resolve_resources
from scripts.deploy.containerapp_scenario import validate_inputs
from scripts.deploy.deploy_errors import ConfigurationError, DeployError, ResourceResolutionError
from scripts.deploy.deploy_hooks import DeployContext, DeployHooks, load_hooks
from scripts.deploy.env_schema import (
    INPUTS_SCHEMA,
    CiVarsEnum,
    EnvValidationError,
    InputsEnum,
    VarsEnum,
    apply_defaults,
    format_resolved_inputs,
    parse_dotenv_file,
    resolve_input_values,
    validate_known_keys,
)
from scripts.deploy.image_build_helper import ImageBuildHelper
from scripts.deploy.telemetry_helper import TelemetryHelper


DEFAULT_ENV_FILE = ".env.deploy"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build and deploy an application to Azure Container Apps")

    for spec in INPUTS_SCHEMA:
        if spec.key == InputsEnum.DISABLE_TELEMETRY:
            parser.add_argument(spec.flag, dest=spec.dest, action=argparse.BooleanOptionalAction, default=None, help=spec.help)
        else:
            parser.add_argument(spec.flag, dest=spec.dest, default=None, help=f"{spec.help} (env: {spec.env_name})")

    parser.add_argument(
        "--env-file",
        default=None,
        help=f"Dotenv file with inputs keyed by input name (default: ./{DEFAULT_ENV_FILE} when present)",
    )
    parser.add_argument("--hooks-module", default=None, help="Deploy customization module or file path")
    parser.add_argument(
        "--hooks-soft-fail",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Downgrade hook failures to warnings",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print mutating az/docker/pack commands instead of running them",
    )
    return parser


def load_deploy_inputs(args: argparse.Namespace, environ: Mapping[str, str]) -> DeployInputs:
    env_file = (args.env_file or environ.get(VarsEnum.DEPLOY_ENV_FILE.value) or "").strip()
    if env_file:
        env_path = Path(env_file).expanduser().resolve()
        if not env_path.exists():
            raise EnvValidationError(context="env file", problems=[f"Env file not found: {env_path}"])
    else:
        env_path = Path.cwd() / DEFAULT_ENV_FILE

    file_kv: dict[str, str] = {}
    if env_path.exists():
        file_kv = parse_dotenv_file(env_path)
        validate_known_keys(INPUTS_SCHEMA, file_kv, context=f"deploy ({env_path.name})")

    cli: dict[str, str | None] = {}
    for spec in INPUTS_SCHEMA:
        val = getattr(args, spec.dest, None)
        if isinstance(val, bool):
            val = "true" if val else "false"
        cli[spec.dest] = val

    kv = resolve_input_values(INPUTS_SCHEMA, cli=cli, environ=environ, file_kv=file_kv)
    kv = apply_defaults(INPUTS_SCHEMA, kv)

    for line in format_resolved_inputs(INPUTS_SCHEMA, kv):
        print(f"[inputs] {line}")

    return DeployInputs.from_mapping(
        kv,
        run_id=environ.get(CiVarsEnum.GITHUB_RUN_ID.value, ""),
        run_number=environ.get(CiVarsEnum.GITHUB_RUN_NUMBER.value, ""),
    )


def configure_azure_cli(app_helper: ContainerAppHelper) -> None:
    try:
        app_helper.set_azure_cli_dynamic_install()
    except COMMAND_ERRORS as e:
        raise ResourceResolutionError(
            f"Unable to set Azure CLI to dynamically install extensions: {describe_command_error(e)}"
        ) from e


def run_deployment(
    ctx: DeployContext,
    *,
    hooks: DeployHooks,
    app_helper: ContainerAppHelper,
    registry_helper: ContainerRegistryHelper,
    build_helper: ImageBuildHelper,
    telemetry: TelemetryHelper,
) -> DeploymentResult:
    """Validate → resolve resources → registry auth → build → arguments → deploy."""
    hooks.call("pre_validate_inputs", ctx)
    inputs = ctx.inputs
    validate_inputs(inputs)

    configure_azure_cli(app_helper)

    identity = resolve_resources(inputs, app_helper)
    hooks.call("post_resolve_resources", ctx, identity)

    if inputs.acr_name:
        authenticate_registry(inputs, registry_helper)

    if inputs.app_source_path:
        image = build_and_push_image(inputs, build_helper, registry_helper)
    else:
        image = existing_image_plan(inputs)
    telemetry.set_scenario(image.scenario)

    plan = None if inputs.yaml_config_path else build_deployment_plan(inputs, identity, image)
    hooks.call("pre_deploy", ctx, image, plan)

    result = execute_deployment(inputs, identity, image, plan, app_helper)
    hooks.call("post_deploy", ctx, result)
    return result


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    repo_root = Path.cwd()

    try:
        inputs = load_deploy_inputs(args, os.environ)
    except ConfigurationError as e:
        log_error(e.format())
        return e.exit_code

    try:
        hooks = load_hooks(repo_root, module_path=args.hooks_module, soft_fail=args.hooks_soft_fail)
    except ImportError as e:
        log_error(f"[hooks] {e}")
        return 1

    telemetry = TelemetryHelper(inputs.disable_telemetry)
    app_helper = ContainerAppHelper(dry_run=args.dry_run)
    registry_helper = ContainerRegistryHelper(dry_run=args.dry_run)
    build_helper = ImageBuildHelper(disable_telemetry=inputs.disable_telemetry, dry_run=args.dry_run)
    ctx = DeployContext(repo_root=repo_root, inputs=inputs, args=args)

    try:
        result = run_deployment(
            ctx,
            hooks=hooks,
            app_helper=app_helper,
            registry_helper=registry_helper,
            build_helper=build_helper,
            telemetry=telemetry,
        )
        telemetry.set_successful_result()
        print("\n[done] Deployed.")
        for line in result.summary_lines():
            print(line)
        return 0
    except DeployError as e:
        telemetry.set_failed_result(str(e))
        hooks.notify_error(ctx, e)
        log_error(e.format())
        return e.exit_code
    except Exception as e:
        telemetry.set_failed_result(str(e))
        hooks.notify_error(ctx, e)
        raise
    finally:
        telemetry.send_logs()


if __name__ == "__main__":
    raise SystemExit(main())

"""Container App property arguments and create / update / up selection.

Only used when no YAML configuration file is provided.

The `update` command cannot change ingress, so any ingress-affecting input on
an existing app routes to `up` (a PATCH of workload + ingress). New apps get
ingress defaults; existing apps only get what was explicitly provided.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass

from scripts.deploy.containerapp_models import (
    CommandArg,
    CommandArgs,
    DeployInputs,
    DeploymentPlan,
    ImagePlan,
    IngressPlan,
    ResourceIdentity,
)
from scripts.deploy.deploy_errors import ConfigurationError


DEFAULT_INGRESS = "external"
DISABLED_INGRESS = "disabled"
PYTHON_TARGET_PORT = "80"
DEFAULT_TARGET_PORT = "8080"

REGISTRY_SERVER_FLAG = "--registry-server"
REGISTRY_USERNAME_FLAG = "--registry-username"
REGISTRY_PASSWORD_FLAG = "--registry-password"
INGRESS_FLAG = "--ingress"
TARGET_PORT_FLAG = "--target-port"
ENV_VARS_FLAG = "--env-vars"
REPLACE_ENV_VARS_FLAG = "--replace-env-vars"

# Values each emitted flag takes; None: every token up to the next flag.
FLAG_ARITY: dict[str, int | None] = {
    REGISTRY_SERVER_FLAG: 1,
    REGISTRY_USERNAME_FLAG: 1,
    REGISTRY_PASSWORD_FLAG: 1,
    INGRESS_FLAG: 1,
    TARGET_PORT_FLAG: 1,
    ENV_VARS_FLAG: None,
    REPLACE_ENV_VARS_FLAG: None,
}


@dataclass(frozen=True)
class ArgValues:
    """The values carried by a CommandArgs; None/empty for flags that were not emitted."""

    registry_server: str | None = None
    registry_username: str | None = None
    registry_password: str | None = None
    ingress: str | None = None
    target_port: str | None = None
    env_vars: tuple[str, ...] = ()
    replace_env_vars: bool = False


def should_use_update_command(*, app_exists: bool, ingress: str | None, target_port: str | None) -> bool:
    return app_exists and not target_port and (not ingress or ingress == DISABLED_INGRESS)


def should_pass_registry_args(*, app_exists: bool, use_update_command: bool) -> bool:
    # Skipped only on the `up` path of an existing app.
    return not (app_exists and not use_update_command)


def is_python_stack(runtime_stack: str | None) -> bool:
    if not runtime_stack:
        return False
    return runtime_stack.split(":", 1)[0].strip().lower() == "python"


def default_target_port(runtime_stack: str | None) -> str:
    return PYTHON_TARGET_PORT if is_python_stack(runtime_stack) else DEFAULT_TARGET_PORT


def split_environment_variables(raw: str | None) -> tuple[str, ...]:
    """Split `KEY=VALUE KEY2="a b"` shell-style into KEY=VALUE tokens."""
    if not raw:
        return ()
    try:
        return tuple(shlex.split(raw))
    except ValueError as e:
        raise ConfigurationError(context="environmentVariables", problems=[f"Cannot parse environment variables: {e}"]) from e


def resolve_ingress(inputs: DeployInputs, identity: ResourceIdentity, image: ImagePlan) -> IngressPlan:
    ingress = inputs.ingress
    target_port = inputs.target_port

    if identity.app_exists:
        # Existing app: keep explicit values only; ingress is applied by `up` or a separate disable call.
        return IngressPlan(ingress=ingress, target_port=target_port, ingress_enabled=ingress != DISABLED_INGRESS)

    if not ingress:
        ingress = DEFAULT_INGRESS
        print(f"⚙️  [deploy] Default ingress value: {ingress}")

    if ingress == DISABLED_INGRESS:
        print("⚙️  [deploy] Ingress is disabled for this Container App.")
        return IngressPlan(ingress=ingress, target_port=target_port, ingress_enabled=False)

    if not target_port:
        target_port = default_target_port(image.runtime_stack)
        print(f"⚙️  [deploy] Default target port: {target_port}")

    return IngressPlan(ingress=ingress, target_port=target_port, ingress_enabled=True)


def build_deployment_plan(inputs: DeployInputs, identity: ResourceIdentity, image: ImagePlan) -> DeploymentPlan:
    use_update = should_use_update_command(
        app_exists=identity.app_exists, ingress=inputs.ingress, target_port=inputs.target_port
    )
    ingress = resolve_ingress(inputs, identity, image)

    args: list[CommandArg] = []

    if inputs.has_registry_credentials and should_pass_registry_args(
        app_exists=identity.app_exists, use_update_command=use_update
    ):
        args.append(CommandArg(REGISTRY_SERVER_FLAG, (str(inputs.acr_login_server),)))
        args.append(CommandArg(REGISTRY_USERNAME_FLAG, (str(inputs.acr_username),)))
        args.append(CommandArg(REGISTRY_PASSWORD_FLAG, (str(inputs.acr_password),)))

    if not identity.app_exists and ingress.ingress_enabled:
        args.append(CommandArg(INGRESS_FLAG, (str(ingress.ingress),)))
        args.append(CommandArg(TARGET_PORT_FLAG, (str(ingress.target_port),)))

    env_vars = split_environment_variables(inputs.environment_variables)
    if env_vars:
        # `update` replaces the whole env var set; `create` and `up` add to it.
        args.append(CommandArg(REPLACE_ENV_VARS_FLAG if use_update else ENV_VARS_FLAG, env_vars))

    return DeploymentPlan(should_use_update_command=use_update, ingress=ingress, command_args=CommandArgs(tuple(args)))


def parse_command_args(argv: list[str]) -> CommandArgs:
    """Inverse of `CommandArgs.to_argv()` for the flags this module emits."""
    return CommandArgs.from_argv(argv, FLAG_ARITY)


def _single(args: CommandArgs, flag: str) -> str | None:
    values = args.get(flag)
    return values[0] if values else None


def arg_values(args: CommandArgs) -> ArgValues:
    """Read the emitted values back out of a CommandArgs."""
    replace = args.get(REPLACE_ENV_VARS_FLAG)
    env_vars = replace if replace is not None else (args.get(ENV_VARS_FLAG) or ())
    return ArgValues(
        registry_server=_single(args, REGISTRY_SERVER_FLAG),
        registry_username=_single(args, REGISTRY_USERNAME_FLAG),
        registry_password=_single(args, REGISTRY_PASSWORD_FLAG),
        ingress=_single(args, INGRESS_FLAG),
        target_port=_single(args, TARGET_PORT_FLAG),
        env_vars=tuple(env_vars),
        replace_env_vars=replace is not None,
    )

"""Terminal create / update / up calls against the Container App."""

from __future__ import annotations

from scripts.deploy.azure_utils import COMMAND_ERRORS, describe_command_error
from scripts.deploy.containerapp_args import DISABLED_INGRESS
from scripts.deploy.containerapp_helper import ContainerAppHelper
from scripts.deploy.containerapp_models import (
    DeployInputs,
    DeploymentPlan,
    DeploymentResult,
    DeployState,
    ImagePlan,
    ResourceIdentity,
)
from scripts.deploy.deploy_errors import DeploymentError


def resolve_deploy_state(identity: ResourceIdentity, plan: DeploymentPlan | None) -> DeployState:
    if not identity.app_exists:
        return DeployState.NOT_EXISTS
    if plan is not None and not plan.should_use_update_command:
        return DeployState.EXISTS_UP_PATH
    return DeployState.EXISTS_UPDATE_PATH


def _require_image(image: ImagePlan) -> str:
    if not image.image_to_deploy:
        raise DeploymentError("No image to deploy was provided or built.")
    return image.image_to_deploy


def _create(inputs: DeployInputs, identity: ResourceIdentity, image: ImagePlan, plan: DeploymentPlan | None, app_helper: ContainerAppHelper) -> None:
    name, rg = identity.app_name, identity.resource_group
    if inputs.yaml_config_path:
        print(f"🚀 [deploy] Creating Container App '{name}' from YAML configuration file")
        app_helper.create_container_app_from_yaml(name, rg, inputs.yaml_config_path)
        return

    assert plan is not None
    print(f"🚀 [deploy] Creating Container App '{name}'")
    app_helper.create_container_app(name, rg, str(identity.environment_name), _require_image(image), plan.command_args)


def _update(inputs: DeployInputs, identity: ResourceIdentity, image: ImagePlan, plan: DeploymentPlan, app_helper: ContainerAppHelper) -> None:
    name, rg = identity.app_name, identity.resource_group
    image_to_deploy = _require_image(image)

    if plan.should_use_update_command:
        if inputs.has_registry_credentials:
            print(f"🔐 [deploy] Updating registry details on Container App '{name}'")
            app_helper.update_container_app_registry_details(
                name, rg, str(inputs.acr_login_server), str(inputs.acr_username), str(inputs.acr_password)
            )
        print(f"🚀 [deploy] Updating Container App '{name}'")
        app_helper.update_container_app(name, rg, image_to_deploy, plan.command_args)
    else:
        print(f"🚀 [deploy] Updating Container App '{name}' with 'up'")
        app_helper.update_container_app_with_up(
            name, rg, image_to_deploy, plan.command_args, plan.ingress.ingress, plan.ingress.target_port
        )

    # The update/up argument set cannot turn ingress off.
    if plan.ingress.ingress == DISABLED_INGRESS:
        print(f"🚫 [deploy] Disabling ingress on Container App '{name}'")
        app_helper.disable_container_app_ingress(name, rg)


def execute_deployment(
    inputs: DeployInputs,
    identity: ResourceIdentity,
    image: ImagePlan,
    plan: DeploymentPlan | None,
    app_helper: ContainerAppHelper,
) -> DeploymentResult:
    """Create or update the Container App. `plan` is None for YAML-driven deployments."""
    state = resolve_deploy_state(identity, plan)
    try:
        if state == DeployState.NOT_EXISTS:
            _create(inputs, identity, image, plan, app_helper)
        elif inputs.yaml_config_path:
            print(f"🚀 [deploy] Updating Container App '{identity.app_name}' from YAML configuration file")
            app_helper.update_container_app_from_yaml(identity.app_name, identity.resource_group, inputs.yaml_config_path)
        else:
            assert plan is not None
            _update(inputs, identity, image, plan, app_helper)
    except COMMAND_ERRORS as e:
        raise DeploymentError(
            f"Failed to deploy Container App '{identity.app_name}': {describe_command_error(e)}"
        ) from e

    return DeploymentResult(
        identity=identity,
        image=image,
        state=state,
        used_yaml_config=bool(inputs.yaml_config_path),
        plan=plan,
    )

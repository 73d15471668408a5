"""Resolve (and create on first use) the resources a Container App needs.

Every name follows the same precedence: explicit input, then an existing
resource discovered in Azure, then a generated default that gets created.
An explicitly provided resource group is never checked or created here.
"""

from __future__ import annotations

from scripts.deploy.azure_utils import COMMAND_ERRORS, describe_command_error
from scripts.deploy.containerapp_helper import ContainerAppHelper
from scripts.deploy.containerapp_models import DeployInputs, ResourceIdentity
from scripts.deploy.deploy_errors import ResourceResolutionError


def default_container_app_name(run_id: str, run_number: str) -> str:
    # Container App names cannot contain '.'.
    return f"ado-task-app-{run_id}-{run_number}".replace(".", "-")


def get_container_app_name(inputs: DeployInputs) -> str:
    if inputs.container_app_name:
        return inputs.container_app_name
    name = default_container_app_name(inputs.run_id, inputs.run_number)
    print(f"🏷️  [deploy] Default Container App name: {name}")
    return name


def get_location(inputs: DeployInputs, app_helper: ContainerAppHelper) -> str:
    if inputs.location:
        return inputs.location
    location = app_helper.get_default_container_app_location()
    print(f"🌍 [deploy] Default location: {location}")
    return location


def get_or_create_resource_group(
    inputs: DeployInputs,
    app_helper: ContainerAppHelper,
    *,
    container_app_name: str,
    location: str,
) -> str:
    if inputs.resource_group:
        return inputs.resource_group

    resource_group = f"{container_app_name}-rg"
    print(f"🏷️  [deploy] Default resource group name: {resource_group}")

    if not app_helper.does_resource_group_exist(resource_group):
        print(f"🏗️  [deploy] Creating resource group '{resource_group}' in '{location}'")
        app_helper.create_resource_group(resource_group, location)

    return resource_group


def get_or_create_container_app_environment(
    inputs: DeployInputs,
    app_helper: ContainerAppHelper,
    *,
    container_app_name: str,
    resource_group: str,
    location: str,
) -> str:
    environment = inputs.container_app_environment

    if not environment:
        existing = app_helper.get_existing_container_app_environment(resource_group)
        if existing:
            print(f"♻️  [deploy] Existing Container App environment found in resource group: {existing}")
            return existing

        environment = f"{container_app_name}-env"
        print(f"🏷️  [deploy] Default Container App environment name: {environment}")

    if not app_helper.does_container_app_environment_exist(environment, resource_group):
        print(f"🏗️  [deploy] Creating Container App environment '{environment}'")
        app_helper.create_container_app_environment(environment, resource_group, location)

    return environment


def resolve_resources(inputs: DeployInputs, app_helper: ContainerAppHelper) -> ResourceIdentity:
    try:
        app_name = get_container_app_name(inputs)
        location = get_location(inputs, app_helper)
        resource_group = get_or_create_resource_group(
            inputs, app_helper, container_app_name=app_name, location=location
        )

        app_exists = app_helper.does_container_app_exist(app_name, resource_group)
        print(f"🔎 [deploy] Container App '{app_name}' {'exists' if app_exists else 'does not exist yet'}")

        environment: str | None = None
        if not app_exists:
            environment = get_or_create_container_app_environment(
                inputs,
                app_helper,
                container_app_name=app_name,
                resource_group=resource_group,
                location=location,
            )
    except COMMAND_ERRORS as e:
        raise ResourceResolutionError(f"Failed to resolve Azure resources: {describe_command_error(e)}") from e

    return ResourceIdentity(
        app_name=app_name,
        resource_group=resource_group,
        location=location,
        environment_name=environment,
        app_exists=app_exists,
    )

"""Registry authentication and image build-path selection.

A Dockerfile (provided or found at the root of the source) always wins over
the builder; the two paths are never combined. Whatever path builds the
image, the result is pushed to the registry last.
"""

from __future__ import annotations

from pathlib import Path

from scripts.deploy.azure_utils import COMMAND_ERRORS, describe_command_error
from scripts.deploy.container_registry_helper import ContainerRegistryHelper
from scripts.deploy.containerapp_models import DeployInputs, ImagePlan, ImageScenario
from scripts.deploy.deploy_errors import BuildError
from scripts.deploy.image_build_helper import ImageBuildHelper


DEFAULT_IMAGE_REPOSITORY = "ado-task/container-app"


def authenticate_registry(inputs: DeployInputs, registry_helper: ContainerRegistryHelper) -> None:
    acr_name = inputs.acr_name
    if not acr_name:
        return
    try:
        if inputs.acr_username and inputs.acr_password:
            print(f"🔐 [acr] Logging in to ACR instance '{acr_name}' with username and password credentials")
            registry_helper.login_acr_with_username_password(acr_name, inputs.acr_username, inputs.acr_password)
        else:
            print(f"🔐 [acr] No ACR credentials provided; logging in to ACR instance '{acr_name}' with an access token")
            registry_helper.login_acr_with_access_token(acr_name)
    except COMMAND_ERRORS as e:
        raise BuildError(f"Failed to log in to ACR '{acr_name}': {describe_command_error(e)}") from e


def get_image_to_build(inputs: DeployInputs) -> str:
    if inputs.image_to_build:
        return inputs.image_to_build
    image = f"{inputs.acr_login_server}/{DEFAULT_IMAGE_REPOSITORY}:{inputs.run_id}.{inputs.run_number}"
    print(f"🏷️  [build] Default image to build: {image}")
    return image


def get_dockerfile_path(inputs: DeployInputs) -> Path | None:
    """Explicit dockerfilePath (relative to the source) wins; else look for <source>/Dockerfile."""
    source = Path(inputs.app_source_path or ".")
    if inputs.dockerfile_path:
        dockerfile = source / inputs.dockerfile_path
        if not dockerfile.is_file():
            raise BuildError(f"Dockerfile not found: {dockerfile}")
        return dockerfile

    print("🔎 [build] No Dockerfile path provided; checking for Dockerfile at root of application source.")
    root_dockerfile = source / "Dockerfile"
    if root_dockerfile.is_file():
        print("🔎 [build] Dockerfile found at root of application source.")
        return root_dockerfile
    return None


def _build_with_builder(inputs: DeployInputs, build_helper: ImageBuildHelper, image_to_build: str) -> str:
    source = inputs.app_source_path or "."
    build_helper.install_pack_cli()

    runtime_stack = inputs.runtime_stack
    if not runtime_stack:
        runtime_stack = build_helper.determine_runtime_stack(source)
        if not runtime_stack:
            raise BuildError(
                f"Unable to determine the runtime stack of '{source}'; provide the 'runtimeStack' argument."
            )
        print(f"🔎 [build] Runtime stack determined to be: {runtime_stack}")

    print(f"🏗️  [build] Building image '{image_to_build}' using the Oryx++ Builder")
    build_helper.set_default_builder()
    build_helper.create_runnable_app_image(image_to_build, source, runtime_stack)
    return runtime_stack


def build_and_push_image(
    inputs: DeployInputs,
    build_helper: ImageBuildHelper,
    registry_helper: ContainerRegistryHelper,
) -> ImagePlan:
    image_to_build = get_image_to_build(inputs)

    image_to_deploy = inputs.image_to_deploy
    if not image_to_deploy:
        image_to_deploy = image_to_build
        print(f"🏷️  [build] Default image to deploy: {image_to_deploy}")

    dockerfile_path = get_dockerfile_path(inputs)

    try:
        if dockerfile_path is not None:
            print(f"🏗️  [build] Building image '{image_to_build}' using the provided Dockerfile")
            build_helper.create_runnable_app_image_from_dockerfile(
                image_to_build, inputs.app_source_path or ".", str(dockerfile_path)
            )
            scenario = ImageScenario.DOCKERFILE
            runtime_stack = inputs.runtime_stack
        else:
            runtime_stack = _build_with_builder(inputs, build_helper, image_to_build)
            scenario = ImageScenario.BUILDER

        print(f"📦 [build] Pushing image '{image_to_build}'")
        registry_helper.push_image_to_acr(image_to_build)
    except COMMAND_ERRORS as e:
        raise BuildError(f"Failed to build or push image '{image_to_build}': {describe_command_error(e)}") from e

    return ImagePlan(
        scenario=scenario,
        image_to_deploy=image_to_deploy,
        image_to_build=image_to_build,
        dockerfile_path=dockerfile_path,
        runtime_stack=runtime_stack,
    )


def existing_image_plan(inputs: DeployInputs) -> ImagePlan:
    """No source to build: deploy the provided image (or only the YAML config)."""
    return ImagePlan(
        scenario=ImageScenario.IMAGE,
        image_to_deploy=inputs.image_to_deploy,
        runtime_stack=inputs.runtime_stack,
    )

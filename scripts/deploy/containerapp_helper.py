"""Azure CLI calls against Container Apps, environments and resource groups.

Every method maps to exactly one `az` invocation. Errors surface as
subprocess.CalledProcessError / FileNotFoundError; callers translate them.
"""

from __future__ import annotations

import re

from scripts.deploy.azure_utils import log_warning, resource_exists, run_az_command
from scripts.deploy.containerapp_models import CommandArgs


DEFAULT_CONTAINER_APP_LOCATION = "eastus2"
_LOCATION_STRIP = re.compile(r'[\s()"]')


class ContainerAppHelper:
    def __init__(self, *, dry_run: bool = False):
        self.dry_run = dry_run
        # Resource groups whose creation was only printed; they hold nothing yet.
        self._dry_run_groups: set[str] = set()

    def set_azure_cli_dynamic_install(self) -> None:
        """Let the Azure CLI install the containerapp extension on first use."""
        run_az_command(
            ["config", "set", "extension.use_dynamic_install=yes_without_prompt"],
            capture_output=False,
            dry_run=self.dry_run,
        )

    # Lookups

    def does_container_app_exist(self, name: str, resource_group: str) -> bool:
        if resource_group in self._dry_run_groups:
            return False
        return resource_exists(["az", "containerapp", "show", "-n", name, "-g", resource_group, "-o", "none"])

    def does_container_app_environment_exist(self, name: str, resource_group: str) -> bool:
        if resource_group in self._dry_run_groups:
            return False
        return resource_exists(["az", "containerapp", "env", "show", "-n", name, "-g", resource_group, "-o", "none"])

    def does_resource_group_exist(self, resource_group: str) -> bool:
        if resource_group in self._dry_run_groups:
            return True
        return resource_exists(["az", "group", "show", "-n", resource_group, "-o", "none"])

    def get_existing_container_app_environment(self, resource_group: str) -> str | None:
        """Name of the first Container App environment in the group, if any."""
        if resource_group in self._dry_run_groups:
            return None
        res = run_az_command(
            ["containerapp", "env", "list", "-g", resource_group, "--query", "[0].name", "-o", "json"],
            capture_output=True,
        )
        name = str(res or "").strip()
        return name or None

    def get_default_container_app_location(self) -> str:
        """First location the Microsoft.App provider lists for containerApps, normalized to a region name."""
        res = run_az_command(
            [
                "provider",
                "show",
                "-n",
                "Microsoft.App",
                "--query",
                "resourceTypes[?resourceType=='containerApps'].locations[] | [0]",
                "-o",
                "json",
            ],
            capture_output=True,
        )
        location = _LOCATION_STRIP.sub("", str(res or "").lower())
        if not location:
            log_warning(
                f"[deploy] No Container Apps location reported by the Microsoft.App provider; using '{DEFAULT_CONTAINER_APP_LOCATION}'"
            )
            return DEFAULT_CONTAINER_APP_LOCATION
        return location

    # Resource creation

    def create_resource_group(self, name: str, location: str) -> None:
        run_az_command(["group", "create", "-n", name, "-l", location, "-o", "none"], capture_output=False, dry_run=self.dry_run)
        if self.dry_run:
            self._dry_run_groups.add(name)

    def create_container_app_environment(self, name: str, resource_group: str, location: str | None = None) -> None:
        args = ["containerapp", "env", "create", "-n", name, "-g", resource_group]
        if location:
            args += ["-l", location]
        run_az_command(args + ["-o", "none"], capture_output=False, dry_run=self.dry_run)

    # Container App create / update

    def create_container_app(
        self,
        name: str,
        resource_group: str,
        environment: str,
        image_to_deploy: str,
        optional_args: CommandArgs,
    ) -> None:
        run_az_command(
            ["containerapp", "create", "-n", name, "-g", resource_group, "-i", image_to_deploy, "--environment", environment]
            + optional_args.to_argv(),
            capture_output=False,
            dry_run=self.dry_run,
        )

    def create_container_app_from_yaml(self, name: str, resource_group: str, yaml_config_path: str) -> None:
        run_az_command(
            ["containerapp", "create", "-n", name, "-g", resource_group, "--yaml", yaml_config_path],
            capture_output=False,
            dry_run=self.dry_run,
        )

    def update_container_app(self, name: str, resource_group: str, image_to_deploy: str, optional_args: CommandArgs) -> None:
        run_az_command(
            ["containerapp", "update", "-n", name, "-g", resource_group, "-i", image_to_deploy] + optional_args.to_argv(),
            capture_output=False,
            dry_run=self.dry_run,
        )

    def update_container_app_with_up(
        self,
        name: str,
        resource_group: str,
        image_to_deploy: str,
        optional_args: CommandArgs,
        ingress: str | None = None,
        target_port: str | None = None,
    ) -> None:
        """Merge-style update; the only update call that can also change ingress settings."""
        args = ["containerapp", "up", "-n", name, "-g", resource_group, "-i", image_to_deploy] + optional_args.to_argv()
        if ingress:
            args += ["--ingress", ingress]
        if target_port:
            args += ["--target-port", target_port]
        run_az_command(args, capture_output=False, dry_run=self.dry_run)

    def update_container_app_from_yaml(self, name: str, resource_group: str, yaml_config_path: str) -> None:
        run_az_command(
            ["containerapp", "update", "-n", name, "-g", resource_group, "--yaml", yaml_config_path],
            capture_output=False,
            dry_run=self.dry_run,
        )

    def update_container_app_registry_details(
        self,
        name: str,
        resource_group: str,
        registry_server: str,
        registry_username: str,
        registry_password: str,
    ) -> None:
        run_az_command(
            [
                "containerapp",
                "registry",
                "set",
                "-n",
                name,
                "-g",
                resource_group,
                "--server",
                registry_server,
                "--username",
                registry_username,
                "--password",
                registry_password,
                "-o",
                "none",
            ],
            capture_output=False,
            dry_run=self.dry_run,
        )

    def disable_container_app_ingress(self, name: str, resource_group: str) -> None:
        run_az_command(
            ["containerapp", "ingress", "disable", "-n", name, "-g", resource_group, "-o", "none"],
            capture_output=False,
            dry_run=self.dry_run,
        )

"""Azure Container Registry login and image push via the Docker CLI."""

from __future__ import annotations

from scripts.deploy.azure_utils import run_az_command, run_command
from scripts.deploy.deploy_errors import BuildError


# `az acr login --expose-token` tokens are accepted with this placeholder username.
ACR_TOKEN_USERNAME = "00000000-0000-0000-0000-000000000000"


class ContainerRegistryHelper:
    def __init__(self, *, dry_run: bool = False):
        self.dry_run = dry_run

    def _docker_login(self, *, server: str, username: str, secret: str) -> None:
        # --password-stdin keeps the secret off the process list and out of logs.
        run_command(
            ["docker", "login", "--username", username, "--password-stdin", server],
            capture_output=True,
            input_text=secret,
            dry_run=self.dry_run,
        )

    def login_acr_with_username_password(self, acr_name: str, username: str, password: str) -> None:
        self._docker_login(server=f"{acr_name}.azurecr.io", username=username, secret=password)

    def login_acr_with_access_token(self, acr_name: str) -> None:
        token = run_az_command(
            ["acr", "login", "--name", acr_name, "--expose-token", "--output", "tsv", "--query", "accessToken"],
            capture_output=True,
            parse_json=False,
        )
        token = str(token or "").strip()
        if not token and not self.dry_run:
            raise BuildError(f"'az acr login' returned no access token for registry '{acr_name}'")
        self._docker_login(server=f"{acr_name}.azurecr.io", username=ACR_TOKEN_USERNAME, secret=token)

    def push_image_to_acr(self, image: str) -> None:
        run_command(["docker", "push", image], capture_output=False, dry_run=self.dry_run)

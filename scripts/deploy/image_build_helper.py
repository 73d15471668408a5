"""Build runnable application images with Docker or the Oryx++ buildpack builder."""

from __future__ import annotations

import os
import shutil
import stat
import sys
import tarfile
import tempfile
from pathlib import Path

import requests

from scripts.deploy.azure_utils import run_command
from scripts.deploy.deploy_errors import BuildError
from scripts.deploy.env_schema import VarsEnum


ORYX_CLI_IMAGE = "mcr.microsoft.com/oryx/cli:debian-buster-20230207.2"
ORYX_BUILDER_IMAGE = "mcr.microsoft.com/oryx/builder:20230208.1"
ORYX_RUN_IMAGE_PREFIX = "mcr.microsoft.com/oryx"

PACK_CLI_VERSION = "0.27.0"
PACK_CLI_URLS = {
    "linux": f"https://github.com/buildpacks/pack/releases/download/v{PACK_CLI_VERSION}/pack-v{PACK_CLI_VERSION}-linux.tgz",
    "darwin": f"https://github.com/buildpacks/pack/releases/download/v{PACK_CLI_VERSION}/pack-v{PACK_CLI_VERSION}-macos.tgz",
}

CALLER_ID = "github-actions-v1"
RUNTIME_ARG_PREFIX = "ARG RUNTIME="


def parse_runtime_stack(dockerfile_text: str) -> str | None:
    """Extract the platform/version from the `ARG RUNTIME=<stack>` line Oryx emits."""
    for line in dockerfile_text.splitlines():
        line = line.strip()
        if line.startswith(RUNTIME_ARG_PREFIX):
            stack = line[len(RUNTIME_ARG_PREFIX):].strip().strip('"')
            return stack or None
    return None


def _download_pack(url: str, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory() as tmp:
        archive = Path(tmp) / "pack.tgz"
        with requests.get(url, stream=True, timeout=60) as resp:
            resp.raise_for_status()
            with open(archive, "wb") as f:
                for chunk in resp.iter_content(chunk_size=1 << 16):
                    f.write(chunk)

        with tarfile.open(archive, "r:gz") as tar:
            member = next((m for m in tar.getmembers() if Path(m.name).name == "pack" and m.isfile()), None)
            src = tar.extractfile(member) if member is not None else None
            if src is None:
                raise tarfile.TarError(f"pack binary not found in {url}")
            with src, open(target, "wb") as out:
                shutil.copyfileobj(src, out)

    target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def default_tools_dir() -> Path:
    configured = (os.getenv(VarsEnum.PACK_TOOLS_DIR.value) or "").strip()
    if configured:
        return Path(configured).expanduser()
    return Path(tempfile.gettempdir()) / "containerapp-deploy-tools"


class ImageBuildHelper:
    def __init__(self, *, disable_telemetry: bool = False, dry_run: bool = False, tools_dir: Path | None = None):
        self.disable_telemetry = disable_telemetry
        self.dry_run = dry_run
        self.tools_dir = tools_dir or default_tools_dir()
        self._pack = "pack"

    def install_pack_cli(self) -> str:
        """Make the pack CLI available; downloads the pinned release when it is not on PATH."""
        found = shutil.which("pack")
        if found:
            self._pack = found
            return found

        target = self.tools_dir / "pack"
        if target.exists():
            self._pack = str(target)
            return self._pack

        url = PACK_CLI_URLS.get(sys.platform)
        if not url:
            raise FileNotFoundError(f"pack CLI not found on PATH and cannot be installed automatically on {sys.platform}")

        if self.dry_run:
            print(f"🧪 [dry-run] download {url} -> {target}")
            return str(target)

        print(f"⬇️  [pack] Installing pack CLI v{PACK_CLI_VERSION} to {self.tools_dir}")
        try:
            _download_pack(url, target)
        except (requests.RequestException, tarfile.TarError, OSError) as e:
            raise BuildError(f"Failed to install pack CLI from {url}: {e}") from e

        self._pack = str(target)
        return self._pack

    def set_default_builder(self) -> None:
        run_command([self._pack, "config", "default-builder", ORYX_BUILDER_IMAGE], capture_output=False, dry_run=self.dry_run)

    def determine_runtime_stack(self, app_source_path: str) -> str | None:
        """Let Oryx inspect the source and generate a Dockerfile; the RUNTIME arg names the stack."""
        source = str(Path(app_source_path).resolve())
        out = run_command(
            ["docker", "run", "--rm", "-v", f"{source}:/app", ORYX_CLI_IMAGE, "oryx", "dockerfile", "/app"],
            capture_output=True,
            parse_json=False,
        )
        return parse_runtime_stack(str(out or ""))

    def create_runnable_app_image(self, image_to_deploy: str, app_source_path: str, runtime_stack: str) -> None:
        telemetry_env = "ORYX_DISABLE_TELEMETRY=true" if self.disable_telemetry else f"CALLER_ID={CALLER_ID}"
        run_command(
            [
                self._pack,
                "build",
                image_to_deploy,
                "--path",
                app_source_path,
                "--builder",
                ORYX_BUILDER_IMAGE,
                "--run-image",
                f"{ORYX_RUN_IMAGE_PREFIX}/{runtime_stack}",
                "--env",
                telemetry_env,
            ],
            capture_output=False,
            dry_run=self.dry_run,
        )

    def create_runnable_app_image_from_dockerfile(self, image_to_deploy: str, app_source_path: str, dockerfile_path: str) -> None:
        run_command(
            ["docker", "build", "--tag", image_to_deploy, "--file", dockerfile_path, app_source_path],
            capture_output=False,
            dry_run=self.dry_run,
        )

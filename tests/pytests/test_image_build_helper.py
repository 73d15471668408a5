from __future__ import annotations

import io
import tarfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from scripts.deploy.deploy_errors import BuildError
from scripts.deploy.image_build_helper import (
    ORYX_BUILDER_IMAGE,
    ImageBuildHelper,
    parse_runtime_stack,
)


ORYX_DOCKERFILE = """\
ARG RUNTIME=python:3.11

FROM mcr.microsoft.com/oryx/builder:stack-build-debian-bullseye as build
WORKDIR /app
"""


def _pack_tarball() -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        data = b"#!/bin/sh\necho pack\n"
        info = tarfile.TarInfo("pack")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def test_parse_runtime_stack():
    assert parse_runtime_stack(ORYX_DOCKERFILE) == "python:3.11"
    assert parse_runtime_stack('ARG RUNTIME="node:18"\n') == "node:18"
    assert parse_runtime_stack("FROM scratch\n") is None
    assert parse_runtime_stack("") is None


def test_determine_runtime_stack_runs_oryx_cli(tmp_path: Path):
    helper = ImageBuildHelper(tools_dir=tmp_path)
    with patch("scripts.deploy.image_build_helper.run_command", return_value=ORYX_DOCKERFILE) as mock_run:
        assert helper.determine_runtime_stack(str(tmp_path)) == "python:3.11"
    argv = mock_run.call_args[0][0]
    assert argv[:3] == ["docker", "run", "--rm"]
    assert argv[-3:] == ["oryx", "dockerfile", "/app"]


def test_install_pack_prefers_path(tmp_path: Path):
    helper = ImageBuildHelper(tools_dir=tmp_path)
    with patch("scripts.deploy.image_build_helper.shutil.which", return_value="/usr/local/bin/pack"), patch(
        "scripts.deploy.image_build_helper.requests.get"
    ) as mock_get:
        assert helper.install_pack_cli() == "/usr/local/bin/pack"
    mock_get.assert_not_called()


def test_install_pack_downloads_release(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("scripts.deploy.image_build_helper.sys.platform", "linux")
    resp = MagicMock()
    resp.iter_content.return_value = [_pack_tarball()]

    helper = ImageBuildHelper(tools_dir=tmp_path / "tools")
    with patch("scripts.deploy.image_build_helper.shutil.which", return_value=None), patch(
        "scripts.deploy.image_build_helper.requests.get"
    ) as mock_get:
        mock_get.return_value.__enter__.return_value = resp
        path = helper.install_pack_cli()

    assert path == str(tmp_path / "tools" / "pack")
    assert (tmp_path / "tools" / "pack").read_bytes().startswith(b"#!/bin/sh")
    assert "v0.27.0" in mock_get.call_args[0][0]

    with patch("scripts.deploy.image_build_helper.run_command") as mock_run:
        helper.set_default_builder()
    assert mock_run.call_args[0][0] == [path, "config", "default-builder", ORYX_BUILDER_IMAGE]


def test_install_pack_download_failure(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("scripts.deploy.image_build_helper.sys.platform", "linux")
    helper = ImageBuildHelper(tools_dir=tmp_path)
    with patch("scripts.deploy.image_build_helper.shutil.which", return_value=None), patch(
        "scripts.deploy.image_build_helper.requests.get", side_effect=requests.ConnectionError("offline")
    ):
        with pytest.raises(BuildError) as exc:
            helper.install_pack_cli()
    assert "offline" in str(exc.value)


def test_install_pack_unsupported_platform(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("scripts.deploy.image_build_helper.sys.platform", "win32")
    helper = ImageBuildHelper(tools_dir=tmp_path)
    with patch("scripts.deploy.image_build_helper.shutil.which", return_value=None):
        with pytest.raises(FileNotFoundError):
            helper.install_pack_cli()


@pytest.mark.parametrize(
    "disable_telemetry, env",
    [(True, "ORYX_DISABLE_TELEMETRY=true"), (False, "CALLER_ID=github-actions-v1")],
)
def test_pack_build_telemetry_env(tmp_path: Path, disable_telemetry, env):
    helper = ImageBuildHelper(disable_telemetry=disable_telemetry, tools_dir=tmp_path)
    with patch("scripts.deploy.image_build_helper.run_command") as mock_run:
        helper.create_runnable_app_image("myacr.azurecr.io/web:1", "./app", "python:3.11")
    argv = mock_run.call_args[0][0]
    assert argv[1:3] == ["build", "myacr.azurecr.io/web:1"]
    assert "mcr.microsoft.com/oryx/python:3.11" in argv
    assert argv[-2:] == ["--env", env]


def test_docker_build(tmp_path: Path):
    helper = ImageBuildHelper(tools_dir=tmp_path)
    with patch("scripts.deploy.image_build_helper.run_command") as mock_run:
        helper.create_runnable_app_image_from_dockerfile("web:1", "./app", "./app/Dockerfile")
    assert mock_run.call_args[0][0] == ["docker", "build", "--tag", "web:1", "--file", "./app/Dockerfile", "./app"]

#!/usr/bin/env python3
"""Shared Azure CLI / Docker subprocess utilities."""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import sys
from typing import Any, Sequence

from scripts.deploy.env_schema import CiVarsEnum, truthy


# Errors raised by the command runners below. Stage functions translate these
# into the deploy error kinds.
COMMAND_ERRORS = (subprocess.CalledProcessError, FileNotFoundError)

# Flags whose following value must never be echoed to the pipeline log.
SECRET_FLAGS = frozenset({"--registry-password", "--password", "-p"})

_TOOL_TAGS = {"az": "[az]", "docker": "🐳 [docker]", "pack": "📦 [pack]"}


def in_github_actions() -> bool:
    return truthy(os.getenv(CiVarsEnum.GITHUB_ACTIONS.value))


def log_warning(msg: str) -> None:
    print(f"⚠️  {msg}", file=sys.stderr)
    if in_github_actions():
        print(f"::warning::{msg}")


def log_error(msg: str) -> None:
    print(f"❌ {msg}", file=sys.stderr)
    if in_github_actions():
        # Workflow commands are single-line; keep the first line as the annotation.
        first_line = msg.splitlines()[0] if msg else ""
        print(f"::error::{first_line}")


def redact_command(cmd: Sequence[str]) -> list[str]:
    """Return a copy of `cmd` with the values of secret-bearing flags masked."""
    out: list[str] = []
    mask_next = False
    for part in cmd:
        if mask_next:
            out.append("***")
            mask_next = False
            continue
        flag, sep, _ = part.partition("=")
        if sep and flag in SECRET_FLAGS:
            out.append(f"{flag}=***")
            continue
        if part in SECRET_FLAGS:
            mask_next = True
        out.append(part)
    return out


def _tag_for(cmd: Sequence[str]) -> str:
    tool = os.path.basename(cmd[0]) if cmd else ""
    return _TOOL_TAGS.get(tool, f"[{tool}]")


def _require_tool(tool: str) -> None:
    if os.path.sep in tool:
        if not os.path.exists(tool):
            raise FileNotFoundError(f"{tool} not found.")
        return
    if not shutil.which(tool):
        raise FileNotFoundError(f"{tool} not found on PATH. Please install it.")


def run_command(
    cmd: Sequence[str],
    *,
    capture_output: bool = True,
    ignore_errors: bool = False,
    verbose: bool = True,
    parse_json: bool = True,
    input_text: str | None = None,
    dry_run: bool = False,
) -> Any:
    """Run an external command.

    Returns parsed JSON (or the raw stripped text) when output is captured, else None.
    Raises subprocess.CalledProcessError on a non-zero exit unless `ignore_errors` is set.
    """
    cmd = list(cmd)
    printable = " ".join(redact_command(cmd))
    if dry_run:
        print(f"🧪 [dry-run] {printable}")
        return None
    if verbose:
        print(f"{_tag_for(cmd)} {printable}")

    _require_tool(cmd[0])

    result = subprocess.run(
        cmd,
        input=input_text,
        stdout=subprocess.PIPE if capture_output else None,
        stderr=subprocess.PIPE,
        text=True,
        check=False,
    )

    if result.returncode != 0:
        if ignore_errors:
            return None

        if result.stdout:
            print(result.stdout.rstrip(), file=sys.stderr)
        if result.stderr:
            print(result.stderr.rstrip(), file=sys.stderr)

        raise subprocess.CalledProcessError(result.returncode, redact_command(cmd), output=result.stdout, stderr=result.stderr)

    if capture_output and result.stdout:
        out = result.stdout.strip()
        if not out:
            return None
        if not parse_json:
            return out
        try:
            return json.loads(out)
        except json.JSONDecodeError:
            return out

    return None


def run_az_command(args: list[str], **kwargs: Any) -> Any:
    """Run an azure cli command."""
    return run_command(["az"] + args, **kwargs)


# `az ... show` stderr markers that mean the resource (or its group) is absent.
NOT_FOUND_MARKERS = ("ResourceNotFound", "ResourceGroupNotFound", "could not be found", "was not found")


def is_not_found_error(stderr: str | None) -> bool:
    text = stderr or ""
    return any(marker in text for marker in NOT_FOUND_MARKERS)


def resource_exists(cmd: Sequence[str], *, verbose: bool = True) -> bool:
    """Run an existence check (`az ... show`).

    Returns True on exit 0 and False when the CLI reports the resource as not
    found. Any other failure (auth, network, throttling, missing extension)
    raises subprocess.CalledProcessError.
    """
    cmd = list(cmd)
    if verbose:
        print(f"{_tag_for(cmd)} {' '.join(redact_command(cmd))}")
    _require_tool(cmd[0])
    result = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True, check=False)
    if result.returncode == 0:
        return True
    if is_not_found_error(result.stderr):
        return False
    if result.stderr:
        print(result.stderr.rstrip(), file=sys.stderr)
    raise subprocess.CalledProcessError(result.returncode, redact_command(cmd), stderr=result.stderr)


def describe_command_error(exc: BaseException) -> str:
    """One-line description of a failed command, including its stderr when available."""
    if isinstance(exc, subprocess.CalledProcessError):
        cmd = exc.cmd if isinstance(exc.cmd, str) else " ".join(str(c) for c in exc.cmd)
        err = (exc.stderr or "").strip()
        msg = f"'{cmd}' failed with exit code {exc.returncode}"
        if err:
            msg += f": {err.splitlines()[-1]}"
        return msg
    return str(exc)

from __future__ import annotations

import argparse
import importlib
import importlib.util
import os
import sys
import logging
from dataclasses import dataclass
from pathlib import Path

from scripts.deploy.azure_utils import log_warning
from scripts.deploy.containerapp_models import DeployInputs
from scripts.deploy.env_schema import VarsEnum, truthy

from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("deploy_hooks")

DEFAULT_HOOKS_FILE = Path("scripts") / "deploy" / "deploy_customizations.py"


@dataclass
class DeployContext:
    """Context passed to hooks.

    NOTE: `inputs` is frozen, but hooks may replace it (e.g. in pre_validate_inputs)
    via `ctx.inputs = dataclasses.replace(ctx.inputs, ...)` before validation runs.
    """
    repo_root: Path
    inputs: DeployInputs
    args: argparse.Namespace

    def log(self, msg: str) -> None:
        print(f"🪝 [hook] {msg}")


@runtime_checkable
class DeployHooksProtocol(Protocol):
    """Protocol defining the available hooks.
    Implementations can implement any subset of these.
    """
    def pre_validate_inputs(self, ctx: DeployContext) -> None: ...
    def post_resolve_resources(self, ctx: DeployContext, identity: Any) -> None: ...
    def pre_deploy(self, ctx: DeployContext, image: Any, plan: Any) -> None: ...
    def post_deploy(self, ctx: DeployContext, result: Any) -> None: ...
    def on_error(self, ctx: DeployContext, exc: Exception) -> None: ...


class DeployHooks:
    """Wrapper that holds the loaded hooks object (if any) and safely calls methods."""
    def __init__(self, impl: Any | None, soft_fail: bool = False):
        self._impl = impl
        self._soft_fail = soft_fail

    def call(self, hook_name: str, *args, **kwargs) -> Any:
        if not self._impl:
            return None

        method = getattr(self._impl, hook_name, None)
        if not method:
            # Hook not implemented, no-op
            return None

        try:
            return method(*args, **kwargs)
        except Exception as e:
            if self._soft_fail:
                log_warning(f"[hook] Hook '{hook_name}' failed: {e} (soft-fail enabled)")
                return None
            print(f"❌ [hook] Hook '{hook_name}' failed: {e}", file=sys.stderr)
            raise

    def notify_error(self, ctx: DeployContext, exc: Exception) -> None:
        """Run on_error without letting a broken hook replace the original failure."""
        try:
            self.call("on_error", ctx, exc)
        except Exception as e:
            logger.debug("on_error hook raised", exc_info=True)
            log_warning(f"[hook] on_error hook failed: {e}")


def load_hooks(repo_root: Path, module_path: str | None = None, soft_fail: bool | None = None) -> DeployHooks:
    """Load hooks from a module.

    Resolution order:
    1. CLI argument/Env var (if provided) -> Must exist or error.
    2. Default 'scripts/deploy/deploy_customizations.py' -> If exists, load. Else no-op.

    Default case uses file-path loading to avoid PYTHONPATH issues.
    """

    # Soft fail config: CLI arg > Env Var > Default False
    if soft_fail is None:
        soft_fail = truthy(os.getenv(VarsEnum.DEPLOY_HOOKS_SOFT_FAIL.value))

    target_path = module_path or os.getenv(VarsEnum.DEPLOY_HOOKS_MODULE.value)
    must_exist = True

    if not target_path:
        default_file = repo_root / DEFAULT_HOOKS_FILE
        if not default_file.exists():
            return DeployHooks(None, soft_fail=soft_fail)
        target_path = str(default_file.resolve())
        must_exist = False

    print(f"🪝 [hooks] Loading hooks from: {target_path}")

    try:
        if target_path.endswith(".py") or "/" in target_path or "\\" in target_path:
            path_obj = Path(target_path).resolve()
            if not path_obj.exists():
                if must_exist:
                    raise FileNotFoundError(f"Hook module not found at: {path_obj}")
                return DeployHooks(None, soft_fail=soft_fail)

            spec = importlib.util.spec_from_file_location("deploy_customizations", path_obj)
            if not (spec and spec.loader):
                raise ImportError(f"Could not load spec from {path_obj}")
            module = importlib.util.module_from_spec(spec)
            sys.modules["deploy_customizations"] = module
            spec.loader.exec_module(module)
        else:
            module = importlib.import_module(target_path)

        # A `get_hooks()` factory wins; otherwise the module's functions are the hooks.
        hooks_impl = module.get_hooks() if hasattr(module, "get_hooks") else module
        return DeployHooks(hooks_impl, soft_fail=soft_fail)

    except Exception as e:
        if soft_fail:
            log_warning(f"[hooks] Failed to load hooks from {target_path}: {e} (soft-fail enabled)")
            return DeployHooks(None, soft_fail=soft_fail)

        raise ImportError(f"Failed to load hooks from {target_path}: {e}") from e

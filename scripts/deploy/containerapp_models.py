"""Value records threaded through the deploy pipeline.

Each stage takes the records produced by the previous stages and returns a new
one; nothing here is mutated after construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from scripts.deploy.env_schema import InputsEnum, truthy


ACR_LOGIN_SERVER_SUFFIX = ".azurecr.io"


class ImageScenario(str, Enum):
    BUILDER = "used-builder"
    DOCKERFILE = "used-dockerfile"
    IMAGE = "used-image"


class DeployState(str, Enum):
    NOT_EXISTS = "NotExists"
    EXISTS_UPDATE_PATH = "ExistsUpdatePath"
    EXISTS_UP_PATH = "ExistsUpPath"


@dataclass(frozen=True)
class ScenarioInputs:
    app_source_path: str | None = None
    acr_name: str | None = None
    image_to_deploy: str | None = None
    yaml_config_path: str | None = None


@dataclass(frozen=True)
class DeployInputs:
    """All pipeline inputs, blank values normalized to None."""

    app_source_path: str | None = None
    acr_name: str | None = None
    image_to_deploy: str | None = None
    yaml_config_path: str | None = None
    container_app_name: str | None = None
    location: str | None = None
    resource_group: str | None = None
    container_app_environment: str | None = None
    acr_username: str | None = None
    acr_password: str | None = field(default=None, repr=False)
    image_to_build: str | None = None
    dockerfile_path: str | None = None
    runtime_stack: str | None = None
    ingress: str | None = None
    target_port: str | None = None
    environment_variables: str | None = None
    disable_telemetry: bool = False

    # CI build variables; opaque strings.
    run_id: str = "local"
    run_number: str = "0"

    @classmethod
    def from_mapping(cls, kv: Mapping[str, str], *, run_id: str, run_number: str) -> DeployInputs:
        values: dict[str, Any] = {}
        for key in InputsEnum:
            raw = str(kv.get(key.value) or "").strip()
            values[key.name.lower()] = raw or None

        if values["ingress"]:
            values["ingress"] = values["ingress"].lower()
        values["disable_telemetry"] = truthy(values["disable_telemetry"])

        return cls(**values, run_id=run_id or "local", run_number=run_number or "0")

    @property
    def scenario(self) -> ScenarioInputs:
        return ScenarioInputs(
            app_source_path=self.app_source_path,
            acr_name=self.acr_name,
            image_to_deploy=self.image_to_deploy,
            yaml_config_path=self.yaml_config_path,
        )

    @property
    def acr_login_server(self) -> str | None:
        if not self.acr_name:
            return None
        return f"{self.acr_name}{ACR_LOGIN_SERVER_SUFFIX}"

    @property
    def has_registry_credentials(self) -> bool:
        return bool(self.acr_name and self.acr_username and self.acr_password)


@dataclass(frozen=True)
class ResourceIdentity:
    app_name: str
    resource_group: str
    location: str
    environment_name: str | None
    app_exists: bool


@dataclass(frozen=True)
class ImagePlan:
    scenario: ImageScenario
    image_to_deploy: str | None
    image_to_build: str | None = None
    dockerfile_path: Path | None = None
    runtime_stack: str | None = None


@dataclass(frozen=True)
class IngressPlan:
    ingress: str | None
    target_port: str | None
    ingress_enabled: bool


@dataclass(frozen=True)
class CommandArg:
    flag: str
    values: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommandArgs:
    """Ordered (flag, values) pairs passed through to `az containerapp`.

    Kept structured until the subprocess boundary; `to_argv()` / `from_argv()`
    convert to and from the CLI token list.
    """

    items: tuple[CommandArg, ...] = ()

    def __iter__(self) -> Iterator[CommandArg]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, flag: object) -> bool:
        return any(item.flag == flag for item in self.items)

    @property
    def flags(self) -> list[str]:
        return [item.flag for item in self.items]

    def get(self, flag: str) -> tuple[str, ...] | None:
        for item in self.items:
            if item.flag == flag:
                return item.values
        return None

    def to_argv(self) -> list[str]:
        argv: list[str] = []
        for item in self.items:
            argv.append(item.flag)
            argv.extend(item.values)
        return argv

    @classmethod
    def from_argv(cls, argv: Iterable[str], arity: Mapping[str, int | None] | None = None) -> CommandArgs:
        """Parse a token list back into pairs.

        Without `arity` every `--` token starts a new flag. With `arity`, only
        the listed flags start one; a flag with a fixed count takes exactly
        that many following tokens (whatever they look like), and a `None`
        count takes tokens up to the next listed flag.
        """
        items: list[CommandArg] = []
        flag: str | None = None
        values: list[str] = []
        remaining: int | None = None
        for token in argv:
            if arity is None:
                starts_flag = token.startswith("--")
            else:
                starts_flag = token in arity and not remaining
            if starts_flag:
                if flag is not None:
                    items.append(CommandArg(flag, tuple(values)))
                flag, values = token, []
                remaining = arity.get(token) if arity is not None else None
                continue
            if flag is None or remaining == 0:
                raise ValueError(f"Value {token!r} is not preceded by a flag")
            values.append(token)
            if remaining is not None:
                remaining -= 1
        if remaining:
            raise ValueError(f"Flag {flag!r} is missing {remaining} value(s)")
        if flag is not None:
            items.append(CommandArg(flag, tuple(values)))
        return cls(tuple(items))


@dataclass(frozen=True)
class DeploymentPlan:
    should_use_update_command: bool
    ingress: IngressPlan
    command_args: CommandArgs


@dataclass(frozen=True)
class DeploymentResult:
    identity: ResourceIdentity
    image: ImagePlan
    state: DeployState
    used_yaml_config: bool
    plan: DeploymentPlan | None = None

    def summary_lines(self) -> list[str]:
        if not self.identity.app_exists:
            operation = "create (yaml)" if self.used_yaml_config else "create"
        elif self.used_yaml_config:
            operation = "update (yaml)"
        elif self.state == DeployState.EXISTS_UPDATE_PATH:
            operation = "update"
        else:
            operation = "up"
        lines = [
            f"  Container App: {self.identity.app_name}",
            f"  Resource group: {self.identity.resource_group}",
            f"  Location: {self.identity.location}",
        ]
        if self.identity.environment_name:
            lines.append(f"  Environment: {self.identity.environment_name}")
        if self.image.image_to_deploy and not self.used_yaml_config:
            lines.append(f"  Image: {self.image.image_to_deploy}")
        lines.append(f"  Operation: {operation}")
        return lines

"""Error kinds for the Container Apps deploy step.

Every kind is fatal. None of them is retried here; the top-level handler in
`azure_deploy_containerapp.main()` reports the message and maps the kind to an
exit code.
"""

from __future__ import annotations


class DeployError(RuntimeError):
    exit_code = 1

    def format(self) -> str:
        return str(self)


class ConfigurationError(DeployError, ValueError):
    """Invalid input combination, detected before any side effect."""

    exit_code = 2

    def __init__(self, *, context: str, problems: list[str]):
        super().__init__("; ".join(problems))
        self.context = context
        self.problems = problems

    def format(self) -> str:
        lines = [f"[inputs] validation failed: {self.context}"]
        for p in self.problems:
            lines.append(f"- {p}")
        return "\n".join(lines)


class ResourceResolutionError(DeployError):
    """A resource group / environment / app lookup or creation failed."""


class BuildError(DeployError):
    """Registry login, image build or image push failed."""


class DeploymentError(DeployError):
    """The create / update / up / ingress call against the Container App failed."""

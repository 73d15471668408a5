"""Best-effort run telemetry through the Oryx CLI container.

Telemetry must never fail a deployment: every error while sending is
downgraded to a warning.
"""

from __future__ import annotations

import time
from typing import Callable

from scripts.deploy.azure_utils import log_warning, run_command
from scripts.deploy.containerapp_models import ImageScenario
from scripts.deploy.image_build_helper import ORYX_CLI_IMAGE


TELEMETRY_EVENT_NAME = "ContainerAppsGitHubActionV1"
SUCCESSFUL_RESULT = "succeeded"
FAILED_RESULT = "failed"


class TelemetryHelper:
    def __init__(self, disable_telemetry: bool, *, clock: Callable[[], float] = time.monotonic):
        self.disable_telemetry = disable_telemetry
        self._clock = clock
        self._started = clock()
        self.result: str | None = None
        self.scenario: ImageScenario | None = None
        self.error_message: str | None = None

    def set_successful_result(self) -> None:
        self.result = SUCCESSFUL_RESULT

    def set_failed_result(self, error_message: str) -> None:
        self.result = FAILED_RESULT
        self.error_message = error_message

    def set_scenario(self, scenario: ImageScenario) -> None:
        self.scenario = scenario

    def build_command(self) -> list[str]:
        elapsed_ms = int((self._clock() - self._started) * 1000)
        cmd = [
            "docker",
            "run",
            "--rm",
            ORYX_CLI_IMAGE,
            "oryx",
            "telemetry",
            "--event-name",
            TELEMETRY_EVENT_NAME,
            "--processing-time",
            str(elapsed_ms),
        ]
        if self.result:
            cmd += ["--property", f"result={self.result}"]
        if self.scenario:
            cmd += ["--property", f"scenario={self.scenario.value}"]
        if self.error_message:
            cmd += ["--property", f"errorMessage={self.error_message}"]
        return cmd

    def send_logs(self) -> None:
        if self.disable_telemetry:
            return
        print("📊 [telemetry] Telemetry enabled; logging metadata about task result, length and scenario targeted.")
        try:
            run_command(self.build_command(), capture_output=True, verbose=False)
        except Exception as e:
            log_warning(f"[telemetry] Skipping telemetry logging due to the following exception: {e}")

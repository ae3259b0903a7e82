"""Transport-facing facade over validation, orchestration and formatting."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from src import __version__
from src.automation.errors import AutomationError, JobValidationError
from src.automation.formatter import OutputFormatter
from src.automation.models import Job, JobOutcome, LogEntry, LogLevel, OutputFormat
from src.automation.orchestrator import SessionOrchestrator
from src.automation.validator import (
    DOM_ATTRIBUTES,
    OUTPUT_FORMATS,
    RULE_TYPES,
    SECURITY_CHECKS,
    ConfigValidator,
)
from src.config.settings import Settings, get_settings
from src.utils.logging import get_logger

logger = get_logger("service")


@dataclass(frozen=True)
class RenderedOutput:
    """A formatted payload ready to be sent or written to disk."""

    body: str
    content_type: str
    filename: str


class AutomationService:
    """Runs submitted jobs: validate, execute, package the outcome.

    The validator, orchestrator and formatter are built once and shared by
    every job this service handles; none of them holds per-job state.
    """

    def __init__(
        self,
        *,
        validator: ConfigValidator | None = None,
        orchestrator: SessionOrchestrator | None = None,
        formatter: OutputFormatter | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.validator = validator or ConfigValidator()
        self.orchestrator = orchestrator or SessionOrchestrator.from_settings(self.settings)
        self.formatter = formatter or OutputFormatter()

    def prepare(self, payload: Any) -> Job:
        """Validate a raw payload and build the immutable job.

        Raises:
            JobValidationError: If the payload violates the job contract.
        """
        result = self.validator.validate(payload)
        if not result.valid:
            logger.warning(f"Validation failed: {[issue.model_dump() for issue in result.errors]}")
            raise JobValidationError(result.errors)
        return Job.from_payload(payload)

    async def execute(self, payload: Any) -> JobOutcome:
        """Run one job from its raw payload.

        Never raises for job-level failures: validation errors and fatal run
        errors are reported in the returned outcome (without ``data``).
        """
        started = time.monotonic()
        name = payload.get("projectName") if isinstance(payload, dict) else None
        project_name = name if isinstance(name, str) else None

        try:
            job = self.prepare(payload)
        except JobValidationError as e:
            return JobOutcome(
                success=False,
                project_name=project_name,
                error_message=e.message,
                errors=e.errors,
            )

        logger.info(f"Starting automation for project: {job.project_name or 'Unnamed'}")
        logger.info(f"Target URL: {job.target_url}")

        try:
            result = await self.orchestrator.run(job)
        except AutomationError as e:
            duration_ms = self._elapsed_ms(started)
            logger.error(f"Automation failed: {e.message}")
            logs = e.logs or [LogEntry(level=LogLevel.ERROR, message=e.message)]
            return JobOutcome(
                success=False,
                project_name=job.project_name,
                duration_ms=duration_ms,
                logs=logs,
                error_message=e.message,
            )

        duration_ms = self._elapsed_ms(started)
        logger.info(f"Automation completed in {duration_ms}ms")
        return JobOutcome(
            success=True,
            project_name=job.project_name,
            duration_ms=duration_ms,
            data=result.data,
            logs=result.logs,
        )

    def render(self, outcome: JobOutcome, fmt: OutputFormat | str) -> RenderedOutput:
        """Format a successful outcome's data for download.

        Raises:
            FormattingError: If the data cannot be serialized.
        """
        name = fmt.value if isinstance(fmt, OutputFormat) else str(fmt).lower()
        body = self.formatter.format(outcome.data or {}, name)
        filename = f"{outcome.project_name or 'data'}.{self.formatter.file_extension(name)}"
        return RenderedOutput(
            body=body,
            content_type=self.formatter.content_type(name),
            filename=filename,
        )

    @staticmethod
    def requested_format(payload: Any) -> OutputFormat:
        """Output format named by a (validated) payload, defaulting to JSON."""
        if isinstance(payload, dict) and payload.get("outputFormat"):
            return OutputFormat(str(payload["outputFormat"]).lower())
        return OutputFormat.JSON

    @staticmethod
    def status() -> dict[str, Any]:
        """Read-only capability descriptor."""
        return {
            "status": "operational",
            "capabilities": {
                "authentication": True,
                "domExtraction": True,
                "jsEvaluation": True,
                "extractionTypes": list(RULE_TYPES),
                "domAttributes": list(DOM_ATTRIBUTES),
                "securityChecks": list(SECURITY_CHECKS),
                "formats": list(OUTPUT_FORMATS),
            },
            "version": __version__,
        }

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

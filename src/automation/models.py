"""Data models for automation jobs and their outcomes.

A job arrives as loosely-typed JSON (or YAML). The validator checks the raw
payload first; only a payload that passed validation is turned into the
immutable :class:`Job` through :meth:`Job.from_payload`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_timestamp() -> str:
    """Wall-clock UTC timestamp in ISO-8601 with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class OutputFormat(str, Enum):
    """Serialization formats a job can request."""

    JSON = "json"
    CSV = "csv"
    XML = "xml"


class LogLevel(str, Enum):
    """Severity of a transcript entry."""

    INFO = "info"
    SUCCESS = "success"
    WARN = "warn"
    ERROR = "error"


class SessionState(str, Enum):
    """Lifecycle states of one orchestrated browser session."""

    IDLE = "idle"
    LAUNCHING = "launching"
    AUTHENTICATING = "authenticating"
    NAVIGATING = "navigating"
    EXTRACTING = "extracting"
    CLOSING = "closing"
    DONE = "done"
    FAILED = "failed"


class LogEntry(BaseModel):
    """One timestamped line of the execution transcript."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    level: LogLevel
    message: str
    timestamp: str = Field(default_factory=utc_timestamp)


class AuthSelectors(BaseModel):
    """CSS selectors of the login form controls."""

    model_config = ConfigDict(frozen=True)

    username: str = "#username"
    password: str = "#password"
    submit: str = "button[type='submit']"


class AuthConfig(BaseModel):
    """Login sequence performed before the target page is loaded.

    Attributes:
        login_url: Page holding the login form.
        username: Value typed into the username field.
        password: Value typed into the password field.
        selectors: Login form selectors (defaults apply when absent).
        check_selector: Optional element that is only present when logged in.
    """

    model_config = ConfigDict(frozen=True)

    login_url: str
    username: str
    password: str = Field(repr=False)
    selectors: AuthSelectors = Field(default_factory=AuthSelectors)
    check_selector: str | None = None


class ExecutionConfig(BaseModel):
    """Per-job execution bounds.

    ``retries`` is accepted and validated but no step currently retries.
    """

    model_config = ConfigDict(frozen=True)

    timeout_ms: Annotated[int, Field(ge=1000, le=300000)] = 30000
    retries: Annotated[int, Field(ge=0, le=10)] = 3
    headless: bool = True


class DomRule(BaseModel):
    """Read an attribute (or the text) of the element(s) matching a selector."""

    model_config = ConfigDict(frozen=True)

    type: Literal["dom"] = "dom"
    name: str
    selector: str
    selector_type: Literal["css", "xpath"] = "css"
    attribute: Literal[
        "textContent", "innerText", "innerHTML", "href", "src", "value", "count"
    ] = "textContent"
    multiple: bool = False


class ScriptRule(BaseModel):
    """Evaluate a JavaScript snippet in the page and keep its return value."""

    model_config = ConfigDict(frozen=True)

    type: Literal["js"] = "js"
    name: str
    js_code: str


ExtractionRule = Annotated[DomRule | ScriptRule, Field(discriminator="type")]


class Job(BaseModel):
    """One complete, validated automation request."""

    model_config = ConfigDict(frozen=True)

    target_url: str
    project_name: str | None = None
    auth: AuthConfig | None = None
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    extraction: tuple[ExtractionRule, ...] = Field(min_length=1)
    output_format: OutputFormat = OutputFormat.JSON

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Job:
        """Build a job from the camelCase wire payload.

        The payload is expected to have passed :class:`ConfigValidator`;
        pydantic still enforces the schema and raises on anything else.
        """
        auth_payload = payload.get("auth")
        auth = None
        if auth_payload:
            selectors = auth_payload.get("selectors") or {}
            auth = AuthConfig(
                login_url=auth_payload["loginUrl"],
                username=auth_payload["username"],
                password=auth_payload["password"],
                selectors=AuthSelectors(
                    **{k: v for k, v in selectors.items() if k in ("username", "password", "submit")}
                ),
                check_selector=auth_payload.get("checkSelector"),
            )

        execution_payload = payload.get("execution") or {}
        execution_fields: dict[str, Any] = {}
        if execution_payload.get("timeout") is not None:
            execution_fields["timeout_ms"] = int(execution_payload["timeout"])
        if execution_payload.get("retries") is not None:
            execution_fields["retries"] = int(execution_payload["retries"])
        if execution_payload.get("headless") is not None:
            execution_fields["headless"] = execution_payload["headless"]
        execution = ExecutionConfig(**execution_fields)

        rules: list[DomRule | ScriptRule] = []
        for rule in payload["extraction"]:
            if rule["type"] == "dom":
                rules.append(
                    DomRule(
                        name=rule["name"],
                        selector=rule["selector"],
                        selector_type=rule.get("selectorType") or "css",
                        attribute=rule.get("attribute") or "textContent",
                        multiple=bool(rule.get("multiple", False)),
                    )
                )
            else:
                rules.append(ScriptRule(name=rule["name"], js_code=rule["jsCode"]))

        return cls(
            target_url=payload["target"]["url"],
            project_name=payload.get("projectName"),
            auth=auth,
            execution=execution,
            extraction=tuple(rules),
            output_format=OutputFormat((payload.get("outputFormat") or "json").lower()),
        )


class ValidationIssue(BaseModel):
    """A single contract violation found in a job payload."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ValidationResult(BaseModel):
    """Outcome of validating a job payload."""

    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)


class AuthResult(BaseModel):
    """Outcome of a login attempt together with its own transcript."""

    success: bool
    message: str | None = None
    logs: list[LogEntry] = Field(default_factory=list)


class RunResult(BaseModel):
    """Data and transcript of a successful orchestrator run."""

    data: dict[str, Any]
    logs: list[LogEntry]


class JobOutcome(BaseModel):
    """What the caller gets back for one submitted job.

    ``data`` is only set for successful runs; failed or rejected jobs carry
    diagnostics (message, transcript, validation errors) only.
    """

    success: bool
    project_name: str | None = None
    timestamp: str = Field(default_factory=utc_timestamp)
    duration_ms: int = 0
    data: dict[str, Any] | None = None
    logs: list[LogEntry] = Field(default_factory=list)
    error_message: str | None = None
    errors: list[ValidationIssue] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase response body sent to callers."""
        body: dict[str, Any] = {
            "success": self.success,
            "projectName": self.project_name,
            "timestamp": self.timestamp,
            "durationMs": self.duration_ms,
        }
        if self.success:
            body["data"] = self.data if self.data is not None else {}
        else:
            body["message"] = self.error_message
            if self.errors:
                body["errors"] = [issue.model_dump() for issue in self.errors]
        body["logs"] = [entry.model_dump(mode="json") for entry in self.logs]
        return body

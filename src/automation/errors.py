"""Exception hierarchy for automation runs.

Fatal errors (authentication, navigation, session) abort the job and carry
the transcript collected up to the failure in ``logs``. ``ExtractionError``
is per-rule and is downgraded to a ``None`` value by the orchestrator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.automation.models import LogEntry, ValidationIssue


class AutomationError(Exception):
    """Base class for every error raised by the automation engine."""

    def __init__(self, message: str, logs: list[LogEntry] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.logs: list[LogEntry] = list(logs or [])


class JobValidationError(AutomationError):
    """The job payload violates its contract; no browser work was attempted."""

    def __init__(self, errors: list[ValidationIssue]) -> None:
        super().__init__("Configuration validation failed")
        self.errors = list(errors)


class AuthenticationError(AutomationError):
    """The login sequence did not end on an authenticated page."""


class NavigationError(AutomationError):
    """The target page could not be loaded within the job timeout."""


class SessionError(AutomationError):
    """The browser session could not be launched or torn down."""


class FormattingError(AutomationError):
    """The result map could not be serialized into the requested format."""


class ExtractionError(AutomationError):
    """A single extraction rule failed.

    Attributes:
        target: The selector or script the rule was using.
        cause: Message of the underlying failure.
    """

    def __init__(self, message: str, target: str | None = None, cause: str | None = None) -> None:
        super().__init__(message)
        self.target = target
        self.cause = cause

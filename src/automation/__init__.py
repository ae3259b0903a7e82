"""Browser automation engine.

This package turns a declarative job (target page, optional login, a list
of extraction rules, output format) into a structured data payload by
driving a headless browser.

Public API:
    - AutomationService: Validate, run and package a job
    - SessionOrchestrator: Browser session lifecycle for one job
    - ConfigValidator: Checks raw job payloads before any browser work
    - ExtractionEngine: DOM, script, table and form extractors
    - AuthenticationFlow: Form login sub-flow
    - OutputFormatter: JSON / CSV / XML serialization
    - Job, JobOutcome: Job request and result models
"""

from src.automation.authentication import AuthenticationFlow
from src.automation.extraction import ExtractionEngine
from src.automation.formatter import OutputFormatter
from src.automation.models import Job, JobOutcome, OutputFormat
from src.automation.orchestrator import SessionOrchestrator
from src.automation.service import AutomationService
from src.automation.validator import ConfigValidator

__all__ = [
    "AuthenticationFlow",
    "AutomationService",
    "ConfigValidator",
    "ExtractionEngine",
    "Job",
    "JobOutcome",
    "OutputFormat",
    "OutputFormatter",
    "SessionOrchestrator",
]

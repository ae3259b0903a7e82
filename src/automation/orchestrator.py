"""Browser session lifecycle for one automation job.

States: IDLE -> LAUNCHING -> (AUTHENTICATING) -> NAVIGATING -> EXTRACTING
-> CLOSING -> DONE | FAILED. CLOSING runs on every exit path.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from src.automation.authentication import AuthenticationFlow
from src.automation.browser import BrowserSession, SessionLauncher, launch_browser
from src.automation.errors import (
    AuthenticationError,
    AutomationError,
    NavigationError,
    SessionError,
)
from src.automation.extraction import ExtractionEngine
from src.automation.models import Job, RunResult, ScriptRule, SessionState
from src.automation.transcript import Transcript
from src.config.settings import Settings
from src.utils.logging import get_logger

logger = get_logger("orchestrator")

PREVIEW_LENGTH = 50


def preview(value: Any) -> str:
    """Short, single-line rendering of an extracted value for the transcript."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return value[:PREVIEW_LENGTH] + "..." if len(value) > PREVIEW_LENGTH else value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)[:PREVIEW_LENGTH] + "..."
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SessionOrchestrator:
    """Runs a validated :class:`Job` in its own browser session.

    Rules execute strictly in list order; a failing rule yields ``None``
    and never aborts the job. Launch, authentication and navigation
    failures abort the job after teardown, with the transcript attached to
    the raised error.
    """

    def __init__(
        self,
        *,
        launcher: SessionLauncher = launch_browser,
        engine: ExtractionEngine | None = None,
        auth_flow: AuthenticationFlow | None = None,
        viewport: tuple[int, int] = (1920, 1080),
        slow_mo_ms: int = 0,
        settle_delay_ms: int = 2000,
        teardown_timeout_ms: int = 10000,
        state_listener: Callable[[SessionState], None] | None = None,
    ) -> None:
        self.launcher = launcher
        self.engine = engine or ExtractionEngine()
        self.auth_flow = auth_flow or AuthenticationFlow()
        self.viewport = viewport
        self.slow_mo_ms = slow_mo_ms
        self.settle_delay_ms = settle_delay_ms
        self.teardown_timeout_ms = teardown_timeout_ms
        self.state_listener = state_listener

    @classmethod
    def from_settings(
        cls, settings: Settings, *, launcher: SessionLauncher = launch_browser
    ) -> SessionOrchestrator:
        """Build an orchestrator whose bounds come from application settings."""
        return cls(
            launcher=launcher,
            engine=ExtractionEngine(element_timeout_ms=settings.element_timeout_ms),
            auth_flow=AuthenticationFlow(
                field_timeout_ms=settings.login_field_timeout_ms,
                submit_timeout_ms=settings.login_navigation_timeout_ms,
                typing_delay_ms=settings.typing_delay_ms,
            ),
            viewport=(settings.viewport_width, settings.viewport_height),
            slow_mo_ms=settings.slow_mo_ms,
            settle_delay_ms=settings.settle_delay_ms,
            teardown_timeout_ms=settings.teardown_timeout_ms,
        )

    def _enter(self, state: SessionState) -> None:
        logger.debug(f"Session state -> {state.value}")
        if self.state_listener is not None:
            self.state_listener(state)

    async def run(self, job: Job) -> RunResult:
        """Execute the job end to end.

        Returns:
            RunResult with the ordered result map and the transcript.

        Raises:
            SessionError: The browser could not be launched.
            AuthenticationError: The login sequence failed.
            NavigationError: The target page could not be loaded.
            AutomationError: Any other unexpected failure.
        """
        transcript = Transcript(logger)
        session: BrowserSession | None = None
        data: dict[str, Any] = {}
        failure: AutomationError | None = None
        timeout_ms = job.execution.timeout_ms

        self._enter(SessionState.IDLE)
        try:
            self._enter(SessionState.LAUNCHING)
            transcript.info("Launching browser...")
            session = await self._launch(job)
            transcript.success("Browser launched successfully")

            if job.auth is not None:
                self._enter(SessionState.AUTHENTICATING)
                transcript.info("Authenticating...")
                auth_result = await self.auth_flow.login(
                    session, job.auth, navigation_timeout_ms=timeout_ms
                )
                transcript.extend(auth_result.logs)
                if not auth_result.success:
                    raise AuthenticationError(f"Authentication failed: {auth_result.message}")
                transcript.success("Authentication successful")

            self._enter(SessionState.NAVIGATING)
            transcript.info(f"Navigating to {job.target_url}...")
            try:
                await session.navigate(job.target_url, wait_until="networkidle", timeout_ms=timeout_ms)
            except Exception as e:
                raise NavigationError(f"Navigation to {job.target_url} failed: {e}") from e
            transcript.success("Page loaded successfully")

            if self.settle_delay_ms:
                await asyncio.sleep(self.settle_delay_ms / 1000)

            self._enter(SessionState.EXTRACTING)
            transcript.info("Extracting data...")
            for rule in job.extraction:
                try:
                    value = await self.engine.extract(session, rule)
                except Exception as e:
                    transcript.error(f'Failed to extract "{rule.name}": {e}')
                    data[rule.name] = None
                    continue
                data[rule.name] = value
                verb = "Evaluated" if isinstance(rule, ScriptRule) else "Extracted"
                transcript.success(f'{verb} "{rule.name}": {preview(value)}')

            transcript.success(f"Extracted {len(data)} data points")

        except AutomationError as e:
            failure = e
            transcript.error(e.message)
        except Exception as e:
            failure = AutomationError(f"Automation failed: {e}")
            failure.__cause__ = e
            transcript.error(failure.message)
        finally:
            self._enter(SessionState.CLOSING)
            await self._teardown(session, transcript)

        if failure is not None:
            self._enter(SessionState.FAILED)
            failure.logs = transcript.entries
            raise failure

        self._enter(SessionState.DONE)
        return RunResult(data=data, logs=transcript.entries)

    async def _launch(self, job: Job) -> BrowserSession:
        try:
            return await self.launcher(
                headless=job.execution.headless,
                viewport=self.viewport,
                timeout_ms=job.execution.timeout_ms,
                slow_mo_ms=self.slow_mo_ms,
            )
        except SessionError:
            raise
        except Exception as e:
            raise SessionError(f"Failed to launch browser: {e}") from e

    async def _teardown(self, session: BrowserSession | None, transcript: Transcript) -> None:
        if session is None:
            transcript.info("No browser to close")
            return
        try:
            await asyncio.wait_for(session.close(), timeout=self.teardown_timeout_ms / 1000)
        except Exception as e:
            transcript.warn(f"Failed to close browser cleanly: {e}")
            return
        transcript.info("Browser closed")

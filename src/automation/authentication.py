"""Login sub-flow run before the target page is loaded."""

from __future__ import annotations

from src.automation.browser import BrowserSession
from src.automation.models import AuthConfig, AuthResult
from src.automation.transcript import Transcript
from src.utils.logging import get_logger

logger = get_logger("authentication")

LOGIN_URL_MARKERS = ("login", "signin")
ERROR_INDICATOR_SELECTOR = '.error, .alert-danger, [role="alert"]'

ELEMENT_TEXT_JS = """
(selector) => {
  const element = document.querySelector(selector);
  return element ? element.textContent : null;
}
"""

ELEMENT_PRESENT_JS = "(selector) => document.querySelector(selector) !== null"


def looks_like_login_page(url: str) -> bool:
    """True when the URL still contains a login/signin marker."""
    return any(marker in url for marker in LOGIN_URL_MARKERS)


class AuthenticationFlow:
    """Performs a form login on a browser session.

    Attributes:
        navigation_timeout_ms: Bound for loading the login page.
        field_timeout_ms: Bound for the username field to appear.
        submit_timeout_ms: Bound for the navigation triggered by submit.
        typing_delay_ms: Delay between keystrokes while filling credentials.
    """

    def __init__(
        self,
        *,
        navigation_timeout_ms: int = 30000,
        field_timeout_ms: int = 10000,
        submit_timeout_ms: int = 15000,
        typing_delay_ms: int = 100,
    ) -> None:
        self.navigation_timeout_ms = navigation_timeout_ms
        self.field_timeout_ms = field_timeout_ms
        self.submit_timeout_ms = submit_timeout_ms
        self.typing_delay_ms = typing_delay_ms

    async def login(
        self,
        session: BrowserSession,
        auth: AuthConfig,
        navigation_timeout_ms: int | None = None,
    ) -> AuthResult:
        """Log in and report the outcome with its own transcript.

        Never raises: any failure along the way is returned as
        ``AuthResult(success=False, message=...)``.
        """
        transcript = Transcript(logger)
        selectors = auth.selectors

        try:
            transcript.info(f"Navigating to login page: {auth.login_url}")
            await session.navigate(
                auth.login_url,
                wait_until="networkidle",
                timeout_ms=navigation_timeout_ms or self.navigation_timeout_ms,
            )

            transcript.info("Waiting for login form...")
            await session.wait_for_selector(selectors.username, self.field_timeout_ms)

            transcript.info("Filling in credentials...")
            await session.type(selectors.username, auth.username, self.typing_delay_ms)
            await session.type(selectors.password, auth.password, self.typing_delay_ms)

            transcript.info("Submitting login form...")
            await session.click_and_wait_for_navigation(
                selectors.submit,
                wait_until="networkidle",
                timeout_ms=self.submit_timeout_ms,
            )

            if looks_like_login_page(session.url):
                error_text = await session.evaluate(ELEMENT_TEXT_JS, ERROR_INDICATOR_SELECTOR)
                if error_text is not None:
                    raise RuntimeError(f"Login failed: {error_text.strip()}")
                raise RuntimeError("Login failed: Still on login page")

            transcript.success("Login successful")
            return AuthResult(success=True, logs=transcript.entries)

        except Exception as e:
            transcript.error(f"Authentication failed: {e}")
            return AuthResult(success=False, message=str(e), logs=transcript.entries)

    async def is_authenticated(self, session: BrowserSession, auth: AuthConfig) -> bool:
        """Best-effort check that the session is past the login page."""
        try:
            if looks_like_login_page(session.url):
                return False
            if auth.check_selector:
                return bool(await session.evaluate(ELEMENT_PRESENT_JS, auth.check_selector))
            return True
        except Exception as e:
            logger.error(f"Auth check error: {e}")
            return False

"""Pytest configuration and shared fixtures.

The engine only talks to the ``BrowserSession`` capability, so tests drive it
with an in-memory page model instead of a real browser.
"""

from __future__ import annotations

from typing import Any

import pytest

from src.automation.authentication import ELEMENT_PRESENT_JS, ELEMENT_TEXT_JS
from src.automation.extraction import READ_ELEMENTS_JS, READ_FORM_JS, READ_TABLE_JS


class FakeSession:
    """In-memory stand-in for a browser tab.

    ``pages`` maps a URL to its elements: ``{selector: [element, ...]}``
    where each element is a dict of attribute name to value. Scripts are
    answered from ``scripts`` (expression -> value, or an exception to raise).
    """

    def __init__(
        self,
        pages: dict[str, dict[str, list[dict[str, Any]]]] | None = None,
        *,
        scripts: dict[str, Any] | None = None,
        structures: dict[str, Any] | None = None,
        navigation_errors: dict[str, Exception] | None = None,
        submit_redirect: str | None = None,
        close_error: Exception | None = None,
    ) -> None:
        self.pages = pages or {}
        self.scripts = scripts or {}
        self.structures = structures or {}
        self.navigation_errors = navigation_errors or {}
        self.submit_redirect = submit_redirect
        self.close_error = close_error
        self.current_url = "about:blank"
        self.calls: list[tuple] = []
        self.typed: list[tuple[str, str, int]] = []
        self.closed = False

    @property
    def url(self) -> str:
        return self.current_url

    @property
    def elements(self) -> dict[str, list[dict[str, Any]]]:
        return self.pages.get(self.current_url, {})

    async def navigate(self, url: str, wait_until: str = "networkidle", timeout_ms: int | None = None) -> None:
        self.calls.append(("navigate", url, wait_until, timeout_ms))
        if url in self.navigation_errors:
            raise self.navigation_errors[url]
        self.current_url = url

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None:
        self.calls.append(("wait_for_selector", selector, timeout_ms))
        key = selector.removeprefix("xpath=")
        if not self.elements.get(key):
            raise TimeoutError(f"Timeout {timeout_ms}ms exceeded waiting for {selector}")

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.calls.append(("evaluate", expression, arg))
        if expression == READ_ELEMENTS_JS:
            return self._read_elements(**arg)
        if expression in (READ_TABLE_JS, READ_FORM_JS):
            return self.structures.get(arg)
        if expression == ELEMENT_TEXT_JS:
            matches = self.elements.get(arg)
            return matches[0].get("textContent") if matches else None
        if expression == ELEMENT_PRESENT_JS:
            return bool(self.elements.get(arg))
        if expression not in self.scripts:
            raise RuntimeError(f"ReferenceError: unexpected script {expression}")
        result = self.scripts[expression]
        if isinstance(result, Exception):
            raise result
        return result

    def _read_elements(self, selector: str, selectorType: str, attribute: str, multiple: bool) -> dict:
        matches = self.elements.get(selector, [])
        if attribute == "count":
            return {"found": bool(matches), "value": len(matches)}
        if not matches:
            return {"found": False, "value": [] if multiple else None}

        def read(element: dict[str, Any]) -> Any:
            value = element.get(attribute)
            if attribute in ("textContent", "innerText", "innerHTML"):
                return (value or "").strip()
            return value

        if multiple:
            return {"found": True, "value": [read(element) for element in matches]}
        return {"found": True, "value": read(matches[0])}

    async def type(self, selector: str, text: str, delay_ms: int = 0) -> None:
        self.calls.append(("type", selector))
        if not self.elements.get(selector):
            raise TimeoutError(f"No element for {selector}")
        self.typed.append((selector, text, delay_ms))

    async def click(self, selector: str) -> None:
        self.calls.append(("click", selector))

    async def click_and_wait_for_navigation(
        self, selector: str, wait_until: str = "networkidle", timeout_ms: int | None = None
    ) -> None:
        self.calls.append(("click_and_wait_for_navigation", selector, timeout_ms))
        if self.submit_redirect is not None:
            self.current_url = self.submit_redirect

    async def close(self) -> None:
        self.calls.append(("close",))
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeLauncher:
    """Async launcher returning a prepared session and recording its options."""

    def __init__(self, session: FakeSession | None = None, error: Exception | None = None) -> None:
        self.session = session
        self.error = error
        self.kwargs: dict[str, Any] | None = None

    async def __call__(self, **kwargs: Any) -> FakeSession:
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.session


@pytest.fixture
def fake_session_factory():
    """Build :class:`FakeSession` objects."""
    return FakeSession


@pytest.fixture
def fake_launcher_factory():
    """Build :class:`FakeLauncher` objects."""
    return FakeLauncher


@pytest.fixture
def sample_target_url() -> str:
    """Target page used by sample jobs."""
    return "https://shop.example.com/item/42"


@pytest.fixture
def sample_job_payload(sample_target_url: str) -> dict:
    """A minimal valid job payload in wire format."""
    return {
        "projectName": "Prices",
        "target": {"url": sample_target_url},
        "execution": {"timeout": 30000, "retries": 3, "headless": True},
        "extraction": [
            {"type": "dom", "name": "price", "selector": ".price", "attribute": "textContent"},
        ],
        "outputFormat": "json",
    }

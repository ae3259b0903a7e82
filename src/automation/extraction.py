"""Extraction strategies executed against a live page.

Every extractor follows the same pattern: wait (bounded) for the target to
be attached, then read it with one script evaluation. Failures are raised as
:class:`ExtractionError`; deciding what a failed rule means for the job is
the orchestrator's business.
"""

from __future__ import annotations

from typing import Any

from src.automation.browser import BrowserSession
from src.automation.errors import ExtractionError
from src.automation.models import DomRule, ScriptRule
from src.utils.logging import get_logger

logger = get_logger("extraction")

DEFAULT_ELEMENT_TIMEOUT_MS = 5000

# Resolves css or xpath selectors and reads one attribute from the matches.
# Returns {found, value} so "no match" is distinguishable from a null attribute.
READ_ELEMENTS_JS = """
({ selector, selectorType, attribute, multiple }) => {
  let elements;
  if (selectorType === 'xpath') {
    const snapshot = document.evaluate(
      selector, document, null, XPathResult.ORDERED_NODE_SNAPSHOT_TYPE, null);
    elements = [];
    for (let i = 0; i < snapshot.snapshotLength; i++) {
      elements.push(snapshot.snapshotItem(i));
    }
  } else {
    elements = Array.from(document.querySelectorAll(selector));
  }
  const read = (el) => {
    if (attribute === 'textContent') return (el.textContent ?? '').trim();
    if (attribute === 'innerText') return (el.innerText ?? el.textContent ?? '').trim();
    if (attribute === 'innerHTML') return (el.innerHTML ?? '').trim();
    return el.getAttribute ? el.getAttribute(attribute) : null;
  };
  if (attribute === 'count') {
    return { found: elements.length > 0, value: elements.length };
  }
  if (elements.length === 0) {
    return { found: false, value: multiple ? [] : null };
  }
  return { found: true, value: multiple ? elements.map(read) : read(elements[0]) };
}
"""

READ_TABLE_JS = """
(selector) => {
  const table = document.querySelector(selector);
  if (!table) return null;
  const headers = Array.from(table.querySelectorAll('thead th, thead td'))
    .map((th) => th.textContent.trim());
  const rows = Array.from(table.querySelectorAll('tbody tr')).map((row) => {
    const cells = Array.from(row.querySelectorAll('td, th'))
      .map((cell) => cell.textContent.trim());
    const record = {};
    headers.forEach((header, index) => {
      record[header] = cells[index] || '';
    });
    return record;
  });
  return { headers, rows };
}
"""

READ_FORM_JS = """
(selector) => {
  const form = document.querySelector(selector);
  if (!form) return null;
  const data = {};
  form.querySelectorAll('input, select, textarea').forEach((input) => {
    const name = input.name || input.id;
    if (!name) return;
    if (input.type === 'checkbox') {
      data[name] = input.checked;
    } else if (input.type === 'radio') {
      if (input.checked) data[name] = input.value;
    } else {
      data[name] = input.value;
    }
  });
  return data;
}
"""


def wrap_script(code: str) -> str:
    """Wrap rule code so its value is returned from an IIFE.

    Code that already starts with ``return`` is used as the function body;
    anything else is treated as an expression.
    """
    if code.strip().startswith("return"):
        return f"(function() {{ {code} }})()"
    return f"(function() {{ return {code} }})()"


def wait_selector_for(rule: DomRule) -> str:
    """Selector string understood by the session's wait primitive."""
    if rule.selector_type == "xpath":
        return f"xpath={rule.selector}"
    return rule.selector


class ExtractionEngine:
    """Runs extraction rules against a :class:`BrowserSession`."""

    def __init__(self, element_timeout_ms: int = DEFAULT_ELEMENT_TIMEOUT_MS) -> None:
        self.element_timeout_ms = element_timeout_ms

    async def extract(self, session: BrowserSession, rule: DomRule | ScriptRule) -> Any:
        """Execute one rule and return its value.

        Raises:
            ExtractionError: If the rule could not be evaluated.
        """
        if isinstance(rule, ScriptRule):
            return await self.extract_script(session, rule)
        if rule.multiple:
            return await self.extract_dom_multiple(session, rule)
        return await self.extract_dom(session, rule)

    async def extract_dom(self, session: BrowserSession, rule: DomRule) -> Any:
        """Read ``rule.attribute`` from the first element matching the selector."""
        return await self._read_elements(session, rule, multiple=False)

    async def extract_dom_multiple(self, session: BrowserSession, rule: DomRule) -> list[Any]:
        """Read ``rule.attribute`` from every matching element, in document order."""
        return await self._read_elements(session, rule, multiple=True)

    async def _read_elements(self, session: BrowserSession, rule: DomRule, *, multiple: bool) -> Any:
        mode = "multiple " if multiple else ""
        try:
            await session.wait_for_selector(wait_selector_for(rule), self.element_timeout_ms)
            result = await session.evaluate(
                READ_ELEMENTS_JS,
                {
                    "selector": rule.selector,
                    "selectorType": rule.selector_type,
                    "attribute": rule.attribute,
                    "multiple": multiple,
                },
            )
        except Exception as e:
            logger.error(f"DOM {mode}extraction error: {e}")
            raise ExtractionError(
                f'Could not extract {mode}using selector "{rule.selector}": {e}',
                target=rule.selector,
                cause=str(e),
            ) from e

        if not result or not result.get("found"):
            raise ExtractionError(
                f'Could not extract {mode}using selector "{rule.selector}": no matching element',
                target=rule.selector,
                cause="no matching element",
            )
        return result.get("value")

    async def extract_script(self, session: BrowserSession, rule: ScriptRule) -> Any:
        """Evaluate the rule's code in the page and return its value."""
        try:
            return await session.evaluate(wrap_script(rule.js_code))
        except Exception as e:
            logger.error(f"JS extraction error: {e}")
            raise ExtractionError(
                f"JavaScript evaluation failed: {e}",
                target=rule.js_code,
                cause=str(e),
            ) from e

    async def extract_table(self, session: BrowserSession, selector: str) -> dict[str, Any]:
        """Read a table into ``{"headers": [...], "rows": [{header: cell}, ...]}``."""
        return await self._read_structure(session, selector, READ_TABLE_JS, "table")

    async def extract_form(self, session: BrowserSession, selector: str) -> dict[str, Any]:
        """Read the current values of a form's named controls."""
        return await self._read_structure(session, selector, READ_FORM_JS, "form")

    async def _read_structure(
        self, session: BrowserSession, selector: str, script: str, kind: str
    ) -> dict[str, Any]:
        try:
            await session.wait_for_selector(selector, self.element_timeout_ms)
            value = await session.evaluate(script, selector)
        except Exception as e:
            logger.error(f"{kind.capitalize()} extraction error: {e}")
            raise ExtractionError(
                f'Could not extract {kind} "{selector}": {e}',
                target=selector,
                cause=str(e),
            ) from e

        if value is None:
            raise ExtractionError(
                f'Could not extract {kind} "{selector}": no matching element',
                target=selector,
                cause="no matching element",
            )
        return value

"""Validation of raw job payloads.

Runs before any browser is launched: every check here is cheap and local,
so a malformed or unsafe job is rejected without touching the network.
Checks are independent and accumulate; ``validate`` never raises.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse

from src.automation.models import ValidationIssue, ValidationResult

RULE_TYPES = ("dom", "js")
SELECTOR_TYPES = ("css", "xpath")
DOM_ATTRIBUTES = ("textContent", "innerText", "innerHTML", "href", "src", "value", "count")
OUTPUT_FORMATS = ("json", "csv", "xml")

MAX_PROJECT_NAME = 100
MAX_RULE_NAME = 100
MAX_SELECTOR = 500
MAX_JS_CODE = 5000

MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 300000
MAX_RETRIES = 10

# Patterns signalling an attempt to reach beyond the page context. This is a
# coarse static filter, not an isolation boundary.
DANGEROUS_JS_PATTERNS = (
    re.compile(r"require\s*\(", re.IGNORECASE),
    re.compile(r"import\s+.*\s+from", re.IGNORECASE),
    re.compile(r"process\.", re.IGNORECASE),
    re.compile(r"fs\.", re.IGNORECASE),
    re.compile(r"child_process", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"Function\s*\(", re.IGNORECASE),
    re.compile(r"setTimeout.*eval", re.IGNORECASE),
    re.compile(r"setInterval.*eval", re.IGNORECASE),
)

SECURITY_CHECKS = (
    "url-scheme",
    "xpath-syntax",
    "script-denylist",
    "length-limits",
)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_url(url: Any) -> bool:
    """Return True for a well-formed http(s) URL."""
    if not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_xpath(xpath: str) -> bool:
    """Structural sanity check for an XPath expression.

    Requires a leading ``/`` and balanced brackets, parentheses and quotes.
    This is a heuristic, not an XPath grammar.
    """
    if not xpath.startswith("/"):
        return False
    if xpath.count("[") != xpath.count("]"):
        return False
    if xpath.count("(") != xpath.count(")"):
        return False
    return xpath.count("'") % 2 == 0 and xpath.count('"') % 2 == 0


def contains_dangerous_js(code: str) -> bool:
    """Return True if ``code`` matches any deny-listed pattern."""
    return any(pattern.search(code) for pattern in DANGEROUS_JS_PATTERNS)


def sanitize(value: Any) -> Any:
    """Strip angle brackets and surrounding whitespace from strings."""
    if not isinstance(value, str):
        return value
    return re.sub(r"[<>]", "", value).strip()


class ConfigValidator:
    """Checks job payloads against the job contract."""

    def validate(self, payload: Any) -> ValidationResult:
        """Validate a raw job payload.

        Args:
            payload: Decoded JSON/YAML job document.

        Returns:
            ValidationResult with every violation found, in check order.
        """
        if not isinstance(payload, Mapping):
            issues = [ValidationIssue(field="job", message="Job configuration must be an object")]
            return ValidationResult(valid=False, errors=issues)

        errors: list[ValidationIssue] = []
        errors.extend(self._validate_target(payload.get("target")))

        project_name = payload.get("projectName")
        if project_name is not None:
            if not isinstance(project_name, str):
                errors.append(ValidationIssue(field="projectName", message="Project name must be a string"))
            elif len(project_name) > MAX_PROJECT_NAME:
                errors.append(
                    ValidationIssue(
                        field="projectName",
                        message="Project name must be less than 100 characters",
                    )
                )

        extraction = payload.get("extraction")
        if not isinstance(extraction, list):
            errors.append(ValidationIssue(field="extraction", message="Extraction rules must be an array"))
        elif not extraction:
            errors.append(
                ValidationIssue(field="extraction", message="At least one extraction rule is required")
            )
        else:
            for index, rule in enumerate(extraction):
                errors.extend(self.validate_rule(rule, index))

        if payload.get("auth") is not None:
            errors.extend(self.validate_auth(payload["auth"]))

        if payload.get("execution") is not None:
            errors.extend(self.validate_execution(payload["execution"]))

        output_format = payload.get("outputFormat")
        if output_format is not None and (
            not isinstance(output_format, str) or output_format.lower() not in OUTPUT_FORMATS
        ):
            errors.append(
                ValidationIssue(
                    field="outputFormat",
                    message="Output format must be one of: json, csv, xml",
                )
            )

        return ValidationResult(valid=not errors, errors=errors)

    def _validate_target(self, target: Any) -> list[ValidationIssue]:
        if not target:
            return [ValidationIssue(field="target", message="Target configuration is required")]
        if not isinstance(target, Mapping):
            return [ValidationIssue(field="target", message="Target configuration must be an object")]
        url = target.get("url")
        if not url:
            return [ValidationIssue(field="target.url", message="Target URL is required")]
        if not is_valid_url(url):
            return [ValidationIssue(field="target.url", message="Invalid URL format")]
        return []

    def validate_rule(self, rule: Any, index: int) -> list[ValidationIssue]:
        """Validate one extraction rule; field names are prefixed ``extraction[i]``."""
        prefix = f"extraction[{index}]"
        if not isinstance(rule, Mapping):
            return [ValidationIssue(field=prefix, message="Extraction rule must be an object")]

        errors: list[ValidationIssue] = []
        rule_type = rule.get("type")
        if not rule_type:
            errors.append(ValidationIssue(field=f"{prefix}.type", message="Rule type is required"))
        elif rule_type not in RULE_TYPES:
            errors.append(
                ValidationIssue(field=f"{prefix}.type", message='Rule type must be "dom" or "js"')
            )

        name = rule.get("name")
        if _is_blank(name):
            errors.append(ValidationIssue(field=f"{prefix}.name", message="Rule name is required"))
        elif len(name) > MAX_RULE_NAME:
            errors.append(
                ValidationIssue(
                    field=f"{prefix}.name",
                    message="Rule name must be less than 100 characters",
                )
            )

        if rule_type == "dom":
            errors.extend(self._validate_dom_rule(rule, prefix))
        elif rule_type == "js":
            errors.extend(self._validate_js_rule(rule, prefix))

        return errors

    def _validate_dom_rule(self, rule: Mapping, prefix: str) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []
        selector = rule.get("selector")
        if _is_blank(selector):
            errors.append(
                ValidationIssue(field=f"{prefix}.selector", message="Selector is required for DOM rules")
            )
        elif len(selector) > MAX_SELECTOR:
            errors.append(
                ValidationIssue(
                    field=f"{prefix}.selector",
                    message="Selector must be less than 500 characters",
                )
            )

        selector_type = rule.get("selectorType")
        if selector_type is not None and selector_type not in SELECTOR_TYPES:
            errors.append(
                ValidationIssue(
                    field=f"{prefix}.selectorType",
                    message='Selector type must be "css" or "xpath"',
                )
            )

        if selector_type == "xpath" and isinstance(selector, str) and not is_valid_xpath(selector):
            errors.append(ValidationIssue(field=f"{prefix}.selector", message="Invalid XPath syntax"))

        attribute = rule.get("attribute")
        if attribute is not None and attribute not in DOM_ATTRIBUTES:
            errors.append(
                ValidationIssue(
                    field=f"{prefix}.attribute",
                    message=f"Attribute must be one of: {', '.join(DOM_ATTRIBUTES)}",
                )
            )

        if "multiple" in rule and not isinstance(rule["multiple"], bool):
            errors.append(ValidationIssue(field=f"{prefix}.multiple", message="Multiple must be a boolean"))

        return errors

    def _validate_js_rule(self, rule: Mapping, prefix: str) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []
        code = rule.get("jsCode")
        if _is_blank(code):
            errors.append(
                ValidationIssue(
                    field=f"{prefix}.jsCode",
                    message="JavaScript code is required for JS rules",
                )
            )
            return errors

        if len(code) > MAX_JS_CODE:
            errors.append(
                ValidationIssue(
                    field=f"{prefix}.jsCode",
                    message="JavaScript code must be less than 5000 characters",
                )
            )

        if contains_dangerous_js(code):
            errors.append(
                ValidationIssue(
                    field=f"{prefix}.jsCode",
                    message="JavaScript code contains potentially dangerous operations",
                )
            )

        return errors

    def validate_auth(self, auth: Any) -> list[ValidationIssue]:
        """Validate the optional login block."""
        if not isinstance(auth, Mapping):
            return [ValidationIssue(field="auth", message="Authentication configuration must be an object")]

        errors: list[ValidationIssue] = []
        login_url = auth.get("loginUrl")
        if not login_url:
            errors.append(ValidationIssue(field="auth.loginUrl", message="Login URL is required"))
        elif not is_valid_url(login_url):
            errors.append(ValidationIssue(field="auth.loginUrl", message="Invalid login URL format"))

        if _is_blank(auth.get("username")):
            errors.append(ValidationIssue(field="auth.username", message="Username is required"))
        if _is_blank(auth.get("password")):
            errors.append(ValidationIssue(field="auth.password", message="Password is required"))

        selectors = auth.get("selectors")
        if selectors is not None:
            if not isinstance(selectors, Mapping):
                errors.append(
                    ValidationIssue(field="auth.selectors", message="Selectors must be an object")
                )
            else:
                for key, label in (
                    ("username", "Username selector"),
                    ("password", "Password selector"),
                    ("submit", "Submit button selector"),
                ):
                    if _is_blank(selectors.get(key)):
                        errors.append(
                            ValidationIssue(
                                field=f"auth.selectors.{key}",
                                message=f"{label} is required",
                            )
                        )

        check_selector = auth.get("checkSelector")
        if check_selector is not None and _is_blank(check_selector):
            errors.append(
                ValidationIssue(
                    field="auth.checkSelector",
                    message="Check selector must be a non-empty string",
                )
            )

        return errors

    def validate_execution(self, execution: Any) -> list[ValidationIssue]:
        """Validate timeout, retries and headless settings."""
        if not isinstance(execution, Mapping):
            return [ValidationIssue(field="execution", message="Execution settings must be an object")]

        errors: list[ValidationIssue] = []
        timeout = execution.get("timeout")
        if timeout is not None:
            if not _is_number(timeout):
                errors.append(ValidationIssue(field="execution.timeout", message="Timeout must be a number"))
            elif not MIN_TIMEOUT_MS <= timeout <= MAX_TIMEOUT_MS:
                errors.append(
                    ValidationIssue(
                        field="execution.timeout",
                        message="Timeout must be between 1000ms (1s) and 300000ms (5min)",
                    )
                )

        retries = execution.get("retries")
        if retries is not None:
            if not _is_number(retries):
                errors.append(ValidationIssue(field="execution.retries", message="Retries must be a number"))
            elif not 0 <= retries <= MAX_RETRIES:
                errors.append(
                    ValidationIssue(
                        field="execution.retries",
                        message="Retries must be between 0 and 10",
                    )
                )

        headless = execution.get("headless")
        if headless is not None and not isinstance(headless, bool):
            errors.append(
                ValidationIssue(field="execution.headless", message="Headless must be a boolean")
            )

        return errors

"""Serialization of result maps into JSON, CSV and XML.

All three formats walk the same tagged view of a value: null, scalar,
sequence or mapping.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any

from src.automation.errors import FormattingError
from src.utils.logging import get_logger

logger = get_logger("formatter")

NULL = "null"
SCALAR = "scalar"
SEQUENCE = "sequence"
MAPPING = "mapping"

CONTENT_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "xml": "application/xml",
}

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'
_XML_ESCAPES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&apos;"}
_INVALID_TAG_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def kind_of(value: Any) -> str:
    """Classify a value as null, scalar, sequence or mapping."""
    if value is None:
        return NULL
    if isinstance(value, Mapping):
        return MAPPING
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return SEQUENCE
    return SCALAR


def scalar_text(value: Any) -> str:
    """String form of a scalar as the page would render it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def sanitize_tag(tag: str) -> str:
    """Make ``tag`` a valid XML element name.

    Characters outside ``[A-Za-z0-9_-]`` become ``_``; a name that does not
    start with a letter or underscore gets a ``_`` prefix.
    """
    safe = _INVALID_TAG_CHARS.sub("_", str(tag))
    if not safe or not (safe[0].isalpha() or safe[0] == "_"):
        safe = f"_{safe}"
    return safe


def escape_xml(text: str) -> str:
    return "".join(_XML_ESCAPES.get(char, char) for char in text)


def escape_csv(value: Any) -> str:
    """Render one CSV cell, quoting when it holds a comma, quote or newline."""
    if value is None:
        return ""
    if kind_of(value) in (SEQUENCE, MAPPING):
        text = json.dumps(value, ensure_ascii=False, default=str)
    else:
        text = scalar_text(value)
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


class OutputFormatter:
    """Turns an ordered result map into a transport-ready string."""

    def format(self, data: Any, fmt: str | None = "json") -> str:
        """Serialize ``data`` as ``fmt`` (json, csv or xml; unknown -> json).

        Raises:
            FormattingError: If the data cannot be represented in the format.
        """
        name = (fmt or "json").lower()
        if name == "csv":
            return self.to_csv(data)
        if name == "xml":
            return self.to_xml(data)
        return self.to_json(data)

    def to_json(self, data: Any) -> str:
        try:
            return json.dumps(data, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"JSON formatting error: {e}")
            raise FormattingError("Failed to format data as JSON") from e

    def to_csv(self, data: Any) -> str:
        if kind_of(data) != MAPPING:
            logger.error("CSV formatting error: data must be a mapping")
            raise FormattingError("Failed to format data as CSV")
        if not data:
            return ""

        headers = list(data.keys())
        if not any(kind_of(value) == SEQUENCE for value in data.values()):
            header_row = ",".join(escape_csv(header) for header in headers)
            value_row = ",".join(escape_csv(data[header]) for header in headers)
            return f"{header_row}\n{value_row}"

        row_count = max(
            [1] + [len(value) for value in data.values() if kind_of(value) == SEQUENCE]
        )
        lines = [",".join(escape_csv(header) for header in headers)]
        for index in range(row_count):
            cells = []
            for header in headers:
                value = data[header]
                if kind_of(value) == SEQUENCE:
                    cells.append(escape_csv(value[index] if index < len(value) else None))
                else:
                    cells.append(escape_csv(value) if index == 0 else "")
            lines.append(",".join(cells))
        return "\n".join(lines).rstrip()

    def to_xml(self, data: Any) -> str:
        if kind_of(data) != MAPPING:
            logger.error("XML formatting error: data must be a mapping")
            raise FormattingError("Failed to format data as XML")

        parts = [XML_HEADER, "\n<data>\n"]
        for key, value in data.items():
            parts.append(self._xml_element(str(key), value, 1))
        parts.append("</data>")
        return "".join(parts)

    def _xml_element(self, key: str, value: Any, depth: int) -> str:
        indent = "  " * depth
        tag = sanitize_tag(key)
        kind = kind_of(value)

        if kind == NULL:
            return f"{indent}<{tag} />\n"
        if kind == SEQUENCE:
            children = "".join(self._xml_element("item", item, depth + 1) for item in value)
            return f"{indent}<{tag}>\n{children}{indent}</{tag}>\n"
        if kind == MAPPING:
            children = "".join(self._xml_element(str(k), v, depth + 1) for k, v in value.items())
            return f"{indent}<{tag}>\n{children}{indent}</{tag}>\n"
        return f"{indent}<{tag}>{escape_xml(scalar_text(value))}</{tag}>\n"

    def content_type(self, fmt: str | None) -> str:
        """MIME type for a format (unknown formats are served as JSON)."""
        return CONTENT_TYPES.get((fmt or "json").lower(), CONTENT_TYPES["json"])

    def file_extension(self, fmt: str | None) -> str:
        """File extension used for attachment downloads."""
        return (fmt or "json").lower()

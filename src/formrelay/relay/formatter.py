"""Render a FieldMap as a Telegram chat message.

Two markup dialects are supported:

- ``HTML``: bold via ``<b>``, text escaped with HTML entities.
- ``Markdown``: MarkdownV2 subset, bold via ``*``, special characters
  escaped with a backslash.

Escaping always runs on the plain text (after humanizing names and
joining list values) and before the text is wrapped in bold markers.
"""

from __future__ import annotations

import html
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from formrelay.config import MessageFormat

from .models import FieldMap, SubmissionTimes

DEFAULT_TITLE = "Form Submission"
TITLE_FIELD = "form_name"
HEADER_PREFIX = "\U0001F4DD New Form Submission"
DATE_HEADING = "\U0001F4C5 Date/Time:"
LOCAL_MARKER = "\U0001F310"
LIST_SEPARATOR = ", "

MARKDOWN_SPECIAL_CHARS = "_*[]()~`>#+-=|{}.!"
_MARKDOWN_ESCAPE_RE = re.compile("[" + re.escape(MARKDOWN_SPECIAL_CHARS) + "]")


def escape_html(text: str) -> str:
    """Escape ``& < > "`` as HTML entities (single quotes left alone)."""
    return html.escape(text, quote=False).replace('"', "&quot;")


def escape_markdown(text: str) -> str:
    """Backslash-escape MarkdownV2 special characters in one pass.

    Inserted backslashes are never re-scanned, so every special character
    gets exactly one backslash in front of it.
    """
    return _MARKDOWN_ESCAPE_RE.sub(lambda m: "\\" + m.group(0), text)


@dataclass(frozen=True)
class Dialect:
    """Markup rules for one message format."""

    name: MessageFormat
    parse_mode: str
    escape: Callable[[str], str]
    bold_open: str
    bold_close: str

    def bold(self, escaped_text: str) -> str:
        return f"{self.bold_open}{escaped_text}{self.bold_close}"


HTML_DIALECT = Dialect(
    name="HTML", parse_mode="HTML", escape=escape_html, bold_open="<b>", bold_close="</b>"
)
MARKDOWN_DIALECT = Dialect(
    name="Markdown", parse_mode="MarkdownV2", escape=escape_markdown, bold_open="*", bold_close="*"
)

_DIALECTS: dict[str, Dialect] = {
    HTML_DIALECT.name: HTML_DIALECT,
    MARKDOWN_DIALECT.name: MARKDOWN_DIALECT,
}


def get_dialect(message_format: str) -> Dialect:
    """Look up a dialect by format name. Unknown names get HTML."""
    return _DIALECTS.get(message_format, HTML_DIALECT)


def humanize_field_name(name: str) -> str:
    """``first_name`` -> ``First name``."""
    text = name.replace("_", " ")
    return text[:1].upper() + text[1:]


def stringify_value(value: Any) -> str:
    """Flatten a submitted value to text. Lists are joined with ``", "``."""
    if isinstance(value, (list, tuple)):
        return LIST_SEPARATOR.join(stringify_value(item) for item in value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def submission_title(fields: FieldMap) -> str:
    """Title shown in the header.

    A missing (or null) ``form_name`` gets the generic label; a present but
    empty one yields an empty title and the header carries no suffix.
    """
    value = fields.get(TITLE_FIELD)
    if value is None:
        return DEFAULT_TITLE
    return stringify_value(value)


def header_text(fields: FieldMap) -> str:
    title = submission_title(fields)
    return f"{HEADER_PREFIX}: {title}" if title else HEADER_PREFIX


def render_field_lines(
    fields: FieldMap, skip_fields: Iterable[str], dialect: Dialect
) -> list[str]:
    """One ``Name: value`` line per non-skipped field, in insertion order."""
    skipped = frozenset(skip_fields)
    lines = []
    for name, value in fields.items():
        if name in skipped:
            continue
        label = dialect.escape(humanize_field_name(name))
        text = dialect.escape(stringify_value(value))
        lines.append(f"{dialect.bold(label + ':')} {text}")
    return lines


def build_message(
    fields: FieldMap,
    skip_fields: Iterable[str],
    times: SubmissionTimes,
    dialect: Dialect,
    *,
    reference_flag: str,
    reference_name: str,
) -> str:
    """Build the full chat message for one submission.

    Args:
        fields: Decoded submission.
        skip_fields: Names excluded from the field block.
        times: Submission instant in the reference and display zones.
        dialect: Markup dialect.
        reference_flag: Marker shown before the reference timestamp
            (escaped like any other text).
        reference_name: Label of the reference zone (e.g. "Kyiv").

    Returns:
        Message text in the dialect's markup.
    """
    escape = dialect.escape
    header = dialect.bold(escape(header_text(fields)))

    parts = [header, ""]
    parts.extend(render_field_lines(fields, skip_fields, dialect))
    parts.append("")
    parts.append(dialect.bold(escape(DATE_HEADING)))
    parts.append(
        f"{escape(reference_flag)} {dialect.bold(escape(reference_name + ':'))} {escape(times.reference)}"
    )
    parts.append(
        f"{LOCAL_MARKER} {dialect.bold(escape('Local:'))} "
        f"{escape(times.local)} {escape('(' + times.local_zone + ')')}"
    )
    return "\n".join(parts)

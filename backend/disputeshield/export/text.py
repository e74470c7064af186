from __future__ import annotations

import re

EMPTY_VALUE_PLACEHOLDER = "—"
ENTRY_SEPARATOR = " — "
FALLBACK_FILENAME_PART = "unknown"

# Applied after sentence casing so the lowercase pass never undoes them.
CARRIER_NAME_FIXUPS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bups\b", flags=re.IGNORECASE), "UPS"),
    (re.compile(r"\busps\b", flags=re.IGNORECASE), "USPS"),
    (re.compile(r"\bfedex\b", flags=re.IGNORECASE), "FedEx"),
    (re.compile(r"\bdhl\b", flags=re.IGNORECASE), "DHL"),
]

_DATED_EVENT_PATTERN = re.compile(r"^([0-9]{4}-[0-9]{2}-[0-9]{2})(\s*(?:-|:)\s*)(.+)$")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def normalize_sentence_case(text: str) -> str:
    trimmed = text.strip()
    if not trimmed:
        return ""

    lowered = trimmed.lower()
    sentence = lowered[0].upper() + lowered[1:]
    for pattern, replacement in CARRIER_NAME_FIXUPS:
        sentence = pattern.sub(replacement, sentence)
    return sentence


def normalize_timeline_event(text: str) -> str:
    """Sentence-case a timeline entry, keeping a leading ISO date and its separator verbatim."""
    trimmed = text.strip()
    if not trimmed:
        return ""

    match = _DATED_EVENT_PATTERN.match(trimmed)
    if match:
        date, separator, description = match.groups()
        return f"{date}{separator}{normalize_sentence_case(description)}"
    return normalize_sentence_case(trimmed)


def wrap_text(text: str, max_line_length: int) -> list[str]:
    """Greedy word wrap by character count.

    Words are never split; a word longer than ``max_line_length`` sits alone on
    its own line. Blank input yields ``[""]`` so callers always have a line to draw.
    """
    words = text.split()
    if not words:
        return [""]

    lines: list[str] = []
    line = ""
    for word in words:
        candidate = f"{line} {word}" if line else word
        if len(candidate) > max_line_length:
            if line:
                lines.append(line)
            line = word
        else:
            line = candidate

    if line:
        lines.append(line)
    return lines


def has_value(value: str | None) -> bool:
    return bool(value and value.strip())


def display_value(value: str | None) -> str:
    if not has_value(value):
        return EMPTY_VALUE_PLACEHOLDER
    return str(value).strip()


def format_attachment_entry(file_name: str, note: str | None) -> str:
    cleaned_note = (note or "").strip()
    if cleaned_note:
        return f"{file_name}{ENTRY_SEPARATOR}{cleaned_note}"
    return file_name


def csv_escape(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def sanitize_filename_part(value: str) -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", value.strip()).strip("_")
    return cleaned or FALLBACK_FILENAME_PART

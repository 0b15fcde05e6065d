# src/providers/description_parser.py — v1
"""Best-effort parser for free-text fusion descriptions.

Vision models answer in loosely structured prose: bold markdown headings,
numbered lists, or plain "Heading: text" lines. Each field falls back to
its DescriptionFields default when the heading is missing or empty.
"""

from __future__ import annotations

import logging
import re

from pokefusion.core.models import DescriptionFields

logger = logging.getLogger(__name__)

_HEADINGS: dict[str, str] = {
    "body_structure": r"body\s+structure(?:\s+and\s+pose)?",
    "color_palette": r"colou?r\s+palette",
    "key_features": r"key\s+features",
    "texture_and_surface": r"texture\s+and\s+surface",
    "species_influence": r"species\s+influence",
    "attitude_and_expression": r"attitude\s+and\s+expression",
    "notable_accessories": r"notable\s+accessories",
}

# A heading either starts a line (optionally numbered, bulleted or a markdown
# title) or opens a bold span mid-line. Trailing words before the colon are
# allowed ("Species influence or type vibe:").
_HEADING_RE = re.compile(
    r"(?:^[ \t]*(?:#{1,6}[ \t]*)?(?:\d+[.)][ \t]*)?(?:[-*][ \t]+)?|\*\*)"
    r"\**[ \t]*(?:"
    + "|".join(f"(?P<{key}>{pattern})" for key, pattern in _HEADINGS.items())
    + r")[^:\n*]*\**[ \t]*:[ \t]*\**",
    re.IGNORECASE | re.MULTILINE,
)

_WS_RE = re.compile(r"\s+")


def _clean(value: str) -> str:
    value = value.strip().strip("*").strip()
    value = value.lstrip("-").strip()
    return _WS_RE.sub(" ", value)


def _matched_key(match: re.Match[str]) -> str:
    for key in _HEADINGS:
        if match.group(key) is not None:
            return key
    raise AssertionError("heading regex matched without a named group")  # pragma: no cover


def parse_description(text: str | None) -> DescriptionFields:
    """Extract structured fields from a description.

    Never raises. The first occurrence of each heading wins; text between a
    heading and the next recognised heading (or end of input) is its value.
    """
    if not text or not isinstance(text, str):
        logger.debug("Empty description, using defaults for every field")
        return DescriptionFields()

    matches = list(_HEADING_RE.finditer(text))
    values: dict[str, str] = {}
    for idx, match in enumerate(matches):
        key = _matched_key(match)
        if key in values:
            continue
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
        value = _clean(text[match.end():end])
        if value:
            values[key] = value

    missing = [k for k in _HEADINGS if k not in values]
    if missing:
        logger.debug("Description missing fields %s; defaults applied", missing)
    return DescriptionFields(**values)

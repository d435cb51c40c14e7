"""Text sanitizer — strip embedded question/options directives from agent prose.

The agent sometimes inlines a JSON-ish directive such as
``{"question": "Proceed?", "options": ["yes", "no"]}`` in the middle of its
text. This module removes those fragments with a regular expression. It is a
heuristic, not a parser: a directive is matched from ``{"question":`` (or the
single-quoted form) up to the first closing brace on the same line, so nested
objects or multi-line directives are only partially removed.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_DIRECTIVE_RE = re.compile(r"""\{(?:"question"|'question'):.+?\}""")
# Left behind when two directives were concatenated without a separator
_SEAM_RE = re.compile(r"\}\{")


def sanitize(raw: str) -> str:
    """Return *raw* with directives removed and surrounding whitespace trimmed.

    Substitutions repeat until nothing changes, which makes the function
    idempotent. Never raises; on failure the original text is returned.
    An empty result means there is nothing to display.
    """
    try:
        text = raw
        while True:
            cleaned = _SEAM_RE.sub(" ", _DIRECTIVE_RE.sub("", text))
            if cleaned == text:
                break
            text = cleaned
        return text.strip()
    except Exception as exc:
        logger.warning("Error cleaning message text: %s", exc)
        return raw


def has_directive_markers(raw: str | None) -> bool:
    """Return True if *raw* mentions both a question and its options."""
    if not raw:
        return False
    return '"question"' in raw and '"options"' in raw

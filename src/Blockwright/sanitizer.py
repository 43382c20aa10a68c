# sanitizer.py

from __future__ import annotations

import re

MAX_CHAT_CHARS = 240
ELLIPSIS = "..."

_FENCE_RE = re.compile(r"```[\s\S]*?```")
# Greedy on purpose: one pass swallows everything from the first '{' to the last '}'
_BRACE_SPAN_RE = re.compile(r"\{[\s\S]*\}")
_WS_RE = re.compile(r"\s+")

_PREAMBLE_RE = re.compile(r'^"?alright,\s*let', re.IGNORECASE)
_SYSTEM_LINE_RE = re.compile(
    r"^(?i:(system|assistant|developer|tool|function(?:\s*call)?|role\s*:\s*system))\s*[:>]"
)
_ROLE_TAG_RE = re.compile(r"</?\s*(system|assistant|developer|tool)\s*>", re.IGNORECASE)


def looks_disallowed(text: str) -> bool:
    """True for assistant preambles and system/role leakage we never echo."""
    if not text:
        return False
    if _PREAMBLE_RE.match(text):
        return True
    if _SYSTEM_LINE_RE.match(text):
        return True
    if _ROLE_TAG_RE.search(text):
        return True
    return False


def truncate_chat(text: str, max_chars: int = MAX_CHAT_CHARS) -> str:
    """Bound ``text`` to ``max_chars``, marking truncation with an ellipsis."""
    if not text:
        return ""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - len(ELLIPSIS)] + ELLIPSIS


def sanitize_reply(raw: str | None) -> str:
    """Reduce a raw model reply to a short chat-safe line.

    - Removes fenced code regions and the greedy ``{...}`` span.
    - Collapses whitespace and trims.
    - Drops disallowed preambles entirely (returns "").
    - Truncates to 240 characters (237 + "...").
    """
    if not raw or not isinstance(raw, str):
        return ""
    s = _FENCE_RE.sub("", raw)
    s = _BRACE_SPAN_RE.sub("", s, count=1)
    s = _WS_RE.sub(" ", s).strip()
    if looks_disallowed(s):
        return ""
    return truncate_chat(s)

"""Plain-text chat commands that map one line to one action."""

from __future__ import annotations

import re

from Blockwright.extraction import directive, substitute_placeholders, to_number
from Blockwright.schemas import Action

_PRIMITIVE_RE = re.compile(
    r"^(inspect|goto|dig|mine)\s+(-?\d+(?:\.\d+)?)\s+(-?\d+(?:\.\d+)?)\s+(-?\d+(?:\.\d+)?)$",
    re.IGNORECASE,
)
_COMMAND_RE = re.compile(r"^(?:command|cmd)\s+(.+)$", re.IGNORECASE)
_INLINE_RE = re.compile(r"//\s*[a-zA-Z0-9_]+\s*\([^)]*\)")


def parse_chat_command(text: str | None, identity: str | None = None) -> list[Action]:
    """Recognize ``<primitive> x y z``, ``command <text>`` and ``//name(args)``.

    Returns a single-element list, or ``[]`` when the line is none of these.
    """
    if not text or not text.strip():
        return []
    line = text.strip()

    m = _PRIMITIVE_RE.match(line)
    if m:
        x, y, z = (to_number(v) for v in m.group(2, 3, 4))
        return [Action(name=m.group(1).lower(), params={"x": x, "y": y, "z": z})]

    m = _COMMAND_RE.match(line)
    if m:
        cmd = substitute_placeholders(m.group(1).strip(), identity)
        return [Action(name="command", params={"command": cmd})]

    m = _INLINE_RE.search(line)
    if m:
        found = directive(m.group(0))
        if found:
            first = found[0]
            return [first.model_copy(update={"name": first.name.lower()})]
    return []

"""Ordered extraction strategies that turn raw model text into actions.

Strategies run in a fixed priority order and the first non-empty,
schema-valid result wins; later strategies are never consulted after that:

1. ``fenced_json``   a fenced ```json block holding the expected key
2. ``inline_json``   the object enclosing the first occurrence of the key
3. ``loose_actions`` ``Action: <name> ... Params: {...}`` prose and loose
                     command patterns (``"command": "..."``, ``command(...)``)
4. ``directive``     ``//name(args); name(args)`` shorthand

Modes select which strategies apply:

- ``plan``       1-2 looking for ``plan.steps``; returns ``Plan | None``
- ``actions``    1-2 looking for ``actions``, then 3, then 4
- ``directive``  4 only

Every function in this module is pure and ``extract`` never raises.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable
from functools import partial
from typing import Any, Literal

import orjson
import structlog
from pydantic import ValidationError

from Blockwright.catalog import COMMANDS
from Blockwright.metrics import inc_counter
from Blockwright.schemas import Action, ActionsEnvelope, Plan, PlanEnvelope

log = structlog.get_logger()

Mode = Literal["plan", "actions", "directive"]
Strategy = Callable[[str], list[Action] | None]

# Hard cap to avoid pathological scans on huge replies
MAX_SCAN_CHARS = 50_000
# How many enclosing '{' candidates the inline scanner will try
_MAX_BRACE_HOPS = 64

DIRECTIVE_MARKER = "//"

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\r?\n?(.*?)```", re.DOTALL | re.IGNORECASE)
_PLACEHOLDER_RE = re.compile(r"USERNAME|USER|PLAYER", re.IGNORECASE)
_INT_RE = re.compile(r"[+-]?\d+")
_NUMERIC_TOKEN_RE = re.compile(r"[+-]?\.?\d")

_ACTION_PARAMS_RE = re.compile(
    r"Action\s*[:\-]?\s*([a-zA-Z0-9_]+)\b[\s\S]*?Params\s*[:\-]?\s*(\{[\s\S]*?\})",
    re.IGNORECASE,
)
_KV_RE = re.compile(r"""['"]?([a-zA-Z0-9_]+)['"]?\s*[:=]\s*['"]?([^'"\s]+)['"]?""")
_JSON_COMMAND_RE = re.compile(r"""["']?command["']?\s*[:=]\s*["']([^"'\n]+)["']""", re.IGNORECASE)
_CALL_COMMAND_RE = re.compile(
    r"""command\s*\(\s*(?:command\s*=\s*)?["']?([^"')]+)["']?\s*\)""", re.IGNORECASE
)
_INLINE_COMMAND_LINE_RE = re.compile(r"//[^\n]*command[^\n]*", re.IGNORECASE)
_INLINE_COMMAND_ARGS_RE = re.compile(r"command\s*\(\s*([^)]+)\s*\)", re.IGNORECASE)
_QUOTED_RE = re.compile(r"""['"]([^'"]+)['"]""")

# '//' not preceded by ':' so URLs are not mistaken for directive lines
_DIRECTIVE_RE = re.compile(r"(?<!:)//")
_DIRECTIVE_CALL_RE = re.compile(r"^([a-zA-Z0-9_]+)\s*(?:\((.*)\))?$")
_DIRECTIVE_COMMAND_KW_RE = re.compile(r"^(?:command|cmd)\s*=\s*(.*)$", re.IGNORECASE)


# -----------------
# Scalar helpers
# -----------------


def to_number(value: str) -> int | float | None:
    """Parse ``value`` as a finite number, preferring int for integral text."""
    s = value.strip()
    if not s:
        return None
    try:
        f = float(s)
    except ValueError:
        return None
    if not math.isfinite(f):
        return None
    if _INT_RE.fullmatch(s):
        return int(s)
    return f


def _unquote(value: str) -> str:
    v = value.strip()
    if len(v) >= 2 and v[0] == v[-1] and v[0] in "'\"":
        return v[1:-1]
    return v.strip("'\"")


def _positional(value: str) -> int | float | None:
    """Like ``to_number`` but keeps out-of-range numerals (``1e400``) as floats.

    The slot stays taken so later numbers keep their axes; the validator
    rejects the non-finite value.
    """
    number = to_number(value)
    if number is not None or not _NUMERIC_TOKEN_RE.match(value.strip()):
        return number
    try:
        return float(value)
    except ValueError:
        return None


def _coerce(value: str) -> Any:
    v = value.strip()
    if "'" in v or '"' in v:
        return _unquote(v)
    number = to_number(v)
    return v if number is None else number


def substitute_placeholders(text: str, identity: str | None) -> str:
    """Replace USERNAME / USER / PLAYER tokens with the invoking identity."""
    if not identity:
        return text
    return _PLACEHOLDER_RE.sub(lambda _m: identity, text)


def _loads(text: str) -> Any:
    try:
        return orjson.loads(text)
    except (ValueError, RecursionError):  # orjson.JSONDecodeError is a ValueError
        return None


def _steps_from(obj: Any, key: str) -> list[Action] | None:
    """Schema check for the expected envelope; None unless it holds items."""
    if not isinstance(obj, dict):
        return None
    try:
        if key == "plan":
            items = PlanEnvelope.model_validate(obj).plan.steps
        else:
            items = ActionsEnvelope.model_validate(obj).actions
    except ValidationError:
        return None
    return [Action.from_raw(it) for it in items] or None


def _balanced_object(text: str, start: int) -> str | None:
    """Return the ``{...}`` span starting at ``start``, string-aware."""
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


# -----------------
# Strategies
# -----------------


def fenced_json(text: str, key: str) -> list[Action] | None:
    """Strategy 1: parse fenced code blocks, first one with ``key`` wins."""
    for m in _FENCE_RE.finditer(text):
        found = _steps_from(_loads(m.group(1).strip()), key)
        if found:
            return found
    return None


def inline_json(text: str, key: str) -> list[Action] | None:
    """Strategy 2: brace-scan around the first ``"<key>"`` literal.

    Walks backward from the key to the nearest ``{`` whose balanced span
    encloses the key, then parses that span. Falls back to the first ``{``
    after the key when nothing precedes it.
    """
    literal = f'"{key}"'
    idx = text.find(literal)
    if idx == -1:
        return None
    pos = idx
    for _ in range(_MAX_BRACE_HOPS):
        start = text.rfind("{", 0, pos)
        if start == -1:
            break
        candidate = _balanced_object(text, start)
        if candidate is None:
            return None
        if start + len(candidate) > idx:
            return _steps_from(_loads(candidate), key)
        pos = start
    start = text.find("{", idx)
    if start == -1:
        return None
    candidate = _balanced_object(text, start)
    return _steps_from(_loads(candidate), key) if candidate else None


def _parse_params_blob(blob: str) -> dict[str, Any]:
    parsed = _loads(blob)
    if isinstance(parsed, dict):
        return parsed
    if parsed is not None:
        return {}
    # Permissive key=value / key:"value" splitter
    params: dict[str, Any] = {}
    inner = re.sub(r"^[{\s]+|[}\s]+$", "", blob)
    for part in re.split(r"[;,\n]", inner):
        m = _KV_RE.match(part.strip())
        if m:
            number = to_number(m.group(2))
            params[m.group(1)] = m.group(2) if number is None else number
    return params


def _command_action(command: str, identity: str | None) -> Action | None:
    cmd = substitute_placeholders(command, identity).strip()
    if not cmd:
        return None
    return Action(name="command", params={"command": cmd})


def loose_actions(text: str, identity: str | None = None) -> list[Action] | None:
    """Strategy 3: structured free text and loose command patterns.

    Recognized shapes, all collected then de-duplicated in order:

    - ``Action: <name> ... Params: {...}`` (JSON or key=value params)
    - ``"command": "<text>"``
    - ``command(<text>)`` / ``command(command="<text>")``
    - ``//... command(<text>)`` inline directive fragments
    """
    found: list[Action] = []

    m = _ACTION_PARAMS_RE.search(text)
    if m:
        params = _parse_params_blob(m.group(2))
        params = {
            k: substitute_placeholders(v, identity) if isinstance(v, str) else v
            for k, v in params.items()
        }
        found.append(Action(name=m.group(1).lower(), params=params))

    m = _JSON_COMMAND_RE.search(text)
    if m:
        act = _command_action(m.group(1), identity)
        if act:
            found.append(act)

    m = _CALL_COMMAND_RE.search(text)
    if m:
        act = _command_action(m.group(1), identity)
        if act:
            found.append(act)

    m = _INLINE_COMMAND_LINE_RE.search(text)
    if m:
        inner = _INLINE_COMMAND_ARGS_RE.search(m.group(0))
        if inner:
            quoted = _QUOTED_RE.search(inner.group(1))
            act = _command_action(quoted.group(1) if quoted else inner.group(1), identity)
            if act:
                found.append(act)

    return _dedupe(found) or None


def _dedupe(actions: list[Action]) -> list[Action]:
    seen: set[str] = set()
    out: list[Action] = []
    for a in actions:
        command = a.params.get("command")
        if isinstance(command, str) and command:
            detail = command
        else:
            detail = json.dumps(a.params, sort_keys=True, default=str)
        key = f"{a.name}|{detail}"
        if key not in seen:
            seen.add(key)
            out.append(a)
    return out


def _directive_params(name: str, raw: str) -> dict[str, Any]:
    if name.lower() in COMMANDS:
        # The whole argument list is one command payload; commas are literal
        body = raw.strip()
        kw = _DIRECTIVE_COMMAND_KW_RE.match(body)
        payload = _unquote(kw.group(1) if kw else body)
        return {"command": payload} if payload else {}

    params: dict[str, Any] = {}
    for entry in raw.split(","):
        part = entry.strip()
        if not part:
            continue
        if "=" in part:
            key, _, value = part.partition("=")
            key = key.strip()
            if not key:
                continue
            params[key] = _coerce(value) if value.strip() else True
            continue
        number = _positional(part)
        if number is not None:
            # Bare numbers fill x, then y, then z
            for axis in ("x", "y", "z"):
                if axis not in params:
                    params[axis] = number
                    break
        else:
            flag = _unquote(part)
            if flag:
                params[flag] = True
    return params


def directive(text: str) -> list[Action] | None:
    """Strategy 4: ``//name(args); name(args)`` on the directive line."""
    m = _DIRECTIVE_RE.search(text)
    if not m:
        return None
    line = text[m.end() :].strip()
    line = line.splitlines()[0] if line else ""
    actions: list[Action] = []
    for segment in line.split(";"):
        call = _DIRECTIVE_CALL_RE.match(segment.strip())
        if not call:
            continue
        name = call.group(1)
        raw_args = call.group(2)
        params = _directive_params(name, raw_args) if raw_args else {}
        actions.append(Action(name=name, params=params))
    return actions or None


# -----------------
# Pipeline
# -----------------


def strategies_for(mode: Mode, identity: str | None = None) -> list[tuple[str, Strategy]]:
    """Return the ordered (label, strategy) chain for ``mode``."""
    if mode == "plan":
        return [
            ("fenced", partial(fenced_json, key="plan")),
            ("inline", partial(inline_json, key="plan")),
        ]
    if mode == "actions":
        return [
            ("fenced", partial(fenced_json, key="actions")),
            ("inline", partial(inline_json, key="actions")),
            ("loose", partial(loose_actions, identity=identity)),
            ("directive", directive),
        ]
    if mode == "directive":
        return [("directive", directive)]
    raise ValueError(f"Unknown extraction mode: {mode}")


def extract(
    text: str | None, mode: Mode = "actions", identity: str | None = None
) -> Plan | list[Action] | None:
    """Run the strategy chain for ``mode``; never raises.

    Returns ``Plan | None`` in plan mode and a possibly empty list otherwise.
    """
    empty: Plan | list[Action] | None = None if mode == "plan" else []
    if not isinstance(text, str) or not text.strip():
        inc_counter("extract.empty")
        return empty
    snippet = text[:MAX_SCAN_CHARS]
    try:
        for label, strategy in strategies_for(mode, identity):
            found = strategy(snippet)
            if found:
                inc_counter(f"extract.strategy.{label}")
                log.debug("extract.strategy.matched", strategy=label, mode=mode, count=len(found))
                return Plan(steps=found) if mode == "plan" else found
    except Exception:
        log.warning("extract.failed", mode=mode, text_preview=snippet[:200], exc_info=True)
        return empty
    inc_counter("extract.empty")
    log.debug("extract.no_match", mode=mode, text_preview=snippet[:200])
    return empty

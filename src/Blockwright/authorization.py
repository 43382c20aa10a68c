"""Authorization gate for raw server commands."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from Blockwright.config import Settings
from Blockwright.metrics import inc_counter

log = structlog.get_logger()

REFUSAL_NOTICE = "Cannot run command: not allowed or not op"

_TRUE_WORDS = {"on", "true", "1", "yes"}


@dataclass
class AuthorizationState:
    """Process-wide authorization flags.

    Only the trusted principal may change them, through ``CommandGate``.
    """

    elevated: bool = True
    commands_enabled: bool = False
    trusted_principal: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthorizationState:
        return cls(
            elevated=settings.auth_elevated,
            commands_enabled=settings.auth_commands_enabled,
            trusted_principal=settings.owner_username,
        )


def authorize(commands_enabled: bool, elevated: bool) -> bool:
    """Raw commands run when the global switch is on OR the agent is elevated."""
    return bool(commands_enabled or elevated)


class CommandGate:
    """Stateful wrapper around ``authorize`` plus trusted-principal directives.

    Directives understood (trusted principal only, case-insensitive):

    - ``setop on|off|true|false|1|0`` toggles ``elevated``
    - ``enablecommands`` / ``disablecommands`` toggle ``commands_enabled``

    Toggle attempts from anyone else are ignored without a reply.
    """

    def __init__(self, state: AuthorizationState, notify: Callable[[str], None]) -> None:
        self._state = state
        self._notify = notify

    @property
    def state(self) -> AuthorizationState:
        return self._state

    def is_trusted(self, sender: str | None) -> bool:
        principal = self._state.trusted_principal
        return bool(principal) and sender == principal

    def check(self) -> bool:
        """Authorize one raw command; surfaces a refusal notice on failure."""
        ok = authorize(self._state.commands_enabled, self._state.elevated)
        if not ok:
            inc_counter("auth.refused")
            log.info(
                "auth.refused",
                elevated=self._state.elevated,
                commands_enabled=self._state.commands_enabled,
            )
            self._notify(REFUSAL_NOTICE)
        return ok

    def set_elevated(self, sender: str | None, value: bool) -> bool:
        if not self.is_trusted(sender):
            log.info("auth.toggle.ignored", sender=sender, flag="elevated")
            return False
        self._state.elevated = bool(value)
        log.info("auth.toggle.applied", sender=sender, flag="elevated", value=self._state.elevated)
        return True

    def set_commands_enabled(self, sender: str | None, value: bool) -> bool:
        if not self.is_trusted(sender):
            log.info("auth.toggle.ignored", sender=sender, flag="commands_enabled")
            return False
        self._state.commands_enabled = bool(value)
        log.info(
            "auth.toggle.applied",
            sender=sender,
            flag="commands_enabled",
            value=self._state.commands_enabled,
        )
        return True

    @staticmethod
    def is_directive(message: str) -> bool:
        msg = (message or "").strip().lower()
        return msg.startswith("setop ") or msg in {"enablecommands", "disablecommands"}

    def apply_directive(self, sender: str | None, message: str) -> str | None:
        """Apply a directive; returns the acknowledgement or None when ignored."""
        msg = (message or "").strip().lower()
        if msg.startswith("setop "):
            parts = msg.split()
            value = len(parts) > 1 and parts[1] in _TRUE_WORDS
            if self.set_elevated(sender, value):
                return f"elevated={self._state.elevated}"
            return None
        if msg == "enablecommands":
            return "Commands enabled" if self.set_commands_enabled(sender, True) else None
        if msg == "disablecommands":
            return "Commands disabled" if self.set_commands_enabled(sender, False) else None
        return None

# schemas.py

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Action(BaseModel):
    """Atomic instruction: a name plus a parameter mapping.

    Instances are frozen; nothing downstream of extraction rewrites ``params``.
    ``name`` is matched case-insensitively by the validator and dispatcher.
    """

    name: str = ""
    params: dict[str, Any] = Field(default_factory=dict)
    rationale: str | None = None

    model_config = dict(extra="ignore", frozen=True)

    @classmethod
    def from_raw(cls, raw: Any) -> Action:
        """Build an Action from an untrusted JSON value without raising.

        Non-object entries become a nameless Action so the validator can
        reject them with a visible reason instead of silently vanishing.
        """
        if not isinstance(raw, dict):
            return cls()
        name = raw.get("name")
        params = raw.get("params")
        rationale = raw.get("rationale")
        if isinstance(rationale, str):
            rationale = rationale.strip() or None
        else:
            rationale = None
        return cls(
            name=name.strip() if isinstance(name, str) else "",
            params=dict(params) if isinstance(params, dict) else {},
            rationale=rationale,
        )


class Plan(BaseModel):
    """Ordered, order-significant sequence of actions."""

    steps: list[Action] = Field(default_factory=list)

    model_config = dict(extra="ignore", frozen=True)


# -----------------------------
# Wire envelopes (schema checks only)
# -----------------------------


class PlanBody(BaseModel):
    steps: list[Any]


class PlanEnvelope(BaseModel):
    """``{"plan": {"steps": [...]}}`` as emitted on the planning path."""

    plan: PlanBody


class ActionsEnvelope(BaseModel):
    """``{"actions": [...]}`` as emitted on the chat-triggered path."""

    actions: list[Any]

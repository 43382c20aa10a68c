"""Game-interaction collaborator boundary."""  # noqa: N999

from .inprocess import InProcessWorld, WorldError
from .interfaces import Position, WorldInteraction

__all__ = [
    "InProcessWorld",
    "Position",
    "WorldError",
    "WorldInteraction",
]

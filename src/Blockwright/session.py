from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


@dataclass
class ExecutionSession:
    """Single-writer busy flag guarding against overlapping executions.

    Callers that find the session busy drop their request; nothing queues.
    """

    busy: bool = False
    current_task: str | None = None

    def try_begin(self, task: str) -> bool:
        if self.busy:
            log.info("session.busy", requested=task, current=self.current_task)
            return False
        self.busy = True
        self.current_task = task
        return True

    def end(self) -> None:
        self.busy = False
        self.current_task = None

    @contextmanager
    def claim(self, task: str) -> Iterator[bool]:
        """Hold the session for ``task``; yields False (and holds nothing) if busy."""
        acquired = self.try_begin(task)
        try:
            yield acquired
        finally:
            if acquired:
                self.end()

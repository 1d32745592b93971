"""In-process notification channel for batch depletion."""

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchDepleted:
    """A batch bound to ``context_id`` has no available tokens left."""

    context_id: str
    batch_id: str
    issuer: str


DepletionHandler = Callable[[BatchDepleted], None]


class DepletionBus:
    """Delivers :class:`BatchDepleted` events to subscribed handlers.

    Events are published after the award that caused them has committed,
    so a failing handler is logged and never undoes the award.
    """

    def __init__(self):
        self._handlers: list[DepletionHandler] = []

    def subscribe(self, handler: DepletionHandler) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: DepletionHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, event: BatchDepleted) -> None:
        logger.info(
            "Batch %s depleted for context %s", event.batch_id, event.context_id
        )
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Depletion handler failed for context %s", event.context_id
                )


depletion_bus = DepletionBus()


def get_depletion_bus() -> DepletionBus:
    """Return the application-wide bus (overridable in tests)."""
    return depletion_bus

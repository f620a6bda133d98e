"""
Event Channel — typed publish/subscribe for pipeline events.

One channel per event type (telemetry-updated, metrics-updated,
assessment-updated). Listeners are invoked synchronously in registration
order. Registration is append-only; there is no unsubscribe.
"""

import logging
from typing import Callable, Generic, List, Optional, TypeVar

from quality_kernel.errors import QualityKernelError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventChannel(Generic[T]):
    """Broadcasts one payload type to every subscriber."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Callable[[T], None]] = []

    def subscribe(self, listener: Callable[[T], None]) -> None:
        self._listeners.append(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, payload: T) -> None:
        """
        Deliver the payload to every listener.

        A failing listener never stops delivery to the ones after it.
        Unexpected exceptions are logged and dropped. The first
        QualityKernelError (a configuration or storage failure) is
        re-raised to the publisher once every listener has run.
        """
        kernel_error: Optional[QualityKernelError] = None
        for listener in list(self._listeners):
            try:
                listener(payload)
            except QualityKernelError as e:
                logger.error("Listener %r failed on event '%s': %s", listener, self.name, e)
                if kernel_error is None:
                    kernel_error = e
            except Exception:
                logger.exception("Listener %r failed on event '%s'", listener, self.name)
        if kernel_error is not None:
            raise kernel_error

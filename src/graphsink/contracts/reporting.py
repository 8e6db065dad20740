"""Error reporting ports for messages excluded under the skip policy.

A handler running with ErrorPolicy.SKIP never drops a message silently: it
emits a RejectedMessage to its reporter. The reporter is supplied by the
caller, which owns user-facing reporting and dead-lettering.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from graphsink.contracts.errors import MessageHandlingError
from graphsink.contracts.message import SinkMessage


@dataclass(frozen=True)
class RejectedMessage:
    """A message excluded from the plan, with the error that excluded it."""

    sink_message: SinkMessage
    error: MessageHandlingError

    @property
    def topic(self) -> str:
        return self.sink_message.topic

    @property
    def partition(self) -> int:
        return self.sink_message.partition

    @property
    def offset(self) -> int:
        return self.sink_message.offset


@runtime_checkable
class ErrorReporter(Protocol):
    """Receives messages rejected by a handler.

    One reporter may be shared by handlers of several topics that run on
    different threads; implementations must tolerate concurrent calls.
    """

    def report(self, rejection: RejectedMessage) -> None:
        """Accept a rejected message."""
        ...


class CollectingErrorReporter:
    """Reporter that keeps every rejection in arrival order.

    Default reporter; also convenient in tests.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rejections: list[RejectedMessage] = []

    def report(self, rejection: RejectedMessage) -> None:
        with self._lock:
            self._rejections.append(rejection)

    @property
    def rejections(self) -> list[RejectedMessage]:
        with self._lock:
            return list(self._rejections)

    def drain(self) -> list[RejectedMessage]:
        """Return and clear collected rejections."""
        with self._lock:
            drained = self._rejections
            self._rejections = []
            return drained

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Protocol

from core.state import SignalKind


logger = logging.getLogger("app.integrity.signals")

SignalCallback = Callable[[bool], None]
Unsubscribe = Callable[[], None]


class SignalSource(Protocol):
    def subscribe(self, kind: SignalKind, callback: SignalCallback) -> Unsubscribe:
        ...


class PushSignalSource:
    """Signal source fed by the client reporting environment transitions.

    `value` carries the new state: fullscreen active, page visible, window focused.
    """

    def __init__(self):
        self._subscribers: dict[SignalKind, list[SignalCallback]] = defaultdict(list)

    def subscribe(self, kind: SignalKind, callback: SignalCallback) -> Unsubscribe:
        kind = SignalKind(kind)
        self._subscribers[kind].append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers[kind].remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def subscriber_count(self, kind: SignalKind | None = None) -> int:
        if kind is not None:
            return len(self._subscribers.get(SignalKind(kind), []))
        return sum(len(items) for items in self._subscribers.values())

    def publish(self, kind: SignalKind | str, value: bool) -> int:
        kind = SignalKind(kind)
        delivered = 0
        for callback in list(self._subscribers.get(kind, [])):
            callback(bool(value))
            delivered += 1
        logger.debug("signal published | kind=%s value=%s delivered=%s", kind.value, value, delivered)
        return delivered

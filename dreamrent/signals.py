"""Typed publish/subscribe channels.

Views that depend on shared state (the user list, the logged-in user, a
change feed) subscribe to a :class:`Signal` and keep the returned
:class:`Subscription` for as long as they are mounted.
"""

import inspect
from typing import Any, Awaitable, Callable, Generic, List, TypeVar, Union

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Union[None, Awaitable[None]]]


class Subscription:
    """Handle returned by :meth:`Signal.subscribe`.

    Closing it detaches the listener; it can be used as a (sync or async)
    context manager so the listener lives exactly as long as the block.
    """

    def __init__(self, detach: Callable[[], None]):
        self._detach = detach
        self.closed = False

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._detach()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()


class Signal(Generic[T]):
    """A named channel delivering payloads of type ``T`` to its listeners."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)

        def detach() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(detach)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit(self, payload: T) -> None:
        """Deliver ``payload`` to every listener, awaiting async ones.

        A failing listener is logged and does not prevent delivery to the
        others.
        """
        for listener in list(self._listeners):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("signal_listener_failed", signal=self.name)


class Signals:
    """Process-wide channels owned by the service container."""

    def __init__(self):
        self.users_changed: Signal[None] = Signal("users_changed")
        self.auth_changed: Signal[Any] = Signal("auth_changed")

"""Thread-safe listener registry with synchronous broadcast."""

import logging
import threading
import time
import uuid
from typing import Any, Callable

logger = logging.getLogger(__name__)


def _describe(listener: Callable[..., Any]) -> tuple[str, int | None]:
    """Return (qualified name, first source line) for a listener, where available."""
    func = getattr(listener, "__func__", listener)
    name = getattr(func, "__qualname__", None) or repr(listener)
    module = getattr(func, "__module__", None)
    if module:
        name = f"{module}.{name}"
    code = getattr(func, "__code__", None)
    line = code.co_firstlineno if code is not None else None
    return name, line


class Emitter:
    """Registry mapping opaque subscription ids to callbacks.

    Example:
        emitter = Emitter()
        listener_id = emitter.add_listener(lambda old, new: ...)
        emitter.notify(old_cfg, new_cfg)
        emitter.remove_listener(listener_id)
    """

    def __init__(self):
        self._listeners: dict[str, Callable[..., Any]] = {}
        self._lock = threading.Lock()

    def add_listener(self, listener: Callable[..., Any]) -> str:
        """Register a callback and return its subscription id."""
        listener_id = uuid.uuid4().hex
        with self._lock:
            self._listeners[listener_id] = listener
        return listener_id

    def remove_listener(self, listener_id: str) -> None:
        """Remove a callback by id. Unknown ids are ignored."""
        with self._lock:
            self._listeners.pop(listener_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def notify(self, *args: Any) -> None:
        """Synchronously invoke every registered callback with ``args``.

        Runs against a snapshot so listeners may add or remove listeners
        while being notified. Exceptions raised by a listener propagate to
        the caller and stop the broadcast.
        """
        with self._lock:
            listeners = list(self._listeners.values())

        for listener in listeners:
            name, line = _describe(listener)
            started = time.perf_counter()
            listener(*args)
            logger.debug(
                "Listener ran: name=%s line=%s time=%.3fms",
                name,
                line,
                (time.perf_counter() - started) * 1000,
            )

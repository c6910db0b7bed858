"""Observable values with replay-on-subscribe and pluggable dispatch."""

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Observer = Callable[[T], None]
Dispatcher = Callable[[Callable[[], None]], None]


class ImmediateDispatcher:
    """Run notifications on the calling thread.

    A notification posted from inside an observer is queued behind the one
    being delivered, so every observer sees values in the order they were set.
    Callers must serialize dispatches (the store does this with its lock).
    """

    def __init__(self) -> None:
        self._pending: deque[Callable[[], None]] = deque()
        self._state = threading.local()

    def __call__(self, callback: Callable[[], None]) -> None:
        self._pending.append(callback)
        if getattr(self._state, "draining", False):
            return

        self._state.draining = True
        try:
            while self._pending:
                queued = self._pending.popleft()
                try:
                    queued()
                except Exception:
                    logger.exception("Observer failed while handling a notification")
        finally:
            self._state.draining = False


class SerialDispatcher:
    """Run notifications on a single owner thread, in submission order.

    Args:
        name (str): Thread name prefix of the owner thread

    Attributes:
        name (str): Thread name prefix of the owner thread
    """

    def __init__(self, name: str = "notesync-main"):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def __call__(self, callback: Callable[[], None]) -> None:
        self._executor.submit(self._run, callback)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Observer failed while handling a notification")
            raise

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every notification submitted so far has been delivered."""
        self._executor.submit(lambda: None).result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the owner thread."""
        self._executor.shutdown(wait=wait)


class Subscription:
    """Handle returned by ``Observable.subscribe``."""

    def __init__(self, observable: "Observable", observer: Observer):
        self._observable = observable
        self._observer = observer
        self.active = True

    def dispose(self) -> None:
        """Stop receiving notifications. Safe to call more than once."""
        if self.active:
            self._observable._remove(self._observer)
            self.active = False


class Observable(Generic[T]):
    """A value that notifies observers whenever it is replaced.

    New observers are called once right away with the current value. Values
    should be immutable so that no observer can change what another one sees.

    Args:
        value: Initial value
        dispatcher: Decides where observers run (default: calling thread)
        lock: Lock shared with the owner so updates and subscriptions are serialized
    """

    def __init__(
        self,
        value: T,
        dispatcher: Optional[Dispatcher] = None,
        lock: Optional[threading.RLock] = None,
    ):
        self._value = value
        self._observers: list[Observer] = []
        self._dispatcher = dispatcher or ImmediateDispatcher()
        self._lock = lock or threading.RLock()

    @property
    def value(self) -> T:
        """Current value."""
        return self._value

    @property
    def observer_count(self) -> int:
        """Number of registered observers."""
        return len(self._observers)

    def subscribe(self, observer: Observer) -> Subscription:
        """Register an observer and replay the current value to it."""
        with self._lock:
            self._observers.append(observer)
            value = self._value
            self._dispatcher(lambda: self._notify(observer, value))
        return Subscription(self, observer)

    def set(self, value: T) -> None:
        """Replace the value and notify every observer.

        Errors raised by observers are logged and do not reach the caller.
        """
        with self._lock:
            self._value = value
            observers = list(self._observers)
            self._dispatcher(lambda: self._deliver(observers, value))

    @classmethod
    def _deliver(cls, observers: list[Observer], value: T) -> None:
        for observer in observers:
            cls._notify(observer, value)

    @staticmethod
    def _notify(observer: Observer, value: T) -> None:
        # A failing observer must not stop the others or the mutation
        try:
            observer(value)
        except Exception:
            logger.exception("Observer %r failed", observer)

    def _remove(self, observer: Observer) -> None:
        with self._lock:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass

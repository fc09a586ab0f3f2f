from dataclasses import dataclass
from typing import Callable, Dict, List, Set
import asyncio
import logging
logger = logging.getLogger(__name__)


@dataclass
class FileProgress:
    """Byte progress of a single file as tracked by the progress ledger."""
    uploaded_bytes: int = 0
    total_bytes: int = 0

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return (self.uploaded_bytes / self.total_bytes) * 100


class Subscription:
    """Handle returned by EventEmitter.on(); cancel() unsubscribes."""

    def __init__(self, emitter: "EventEmitter", event_name: str, callback: Callable):
        self._emitter = emitter
        self.event_name = event_name
        self.callback = callback

    def cancel(self):
        self._emitter.off(self.event_name, self.callback)


class EventEmitter:
    """Simple event emitter for upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def on(self, event_name: str, callback: Callable) -> Subscription:
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if not self.has_listener(event_name, callback):
            self._listeners[event_name].append(callback)
        return Subscription(self, event_name, callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def has_listener(self, event_name: str, callback: Callable) -> bool:
        return callback in self._listeners.get(event_name, ())

    def emit(self, event_name: str, *args, **kwargs):
        """
        Emit an event to all listeners, synchronously and in subscription order.

        Coroutine listeners are scheduled on the running loop. A failing
        listener is logged and does not stop the others.
        """
        if event_name not in self._listeners:
            return

        for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
            try:
                if asyncio.iscoroutinefunction(callback):
                    self._emit_async(event_name, callback, *args, **kwargs)
                else:
                    callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}", exc_info=True)

    def _emit_async(self, event_name: str, callback: Callable, *args, **kwargs):
        """Run a coroutine listener without blocking the emitter."""
        loop = asyncio.get_running_loop()
        task = loop.create_task(callback(*args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda t: self._log_task_error(event_name, t))

    @staticmethod
    def _log_task_error(event_name: str, task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error in event listener for {event_name}: {error}")

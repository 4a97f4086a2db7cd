"""Best-effort fan-out of ingestion events to live subscribers."""

import logging
import queue
import threading
import uuid
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Subscriber(Protocol):
    def deliver(self, event: dict) -> bool: ...


class Subscription:
    """A subscriber backed by a bounded queue, drained by its connection."""

    def __init__(self, maxsize: int = 100):
        self.id = uuid.uuid4().hex[:12]
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)

    def __repr__(self):
        return f"<Subscription {self.id}>"

    def deliver(self, event: dict) -> bool:
        """Enqueue without blocking. Returns False if the event was dropped."""
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            return False

    def get(self, timeout: float | None = None) -> dict | None:
        """Return the next event, or None if nothing arrived within *timeout*."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class Broadcaster:
    """Publish/subscribe hub decoupled from the transport.

    ``publish`` only enqueues; a daemon thread fans each event out to a
    snapshot of the current subscribers, so a slow or broken subscriber
    never stalls the publisher or the other subscribers.
    """

    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._subscribers: dict[int, Subscriber] = {}
        self._lock = threading.Lock()
        self._events: queue.Queue = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._delivered = 0
        self._failed = 0

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def start(self):
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._dispatch_loop, name="broadcaster", daemon=True)
        self._thread.start()

    def close(self):
        """Stop the dispatch thread. Undelivered events are discarded."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def subscribe(self) -> Subscription:
        subscription = Subscription(self._queue_size)
        self.register(subscription)
        return subscription

    def register(self, subscriber: Subscriber) -> Subscriber:
        with self._lock:
            self._subscribers[id(subscriber)] = subscriber
        return subscriber

    def unsubscribe(self, subscriber: Subscriber):
        with self._lock:
            self._subscribers.pop(id(subscriber), None)

    def publish(self, event: dict):
        """Queue *event* for delivery to every current subscriber."""
        self._events.put(event)

    def stats(self) -> dict:
        with self._lock:
            return {
                "subscribers": len(self._subscribers),
                "delivered": self._delivered,
                "failed": self._failed,
                "pending": self._events.qsize(),
            }

    def _dispatch_loop(self):
        while not self._stop_event.is_set():
            try:
                event = self._events.get(timeout=0.5)
            except queue.Empty:
                continue
            self._fan_out(event)

    def _fan_out(self, event: dict):
        with self._lock:
            targets = list(self._subscribers.values())

        delivered = failed = 0
        for subscriber in targets:
            try:
                if subscriber.deliver(event) is False:
                    failed += 1
                    logger.warning("Subscriber %r is backlogged, event dropped", subscriber)
                else:
                    delivered += 1
            except Exception:
                failed += 1
                logger.warning("Delivery to subscriber %r failed", subscriber, exc_info=True)

        with self._lock:
            self._delivered += delivered
            self._failed += failed

"""Cancellation and deadline context carried by every provisioning call."""
from __future__ import annotations
import threading
import time
from typing import Callable, List, Optional

MIN_TIMEOUT = 0.001


class CallContext:
    """Cooperative cancellation token with an optional monotonic deadline.

    A context is cancelled either explicitly via cancel() or implicitly once
    its deadline passes. Child contexts created with with_timeout() share the
    parent's cancellation and never outlive its deadline.

    Usage:
        ctx = CallContext.with_timeout(30)
        client.ping(ctx, "https://ecc-gateway", 9443)
    """

    def __init__(self, deadline: Optional[float] = None, parent: Optional["CallContext"] = None):
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        self._parent = parent
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @classmethod
    def background(cls) -> "CallContext":
        """Return a context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float, parent: Optional["CallContext"] = None) -> "CallContext":
        """Return a context whose deadline is `seconds` from now."""
        return cls(deadline=time.monotonic() + seconds, parent=parent)

    def cancel(self) -> None:
        """Mark the context cancelled and run the registered callbacks once."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run `callback` when cancel() is called here or on a parent.

        The callback runs immediately when the context is already cancelled
        explicitly. Deadlines do not trigger callbacks. Returns a function
        that unregisters the callback.
        """
        with self._lock:
            fire_now = self._cancelled.is_set()
            if not fire_now:
                self._callbacks.append(callback)
        unregister_parent = self._parent.on_cancel(callback) if self._parent is not None else None
        if fire_now:
            callback()

        def unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)
            if unregister_parent is not None:
                unregister_parent()

        return unregister

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called, the deadline passed, or the parent is done."""
        if self._cancelled.is_set():
            return True
        if self._parent is not None and self._parent.cancelled:
            return True
        return self.expired

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def bound_timeout(self, timeout: float) -> float:
        """Clamp a transport timeout so it never exceeds the remaining time."""
        left = self.remaining()
        if left is None:
            return timeout
        # urllib3 rejects non-positive timeouts
        return max(min(timeout, left), MIN_TIMEOUT)

"""Cancellation tokens shared between the orchestrator and its log tailers."""

import threading
from typing import List, Optional


class CancelToken:
    """
    Thread-safe cancellation flag with child tokens.

    Cancelling a token cancels every child created from it, so the
    orchestrator can stop its tailers without cancelling the caller's
    token, while cancelling the caller's token still reaches the tailers.

    Example:
        token = CancelToken()
        tailers = token.child()
        ...
        tailers.cancel()   # token stays live
        token.cancel()     # tailers would be cancelled too
    """

    def __init__(self, parent: Optional['CancelToken'] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: List['CancelToken'] = []
        if parent is not None:
            parent._attach(self)

    def _attach(self, child: 'CancelToken'):
        with self._lock:
            self._children.append(child)
            already_cancelled = self._event.is_set()
        if already_cancelled:
            child.cancel()

    def child(self) -> 'CancelToken':
        """Create a token that is cancelled whenever this one is."""
        return CancelToken(parent=self)

    def cancel(self):
        """Cancel this token and all of its children."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until cancelled or until ``timeout`` seconds pass.

        Returns:
            True if the token is cancelled
        """
        return self._event.wait(timeout)

"""
Log stream tailing.

A LogTailer follows one CloudWatch log stream from its head, handing
every event to a predicate until the predicate reports the sentinel
event or the run is cancelled.
"""

import logging
from typing import Callable, Optional

from .client import LogEvent, LogsClient
from ..run.cancel import CancelToken

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


class LogTailer:
    """
    Follow a single log stream.

    Events are emitted in arrival order for as long as
    ``should_continue(event)`` returns True. The first event it rejects
    is the sentinel: it is logged, not emitted, and tailing stops there.
    """

    def __init__(
        self,
        logs: LogsClient,
        group: str,
        stream: str,
        should_continue: Callable[[LogEvent], bool],
        emit: Callable[[str], None] = print,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        """
        Initialize tailer.

        Args:
            logs: Logs backend
            group: Log group name
            stream: Log stream name
            should_continue: Predicate applied to every event
            emit: Receives the message of every event before the sentinel
            poll_interval: Seconds to wait between fetches
        """
        self.logs = logs
        self.group = group
        self.stream = stream
        self.should_continue = should_continue
        self.emit = emit
        self.poll_interval = poll_interval
        self._token: Optional[str] = None

    def poll(self) -> bool:
        """
        Fetch and process the events written since the last poll.

        Returns:
            True once the sentinel has been seen
        """
        events, self._token = self.logs.get_events(self.group, self.stream, self._token)
        for event in events:
            if not self.should_continue(event):
                logger.info("Found container finished message in %s: %s",
                            self.stream, event.message)
                return True
            self.emit(event.message)
        return False

    def watch(self, token: CancelToken) -> bool:
        """
        Poll until the sentinel is found or ``token`` is cancelled.

        Fetch errors propagate to the caller.

        Returns:
            True if the sentinel was found, False if cancelled
        """
        logger.info("Watching for logs in %s/%s", self.group, self.stream)
        while not token.cancelled:
            if self.poll():
                return True
            if token.wait(self.poll_interval):
                break
        logger.debug("Stopped watching %s (cancelled)", self.stream)
        return False

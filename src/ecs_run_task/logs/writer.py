"""
Finish markers.

Once ECS reports a container as stopped, the runner appends a line
recording its exit code to the container's own log stream. The tailer
for that container stops when it reads the line, so the marker format
and the sentinel check both live here.
"""

from typing import Callable

from .client import LogEvent, LogsClient
from ..ecs.models import STOPPED, ContainerState
from ..run.errors import FinalizationError


def finish_marker(container_id: str, exit_code: int) -> str:
    return f"Container {container_id} exited with {exit_code}"


def finish_sentinel(container_id: str) -> Callable[[LogEvent], bool]:
    """
    Predicate for LogTailer that rejects the finish marker of one container.

    Markers of other containers do not match, so containers sharing a
    stream prefix cannot stop each other's tailers.
    """
    prefix = f"Container {container_id} exited with"

    def should_continue(event: LogEvent) -> bool:
        return not event.message.startswith(prefix)

    return should_continue


class LogWriter:
    """Appends events to one log stream."""

    def __init__(self, logs: LogsClient, group: str, stream: str):
        self.logs = logs
        self.group = group
        self.stream = stream

    def write(self, message: str):
        self.logs.put_event(self.group, self.stream, message)


def write_container_finished(writer: LogWriter, container: ContainerState):
    """
    Write the finish marker for a stopped container.

    Raises:
        FinalizationError: If the container is not STOPPED, or stopped
            without an exit code (its stop reason is the message)
    """
    if container.last_status != STOPPED:
        raise FinalizationError(
            f"expected container to be {STOPPED}, got {container.last_status}"
        )
    if container.exit_code is None:
        raise FinalizationError(
            container.reason or f"container {container.name} stopped without an exit code"
        )
    writer.write(finish_marker(container.short_id, container.exit_code))

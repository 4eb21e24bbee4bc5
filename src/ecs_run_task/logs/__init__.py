"""CloudWatch log streams: tailing and finish markers."""

from .client import LogEvent, LogsClient
from .tailer import LogTailer
from .writer import LogWriter, finish_marker, finish_sentinel, write_container_finished

__all__ = [
    'LogEvent',
    'LogsClient',
    'LogTailer',
    'LogWriter',
    'finish_marker',
    'finish_sentinel',
    'write_container_finished',
]

"""
Thin wrapper around the boto3 CloudWatch Logs client.
"""

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


@dataclass
class LogEvent:
    """A single log entry."""
    message: str


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


class LogsClient:
    """
    Reads and writes CloudWatch log streams.

    Example:
        logs = LogsClient(boto3.Session(region_name='us-east-1'))
        logs.create_log_group('ecs-run-task')
        events, token = logs.get_events('ecs-run-task', 'run/app/abc123')
    """

    def __init__(self, session: Optional[boto3.session.Session] = None, client=None):
        if client is None:
            session = session or boto3.session.Session()
            client = session.client('logs')
        self.client = client

    def create_log_group(self, group: str):
        """Create a log group, doing nothing if it already exists."""
        try:
            self.client.create_log_group(logGroupName=group)
            logger.info("Created log group %s", group)
        except ClientError as e:
            if _error_code(e) != 'ResourceAlreadyExistsException':
                raise

    def create_log_stream(self, group: str, stream: str):
        """Create a log stream, doing nothing if it already exists."""
        try:
            self.client.create_log_stream(logGroupName=group, logStreamName=stream)
        except ClientError as e:
            if _error_code(e) != 'ResourceAlreadyExistsException':
                raise

    def get_events(
        self,
        group: str,
        stream: str,
        token: Optional[str] = None,
    ) -> Tuple[List[LogEvent], Optional[str]]:
        """
        Fetch events written after ``token``, oldest first.

        A stream that has not been created yet reads as empty.

        Args:
            group: Log group name
            stream: Log stream name
            token: Forward token from the previous call (None = stream head)

        Returns:
            Tuple of (events, forward token for the next call)
        """
        params = {
            'logGroupName': group,
            'logStreamName': stream,
            'startFromHead': True,
        }
        if token:
            params['nextToken'] = token

        events = []
        while True:
            try:
                resp = self.client.get_log_events(**params)
            except ClientError as e:
                if _error_code(e) == 'ResourceNotFoundException':
                    return events, params.get('nextToken')
                raise

            page = resp.get('events', [])
            events.extend(LogEvent(message=ev['message']) for ev in page)

            next_token = resp.get('nextForwardToken')
            # An unchanged forward token marks the end of the stream
            if not page or next_token is None or next_token == params.get('nextToken'):
                return events, next_token or params.get('nextToken')
            params['nextToken'] = next_token

    def put_event(self, group: str, stream: str, message: str):
        """Append one event to a stream, creating the stream if needed."""
        self.create_log_stream(group, stream)
        self.client.put_log_events(
            logGroupName=group,
            logStreamName=stream,
            logEvents=[{
                'timestamp': int(time.time() * 1000),
                'message': message,
            }],
        )

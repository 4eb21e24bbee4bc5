"""Shared fixtures: in-memory ECS and CloudWatch Logs backends."""

import copy
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from ecs_run_task.ecs.models import ContainerState, TaskState
from ecs_run_task.logs.client import LogEvent
from ecs_run_task.run.config import RunConfig


TASK_ARN = "arn:aws:ecs:us-east-1:123456789012:task/default/{task_id}"
CONTAINER_ARN = "arn:aws:ecs:us-east-1:123456789012:container/default/{task_id}/{container_id}"


def make_task(
    task_id: str,
    containers: Sequence[Tuple[str, str, Optional[int]]],
    status: str = 'STOPPED',
    reason: Optional[str] = None,
) -> TaskState:
    """
    Build a TaskState.

    Args:
        task_id: Task id (last segment of the ARN)
        containers: (name, container_id, exit_code) per container
        status: Status for the task and all of its containers
        reason: Stop reason given to containers without an exit code
    """
    return TaskState(
        arn=TASK_ARN.format(task_id=task_id),
        last_status=status,
        containers=[
            ContainerState(
                name=name,
                arn=CONTAINER_ARN.format(task_id=task_id, container_id=container_id),
                last_status=status,
                exit_code=exit_code,
                reason=reason if exit_code is None else None,
            )
            for name, container_id, exit_code in containers
        ],
    )


def as_running(task: TaskState) -> TaskState:
    running = copy.deepcopy(task)
    running.last_status = 'RUNNING'
    for container in running.containers:
        container.last_status = 'RUNNING'
        container.exit_code = None
        container.reason = None
    return running


class FakeLogs:
    """In-memory CloudWatch Logs. Forward tokens are stream offsets."""

    def __init__(self):
        self.groups = set()
        self.streams: Dict[Tuple[str, str], List[LogEvent]] = {}
        self.get_calls = 0
        self.get_error: Optional[Exception] = None
        self.put_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def create_log_group(self, group: str):
        self.groups.add(group)

    def get_events(self, group: str, stream: str, token: Optional[str] = None):
        with self._lock:
            self.get_calls += 1
            if self.get_error is not None:
                raise self.get_error
            events = list(self.streams.get((group, stream), []))
        start = int(token) if token else 0
        return events[start:], str(len(events))

    def put_event(self, group: str, stream: str, message: str):
        if self.put_error is not None:
            raise self.put_error
        with self._lock:
            self.streams.setdefault((group, stream), []).append(LogEvent(message=message))

    def messages(self, group: str, stream: str) -> List[str]:
        with self._lock:
            return [e.message for e in self.streams.get((group, stream), [])]


class FakeEcs:
    """
    In-memory ECS.

    ``run_task`` starts ``tasks`` in RUNNING state; ``describe_tasks``
    reports them RUNNING for ``running_polls`` calls, then returns
    ``tasks`` as given.
    """

    def __init__(self, tasks: Sequence[TaskState], running_polls: int = 1):
        self.tasks = list(tasks)
        self.running_polls = running_polls
        self.registered: List[dict] = []
        self.run_requests: List[dict] = []
        self.describe_calls = 0
        self.register_error: Optional[Exception] = None
        self.describe_error: Optional[Exception] = None
        self.run_failures: List[dict] = []

    def register_task_definition(self, taskdef: dict) -> str:
        if self.register_error is not None:
            raise self.register_error
        self.registered.append(copy.deepcopy(taskdef))
        return f"{taskdef['family']}:{len(self.registered)}"

    def run_task(self, **params):
        self.run_requests.append(copy.deepcopy(params))
        return [as_running(t) for t in self.tasks], list(self.run_failures)

    def describe_tasks(self, cluster: str, task_arns: Sequence[str]):
        self.describe_calls += 1
        if self.describe_error is not None:
            raise self.describe_error
        if self.describe_calls <= self.running_polls:
            return [as_running(t) for t in self.tasks], []
        return copy.deepcopy(self.tasks), []


SINGLE_CONTAINER_TASKDEF = """\
family: hello
containerDefinitions:
  - name: app
    image: ${IMAGE:-busybox}
    memory: 128
"""

TWO_CONTAINER_TASKDEF = """\
family: migrations
containerDefinitions:
  - name: app
    image: busybox
  - name: worker
    image: busybox
"""


@pytest.fixture
def fake_logs():
    return FakeLogs()


@pytest.fixture
def single_taskdef(tmp_path) -> Path:
    path = tmp_path / "taskdef.yml"
    path.write_text(SINGLE_CONTAINER_TASKDEF)
    return path


@pytest.fixture
def two_container_taskdef(tmp_path) -> Path:
    path = tmp_path / "taskdef.yml"
    path.write_text(TWO_CONTAINER_TASKDEF)
    return path


def make_config(taskdef: Path, **overrides) -> RunConfig:
    data = {
        'task_definition': str(taskdef),
        'run_name': 'test-run',
        'region': 'us-east-1',
        'log_poll_interval': 0.01,
        'task_poll_interval': 0.01,
    }
    data.update(overrides)
    return RunConfig(data)

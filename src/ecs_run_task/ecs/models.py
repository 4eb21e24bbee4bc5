"""
Data model for tasks, containers and overrides.

The ECS API returns plain dicts; these dataclasses hold the handful of
fields the runner reads from them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


STOPPED = 'STOPPED'


def short_id(arn: str) -> str:
    """Trailing path segment of an ARN (the task or container id)."""
    return arn.rsplit('/', 1)[-1]


@dataclass
class OverrideSpec:
    """A declared override, before its target and environment are resolved."""
    service: Optional[str]
    command: List[str]
    environment: List[str] = field(default_factory=list)


@dataclass
class ContainerOverride:
    """A resolved override for one container, ready for RunTask."""
    name: str
    command: List[str]
    environment: List[Tuple[str, str]] = field(default_factory=list)

    def to_api(self) -> Dict[str, Any]:
        override = {
            'name': self.name,
            'command': list(self.command),
        }
        if self.environment:
            override['environment'] = [
                {'name': key, 'value': value} for key, value in self.environment
            ]
        return override


@dataclass
class ContainerState:
    """Last observed state of one container within a task."""
    name: str
    arn: str
    last_status: str
    exit_code: Optional[int] = None
    reason: Optional[str] = None

    @property
    def short_id(self) -> str:
        return short_id(self.arn)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'ContainerState':
        return cls(
            name=data['name'],
            arn=data['containerArn'],
            last_status=data.get('lastStatus', ''),
            exit_code=data.get('exitCode'),
            reason=data.get('reason'),
        )


@dataclass
class TaskState:
    """Last observed state of one running instance of the task."""
    arn: str
    last_status: str
    containers: List[ContainerState] = field(default_factory=list)
    stopped_reason: Optional[str] = None

    @property
    def short_id(self) -> str:
        return short_id(self.arn)

    @property
    def stopped(self) -> bool:
        return self.last_status == STOPPED

    @property
    def all_stopped(self) -> bool:
        """The task and every one of its containers are STOPPED."""
        return self.stopped and all(c.last_status == STOPPED for c in self.containers)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TaskState':
        return cls(
            arn=data['taskArn'],
            last_status=data.get('lastStatus', ''),
            containers=[ContainerState.from_api(c) for c in data.get('containers', [])],
            stopped_reason=data.get('stoppedReason'),
        )


def log_stream_name(prefix: str, container: ContainerState, task: TaskState) -> str:
    """
    CloudWatch stream the awslogs driver writes a container's output to.

    Format: {prefix}/{container_name}/{task_id}
    """
    return f"{prefix}/{container.name}/{task.short_id}"

"""ECS task submission: models, overrides and the ECS client."""

from .models import (
    ContainerOverride,
    ContainerState,
    OverrideSpec,
    TaskState,
    log_stream_name,
)
from .overrides import parse_override, resolve_environment, resolve_overrides
from .client import EcsClient

__all__ = [
    # Models
    'ContainerOverride',
    'ContainerState',
    'OverrideSpec',
    'TaskState',
    'log_stream_name',
    # Overrides
    'parse_override',
    'resolve_environment',
    'resolve_overrides',
    # Backend
    'EcsClient',
]

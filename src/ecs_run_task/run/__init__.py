"""Run configuration, cancellation and errors.

The orchestrator itself lives in ``ecs_run_task.run.orchestrator``.
"""

from .cancel import CancelToken
from .errors import (
    RunnerError,
    ConfigurationError,
    TaskDefinitionError,
    SubmissionError,
    TerminationPollError,
    FinalizationError,
    RunCancelled,
)

__all__ = [
    'CancelToken',
    # Errors
    'RunnerError',
    'ConfigurationError',
    'TaskDefinitionError',
    'SubmissionError',
    'TerminationPollError',
    'FinalizationError',
    'RunCancelled',
]

"""
Errors raised while preparing or executing a run.

Every fatal condition is a RunnerError. The CLI reports these as
"Error: <message>" and exits with ``RunnerError.exit_code``.
"""


class RunnerError(Exception):
    """Base class for fatal run errors."""
    exit_code = 1


class ConfigurationError(RunnerError, ValueError):
    """Invalid overrides, environment references or run config."""


class TaskDefinitionError(ConfigurationError):
    """Task definition file could not be read, templated or parsed."""


class SubmissionError(RunnerError):
    """Registering the task definition or running the task was rejected."""


class TerminationPollError(RunnerError):
    """The task status could not be observed while waiting for it to stop."""


class FinalizationError(RunnerError):
    """A stopped container has no usable terminal state."""


class RunCancelled(RunnerError):
    """The run was cancelled before it finished."""

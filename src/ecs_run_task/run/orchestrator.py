"""
Run orchestrator - runs one ECS task and follows it to completion.

The sequence for a run:
  1. Plan: parse the task definition, resolve overrides, point every
     container's logs at the run's log group and stream prefix
  2. Submit: register the task definition and run it
  3. Tail: one thread per container follows its log stream
  4. Wait: poll ECS until every task has stopped
  5. Finalize: write a finish marker into every container's stream,
     which is the line its tailer stops on
  6. Join the tailers and report the first non-zero exit code

Usage:
    runner = Runner(RunConfig.from_yaml('run.yml'))
    result = runner.run()
    raise SystemExit(result.exit_code)
"""

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .cancel import CancelToken
from .config import RunConfig
from .errors import (
    ConfigurationError,
    FinalizationError,
    RunCancelled,
    RunnerError,
    SubmissionError,
    TerminationPollError,
)
from ..ecs.client import EcsClient
from ..ecs.models import ContainerOverride, TaskState, log_stream_name
from ..ecs.overrides import resolve_overrides
from ..logs.client import LogsClient
from ..logs.tailer import LogTailer
from ..logs.writer import LogWriter, finish_sentinel, write_container_finished
from ..taskdef.parser import container_names, parse

logger = logging.getLogger(__name__)


@dataclass
class RunPlan:
    """Everything needed to submit a run, computed without calling AWS."""
    task_definition: Dict[str, Any]
    run_task: Dict[str, Any]
    stream_prefix: str
    overrides: List[ContainerOverride] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'streamPrefix': self.stream_prefix,
            'registerTaskDefinition': self.task_definition,
            'runTask': self.run_task,
        }


@dataclass
class RunResult:
    """Outcome of a finished run."""
    exit_code: int
    tasks: List[TaskState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


def aggregate_exit_code(tasks: Sequence[TaskState]) -> int:
    """
    First non-zero container exit code, in the order ECS lists them.

    Returns:
        The exit code, or 0 if every container exited cleanly

    Raises:
        FinalizationError: If a container has no exit code
    """
    for task in tasks:
        for container in task.containers:
            if container.exit_code is None:
                raise FinalizationError(
                    container.reason or f"container {container.name} stopped without an exit code"
                )
            if container.exit_code != 0:
                logger.info("Container %s exited with %d", container.name, container.exit_code)
                return container.exit_code
    return 0


class Runner:
    """
    Runs a task definition on ECS and streams its logs.

    The ECS and CloudWatch Logs backends are created from a boto3 session
    on first use; pass ``ecs``/``logs`` to substitute them.

    Example:
        config = RunConfig({'task_definition': 'taskdef.yml', 'region': 'us-east-1'})
        result = Runner(config).run()
    """

    def __init__(
        self,
        config: RunConfig,
        ecs: Optional[EcsClient] = None,
        logs: Optional[LogsClient] = None,
        session: Optional[boto3.session.Session] = None,
        environ: Optional[Mapping[str, str]] = None,
        emit: Callable[[str], None] = print,
    ):
        """
        Initialize runner.

        Args:
            config: Run configuration
            ecs: ECS backend
            logs: CloudWatch Logs backend
            session: boto3 session used to create missing backends
            environ: Environment for templating and bare KEY overrides (default: os.environ)
            emit: Receives every container log line
        """
        self.config = config
        self.environ = os.environ if environ is None else environ
        self.emit = emit
        self._session = session
        self._ecs = ecs
        self._logs = logs

    @property
    def session(self) -> boto3.session.Session:
        if self._session is None:
            self._session = boto3.session.Session(region_name=self.config.region)
        return self._session

    @property
    def ecs(self) -> EcsClient:
        if self._ecs is None:
            self._ecs = EcsClient(self.session)
        return self._ecs

    @property
    def logs(self) -> LogsClient:
        if self._logs is None:
            self._logs = LogsClient(self.session)
        return self._logs

    @property
    def region(self) -> str:
        region = self.config.region or self.session.region_name
        if not region:
            raise ConfigurationError("No AWS region configured; pass --region or set AWS_REGION")
        return region

    # =========================================================================
    # Plan
    # =========================================================================

    def plan(self) -> RunPlan:
        """
        Build the RegisterTaskDefinition and RunTask requests.

        All configuration errors surface here, before anything is
        submitted.
        """
        config = self.config

        taskdef = parse(config.task_definition, self.environ)
        overrides = resolve_overrides(
            config.override_specs,
            container_names(taskdef),
            lookup_env=self.environ.get,
        )

        stream_prefix = config.run_name or f"run_task_{time.time_ns()}"
        region = self.region

        for container in taskdef['containerDefinitions']:
            container['logConfiguration'] = {
                'logDriver': 'awslogs',
                'options': {
                    'awslogs-group': config.log_group,
                    'awslogs-region': region,
                    'awslogs-stream-prefix': stream_prefix,
                },
            }

        run_task = {
            'cluster': config.cluster,
            'count': config.count,
            'overrides': {
                'containerOverrides': [o.to_api() for o in overrides],
            },
        }
        if config.fargate:
            run_task['launchType'] = 'FARGATE'
        if config.subnets or config.security_groups:
            run_task['networkConfiguration'] = {
                'awsvpcConfiguration': {
                    'subnets': config.subnets,
                    'securityGroups': config.security_groups,
                    'assignPublicIp': 'ENABLED',
                },
            }

        return RunPlan(
            task_definition=taskdef,
            run_task=run_task,
            stream_prefix=stream_prefix,
            overrides=overrides,
        )

    # =========================================================================
    # Run
    # =========================================================================

    def run(self, token: Optional[CancelToken] = None) -> RunResult:
        """
        Execute a run end to end.

        Args:
            token: Cancelling it aborts the run and stops the tailers

        Returns:
            RunResult with the first non-zero container exit code (or 0)

        Raises:
            RunnerError: On any fatal configuration, submission, polling
                or finalization error, or on cancellation
        """
        token = token or CancelToken()

        plan = self.plan()
        tasks = self._submit(plan, token)
        task_arns = [task.arn for task in tasks]

        # Tailers get their own token so a failed run can stop them
        # without cancelling the caller's token
        tail_token = token.child()
        try:
            workers = self._start_tailers(tasks, plan.stream_prefix, tail_token)
            self._await_termination(task_arns, token)
            final_tasks = self._finalize(task_arns, plan.stream_prefix)

            logger.info("Waiting for logs to finish")
            self._join_tailers(workers)
        finally:
            tail_token.cancel()

        return RunResult(exit_code=aggregate_exit_code(final_tasks), tasks=final_tasks)

    def _check_cancelled(self, token: CancelToken):
        if token.cancelled:
            raise RunCancelled("Run cancelled")

    def _submit(self, plan: RunPlan, token: CancelToken) -> List[TaskState]:
        config = self.config
        self._check_cancelled(token)

        try:
            self.logs.create_log_group(config.log_group)
        except (BotoCoreError, ClientError) as e:
            raise SubmissionError(f"Unable to create log group {config.log_group}: {e}") from e
        logger.info("Setting tasks to use log group %s", config.log_group)

        family = plan.task_definition['family']
        logger.info("Registering a task for %s", family)
        try:
            task_definition = self.ecs.register_task_definition(plan.task_definition)
        except (BotoCoreError, ClientError) as e:
            raise SubmissionError(f"Unable to register task definition {family}: {e}") from e

        self._check_cancelled(token)

        logger.info("Running task %s", task_definition)
        try:
            tasks, failures = self.ecs.run_task(taskDefinition=task_definition, **plan.run_task)
        except (BotoCoreError, ClientError) as e:
            raise SubmissionError(f"Unable to run task: {e}") from e

        for failure in failures:
            logger.warning("Task failed to start (%s): %s",
                           failure.get('arn', 'unknown'), failure.get('reason', 'unknown'))

        if not tasks:
            reasons = '; '.join(f.get('reason', 'unknown') for f in failures)
            raise SubmissionError(f"Unable to run task: {reasons or 'no tasks were started'}")

        return tasks

    def _start_tailers(
        self,
        tasks: Sequence[TaskState],
        stream_prefix: str,
        token: CancelToken,
    ) -> List[threading.Thread]:
        """Start one log tailer thread per container."""
        workers = []

        for task in tasks:
            for container in task.containers:
                tailer = LogTailer(
                    logs=self.logs,
                    group=self.config.log_group,
                    stream=log_stream_name(stream_prefix, container, task),
                    should_continue=finish_sentinel(container.short_id),
                    emit=self.emit,
                    poll_interval=self.config.log_poll_interval,
                )
                thread = threading.Thread(
                    target=self._tail,
                    args=(tailer, token),
                    name=f"tail-{container.name}-{task.short_id}",
                    daemon=True,
                )
                thread.start()
                workers.append(thread)

        return workers

    @staticmethod
    def _tail(tailer: LogTailer, token: CancelToken):
        try:
            tailer.watch(token)
        except Exception as e:
            # A tailer failure ends that tailer only, never the run
            logger.error("Log watcher for %s returned error: %s", tailer.stream, e)

    def _describe(
        self,
        task_arns: Sequence[str],
        error: Type[RunnerError],
    ) -> List[TaskState]:
        try:
            tasks, failures = self.ecs.describe_tasks(self.config.cluster, task_arns)
        except (BotoCoreError, ClientError) as e:
            raise error(f"Unable to describe tasks: {e}") from e

        if failures:
            details = '; '.join(
                f"{f.get('arn', 'unknown')}: {f.get('reason', 'unknown')}" for f in failures
            )
            raise error(f"Unable to describe tasks: {details}")

        return tasks

    def _await_termination(self, task_arns: Sequence[str], token: CancelToken):
        """
        Poll ECS until every task and all of its containers have stopped.
        There is no timeout.
        """
        for arn in task_arns:
            logger.info("Waiting until task %s has stopped", arn)

        while True:
            self._check_cancelled(token)
            tasks = self._describe(task_arns, TerminationPollError)
            if len(tasks) == len(task_arns) and all(task.all_stopped for task in tasks):
                break
            if token.wait(self.config.task_poll_interval):
                raise RunCancelled("Run cancelled while waiting for tasks to stop")

        for task in tasks:
            if task.stopped_reason:
                logger.info("Task %s stopped: %s", task.short_id, task.stopped_reason)
        logger.info("All tasks have stopped")

    def _finalize(self, task_arns: Sequence[str], stream_prefix: str) -> List[TaskState]:
        """Write a finish marker for every container of the stopped tasks."""
        tasks = self._describe(task_arns, FinalizationError)

        for task in tasks:
            for container in task.containers:
                writer = LogWriter(
                    self.logs,
                    self.config.log_group,
                    log_stream_name(stream_prefix, container, task),
                )
                try:
                    write_container_finished(writer, container)
                except (BotoCoreError, ClientError) as e:
                    raise FinalizationError(
                        f"Unable to write finish message for {container.name}: {e}"
                    ) from e

        return tasks

    def _join_tailers(self, workers: Sequence[threading.Thread]):
        for worker in workers:
            worker.join()

"""
Thin wrapper around the boto3 ECS client.

Only the calls the runner needs: register a task definition, run it,
and describe the resulting tasks.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import boto3

from .models import TaskState

logger = logging.getLogger(__name__)


class EcsClient:
    """
    Registers and runs task definitions on an ECS cluster.

    Example:
        ecs = EcsClient(boto3.Session(region_name='us-east-1'))
        task_definition = ecs.register_task_definition(taskdef)
        tasks, failures = ecs.run_task(cluster='default', taskDefinition=task_definition)
    """

    def __init__(self, session: Optional[boto3.session.Session] = None, client=None):
        if client is None:
            session = session or boto3.session.Session()
            client = session.client('ecs')
        self.client = client

    def register_task_definition(self, taskdef: Dict[str, Any]) -> str:
        """
        Register a task definition.

        Returns:
            Reference of the new revision, "family:revision"
        """
        resp = self.client.register_task_definition(**taskdef)
        registered = resp['taskDefinition']
        reference = f"{registered['family']}:{registered['revision']}"
        logger.debug("Registered task definition %s", reference)
        return reference

    def run_task(self, **params) -> Tuple[List[TaskState], List[Dict[str, Any]]]:
        """
        Start tasks.

        Args:
            **params: RunTask request parameters

        Returns:
            Tuple of (started tasks, failures reported by ECS)
        """
        resp = self.client.run_task(**params)
        tasks = [TaskState.from_api(t) for t in resp.get('tasks', [])]
        return tasks, resp.get('failures', [])

    def describe_tasks(
        self,
        cluster: str,
        task_arns: Sequence[str],
    ) -> Tuple[List[TaskState], List[Dict[str, Any]]]:
        """
        Describe tasks.

        Returns:
            Tuple of (tasks in the order ECS returns them, failures)
        """
        resp = self.client.describe_tasks(cluster=cluster, tasks=list(task_arns))
        tasks = [TaskState.from_api(t) for t in resp.get('tasks', [])]
        return tasks, resp.get('failures', [])

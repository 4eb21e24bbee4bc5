"""
Run configuration.

A RunConfig describes a single task run. It can be loaded from YAML and
is also what the CLI builds from its flags:

    task_definition: taskdefinition.yml
    run_name: nightly-migrate
    cluster: workers
    log_group: ecs-run-task
    fargate: true
    subnets: [subnet-0abc]
    security_groups: [sg-0abc]
    overrides:
      - "worker:./migrate --verbose"
      - service: app
        command: [echo, hello]
        environment: [GREETING=hi]
    environment: [DATABASE_URL]
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigurationError
from ..ecs.models import OverrideSpec
from ..ecs.overrides import parse_override


DEFAULTS = {
    'run_name': None,
    'cluster': 'default',
    'log_group': 'ecs-run-task',
    'region': None,
    'fargate': False,
    'subnets': [],
    'security_groups': [],
    'count': 1,
    'overrides': [],
    'environment': [],
    'log_poll_interval': 1.0,
    'task_poll_interval': 6.0,
}

KNOWN_KEYS = set(DEFAULTS) | {'task_definition'}


class RunConfig:
    """
    Loads and validates a run configuration.

    Example:
        config = RunConfig.from_yaml('run.yml')
        print(config.cluster)
        print(config.override_specs)
    """

    def __init__(self, data: Dict[str, Any]):
        self._data = data
        self._validate()

    @classmethod
    def from_yaml(cls, path: str) -> 'RunConfig':
        """Load run config from YAML file."""
        return cls(load_yaml(path))

    def _validate(self):
        """Validate keys and value types."""
        if not isinstance(self._data, dict):
            raise ConfigurationError("Run config must be a mapping")

        unknown = sorted(set(self._data) - KNOWN_KEYS)
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")

        if not self._data.get('task_definition'):
            raise ConfigurationError("Missing required config key: 'task_definition'")

        count = self._get('count')
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ConfigurationError(f"count must be a positive integer, got {count!r}")

        for key in ('log_poll_interval', 'task_poll_interval'):
            value = self._get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{key} must be a positive number, got {value!r}")

        for key in ('subnets', 'security_groups', 'overrides', 'environment'):
            if not isinstance(self._get(key), list):
                raise ConfigurationError(f"{key} must be a list")

        # Parse overrides eagerly so malformed ones fail before anything runs
        self._parse_overrides()

    def _get(self, key: str):
        value = self._data.get(key)
        return DEFAULTS[key] if value is None else value

    # --- Properties ---

    @property
    def task_definition(self) -> Path:
        return Path(self._data['task_definition'])

    @property
    def run_name(self) -> Optional[str]:
        return self._get('run_name')

    @property
    def cluster(self) -> str:
        return self._get('cluster')

    @property
    def log_group(self) -> str:
        return self._get('log_group')

    @property
    def region(self) -> Optional[str]:
        """Region from config, falling back to $AWS_REGION."""
        return self._get('region') or os.environ.get('AWS_REGION')

    @property
    def fargate(self) -> bool:
        return bool(self._get('fargate'))

    @property
    def subnets(self) -> List[str]:
        return list(self._get('subnets'))

    @property
    def security_groups(self) -> List[str]:
        return list(self._get('security_groups'))

    @property
    def count(self) -> int:
        return self._get('count')

    @property
    def environment(self) -> List[str]:
        return [str(e) for e in self._get('environment')]

    @property
    def log_poll_interval(self) -> float:
        return float(self._get('log_poll_interval'))

    @property
    def task_poll_interval(self) -> float:
        return float(self._get('task_poll_interval'))

    @property
    def override_specs(self) -> List[OverrideSpec]:
        """
        Declared overrides, each carrying its own environment followed by
        the run-wide environment entries.
        """
        return self._parse_overrides()

    def _parse_overrides(self) -> List[OverrideSpec]:
        specs = []
        for entry in self._get('overrides'):
            if isinstance(entry, str):
                spec = parse_override(entry)
            elif isinstance(entry, dict):
                spec = _override_from_mapping(entry)
            else:
                raise ConfigurationError(f"Malformed override {entry!r}")
            spec.environment.extend(self.environment)
            specs.append(spec)
        return specs

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)


def _override_from_mapping(entry: Dict[str, Any]) -> OverrideSpec:
    command = entry.get('command', [])
    if isinstance(command, str):
        spec = parse_override(command)
        spec.service = entry.get('service') or spec.service
    elif isinstance(command, list):
        spec = OverrideSpec(service=entry.get('service'), command=[str(c) for c in command])
    else:
        raise ConfigurationError(f"Malformed override command {command!r}")

    environment = entry.get('environment', [])
    if not isinstance(environment, list):
        raise ConfigurationError(f"Override environment must be a list, got {environment!r}")
    spec.environment = [str(e) for e in environment]
    return spec


def load_yaml(path: str) -> Dict[str, Any]:
    """Read a YAML run config into a dict."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Run config not found: {path}")

    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed run config {path}: {e}") from e

    return data or {}

"""
Task definition file parsing.

Task definitions are written as YAML or JSON using the ECS API's
camelCase keys, e.g.:

    family: my-task
    containerDefinitions:
      - name: app
        image: ${IMAGE:-busybox}
        memory: 128
        command: ["echo", "hello"]

Environment variables are interpolated into the raw text before it is
parsed, so they can appear anywhere in the file.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from ..run.errors import TaskDefinitionError


# $$ | ${NAME<op><arg>} | ${NAME} | $NAME
INTERPOLATION_PATTERN = re.compile(
    r"\$(?:"
    r"(?P<escaped>\$)"
    r"|\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?:(?P<op>:-|-|\?)(?P<arg>[^}]*))?\}"
    r"|(?P<named>[A-Za-z_][A-Za-z0-9_]*)"
    r")"
)


def interpolate(text: str, env: Mapping[str, str]) -> str:
    """
    Substitute environment variables into text.

    Supported forms:
        $VAR, ${VAR}      value of VAR, empty if unset
        ${VAR:-default}   default if VAR is unset or empty
        ${VAR-default}    default if VAR is unset
        ${VAR?message}    error if VAR is unset
        $$                a literal $

    Raises:
        TaskDefinitionError: If a ${VAR?message} variable is unset
    """
    def replace(match):
        if match.group('escaped'):
            return '$'

        name = match.group('named') or match.group('braced')
        value = env.get(name)
        op = match.group('op')

        if op == ':-':
            return value if value else match.group('arg')
        if op == '-':
            return value if value is not None else match.group('arg')
        if op == '?':
            if value is None:
                message = match.group('arg') or 'not set'
                raise TaskDefinitionError(f"${name}: {message}")
            return value
        return value or ''

    return INTERPOLATION_PATTERN.sub(replace, text)


def parse_string(text: str, env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Parse task definition text (YAML or JSON).

    Args:
        text: Raw task definition
        env: Variables for interpolation (default: os.environ)

    Returns:
        RegisterTaskDefinition request parameters
    """
    if env is None:
        env = os.environ

    try:
        data = yaml.safe_load(interpolate(text, env))
    except yaml.YAMLError as e:
        raise TaskDefinitionError(f"Malformed task definition: {e}") from e

    _validate(data)
    return data


def parse(path: Union[str, Path], env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Load and parse a task definition file.

    Args:
        path: Path to a .json, .yaml or .yml file
        env: Variables for interpolation (default: os.environ)

    Returns:
        RegisterTaskDefinition request parameters
    """
    path = Path(path)
    if not path.exists():
        raise TaskDefinitionError(f"Task definition not found: {path}")

    with open(path, 'r') as f:
        text = f.read()

    try:
        return parse_string(text, env)
    except TaskDefinitionError as e:
        raise TaskDefinitionError(f"{path}: {e}") from e


def _validate(data: Any):
    if not isinstance(data, dict):
        raise TaskDefinitionError("Task definition must be a mapping")

    if not isinstance(data.get('family'), str) or not data['family']:
        raise TaskDefinitionError("Task definition is missing 'family'")

    containers = data.get('containerDefinitions')
    if not isinstance(containers, list) or not containers:
        raise TaskDefinitionError("Task definition has no 'containerDefinitions'")

    for i, container in enumerate(containers):
        if not isinstance(container, dict) or not container.get('name'):
            raise TaskDefinitionError(f"Container definition {i} has no 'name'")


def container_names(taskdef: Dict[str, Any]) -> List[str]:
    """Names of the task's containers, in definition order."""
    return [c['name'] for c in taskdef['containerDefinitions']]

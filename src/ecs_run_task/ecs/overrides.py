"""
Container override resolution.

Turns declared overrides ("worker:./migrate --fast", plus KEY=VALUE or
KEY environment entries) into the containerOverrides sent with RunTask.
"""

import logging
import os
import re
import shlex
from typing import Callable, List, Optional, Sequence, Tuple

from .models import ContainerOverride, OverrideSpec
from ..run.errors import ConfigurationError

logger = logging.getLogger(__name__)

EnvLookup = Callable[[str], Optional[str]]

SERVICE_PREFIX_PATTERN = re.compile(r"^(?P<service>[A-Za-z0-9_-]+):(?P<command>.*)$", re.DOTALL)


def parse_override(text: str, environment: Sequence[str] = ()) -> OverrideSpec:
    """
    Parse an override given on the command line.

    Format: ``[service:]command words``. The service prefix is only
    recognised when it is a bare container name directly followed by a
    colon, so commands such as ``echo a:b`` are left intact.

    Args:
        text: Override text
        environment: Environment entries to attach to the override

    Returns:
        OverrideSpec with the command split using shell quoting rules
    """
    service = None
    command_text = text
    match = SERVICE_PREFIX_PATTERN.match(text.strip())
    if match:
        service = match.group('service')
        command_text = match.group('command')

    try:
        command = shlex.split(command_text)
    except ValueError as e:
        raise ConfigurationError(f"Malformed override {text!r}: {e}") from e

    if not command:
        raise ConfigurationError(f"Malformed override {text!r}: no command given")

    return OverrideSpec(service=service, command=command, environment=list(environment))


def resolve_environment(
    wanted: Sequence[str],
    lookup_env: EnvLookup = os.environ.get,
) -> List[Tuple[str, str]]:
    """
    Resolve KEY=VALUE and bare KEY entries into name/value pairs.

    Bare keys are read from ``lookup_env``; values containing '=' are
    kept whole since only the first '=' splits.

    Raises:
        ConfigurationError: If a bare key is not set
    """
    pairs = []
    for entry in wanted:
        key, sep, value = entry.partition('=')
        if not sep:
            value = lookup_env(key)
            if value is None:
                raise ConfigurationError(f"missing environment variable {key!r}")
        pairs.append((key, value))
    return pairs


def resolve_overrides(
    overrides: Sequence[OverrideSpec],
    container_names: Sequence[str],
    lookup_env: EnvLookup = os.environ.get,
) -> List[ContainerOverride]:
    """
    Resolve declared overrides against the task definition's containers.

    Overrides without a command are skipped. An override without a
    service applies to the only container; with several containers the
    target is ambiguous and the run is refused.

    Args:
        overrides: Declared overrides, in order
        container_names: Container names from the task definition
        lookup_env: Host environment lookup for bare KEY entries

    Returns:
        List of ContainerOverride, in declaration order
    """
    resolved = []

    for override in overrides:
        if not override.command:
            logger.info("Skipping override for %s with no command",
                        override.service or 'default container')
            continue

        service = override.service
        if not service:
            if len(container_names) != 1:
                raise ConfigurationError(
                    f"No service provided for override and can't determine default "
                    f"service with {len(container_names)} container definitions"
                )
            service = container_names[0]
            logger.info("Assuming override applies to '%s'", service)

        resolved.append(ContainerOverride(
            name=service,
            command=list(override.command),
            environment=resolve_environment(override.environment, lookup_env),
        ))

    return resolved

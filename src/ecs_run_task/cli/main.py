"""
Command-line interface for ecs_run_task.

Run a one-off task and stream its logs:
    ecs-run-task -f taskdefinition.yml -c workers --name nightly -- echo hello

Target a container in a multi-container task:
    ecs-run-task -f taskdef.yml -s worker -e DATABASE_URL -- ./migrate
    ecs-run-task -f taskdef.yml -o "worker:./migrate --verbose" -o "app:echo hi"

Fargate:
    ecs-run-task -f taskdef.yml --fargate --subnet subnet-0abc --security-group sg-0abc

Settings can also come from a YAML file (flags win):
    ecs-run-task --config run.yml

The process exits with the first non-zero container exit code, or 1 if
the run itself fails.
"""

import json
import logging
import signal
import sys

import click

from .. import __version__
from ..run.cancel import CancelToken
from ..run.config import RunConfig, load_yaml
from ..run.errors import RunnerError


LOG_FORMAT = '%(asctime)s %(message)s'
LOG_DATE_FORMAT = '%Y/%m/%d %H:%M:%S'


def configure_logging(debug: bool = False):
    """Send diagnostics to stderr; container output owns stdout."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stderr,
    )
    if not debug:
        for name in ('botocore', 'boto3', 'urllib3'):
            logging.getLogger(name).setLevel(logging.WARNING)


def build_config(config_path, options, service, command) -> RunConfig:
    """
    Merge a YAML config file with command-line options.

    Options left unset on the command line (None or empty) keep the
    file's value. A positional command becomes one more override.
    """
    data = load_yaml(config_path) if config_path else {}

    for key, value in options.items():
        if value is None or value == () or value is False:
            continue
        data[key] = list(value) if isinstance(value, tuple) else value

    if command:
        data['overrides'] = list(data.get('overrides') or []) + [
            {'service': service, 'command': list(command)}
        ]

    data.setdefault('task_definition', 'taskdefinition.json')
    return RunConfig(data)


@click.command(context_settings={
    'help_option_names': ['-h', '--help'],
    'allow_interspersed_args': False,
})
@click.version_option(__version__)
@click.option('--config', 'config_path', type=click.Path(exists=True),
              help='YAML run config (command-line flags take precedence)')
@click.option('--name', 'run_name', help='Run name, used as the log stream prefix')
@click.option('--file', '-f', 'task_definition', type=click.Path(),
              help='Task definition file (YAML or JSON) [default: taskdefinition.json]')
@click.option('--cluster', '-c', help='ECS cluster [default: default]')
@click.option('--log-group', help='CloudWatch log group [default: ecs-run-task]')
@click.option('--region', help='AWS region [default: config file, then $AWS_REGION]')
@click.option('--fargate', is_flag=True, help='Use the FARGATE launch type')
@click.option('--subnet', 'subnets', multiple=True, help='Subnet for awsvpc networking (repeatable)')
@click.option('--security-group', 'security_groups', multiple=True,
              help='Security group for awsvpc networking (repeatable)')
@click.option('--count', '-C', type=int, help='Number of tasks to run [default: 1]')
@click.option('--service', '-s', help='Container the positional COMMAND applies to')
@click.option('--override', '-o', 'overrides', multiple=True,
              help='Command override as "[service:]command args" (repeatable)')
@click.option('--env', '-e', 'environment', multiple=True,
              help='KEY=VALUE, or KEY to copy from this environment (repeatable)')
@click.option('--dry-run', is_flag=True, help='Print the requests without submitting')
@click.option('--debug', is_flag=True, help='Verbose logging, including AWS requests')
@click.argument('command', nargs=-1, type=click.UNPROCESSED)
def cli(config_path, run_name, task_definition, cluster, log_group, region, fargate,
        subnets, security_groups, count, service, overrides, environment, dry_run,
        debug, command):
    """Run a task on ECS, stream its logs and exit with its exit code."""
    from ..run.orchestrator import Runner

    configure_logging(debug)

    options = {
        'run_name': run_name,
        'task_definition': task_definition,
        'cluster': cluster,
        'log_group': log_group,
        'region': region,
        'fargate': fargate,
        'subnets': subnets,
        'security_groups': security_groups,
        'count': count,
        'overrides': overrides,
        'environment': environment,
    }

    try:
        config = build_config(config_path, options, service, command)
        runner = Runner(config, emit=click.echo)

        if dry_run:
            plan = runner.plan()
            click.echo("Dry run - not submitting")
            click.echo(json.dumps(plan.to_dict(), indent=2))
            return

        token = CancelToken()
        previous_handlers = _cancel_on_signals(token)
        try:
            result = runner.run(token)
        finally:
            for sig, handler in previous_handlers.items():
                signal.signal(sig, handler)

    except (RunnerError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(getattr(e, 'exit_code', 1))

    if not result.succeeded:
        click.echo(f"Task exited with {result.exit_code}", err=True)
    raise SystemExit(result.exit_code)


def _cancel_on_signals(token: CancelToken) -> dict:
    """Cancel ``token`` on SIGINT/SIGTERM. Returns the replaced handlers."""
    def handler(signum, frame):
        logging.getLogger(__name__).warning("Received signal %d, cancelling run", signum)
        token.cancel()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, handler)
    return previous


if __name__ == '__main__':
    cli()

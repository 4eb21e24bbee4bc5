"""
ECS Run Task - run a one-off task on Amazon ECS and stream its logs.

This package provides tools for:
- Parsing and templating ECS task definition files
- Registering and running the task with per-container overrides
- Tailing each container's CloudWatch log stream while the task runs
- Reporting the task's container exit code as the process exit code
"""

__version__ = "2.0.0"

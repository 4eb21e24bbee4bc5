"""Setup script for ecs_run_task package."""

from setuptools import setup, find_packages

setup(
    name="ecs_run_task",
    version="2.0.0",
    description="Run a one-off task on Amazon ECS and stream its CloudWatch logs",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        "boto3>=1.26",
        "botocore>=1.29",
        "pyyaml>=5.4",
        "click>=8.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ecs-run-task=ecs_run_task.cli.main:cli",
        ],
    },
)

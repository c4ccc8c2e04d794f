"""Decorator patterns wiring click commands to resize jobs."""

import sys
import click
from functools import wraps
from typing import Any, Callable, Dict, Optional, Type

from ebs_resize.jobs.base import BaseJob
from ebs_resize.jobs.resize_root_volume import ResizeRootVolumeJob
from ebs_resize.utils.config import ConfigManager
from ebs_resize.utils.exceptions import CLIError
from ebs_resize.utils.logger import setup_logger

# Keys echoed in the summary, in display order
SUMMARY_FIELDS = (
    ("instance_id", "Instance"),
    ("availability_zone", "Availability zone"),
    ("device_name", "Root device"),
    ("old_volume_id", "Old volume"),
    ("snapshot_id", "Snapshot"),
    ("new_volume_id", "New volume"),
    ("public_ip", "Public IP"),
)


def handle_operation_error(operation_name: str, error: Exception) -> None:
    """Centralized error handling for operations.

    Args:
        operation_name: Name of the operation that failed
        error: Exception that occurred
    """
    error_msg = f"Error in {operation_name}: {str(error)}"
    click.echo(error_msg, err=True)

    logger = setup_logger("ebs_resize.errors", "errors.log")
    logger.error(
        error_msg,
        extra={"operation": operation_name, "error_type": type(error).__name__},
    )


def handle_output(result: Dict[str, Any], correlation_id: Optional[str] = None) -> None:
    """Echo a job result and log where it ended up."""
    logger = setup_logger("ebs_resize.output", "operations.log")

    stream_err = result.get("status") != "success"
    click.echo(result.get("message", ""), err=stream_err)
    for key, label in SUMMARY_FIELDS:
        if result.get(key):
            click.echo(f"  {label}: {result[key]}", err=stream_err)

    metrics = result.get("metrics")
    if metrics is not None:
        click.echo(f"  Duration: {metrics.operation_duration:.1f}s", err=stream_err)

    logger.info(
        f"[{correlation_id or 'N/A'}] Operation finished with status {result.get('status')}"
    )


def aws_operation(
    job_class: Type[BaseJob],
    requires_confirmation: bool = False,
):
    """Decorator running ``job_class`` with the command's options.

    The decorated function is called first (logging setup) and the job result
    decides the exit code: 0 on success, 1 otherwise.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(**kwargs):
            operation_name = func.__name__
            func(**kwargs)

            if (
                requires_confirmation
                and not kwargs.get("force", False)
                and not kwargs.get("dry_run", False)
            ):
                prompt = (
                    f"Instance {kwargs.get('instance_id')} will be stopped and its root volume "
                    f"replaced with a {kwargs.get('size')} GiB copy. Continue?"
                )
                if not click.confirm(prompt):
                    click.echo("Operation cancelled by user.", err=True)
                    sys.exit(1)

            try:
                job = job_class(ConfigManager())
                result = job.execute(**kwargs)
            except CLIError as e:
                handle_operation_error(operation_name, e)
                sys.exit(1)

            handle_output(result, getattr(job, "correlation_id", None))
            if result.get("status") != "success":
                sys.exit(1)
            return result

        return wrapper

    return decorator


def resize_operation(requires_confirmation: bool = True):
    """Decorator for root volume resize operations."""
    return aws_operation(ResizeRootVolumeJob, requires_confirmation)

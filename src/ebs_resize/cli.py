#!/usr/bin/env python3
"""
EBS Root Resize - CLI
Grow the root EBS volume of an EC2 instance by swapping in a larger copy.

Usage errors, missing options and -h all exit with status 1.
"""

import logging
import os

import click

from ebs_resize import __version__
from ebs_resize.jobs.resize_root_volume import REMOTE_METHODS
from ebs_resize.utils.decorators import resize_operation
from ebs_resize.utils.exceptions import ValidationRules
from ebs_resize.utils.logger import set_console_level, setup_logger


class ResizeCommand(click.Command):
    """Command whose usage errors exit with status 1 instead of click's 2."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = 1
            raise


def setup_logging(verbose: bool = False):
    level = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "INFO")
    os.environ["LOG_LEVEL"] = level
    logger = setup_logger("ebs_resize_cli", "cli.log", level)
    # Loggers created at import time keep their level unless told otherwise
    for name in list(logging.root.manager.loggerDict):
        if name.startswith("ebs_resize"):
            set_console_level(logging.getLogger(name), level)
    return logger


def print_help(ctx, param, value):
    if not value or ctx.resilient_parsing:
        return
    click.echo(ctx.get_help())
    ctx.exit(1)


def validate_instance_id(ctx, param, value):
    if value is not None and not ValidationRules.validate_instance_id(value):
        raise click.BadParameter(f"'{value}' is not an EC2 instance id (i-xxxxxxxx)")
    return value


@click.command(cls=ResizeCommand, context_settings={"help_option_names": []})
@click.option(
    "-h", "--help", is_flag=True, expose_value=False, is_eager=True,
    callback=print_help, help="Show this message and exit.",
)
@click.option(
    "-i", "--instance-id", required=True, callback=validate_instance_id,
    help="EC2 instance whose root volume is resized",
)
@click.option(
    "-s", "--size", required=True, type=click.IntRange(min=1),
    help="New root volume size in GiB",
)
@click.option("-v", "--delete-old-volume", is_flag=True, help="Delete the old volume on completion")
@click.option("-S", "--delete-snapshot", is_flag=True, help="Delete the snapshot on completion")
@click.option("-r", "--region", help="AWS region (default from configs/settings.yaml)")
@click.option("-p", "--profile", help="AWS named profile")
@click.option(
    "-k", "--key-file", type=click.Path(dir_okay=False),
    help="SSH private key (default: <key_dir>/<KeyName>.pem)",
)
@click.option("-u", "--ssh-user", help="SSH login user (default from config, ec2-user)")
@click.option(
    "--remote-method", default="ssh", show_default=True,
    type=click.Choice(REMOTE_METHODS, case_sensitive=False),
    help="How to reach the host for the filesystem resize",
)
@click.option("--skip-fs-resize", is_flag=True, help="Do not grow the filesystem after restart")
@click.option("--dry-run", is_flag=True, help="Preview changes without executing")
@click.option("--force", is_flag=True, help="Skip confirmation prompt")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
@click.version_option(__version__, "--version", prog_name="ebs-root-resize")
@resize_operation(requires_confirmation=True)
def resize_root_volume(
    instance_id, size, delete_old_volume, delete_snapshot, region, profile, key_file,
    ssh_user, remote_method, skip_fs_resize, dry_run, force, verbose,
):
    """Resize the root EBS volume of a running EC2 instance.

    Stops the instance, detaches its root volume, snapshots it, creates a
    larger volume from the snapshot, attaches it, starts the instance and
    grows the root filesystem.
    """
    setup_logging(verbose)


def main():
    resize_root_volume()


if __name__ == "__main__":
    main()

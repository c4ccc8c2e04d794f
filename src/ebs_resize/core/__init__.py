"""Core root volume resize module."""

from .aws import EC2Manager, create_ec2_manager, SSMManager, create_ssm_manager
from .models import (
    ServerInfo,
    VolumeInfo,
    SnapshotInfo,
    InstanceState,
    VolumeState,
    SnapshotState,
)
from .remote import FilesystemResizer, RootMount, SSHRunner, SSMRunner

__all__ = [
    # AWS Managers
    "EC2Manager",
    "create_ec2_manager",
    "SSMManager",
    "create_ssm_manager",
    # Models
    "ServerInfo",
    "VolumeInfo",
    "SnapshotInfo",
    # Enums
    "InstanceState",
    "VolumeState",
    "SnapshotState",
    # Remote
    "FilesystemResizer",
    "RootMount",
    "SSHRunner",
    "SSMRunner",
]

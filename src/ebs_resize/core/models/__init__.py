"""Simple data models for AWS resources."""

# Server models
from .server import (
    InstanceState,
    ServerInfo,
    tags_to_dict,
)

# Volume models
from .volume import (
    VolumeState,
    VolumeInfo,
)

# Snapshot models
from .snapshot import (
    SnapshotState,
    SnapshotInfo,
)

__all__ = [
    # Server models
    "InstanceState",
    "ServerInfo",
    "tags_to_dict",
    # Volume models
    "VolumeState",
    "VolumeInfo",
    # Snapshot models
    "SnapshotState",
    "SnapshotInfo",
]

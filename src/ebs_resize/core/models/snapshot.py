"""Simple data models for AWS EBS snapshot management."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any

from .server import tags_to_dict


class SnapshotState(Enum):
    """EBS Snapshot states."""
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class SnapshotInfo:
    """Simple snapshot information model."""
    snapshot_id: str
    volume_id: str
    volume_size: int
    state: str
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.state == SnapshotState.COMPLETED.value

    @classmethod
    def from_aws_snapshot(cls, snapshot: Dict[str, Any]) -> "SnapshotInfo":
        """Create SnapshotInfo from AWS snapshot data."""
        return cls(
            snapshot_id=snapshot["SnapshotId"],
            volume_id=snapshot.get("VolumeId", ""),
            volume_size=snapshot.get("VolumeSize", 0),
            state=snapshot.get("State", "pending"),
            tags=tags_to_dict(snapshot.get("Tags")),
        )

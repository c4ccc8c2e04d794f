"""Simple data models for EBS volumes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Any

from .server import tags_to_dict


class VolumeState(Enum):
    """EBS Volume states."""
    CREATING = "creating"
    AVAILABLE = "available"
    IN_USE = "in-use"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR = "error"


@dataclass
class VolumeInfo:
    """Simple volume information model."""
    volume_id: str
    size: int
    state: str
    availability_zone: str
    volume_type: str = "gp2"
    iops: Optional[int] = None
    throughput: Optional[int] = None
    tags: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_aws_volume(cls, volume: Dict[str, Any]) -> "VolumeInfo":
        """Create VolumeInfo from AWS volume data."""
        return cls(
            volume_id=volume["VolumeId"],
            size=volume.get("Size", 0),
            state=volume.get("State", ""),
            availability_zone=volume.get("AvailabilityZone", ""),
            volume_type=volume.get("VolumeType", "gp2"),
            iops=volume.get("Iops"),
            throughput=volume.get("Throughput"),
            tags=tags_to_dict(volume.get("Tags")),
        )

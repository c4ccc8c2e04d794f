"""Simple Server Data Models

Simple data models for the EC2 instance whose root volume is resized."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Any


class InstanceState(Enum):
    """EC2 Instance states."""
    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"


def tags_to_dict(tags) -> Dict[str, str]:
    """Flatten an AWS Tags list into a dict."""
    result = {}
    for tag in tags or []:
        if tag.get("Key"):
            result[tag["Key"]] = tag.get("Value", "")
    return result


@dataclass
class ServerInfo:
    """Simple server information model."""
    instance_id: str
    name: str
    state: str
    availability_zone: str
    root_device_name: str
    root_device_type: str = "ebs"
    root_volume_id: Optional[str] = None
    public_ip: Optional[str] = None
    key_name: Optional[str] = None
    root_delete_on_termination: bool = False
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.state == InstanceState.RUNNING.value

    @property
    def is_stopped(self) -> bool:
        return self.state == InstanceState.STOPPED.value

    @property
    def is_ebs_backed(self) -> bool:
        return self.root_device_type == "ebs"

    @classmethod
    def from_aws_instance(cls, instance: Dict[str, Any]) -> "ServerInfo":
        """Create ServerInfo from AWS instance data."""
        tags = tags_to_dict(instance.get("Tags"))
        root_device_name = instance.get("RootDeviceName", "")

        root_volume_id = None
        delete_on_termination = False
        for mapping in instance.get("BlockDeviceMappings", []):
            if mapping.get("DeviceName") == root_device_name and "Ebs" in mapping:
                root_volume_id = mapping["Ebs"].get("VolumeId")
                delete_on_termination = mapping["Ebs"].get("DeleteOnTermination", False)
                break

        return cls(
            instance_id=instance["InstanceId"],
            name=tags.get("Name", instance["InstanceId"]),
            state=instance.get("State", {}).get("Name", ""),
            availability_zone=instance.get("Placement", {}).get("AvailabilityZone", ""),
            root_device_name=root_device_name,
            root_device_type=instance.get("RootDeviceType", "ebs"),
            root_volume_id=root_volume_id,
            public_ip=instance.get("PublicIpAddress"),
            key_name=instance.get("KeyName"),
            root_delete_on_termination=delete_on_termination,
            tags=tags,
        )

"""EC2 Manager for the root volume swap operations."""

from typing import Any, Dict, List
import boto3
from botocore.exceptions import BotoCoreError, ClientError, WaiterError
from ebs_resize.core.constants import (
    CREATED_BY_TAG,
    CREATED_BY_VALUE,
    DEFAULT_AWS_REGION,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    IOPS_VOLUME_TYPES,
    SOURCE_INSTANCE_TAG,
    SOURCE_VOLUME_TAG,
    THROUGHPUT_VOLUME_TYPES,
)
from ebs_resize.core.models import (
    InstanceState,
    ServerInfo,
    SnapshotInfo,
    SnapshotState,
    VolumeInfo,
    VolumeState,
)
from ebs_resize.utils.exceptions import AWSOperationError, ResizeError, WaitTimeoutError
from ebs_resize.utils.logger import setup_logger

# botocore waiter per target state
INSTANCE_WAITERS = {
    InstanceState.STOPPED: "instance_stopped",
    InstanceState.RUNNING: "instance_running",
}
VOLUME_WAITERS = {
    VolumeState.AVAILABLE: "volume_available",
    VolumeState.IN_USE: "volume_in_use",
}


def _tag_specification(resource_type: str, tags: Dict[str, str]) -> List[Dict[str, Any]]:
    # aws: prefixed tags are reserved and rejected on create
    tag_list = [
        {"Key": key, "Value": value}
        for key, value in tags.items()
        if not key.startswith("aws:")
    ]
    return [{"ResourceType": resource_type, "Tags": tag_list}]


class EC2Manager:
    """AWS EC2 manager for instance, volume and snapshot lifecycle calls.

    Waits use the botocore EC2 waiters with ``poll_interval`` as the delay and
    ``max_attempts`` as the attempt limit. A waiter that runs out of attempts
    raises :class:`WaitTimeoutError`; one that hits a failure state raises
    :class:`ResizeError`.
    """

    def __init__(
        self,
        session: boto3.Session,
        region: str = DEFAULT_AWS_REGION,
        poll_interval: int = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        """Initialize EC2Manager."""
        self.session = session
        self.region = region
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.ec2_client = session.client("ec2", region_name=region)
        self.logger = setup_logger(__name__, "ec2_manager.log")

    def _call(self, operation: str, **params) -> Dict[str, Any]:
        """Invoke an EC2 client method, turning botocore errors into AWSOperationError."""
        try:
            return getattr(self.ec2_client, operation)(**params)
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Error calling {operation}: {e}")
            raise AWSOperationError(operation, e) from e

    # Describe

    def describe_instance(self, instance_id: str) -> ServerInfo:
        """Describe a single EC2 instance."""
        response = self._call("describe_instances", InstanceIds=[instance_id])
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                return ServerInfo.from_aws_instance(instance)
        raise ResizeError(f"Instance {instance_id} not found")

    def describe_volume(self, volume_id: str) -> VolumeInfo:
        """Describe a single EBS volume."""
        response = self._call("describe_volumes", VolumeIds=[volume_id])
        volumes = response.get("Volumes", [])
        if not volumes:
            raise ResizeError(f"Volume {volume_id} not found")
        return VolumeInfo.from_aws_volume(volumes[0])

    def describe_snapshot(self, snapshot_id: str) -> SnapshotInfo:
        """Describe a single EBS snapshot."""
        response = self._call("describe_snapshots", SnapshotIds=[snapshot_id])
        snapshots = response.get("Snapshots", [])
        if not snapshots:
            raise ResizeError(f"Snapshot {snapshot_id} not found")
        return SnapshotInfo.from_aws_snapshot(snapshots[0])

    # Instance lifecycle

    def stop_instance(self, instance_id: str) -> None:
        """Stop an EC2 instance."""
        self._call("stop_instances", InstanceIds=[instance_id])
        self.logger.info(f"Stopping instance: {instance_id}")

    def start_instance(self, instance_id: str) -> None:
        """Start an EC2 instance."""
        self._call("start_instances", InstanceIds=[instance_id])
        self.logger.info(f"Starting instance: {instance_id}")

    # Volume lifecycle

    def detach_volume(self, volume_id: str, instance_id: str) -> None:
        self._call("detach_volume", VolumeId=volume_id, InstanceId=instance_id)
        self.logger.info(f"Detaching volume {volume_id} from {instance_id}")

    def attach_volume(self, volume_id: str, instance_id: str, device_name: str) -> None:
        self._call(
            "attach_volume", VolumeId=volume_id, InstanceId=instance_id, Device=device_name
        )
        self.logger.info(f"Attaching volume {volume_id} to {instance_id} as {device_name}")

    def create_snapshot(self, volume: VolumeInfo, instance_id: str) -> str:
        """Snapshot a volume and return the new snapshot id."""
        tags = {
            CREATED_BY_TAG: CREATED_BY_VALUE,
            SOURCE_VOLUME_TAG: volume.volume_id,
            SOURCE_INSTANCE_TAG: instance_id,
        }
        response = self._call(
            "create_snapshot",
            VolumeId=volume.volume_id,
            Description=f"Root volume of {instance_id} before resize to a larger volume",
            TagSpecifications=_tag_specification("snapshot", tags),
        )
        snapshot_id = response.get("SnapshotId")
        if not snapshot_id:
            raise ResizeError(f"create_snapshot returned no snapshot id for {volume.volume_id}")
        self.logger.info(f"Created snapshot {snapshot_id} of volume {volume.volume_id}")
        return snapshot_id

    def create_volume(
        self,
        snapshot_id: str,
        size: int,
        template: VolumeInfo,
        instance_id: str,
    ) -> str:
        """Create a volume from a snapshot, copying type, performance and tags of ``template``."""
        tags = dict(template.tags)
        tags.update(
            {
                CREATED_BY_TAG: CREATED_BY_VALUE,
                SOURCE_VOLUME_TAG: template.volume_id,
                SOURCE_INSTANCE_TAG: instance_id,
            }
        )
        params = {
            "AvailabilityZone": template.availability_zone,
            "SnapshotId": snapshot_id,
            "Size": size,
            "VolumeType": template.volume_type,
            "TagSpecifications": _tag_specification("volume", tags),
        }
        if template.volume_type in IOPS_VOLUME_TYPES and template.iops:
            params["Iops"] = template.iops
        if template.volume_type in THROUGHPUT_VOLUME_TYPES and template.throughput:
            params["Throughput"] = template.throughput

        response = self._call("create_volume", **params)
        volume_id = response.get("VolumeId")
        if not volume_id:
            raise ResizeError(f"create_volume returned no volume id for snapshot {snapshot_id}")
        self.logger.info(
            f"Created {size} GiB {template.volume_type} volume {volume_id} "
            f"from {snapshot_id} in {template.availability_zone}"
        )
        return volume_id

    def delete_volume(self, volume_id: str) -> None:
        self._call("delete_volume", VolumeId=volume_id)
        self.logger.info(f"Deleted volume: {volume_id}")

    def delete_snapshot(self, snapshot_id: str) -> None:
        self._call("delete_snapshot", SnapshotId=snapshot_id)
        self.logger.info(f"Deleted snapshot: {snapshot_id}")

    def set_delete_on_termination(self, instance_id: str, device_name: str, enabled: bool) -> None:
        """Set the DeleteOnTermination flag of the volume attached at ``device_name``."""
        self._call(
            "modify_instance_attribute",
            InstanceId=instance_id,
            BlockDeviceMappings=[
                {"DeviceName": device_name, "Ebs": {"DeleteOnTermination": enabled}}
            ],
        )
        self.logger.info(
            f"Set DeleteOnTermination={enabled} for {device_name} on {instance_id}"
        )

    # Waits

    def _wait(self, waiter_name: str, resource_id: str, target_state: str, **params) -> None:
        """Run a botocore waiter with the configured delay and attempt limit."""
        self.logger.info(f"Waiting for {resource_id} to become {target_state}...")
        waiter = self.ec2_client.get_waiter(waiter_name)
        try:
            waiter.wait(
                **params,
                WaiterConfig={"Delay": self.poll_interval, "MaxAttempts": self.max_attempts},
            )
        except WaiterError as e:
            if "Max attempts exceeded" in str(e.kwargs.get("reason", "")):
                raise WaitTimeoutError(
                    resource_id, target_state, self.max_attempts * self.poll_interval
                ) from e
            self.logger.error(f"Waiter {waiter_name} failed for {resource_id}: {e}")
            raise ResizeError(
                f"{resource_id} did not reach {target_state}: {e.kwargs.get('reason', e)}"
            ) from e
        except (ClientError, BotoCoreError) as e:
            raise AWSOperationError(waiter_name, e) from e
        self.logger.info(f"{resource_id} is {target_state}")

    def wait_for_instance_state(self, instance_id: str, target: InstanceState) -> ServerInfo:
        """Wait until the instance reaches ``target`` and return its fresh description."""
        self._wait(
            INSTANCE_WAITERS[target], instance_id, target.value, InstanceIds=[instance_id]
        )
        return self.describe_instance(instance_id)

    def wait_for_volume_state(self, volume_id: str, target: VolumeState) -> None:
        self._wait(VOLUME_WAITERS[target], volume_id, target.value, VolumeIds=[volume_id])

    def wait_for_snapshot_completed(self, snapshot_id: str) -> SnapshotInfo:
        self._wait(
            "snapshot_completed",
            snapshot_id,
            SnapshotState.COMPLETED.value,
            SnapshotIds=[snapshot_id],
        )
        snapshot = self.describe_snapshot(snapshot_id)
        if not snapshot.is_completed:
            raise ResizeError(f"Snapshot {snapshot_id} is {snapshot.state}, expected completed")
        return snapshot


def create_ec2_manager(
    session: boto3.Session,
    region: str = DEFAULT_AWS_REGION,
    poll_interval: int = DEFAULT_POLL_INTERVAL,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> EC2Manager:
    """Create EC2Manager instance."""
    return EC2Manager(session, region, poll_interval, max_attempts)

"""Shared fixtures: AWS response builders, config and fake remote runners."""

from unittest.mock import MagicMock

import pytest
import yaml

from ebs_resize.core.aws.ec2 import EC2Manager
from ebs_resize.core.models import ServerInfo, VolumeInfo
from ebs_resize.utils.config import ConfigManager
from ebs_resize.utils.exceptions import RemoteCommandError

INSTANCE_ID = "i-0123456789abcdef0"
OLD_VOLUME_ID = "vol-0aaaaaaaaaaaaaaaa"
NEW_VOLUME_ID = "vol-0bbbbbbbbbbbbbbbb"
SNAPSHOT_ID = "snap-0cccccccccccccccc"

MUTATING_CALLS = {
    "stop_instance",
    "detach_volume",
    "create_snapshot",
    "create_volume",
    "attach_volume",
    "set_delete_on_termination",
    "start_instance",
    "delete_volume",
    "delete_snapshot",
}


def aws_instance(
    state="running",
    instance_id=INSTANCE_ID,
    volume_id=OLD_VOLUME_ID,
    public_ip="203.0.113.10",
    key_name="ops-key",
    root_device_type="ebs",
):
    instance = {
        "InstanceId": instance_id,
        "State": {"Name": state},
        "Placement": {"AvailabilityZone": "ap-southeast-2a"},
        "RootDeviceName": "/dev/xvda",
        "RootDeviceType": root_device_type,
        "BlockDeviceMappings": [
            {
                "DeviceName": "/dev/xvda",
                "Ebs": {"VolumeId": volume_id, "Status": "attached", "DeleteOnTermination": True},
            },
            {"DeviceName": "/dev/sdf", "Ebs": {"VolumeId": "vol-0ddddddddddddddd1"}},
        ],
        "Tags": [{"Key": "Name", "Value": "web-01"}],
    }
    if public_ip:
        instance["PublicIpAddress"] = public_ip
    if key_name:
        instance["KeyName"] = key_name
    return instance


def describe_instances_response(*instances):
    return {"Reservations": [{"Instances": list(instances)}]}


def aws_volume(
    volume_id=OLD_VOLUME_ID,
    size=8,
    state="in-use",
    volume_type="gp3",
    iops=3000,
    throughput=125,
    tags=None,
):
    return {
        "VolumeId": volume_id,
        "Size": size,
        "State": state,
        "AvailabilityZone": "ap-southeast-2a",
        "VolumeType": volume_type,
        "Iops": iops,
        "Throughput": throughput,
        "Encrypted": False,
        "Attachments": [{"InstanceId": INSTANCE_ID, "Device": "/dev/xvda"}]
        if state == "in-use"
        else [],
        "Tags": tags if tags is not None else [{"Key": "Name", "Value": "web-01-root"}],
    }

def make_ec2(state="running", size=8, key_name="ops-key", public_ip="203.0.113.10"):
    """EC2Manager double answering for one instance with an 8 GiB gp3 root volume."""
    ec2 = MagicMock(spec=EC2Manager)
    ec2.session = MagicMock()
    ec2.region = "ap-southeast-2"
    ec2.describe_instance.return_value = ServerInfo.from_aws_instance(
        aws_instance(state=state, key_name=key_name)
    )
    ec2.describe_volume.return_value = VolumeInfo.from_aws_volume(aws_volume(size=size))
    ec2.create_snapshot.return_value = SNAPSHOT_ID
    ec2.create_volume.return_value = NEW_VOLUME_ID

    def wait_for_instance_state(instance_id, target):
        return ServerInfo.from_aws_instance(
            aws_instance(state=target.value, public_ip=public_ip, key_name=key_name)
        )

    ec2.wait_for_instance_state.side_effect = wait_for_instance_state
    return ec2


def call_names(ec2):
    return [name for name, _, _ in ec2.method_calls]



class FakeRunner:
    """Remote runner answering from a {command_prefix: output} table."""

    def __init__(self, responses=None, failures=None):
        self.responses = responses or {}
        self.failures = failures or {}
        self.commands = []
        self.closed = False

    def run(self, command):
        self.commands.append(command)
        for prefix, detail in self.failures.items():
            if command.startswith(prefix):
                raise RemoteCommandError(command, detail)
        for prefix, output in self.responses.items():
            if command.startswith(prefix):
                return output
        return ""

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda seconds: None)


@pytest.fixture(autouse=True)
def log_level(monkeypatch, tmp_path):
    # the CLI writes LOG_LEVEL back into the environment
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.setenv("LOG_PATH", str(tmp_path / "logs"))


@pytest.fixture
def settings_dir(tmp_path):
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    settings = {
        "aws": {"region": "ap-southeast-2"},
        "resize": {"poll_interval": 0, "max_attempts": 3},
        "ssh": {"user": "ubuntu", "key_dir": str(tmp_path / "keys"), "connect_retries": 2},
        "logging": {"level": "INFO"},
    }
    (config_dir / "settings.yaml").write_text(yaml.safe_dump(settings))
    return config_dir


@pytest.fixture
def config_manager(settings_dir, monkeypatch):
    for var in ("AWS_REGION", "AWS_PROFILE", "EBS_RESIZE_SSH_USER", "EBS_RESIZE_KEY_DIR"):
        monkeypatch.delenv(var, raising=False)
    return ConfigManager(config_dir=settings_dir)

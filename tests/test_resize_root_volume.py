from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import EndpointConnectionError

from conftest import (
    INSTANCE_ID,
    MUTATING_CALLS,
    NEW_VOLUME_ID,
    OLD_VOLUME_ID,
    SNAPSHOT_ID,
    FakeRunner,
    aws_instance,
    aws_volume,
    call_names,
    describe_instances_response,
    make_ec2,
)
from ebs_resize.core.aws.ec2 import EC2Manager
from ebs_resize.core.models import InstanceState, ServerInfo, VolumeState
from ebs_resize.jobs.resize_root_volume import ResizeRootVolumeJob
from ebs_resize.utils.exceptions import WaitTimeoutError


def click_kwargs(**overrides):
    """Keyword arguments as the command line hands them to the job."""
    kwargs = {
        "instance_id": INSTANCE_ID,
        "size": 20,
        "delete_old_volume": False,
        "delete_snapshot": False,
        "region": None,
        "profile": None,
        "key_file": None,
        "ssh_user": None,
        "remote_method": "ssh",
        "skip_fs_resize": False,
        "dry_run": False,
        "force": True,
        "verbose": False,
    }
    kwargs.update(overrides)
    return kwargs


@pytest.fixture
def runner():
    return FakeRunner(responses={"lsblk": "/ xvda xvda1 ext4\n"})


def test_full_resize_runs_steps_in_order(config_manager, runner):
    ec2 = make_ec2()
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(instance_id=INSTANCE_ID, size=20)

    assert result["status"] == "success"
    assert result["old_volume_id"] == OLD_VOLUME_ID
    assert result["snapshot_id"] == SNAPSHOT_ID
    assert result["new_volume_id"] == NEW_VOLUME_ID
    assert result["public_ip"] == "203.0.113.10"
    assert call_names(ec2) == [
        "describe_instance",
        "describe_volume",
        "stop_instance",
        "wait_for_instance_state",
        "detach_volume",
        "wait_for_volume_state",
        "create_snapshot",
        "wait_for_snapshot_completed",
        "create_volume",
        "wait_for_volume_state",
        "attach_volume",
        "wait_for_volume_state",
        "set_delete_on_termination",
        "start_instance",
        "wait_for_instance_state",
    ]
    ec2.wait_for_instance_state.assert_any_call(INSTANCE_ID, InstanceState.STOPPED)
    ec2.wait_for_volume_state.assert_any_call(OLD_VOLUME_ID, VolumeState.AVAILABLE)
    ec2.wait_for_volume_state.assert_any_call(NEW_VOLUME_ID, VolumeState.IN_USE)
    ec2.create_volume.assert_called_once_with(
        SNAPSHOT_ID, 20, ec2.describe_volume.return_value, INSTANCE_ID
    )
    ec2.attach_volume.assert_called_once_with(NEW_VOLUME_ID, INSTANCE_ID, "/dev/xvda")
    ec2.set_delete_on_termination.assert_called_once_with(INSTANCE_ID, "/dev/xvda", True)
    assert runner.commands[-1] == "sudo -n resize2fs /dev/xvda1"
    assert runner.closed
    assert "grow_filesystem" in result["metrics"].step_durations


def test_cleanup_flags(config_manager, runner):
    ec2 = make_ec2()
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(
        instance_id=INSTANCE_ID, size=20, delete_old_volume=True, delete_snapshot=True
    )

    assert result["status"] == "success"
    ec2.delete_volume.assert_called_once_with(OLD_VOLUME_ID)
    ec2.delete_snapshot.assert_called_once_with(SNAPSHOT_ID)
    assert call_names(ec2)[-2:] == ["delete_volume", "delete_snapshot"]


def test_no_cleanup_by_default(config_manager, runner):
    ec2 = make_ec2()
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    job.execute(instance_id=INSTANCE_ID, size=20)

    ec2.delete_volume.assert_not_called()
    ec2.delete_snapshot.assert_not_called()


def test_size_must_grow(config_manager, runner):
    ec2 = make_ec2(size=20)
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(instance_id=INSTANCE_ID, size=20)

    assert result["status"] == "error"
    assert "larger than the current 20 GiB" in result["message"]
    assert not MUTATING_CALLS & set(call_names(ec2))


def test_terminated_instance_is_rejected(config_manager, runner):
    ec2 = make_ec2(state="terminated")
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(instance_id=INSTANCE_ID, size=20)

    assert result["status"] == "error"
    assert "must be running or stopped" in result["message"]
    assert not MUTATING_CALLS & set(call_names(ec2))


def test_invalid_instance_id_is_rejected(config_manager, runner):
    ec2 = make_ec2()
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(instance_id="web-01", size=20)

    assert result["status"] == "error"
    assert ec2.method_calls == []


def test_stopped_instance_is_not_stopped_again(config_manager, runner):
    ec2 = make_ec2(state="stopped")
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(instance_id=INSTANCE_ID, size=20)

    assert result["status"] == "success"
    ec2.stop_instance.assert_not_called()
    ec2.start_instance.assert_called_once_with(INSTANCE_ID)


def test_failure_mid_way_reports_recovery_ids(config_manager, runner):
    ec2 = make_ec2()
    ec2.wait_for_volume_state.side_effect = [
        None,
        None,
        WaitTimeoutError(NEW_VOLUME_ID, "in-use", 45),
    ]
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(instance_id=INSTANCE_ID, size=20, delete_old_volume=True)

    assert result["status"] == "error"
    assert f"old volume {OLD_VOLUME_ID}" in result["message"]
    assert f"snapshot {SNAPSHOT_ID}" in result["message"]
    assert "attach_volume" not in result["steps_completed"]
    ec2.start_instance.assert_not_called()
    ec2.delete_volume.assert_not_called()
    assert runner.commands == []


def test_dry_run_changes_nothing(config_manager, runner):
    ec2 = make_ec2()
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(
        instance_id=INSTANCE_ID, size=20, dry_run=True, delete_snapshot=True
    )

    assert result["status"] == "success"
    assert result["message"].startswith("DRY RUN")
    assert "delete snapshot" in result["plan"]
    assert "set DeleteOnTermination on /dev/xvda" in result["plan"]
    assert result["metrics"].dry_run_mode
    assert not MUTATING_CALLS & set(call_names(ec2))
    assert runner.commands == []


def test_skip_fs_resize(config_manager, runner):
    ec2 = make_ec2()
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(instance_id=INSTANCE_ID, size=20, skip_fs_resize=True)

    assert result["status"] == "success"
    assert runner.commands == []


def test_missing_key_file_fails_before_changes(config_manager):
    ec2 = make_ec2()
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2)

    result = job.execute(instance_id=INSTANCE_ID, size=20)

    assert result["status"] == "error"
    assert "SSH key file not found" in result["message"]
    assert "ops-key.pem" in result["message"]
    assert not MUTATING_CALLS & set(call_names(ec2))


def test_instance_without_key_pair_needs_key_file(config_manager):
    ec2 = make_ec2(key_name=None)
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2)

    result = job.execute(instance_id=INSTANCE_ID, size=20)

    assert result["status"] == "error"
    assert "--key-file" in result["message"]


def test_ssh_runner_uses_key_pair_and_fresh_public_ip(config_manager, tmp_path):
    key_dir = tmp_path / "keys"
    key_dir.mkdir()
    (key_dir / "ops-key.pem").write_text("key")
    ec2 = make_ec2(public_ip="198.51.100.7")
    fake = FakeRunner(responses={"lsblk": "/ xvda xvda1 xfs"})

    with patch("ebs_resize.jobs.resize_root_volume.SSHRunner", return_value=fake) as ssh_runner:
        result = ResizeRootVolumeJob(config_manager, ec2_manager=ec2).execute(
            instance_id=INSTANCE_ID, size=20
        )

    assert result["status"] == "success"
    kwargs = ssh_runner.call_args.kwargs
    assert kwargs["host"] == "198.51.100.7"
    assert kwargs["key_file"] == str(key_dir / "ops-key.pem")
    assert kwargs["user"] == "ubuntu"
    assert fake.commands[-1] == "sudo -n xfs_growfs -d /"


def test_ssh_without_public_ip_fails_after_restart(config_manager, tmp_path):
    key_file = tmp_path / "explicit.pem"
    key_file.write_text("key")
    ec2 = make_ec2(public_ip=None)

    result = ResizeRootVolumeJob(config_manager, ec2_manager=ec2).execute(
        instance_id=INSTANCE_ID, size=20, key_file=str(key_file)
    )

    assert result["status"] == "error"
    assert "no public IP" in result["message"]
    assert "start_instance" in result["steps_completed"]


def test_ssm_remote_method(config_manager):
    ec2 = make_ec2(key_name=None, public_ip=None)
    fake = FakeRunner(responses={"lsblk": "/ nvme0n1 nvme0n1p1 xfs"})

    with patch("ebs_resize.jobs.resize_root_volume.create_ssm_manager") as create_ssm, patch(
        "ebs_resize.jobs.resize_root_volume.SSMRunner", return_value=fake
    ) as ssm_runner:
        result = ResizeRootVolumeJob(config_manager, ec2_manager=ec2).execute(
            instance_id=INSTANCE_ID, size=20, remote_method="ssm"
        )

    assert result["status"] == "success"
    create_ssm.assert_called_once_with(ec2.session, "ap-southeast-2", 300)
    ssm_runner.assert_called_once_with(create_ssm.return_value, INSTANCE_ID)
    assert fake.commands[1] == "sudo -n growpart /dev/nvme0n1 1"


def test_command_line_arguments_reach_dry_run(config_manager, runner):
    ec2 = make_ec2()
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(**click_kwargs(dry_run=True, delete_old_volume=True))

    assert result["status"] == "success", result["message"]
    assert "from 8 GiB to 20 GiB" in result["message"]
    assert f"delete volume {OLD_VOLUME_ID}" in result["plan"]
    assert not MUTATING_CALLS & set(call_names(ec2))


def test_command_line_arguments_reach_ssh_filesystem_step(config_manager, tmp_path):
    key_file = tmp_path / "explicit.pem"
    key_file.write_text("key")
    ec2 = make_ec2()
    fake = FakeRunner(responses={"lsblk": "/ xvda xvda1 ext4"})

    with patch("ebs_resize.jobs.resize_root_volume.SSHRunner", return_value=fake) as ssh_runner:
        result = ResizeRootVolumeJob(config_manager, ec2_manager=ec2).execute(
            **click_kwargs(key_file=str(key_file), ssh_user="admin")
        )

    assert result["status"] == "success", result["message"]
    assert ssh_runner.call_args.kwargs["key_file"] == str(key_file)
    assert ssh_runner.call_args.kwargs["user"] == "admin"
    assert fake.commands[-1] == "sudo -n resize2fs /dev/xvda1"
    assert fake.closed


def test_command_line_arguments_reach_ssm_filesystem_step(config_manager):
    ec2 = make_ec2()
    fake = FakeRunner(responses={"lsblk": "/ xvda xvda1 ext4"})

    with patch("ebs_resize.jobs.resize_root_volume.create_ssm_manager"), patch(
        "ebs_resize.jobs.resize_root_volume.SSMRunner", return_value=fake
    ):
        result = ResizeRootVolumeJob(config_manager, ec2_manager=ec2).execute(
            **click_kwargs(remote_method="ssm", delete_snapshot=True)
        )

    assert result["status"] == "success", result["message"]
    assert "grow_filesystem" in result["steps_completed"]
    ec2.delete_snapshot.assert_called_once_with(SNAPSHOT_ID)


def test_delete_on_termination_off_is_left_alone(config_manager, runner):
    ec2 = make_ec2()
    instance = aws_instance()
    instance["BlockDeviceMappings"][0]["Ebs"]["DeleteOnTermination"] = False
    ec2.describe_instance.return_value = ServerInfo.from_aws_instance(instance)
    job = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner)

    result = job.execute(instance_id=INSTANCE_ID, size=20)

    assert result["status"] == "success"
    assert result["delete_on_termination"] is False
    ec2.set_delete_on_termination.assert_not_called()


def test_network_error_mid_swap_reports_recovery_ids(config_manager, runner):
    ec2_client = MagicMock()
    ec2_client.describe_instances.return_value = describe_instances_response(aws_instance())
    ec2_client.describe_volumes.return_value = {"Volumes": [aws_volume()]}
    ec2_client.create_snapshot.return_value = {"SnapshotId": SNAPSHOT_ID}
    ec2_client.describe_snapshots.return_value = {
        "Snapshots": [{"SnapshotId": SNAPSHOT_ID, "VolumeSize": 8, "State": "completed"}]
    }
    ec2_client.create_volume.side_effect = EndpointConnectionError(
        endpoint_url="https://ec2.ap-southeast-2.amazonaws.com/"
    )
    session = MagicMock()
    session.client.return_value = ec2_client
    ec2 = EC2Manager(session, "ap-southeast-2", poll_interval=0, max_attempts=3)

    result = ResizeRootVolumeJob(config_manager, ec2_manager=ec2, runner=runner).execute(
        instance_id=INSTANCE_ID, size=20
    )

    assert result["status"] == "error"
    assert "create_volume failed" in result["message"]
    assert f"old volume {OLD_VOLUME_ID}" in result["message"]
    assert f"snapshot {SNAPSHOT_ID}" in result["message"]
    assert result["steps_completed"] == ["stop_instance", "detach_volume", "create_snapshot"]
    ec2_client.start_instances.assert_not_called()

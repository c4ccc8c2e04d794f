"""Job that swaps an instance's root EBS volume for a larger copy and grows its filesystem."""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import BaseJob
from ebs_resize.core.aws.ec2 import EC2Manager, create_ec2_manager
from ebs_resize.core.aws.ssm import create_ssm_manager
from ebs_resize.core.models import InstanceState, ServerInfo, VolumeInfo, VolumeState
from ebs_resize.core.remote import FilesystemResizer, SSHRunner, SSMRunner
from ebs_resize.utils.exceptions import CLIError, ResizeError, ValidationRules

REMOTE_METHODS = ("ssh", "ssm")


@dataclass
class ResizeMetrics:
    """Metrics tracking for the root volume resize operation"""

    step_durations: Dict[str, float] = field(default_factory=dict)
    operation_duration: float = 0.0
    dry_run_mode: bool = False


@dataclass
class ResizeState:
    """Identifiers collected while the resize runs."""

    instance_id: str
    availability_zone: str = ""
    device_name: str = ""
    old_volume_id: str = ""
    old_size: int = 0
    snapshot_id: str = ""
    new_volume_id: str = ""
    public_ip: Optional[str] = None
    key_name: Optional[str] = None
    delete_on_termination: bool = False
    key_file: Optional[str] = None
    steps_completed: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "availability_zone": self.availability_zone,
            "device_name": self.device_name,
            "old_volume_id": self.old_volume_id,
            "old_size": self.old_size,
            "snapshot_id": self.snapshot_id,
            "new_volume_id": self.new_volume_id,
            "public_ip": self.public_ip,
            "key_name": self.key_name,
            "delete_on_termination": self.delete_on_termination,
            "steps_completed": list(self.steps_completed),
        }


class ResizeRootVolumeJob(BaseJob):
    """
    Resize the root EBS volume of an instance Job:

    stop -> detach -> snapshot -> create larger volume -> attach -> start
    -> grow filesystem -> optional cleanup of old volume and snapshot.

    Features:
    - Bounded waits on every state transition
    - Dry-run capabilities for safe operations
    - Filesystem growth over SSH (instance key pair) or SSM
    """

    def __init__(self, config_manager=None, ec2_manager: Optional[EC2Manager] = None, runner=None):
        super().__init__(config_manager=config_manager, job_name="resize_root_volume")
        self.ec2 = ec2_manager
        self.runner = runner
        self.metrics = ResizeMetrics()

    @contextmanager
    def _step(self, name: str, state: ResizeState):
        started = time.time()
        self.log(f"Step: {name}")
        yield
        self.metrics.step_durations[name] = time.time() - started
        state.steps_completed.append(name)

    def execute(self, **kwargs) -> Dict[str, Any]:
        """Resize the root volume of ``instance_id`` to ``size`` GiB."""
        operation_start = time.time()
        instance_id = kwargs["instance_id"]
        size = kwargs["size"]
        dry_run = kwargs.get("dry_run", False)
        self.metrics.dry_run_mode = dry_run
        state = ResizeState(instance_id=instance_id)

        self.log(
            f"Starting root volume resize - Instance: {instance_id}, Size: {size} GiB, "
            f"Delete old volume: {kwargs.get('delete_old_volume', False)}, "
            f"Delete snapshot: {kwargs.get('delete_snapshot', False)}, Dry Run: {dry_run}"
        )

        try:
            if not ValidationRules.validate_instance_id(instance_id):
                raise CLIError(f"Invalid instance id: {instance_id}")

            if self.ec2 is None:
                session = self.create_aws_session(kwargs.get("region"), kwargs.get("profile"))
                self.ec2 = create_ec2_manager(
                    session,
                    session.region_name,
                    self.config_manager.get_poll_interval(),
                    self.config_manager.get_max_attempts(),
                )

            server, old_volume = self._preflight(state, size)
            state.key_file = self._resolve_key_file(server, **kwargs)

            if dry_run:
                return self._dry_run_result(state, operation_start, **kwargs)

            self._swap_root_volume(state, server, old_volume, size)

            if kwargs.get("skip_fs_resize", False):
                self.log("Skipping filesystem resize as requested")
            else:
                with self._step("grow_filesystem", state):
                    self._grow_filesystem(state, **kwargs)

            self._cleanup(state, **kwargs)

        except CLIError as e:
            self.metrics.operation_duration = time.time() - operation_start
            message = str(e)
            if state.steps_completed:
                message = (
                    f"{message}. Recovery: old volume {state.old_volume_id}, "
                    f"snapshot {state.snapshot_id or 'none'}, "
                    f"new volume {state.new_volume_id or 'none'}"
                )
            self.log(
                f"Failed to resize root volume - Duration: "
                f"{self.metrics.operation_duration:.2f}s, Error: {message}",
                "error",
            )
            return {
                "status": "error",
                "message": f"Failed to resize root volume: {message}",
                "error": str(e),
                "correlation_id": self.correlation_id,
                "metrics": self.metrics,
                **state.as_dict(),
            }

        self.metrics.operation_duration = time.time() - operation_start
        self.log(
            f"Resized root volume of {instance_id} from {state.old_size} GiB to {size} GiB "
            f"in {self.metrics.operation_duration:.2f}s"
        )
        return {
            "status": "success",
            "message": f"Resized root volume of {instance_id} to {size} GiB ({state.new_volume_id})",
            "correlation_id": self.correlation_id,
            "metrics": self.metrics,
            **state.as_dict(),
        }

    def _preflight(self, state: ResizeState, size: int):
        """Check the instance and its root volume before anything is changed."""
        server = self.ec2.describe_instance(state.instance_id)
        if not (server.is_running or server.is_stopped):
            raise ResizeError(
                f"Instance {server.instance_id} is {server.state}; it must be running or stopped"
            )
        if not server.is_ebs_backed or not server.root_volume_id:
            raise ResizeError(f"Instance {server.instance_id} has no EBS root volume")

        old_volume = self.ec2.describe_volume(server.root_volume_id)
        if not ValidationRules.validate_volume_size(size, old_volume.size):
            raise CLIError(
                f"New size {size} GiB must be larger than the current {old_volume.size} GiB "
                f"of {old_volume.volume_id}"
            )

        state.availability_zone = server.availability_zone
        state.device_name = self.config_manager.get_device_name() or server.root_device_name
        state.old_volume_id = old_volume.volume_id
        state.old_size = old_volume.size
        state.key_name = server.key_name
        state.delete_on_termination = server.root_delete_on_termination
        if not state.device_name:
            raise ResizeError(f"Instance {server.instance_id} reports no root device name")

        self.log(
            f"Instance {server.instance_id} ({server.name}) is {server.state}; root volume "
            f"{old_volume.volume_id} is {old_volume.size} GiB {old_volume.volume_type} "
            f"at {state.device_name} in {state.availability_zone}"
        )
        return server, old_volume

    def _resolve_key_file(self, server: ServerInfo, **kwargs) -> Optional[str]:
        """Find the private key for SSH; None when SSH is not going to be used."""
        if (
            self.runner is not None
            or kwargs.get("skip_fs_resize", False)
            or kwargs.get("remote_method", "ssh") != "ssh"
        ):
            return None

        key_file = kwargs.get("key_file")
        if not key_file:
            if not server.key_name:
                raise CLIError(
                    f"Instance {server.instance_id} has no key pair; pass --key-file or use --remote-method ssm"
                )
            key_dir = self.config_manager.get_ssh_config()["key_dir"]
            key_file = str(Path(key_dir).expanduser() / f"{server.key_name}.pem")

        key_path = Path(key_file).expanduser()
        if not key_path.is_file():
            raise CLIError(f"SSH key file not found: {key_path}")
        return str(key_path)

    def _dry_run_result(self, state: ResizeState, operation_start: float, **kwargs):
        size = kwargs["size"]
        plan = [
            f"stop instance {state.instance_id}",
            f"detach volume {state.old_volume_id}",
            f"snapshot volume {state.old_volume_id}",
            f"create {size} GiB volume in {state.availability_zone}",
            f"attach new volume as {state.device_name}",
        ]
        if state.delete_on_termination:
            plan.append(f"set DeleteOnTermination on {state.device_name}")
        plan.append(f"start instance {state.instance_id}")
        if not kwargs.get("skip_fs_resize", False):
            plan.append(f"grow root filesystem via {kwargs.get('remote_method', 'ssh')}")
        if kwargs.get("delete_old_volume", False):
            plan.append(f"delete volume {state.old_volume_id}")
        if kwargs.get("delete_snapshot", False):
            plan.append("delete snapshot")

        for line in plan:
            self.log(f"DRY RUN: Would {line}")

        self.metrics.operation_duration = time.time() - operation_start
        return {
            "status": "success",
            "message": f"DRY RUN: Would resize root volume of {state.instance_id} "
            f"from {state.old_size} GiB to {size} GiB",
            "plan": plan,
            "correlation_id": self.correlation_id,
            "metrics": self.metrics,
            **state.as_dict(),
        }

    def _swap_root_volume(
        self, state: ResizeState, server: ServerInfo, old_volume: VolumeInfo, size: int
    ) -> None:
        ec2 = self.ec2

        with self._step("stop_instance", state):
            if server.is_running:
                ec2.stop_instance(state.instance_id)
            ec2.wait_for_instance_state(state.instance_id, InstanceState.STOPPED)

        with self._step("detach_volume", state):
            ec2.detach_volume(state.old_volume_id, state.instance_id)
            ec2.wait_for_volume_state(state.old_volume_id, VolumeState.AVAILABLE)

        with self._step("create_snapshot", state):
            state.snapshot_id = ec2.create_snapshot(old_volume, state.instance_id)
            ec2.wait_for_snapshot_completed(state.snapshot_id)

        with self._step("create_volume", state):
            state.new_volume_id = ec2.create_volume(
                state.snapshot_id, size, old_volume, state.instance_id
            )
            ec2.wait_for_volume_state(state.new_volume_id, VolumeState.AVAILABLE)

        with self._step("attach_volume", state):
            ec2.attach_volume(state.new_volume_id, state.instance_id, state.device_name)
            ec2.wait_for_volume_state(state.new_volume_id, VolumeState.IN_USE)
            # attach_volume leaves DeleteOnTermination off
            if state.delete_on_termination:
                ec2.set_delete_on_termination(state.instance_id, state.device_name, True)

        with self._step("start_instance", state):
            ec2.start_instance(state.instance_id)
            running = ec2.wait_for_instance_state(state.instance_id, InstanceState.RUNNING)
            state.public_ip = running.public_ip

    def _build_runner(self, state: ResizeState, **kwargs):
        if self.runner is not None:
            return self.runner

        if kwargs.get("remote_method", "ssh") == "ssm":
            ssm = create_ssm_manager(
                self.ec2.session, self.ec2.region, self.config_manager.get_ssm_max_wait()
            )
            return SSMRunner(ssm, state.instance_id)

        if not state.public_ip:
            raise ResizeError(
                f"Instance {state.instance_id} has no public IP address; use --remote-method ssm"
            )
        ssh_config = self.config_manager.get_ssh_config()
        return SSHRunner(
            host=state.public_ip,
            key_file=state.key_file,
            user=kwargs.get("ssh_user") or ssh_config["user"],
            port=ssh_config["port"],
            connect_timeout=ssh_config["connect_timeout"],
            connect_retries=ssh_config["connect_retries"],
        )

    def _grow_filesystem(self, state: ResizeState, **kwargs) -> None:
        runner = self._build_runner(state, **kwargs)
        try:
            FilesystemResizer(runner).grow_root()
        finally:
            runner.close()

    def _cleanup(self, state: ResizeState, **kwargs) -> None:
        if kwargs.get("delete_old_volume", False):
            with self._step("delete_old_volume", state):
                self.ec2.delete_volume(state.old_volume_id)
        else:
            self.log(f"Keeping old volume {state.old_volume_id}")

        if kwargs.get("delete_snapshot", False):
            with self._step("delete_snapshot", state):
                self.ec2.delete_snapshot(state.snapshot_id)
        else:
            self.log(f"Keeping snapshot {state.snapshot_id}")

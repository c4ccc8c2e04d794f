"""Remote execution on the resized host and root filesystem growth.

Two runners share the same ``run(command) -> stdout`` interface:

- :class:`SSHRunner` connects with fabric using the instance key pair,
- :class:`SSMRunner` goes through SSM Run Command and needs no open port.

:class:`FilesystemResizer` uses either one to grow the root partition and
the filesystem on it to the new volume size.
"""

import re
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from fabric import Connection
from paramiko.ssh_exception import AuthenticationException, SSHException

from ebs_resize.core.aws.ssm import SSMManager
from ebs_resize.core.constants import (
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
)
from ebs_resize.utils.exceptions import (
    RemoteCommandError,
    ResizeError,
    UnsupportedFilesystemError,
)
from ebs_resize.utils.logger import setup_logger

logger = setup_logger(__name__, "remote.log")

EXT_FILESYSTEMS = ("ext2", "ext3", "ext4")
XFS_FILESYSTEM = "xfs"


class SSHRunner:
    """Run commands over SSH with the instance's key pair."""

    def __init__(
        self,
        host: str,
        key_file: str,
        user: str = DEFAULT_SSH_USER,
        port: int = DEFAULT_SSH_PORT,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        connect_retries: int = DEFAULT_CONNECT_RETRIES,
        retry_interval: int = 10,
    ):
        self.host = host
        self.key_file = key_file
        self.user = user
        self.port = port
        self.connect_timeout = connect_timeout
        self.connect_retries = connect_retries
        self.retry_interval = retry_interval
        self._connection: Optional[Connection] = None

    def connect(self) -> Connection:
        """Open the connection, retrying while sshd on the fresh boot is not up yet."""
        if self._connection is not None:
            return self._connection

        last_error = None
        for attempt in range(1, self.connect_retries + 1):
            connection = Connection(
                host=self.host,
                user=self.user,
                port=self.port,
                connect_timeout=self.connect_timeout,
                connect_kwargs={"key_filename": self.key_file},
            )
            try:
                connection.open()
            except AuthenticationException as e:
                raise ResizeError(
                    f"SSH authentication to {self.user}@{self.host} failed with key {self.key_file}: {e}"
                ) from e
            except (SSHException, OSError) as e:
                last_error = e
                logger.info(
                    f"SSH to {self.host} not ready (attempt {attempt}/{self.connect_retries}): {e}"
                )
                time.sleep(self.retry_interval)
                continue

            logger.info(f"Connected to {self.user}@{self.host}:{self.port}")
            self._connection = connection
            return connection

        raise ResizeError(
            f"Could not connect to {self.host} after {self.connect_retries} attempts: {last_error}"
        )

    def run(self, command: str) -> str:
        connection = self.connect()
        logger.info(f"[{self.host}] $ {command}")
        try:
            result = connection.run(command, hide=True, warn=True)
        except (SSHException, OSError) as e:
            raise ResizeError(f"SSH command on {self.host} failed: {command}: {e}") from e
        if not result.ok:
            raise RemoteCommandError(command, (result.stdout + result.stderr).strip())
        return result.stdout

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class SSMRunner:
    """Run commands through SSM Run Command."""

    def __init__(self, ssm_manager: SSMManager, instance_id: str):
        self.ssm_manager = ssm_manager
        self.instance_id = instance_id

    def run(self, command: str) -> str:
        logger.info(f"[{self.instance_id}] $ {command}")
        return self.ssm_manager.run_shell_command(self.instance_id, [command])

    def close(self) -> None:
        pass


@dataclass
class RootMount:
    """Block device and filesystem backing ``/`` as reported by lsblk.

    ``name`` is the kernel name of the device holding the filesystem and
    ``parent`` the disk it belongs to (empty when the filesystem sits on the
    whole disk). lsblk reports real kernel names, so a root that findmnt or
    /proc/mounts shows as ``/dev/root`` still resolves to e.g. ``nvme0n1p1``.
    """

    name: str
    parent: str
    fstype: str

    @property
    def source(self) -> str:
        return f"/dev/{self.name}"

    def partition(self) -> Optional[Tuple[str, str]]:
        """Return ``(disk, partition_number)`` or None when the filesystem sits on the whole disk."""
        if not self.parent:
            return None
        match = re.match(rf"^{re.escape(self.parent)}p?(\d+)$", self.name)
        if not match:
            # LVM, device-mapper or md device stacked on the disk
            raise UnsupportedFilesystemError(
                f"Root on {self.name} (stacked on {self.parent}) is not a plain partition; "
                f"grow it by hand"
            )
        return f"/dev/{self.parent}", match.group(1)

    def grow_commands(self):
        """Commands that grow the partition (if any) and then the filesystem."""
        if self.fstype not in EXT_FILESYSTEMS and self.fstype != XFS_FILESYSTEM:
            raise UnsupportedFilesystemError(f"Unsupported root filesystem type: {self.fstype}")

        commands = []
        partition = self.partition()
        if partition:
            disk, number = partition
            commands.append(f"sudo -n growpart {disk} {number}")

        if self.fstype == XFS_FILESYSTEM:
            commands.append("sudo -n xfs_growfs -d /")
        else:
            commands.append(f"sudo -n resize2fs {self.source}")
        return commands


def parse_root_mount(output: str) -> RootMount:
    """Find ``/`` in ``lsblk -o MOUNTPOINT,PKNAME,NAME,FSTYPE -rn`` output.

    Raw lsblk output separates columns with single spaces, escapes spaces
    inside values and leaves empty columns empty.
    """
    for line in output.splitlines():
        fields = line.split(" ")
        if len(fields) >= 4 and fields[0] == "/":
            return RootMount(name=fields[2], parent=fields[1], fstype=fields[3])
    raise ResizeError(f"Root filesystem not found in lsblk output: {output!r}")


class FilesystemResizer:
    """Grow the root filesystem to fill its (now larger) block device."""

    LSBLK_COMMAND = "lsblk -o MOUNTPOINT,PKNAME,NAME,FSTYPE -rn"

    def __init__(self, runner):
        self.runner = runner

    def inspect(self) -> RootMount:
        mount = parse_root_mount(self.runner.run(self.LSBLK_COMMAND))
        logger.info(f"Root filesystem: {mount.source} ({mount.fstype})")
        return mount

    def grow_root(self) -> RootMount:
        mount = self.inspect()
        for command in mount.grow_commands():
            try:
                self.runner.run(command)
            except RemoteCommandError as e:
                # growpart exits 1 with NOCHANGE when the partition already fills the disk
                if "growpart" in command and "NOCHANGE" in e.detail:
                    logger.info(f"Partition already fills {mount.source}, nothing to grow")
                    continue
                raise
        logger.info(f"Root filesystem {mount.source} grown")
        return mount

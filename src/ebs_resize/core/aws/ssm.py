"""SSM Manager for running shell commands on the resized instance."""

import time
from typing import Dict, List, Any
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from ebs_resize.core.constants import (
    DEFAULT_AWS_REGION,
    DEFAULT_SSM_MAX_WAIT,
    SSM_POLL_INTERVAL,
    SSM_SHELL_DOCUMENT,
)
from ebs_resize.utils.exceptions import AWSOperationError, RemoteCommandError, WaitTimeoutError
from ebs_resize.utils.logger import setup_logger

TERMINAL_STATUSES = ("Success", "Failed", "Cancelled", "TimedOut")


class SSMManager:
    """Simple AWS SSM Run Command manager."""

    def __init__(
        self,
        session: boto3.Session,
        region: str = DEFAULT_AWS_REGION,
        max_wait: int = DEFAULT_SSM_MAX_WAIT,
    ):
        """Initialize SSMManager."""
        self.session = session
        self.region = region
        self.max_wait = max_wait
        self.ssm_client = session.client("ssm", region_name=region)
        self.logger = setup_logger(__name__, "ssm_manager.log")

    def send_shell_command(self, instance_id: str, commands: List[str]) -> str:
        """Send an AWS-RunShellScript command and return its command id.

        Right after a restart the SSM agent has not registered yet and
        send_command answers InvalidInstanceId; that error is retried every
        SSM_POLL_INTERVAL seconds for up to ``max_wait`` seconds.
        """
        wait_time = 0
        while True:
            try:
                response = self.ssm_client.send_command(
                    InstanceIds=[instance_id],
                    DocumentName=SSM_SHELL_DOCUMENT,
                    Parameters={"commands": commands},
                    Comment="Grow root filesystem after volume resize",
                )
                return response["Command"]["CommandId"]
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code")
                if code != "InvalidInstanceId" or wait_time >= self.max_wait:
                    self.logger.error(f"Error sending SSM command to {instance_id}: {e}")
                    raise AWSOperationError("send_command", e) from e
                self.logger.info(
                    f"SSM agent on {instance_id} is not online yet, "
                    f"retrying in {SSM_POLL_INTERVAL}s"
                )
            except BotoCoreError as e:
                self.logger.error(f"Error sending SSM command to {instance_id}: {e}")
                raise AWSOperationError("send_command", e) from e

            time.sleep(SSM_POLL_INTERVAL)
            wait_time += SSM_POLL_INTERVAL

    def run_shell_command(self, instance_id: str, commands: List[str]) -> str:
        """Run shell commands on an instance and return their standard output."""
        command_id = self.send_shell_command(instance_id, commands)
        self.logger.info(f"SSM command sent to {instance_id}. Command ID: {command_id}")

        result = self.wait_for_command_completion(command_id, instance_id)
        if result["Status"] != "Success":
            output = (
                result.get("StandardOutputContent", "") + result.get("StandardErrorContent", "")
            ).strip()
            raise RemoteCommandError("; ".join(commands), output or result["Status"])
        return result.get("StandardOutputContent", "")

    def wait_for_command_completion(self, command_id: str, instance_id: str) -> Dict[str, Any]:
        """Wait for SSM command completion and return the invocation."""
        self.logger.info(f"Waiting for command {command_id} to complete...")
        wait_time = 0

        while wait_time < self.max_wait:
            try:
                invocation = self.ssm_client.get_command_invocation(
                    CommandId=command_id, InstanceId=instance_id
                )
            except ClientError as e:
                # The invocation is not visible for a moment after send_command
                if e.response.get("Error", {}).get("Code") != "InvocationDoesNotExist":
                    raise AWSOperationError("get_command_invocation", e) from e
                invocation = {"Status": "Pending"}
            except BotoCoreError as e:
                raise AWSOperationError("get_command_invocation", e) from e

            status = invocation["Status"]
            if status in TERMINAL_STATUSES:
                self.logger.info(f"SSM command completed with status: {status}")
                if status != "Success":
                    self.logger.error(
                        f"Command failed with error:\n{invocation.get('StandardErrorContent', '')}"
                    )
                return invocation

            time.sleep(SSM_POLL_INTERVAL)
            wait_time += SSM_POLL_INTERVAL

        raise WaitTimeoutError(command_id, "Success", wait_time)


def create_ssm_manager(
    session: boto3.Session,
    region: str = DEFAULT_AWS_REGION,
    max_wait: int = DEFAULT_SSM_MAX_WAIT,
) -> SSMManager:
    """Create SSMManager instance."""
    return SSMManager(session, region, max_wait)

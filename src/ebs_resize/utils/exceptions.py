"""Exception classes and validation utilities for root volume resizing.

This module contains the exception hierarchy raised across the toolkit
and the validation rules applied to command line input.
"""

import re


class CLIError(Exception):
    """Custom exception for CLI-related errors."""

    pass


class ResizeError(CLIError):
    """The resize workflow cannot continue."""

    pass


class AWSOperationError(ResizeError):
    """An EC2 or SSM API call failed."""

    def __init__(self, operation: str, error: Exception):
        self.operation = operation
        self.error = error
        super().__init__(f"{operation} failed: {error}")


class WaitTimeoutError(ResizeError):
    """A resource did not reach its target state in time."""

    def __init__(self, resource_id: str, target_state: str, waited: float):
        self.resource_id = resource_id
        self.target_state = target_state
        self.waited = waited
        super().__init__(
            f"Timed out after {waited:.0f}s waiting for {resource_id} to become {target_state}"
        )


class RemoteCommandError(ResizeError):
    """A command run on the instance exited unsuccessfully."""

    def __init__(self, command: str, detail: str = ""):
        self.command = command
        self.detail = detail
        message = f"Remote command failed: {command}"
        if detail:
            message = f"{message} ({detail.strip()})"
        super().__init__(message)


class UnsupportedFilesystemError(ResizeError):
    """The root filesystem type cannot be grown online."""

    pass


class ValidationRules:
    """Validation utilities for command line input."""

    @staticmethod
    def validate_instance_id(instance_id: str) -> bool:
        """Validate EC2 instance ID format (i- followed by 8 or 17 hex chars)."""
        return bool(re.match(r"^i-([0-9a-f]{8}|[0-9a-f]{17})$", instance_id or ""))

    @staticmethod
    def validate_volume_size(size: int, current_size: int = 0) -> bool:
        """New size must be positive, within EBS limits and larger than the current one."""
        return 0 < size <= 65536 and size > current_size

from .config import ConfigManager
from .session import SessionManager
from .logger import setup_logger
from .exceptions import (
    AWSOperationError,
    CLIError,
    RemoteCommandError,
    ResizeError,
    UnsupportedFilesystemError,
    ValidationRules,
    WaitTimeoutError,
)

__all__ = [
    "ConfigManager",
    "SessionManager",
    "setup_logger",
    "AWSOperationError",
    "CLIError",
    "RemoteCommandError",
    "ResizeError",
    "UnsupportedFilesystemError",
    "ValidationRules",
    "WaitTimeoutError",
]

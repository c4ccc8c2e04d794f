#!/usr/bin/env python3
"""
utils/config.py

Simple configuration management utilities.
Provides centralized loading of configs/settings.yaml.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from ebs_resize.core.constants import (
    DEFAULT_AWS_REGION,
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_KEY_DIR,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
    DEFAULT_SSM_MAX_WAIT,
)
from ebs_resize.utils.logger import setup_logger

logger = setup_logger(__name__, "config.log")


class ConfigManager:
    """
    Simple configuration manager.

    Features:
    - YAML configuration loading
    - Environment variable override support
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize ConfigManager.

        Args:
            config_dir: Custom config directory path (defaults to EBS_RESIZE_CONFIG_DIR,
                then PROJECT_ROOT/configs)
        """
        self.project_root = Path(__file__).parent.parent.parent.parent
        env_dir = os.getenv("EBS_RESIZE_CONFIG_DIR")
        self.config_dir = Path(config_dir or env_dir or (self.project_root / "configs"))

        # Try both .yml and .yaml extensions
        yml_file = self.config_dir / "settings.yml"
        yaml_file = self.config_dir / "settings.yaml"

        if yml_file.exists():
            self.settings_file = yml_file
        else:
            self.settings_file = yaml_file

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """
        Load a YAML file safely.
        """
        if not file_path.exists():
            logger.debug(f"Config file not found: {file_path}, using defaults")
            return {}

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
                return content or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading {file_path}: {e}")
            return {}

    def load_settings(self) -> Dict[str, Any]:
        """
        Load application settings.
        """
        return self._load_yaml_file(self.settings_file)

    def get_value(
        self, key_path: str, default: Any = None, env_var: Optional[str] = None
    ) -> Any:
        """
        Get configuration value with dot notation support and environment variable override.
        """
        if env_var and env_var in os.environ:
            return os.environ[env_var]

        current = self.config
        try:
            for key in key_path.split("."):
                current = current[key]
        except (KeyError, TypeError):
            return default
        return default if current is None else current

    def get_aws_region(self) -> str:
        """Get AWS region with environment variable override support."""
        return self.get_value("aws.region", DEFAULT_AWS_REGION, env_var="AWS_REGION")

    def get_aws_profile(self) -> Optional[str]:
        """Get the named AWS profile, if any."""
        return self.get_value("aws.profile", None, env_var="AWS_PROFILE")

    def get_poll_interval(self) -> int:
        return int(self.get_value("resize.poll_interval", DEFAULT_POLL_INTERVAL))

    def get_max_attempts(self) -> int:
        return int(self.get_value("resize.max_attempts", DEFAULT_MAX_ATTEMPTS))

    def get_device_name(self) -> Optional[str]:
        """Root device name override; None means use the instance's RootDeviceName."""
        return self.get_value("resize.device_name", None)

    def get_ssh_config(self) -> Dict[str, Any]:
        """Get SSH settings merged over defaults."""
        return {
            "user": self.get_value("ssh.user", DEFAULT_SSH_USER, env_var="EBS_RESIZE_SSH_USER"),
            "key_dir": self.get_value("ssh.key_dir", DEFAULT_KEY_DIR, env_var="EBS_RESIZE_KEY_DIR"),
            "port": int(self.get_value("ssh.port", DEFAULT_SSH_PORT)),
            "connect_timeout": int(self.get_value("ssh.connect_timeout", DEFAULT_CONNECT_TIMEOUT)),
            "connect_retries": int(self.get_value("ssh.connect_retries", DEFAULT_CONNECT_RETRIES)),
        }

    def get_ssm_max_wait(self) -> int:
        return int(self.get_value("ssm.max_wait", DEFAULT_SSM_MAX_WAIT))

    def get_logging_level(self) -> str:
        """Get logging level."""
        return self.get_value("logging.level", "INFO", env_var="LOG_LEVEL")

    @property
    def config(self) -> Dict[str, Any]:
        """Get the full configuration as a cached property."""
        if not hasattr(self, "_cached_config"):
            self._cached_config = self.load_settings()
        return self._cached_config

    def reload_config(self) -> None:
        """Force reload of configuration from file."""
        if hasattr(self, "_cached_config"):
            delattr(self, "_cached_config")

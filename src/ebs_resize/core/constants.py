#!/usr/bin/env python3
"""Core constants for root volume resize operations."""

# AWS Service Constants
DEFAULT_AWS_REGION = "ap-southeast-2"

# Volume types that take explicit IOPS / throughput settings
IOPS_VOLUME_TYPES = ("gp3", "io1", "io2")
THROUGHPUT_VOLUME_TYPES = ("gp3",)

# Polling Constants
DEFAULT_POLL_INTERVAL = 15  # seconds
DEFAULT_MAX_ATTEMPTS = 120  # 30 minutes at the default interval
DEFAULT_SSM_MAX_WAIT = 300
SSM_POLL_INTERVAL = 5

# Remote Shell Constants
DEFAULT_SSH_USER = "ec2-user"
DEFAULT_SSH_PORT = 22
DEFAULT_KEY_DIR = "~/.ssh"
DEFAULT_CONNECT_TIMEOUT = 30
DEFAULT_CONNECT_RETRIES = 10
SSM_SHELL_DOCUMENT = "AWS-RunShellScript"

# Tagging
CREATED_BY_TAG = "created_by"
CREATED_BY_VALUE = "ebs-root-resize"
SOURCE_VOLUME_TAG = "source_volume"
SOURCE_INSTANCE_TAG = "source_instance"

# File and Directory Constants
LOG_DIR = "logs"
LOG_ROTATION_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5

"""AWS core modules."""

from .ec2 import EC2Manager, create_ec2_manager
from .ssm import SSMManager, create_ssm_manager

__all__ = [
    "EC2Manager",
    "create_ec2_manager",
    "SSMManager",
    "create_ssm_manager",
]

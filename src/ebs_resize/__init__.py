"""Grow the root EBS volume of an EC2 instance by swapping in a larger copy."""

__version__ = "1.0.0"

"""Root volume resize jobs package."""

from .base import BaseJob
from .resize_root_volume import ResizeMetrics, ResizeRootVolumeJob, ResizeState

__all__ = [
    "BaseJob",
    "ResizeMetrics",
    "ResizeRootVolumeJob",
    "ResizeState",
]

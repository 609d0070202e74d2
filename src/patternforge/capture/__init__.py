"""PatternForge Capture -- 采集端事件缓冲与上报客户端"""

from .buffer import EventBuffer
from .client import IngestClient, IngestResult
from .config import CaptureConfig, load_capture_config
from .exceptions import CaptureError, IngestRejectedError, IngestUnreachableError

__all__ = [
    "EventBuffer",
    "IngestClient",
    "IngestResult",
    "CaptureConfig",
    "load_capture_config",
    "CaptureError",
    "IngestRejectedError",
    "IngestUnreachableError",
]

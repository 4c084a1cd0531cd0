"""
Shared data structures available to the processing core, the sources and
the sinks.
"""

from .history_buffer import ReadingHistory
from .models import DetectionSnapshot, DeviceInfo, EndOfStream, RawSample, SourceConfig
from .types import DetectionLevel, VerticalDirection

__all__ = [
    "DetectionLevel",
    "DetectionSnapshot",
    "DeviceInfo",
    "EndOfStream",
    "RawSample",
    "ReadingHistory",
    "SourceConfig",
    "VerticalDirection",
]

"""Signal processing core."""

from .calibration import BaselineCalibrator
from .conditioning import ExponentialSmoother
from .feedback import DisplaySink, FeedbackCommand, FeedbackPlanner, FeedbackSink
from .processor import CHANNELS, ProcessorState, SignalProcessor
from .session import ScanSession, ScanStatus
from .settings import FeedbackSettings, ProcessorSettings, SessionSettings, SettingsStore
from shared.models import DetectionSnapshot, EndOfStream, RawSample
from shared.types import DetectionLevel, VerticalDirection

__all__ = [
    "BaselineCalibrator",
    "CHANNELS",
    "DetectionLevel",
    "DetectionSnapshot",
    "DisplaySink",
    "EndOfStream",
    "ExponentialSmoother",
    "FeedbackCommand",
    "FeedbackPlanner",
    "FeedbackSettings",
    "FeedbackSink",
    "ProcessorSettings",
    "ProcessorState",
    "RawSample",
    "ScanSession",
    "ScanStatus",
    "SessionSettings",
    "SettingsStore",
    "SignalProcessor",
    "VerticalDirection",
]

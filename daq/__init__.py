from .base_source import BaseSensorSource, SensorUnavailableError
from .replay_source import ReplaySource
from .simulated_source import Anomaly, SimulatedMagnetometerSource

__all__ = [
    "Anomaly",
    "BaseSensorSource",
    "ReplaySource",
    "SensorUnavailableError",
    "SimulatedMagnetometerSource",
]

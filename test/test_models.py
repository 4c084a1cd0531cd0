import math
import pickle

import numpy as np
import pytest

from core import DetectionSnapshot, EndOfStream, RawSample
from shared.models import SourceConfig
from shared.types import DetectionLevel, VerticalDirection


def test_raw_sample_magnitude_is_derived():
    sample = RawSample(3.0, 4.0, 12.0, 0.5)
    assert sample.magnitude == 13.0
    np.testing.assert_array_equal(sample.channels(), [13.0, 3.0, 4.0, 12.0])
    assert sample.channels().dtype == np.float64


def test_raw_sample_is_frozen():
    sample = RawSample(1.0, 2.0, 3.0, 0.0)
    with pytest.raises(AttributeError):
        sample.x = 5.0  # type: ignore[misc]


def test_raw_sample_from_vector():
    sample = RawSample.from_vector(np.array([1.0, -2.0, 2.0]), timestamp=4.0)
    assert (sample.x, sample.y, sample.z, sample.timestamp) == (1.0, -2.0, 2.0, 4.0)
    assert sample.magnitude == 3.0
    with pytest.raises(ValueError):
        RawSample.from_vector([1.0, 2.0])


def test_raw_sample_default_timestamp_is_monotonic():
    first = RawSample(0.0, 0.0, 1.0)
    second = RawSample(0.0, 0.0, 1.0)
    assert second.timestamp >= first.timestamp


def test_raw_sample_finiteness():
    assert RawSample(1.0, 2.0, 3.0, 0.0).is_finite
    assert not RawSample(math.nan, 2.0, 3.0, 0.0).is_finite
    assert not RawSample(1.0, math.inf, 3.0, 0.0).is_finite


def test_snapshot_as_dict_uses_wire_names():
    snapshot = DetectionSnapshot(
        delta=200.0,
        normalized_strength=2.0 / 3.0,
        detection_level=DetectionLevel.VERY_STRONG,
        detection_angle=0.5,
        detection_distance=0.85,
        vertical_delta=-12.0,
        vertical_direction=VerticalDirection.ABOVE,
        is_calibrated=True,
        is_detecting=True,
        baseline=50.0,
    )
    data = snapshot.as_dict()
    assert data["detection_level"] == "veryStrong"
    assert data["vertical_direction"] == "above"
    assert data["baseline"] == 50.0
    assert data["timestamp"] == 0.0


def test_source_config_validates_rate():
    assert SourceConfig(sample_rate_hz=60.0).units == "uT"
    with pytest.raises(ValueError):
        SourceConfig(sample_rate_hz=0.0)


def test_end_of_stream_survives_pickle():
    assert pickle.loads(pickle.dumps(EndOfStream)) is EndOfStream
    assert repr(EndOfStream) == "EndOfStream"

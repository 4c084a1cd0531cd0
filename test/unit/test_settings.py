from __future__ import annotations

import pytest

from core.settings import FeedbackSettings, ProcessorSettings, SessionSettings, SettingsStore


class TestProcessorSettings:
    def test_defaults(self):
        settings = ProcessorSettings()
        settings.validate()
        assert settings.filter_alpha == 0.15
        assert settings.calibration_count == 30
        assert (
            settings.detection_threshold,
            settings.moderate_threshold,
            settings.strong_threshold,
            settings.very_strong_threshold,
        ) == (15.0, 30.0, 50.0, 120.0)
        assert settings.max_delta == 300.0
        assert settings.to_dict()["max_distance"] == 0.85

    @pytest.mark.parametrize(
        "overrides",
        [
            {"filter_alpha": 0.0},
            {"filter_alpha": 1.2},
            {"calibration_count": 0},
            {"calibration_count": 2.5},
            {"detection_threshold": -1.0},
            {"moderate_threshold": 15.0},
            {"very_strong_threshold": 40.0},
            {"max_delta": 0.0},
            {"distance_scale": -1.0},
            {"max_distance": 1.5},
            {"vertical_dead_zone": -0.1},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            ProcessorSettings(**overrides).validate()


def test_session_settings_validate():
    SessionSettings().validate()
    with pytest.raises(ValueError):
        SessionSettings(history_size=0).validate()
    with pytest.raises(ValueError):
        SessionSettings(poll_timeout=0.0).validate()


class TestSettingsStore:
    def test_update_notifies_subscribers(self):
        store = SettingsStore(ProcessorSettings())
        seen = []
        store.subscribe(seen.append)
        store.update(detection_threshold=10.0)

        assert len(seen) == 2
        assert seen[0].detection_threshold == 15.0
        assert seen[1].detection_threshold == 10.0
        assert store.get().detection_threshold == 10.0

    def test_subscribe_without_replay(self):
        store = SettingsStore(FeedbackSettings())
        seen = []
        store.subscribe(seen.append, replay=False)
        assert seen == []

    def test_unsubscribe(self):
        store = SettingsStore(SessionSettings())
        seen = []
        unsubscribe = store.subscribe(seen.append, replay=False)
        unsubscribe()
        store.update(history_size=10)
        assert seen == []

    def test_invalid_update_keeps_previous(self):
        store = SettingsStore(ProcessorSettings())
        with pytest.raises(ValueError):
            store.update(filter_alpha=2.0)
        assert store.get().filter_alpha == 0.15

    def test_failing_subscriber_does_not_block_others(self, caplog):
        store = SettingsStore(ProcessorSettings())
        seen = []

        def broken(_settings):
            raise RuntimeError("boom")

        store.subscribe(broken, replay=False)
        store.subscribe(seen.append, replay=False)
        with caplog.at_level("WARNING"):
            store.update(max_delta=250.0)

        assert [s.max_delta for s in seen] == [250.0]
        assert "subscriber callback failed" in caplog.text

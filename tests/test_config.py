"""Tests for configuration loading."""

from live_trains.data.config import LiveTrainsConfig


def test_register_arguments_default_order():
    config = LiveTrainsConfig()
    assert config.register_arguments() == [
        "PL", 6.7, 48.35, 10.5, 55.53, 28.3, 0, True, "ATM", "",
    ]


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("LIVE_TRAINS_GPS_FILTER", "true")
    monkeypatch.setenv("LIVE_TRAINS_RECEIVE_TIMEOUT", "15")
    monkeypatch.setenv("LIVE_TRAINS_COOKIE", "token=abc")

    config = LiveTrainsConfig()

    assert config.gps_filter_enabled is True
    assert config.receive_timeout_seconds == 15
    assert config.antiforgery_cookie == "token=abc"


def test_explicit_field_names_override_defaults():
    config = LiveTrainsConfig(zoom=8.0, transport_filter="A")
    arguments = config.register_arguments()
    assert arguments[1] == 8.0
    assert arguments[8] == "A"

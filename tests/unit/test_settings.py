"""
Configuration Tests
===================

Tests for settings models, config file loading and schema export.
"""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from feedhook.config.settings import (
    FeedHookSettings,
    FeedSettings,
    HealthCheckSettings,
    ImageMode,
    export_config_schema,
    load_settings,
    read_config_file,
)
from feedhook.utils.exceptions import ConfigurationError, ErrorCode


@pytest.fixture
def isolated_cwd(tmp_path, monkeypatch):
    """Run from an empty directory so no config.json or .env is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_config(directory, data, name="config.json"):
    path = directory / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestFeedSettings:
    """Feed descriptor parsing."""

    def test_bare_url_defaults_to_no_image(self, settings_factory):
        settings = settings_factory(feeds=["https://example.com/rss"])

        assert settings.feeds[0].url == "https://example.com/rss"
        assert settings.feeds[0].image_mode is ImageMode.NONE

    def test_camel_case_image_mode(self, settings_factory):
        settings = settings_factory(feeds=[{"url": "https://example.com/rss", "imageMode": "html"}])

        assert settings.feeds[0].image_mode is ImageMode.HTML

    def test_mixed_feed_list(self, settings_factory):
        settings = settings_factory(feeds=[
            "https://a.example.com/rss",
            {"url": "https://b.example.com/atom", "image_mode": "html"},
        ])

        assert [feed.image_mode for feed in settings.feeds] == [ImageMode.NONE, ImageMode.HTML]

    def test_unknown_image_mode_rejected(self):
        with pytest.raises(PydanticValidationError):
            FeedSettings(url="https://example.com/rss", image_mode="thumbnail")

    def test_non_http_feed_rejected(self):
        with pytest.raises(PydanticValidationError):
            FeedSettings(url="ftp://example.com/rss")

    def test_feed_settings_are_immutable(self):
        feed = FeedSettings(url="https://example.com/rss")
        with pytest.raises(PydanticValidationError):
            feed.url = "https://other.example.com/rss"


class TestHealthCheckSettings:

    def test_method_is_upper_cased(self):
        hc = HealthCheckSettings(endpoint="https://hc.example.com/ping", interval=30, method="post")
        assert hc.method == "POST"

    def test_interval_must_be_at_least_one_second(self):
        with pytest.raises(PydanticValidationError):
            HealthCheckSettings(endpoint="https://hc.example.com/ping", interval=0.5, method="GET")


class TestFeedHookSettings:

    def test_defaults(self, test_settings):
        assert test_settings.fetch.max_attempts == 3
        assert test_settings.fetch.min_delay == 1.0
        assert test_settings.fetch.max_delay == 10.0
        assert test_settings.health.max_attempts == 2
        assert test_settings.health.max_delay == 2.5
        assert test_settings.scheduler.max_interval_minutes == 60
        assert test_settings.delivery.dry_run is False
        assert test_settings.health_check is None

    def test_empty_feed_list_rejected(self, settings_factory):
        with pytest.raises(PydanticValidationError):
            settings_factory(feeds=[])

    def test_empty_webhook_list_rejected(self, settings_factory):
        with pytest.raises(PydanticValidationError):
            settings_factory(webhooks=[])

    def test_invalid_webhook_rejected(self, settings_factory):
        with pytest.raises(PydanticValidationError):
            settings_factory(webhooks=["not a url"])

    def test_duplicate_feeds_fail_validation(self, settings_factory):
        settings = settings_factory(feeds=["https://example.com/rss", "https://example.com/rss"])

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_configuration()

        assert "Duplicate feed URLs" in str(exc_info.value)

    def test_debug_forces_debug_level(self, settings_factory):
        assert settings_factory(debug=True).get_effective_log_level() == "DEBUG"
        assert settings_factory().get_effective_log_level() == "INFO"


class TestConfigFile:

    def test_read_config_file_normalises_keys(self, tmp_path):
        path = write_config(tmp_path, {
            "$schema": "./config.schema.json",
            "feeds": ["https://example.com/rss"],
            "webhooks": ["https://hooks.example.com/a"],
            "healthCheck": {"endpoint": "https://hc.example.com", "interval": 60, "method": "GET"},
        })

        values = read_config_file(path)

        assert "$schema" not in values
        assert "healthCheck" not in values
        assert values["health_check"]["interval"] == 60

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            read_config_file(str(tmp_path / "nope.json"))

        assert exc_info.value.error_code == ErrorCode.CONFIG_MISSING

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            read_config_file(str(path))

        assert exc_info.value.error_code == ErrorCode.CONFIG_PARSE_ERROR

    def test_load_settings_from_default_config_file(self, isolated_cwd):
        write_config(isolated_cwd, {
            "feeds": ["https://example.com/rss", {"url": "https://example.org/atom", "imageMode": "html"}],
            "webhooks": ["https://hooks.example.com/a"],
            "healthCheck": {"endpoint": "https://hc.example.com", "interval": 60, "method": "head"},
        })

        settings = load_settings()

        assert len(settings.feeds) == 2
        assert settings.feeds[1].image_mode is ImageMode.HTML
        assert settings.health_check.method == "HEAD"

    def test_empty_feeds_in_file_is_configuration_error(self, isolated_cwd):
        path = write_config(isolated_cwd, {"feeds": [], "webhooks": ["https://hooks.example.com/a"]})

        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_empty_webhooks_in_file_is_configuration_error(self, isolated_cwd):
        path = write_config(isolated_cwd, {"feeds": ["https://example.com/rss"], "webhooks": []})

        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_environment_only(self, isolated_cwd, monkeypatch):
        monkeypatch.setenv("FEEDHOOK_FEEDS", '["https://env.example.com/rss"]')
        monkeypatch.setenv("FEEDHOOK_WEBHOOKS", '["https://hooks.example.com/env"]')
        monkeypatch.setenv("FEEDHOOK_FETCH__MAX_ATTEMPTS", "5")

        settings = load_settings()

        assert settings.feeds[0].url == "https://env.example.com/rss"
        assert settings.fetch.max_attempts == 5

    def test_config_file_overrides_environment(self, isolated_cwd, monkeypatch):
        monkeypatch.setenv("FEEDHOOK_WEBHOOKS", '["https://hooks.example.com/env"]')
        path = write_config(isolated_cwd, {
            "feeds": ["https://example.com/rss"],
            "webhooks": ["https://hooks.example.com/file"],
        }, name="custom.json")

        settings = load_settings(path)

        assert settings.webhooks == ["https://hooks.example.com/file"]

    def test_config_file_from_environment_variable(self, isolated_cwd, monkeypatch):
        path = write_config(isolated_cwd, {
            "feeds": ["https://example.com/rss"],
            "webhooks": ["https://hooks.example.com/a"],
        }, name="elsewhere.json")
        monkeypatch.setenv("FEEDHOOK_CONFIG_FILE", path)

        assert load_settings().webhooks == ["https://hooks.example.com/a"]

    def test_overrides_win(self, isolated_cwd):
        path = write_config(isolated_cwd, {
            "feeds": ["https://example.com/rss"],
            "webhooks": ["https://hooks.example.com/a"],
        })

        assert load_settings(path, debug=True).debug is True


def test_export_config_schema(tmp_path):
    path = export_config_schema(str(tmp_path / "config.schema.json"))

    schema = json.loads(path.read_text(encoding="utf-8"))
    assert "feeds" in schema["properties"]
    assert "webhooks" in schema["properties"]
    assert "$schema" in schema["properties"]
    assert set(schema["required"]) >= {"feeds", "webhooks"}


def test_settings_model_requires_feeds_and_webhooks():
    with pytest.raises(PydanticValidationError):
        FeedHookSettings(_env_file=None)


def test_export_config_schema_uses_config_file_keys(tmp_path):
    path = export_config_schema(str(tmp_path / "config.schema.json"))

    schema = json.loads(path.read_text(encoding="utf-8"))
    assert "healthCheck" in schema["properties"]
    assert "health_check" not in schema["properties"]

    feed_def = schema["properties"]["feeds"]["items"]["$ref"].split("/")[-1]
    feed_properties = schema["$defs"][feed_def]["properties"]
    assert "imageMode" in feed_properties
    assert "image_mode" not in feed_properties

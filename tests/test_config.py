"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from notion_calendar.config import (
    DEFAULT_COUNTER_NAME,
    CalendarDatabases,
    LoggingConfig,
    TicketDatabases,
    counter_name,
    cron_secret,
    notion_token,
    optional_notion_token,
)
from notion_calendar.errors import ConfigurationError

pytestmark = pytest.mark.unit


class TestCalendarDatabases:
    def test_reads_all_four_ids(self, monkeypatch):
        monkeypatch.setenv("NOTION_PROJECTS_DB_ID", "proj")
        monkeypatch.setenv("NOTION_ISSUES_DB_ID", "iss")
        monkeypatch.setenv("NOTION_SPRINTS_DB_ID", "spr")
        monkeypatch.setenv("NOTION_RELEASES_DB_ID", "rel")

        databases = CalendarDatabases.from_env()

        assert databases == CalendarDatabases("proj", "iss", "spr", "rel")

    def test_missing_id_names_the_variable(self, monkeypatch):
        monkeypatch.setenv("NOTION_PROJECTS_DB_ID", "proj")
        monkeypatch.setenv("NOTION_ISSUES_DB_ID", "iss")
        monkeypatch.setenv("NOTION_SPRINTS_DB_ID", "spr")

        with pytest.raises(ConfigurationError, match="NOTION_RELEASES_DB_ID"):
            CalendarDatabases.from_env()

    def test_blank_value_counts_as_missing(self, monkeypatch):
        monkeypatch.setenv("NOTION_PROJECTS_DB_ID", "   ")

        with pytest.raises(ConfigurationError, match="NOTION_PROJECTS_DB_ID"):
            CalendarDatabases.from_env()


class TestTicketDatabases:
    def test_sync_targets_deduplicate_in_order(self):
        databases = TicketDatabases(issues_db_id="a", stories_db_id="b", epics_db_id="a")
        assert databases.sync_targets() == ["a", "b"]

    def test_sync_targets_skip_unset(self):
        databases = TicketDatabases(issues_db_id="a", epics_db_id="c")
        assert databases.sync_targets() == ["a", "c"]

    def test_sync_targets_require_at_least_one(self):
        with pytest.raises(ConfigurationError, match="NOTION_ISSUES_DB_ID"):
            TicketDatabases().sync_targets()

    def test_for_type_prefers_typed_database(self):
        databases = TicketDatabases(issues_db_id="iss", stories_db_id="sto", epics_db_id="epi")
        assert databases.for_type("Epic") == "epi"
        assert databases.for_type("Story") == "sto"
        assert databases.for_type("Issue") == "iss"

    def test_for_type_falls_back_to_issues(self):
        databases = TicketDatabases(issues_db_id="iss")
        assert databases.for_type("Epic") == "iss"
        assert databases.for_type("Story") == "iss"

    def test_for_type_without_issues_raises(self):
        with pytest.raises(ConfigurationError):
            TicketDatabases(stories_db_id="sto").for_type("Epic")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("NOTION_ISSUES_DB_ID", "iss")
        monkeypatch.setenv("NOTION_EPICS_DB_ID", "")

        databases = TicketDatabases.from_env()

        assert databases == TicketDatabases(issues_db_id="iss")


class TestScalars:
    def test_counter_name_default(self):
        assert counter_name() == DEFAULT_COUNTER_NAME == "km_ticket"

    def test_counter_name_override(self, monkeypatch):
        monkeypatch.setenv("GLOBAL_COUNTER_NAME", "other")
        assert counter_name() == "other"

    def test_notion_token_required(self):
        with pytest.raises(ConfigurationError, match="NOTION_TOKEN"):
            notion_token()
        assert optional_notion_token() is None

    def test_notion_token_is_stripped(self, monkeypatch):
        monkeypatch.setenv("NOTION_TOKEN", " secret_abc ")
        assert notion_token() == "secret_abc"

    def test_cron_secret_optional(self, monkeypatch):
        assert cron_secret() is None
        monkeypatch.setenv("CRON_SECRET", "s3cret")
        assert cron_secret() == "s3cret"


class TestLoggingConfig:
    def test_defaults(self):
        assert LoggingConfig.from_env() == LoggingConfig(level="INFO", format="text")

    def test_normalizes_case(self, monkeypatch):
        monkeypatch.setenv("NOTION_CALENDAR_LOG_LEVEL", "debug")
        monkeypatch.setenv("NOTION_CALENDAR_LOG_FORMAT", "JSON")
        assert LoggingConfig.from_env() == LoggingConfig(level="DEBUG", format="json")

    def test_rejects_unknown_format(self, monkeypatch):
        monkeypatch.setenv("NOTION_CALENDAR_LOG_FORMAT", "xml")
        with pytest.raises(ConfigurationError, match="NOTION_CALENDAR_LOG_FORMAT"):
            LoggingConfig.from_env()

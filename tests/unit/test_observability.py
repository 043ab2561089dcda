"""
cachewise — Observability Tests

JSON log formatting, the current-site context and in-process counters.
"""

import json
import logging

from cachewise.observability import (
    JSONFormatter,
    ObservabilityAdapter,
    get_current_site,
    get_observability,
    initialize_observability,
    setup_logging,
    site_context,
)


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("cachewise.test", logging.WARNING, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self) -> None:
        payload = json.loads(JSONFormatter().format(_record("hello")))

        assert payload["message"] == "hello"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "cachewise.test"
        assert "cache_site" not in payload

    def test_extra_fields_are_included(self) -> None:
        payload = json.loads(JSONFormatter().format(_record("failed", key="U:1", error_code="TIMEOUT")))

        assert payload["key"] == "U:1"
        assert payload["error_code"] == "TIMEOUT"

    def test_current_site_is_included(self) -> None:
        with site_context("repo.UserRepository.get_user"):
            payload = json.loads(JSONFormatter().format(_record("miss")))

        assert payload["cache_site"] == "repo.UserRepository.get_user"


class TestSiteContext:
    def test_nested_contexts_restore(self) -> None:
        assert get_current_site() is None

        with site_context("outer"):
            with site_context("inner"):
                assert get_current_site() == "inner"
            assert get_current_site() == "outer"

        assert get_current_site() is None


class TestSetupLogging:
    def test_installs_json_handler(self) -> None:
        logger = setup_logging("DEBUG")

        assert logger.name == "cachewise"
        assert logger.level == logging.DEBUG
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_plain_format(self) -> None:
        logger = setup_logging(logging.INFO, json_format=False)
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)


class TestObservabilityAdapter:
    def test_counters_by_tags(self) -> None:
        obs = ObservabilityAdapter()
        obs.increment("site.hit", tags={"namespace": "U"})
        obs.increment("site.hit", 2, tags={"namespace": "U"})
        obs.increment("site.hit", tags={"namespace": "C"})

        assert obs.get_count("site.hit", {"namespace": "U"}) == 3
        assert obs.get_count("site.hit", {"namespace": "C"}) == 1
        assert obs.get_count("site.miss") == 0

    def test_get_metrics_filter(self) -> None:
        obs = ObservabilityAdapter()
        obs.increment("site.hit")
        obs.increment("site.miss")

        assert obs.get_metrics("site.miss") == [{"name": "site.miss", "tags": {}, "value": 1}]
        assert len(obs.get_metrics()) == 2

    def test_disabled_metrics(self) -> None:
        obs = ObservabilityAdapter(enable_metrics=False)
        obs.increment("site.hit")
        assert obs.get_metrics() == []

    def test_reset(self) -> None:
        obs = ObservabilityAdapter()
        obs.increment("site.hit")
        obs.reset()
        assert obs.get_metrics() == []

    def test_global_adapter(self) -> None:
        adapter = initialize_observability()
        assert get_observability() is adapter

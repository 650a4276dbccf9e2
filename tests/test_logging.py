import logging

import pytest


class TestRequestLogContext:
    def test_organization_bound_to_logs(self, client, caplog, organization_id):
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_ORGANIZATION_ID=str(organization_id))
        found = any(str(organization_id) in r.getMessage() for r in caplog.records)
        assert found, (
            f"organization_id '{organization_id}' not found in log records: "
            f"{[r.getMessage() for r in caplog.records]}"
        )

    def test_invalid_organization_header_not_bound(self, client, caplog):
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_ORGANIZATION_ID="not-a-uuid")
        assert not any("not-a-uuid" in r.getMessage() for r in caplog.records)

    def test_request_finished_logs_status(self, client, caplog):
        with caplog.at_level(logging.INFO):
            client.get("/health")
        assert any("request_finished" in r.getMessage() for r in caplog.records)


class TestStructlogConfiguration:
    def test_masking_runs_before_rendering(self):
        from config.settings import _shared_processors, mask_sensitive_data

        assert mask_sensitive_data in _shared_processors

    @pytest.mark.parametrize("logger_name", ["django", "django.server"])
    def test_django_loggers_use_json_console(self, settings, logger_name):
        assert settings.LOGGING["loggers"][logger_name]["handlers"] == ["console"]
        assert settings.LOGGING["handlers"]["console"]["formatter"] == "json"

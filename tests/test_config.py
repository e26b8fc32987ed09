import logging

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from promo_engine.core.config import Settings
from promo_engine.main import create_app


def test_log_format_selects_record_template():
    text = Settings(log_format="text")
    json_settings = Settings(log_format="JSON")

    assert json_settings.log_format == "json"
    assert json_settings.log_record_format.startswith('{"time"')
    assert "%(levelname)s" in text.log_record_format

    record = logging.LogRecord("promo", logging.INFO, __file__, 1, "ok", None, None)
    assert logging.Formatter(json_settings.log_record_format).format(record).endswith(
        '"level": "INFO", "message": "ok"}'
    )


def test_invalid_settings_are_refused():
    with pytest.raises(ValidationError):
        Settings(log_format="xml")
    with pytest.raises(ValidationError):
        Settings(environment="prod")

    assert Settings(log_level="debug").log_level == "DEBUG"
    assert Settings(currency="eur").currency == "EUR"


def test_environment_flags():
    assert Settings(environment="production").is_production
    assert Settings(environment="development").is_development
    assert not Settings(environment="test").is_production


def test_docs_disabled_in_production():
    production = TestClient(create_app(Settings(environment="production")))
    assert production.get("/docs").status_code == 404
    assert production.get("/").json()["docs"] is None

    staging = TestClient(create_app(Settings(environment="staging")))
    assert staging.get("/docs").status_code == 200
    assert staging.get("/api/v1/openapi.json").status_code == 200

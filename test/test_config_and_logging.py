import json
import logging
import sys
from pathlib import Path

import pytest

from invsys.config import Settings, get_app_paths, load_settings
from invsys.domain.errors import ValidationError
from invsys.logging_config import JsonFormatter


def test_load_settings_defaults():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.low_stock_threshold == 10


def test_load_settings_reads_environment(tmp_path: Path):
    settings = load_settings(
        {
            "INVSYS_DB_PATH": str(tmp_path / "x.db"),
            "INVSYS_LOW_STOCK_THRESHOLD": "3",
            "INVSYS_LOCK_TIMEOUT": "0.5",
        }
    )
    assert settings.db_path == tmp_path / "x.db"
    assert settings.low_stock_threshold == 3
    assert settings.lock_timeout_seconds == 0.5


@pytest.mark.parametrize(
    "env",
    [
        {"INVSYS_LOW_STOCK_THRESHOLD": "ten"},
        {"INVSYS_LOW_STOCK_THRESHOLD": "-1"},
        {"INVSYS_LOCK_TIMEOUT": "soon"},
        {"INVSYS_LOCK_TIMEOUT": "0"},
    ],
)
def test_load_settings_rejects_bad_values(env):
    with pytest.raises(ValidationError):
        load_settings(env)


def test_app_paths_follow_db_override(tmp_path: Path):
    paths = get_app_paths(db_override=tmp_path / "data" / "inv.db")
    assert paths.db_path == tmp_path / "data" / "inv.db"
    assert paths.logs_dir == tmp_path / "data" / "logs"
    assert paths.logs_dir.is_dir()


def test_json_formatter_emits_one_object_per_record():
    record = logging.LogRecord("invsys.sales", logging.INFO, __file__, 1, "sale_created sale_id=%s", (4,), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["logger"] == "invsys.sales"
    assert payload["level"] == "INFO"
    assert payload["thread"] == record.threadName
    assert payload["message"] == "sale_created sale_id=4"
    assert "exception" not in payload


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad")
    except ValueError:
        record = logging.LogRecord("invsys", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: bad" in payload["exception"]

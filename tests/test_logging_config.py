"""Tests for logging helpers."""

import json
import logging

from dealengine.logging_config import get_logger, setup_logging


def test_get_logger_adds_context(caplog):
    log = get_logger("dealengine.tests", product_id="p1", data_source="coupons")

    with caplog.at_level(logging.INFO, logger="dealengine.tests"):
        log.warning("coupons fetch failed")

    record = caplog.records[-1]
    assert record.product_id == "p1"
    assert record.data_source == "coupons"


def test_call_extra_overrides_context(caplog):
    log = get_logger("dealengine.tests", product_id="p1", data_source="coupons")

    with caplog.at_level(logging.INFO, logger="dealengine.tests"):
        log.warning("history fetch failed", extra={"data_source": "history"})

    assert caplog.records[-1].data_source == "history"
    assert log.extra == {"product_id": "p1", "data_source": "coupons"}


def test_setup_logging_writes_json_records(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(tmp_path)
        get_logger("dealengine.tests", product_id="p1", data_source="listings").error(
            "listings fetch failed"
        )
        logging.getLogger("dealengine.tests").error("no context")
        for handler in root.handlers:
            handler.flush()

        lines = (tmp_path / "logs" / "deals.log").read_text().splitlines()
        with_context, without_context = (json.loads(line) for line in lines[-2:])
        assert with_context["message"] == "listings fetch failed"
        assert with_context["level"] == "ERROR"
        assert with_context["product_id"] == "p1"
        assert with_context["data_source"] == "listings"
        assert without_context["product_id"] is None
        assert "listings fetch failed" in (tmp_path / "logs" / "error.log").read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

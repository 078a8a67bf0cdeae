from __future__ import annotations

import json
import logging

from cafepos_shared.cors import DESKTOP_ORIGINS, resolve_origins
from cafepos_shared.logging import JsonFormatter


def test_cors_defaults_to_desktop_shell():
    assert resolve_origins(None) == DESKTOP_ORIGINS
    assert resolve_origins(" , ") == DESKTOP_ORIGINS


def test_cors_wildcard_wins():
    assert resolve_origins("http://a.test, *") == ["*"]
    assert resolve_origins("http://a.test, http://b.test") == ["http://a.test", "http://b.test"]


def test_json_log_lines_carry_extra_fields():
    record = logging.LogRecord("cafepos.orders", logging.INFO, __file__, 1, "order %s paid", (7,), None)
    record.event = {"type": "orders-updated"}
    line = json.loads(JsonFormatter().format(record))
    assert line["message"] == "order 7 paid"
    assert line["logger"] == "cafepos.orders"
    assert line["level"] == "INFO"
    assert line["event"] == {"type": "orders-updated"}
    assert line["request_id"]

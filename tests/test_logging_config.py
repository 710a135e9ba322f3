import json
import logging

from retail_admin.logging_config import StructuredFormatter


def test_structured_formatter_emits_json_with_custom_fields():
    record = logging.LogRecord("retail_admin.test", logging.WARNING, __file__, 10,
                               "Main record copy failed", None, None)
    record.extra_fields = {"invoice_number": "INV-1-1"}

    payload = json.loads(StructuredFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["message"] == "Main record copy failed"
    assert payload["custom"] == {"invoice_number": "INV-1-1"}


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"

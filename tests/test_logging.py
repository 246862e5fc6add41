from __future__ import annotations

import json
import logging

from budget_office.core.logging import ConsoleFormatter, JsonFormatter


def _record(message: str, **context: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="budget_office.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    if context:
        record.context = context
    return record


def test_json_formatter_merges_context() -> None:
    line = JsonFormatter().format(_record("record.created", entity="office", id="42"))

    payload = json.loads(line)
    assert payload["event"] == "record.created"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "budget_office.test"
    assert payload["entity"] == "office"
    assert payload["id"] == "42"


def test_console_formatter_appends_key_value_pairs() -> None:
    formatter = ConsoleFormatter("%(levelname)s %(message)s")

    assert formatter.format(_record("subunit.synced", office_id="7")) == "INFO subunit.synced | office_id=7"
    assert formatter.format(_record("health")) == "INFO health"

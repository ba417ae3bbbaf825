import io
import json
import logging

import structlog

from code_graph_indexer.configuration.logging_config import (
    MAX_FIELD_CHARS,
    configure_logging,
    filter_sensitive_data,
    truncate_long_fields,
)


def test_credentials_are_masked() -> None:
    event = filter_sensitive_data(None, "info", {"event": "x", "NEO4J_PASSWORD": "p", "token": "t", "repo_id": "r"})
    assert event == {"event": "x", "NEO4J_PASSWORD": "[FILTERED]", "token": "[FILTERED]", "repo_id": "r"}


def test_long_fields_keep_their_tail() -> None:
    stderr = "a" * MAX_FIELD_CHARS + "fatal: boom"
    event = truncate_long_fields(None, "warning", {"event": "precise.tool_failed", "stderr": stderr})
    assert event["stderr"].startswith("...")
    assert event["stderr"].endswith("fatal: boom")
    assert len(event["stderr"]) == MAX_FIELD_CHARS + 3


def test_events_render_as_json_lines() -> None:
    stream = io.StringIO()
    configure_logging(logging.INFO, stream=stream, force_reconfigure=True)

    structlog.get_logger("code_graph_indexer.test").info("pipeline.start", repo_id="r", password="secret")
    structlog.get_logger("code_graph_indexer.test").debug("pipeline.noise")

    [line] = stream.getvalue().splitlines()
    record = json.loads(line)
    assert record["event"] == "pipeline.start"
    assert record["level"] == "info"
    assert record["logger"] == "code_graph_indexer.test"
    assert record["password"] == "[FILTERED]"

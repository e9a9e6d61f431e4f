"""Tests for log redaction and schema upgrades of older databases."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, inspect, text

from localrecall.db import ensure_summary_columns
from localrecall.logging_config import RedactSecretsFilter, redact_secrets


def test_gemini_key_query_parameter_is_masked() -> None:
    url = "GET https://generativelanguage.googleapis.com/v1beta/models?key=AIzaSecret123&alt=json"
    assert redact_secrets(url) == (
        "GET https://generativelanguage.googleapis.com/v1beta/models?key=***&alt=json"
    )


def test_bearer_and_sk_tokens_are_masked() -> None:
    assert redact_secrets("Authorization: Bearer sk-live-abcdef123") == "Authorization: Bearer ***"
    assert redact_secrets("stored key sk-proj-abcdef123") == "stored key sk-***"


def test_filter_rewrites_formatted_record() -> None:
    record = logging.LogRecord(
        "urllib3", logging.DEBUG, __file__, 1, "Request %s", ("/models?key=AIzaSecret",), None
    )

    assert RedactSecretsFilter().filter(record) is True
    assert record.getMessage() == "Request /models?key=***"


def test_filter_leaves_clean_records_untouched() -> None:
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "Loaded %d cards", (3,), None)
    RedactSecretsFilter().filter(record)
    assert record.args == (3,)


def test_older_knowledge_cards_table_gains_summary_columns(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'old.db'}", future=True)
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE knowledge_cards (id INTEGER PRIMARY KEY, title VARCHAR(512) NOT NULL, "
                "content TEXT NOT NULL, summary TEXT)"
            )
        )
        conn.execute(text("INSERT INTO knowledge_cards (title, content) VALUES ('Old', 'Body')"))

    added = ensure_summary_columns(engine)

    assert added == ["detailed_summary", "key_points", "last_summary_generation"]
    columns = {column["name"] for column in inspect(engine).get_columns("knowledge_cards")}
    assert {"detailed_summary", "key_points", "last_summary_generation"} <= columns
    with engine.connect() as conn:
        assert conn.execute(text("SELECT key_points FROM knowledge_cards")).scalar_one() == "[]"
    assert ensure_summary_columns(engine) == []


def test_missing_table_is_left_alone(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}", future=True)
    assert ensure_summary_columns(engine) == []

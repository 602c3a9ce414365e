"""
Tests for the logging processors.
"""
import structlog

from cafirm.core.logging import build_processors, mask_email_fields


def test_mask_email_fields():
    event = mask_email_fields(
        None,
        "info",
        {"event": "E-mail sent", "to": "rahul@acmetraders.in", "attempt": 2},
    )
    assert event == {"event": "E-mail sent", "to": "ra***@acmetraders.in", "attempt": 2}


def test_processor_chain_follows_mode():
    production = build_processors(debug=False)
    assert mask_email_fields in production
    assert isinstance(production[-1], structlog.processors.JSONRenderer)

    development = build_processors(debug=True, mask_emails=False)
    assert mask_email_fields not in development
    assert isinstance(development[-1], structlog.dev.ConsoleRenderer)

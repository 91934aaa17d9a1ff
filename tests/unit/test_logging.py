from __future__ import annotations

from services.registry.app.logging import redact_secrets


def test_secrets_are_masked():
    event = redact_secrets(
        None,
        "info",
        {"event": "access_key_expired", "access_key": "abcdef123456", "deployment_key": "xy"},
    )

    assert event["access_key"] == "abcd****"
    assert event["deployment_key"] == "****"
    assert event["event"] == "access_key_expired"


def test_other_fields_untouched():
    event = redact_secrets(None, "info", {"event": "app_created", "app_id": "123"})

    assert event == {"event": "app_created", "app_id": "123"}

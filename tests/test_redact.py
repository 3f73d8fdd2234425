from agency_crm.core.redact import redact_text


def test_redact_patterns():
    text = (
        "T.C. Kimlik No 12345678901, Tel: 0532 123 45 67, e-posta ali@example.com, "
        "IBAN TR33 0006 1005 1978 6457 8413 26"
    )
    redacted = redact_text(text, enabled=True)
    assert "[REDACTED_TCKN]" in redacted
    assert "[REDACTED_PHONE]" in redacted
    assert "[REDACTED_EMAIL]" in redacted
    assert "[REDACTED_IBAN]" in redacted
    assert "12345678901" not in redacted


def test_masked_identity_number_untouched():
    text = "T.C. Kimlik No 1511******86"
    assert redact_text(text, enabled=True) == text


def test_redaction_disabled():
    text = "E-posta: ali@example.com"
    assert redact_text(text, enabled=False) == text


def test_redaction_follows_env(monkeypatch):
    monkeypatch.setenv("REDACT_PII", "false")
    assert redact_text("ali@example.com") == "ali@example.com"
    monkeypatch.setenv("REDACT_PII", "yes")
    assert redact_text("ali@example.com") == "[REDACTED_EMAIL]"

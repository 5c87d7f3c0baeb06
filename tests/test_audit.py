"""Unit tests for provisioning audit logging."""

import json
from pathlib import Path

import pytest

from scripts import audit


@pytest.fixture
def temp_audit_dir(monkeypatch, tmp_path):
    """Provide isolated audit directory for each test."""
    audit_dir = Path(tmp_path) / "audit"
    audit_file = audit_dir / "provisioning-events.jsonl"

    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY_FILE", raising=False)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")

    yield audit_dir, audit_file


def _read_events(audit_file):
    with audit_file.open("r") as f:
        return [json.loads(line) for line in f if line.strip()]


def test_log_event_creates_file_with_restricted_permissions(temp_audit_dir):
    audit_dir, audit_file = temp_audit_dir
    assert not audit_file.exists()

    audit.log_event("create_user", "JDOE", operator="admin", system="h/300", details={"license_type": "91"})

    assert audit_file.exists()
    assert audit_file.stat().st_mode & 0o777 == 0o600
    assert audit_dir.stat().st_mode & 0o777 == 0o700


def test_log_event_writes_signed_json(temp_audit_dir):
    _, audit_file = temp_audit_dir

    audit.log_event("lock_user", "JDOE", operator="ops", system="h/300", success=False, details={"error": "status 404"})

    (event,) = _read_events(audit_file)
    assert event["event_type"] == "lock_user"
    assert event["username"] == "JDOE"
    assert event["system"] == "h/300"
    assert event["operator"] == "ops"
    assert event["success"] is False
    assert event["details"] == {"error": "status 404"}
    assert "timestamp" in event
    assert "signature" in event


def test_passwords_are_redacted(temp_audit_dir):
    _, audit_file = temp_audit_dir

    audit.log_event("create_user", "JDOE", details={"password": "Init123!", "first_name": "John"})

    (event,) = _read_events(audit_file)
    assert event["details"] == {"password": "***", "first_name": "John"}
    assert "Init123!" not in audit_file.read_text()


def test_verify_audit_log_counts_valid_signatures(temp_audit_dir):
    for event_type in ("create_user", "assign_groups", "lock_user"):
        audit.log_event(event_type, "JDOE")

    assert audit.verify_audit_log() == (3, 3)


def test_verify_detects_tampering(temp_audit_dir):
    _, audit_file = temp_audit_dir
    audit.log_event("create_user", "JDOE")
    audit.log_event("lock_user", "JDOE")

    lines = audit_file.read_text().splitlines()
    tampered = json.loads(lines[0])
    tampered["username"] = "MALLORY"
    lines[0] = json.dumps(tampered)
    audit_file.write_text("\n".join(lines) + "\n")

    assert audit.verify_audit_log() == (2, 1)


def test_unsigned_when_key_empty(temp_audit_dir, monkeypatch):
    _, audit_file = temp_audit_dir
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "")

    audit.log_event("create_user", "JDOE")

    (event,) = _read_events(audit_file)
    assert "signature" not in event


def test_verify_missing_file(temp_audit_dir):
    assert audit.verify_audit_log() == (0, 0)


def test_safe_log_event_never_raises(temp_audit_dir, monkeypatch, capsys):
    def boom():
        raise OSError("disk full")

    monkeypatch.setattr(audit, "_ensure_audit_dir", boom)

    assert audit.safe_log_event("create_user", "JDOE") is False
    assert "disk full" in capsys.readouterr().err

"""Tests for timeline event projection and name formatting."""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from backoffice.services.common import format_person_name, full_name
from backoffice.services.timeline.normalizers import (
    humanize_code,
    normalize_admin_action,
    normalize_email,
    normalize_lockbox_action,
)

WHEN = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _lockbox_entry(action, performed_by=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        lockbox_id=uuid.uuid4(),
        action=action,
        action_method="app",
        details=None,
        performed_by=performed_by,
        performed_at=WHEN.replace(tzinfo=None),
    )


def _admin_entry(action_type, reason=None, details=None, admin_user=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        action_type=action_type,
        reason=reason,
        details=details,
        admin_user=admin_user,
        performed_at=WHEN,
    )


@pytest.mark.parametrize(
    "code,expected",
    [
        ("photo_rotated", "Photo Rotated"),
        ("", "Fallback"),
        (None, "Fallback"),
        ("  ", "Fallback"),
    ],
)
def test_humanize_code(code, expected):
    assert humanize_code(code, "Fallback") == expected


def test_lockbox_action_uses_label_table_and_display_id():
    user = SimpleNamespace(first_name="jane", last_name="DOE", email="jane@example.com")
    event = normalize_lockbox_action(_lockbox_entry("code_view", user), "LB-1042")
    assert event.id.startswith("lockbox_")
    assert event.type == "lockbox_action"
    assert event.title == "Code viewed"
    assert event.subtitle == "Lockbox #LB-1042"
    assert event.actor.name == "Jane Doe"
    assert event.actor.role == "customer"
    assert event.timestamp == WHEN


def test_lockbox_action_unknown_code_is_humanized():
    event = normalize_lockbox_action(_lockbox_entry("battery_low"))
    assert event.title == "Battery Low"
    assert event.subtitle is None
    assert event.actor is None


def test_lockbox_action_blank_code_gets_generic_title():
    event = normalize_lockbox_action(_lockbox_entry(""))
    assert event.title == "Lockbox activity"


def test_email_event():
    entry = SimpleNamespace(
        id=uuid.uuid4(),
        template_key="trial_ending",
        recipient="owner@example.com",
        subject="Your trial ends soon",
        status="delivered",
        provider_message_id="msg_1",
        sent_at=WHEN,
    )
    event = normalize_email(entry)
    assert event.title == "Trial ending reminder"
    assert event.subtitle == "To: owner@example.com"
    assert event.badge == "delivered"
    assert event.actor is None


def test_admin_action_prefers_reason_subtitle():
    admin = SimpleNamespace(first_name="dana", last_name="o'neil", email="dana@example.com")
    event = normalize_admin_action(_admin_entry("comp_month", "Outage credit", admin_user=admin))
    assert event.title == "Month comped"
    assert event.subtitle == "Reason: Outage credit"
    assert event.actor.name == "Dana O'Neil"
    assert event.actor.role == "admin"


def test_admin_action_plan_change_subtitle():
    details = {"previous_plan_label": "Solo", "new_plan_label": "Team Pro"}
    event = normalize_admin_action(_admin_entry("change_plan", details=details))
    assert event.subtitle == "Solo → Team Pro"


def test_admin_action_unknown_type_falls_back():
    assert normalize_admin_action(_admin_entry("merge_accounts")).title == "Merge Accounts"
    assert normalize_admin_action(_admin_entry("")).title == "Admin action"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("JOHN mcdonald", "John McDonald"),
        ("mary-jane watson", "Mary-Jane Watson"),
        ("ludwig VAN beethoven", "Ludwig van Beethoven"),
        ("van morrison", "Van Morrison"),
        ("shaquille o'neal", "Shaquille O'Neal"),
        ("angus macleod", "Angus MacLeod"),
        ("", ""),
        (None, ""),
    ],
)
def test_format_person_name(name, expected):
    assert format_person_name(name) == expected


def test_full_name_skips_missing_parts():
    assert full_name("ada", None) == "Ada"
    assert full_name(None, None) == ""

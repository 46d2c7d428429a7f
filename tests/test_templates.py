# tests/test_templates.py
"""Tests for WhatsApp message templates."""
from datetime import date

import pytest

from tasknotify.core.dispatch.events import (
    AdminBroadcast,
    NewMessage,
    NewNotice,
    TaskCompleted,
    TaskReminder,
    TaskRevoked,
    TaskStatusChanged,
)
from tasknotify.core.dispatch.templates import MessageTemplater, truncate_preview


@pytest.fixture
def templater():
    return MessageTemplater()


class TestTruncatePreview:
    def test_short_text_unchanged(self):
        assert truncate_preview("hello", 10) == "hello"

    def test_long_text_cut_with_ellipsis(self):
        assert truncate_preview("a" * 20, 10) == "a" * 10 + "..."

    def test_none_is_empty(self):
        assert truncate_preview(None, 10) == ""


class TestTaskAssigned:
    def test_contains_title_assigner_and_due_date(self, templater, task_event):
        text = templater.render(task_event)

        assert text.startswith("*New Task Assigned - Hearing Hope*")
        assert "Hello Priya," in text
        assert "You have been assigned a new task by Dr. Rao:" in text
        assert "*Calibrate hearing aids*" in text
        assert "Bring the audiometer" in text
        assert "Due: 20/10/2026" in text
        assert text.endswith("Please check the Task Management System for more details.")

    def test_recipient_name_overrides_event_name(self, templater, task_event):
        text = templater.render(task_event, recipient_name="Asha")
        assert "Hello Asha," in text
        assert "Priya" not in text

    def test_render_is_deterministic(self, templater, task_event):
        assert templater.render(task_event) == templater.render(task_event)


class TestOtherEvents:
    def test_reminder(self, templater):
        text = templater.render(TaskReminder("Audit", "Ravi", "2 hours"))
        assert "*Task Reminder - Hearing Hope*" in text
        assert "Your task *Audit* is due in 2 hours." in text

    def test_status_change(self, templater):
        text = templater.render(TaskStatusChanged("Audit", "pending", "in_progress", "Ravi"))
        assert "from *pending* to *in_progress*" in text

    def test_completion_defaults_date_to_today(self, templater):
        text = templater.render(TaskCompleted("Audit", "A user", None, "Ravi"))
        assert 'marked as complete by A user on today.' in text

    def test_completion_formats_date(self, templater):
        text = templater.render(TaskCompleted("Audit", "Asha", date(2026, 1, 5), "Ravi"))
        assert "on 05/01/2026." in text

    def test_revocation_includes_reason(self, templater):
        text = templater.render(TaskRevoked("Audit", "An admin", "Photos missing", "Ravi"))
        assert "revoked by An admin." in text
        assert "Reason: Photos missing" in text

    def test_revocation_without_reason(self, templater):
        text = templater.render(TaskRevoked("Audit", "An admin", "", "Ravi"))
        assert "Reason:" not in text

    def test_message_body_is_truncated(self):
        templater = MessageTemplater(preview_length=100)
        event = NewMessage("Asha", "Hello", "x" * 300, "Ravi", task_title="Audit")
        text = templater.render(event)
        assert f"*Message:* {'x' * 100}..." in text
        assert "*Related Task:* Audit" in text
        assert text.endswith("to read the full message.")

    def test_important_notice_is_marked(self, templater):
        text = templater.render(NewNotice("Holiday", "Office closed", "Admin", important=True))
        assert text.startswith("*IMPORTANT*\n*New Notice - Hearing Hope*")
        assert "Hello Team Member," in text

    def test_regular_notice_not_marked(self, templater):
        text = templater.render(NewNotice("Holiday", "Office closed", "Admin"))
        assert "*IMPORTANT*" not in text

    def test_admin_broadcast(self, templater):
        text = templater.render(AdminBroadcast("Server restart at 6pm", urgent=True), recipient_name="Boss")
        assert text.startswith("*IMPORTANT*")
        assert "Server restart at 6pm" in text
        assert "Hello Boss," in text

    def test_custom_product_name(self):
        templater = MessageTemplater(product_name="Acme", system_name="Acme Portal")
        text = templater.render(TaskReminder("Audit", "Ravi", "1 day"))
        assert "*Task Reminder - Acme*" in text
        assert "Please check the Acme Portal for more details." in text


def test_unknown_event_raises_type_error(templater):
    with pytest.raises(TypeError):
        templater.render(object())


def test_supported_kinds_cover_every_event(templater):
    assert templater.supported_kinds() == sorted([
        "admin_broadcast", "new_message", "new_notice", "task_assigned",
        "task_completed", "task_reminder", "task_revoked", "task_status_changed",
    ])

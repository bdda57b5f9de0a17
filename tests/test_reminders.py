"""Reminder selection and dispatch."""

from datetime import date, datetime

import pytest

from autoshop.errors import ValidationFailed
from autoshop.services.reminder_service import ReminderService


class TestDueReminders:
    def test_appointment_day_before(self, app):
        reminders = app.reminders.due_reminders(now=datetime(2024, 6, 25, 8, 0))
        appts = [r for r in reminders if r.kind == "appointment"]
        assert [(r.target_id, r.due) for r in appts] == [("1", date(2024, 6, 26))]
        assert "2020 Toyota Camry" in appts[0].message
        assert "10:00" in appts[0].message

    def test_cancelled_appointment_is_skipped(self, app):
        app.appointments.set_status("1", "cancelled")
        reminders = app.reminders.due_reminders(now=datetime(2024, 6, 25))
        assert not [r for r in reminders if r.kind == "appointment"]

    def test_mot_expiry(self, app):
        app.vehicles.update_vehicle("2", {"mot_expiry": date(2024, 7, 31)})
        reminders = app.reminders.due_reminders(now=datetime(2024, 7, 1))
        mot = [r for r in reminders if r.kind == "mot"]
        assert [(r.target_id, r.customer_id) for r in mot] == [("2", "2")]
        assert "XYZ789" in mot[0].message

    def test_mot_window_covers_every_expiry_up_to_limit(self, app):
        today = datetime(2024, 7, 1)
        app.vehicles.update_vehicle("1", {"mot_expiry": date(2024, 7, 15)})
        app.vehicles.update_vehicle("2", {"mot_expiry": date(2024, 8, 1)})
        mot = [r for r in app.reminders.due_reminders(now=today) if r.kind == "mot"]
        assert [(r.target_id, r.due) for r in mot] == [("1", date(2024, 7, 15))]
        assert "2024-07-15" in mot[0].message

    def test_expired_mot_is_not_reminded(self, app):
        app.vehicles.update_vehicle("1", {"mot_expiry": date(2024, 6, 30)})
        app.vehicles.update_vehicle("2", {"mot_expiry": date(2024, 7, 1)})
        mot = [r for r in app.reminders.due_reminders(now=datetime(2024, 7, 1, 18, 0)) if r.kind == "mot"]
        assert [r.target_id for r in mot] == ["2"]

    def test_overdue_invoices(self, app):
        reminders = app.reminders.due_reminders(now=datetime(2024, 7, 25))
        overdue = [r.target_id for r in reminders if r.kind == "overdue_invoice"]
        assert overdue == ["2", "3"]

    def test_overdue_reminders_can_be_disabled(self, app):
        app.settings.reminders.overdue_invoices = False
        assert app.reminders.due_reminders(now=datetime(2024, 7, 25)) == []


class TestSendReminders:
    def test_outcomes(self, app, smtp):
        outcomes = app.reminders.send_reminders(now=datetime(2024, 7, 25))
        assert [o.sent for o in outcomes] == [True, True]
        assert {m["To"] for m in smtp.sent} == {"john@example.com", "sarah@example.com"}

    def test_failures_are_reported_per_reminder(self, app, smtp):
        smtp.fail = True
        outcomes = app.reminders.send_reminders(now=datetime(2024, 7, 25))
        assert len(outcomes) == 2
        assert all(not o.sent and o.error for o in outcomes)

    def test_requires_notifier(self, store, settings):
        with pytest.raises(ValidationFailed):
            ReminderService(store, settings).send_reminders(now=datetime(2024, 7, 25))

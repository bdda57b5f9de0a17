"""Notification, calendar, MOT lookup, PDF rendering and settings loading."""

import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest
import requests

from autoshop.errors import ErrorKind, ExternalServiceError, ValidationFailed
from autoshop.services.calendar_service import CalendarService
from autoshop.services.notification_service import NotificationService, Recipient
from autoshop.services.pdf_service import PdfService
from autoshop.services.vehicle_lookup import VehicleLookupService, parse_mot_record
from autoshop.settings import MotSettings, ShopSettings, load_settings

from conftest import FakeResponse, FakeSession

ALICE = Recipient(name="Alice", email="alice@example.com", phone="+15550001")
BOB = Recipient(name="Bob", email="bob@example.com")


class TestNotificationService:
    def test_one_email_per_recipient(self, notifier, smtp):
        assert notifier.send("email", [ALICE, BOB], "Your car is ready", subject="Ready") == 2
        assert [m["To"] for m in smtp.sent] == ["alice@example.com", "bob@example.com"]
        assert smtp.sent[0]["From"] == "shop@example.com"
        assert smtp.sent[0]["Subject"] == "Ready"

    def test_default_subject_is_company(self, notifier, smtp):
        notifier.send("email", [ALICE], "Hi")
        assert smtp.sent[0]["Subject"] == "Test Garage"

    def test_sms_skips_recipients_without_phone(self, notifier, sms_client):
        assert notifier.send("sms", [ALICE, BOB], "Ready for pickup") == 1
        assert sms_client.created == [{"body": "Ready for pickup", "from": "", "to": "+15550001"}]

    @pytest.mark.parametrize("channel, recipients, message", [
        ("email", [], "hello"),
        ("email", [ALICE], "   "),
        ("fax", [ALICE], "hello"),
        ("sms", [BOB], "hello"),
        ("email", [Recipient(name="NoMail", phone="+1")], "hello"),
    ])
    def test_invalid_requests(self, notifier, channel, recipients, message):
        with pytest.raises(ValidationFailed):
            notifier.send(channel, recipients, message)

    def test_provider_failure(self, notifier, sms_client):
        sms_client.fail = True
        with pytest.raises(ExternalServiceError) as exc:
            notifier.send("sms", [ALICE], "hello")
        assert exc.value.kind is ErrorKind.EXTERNAL_SERVICE
        assert exc.value.code == "PROVIDER_ERROR"

    def test_unconfigured_providers(self, settings):
        bare = NotificationService(settings)
        with pytest.raises(ExternalServiceError) as exc:
            bare.send("email", [ALICE], "hello")
        assert exc.value.code == "PROVIDER_NOT_CONFIGURED"
        with pytest.raises(ExternalServiceError):
            bare.send("sms", [ALICE], "hello")


class TestCalendarService:
    def test_ics_export_when_google_disabled(self, settings):
        cal = CalendarService(settings.calendar)
        event_id = cal.create_event(
            summary="Oil Change - John Smith", description="Vehicle: 2020 Toyota Camry",
            start=datetime(2024, 7, 1, 10, 0), end=datetime(2024, 7, 1, 11, 0),
        )
        assert event_id.startswith("ics:")
        path = Path(event_id[len("ics:"):])
        text = path.read_text(encoding="utf-8")
        assert "BEGIN:VEVENT" in text
        assert "Oil Change - John Smith" in text
        cal.delete_event(event_id)
        assert not path.exists()

    def test_end_must_follow_start(self, settings):
        cal = CalendarService(settings.calendar)
        with pytest.raises(ValidationFailed):
            cal.create_event(summary="x", description="", start=datetime(2024, 7, 1, 10), end=datetime(2024, 7, 1, 10))

    def test_google_event_body(self, settings, calendar_api):
        cal = CalendarService(settings.calendar, api=calendar_api)
        cal.create_event(summary="MOT - Sarah", description="", start=datetime(2024, 7, 2, 9), end=datetime(2024, 7, 2, 10))
        calendar_id, body = calendar_api.inserted[0]
        assert calendar_id == "primary"
        assert body["start"]["timeZone"] == "America/New_York"
        assert body["attendees"] == []
        assert body["reminders"]["useDefault"] is False


class TestVehicleLookup:
    def test_token_then_history_request(self, settings):
        session = FakeSession(get_response=FakeResponse(payload=[{"registration": "AB12CDE", "make": "FORD"}]))
        result = VehicleLookupService(settings.mot, session=session).lookup(" ab12 cde ")
        assert result.make == "FORD"
        method, url, data = session.calls[0]
        assert (method, url) == ("POST", "https://auth.example.com/token")
        assert data["grant_type"] == "client_credentials"
        _, _, params, headers = session.calls[1]
        assert params == {"registration": "AB12CDE"}
        assert headers["Authorization"] == "Bearer tok"
        assert headers["x-api-key"] == "key"

    def test_empty_registration(self, settings):
        with pytest.raises(ValidationFailed):
            VehicleLookupService(settings.mot, session=FakeSession()).lookup("  ")

    def test_not_configured(self):
        with pytest.raises(ExternalServiceError) as exc:
            VehicleLookupService(MotSettings(), session=FakeSession()).lookup("AB12CDE")
        assert exc.value.code == "PROVIDER_NOT_CONFIGURED"

    def test_token_refused(self, settings):
        session = FakeSession(token_response=FakeResponse(401, {"error_description": "bad secret"}, "Unauthorized"))
        with pytest.raises(ExternalServiceError) as exc:
            VehicleLookupService(settings.mot, session=session).lookup("AB12CDE")
        assert "bad secret" in exc.value.message
        assert exc.value.code == "401"

    def test_no_vehicle(self, settings):
        session = FakeSession(get_response=FakeResponse(payload=[]))
        with pytest.raises(ExternalServiceError) as exc:
            VehicleLookupService(settings.mot, session=session).lookup("AB12CDE")
        assert exc.value.code == "404"

    def test_network_error(self, settings):
        class Broken(FakeSession):
            def get(self, *a, **kw):
                raise requests.ConnectionError("offline")

        with pytest.raises(ExternalServiceError):
            VehicleLookupService(settings.mot, session=Broken()).lookup("AB12CDE")

    def test_parse_record(self):
        result = parse_mot_record("X1", {
            "make": "BMW", "model": "320D", "firstUsedDate": "2012.09.14", "primaryColour": "Black",
            "motTests": [
                {"completedDate": "2023.09.01 09:00:00", "testResult": "FAILED", "expiryDate": None,
                 "rfrAndComments": [{"text": "Tyre worn", "type": "FAIL"}]},
                {"completedDate": "2023.09.03 09:00:00", "testResult": "PASSED", "expiryDate": "2024.09.13"},
            ],
        })
        assert result.registration == "X1"
        assert result.year == 2012
        assert result.color == "Black"
        assert result.mot_history[0].defects == ["Tyre worn"]
        assert result.mot_expiry == date(2024, 9, 13)


class TestPdfService:
    def test_invoice_html(self, app):
        inv = app.invoices.get("1")
        html = PdfService(app.settings).render_html(inv, app.customers.get_by_id("1"), app.vehicles.get_by_id("1"))
        assert "INV-202407-0001" in html
        assert "John Smith" in html
        assert "$81.35" in html
        assert "$6.37" in html
        assert "Due date" in html

    def test_estimate_html(self, app):
        est = app.estimates.create_estimate("2", "2", [{"name": "Labour <1h>", "unit_price": "40"}],
                                            now=datetime(2024, 7, 1))
        html = PdfService(app.settings).render_html(est, app.customers.get_by_id("2"), None)
        assert "Estimate" in html
        assert "Valid until" in html
        assert "Labour &lt;1h&gt;" in html

    def test_export_without_service(self, store, settings):
        from autoshop.services.invoice_service import InvoiceService

        with pytest.raises(ValidationFailed):
            InvoiceService(store, settings).export_pdf("1")


class TestSettings:
    def test_defaults_when_file_missing(self, tmp_path):
        s = load_settings(tmp_path / "missing.json", environ={})
        assert s.default_tax_rate == Decimal("8.5")
        assert s.payment_terms_days == 30
        assert s.numbering.invoice_prefix == "INV"

    def test_file_and_env(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"company": {"name": "Joe's Garage"}, "default_tax_rate": "20"}), encoding="utf-8")
        s = load_settings(path, environ={"SMTP_HOST": "smtp.example.com", "EMAIL_FROM": "joe@example.com",
                                         "SMTP_PORT": "2525", "AUTOSHOP_TAX_RATE": "7.25"})
        assert s.company.name == "Joe's Garage"
        assert s.default_tax_rate == Decimal("7.25")
        assert s.smtp.port == 2525
        assert s.smtp.configured

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_settings(path, environ={}) == ShopSettings()

    def test_invalid_values_fall_back(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"default_tax_rate": -1}), encoding="utf-8")
        assert load_settings(path, environ={}).default_tax_rate == Decimal("8.5")

"""Shared pytest fixtures: settings in a temp dir, demo store, fake collaborators."""

import smtplib
from decimal import Decimal
from types import SimpleNamespace

import pytest

from autoshop.app import ShopApp
from autoshop.services.calendar_service import CalendarService
from autoshop.services.notification_service import NotificationService
from autoshop.services.pdf_service import PdfService
from autoshop.services.vehicle_lookup import VehicleLookupService
from autoshop.settings import (
    CalendarSettings,
    CompanySettings,
    MotSettings,
    PdfSettings,
    ShopSettings,
    SmtpSettings,
)
from autoshop.storage.demo_data import seed_demo
from autoshop.storage.store import ShopStore


class FakeSMTP:
    """Stands in for smtplib.SMTP; records messages, optionally fails."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def send_message(self, msg):
        if self.fail:
            raise smtplib.SMTPException("relay refused")
        self.sent.append(msg)


class FakeSmsClient:
    def __init__(self):
        self.created = []
        self.fail = False
        self.messages = SimpleNamespace(create=self._create)

    def _create(self, body, from_, to):
        if self.fail:
            raise RuntimeError("twilio down")
        self.created.append({"body": body, "from": from_, "to": to})
        return SimpleNamespace(sid=f"SM{len(self.created)}", status="queued")


class _Call:
    def __init__(self, result=None, error=None):
        self._result = result
        self._error = error

    def execute(self):
        if self._error:
            raise self._error
        return self._result


class FakeCalendarApi:
    """Mimics googleapiclient's calendar resource: events().insert(...).execute()."""

    def __init__(self):
        self.inserted = []
        self.deleted = []
        self.error = None

    def events(self):
        return self

    def insert(self, calendarId, body):
        if self.error:
            return _Call(error=self.error)
        self.inserted.append((calendarId, body))
        return _Call({"id": f"evt-{len(self.inserted)}"})

    def delete(self, calendarId, eventId):
        self.deleted.append((calendarId, eventId))
        return _Call({})


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK"):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    """requests.Session double: queued responses for post() and get()."""

    def __init__(self, token_response=None, get_response=None):
        self.token_response = token_response or FakeResponse(payload={"access_token": "tok"})
        self.get_response = get_response or FakeResponse(payload=[])
        self.calls = []

    def post(self, url, data=None, timeout=None):
        self.calls.append(("POST", url, data))
        return self.token_response

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append(("GET", url, params, headers))
        return self.get_response


@pytest.fixture
def settings(tmp_path):
    return ShopSettings(
        company=CompanySettings(name="Test Garage", email="shop@example.com"),
        default_tax_rate=Decimal("8.5"),
        smtp=SmtpSettings(sender="shop@example.com"),
        mot=MotSettings(
            api_key="key", client_id="cid", client_secret="secret",
            scope_url="https://scope.example.com", token_url="https://auth.example.com/token",
        ),
        calendar=CalendarSettings(
            ics_dir=str(tmp_path / "ics"),
            token_file=str(tmp_path / "token.json"),
            credentials_file=str(tmp_path / "credentials.json"),
        ),
        pdf=PdfSettings(exports_dir=str(tmp_path / "pdf")),
    )


@pytest.fixture
def store():
    return seed_demo(ShopStore())


@pytest.fixture
def smtp():
    return FakeSMTP()


@pytest.fixture
def sms_client():
    return FakeSmsClient()


@pytest.fixture
def notifier(settings, smtp, sms_client):
    return NotificationService(settings, smtp_factory=lambda: smtp, sms_client=sms_client)


@pytest.fixture
def calendar_api():
    return FakeCalendarApi()


@pytest.fixture
def mot_session():
    return FakeSession()


@pytest.fixture
def app(settings, store, notifier, calendar_api, mot_session):
    return ShopApp(
        settings=settings,
        store=store,
        notifier=notifier,
        calendar=CalendarService(settings.calendar, api=calendar_api),
        lookup=VehicleLookupService(settings.mot, session=mot_session),
        pdf=PdfService(settings),
    )


def item(name="Labour", qty=1, price="40.00", product_id=None):
    """Plain dict line item as a form would submit it."""
    return {"name": name, "quantity": qty, "unit_price": price, "product_id": product_id}

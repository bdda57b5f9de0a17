from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from ics import Calendar, Event

from autoshop.errors import ExternalServiceError, ValidationFailed
from autoshop.settings import CalendarSettings

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
ICS_PREFIX = "ics:"


def _slug(text: str) -> str:
    text = re.sub(r'[\\/:*?"<>|\n\r\t]', "_", (text or "").strip())
    return re.sub(r"\s+", "_", text) or "event"


class CalendarService:
    """
    Google Agenda si activé (OAuth token.json / credentials.json), sinon export .ics.
    Les identifiants ICS sont préfixés "ics:" suivi du chemin du fichier.
    """

    def __init__(self, settings: CalendarSettings, api: Any = None) -> None:
        self.settings = settings
        self._api = api

    @property
    def uses_google(self) -> bool:
        return self._api is not None or self.settings.enabled

    def _credentials(self) -> Credentials:
        token_path, cred_path = self.settings.token_file, self.settings.credentials_file
        creds = None
        if os.path.exists(token_path):
            creds = Credentials.from_authorized_user_file(token_path, SCOPES)
        if not creds or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                if not os.path.exists(cred_path):
                    raise ExternalServiceError("calendar", "credentials.json missing for Google Calendar")
                flow = InstalledAppFlow.from_client_secrets_file(cred_path, SCOPES)
                creds = flow.run_local_server(port=0)
            Path(token_path).parent.mkdir(parents=True, exist_ok=True)
            with open(token_path, "w", encoding="utf-8") as f:
                f.write(creds.to_json())
        return creds

    def _service(self) -> Any:
        if self._api is None:
            self._api = build("calendar", "v3", credentials=self._credentials())
        return self._api

    # ---------- API ---------- #

    def create_event(
        self,
        *,
        summary: str,
        description: str,
        start: datetime,
        end: datetime,
        customer_email: Optional[str] = None,
    ) -> str:
        if not summary or end <= start:
            raise ValidationFailed("Calendar event needs a summary and an end after its start")
        if self.uses_google:
            return self._create_google(summary, description, start, end, customer_email)
        return self._create_ics(summary, description, start, end)

    def delete_event(self, event_id: str) -> None:
        if event_id.startswith(ICS_PREFIX):
            Path(event_id[len(ICS_PREFIX):]).unlink(missing_ok=True)
            return
        try:
            self._service().events().delete(
                calendarId=self.settings.default_calendar_id, eventId=event_id
            ).execute()
        except HttpError as e:
            raise ExternalServiceError("calendar", f"Failed to delete event {event_id}") from e

    # ---------- Backends ---------- #

    def _create_google(self, summary, description, start, end, customer_email) -> str:
        tz = self.settings.timezone
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": tz},
            "end": {"dateTime": end.isoformat(), "timeZone": tz},
            "attendees": [{"email": customer_email}] if customer_email else [],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 30},
                ],
            },
        }
        try:
            event = self._service().events().insert(
                calendarId=self.settings.default_calendar_id, body=body
            ).execute()
        except HttpError as e:
            raise ExternalServiceError("calendar", "Failed to create calendar event") from e
        event_id = event.get("id")
        logger.info("Google Calendar event created: %s", event_id)
        return event_id

    def _create_ics(self, summary, description, start, end) -> str:
        out_dir = Path(self.settings.ics_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        c = Calendar()
        e = Event()
        e.name = summary
        e.begin = start
        e.end = end
        e.description = description
        c.events.add(e)
        path = out_dir / f"{start:%Y%m%d-%H%M}_{_slug(summary)}.ics"
        with open(path, "w", encoding="utf-8") as f:
            f.writelines(c.serialize_iter())
        logger.info("ICS exported: %s", path)
        return f"{ICS_PREFIX}{path}"

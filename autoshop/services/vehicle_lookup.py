from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, Field

from autoshop.errors import ExternalServiceError, ValidationFailed
from autoshop.models.vehicle import MotTest
from autoshop.settings import MotSettings

logger = logging.getLogger(__name__)


class VehicleLookupResult(BaseModel):
    registration: str
    make: str = ""
    model: str = ""
    year: Optional[int] = None
    color: str = ""
    vin: str = ""
    mot_history: List[MotTest] = Field(default_factory=list)

    @property
    def mot_expiry(self) -> Optional[date]:
        dates = [t.expiry_date for t in self.mot_history if t.expiry_date]
        return max(dates) if dates else None


def _parse_date(s: Any) -> Optional[date]:
    if not s:
        return None
    text = str(s).strip()
    for fmt in ("%Y.%m.%d %H:%M:%S", "%Y.%m.%d", "%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _parse_year(record: Dict[str, Any]) -> Optional[int]:
    for k in ("manufactureYear", "manufactureDate", "firstUsedDate", "registrationDate"):
        v = record.get(k)
        if not v:
            continue
        try:
            return int(str(v)[:4])
        except ValueError:
            continue
    return None


def parse_mot_record(registration: str, record: Dict[str, Any]) -> VehicleLookupResult:
    tests: List[MotTest] = []
    for t in record.get("motTests") or []:
        defects = [d.get("text", "") for d in (t.get("rfrAndComments") or t.get("defects") or []) if isinstance(d, dict)]
        tests.append(MotTest(
            completed_date=_parse_date(t.get("completedDate")),
            test_result=t.get("testResult") or "",
            expiry_date=_parse_date(t.get("expiryDate")),
            odometer_value=t.get("odometerValue"),
            odometer_unit=t.get("odometerUnit"),
            defects=[d for d in defects if d],
        ))
    return VehicleLookupResult(
        registration=record.get("registration") or registration,
        make=record.get("make") or "",
        model=record.get("model") or "",
        year=_parse_year(record),
        color=record.get("primaryColour") or record.get("colour") or "",
        vin=record.get("vin") or "",
        mot_history=tests,
    )


class VehicleLookupService:
    """Recherche MOT : jeton client-credentials puis historique des contrôles. Pas de relance."""

    def __init__(self, settings: MotSettings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()

    def _access_token(self) -> str:
        conf = self.settings
        try:
            r = self.session.post(
                conf.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": conf.client_id,
                    "client_secret": conf.client_secret,
                    "scope": conf.scope_url,
                },
                timeout=conf.timeout_s,
            )
        except requests.RequestException as e:
            raise ExternalServiceError("mot", "Failed to get access token") from e
        if not r.ok:
            try:
                detail = r.json().get("error_description") or r.reason
            except ValueError:
                detail = r.reason
            raise ExternalServiceError("mot", f"Failed to get access token: {detail}", code=str(r.status_code))
        return r.json()["access_token"]

    def lookup(self, registration: str) -> VehicleLookupResult:
        reg = "".join((registration or "").split()).upper()
        if not reg:
            raise ValidationFailed("Registration number is required")
        if not self.settings.configured:
            raise ExternalServiceError("mot", "MOT API credentials are not fully configured", code="PROVIDER_NOT_CONFIGURED")

        token = self._access_token()
        try:
            r = self.session.get(
                self.settings.base_url,
                params={"registration": reg},
                headers={
                    "x-api-key": self.settings.api_key,
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
                timeout=self.settings.timeout_s,
            )
        except requests.RequestException as e:
            logger.exception("MOT lookup failed for %s", reg)
            raise ExternalServiceError("mot", "An unexpected error occurred") from e
        if not r.ok:
            raise ExternalServiceError("mot", "Failed to fetch MOT data", code=str(r.status_code))

        data = r.json()
        record = data[0] if isinstance(data, list) and data else data
        if not isinstance(record, dict) or not record:
            raise ExternalServiceError("mot", f"No vehicle found for {reg}", code="404")
        logger.info("MOT lookup OK for %s", reg)
        return parse_mot_record(reg, record)

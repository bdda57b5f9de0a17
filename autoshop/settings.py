from __future__ import annotations

import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[1]
DATA_DIR = ROOT_DIR / "data"
EXPORTS_DIR = ROOT_DIR / "exports"
SETTINGS_JSON = DATA_DIR / "settings.json"


class CompanySettings(BaseModel):
    name: str = "Auto Shop"
    email: str = ""
    phone: str = ""
    address: str = ""


class NumberingSettings(BaseModel):
    invoice_prefix: str = "INV"
    estimate_prefix: str = "EST"


class SmtpSettings(BaseModel):
    host: str = ""
    port: int = 587
    use_tls: bool = True
    username: str = ""
    password: str = ""
    sender: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)


class TwilioSettings(BaseModel):
    account_sid: str = ""
    auth_token: str = ""
    from_number: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


class MotSettings(BaseModel):
    api_key: str = ""
    client_id: str = ""
    client_secret: str = ""
    scope_url: str = ""
    token_url: str = ""
    base_url: str = "https://beta.check-mot.service.gov.uk/trade/vehicles/mot-tests"
    timeout_s: float = 10.0

    @property
    def configured(self) -> bool:
        return all([self.api_key, self.client_id, self.client_secret, self.scope_url, self.token_url])


class CalendarSettings(BaseModel):
    enabled: bool = False
    default_calendar_id: str = "primary"
    timezone: str = "America/New_York"
    credentials_file: str = str(DATA_DIR / "credentials.json")
    token_file: str = str(DATA_DIR / "token.json")
    ics_dir: str = str(EXPORTS_DIR / "agenda")


class PdfSettings(BaseModel):
    wkhtmltopdf_path: Optional[str] = None
    exports_dir: str = str(EXPORTS_DIR / "documents")


class ReminderSettings(BaseModel):
    appointment_days_before: int = 1
    mot_days_before: int = 30
    overdue_invoices: bool = True


class ShopSettings(BaseModel):
    company: CompanySettings = Field(default_factory=CompanySettings)
    numbering: NumberingSettings = Field(default_factory=NumberingSettings)
    default_tax_rate: Decimal = Field(default=Decimal("8.5"), ge=0)
    payment_terms_days: int = Field(default=30, ge=0)
    estimate_validity_days: int = Field(default=30, ge=0)
    currency_symbol: str = "$"
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    twilio: TwilioSettings = Field(default_factory=TwilioSettings)
    mot: MotSettings = Field(default_factory=MotSettings)
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)
    pdf: PdfSettings = Field(default_factory=PdfSettings)
    reminders: ReminderSettings = Field(default_factory=ReminderSettings)


# variable d'env -> (section, clé) dans settings
ENV_OVERRIDES: Dict[str, tuple] = {
    "AUTOSHOP_TAX_RATE": (None, "default_tax_rate"),
    "AUTOSHOP_PAYMENT_TERMS_DAYS": (None, "payment_terms_days"),
    "SMTP_HOST": ("smtp", "host"),
    "SMTP_PORT": ("smtp", "port"),
    "SMTP_USER": ("smtp", "username"),
    "SMTP_PASS": ("smtp", "password"),
    "EMAIL_FROM": ("smtp", "sender"),
    "TWILIO_ACCOUNT_SID": ("twilio", "account_sid"),
    "TWILIO_AUTH_TOKEN": ("twilio", "auth_token"),
    "TWILIO_PHONE_NUMBER": ("twilio", "from_number"),
    "MOT_API_KEY": ("mot", "api_key"),
    "MOT_CLIENT_ID": ("mot", "client_id"),
    "MOT_CLIENT_SECRET": ("mot", "client_secret"),
    "MOT_SCOPE_URL": ("mot", "scope_url"),
    "MOT_TOKEN_URL": ("mot", "token_url"),
    "WKHTMLTOPDF_PATH": ("pdf", "wkhtmltopdf_path"),
}


def _load_json(path: os.PathLike | str) -> Optional[Dict[str, Any]]:
    p = Path(path)
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Unreadable settings file %s (%s), using defaults", p, e)
        return None
    return data if isinstance(data, dict) else None


def _apply_env(raw: Dict[str, Any], environ: Dict[str, str]) -> Dict[str, Any]:
    for var, (section, key) in ENV_OVERRIDES.items():
        val = environ.get(var)
        if val in (None, ""):
            continue
        if section is None:
            raw[key] = val
        else:
            block = raw.get(section)
            if not isinstance(block, dict):
                block = {}
            block[key] = val
            raw[section] = block
    if environ.get("SMTP_SECURE"):
        raw.setdefault("smtp", {})["use_tls"] = environ["SMTP_SECURE"].lower() == "true"
    return raw


def load_settings(path: Optional[os.PathLike | str] = None, environ: Optional[Dict[str, str]] = None) -> ShopSettings:
    """
    settings.json (AUTOSHOP_SETTINGS ou data/settings.json) puis variables d'env (.env compris).
    Fichier absent/corrompu -> valeurs par défaut.
    """
    if environ is None:
        load_dotenv()
        environ = dict(os.environ)
    settings_path = path or environ.get("AUTOSHOP_SETTINGS") or SETTINGS_JSON
    raw = _load_json(settings_path) or {}
    raw = _apply_env(raw, environ)
    try:
        return ShopSettings.model_validate(raw)
    except ValidationError as e:
        logger.warning("Invalid settings in %s, using defaults: %s", settings_path, e)
        return ShopSettings()

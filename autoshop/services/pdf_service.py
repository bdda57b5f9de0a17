# autoshop/services/pdf_service.py
from __future__ import annotations
import logging
import os
import re
from pathlib import Path
from shutil import which
from typing import Optional, Union

import pdfkit
from jinja2 import Environment, FileSystemLoader, select_autoescape

from autoshop.errors import ExternalServiceError
from autoshop.models.customer import Customer
from autoshop.models.estimate import Estimate
from autoshop.models.invoice import Invoice
from autoshop.models.vehicle import Vehicle
from autoshop.services.lifecycle import effective_status
from autoshop.services.totals import format_money
from autoshop.settings import ShopSettings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

Document = Union[Invoice, Estimate]


# ---------- Formats ----------
def _slug(text: str) -> str:
    text = (text or "").strip()
    text = re.sub(r'[\\/:*?"<>|\n\r\t]', "_", text)
    text = re.sub(r"\s+", " ", text)
    return text or "Customer"

def _clean_path(p: str) -> str:
    if not p:
        return ""
    p = p.strip().strip('"').strip("'")
    return os.path.normpath(p)

def _find_wkhtmltopdf(configured: Optional[str]) -> Optional[str]:
    """
    Localise wkhtmltopdf :
    - settings.pdf.wkhtmltopdf_path (ou WKHTMLTOPDF_PATH)
    - chemins Windows connus
    - PATH
    """
    if configured:
        path = _clean_path(configured)
        if Path(path).is_file():
            return path
    for c in (
        r"C:\Program Files\wkhtmltopdf\bin\wkhtmltopdf.exe",
        r"C:\Program Files (x86)\wkhtmltopdf\bin\wkhtmltopdf.exe",
    ):
        if Path(c).is_file():
            return c
    found = which("wkhtmltopdf")
    return _clean_path(found) if found else None

def _render_pdf_with_weasyprint(html: str, out_path: Path, base_url: Optional[str]) -> None:
    """Fallback WeasyPrint (si wkhtmltopdf absent ou en échec)."""
    from weasyprint import HTML, CSS

    css_file = TEMPLATES_DIR / "stylesheet.css"
    styles = [CSS(filename=str(css_file))] if css_file.exists() else None
    HTML(string=html, base_url=base_url).write_pdf(str(out_path), stylesheets=styles)


class PdfService:
    def __init__(self, settings: ShopSettings) -> None:
        self.settings = settings
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.filters["money"] = lambda v: format_money(v, settings.currency_symbol)

    def render_html(self, doc: Document, customer: Optional[Customer], vehicle: Optional[Vehicle]) -> str:
        """HTML en mémoire via Jinja2 : templates/document.html"""
        is_estimate = isinstance(doc, Estimate)
        tpl = self.env.get_template("document.html")
        return tpl.render(
            title="Estimate" if is_estimate else "Invoice",
            doc=doc,
            status=effective_status(doc),
            date_label="Valid until" if is_estimate else "Due date",
            date_value=(doc.valid_until if is_estimate else doc.due_date).strftime("%Y-%m-%d"),
            customer=customer,
            vehicle=vehicle,
            company=self.settings.company,
        )

    def render(
        self,
        doc: Document,
        customer: Optional[Customer],
        vehicle: Optional[Vehicle],
        out_dir: Optional[str] = None,
    ) -> str:
        """
        Génère le PDF du document et renvoie son chemin.
        Essaie wkhtmltopdf (pdfkit) en priorité, sinon fallback WeasyPrint.
        """
        html = self.render_html(doc, customer, vehicle)

        exports_dir = Path(out_dir or self.settings.pdf.exports_dir)
        exports_dir.mkdir(parents=True, exist_ok=True)
        cname = _slug(customer.name if customer else "")
        out_path = exports_dir / f"{doc.number or doc.id} ({cname}).pdf"
        base_url = str(TEMPLATES_DIR.resolve())

        wkhtml = _find_wkhtmltopdf(self.settings.pdf.wkhtmltopdf_path)
        if wkhtml:
            try:
                config = pdfkit.configuration(wkhtmltopdf=wkhtml)
                options = {"enable-local-file-access": None, "quiet": "", "encoding": "UTF-8"}
                pdfkit.from_string(html, str(out_path), options=options, configuration=config)
                return str(out_path)
            except OSError as e:
                logger.warning("wkhtmltopdf failed (%s). Falling back to WeasyPrint...", e)

        try:
            _render_pdf_with_weasyprint(html, out_path, base_url=base_url)
        except Exception as e:
            raise ExternalServiceError("pdf", f"Unable to render {doc.number}: {e}") from e
        return str(out_path)

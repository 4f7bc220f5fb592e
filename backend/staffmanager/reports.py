from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

import structlog
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

from .config import settings
from .errors import IntegrationFailure

logger = structlog.get_logger(__name__)

CATEGORY_LABELS: Dict[str, str] = {
    "JOUR_TRAVAILLE": "Jours travaillés",
    "HEURE_SUPPLEMENTAIRE": "Heures supplémentaires",
    "ASTREINTE": "Astreintes",
}


class ReportRenderer(Protocol):
    def render(
        self,
        template: str,
        rows: Sequence[Mapping[str, Any]],
        params: Mapping[str, Any],
        base_name: str,
    ) -> bytes:
        ...


def _money(value: Any) -> str:
    return f"{Decimal(value):.2f} €"


class ReportLabRenderer:
    """Draw the customer invoice as a PDF into the temp directory and return its bytes."""

    def __init__(self, temp_dir: Optional[Path] = None):
        self.temp_dir = Path(temp_dir or settings.report_temp_dir)

    def render(
        self,
        template: str,
        rows: Sequence[Mapping[str, Any]],
        params: Mapping[str, Any],
        base_name: str,
    ) -> bytes:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        path = self.temp_dir / f"{base_name}.pdf"
        logger.info("report_render", template=template, path=str(path), rows=len(rows))
        try:
            self._draw(path, rows, params)
            return path.read_bytes()
        except (OSError, ValueError) as exc:
            raise IntegrationFailure(f"Erreur lors de la génération du rapport {base_name}.pdf") from exc

    def _draw(self, path: Path, rows: Sequence[Mapping[str, Any]], params: Mapping[str, Any]) -> None:
        pdf = canvas.Canvas(str(path), pagesize=A4)
        width, height = A4
        y = height - 2 * cm
        pdf.setTitle(f"Facture {params.get('customer-name', '')}")
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(2 * cm, y, str(params.get("society-name", "")))
        pdf.setFont("Helvetica", 10)
        for line in str(params.get("society-address", "")).splitlines():
            y -= 0.5 * cm
            pdf.drawString(2 * cm, y, line)
        if params.get("society-vat-number"):
            y -= 0.5 * cm
            pdf.drawString(2 * cm, y, f"TVA intracommunautaire : {params['society-vat-number']}")

        y -= 1.2 * cm
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(11 * cm, y, str(params.get("customer-name", "")))
        pdf.setFont("Helvetica", 10)
        for line in str(params.get("customer-adress", "")).splitlines():
            y -= 0.5 * cm
            pdf.drawString(11 * cm, y, line)

        y -= 1.5 * cm
        pdf.setFont("Helvetica-Bold", 16)
        pdf.drawString(2 * cm, y, f"Facture {params.get('period', '')}")
        y -= 0.7 * cm
        pdf.setFont("Helvetica", 10)
        pdf.drawString(2 * cm, y, f"Mission : {params.get('mission-name', '')} – {params.get('collaborator-name', '')}")

        y -= 1.2 * cm
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(2 * cm, y, "Désignation")
        pdf.drawRightString(11 * cm, y, "Quantité (j)")
        pdf.drawRightString(15 * cm, y, "Prix unitaire")
        pdf.drawRightString(width - 2 * cm, y, "Montant HT")
        y -= 0.8 * cm
        pdf.setFont("Helvetica", 11)
        for row in rows:
            pdf.drawString(2 * cm, y, CATEGORY_LABELS.get(str(row["category"]), str(row["category"])))
            pdf.drawRightString(11 * cm, y, f"{Decimal(row['quantity']):.3f}")
            pdf.drawRightString(15 * cm, y, _money(row["unit_price"]))
            pdf.drawRightString(width - 2 * cm, y, _money(row["amount"]))
            y -= 0.7 * cm

        y -= 0.8 * cm
        for label, key in (("Total HT", "totalHT"), ("TVA 20 %", "tva"), ("Total TTC", "totalTTC")):
            pdf.setFont("Helvetica-Bold" if key == "totalTTC" else "Helvetica", 11)
            pdf.drawString(11 * cm, y, label)
            pdf.drawRightString(width - 2 * cm, y, _money(params.get(key, 0)))
            y -= 0.7 * cm
        pdf.save()


def clear_temp_directory(directory: Optional[Path] = None) -> List[str]:
    """Delete the files directly under ``directory`` and return their names."""
    directory = Path(directory or settings.report_temp_dir)
    if not directory.is_dir():
        logger.info("temp_dir_missing", directory=str(directory))
        return []
    removed: List[str] = []
    for entry in directory.iterdir():
        if entry.is_file():
            entry.unlink()
            removed.append(entry.name)
    if removed:
        logger.info("temp_dir_cleared", directory=str(directory), files=removed)
    else:
        logger.info("temp_dir_empty", directory=str(directory))
    return removed

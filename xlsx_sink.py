"""Excel workbook sink for merged formation rows."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from openpyxl import Workbook
from openpyxl.styles import Font

from models import MergedRecord

LOGGER = logging.getLogger(__name__)

SHEET_TITLE = "Formations"
PERCENT_FORMAT = "0.00%"

XLSX_COLUMNS = [
    "Intitulé Mention",
    "Intitulé Parcours",
    "Ville",
    "Code Postal",
    "Département",
    "Région",
    "Alternance",
    "Modalité Mixte",
    "Jury Rectoral",
    "Taux d'Accès",
    "Rang Dernier Appelé",
    "Nombre de Candidatures Confirmées",
    "Capacité d'Accueil",
    "Lien MonMaster",
    "Lien Fiche",
    "Incomplet",
]

_LINK_COLUMNS = {"Lien MonMaster", "Lien Fiche"}


def workbook_filename(query: str) -> str:
    """Return ``formations_<query>.xlsx`` with spaces turned into underscores."""
    return f"formations_{query.strip().replace(' ', '_')}.xlsx"


def record_to_row(record: MergedRecord) -> dict[str, Any]:
    """Flatten a merged record into column label -> cell value."""
    taux = record.taux_acces
    return {
        "Intitulé Mention": record.intitule_mention,
        "Intitulé Parcours": record.intitule_parcours,
        "Ville": record.lieu.ville,
        "Code Postal": record.lieu.code_postal,
        "Département": record.lieu.departement,
        "Région": record.lieu.region,
        "Alternance": _yes_no(record.alternance),
        "Modalité Mixte": _yes_no(record.modalite_mixte),
        "Jury Rectoral": _yes_no(record.jury_rectoral),
        # Fraction, shown through PERCENT_FORMAT.
        "Taux d'Accès": round(taux / 100, 4) if isinstance(taux, (int, float)) else taux,
        "Rang Dernier Appelé": record.rang_dernier_appele,
        "Nombre de Candidatures Confirmées": record.nb_candidatures_confirmees,
        "Capacité d'Accueil": record.capacite,
        "Lien MonMaster": record.lien_monmaster,
        "Lien Fiche": record.lien_fiche,
        "Incomplet": None if record.complete else (record.error or "Oui"),
    }


def write_formations_workbook(records: Iterable[MergedRecord], path: str | Path) -> Path:
    """Write records to a single-sheet workbook at ``path`` and return it."""
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    sheet.append(XLSX_COLUMNS)
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    sheet.freeze_panes = "A2"

    rate_col = XLSX_COLUMNS.index("Taux d'Accès") + 1
    link_cols = {XLSX_COLUMNS.index(name) + 1 for name in _LINK_COLUMNS}

    count = 0
    for record in records:
        row = record_to_row(record)
        sheet.append([row[column] for column in XLSX_COLUMNS])
        row_idx = sheet.max_row
        count += 1

        rate_cell = sheet.cell(row=row_idx, column=rate_col)
        if isinstance(rate_cell.value, (int, float)):
            rate_cell.number_format = PERCENT_FORMAT

        for col in link_cols:
            cell = sheet.cell(row=row_idx, column=col)
            if isinstance(cell.value, str) and cell.value.startswith("http"):
                cell.hyperlink = cell.value
                cell.style = "Hyperlink"

    for col_cells in sheet.columns:
        width = max(len(str(cell.value or "")) for cell in col_cells)
        sheet.column_dimensions[col_cells[0].column_letter].width = min(width + 2, 60)

    workbook.save(output)
    LOGGER.info("Wrote %s rows to %s", count, output)
    return output


def _yes_no(flag: bool) -> str:
    return "Vrai" if flag else "Faux"

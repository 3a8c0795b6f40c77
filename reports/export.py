"""
Export XLSX del report mensile (download dalla app).

Fogli:
  Riepilogo    → voce / valore del riepilogo del mese
  Prenotazioni → prenotazioni del mese
  Partner      → referral e ricavi per partner nel mese
"""

import io

import pandas as pd
from openpyxl.utils import get_column_letter

from core.models import AppState
from reports.pivot import bookings_frame, month_summary, partners_summary


def _autosize(ws) -> None:
    """Larghezza colonne in base al contenuto più lungo."""
    for idx, column in enumerate(ws.iter_cols(values_only=True), start=1):
        width = max((len(str(v)) for v in column if v is not None), default=8)
        ws.column_dimensions[get_column_letter(idx)].width = min(width + 2, 40)


def month_report_xlsx(state: AppState, month_key: str) -> bytes:
    """Report del mese in bytes XLSX."""
    summary = month_summary(state, month_key)
    df_summary = pd.DataFrame(list(summary.items()), columns=["voce", "valore"])

    df_bookings = bookings_frame(state)
    df_bookings = df_bookings[df_bookings["anno_mese"] == month_key]

    df_partners = partners_summary(state, month_key)

    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df_summary.to_excel(writer, index=False, sheet_name="Riepilogo")
        df_bookings.to_excel(writer, index=False, sheet_name="Prenotazioni")
        df_partners.to_excel(writer, index=False, sheet_name="Partner")
        for ws in writer.book.worksheets:
            _autosize(ws)
    return buf.getvalue()

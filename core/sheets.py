"""
Google Sheets storage — il database remoto dell'app.

Ogni tabella logica è un foglio dello stesso Google Sheet:
  rooms, income_records, room_financials, partners, transactions,
  monthly_controls, forecast_records, expense_records

Riga 1 = intestazione (le colonne ammesse in config.TABLE_COLUMNS).
Ogni riga porta la colonna user_id dell'account proprietario.

Autenticazione via Service Account (credenziali in Streamlit secrets):
  [gcp_service_account]  → JSON del service account
  [google_sheets]        → spreadsheet_id
"""

import logging
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import gspread
import streamlit as st
from google.auth.exceptions import GoogleAuthError
from gspread.utils import rowcol_to_a1

from config import ACCOUNT_COLUMN, TABLE_COLUMNS
from core.errors import RemoteStoreError

logger = logging.getLogger(__name__)

Row = Dict[str, object]


def is_configured() -> bool:
    """True se le credenziali Google Sheets sono presenti nei secrets."""
    try:
        _ = st.secrets["gcp_service_account"]
        _ = st.secrets["google_sheets"]["spreadsheet_id"]
        return True
    except Exception:
        # secrets.toml assente o sezioni mancanti
        return False


@st.cache_resource
def get_gspread_client():
    """
    Restituisce client gspread autenticato via Service Account.
    Le credenziali vengono da st.secrets (Streamlit Cloud) o da
    .streamlit/secrets.toml in locale.
    """
    creds_dict = dict(st.secrets["gcp_service_account"])
    return gspread.service_account_from_dict(creds_dict)


@contextmanager
def _remote_call(table: str, action: str):
    """Converte gli errori gspread/rete/credenziali in RemoteStoreError."""
    try:
        yield
    except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError) as exc:
        raise RemoteStoreError(f"{table}: {action} fallito: {exc}") from exc


def to_cell(value) -> str:
    """Valore Python → testo della cella (scrittura RAW, nessuna formula)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return repr(value)
    return str(value)


class SheetsStore:
    """Tabelle remote su un Google Sheet: select / upsert / delete_where."""

    def __init__(self, spreadsheet):
        self._spreadsheet = spreadsheet

    @classmethod
    def from_secrets(cls) -> "SheetsStore":
        gc = get_gspread_client()
        spreadsheet_id = st.secrets["google_sheets"]["spreadsheet_id"]
        with _remote_call("spreadsheet", "apertura"):
            return cls(gc.open_by_key(spreadsheet_id))

    def _worksheet(self, table: str):
        """Apre il foglio della tabella; lo crea con l'intestazione se non esiste."""
        columns = TABLE_COLUMNS[table]
        with _remote_call(table, "apertura foglio"):
            try:
                return self._spreadsheet.worksheet(table)
            except gspread.WorksheetNotFound:
                logger.info("Creo il foglio '%s'", table)
                ws = self._spreadsheet.add_worksheet(title=table, rows=1000, cols=len(columns))
                ws.append_row(columns, value_input_option="RAW")
                return ws

    def _read(self, table: str, ws) -> Tuple[List[str], List[Tuple[int, Dict[str, str]]]]:
        """
        Legge tutte le righe del foglio.
        Returns: (intestazione, [(numero riga 1-indexed, {colonna: testo})])
        """
        with _remote_call(table, "lettura"):
            all_values = ws.get_all_values()
        if not all_values:
            return list(TABLE_COLUMNS[table]), []
        header = [h.strip() for h in all_values[0]]
        records = []
        for offset, values in enumerate(all_values[1:], start=2):
            if not any(str(v).strip() for v in values):
                continue
            padded = list(values) + [""] * (len(header) - len(values))
            records.append((offset, dict(zip(header, padded))))
        return header, records

    def select(self, table: str, account_id: str) -> List[Row]:
        """Righe dell'account; le celle vuote diventano None."""
        ws = self._worksheet(table)
        _, records = self._read(table, ws)
        rows = []
        for _, rec in records:
            if rec.get(ACCOUNT_COLUMN) != account_id:
                continue
            rows.append({k: (v if v != "" else None) for k, v in rec.items() if k})
        return rows

    def upsert(self, table: str, rows: Sequence[Row], key_columns: Sequence[str]) -> int:
        """
        Aggiorna le righe con la stessa chiave, accoda le nuove.
        Una sola lettura, un batch_update e un append_rows per tabella.
        """
        if not rows:
            return 0
        ws = self._worksheet(table)
        header, records = self._read(table, ws)

        existing = {
            tuple(rec.get(col, "") for col in key_columns): row_num
            for row_num, rec in records
        }

        # a parità di chiave vince l'ultima riga
        by_key: Dict[tuple, List[str]] = {}
        for row in rows:
            key = tuple(to_cell(row.get(col)) for col in key_columns)
            by_key[key] = [to_cell(row.get(col)) for col in header]

        updates = []
        appends = []
        for key, values in by_key.items():
            row_num = existing.get(key)
            if row_num is None:
                appends.append(values)
            else:
                cell_range = f"{rowcol_to_a1(row_num, 1)}:{rowcol_to_a1(row_num, len(header))}"
                updates.append({"range": cell_range, "values": [values]})

        with _remote_call(table, "upsert"):
            if updates:
                ws.batch_update(updates, value_input_option="RAW")
            if appends:
                ws.append_rows(appends, value_input_option="RAW")
        return len(by_key)

    def delete_where(
        self,
        table: str,
        account_id: str,
        predicate: Callable[[Dict[str, str]], bool],
    ) -> int:
        """Cancella le righe dell'account per cui predicate(riga) è vero."""
        ws = self._worksheet(table)
        _, records = self._read(table, ws)
        to_delete = [
            row_num for row_num, rec in records
            if rec.get(ACCOUNT_COLUMN) == account_id and predicate(rec)
        ]
        with _remote_call(table, "cancellazione"):
            # dal basso verso l'alto: gli indici delle righe sopra non cambiano
            for row_num in sorted(to_delete, reverse=True):
                ws.delete_rows(row_num)
        if to_delete:
            logger.info("%s: cancellate %d righe", table, len(to_delete))
        return len(to_delete)


def open_store() -> Optional[SheetsStore]:
    """SheetsStore dai secrets, oppure None se Google Sheets non è configurato."""
    if not is_configured():
        logger.warning("Google Sheets non configurato: dati non persistiti")
        return None
    return SheetsStore.from_secrets()

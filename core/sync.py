"""
Sincronizzazione schema-strict tra AppState e i fogli remoti.

Salvataggio completo:
  1. lo stato viene scomposto in un batch di righe per tabella
  2. ogni riga viene ripulita dalle colonne non ammesse (warning, non errore)
  3. le colonne chiave devono essere valorizzate, altrimenti la tabella fallisce
  4. le righe remote dell'account assenti dallo stato vengono cancellate,
     PRIMA dell'upsert (niente righe "resuscitate")
  5. upsert delle righe rimaste

Ogni tabella è indipendente: un errore su una tabella non blocca le altre e
finisce nel SaveReport.

Id non-UUID (es. "rc-001" del catalogo di default) vengono sostituiti da un
uuid5 deterministico (tipo entità + id originale): salvare due volte lo stesso
elemento aggiorna la stessa riga.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set

from config import (
    ACCOUNT_COLUMN,
    ENTITY_COST_CATALOG,
    ENTITY_HOTEL_COST,
    ENTITY_MANUAL_REFERRAL,
    LEGACY_REFERRAL_TYPES,
    STORAGE_ID_NAMESPACE,
    TABLE_BOOKINGS,
    TABLE_COLUMNS,
    TABLE_EXPENSES,
    TABLE_FORECASTS,
    TABLE_KEYS,
    TABLE_MONTH_LOCKS,
    TABLE_PARTNERS,
    TABLE_ROOM_FINANCIALS,
    TABLE_ROOMS,
    TABLE_TRANSACTIONS,
)
from core import mappings
from core.errors import MissingKeyError, SaveError, StorageError
from core.models import AppState, Booking, CostCatalogItem, HotelCost
from core.sheets import to_cell

logger = logging.getLogger(__name__)

Row = Dict[str, object]

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

REFERRAL_TYPES = (ENTITY_MANUAL_REFERRAL,) + tuple(LEGACY_REFERRAL_TYPES)


def is_uuid(value) -> bool:
    return bool(value) and bool(UUID_RE.match(str(value)))


def storage_id(entity_type: str, raw_id: Optional[str]) -> Optional[str]:
    """
    Id compatibile con lo storage. UUID → invariato; altro → uuid5 stabile.
    Id vuoti restano vuoti: il controllo chiavi li rifiuterà.
    """
    if raw_id is None or str(raw_id).strip() == "":
        return raw_id
    if is_uuid(raw_id):
        return str(raw_id)
    return str(uuid.uuid5(STORAGE_ID_NAMESPACE, f"{entity_type}:{raw_id}"))


def sanitize_row(table: str, row: Row) -> Row:
    """Tiene solo le colonne ammesse per la tabella."""
    allowed = set(TABLE_COLUMNS[table])
    clean = {k: v for k, v in row.items() if k in allowed}
    stripped = sorted(k for k in row if k not in allowed)
    if stripped:
        logger.warning("%s: rimosse colonne sconosciute %s", table, ", ".join(stripped))
    return clean


def require_keys(table: str, rows: Sequence[Row]) -> None:
    for i, row in enumerate(rows):
        for col in TABLE_KEYS[table]:
            value = row.get(col)
            if value is None or str(value).strip() == "":
                logger.error("%s: chiave '%s' mancante (riga %d)", table, col, i)
                raise MissingKeyError(table, col, i)


# ─── Batch per tabella ──────────────────────────────────────────────────────

def _owned(row: Row, account_id: str) -> Row:
    row[ACCOUNT_COLUMN] = account_id
    return row


def room_rows(state: AppState, account_id: str) -> List[Row]:
    rows = []
    for r in state.rooms:
        row = mappings.room_to_row(r)
        row["id"] = storage_id("room", r.id)
        rows.append(_owned(row, account_id))
    return rows


def booking_row(b: Booking, account_id: str) -> Row:
    row = mappings.booking_to_row(b)
    row["id"] = storage_id("booking", b.id)
    row["room_id"] = storage_id("room", b.room_id)
    row["amount"] = b.income
    return _owned(row, account_id)


def booking_rows(state: AppState, account_id: str) -> List[Row]:
    return [booking_row(b, account_id) for b in state.bookings]


def cost_catalog_row(item: CostCatalogItem, account_id: str) -> Row:
    row = mappings.cost_catalog_to_row(item)
    row["id"] = storage_id(ENTITY_COST_CATALOG, item.id)
    row["room_id"] = storage_id("room", item.room_id)
    return _owned(row, account_id)


def hotel_cost_row(cost: HotelCost, account_id: str) -> Row:
    row = mappings.hotel_cost_to_row(cost)
    row["id"] = storage_id(ENTITY_HOTEL_COST, cost.id)
    return _owned(row, account_id)


def room_financials_rows(state: AppState, account_id: str) -> List[Row]:
    """Catalogo costi e costi hotel nella stessa tabella, distinti da entity_type."""
    rows = [cost_catalog_row(item, account_id) for item in state.cost_catalog]
    rows.extend(hotel_cost_row(cost, account_id) for cost in state.hotel_costs)
    return rows


def partner_rows(state: AppState, account_id: str) -> List[Row]:
    rows = []
    for p in state.partners:
        row = mappings.partner_to_row(p)
        row["id"] = storage_id("partner", p.id)
        rows.append(_owned(row, account_id))
    return rows


def transaction_rows(state: AppState, account_id: str) -> List[Row]:
    rows = []
    for m in state.manual_referrals:
        row = mappings.manual_referral_to_row(m)
        row["id"] = storage_id(ENTITY_MANUAL_REFERRAL, m.id)
        row["partner_id"] = storage_id("partner", m.partner_id)
        row["amount"] = m.commission_earned
        rows.append(_owned(row, account_id))
    return rows


def month_lock_rows(state: AppState, account_id: str) -> List[Row]:
    return [_owned(mappings.month_lock_to_row(m), account_id) for m in state.month_locks.values()]


def forecast_rows(state: AppState, account_id: str) -> List[Row]:
    rows = []
    for f in state.forecasts:
        row = mappings.forecast_to_row(f)
        row["id"] = storage_id("forecast", f.id)
        rows.append(_owned(row, account_id))
    return rows


def expense_rows(state: AppState, account_id: str) -> List[Row]:
    rows = []
    for e in state.expenses:
        row = mappings.expense_to_row(e)
        row["id"] = storage_id("expense", e.id)
        row["room_id"] = storage_id("room", e.room_id)
        row["booking_id"] = storage_id("booking", e.booking_id)
        rows.append(_owned(row, account_id))
    return rows


# tabella → costruttore del batch. Le camere per prime.
BATCH_BUILDERS = [
    (TABLE_ROOMS, room_rows),
    (TABLE_BOOKINGS, booking_rows),
    (TABLE_ROOM_FINANCIALS, room_financials_rows),
    (TABLE_PARTNERS, partner_rows),
    (TABLE_TRANSACTIONS, transaction_rows),
    (TABLE_MONTH_LOCKS, month_lock_rows),
    (TABLE_FORECASTS, forecast_rows),
    (TABLE_EXPENSES, expense_rows),
]

# righe remote che il salvataggio completo può cancellare
SYNC_DELETE_SCOPE: Dict[str, Callable[[Dict[str, str]], bool]] = {
    TABLE_TRANSACTIONS: lambda rec: rec.get("type") in REFERRAL_TYPES,
}


def build_batches(state: AppState, account_id: str) -> Dict[str, List[Row]]:
    return {table: build(state, account_id) for table, build in BATCH_BUILDERS}


# ─── Scrittura ──────────────────────────────────────────────────────────────

@dataclass
class SaveReport:
    """Esito di un salvataggio completo, tabella per tabella."""
    saved: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    schema_failures: Set[str] = field(default_factory=set)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def user_facing_failures(self) -> Dict[str, str]:
        """Errori da notificare all'utente (esclusi quelli di forma dello schema)."""
        return {t: msg for t, msg in self.failures.items() if t not in self.schema_failures}

    def add_failure(self, table: str, exc: Exception) -> None:
        self.failures[table] = str(exc)
        if isinstance(exc, MissingKeyError):
            self.schema_failures.add(table)

    def to_error(self) -> Optional[SaveError]:
        return SaveError(self.failures) if self.failures else None

    def raise_for_failures(self) -> None:
        if self.failures:
            raise SaveError(self.failures)


def save_table(
    remote,
    account_id: str,
    table: str,
    rows: Sequence[Row],
    sync_deletes: bool = True,
) -> int:
    """Ripulisce, valida le chiavi, cancella le righe sparite e fa l'upsert."""
    key_columns = TABLE_KEYS[table]
    clean = [sanitize_row(table, row) for row in rows]
    require_keys(table, clean)

    if sync_deletes:
        keep = {tuple(to_cell(row.get(col)) for col in key_columns) for row in clean}
        scope = SYNC_DELETE_SCOPE.get(table)

        def stale(rec: Dict[str, str]) -> bool:
            if scope is not None and not scope(rec):
                return False
            return tuple(rec.get(col, "") for col in key_columns) not in keep

        remote.delete_where(table, account_id, stale)

    return remote.upsert(table, clean, key_columns)


def save_state(remote, account_id: str, state: AppState, sync_deletes: bool = True) -> SaveReport:
    """Salva tutte le tabelle; gli errori sono isolati per tabella."""
    report = SaveReport()
    for table, build in BATCH_BUILDERS:
        try:
            written = save_table(remote, account_id, table, build(state, account_id), sync_deletes)
        except StorageError as exc:
            logger.error("%s: salvataggio fallito: %s", table, exc)
            report.add_failure(table, exc)
        except Exception as exc:
            logger.exception("%s: errore inatteso nel salvataggio", table)
            report.add_failure(table, exc)
        else:
            logger.debug("%s: %d righe salvate", table, written)
            report.saved.append(table)
    return report


# ─── Lettura ────────────────────────────────────────────────────────────────

LOAD_ERRORS = (ValueError, TypeError, AttributeError, KeyError)


def _read_entities(remote, table: str, account_id: str, from_row, skipped, keep=None) -> list:
    """Righe dell'account convertite in entità; quelle illeggibili vengono scartate."""
    entities = []
    for row in remote.select(table, account_id):
        if keep is not None and not keep(row):
            continue
        try:
            entities.append(from_row(row))
        except LOAD_ERRORS as exc:
            logger.warning("%s: riga %s scartata: %s", table, row.get("id"), exc)
            if skipped is not None:
                skipped.append((table, row.get("id")))
    return entities


def load_state(remote, account_id: str, skipped: Optional[list] = None) -> AppState:
    """
    Ricostruisce l'AppState dell'account. Gli errori remoti vengono propagati.
    Le righe illeggibili finiscono in skipped come (tabella, id).
    """
    def read(table, from_row, keep=None):
        return _read_entities(remote, table, account_id, from_row, skipped, keep)

    financials = [e for e in read(TABLE_ROOM_FINANCIALS, mappings.room_financial_from_row) if e is not None]
    month_locks = {m.month_key: m for m in read(TABLE_MONTH_LOCKS, mappings.month_lock_from_row)}
    return AppState(
        rooms=tuple(read(TABLE_ROOMS, mappings.room_from_row)),
        bookings=tuple(read(TABLE_BOOKINGS, mappings.booking_from_row)),
        cost_catalog=tuple(e for e in financials if isinstance(e, CostCatalogItem)),
        hotel_costs=tuple(e for e in financials if isinstance(e, HotelCost)),
        partners=tuple(read(TABLE_PARTNERS, mappings.partner_from_row)),
        manual_referrals=tuple(read(
            TABLE_TRANSACTIONS, mappings.manual_referral_from_row,
            keep=lambda r: r.get("type") in REFERRAL_TYPES,
        )),
        month_locks=month_locks,
        forecasts=tuple(read(TABLE_FORECASTS, mappings.forecast_from_row)),
        expenses=tuple(read(TABLE_EXPENSES, mappings.expense_from_row)),
    )


# ─── Scritture puntuali (senza debounce) ────────────────────────────────────

def save_partners(remote, account_id: str, state: AppState) -> int:
    return save_table(remote, account_id, TABLE_PARTNERS, partner_rows(state, account_id), sync_deletes=False)


def save_manual_referrals(remote, account_id: str, state: AppState) -> int:
    return save_table(
        remote, account_id, TABLE_TRANSACTIONS, transaction_rows(state, account_id), sync_deletes=False,
    )


def delete_by_id(remote, account_id: str, table: str, entity_type: str, entity_id: str) -> int:
    """Cancella una sola riga dell'account, per id (normalizzato)."""
    sid = storage_id(entity_type, entity_id)
    return remote.delete_where(table, account_id, lambda rec: rec.get("id") == sid)


def update_booking(remote, account_id: str, booking: Booking) -> Booking:
    """Upsert di una sola prenotazione; restituisce la prenotazione salvata."""
    save_table(remote, account_id, TABLE_BOOKINGS, [booking_row(booking, account_id)], sync_deletes=False)
    return booking


def add_room_cost(remote, account_id: str, item: CostCatalogItem) -> int:
    return save_table(
        remote, account_id, TABLE_ROOM_FINANCIALS, [cost_catalog_row(item, account_id)], sync_deletes=False,
    )

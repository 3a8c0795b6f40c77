"""
Adapter di persistenza usato dall'EntityStore.

StorageAdapter   → contratto + implementazione che non persiste nulla
                   (Google Sheets non configurato, nessun account)
SheetsAdapter    → Google Sheets: caricamento completo, salvataggio completo
                   con debounce, scritture puntuali immediate

Gli errori remoti restano qui: lo store non riceve mai eccezioni di storage.
I fallimenti vengono loggati e inoltrati al callback on_error (notifica UI).

Le scritture remote (salvataggio completo e puntuali) passano tutte da un
solo lock: i fogli sono indirizzati per numero di riga, due scritture
contemporanee cancellerebbero le righe sbagliate.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Optional

from config import (
    ENTITY_MANUAL_REFERRAL,
    SAVE_DEBOUNCE_SECONDS,
    TABLE_EXPENSES,
    TABLE_PARTNERS,
    TABLE_TRANSACTIONS,
)
from core import sync
from core.errors import NotAuthenticatedError, SaveError, StorageError
from core.models import AppState, Booking, CostCatalogItem
from core.scheduler import SaveScheduler
from core.sync import SaveReport

logger = logging.getLogger(__name__)


class StorageAdapter:
    """
    Contratto di persistenza. Questa implementazione non scrive nulla:
    lo stato vive solo in memoria per la sessione.
    """

    def load_state(self, strict: bool = False) -> AppState:
        return AppState.empty()

    def save_state(self, state: AppState) -> None:
        pass

    def flush(self) -> Optional[SaveReport]:
        return None

    def close(self) -> Optional[SaveReport]:
        return self.flush()

    # ── scritture puntuali ──

    def update_booking_now(self, booking: Booking) -> Optional[Booking]:
        return None

    def save_partners_now(self, state: AppState) -> None:
        pass

    def delete_partner_now(self, partner_id: str) -> None:
        pass

    def save_manual_referrals_now(self, state: AppState) -> None:
        pass

    def delete_manual_referral_now(self, referral_id: str) -> None:
        pass

    def delete_expense_now(self, expense_id: str) -> None:
        pass

    def add_room_cost_now(self, item: CostCatalogItem, room_id: str) -> None:
        pass


class SheetsAdapter(StorageAdapter):
    """
    Persistenza su Google Sheets per un account.

    Args:
        remote:        SheetsStore (None = non configurato)
        account_id:    account autenticato (None = nessun account)
        delay:         finestra di debounce del salvataggio completo
        timer_factory: costruttore del timer (threading.Timer)
        on_error:      callback(StorageError) per le notifiche all'utente
    """

    def __init__(
        self,
        remote=None,
        account_id: Optional[str] = None,
        delay: float = SAVE_DEBOUNCE_SECONDS,
        timer_factory=threading.Timer,
        on_error: Optional[Callable[[StorageError], None]] = None,
    ):
        self.remote = remote
        self.account_id = account_id
        self.on_error = on_error
        self.last_report: Optional[SaveReport] = None
        # cancellazioni di sincronizzazione solo dopo un caricamento riuscito
        self._loaded_ok = False
        self._write_lock = threading.Lock()
        self._scheduler = SaveScheduler(self._write_state, delay, timer_factory)

    @property
    def enabled(self) -> bool:
        return self.remote is not None and bool(self.account_id)

    @property
    def has_pending(self) -> bool:
        return self._scheduler.has_pending

    def _notify(self, exc: StorageError) -> None:
        if self.on_error is not None:
            self.on_error(exc)

    # ── caricamento ──

    def load_state(self, strict: bool = False) -> AppState:
        """
        Stato completo dell'account.
        Non configurato o senza account → stato vuoto (strict: NotAuthenticatedError
        se manca l'account). Errori remoti → stato vuoto (strict: propagati).
        """
        if not self.account_id:
            if strict:
                raise NotAuthenticatedError("Nessun account autenticato")
            return AppState.empty()
        if self.remote is None:
            return AppState.empty()
        skipped = []
        try:
            state = sync.load_state(self.remote, self.account_id, skipped=skipped)
        except (StorageError, ValueError, TypeError, AttributeError, KeyError) as exc:
            if strict:
                raise
            logger.exception("Caricamento fallito, uso lo stato vuoto: %s", exc)
            self._loaded_ok = False
            return AppState.empty()
        # righe illeggibili restano sul foglio: niente cancellazioni di sincronizzazione
        self._loaded_ok = not skipped
        if skipped:
            logger.warning("Caricamento parziale: %d righe scartate", len(skipped))
        logger.info(
            "Caricato account %s: %d camere, %d prenotazioni",
            self.account_id, len(state.rooms), len(state.bookings),
        )
        return state

    # ── salvataggio completo ──

    def save_state(self, state: AppState) -> None:
        """Mette in coda il salvataggio completo (debounce)."""
        if not self.enabled:
            return
        self._scheduler.schedule(state)

    def flush(self) -> Optional[SaveReport]:
        """Scrive subito lo stato in coda; None se non c'era nulla in coda."""
        return self._scheduler.flush()

    def cancel_pending(self) -> bool:
        return self._scheduler.cancel_pending()

    def _write_state(self, state: AppState) -> SaveReport:
        if not self.enabled:
            return SaveReport()
        if not self._loaded_ok:
            logger.warning("Stato non caricato dal remoto: salvo senza cancellazioni")
        try:
            with self._write_lock:
                report = sync.save_state(self.remote, self.account_id, state, sync_deletes=self._loaded_ok)
        except Exception as exc:
            logger.exception("Salvataggio interrotto")
            report = SaveReport()
            report.add_failure("stato", exc)
        self.last_report = report
        if report.failures:
            logger.error("Salvataggio parziale, tabelle fallite: %s", ", ".join(report.failures))
        user_facing = report.user_facing_failures
        if user_facing:
            self._notify(SaveError(user_facing))
        return report

    # ── scritture puntuali ──

    def _now(self, action: str, fn, *args):
        if not self.enabled:
            return None
        try:
            with self._write_lock:
                return fn(self.remote, self.account_id, *args)
        except StorageError as exc:
            logger.error("%s fallito: %s", action, exc)
            self._notify(exc)
            return None

    def update_booking_now(self, booking: Booking) -> Optional[Booking]:
        return self._now("update_booking", sync.update_booking, booking)

    def save_partners_now(self, state: AppState) -> None:
        self._now("save_partners", sync.save_partners, state)

    def delete_partner_now(self, partner_id: str) -> None:
        self._now("delete_partner", sync.delete_by_id, TABLE_PARTNERS, "partner", partner_id)

    def save_manual_referrals_now(self, state: AppState) -> None:
        self._now("save_manual_referrals", sync.save_manual_referrals, state)

    def delete_manual_referral_now(self, referral_id: str) -> None:
        self._now(
            "delete_manual_referral", sync.delete_by_id,
            TABLE_TRANSACTIONS, ENTITY_MANUAL_REFERRAL, referral_id,
        )

    def delete_expense_now(self, expense_id: str) -> None:
        self._now("delete_expense", sync.delete_by_id, TABLE_EXPENSES, "expense", expense_id)

    def add_room_cost_now(self, item: CostCatalogItem, room_id: str) -> None:
        self._now("add_room_cost", sync.add_room_cost, replace(item, room_id=room_id))

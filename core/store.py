"""
EntityStore: stato dell'applicazione per una sessione.

Tiene AppState (immutabile, sostituito a ogni modifica) e UIState, applica
le transizioni pure di core.transitions e poi chiede all'adapter di salvare.
Una sola istanza per sessione utente, creata dopo il login (vedi app.py).

I rifiuti di validazione sono booleani: create_booking / update_booking /
add_manual_referral restituiscono False senza toccare lo stato.
"""

import logging
from datetime import date
from typing import Optional, Tuple

from core import transitions
from core.calc_engine import new_id, to_month_key
from core.conflicts import has_conflict
from core.models import (
    AppState,
    Booking,
    BookingInput,
    CostCatalogItem,
    HotelCost,
    PartnerStats,
    UIState,
)
from core.storage import StorageAdapter
from core.sync import SaveReport

logger = logging.getLogger(__name__)


class EntityStore:

    def __init__(self, adapter: Optional[StorageAdapter] = None, month_key: Optional[str] = None):
        self.adapter = adapter or StorageAdapter()
        self.state = AppState.empty()
        self.ui = UIState(selected_month_key=month_key or to_month_key(date.today()))

    # ── ciclo di vita ──

    def hydrate(self, strict: bool = False) -> AppState:
        """Carica lo stato dall'adapter; catalogo di default se vuoto."""
        loaded = self.adapter.load_state(strict=strict)
        self.state = transitions.seed_default_catalog(loaded)
        self.ui.is_hydrated = True
        return self.state

    def close(self) -> Optional[SaveReport]:
        """Scrive subito l'eventuale salvataggio in coda."""
        return self.adapter.close()

    def _commit(self, new_state: Optional[AppState]) -> bool:
        if new_state is None:
            return False
        if new_state is not self.state:
            self.state = new_state
            self.adapter.save_state(new_state)
        return True

    # ── UI ──

    def set_selected_month_key(self, month_key: str) -> None:
        self.ui.selected_month_key = month_key

    # ── camere ──

    def add_room(self, name: str, number: Optional[str] = None):
        self._commit(transitions.add_room(self.state, name, number))
        return self.state.rooms[-1]

    def update_room(self, room_id: str, name: str, number: Optional[str] = None) -> None:
        self._commit(transitions.update_room(self.state, room_id, name, number))

    def delete_room(self, room_id: str) -> None:
        self._commit(transitions.delete_room(self.state, room_id))

    # ── prenotazioni ──

    def is_month_locked(self, month_key: str) -> bool:
        return transitions.is_month_locked(self.state, month_key)

    def has_conflict(
        self, room_id: str, start: date, end: date, exclude_id: Optional[str] = None,
    ) -> bool:
        """Solo lettura: usato anche per evidenziare i conflitti nella UI."""
        return has_conflict(self.state.bookings, room_id, start, end, exclude_id)

    def create_booking(self, data: BookingInput) -> bool:
        accepted = self._commit(transitions.create_booking(self.state, data))
        if not accepted:
            logger.info("Prenotazione rifiutata per la camera %s dal %s", data.room_id, data.start_date)
        return accepted

    def update_booking(self, booking_id: str, **changes) -> bool:
        return self._commit(transitions.update_booking(self.state, booking_id, **changes))

    def delete_booking(self, booking_id: str) -> None:
        self._commit(transitions.delete_booking(self.state, booking_id))

    def save_booking_now(self, booking_id: str) -> Optional[Booking]:
        """Scrive subito una sola prenotazione, senza attendere il debounce."""
        booking = next((b for b in self.state.bookings if b.id == booking_id), None)
        if booking is None:
            return None
        return self.adapter.update_booking_now(booking)

    # ── catalogo costi ──

    def add_cost_catalog_item(self, item: CostCatalogItem) -> None:
        self._commit(transitions.add_cost_catalog_item(self.state, item))

    def update_cost_catalog_item(self, item_id: str, **changes) -> None:
        self._commit(transitions.update_cost_catalog_item(self.state, item_id, **changes))

    def delete_cost_catalog_item(self, item_id: str) -> None:
        self._commit(transitions.delete_cost_catalog_item(self.state, item_id))

    def add_room_cost(
        self,
        room_id: str,
        label: str,
        unit_cost: float,
        default_qty: int = 1,
        category: Optional[str] = None,
    ) -> CostCatalogItem:
        """Voce di costo aggiunta da una camera: scritta subito sul remoto."""
        item = CostCatalogItem(
            id=new_id(), type="room", label=label, unit_cost=unit_cost,
            default_qty=default_qty, category=category, room_id=room_id,
        )
        self._commit(transitions.add_room_cost(self.state, item, room_id))
        self.adapter.add_room_cost_now(item, room_id)
        return item

    # ── costi hotel ──

    def add_hotel_cost(
        self,
        label: str,
        amount: float,
        category: str,
        frequency_type: str = "monthly",
        period_key: Optional[str] = None,
    ) -> None:
        self._commit(transitions.add_hotel_cost(
            self.state, label, amount, category,
            month_key=self.ui.selected_month_key,
            frequency_type=frequency_type,
            period_key=period_key,
        ))

    def update_hotel_cost(self, cost_id: str, label: str, amount: float, category: str) -> None:
        self._commit(transitions.update_hotel_cost(self.state, cost_id, label, amount, category))

    def toggle_hotel_cost_active(self, cost_id: str) -> None:
        self._commit(transitions.toggle_hotel_cost_active(self.state, cost_id))

    def delete_hotel_cost(self, cost_id: str) -> None:
        self._commit(transitions.delete_hotel_cost(self.state, cost_id))

    def active_hotel_costs(self, month_key: Optional[str] = None) -> Tuple[HotelCost, ...]:
        return transitions.active_hotel_costs(self.state, month_key or self.ui.selected_month_key)

    # ── partner ──

    def add_partner(self, **fields) -> None:
        self._commit(transitions.add_partner(self.state, **fields))
        self.adapter.save_partners_now(self.state)

    def update_partner(self, partner_id: str, **fields) -> None:
        self._commit(transitions.update_partner(self.state, partner_id, **fields))
        self.adapter.save_partners_now(self.state)

    def toggle_partner_active(self, partner_id: str) -> None:
        self._commit(transitions.toggle_partner_active(self.state, partner_id))
        self.adapter.save_partners_now(self.state)

    def delete_partner(self, partner_id: str) -> None:
        self._commit(transitions.delete_partner(self.state, partner_id))
        self.adapter.delete_partner_now(partner_id)

    def add_manual_referral(
        self,
        partner_id: str,
        guests_count: int,
        referral_date: date,
        notes: Optional[str] = None,
        order_amount: float = 0.0,
    ) -> bool:
        accepted = self._commit(transitions.add_manual_referral(
            self.state, partner_id, guests_count, referral_date, notes, order_amount,
        ))
        if accepted:
            self.adapter.save_manual_referrals_now(self.state)
        return accepted

    def delete_manual_referral(self, referral_id: str) -> None:
        self._commit(transitions.delete_manual_referral(self.state, referral_id))
        self.adapter.delete_manual_referral_now(referral_id)

    def get_partner_stats(self, partner_id: str, month_key: Optional[str] = None) -> PartnerStats:
        return transitions.partner_stats(self.state, partner_id, month_key)

    def get_all_partners_stats(self, month_key: Optional[str] = None) -> Tuple[PartnerStats, ...]:
        return transitions.all_partners_stats(self.state, month_key)

    # ── blocco mese ──

    def toggle_month_lock(self, month_key: str) -> None:
        self._commit(transitions.toggle_month_lock(self.state, month_key))

    # ── previsioni ──

    def add_forecast(
        self,
        month_key: str,
        category: str,
        expected_amount: float,
        confidence: int,
        period: str = "monthly",
        type: str = "income",
    ) -> None:
        self._commit(transitions.add_forecast(
            self.state, month_key, category, expected_amount, confidence, period, type,
        ))

    def update_forecast(self, forecast_id: str, **changes) -> None:
        self._commit(transitions.update_forecast(self.state, forecast_id, **changes))

    def delete_forecast(self, forecast_id: str) -> None:
        self._commit(transitions.delete_forecast(self.state, forecast_id))

    # ── spese ──

    def add_expense(self, **fields) -> None:
        self._commit(transitions.add_expense(self.state, **fields))

    def update_expense(self, expense_id: str, **changes) -> None:
        self._commit(transitions.update_expense(self.state, expense_id, **changes))

    def delete_expense(self, expense_id: str) -> None:
        self._commit(transitions.delete_expense(self.state, expense_id))
        self.adapter.delete_expense_now(expense_id)

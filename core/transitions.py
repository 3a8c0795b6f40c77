"""
Transizioni di stato pure: AppState + azione → nuovo AppState.

Nessun I/O: la persistenza la decide chi chiama (EntityStore).
Le scritture di prenotazioni rifiutate (mese bloccato, sovrapposizione)
restituiscono None; gli id sconosciuti lasciano lo stato invariato.
"""

from dataclasses import replace
from datetime import date
from typing import Optional, Tuple

from config import DEFAULT_ROOM_COSTS
from core.calc_engine import (
    booking_to_input,
    hotel_cost_matches_month,
    new_id,
    normalize_and_compute_booking,
    now_iso,
    partner_commission,
    period_key_for_month,
    to_month_key,
)
from core.conflicts import has_conflict
from core.models import (
    AppState,
    BookingInput,
    CostCatalogItem,
    Expense,
    Forecast,
    HotelCost,
    ManualReferral,
    MonthLock,
    Partner,
    PartnerStats,
    Room,
    SelectedCost,
)


def _replace_by_id(items: tuple, item_id: str, **changes) -> tuple:
    return tuple(replace(x, **changes) if x.id == item_id else x for x in items)


def _without(items: tuple, item_id: str) -> tuple:
    return tuple(x for x in items if x.id != item_id)


def _find(items: tuple, item_id: str):
    return next((x for x in items if x.id == item_id), None)


# ─── Camere ─────────────────────────────────────────────────────────────────

def add_room(state: AppState, name: str, number: Optional[str] = None, now: Optional[str] = None) -> AppState:
    room = Room(id=new_id(), name=name, number=number, created_at=now or now_iso())
    return replace(state, rooms=state.rooms + (room,))


def update_room(state: AppState, room_id: str, name: str, number: Optional[str] = None) -> AppState:
    if _find(state.rooms, room_id) is None:
        return state
    return replace(state, rooms=_replace_by_id(state.rooms, room_id, name=name, number=number))


def delete_room(state: AppState, room_id: str) -> AppState:
    """Rimuove la camera e tutte le sue prenotazioni in un solo passaggio."""
    return replace(
        state,
        rooms=_without(state.rooms, room_id),
        bookings=tuple(b for b in state.bookings if b.room_id != room_id),
    )


# ─── Prenotazioni ───────────────────────────────────────────────────────────

def is_month_locked(state: AppState, month_key: str) -> bool:
    lock = state.month_locks.get(month_key)
    return bool(lock and lock.is_locked)


def create_booking(state: AppState, data: BookingInput, now: Optional[str] = None) -> Optional[AppState]:
    """None se il mese di inizio è bloccato o la camera è già occupata."""
    if is_month_locked(state, to_month_key(data.start_date)):
        return None
    if has_conflict(state.bookings, data.room_id, data.start_date, data.end_date):
        return None
    booking = normalize_and_compute_booking(data, now=now)
    return replace(state, bookings=state.bookings + (booking,))


def update_booking(state: AppState, booking_id: str, now: Optional[str] = None, **changes) -> Optional[AppState]:
    """
    Unisce i campi modificati alla prenotazione esistente e ricalcola tutto.
    I campi a None restano quelli della prenotazione esistente.
    Il mese bloccato NON impedisce la modifica; la sovrapposizione sì.
    None se la prenotazione non esiste o si sovrappone a un'altra.
    """
    existing = _find(state.bookings, booking_id)
    if existing is None:
        return None
    changes = {k: v for k, v in changes.items() if v is not None}
    changes.pop("id", None)
    merged = replace(booking_to_input(existing), **changes)
    if has_conflict(state.bookings, merged.room_id, merged.start_date, merged.end_date, exclude_id=booking_id):
        return None
    booking = normalize_and_compute_booking(merged, now=now)
    return replace(state, bookings=tuple(booking if b.id == booking_id else b for b in state.bookings))


def delete_booking(state: AppState, booking_id: str) -> AppState:
    return replace(state, bookings=_without(state.bookings, booking_id))


# ─── Catalogo costi ─────────────────────────────────────────────────────────

def default_cost_catalog() -> Tuple[CostCatalogItem, ...]:
    return tuple(
        CostCatalogItem(id=item_id, type="room", label=label, unit_cost=unit_cost, default_qty=qty)
        for item_id, label, unit_cost, qty in DEFAULT_ROOM_COSTS
    )


def seed_default_catalog(state: AppState) -> AppState:
    """Catalogo di default se l'account non ne ha ancora uno."""
    if state.cost_catalog:
        return state
    return replace(state, cost_catalog=default_cost_catalog())


def add_cost_catalog_item(state: AppState, item: CostCatalogItem) -> AppState:
    return replace(state, cost_catalog=state.cost_catalog + (item,))


def update_cost_catalog_item(state: AppState, item_id: str, **changes) -> AppState:
    # le prenotazioni esistenti tengono i loro snapshot
    changes = {k: v for k, v in changes.items() if v is not None}
    changes.pop("id", None)
    if _find(state.cost_catalog, item_id) is None:
        return state
    return replace(state, cost_catalog=_replace_by_id(state.cost_catalog, item_id, **changes))


def delete_cost_catalog_item(state: AppState, item_id: str) -> AppState:
    return replace(state, cost_catalog=_without(state.cost_catalog, item_id))


def add_room_cost(state: AppState, item: CostCatalogItem, room_id: str) -> AppState:
    return add_cost_catalog_item(state, replace(item, room_id=room_id))


# ─── Costi hotel ────────────────────────────────────────────────────────────

def add_hotel_cost(
    state: AppState,
    label: str,
    amount: float,
    category: str,
    month_key: str,
    frequency_type: str = "monthly",
    period_key: Optional[str] = None,
    now: Optional[str] = None,
) -> AppState:
    """period_key mancante → derivato dal mese selezionato e dalla frequenza."""
    cost = HotelCost(
        id=new_id(),
        label=label,
        amount=amount,
        category=category,
        frequency_type=frequency_type,
        period_key=period_key or period_key_for_month(month_key, frequency_type),
        created_at=now or now_iso(),
    )
    return replace(state, hotel_costs=state.hotel_costs + (cost,))


def update_hotel_cost(
    state: AppState, cost_id: str, label: str, amount: float, category: str, now: Optional[str] = None,
) -> AppState:
    if _find(state.hotel_costs, cost_id) is None:
        return state
    hotel_costs = _replace_by_id(
        state.hotel_costs, cost_id,
        label=label, amount=amount, category=category, updated_at=now or now_iso(),
    )
    return replace(state, hotel_costs=hotel_costs)


def toggle_hotel_cost_active(state: AppState, cost_id: str, now: Optional[str] = None) -> AppState:
    cost = _find(state.hotel_costs, cost_id)
    if cost is None:
        return state
    hotel_costs = _replace_by_id(
        state.hotel_costs, cost_id, is_active=not cost.is_active, updated_at=now or now_iso(),
    )
    return replace(state, hotel_costs=hotel_costs)


def delete_hotel_cost(state: AppState, cost_id: str) -> AppState:
    return replace(state, hotel_costs=_without(state.hotel_costs, cost_id))


def active_hotel_costs(state: AppState, month_key: str) -> Tuple[HotelCost, ...]:
    return tuple(c for c in state.hotel_costs if c.is_active and hotel_cost_matches_month(c, month_key))


# ─── Partner ────────────────────────────────────────────────────────────────

def add_partner(
    state: AppState,
    name: str,
    type: str,
    phone: str,
    email: str,
    commission_type: str,
    commission_value: float,
    discount_for_guests: Optional[float] = None,
    location: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[str] = None,
) -> AppState:
    partner = Partner(
        id=new_id(),
        name=name,
        type=type,
        phone=phone,
        email=email,
        commission_type=commission_type,
        commission_value=commission_value,
        discount_for_guests=discount_for_guests,
        location=location,
        notes=notes,
        created_at=now or now_iso(),
    )
    return replace(state, partners=state.partners + (partner,))


def update_partner(state: AppState, partner_id: str, now: Optional[str] = None, **fields) -> AppState:
    if _find(state.partners, partner_id) is None:
        return state
    fields.pop("id", None)
    partners = _replace_by_id(state.partners, partner_id, updated_at=now or now_iso(), **fields)
    return replace(state, partners=partners)


def toggle_partner_active(state: AppState, partner_id: str, now: Optional[str] = None) -> AppState:
    partner = _find(state.partners, partner_id)
    if partner is None:
        return state
    partners = _replace_by_id(
        state.partners, partner_id, is_active=not partner.is_active, updated_at=now or now_iso(),
    )
    return replace(state, partners=partners)


def delete_partner(state: AppState, partner_id: str) -> AppState:
    return replace(state, partners=_without(state.partners, partner_id))


def add_manual_referral(
    state: AppState,
    partner_id: str,
    guests_count: int,
    referral_date: date,
    notes: Optional[str] = None,
    order_amount: float = 0.0,
    now: Optional[str] = None,
) -> Optional[AppState]:
    """Commissione calcolata con la tariffa attuale del partner. None se il partner non esiste."""
    partner = _find(state.partners, partner_id)
    if partner is None:
        return None
    referral = ManualReferral(
        id=new_id(),
        partner_id=partner_id,
        guests_count=guests_count,
        date=referral_date,
        notes=notes,
        commission_earned=partner_commission(partner, guests_count, order_amount),
        month_key=to_month_key(referral_date),
        created_at=now or now_iso(),
    )
    return replace(state, manual_referrals=state.manual_referrals + (referral,))


def delete_manual_referral(state: AppState, referral_id: str) -> AppState:
    return replace(state, manual_referrals=_without(state.manual_referrals, referral_id))


def partner_stats(state: AppState, partner_id: str, month_key: Optional[str] = None) -> PartnerStats:
    """Referral da prenotazioni + referral manuali, opzionalmente per un mese."""
    from_bookings = [
        r
        for b in state.bookings
        if b.partner_referrals and (month_key is None or b.month_key == month_key)
        for r in b.partner_referrals
        if r.partner_id == partner_id
    ]
    manual = [
        m for m in state.manual_referrals
        if m.partner_id == partner_id and (month_key is None or m.month_key == month_key)
    ]
    return PartnerStats(
        partner_id=partner_id,
        total_revenue=sum(r.commission_earned for r in from_bookings) + sum(m.commission_earned for m in manual),
        total_referrals=len(from_bookings) + len(manual),
        total_guests=sum(r.guests_count for r in from_bookings) + sum(m.guests_count for m in manual),
    )


def all_partners_stats(state: AppState, month_key: Optional[str] = None) -> Tuple[PartnerStats, ...]:
    return tuple(partner_stats(state, p.id, month_key) for p in state.partners)


# ─── Blocco mese ────────────────────────────────────────────────────────────

def toggle_month_lock(state: AppState, month_key: str, now: Optional[str] = None) -> AppState:
    locked = not is_month_locked(state, month_key)
    month_locks = dict(state.month_locks)
    month_locks[month_key] = MonthLock(
        month_key=month_key,
        is_locked=locked,
        locked_at=(now or now_iso()) if locked else None,
    )
    return replace(state, month_locks=month_locks)


# ─── Previsioni ─────────────────────────────────────────────────────────────

def add_forecast(
    state: AppState,
    month_key: str,
    category: str,
    expected_amount: float,
    confidence: int,
    period: str = "monthly",
    type: str = "income",
    now: Optional[str] = None,
) -> AppState:
    forecast = Forecast(
        id=new_id(),
        month_key=month_key,
        category=category,
        expected_amount=expected_amount,
        confidence=confidence,
        period=period,
        type=type,
        created_at=now or now_iso(),
    )
    return replace(state, forecasts=state.forecasts + (forecast,))


def update_forecast(state: AppState, forecast_id: str, **changes) -> AppState:
    if _find(state.forecasts, forecast_id) is None:
        return state
    changes.pop("id", None)
    return replace(state, forecasts=_replace_by_id(state.forecasts, forecast_id, **changes))


def delete_forecast(state: AppState, forecast_id: str) -> AppState:
    return replace(state, forecasts=_without(state.forecasts, forecast_id))


# ─── Spese ──────────────────────────────────────────────────────────────────

def _charge_booking(state: AppState, expense: Expense, now: Optional[str]) -> AppState:
    """Aggiunge costi e importo della spesa alla prenotazione e la ricalcola."""
    booking = _find(state.bookings, expense.booking_id)
    if booking is None:
        return state
    data = replace(
        booking_to_input(booking),
        selected_room_costs=booking.selected_room_costs + tuple(expense.selected_room_costs or ()),
        selected_hotel_costs=booking.selected_hotel_costs + tuple(expense.selected_hotel_costs or ()),
        extra_expenses=booking.extra_expenses + expense.amount,
    )
    updated = normalize_and_compute_booking(data, now=now)
    return replace(state, bookings=tuple(updated if b.id == booking.id else b for b in state.bookings))


def add_expense(
    state: AppState,
    type: str,
    description: str,
    amount: float,
    expense_date: date,
    room_id: Optional[str] = None,
    booking_id: Optional[str] = None,
    selected_room_costs: Optional[Tuple[SelectedCost, ...]] = None,
    selected_hotel_costs: Optional[Tuple[SelectedCost, ...]] = None,
    now: Optional[str] = None,
) -> AppState:
    timestamp = now or now_iso()
    expense = Expense(
        id=new_id(),
        type=type,
        description=description,
        amount=amount,
        date=expense_date,
        month_key=to_month_key(expense_date),
        room_id=room_id,
        booking_id=booking_id,
        selected_room_costs=tuple(selected_room_costs or ()),
        selected_hotel_costs=tuple(selected_hotel_costs or ()),
        created_at=timestamp,
        updated_at=timestamp,
    )
    new_state = replace(state, expenses=state.expenses + (expense,))
    if booking_id:
        new_state = _charge_booking(new_state, expense, timestamp)
    return new_state


def update_expense(state: AppState, expense_id: str, now: Optional[str] = None, **changes) -> AppState:
    """Modifica solo la spesa: la prenotazione collegata non viene ricalcolata."""
    if _find(state.expenses, expense_id) is None:
        return state
    changes.pop("id", None)
    if changes.get("date") is not None:
        changes["month_key"] = to_month_key(changes["date"])
    expenses = _replace_by_id(state.expenses, expense_id, updated_at=now or now_iso(), **changes)
    return replace(state, expenses=expenses)


def delete_expense(state: AppState, expense_id: str) -> AppState:
    return replace(state, expenses=_without(state.expenses, expense_id))

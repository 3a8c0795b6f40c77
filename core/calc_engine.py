"""
Motore di calcolo delle prenotazioni.

Funzioni pure: dalle date, dal prezzo e dai costi selezionati ricava notti,
incasso, totali costi, profitti e IVA. Nessun I/O, nessuno stato.

Le date sono giorni di calendario (datetime.date), intervallo [inizio, fine):
  1 gen → 3 gen = 2 notti (check-out il 3).
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from config import VAT_RATE, WEEK_BUCKETS
from core.models import (
    Booking,
    BookingInput,
    BookingMetrics,
    BookingTotals,
    CostCatalogItem,
    HotelCost,
    Partner,
    SelectedCost,
)


def now_iso() -> str:
    """Timestamp ISO-8601 UTC per created_at / updated_at."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def round_money(value: float) -> float:
    """Arrotondamento commerciale (half-up) a 2 decimali."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ─── Date ───────────────────────────────────────────────────────────────────

def to_month_key(d: date) -> str:
    return d.strftime("%Y-%m")


def week_of_month(d: date) -> int:
    """Settimana 1-4: giorni 1-7, 8-14, 15-21, 22+."""
    for week, last_day in enumerate(WEEK_BUCKETS, start=1):
        if d.day <= last_day:
            return week
    return len(WEEK_BUCKETS) + 1


def nights_count(start: date, end: date) -> int:
    """Notti = fine - inizio in giorni, mai negativo."""
    return max(0, (end - start).days)


def income(nights: int, price_per_night: float) -> float:
    return nights * price_per_night


# ─── Costi ──────────────────────────────────────────────────────────────────

def selected_cost_total(unit_cost: float, qty: int) -> float:
    return unit_cost * qty


def selected_cost_from_catalog(item: CostCatalogItem, qty: Optional[int] = None) -> SelectedCost:
    """Crea lo snapshot di una voce di catalogo (qty di default dal catalogo)."""
    quantity = item.default_qty if qty is None else qty
    return SelectedCost(
        catalog_id=item.id,
        label_snapshot=item.label,
        unit_cost_snapshot=item.unit_cost,
        qty=quantity,
        total=selected_cost_total(item.unit_cost, quantity),
    )


def cost_totals(
    room_costs: Iterable[SelectedCost],
    hotel_costs: Iterable[SelectedCost],
) -> BookingTotals:
    total_room = sum((c.total for c in room_costs), 0.0)
    total_hotel = sum((c.total for c in hotel_costs), 0.0)
    return BookingTotals(
        total_room_costs=total_room,
        total_hotel_costs=total_hotel,
        total_order_expenses=total_room + total_hotel,
    )


# ─── Profitti ───────────────────────────────────────────────────────────────

def potential_profit(income_value: float, total_room_costs: float, total_hotel_costs: float) -> float:
    return income_value - (total_room_costs + total_hotel_costs)


def gross_profit(income_value: float, total_room_costs: float) -> float:
    # i costi camera sono il costo del venduto
    return income_value - total_room_costs


def net_profit(
    gross: float,
    total_hotel_costs: float,
    extra_expenses: float,
    partner_revenue: float = 0.0,
) -> float:
    return gross - (total_hotel_costs + extra_expenses) + partner_revenue


def vat_amounts(income_value: float, enabled: bool) -> Tuple[Optional[float], float]:
    """Restituisce (vat_amount, total_amount). Senza IVA: (None, income)."""
    if not enabled:
        return None, income_value
    return round_money(income_value * VAT_RATE), round_money(income_value * (1 + VAT_RATE))


# ─── Partner ────────────────────────────────────────────────────────────────

def partner_commission(partner: Partner, guests_count: int, order_amount: float = 0.0) -> float:
    """
    Commissione che l'hotel guadagna dal partner.
      fixed      → valore × ospiti
      percentage → (importo ordine × ospiti) × valore / 100
    """
    if partner.commission_type == "fixed":
        return partner.commission_value * guests_count
    return (order_amount * guests_count) * (partner.commission_value / 100)


# ─── Periodi costi hotel ────────────────────────────────────────────────────

def period_key_for_month(month_key: str, frequency: str) -> str:
    """
    Period key di un mese per la frequenza data:
      monthly → "2026-02", quarterly → "2026-Q1", yearly → "2026"
    """
    if not month_key or len(month_key) < 7:
        return month_key
    if frequency == "yearly":
        return month_key[:4]
    if frequency == "quarterly":
        quarter = (int(month_key[5:7]) - 1) // 3 + 1
        return f"{month_key[:4]}-Q{quarter}"
    return month_key


def hotel_cost_matches_month(cost: HotelCost, month_key: str) -> bool:
    """True se il periodo del costo contiene il mese indicato."""
    if not month_key or len(month_key) < 7:
        return False
    if cost.frequency_type not in ("monthly", "quarterly", "yearly"):
        return False
    return cost.period_key == period_key_for_month(month_key, cost.frequency_type)


# ─── Normalizzazione ────────────────────────────────────────────────────────

def normalize_and_compute_booking(data: BookingInput, now: Optional[str] = None) -> Booking:
    """
    Unico punto di ingresso per creare una Booking valida dai dati grezzi.
    Ricalcola sempre tutti i campi derivati; created_at viene preservato se
    presente, updated_at è sempre aggiornato.
    """
    timestamp = now or now_iso()

    nights = nights_count(data.start_date, data.end_date)
    income_value = income(nights, data.price_per_night)
    room_costs = tuple(data.selected_room_costs)
    hotel_costs = tuple(data.selected_hotel_costs)
    totals = cost_totals(room_costs, hotel_costs)

    referrals = tuple(data.partner_referrals) if data.partner_referrals is not None else None
    partner_revenue = sum((r.commission_earned for r in referrals or ()), 0.0)

    gross = gross_profit(income_value, totals.total_room_costs)
    metrics = BookingMetrics(
        potential_profit=potential_profit(income_value, totals.total_room_costs, totals.total_hotel_costs),
        gross_profit=gross,
        net_profit=net_profit(gross, totals.total_hotel_costs, data.extra_expenses, partner_revenue),
    )
    vat_amount, total_amount = vat_amounts(income_value, data.vat_enabled)

    return Booking(
        id=data.id or new_id(),
        room_id=data.room_id,
        start_date=data.start_date,
        end_date=data.end_date,
        month_key=to_month_key(data.start_date),
        week_of_month=week_of_month(data.start_date),
        price_per_night=data.price_per_night,
        nights_count=nights,
        income=income_value,
        extra_expenses=data.extra_expenses,
        selected_room_costs=room_costs,
        selected_hotel_costs=hotel_costs,
        partner_referrals=referrals,
        totals=totals,
        metrics=metrics,
        vat_enabled=data.vat_enabled,
        vat_amount=vat_amount,
        total_amount=total_amount,
        customer=data.customer,
        created_at=data.created_at or timestamp,
        updated_at=timestamp,
    )


def booking_to_input(booking: Booking) -> BookingInput:
    """Riporta una Booking ai soli dati grezzi (per modifiche e ricalcolo)."""
    return BookingInput(
        id=booking.id,
        room_id=booking.room_id,
        start_date=booking.start_date,
        end_date=booking.end_date,
        price_per_night=booking.price_per_night,
        extra_expenses=booking.extra_expenses,
        selected_room_costs=booking.selected_room_costs,
        selected_hotel_costs=booking.selected_hotel_costs,
        partner_referrals=booking.partner_referrals,
        vat_enabled=booking.vat_enabled,
        customer=booking.customer,
        created_at=booking.created_at,
    )

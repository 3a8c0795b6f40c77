"""
Conversione entità ↔ righe dei fogli.

Ogni entità ha una coppia di funzioni scritte a mano (x_to_row / x_from_row)
con l'elenco esplicito delle colonne. Le strutture annidate (righe di costo,
referral, totali, metriche, cliente) sono salvate come JSON in una cella.

Le letture accettano sia valori tipizzati sia le stringhe restituite da
Google Sheets ("120.5", "TRUE", "2026-03-05"); None resta None.
"""

import json
from datetime import date
from typing import Any, Dict, Optional, Tuple, Union

from config import ENTITY_COST_CATALOG, ENTITY_HOTEL_COST, ENTITY_MANUAL_REFERRAL
from core.models import (
    Booking,
    BookingMetrics,
    BookingTotals,
    CostCatalogItem,
    Customer,
    Expense,
    Forecast,
    HotelCost,
    ManualReferral,
    MonthLock,
    Partner,
    PartnerReferral,
    Room,
    SelectedCost,
)

Row = Dict[str, Any]


# ─── Helpers ────────────────────────────────────────────────────────────────

def _fmt_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


def _to_date(val) -> Optional[date]:
    if val is None or str(val).strip() == "":
        return None
    if isinstance(val, date):
        return val
    return date.fromisoformat(str(val).strip()[:10])


def _required_date(row: Row, column: str) -> date:
    value = _to_date(row.get(column))
    if value is None:
        raise ValueError(f"colonna '{column}' vuota")
    return value


def _to_float(val) -> float:
    """Converte un valore in float, gestendo None e stringhe vuote."""
    if val is None or str(val).strip() == "":
        return 0.0
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return float(val)
    return float(str(val).replace(",", ".").strip())


def _opt_float(val) -> Optional[float]:
    if val is None or str(val).strip() == "":
        return None
    return _to_float(val)


def _to_int(val) -> int:
    return int(round(_to_float(val)))


def _to_bool(val, default: bool = False) -> bool:
    if val is None or str(val).strip() == "":
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().upper() in ("TRUE", "1", "YES")


def _opt_str(val) -> Optional[str]:
    return None if val is None else str(val)


def _to_str(val) -> str:
    return "" if val is None else str(val)


def _json_dump(value) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def _json_load(val):
    if val is None or val == "":
        return None
    if isinstance(val, (list, dict)):
        return val
    return json.loads(val)


# ─── Strutture annidate ─────────────────────────────────────────────────────

def _cost_to_dict(c: SelectedCost) -> dict:
    return {
        "catalog_id": c.catalog_id,
        "label_snapshot": c.label_snapshot,
        "unit_cost_snapshot": c.unit_cost_snapshot,
        "qty": c.qty,
        "total": c.total,
    }


def _cost_from_dict(d: dict) -> SelectedCost:
    return SelectedCost(
        catalog_id=_to_str(d.get("catalog_id")),
        label_snapshot=_to_str(d.get("label_snapshot")),
        unit_cost_snapshot=_to_float(d.get("unit_cost_snapshot")),
        qty=_to_int(d.get("qty")),
        total=_to_float(d.get("total")),
    )


def _costs_to_json(costs: Optional[Tuple[SelectedCost, ...]]) -> Optional[str]:
    if costs is None:
        return None
    return _json_dump([_cost_to_dict(c) for c in costs])


def _costs_from_json(val) -> Optional[Tuple[SelectedCost, ...]]:
    data = _json_load(val)
    if data is None:
        return None
    return tuple(_cost_from_dict(d) for d in data)


def _referral_to_dict(r: PartnerReferral) -> dict:
    return {
        "partner_id": r.partner_id,
        "partner_name": r.partner_name,
        "guests_count": r.guests_count,
        "commission_earned": r.commission_earned,
        "date": _fmt_date(r.date),
    }


def _referral_from_dict(d: dict) -> PartnerReferral:
    return PartnerReferral(
        partner_id=_to_str(d.get("partner_id")),
        partner_name=_to_str(d.get("partner_name")),
        guests_count=_to_int(d.get("guests_count")),
        commission_earned=_to_float(d.get("commission_earned")),
        date=_to_date(d.get("date")),
    )


def _customer_to_json(c: Optional[Customer]) -> Optional[str]:
    if c is None:
        return None
    return _json_dump({
        "customer_name": c.customer_name,
        "customer_phone": c.customer_phone,
        "customer_email": c.customer_email,
    })


def _customer_from_json(val) -> Optional[Customer]:
    data = _json_load(val)
    if data is None:
        return None
    return Customer(
        customer_name=_opt_str(data.get("customer_name")),
        customer_phone=_opt_str(data.get("customer_phone")),
        customer_email=_opt_str(data.get("customer_email")),
    )


# ─── Room ───────────────────────────────────────────────────────────────────

def room_to_row(m: Room) -> Row:
    return {
        "id": m.id,
        "room_name": m.name,
        "room_number": m.number,
        "created_at": m.created_at,
    }


def room_from_row(row: Row) -> Room:
    return Room(
        id=_to_str(row.get("id")),
        name=_to_str(row.get("room_name")),
        number=_opt_str(row.get("room_number")),
        created_at=_to_str(row.get("created_at")),
    )


# ─── Booking ────────────────────────────────────────────────────────────────

def booking_to_row(m: Booking) -> Row:
    referrals = None
    if m.partner_referrals is not None:
        referrals = _json_dump([_referral_to_dict(r) for r in m.partner_referrals])
    return {
        "id": m.id,
        "room_id": m.room_id,
        "start_date": _fmt_date(m.start_date),
        "end_date": _fmt_date(m.end_date),
        "month_key": m.month_key,
        "week_of_month": m.week_of_month,
        "price_per_night": m.price_per_night,
        "nights_count": m.nights_count,
        "income": m.income,
        "extra_expenses": m.extra_expenses,
        "selected_room_costs": _costs_to_json(m.selected_room_costs),
        "selected_hotel_costs": _costs_to_json(m.selected_hotel_costs),
        "partner_referrals": referrals,
        "totals": _json_dump({
            "total_room_costs": m.totals.total_room_costs,
            "total_hotel_costs": m.totals.total_hotel_costs,
            "total_order_expenses": m.totals.total_order_expenses,
        }),
        "metrics": _json_dump({
            "potential_profit": m.metrics.potential_profit,
            "gross_profit": m.metrics.gross_profit,
            "net_profit": m.metrics.net_profit,
        }),
        "customer": _customer_to_json(m.customer),
        "vat_enabled": m.vat_enabled,
        "vat_amount": m.vat_amount,
        "total_amount": m.total_amount,
        "created_at": m.created_at,
        "updated_at": m.updated_at,
    }


def booking_from_row(row: Row) -> Booking:
    totals = _json_load(row.get("totals")) or {}
    metrics = _json_load(row.get("metrics")) or {}
    referrals = _json_load(row.get("partner_referrals"))
    income = _to_float(row.get("income"))
    total_amount = row.get("total_amount")
    return Booking(
        id=_to_str(row.get("id")),
        room_id=_to_str(row.get("room_id")),
        start_date=_required_date(row, "start_date"),
        end_date=_required_date(row, "end_date"),
        month_key=_to_str(row.get("month_key")),
        week_of_month=_to_int(row.get("week_of_month")) or 1,
        price_per_night=_to_float(row.get("price_per_night")),
        nights_count=_to_int(row.get("nights_count")),
        income=income,
        extra_expenses=_to_float(row.get("extra_expenses")),
        selected_room_costs=_costs_from_json(row.get("selected_room_costs")) or (),
        selected_hotel_costs=_costs_from_json(row.get("selected_hotel_costs")) or (),
        partner_referrals=None if referrals is None else tuple(_referral_from_dict(d) for d in referrals),
        totals=BookingTotals(
            total_room_costs=_to_float(totals.get("total_room_costs")),
            total_hotel_costs=_to_float(totals.get("total_hotel_costs")),
            total_order_expenses=_to_float(totals.get("total_order_expenses")),
        ),
        metrics=BookingMetrics(
            potential_profit=_to_float(metrics.get("potential_profit")),
            gross_profit=_to_float(metrics.get("gross_profit")),
            net_profit=_to_float(metrics.get("net_profit")),
        ),
        customer=_customer_from_json(row.get("customer")),
        vat_enabled=_to_bool(row.get("vat_enabled")),
        vat_amount=_opt_float(row.get("vat_amount")),
        # righe scritte senza colonne IVA: totale = incasso
        total_amount=income if total_amount in (None, "") else _to_float(total_amount),
        created_at=_to_str(row.get("created_at")),
        updated_at=_to_str(row.get("updated_at")),
    )


# ─── room_financials: catalogo costi + costi hotel ──────────────────────────

def cost_catalog_to_row(m: CostCatalogItem) -> Row:
    return {
        "id": m.id,
        "entity_type": ENTITY_COST_CATALOG,
        "type": m.type,
        "room_id": m.room_id,
        "category": m.category,
        "label": m.label,
        "unit_cost": m.unit_cost,
        "default_qty": m.default_qty,
        "is_active": m.is_active,
    }


def cost_catalog_from_row(row: Row) -> CostCatalogItem:
    return CostCatalogItem(
        id=_to_str(row.get("id")),
        type="hotel" if row.get("type") == "hotel" else "room",
        category=_opt_str(row.get("category")),
        label=_to_str(row.get("label")),
        unit_cost=_to_float(row.get("unit_cost")),
        default_qty=_to_int(row.get("default_qty")),
        room_id=_opt_str(row.get("room_id")),
        is_active=_to_bool(row.get("is_active"), default=True),
    )


def hotel_cost_to_row(m: HotelCost) -> Row:
    return {
        "id": m.id,
        "entity_type": ENTITY_HOTEL_COST,
        "type": "hotel",
        "label": m.label,
        "amount": m.amount,
        "category": m.category,
        "frequency_type": m.frequency_type,
        "period_key": m.period_key,
        "is_active": m.is_active,
        "created_at": m.created_at,
        "updated_at": m.updated_at,
    }


def hotel_cost_from_row(row: Row) -> HotelCost:
    return HotelCost(
        id=_to_str(row.get("id")),
        label=_to_str(row.get("label")),
        amount=_to_float(row.get("amount")),
        category=_to_str(row.get("category")) or "other",
        frequency_type=_to_str(row.get("frequency_type")) or "monthly",
        period_key=_to_str(row.get("period_key")),
        is_active=_to_bool(row.get("is_active"), default=True),
        created_at=_to_str(row.get("created_at")),
        updated_at=_opt_str(row.get("updated_at")),
    )


def room_financial_from_row(row: Row) -> Optional[Union[CostCatalogItem, HotelCost]]:
    """Smista una riga di room_financials in base a entity_type."""
    entity_type = row.get("entity_type")
    if entity_type == ENTITY_COST_CATALOG:
        return cost_catalog_from_row(row)
    if entity_type == ENTITY_HOTEL_COST:
        return hotel_cost_from_row(row)
    return None


# ─── Partner ────────────────────────────────────────────────────────────────

def partner_to_row(m: Partner) -> Row:
    return {
        "id": m.id,
        "name": m.name,
        "type": m.type,
        "phone": m.phone,
        "email": m.email,
        "commission_type": m.commission_type,
        "commission_value": m.commission_value,
        "discount_for_guests": m.discount_for_guests,
        "location": m.location,
        "notes": m.notes,
        "is_active": m.is_active,
        "created_at": m.created_at,
        "updated_at": m.updated_at,
    }


def partner_from_row(row: Row) -> Partner:
    return Partner(
        id=_to_str(row.get("id")),
        name=_to_str(row.get("name")),
        type=_to_str(row.get("type")) or "other",
        phone=_to_str(row.get("phone")),
        email=_to_str(row.get("email")),
        commission_type="fixed" if row.get("commission_type") == "fixed" else "percentage",
        commission_value=_to_float(row.get("commission_value")),
        discount_for_guests=_opt_float(row.get("discount_for_guests")),
        location=_opt_str(row.get("location")),
        notes=_opt_str(row.get("notes")),
        is_active=_to_bool(row.get("is_active"), default=True),
        created_at=_to_str(row.get("created_at")),
        updated_at=_opt_str(row.get("updated_at")),
    )


# ─── transactions: referral manuali ─────────────────────────────────────────

def manual_referral_to_row(m: ManualReferral) -> Row:
    return {
        "id": m.id,
        "type": ENTITY_MANUAL_REFERRAL,
        "partner_id": m.partner_id,
        "guests_count": m.guests_count,
        "date": _fmt_date(m.date),
        "notes": m.notes,
        "commission_earned": m.commission_earned,
        "month_key": m.month_key,
        "created_at": m.created_at,
    }


def manual_referral_from_row(row: Row) -> ManualReferral:
    return ManualReferral(
        id=_to_str(row.get("id")),
        partner_id=_to_str(row.get("partner_id")),
        guests_count=_to_int(row.get("guests_count")),
        date=_to_date(row.get("date")),
        notes=_opt_str(row.get("notes")),
        commission_earned=_to_float(row.get("commission_earned")),
        month_key=_to_str(row.get("month_key")),
        created_at=_to_str(row.get("created_at")),
    )


# ─── monthly_controls ───────────────────────────────────────────────────────

def month_lock_to_row(m: MonthLock) -> Row:
    return {
        "month_key": m.month_key,
        "is_locked": m.is_locked,
        "locked_at": m.locked_at,
    }


def month_lock_from_row(row: Row) -> MonthLock:
    return MonthLock(
        month_key=_to_str(row.get("month_key")),
        is_locked=_to_bool(row.get("is_locked")),
        locked_at=_opt_str(row.get("locked_at")),
    )


# ─── Forecast / Expense ─────────────────────────────────────────────────────

def forecast_to_row(m: Forecast) -> Row:
    return {
        "id": m.id,
        "month_key": m.month_key,
        "category": m.category,
        "expected_amount": m.expected_amount,
        "confidence": m.confidence,
        "period": m.period,
        "type": m.type,
        "created_at": m.created_at,
    }


def forecast_from_row(row: Row) -> Forecast:
    return Forecast(
        id=_to_str(row.get("id")),
        month_key=_to_str(row.get("month_key")),
        category=_to_str(row.get("category")),
        expected_amount=_to_float(row.get("expected_amount")),
        confidence=_to_int(row.get("confidence")),
        period=_to_str(row.get("period")) or "monthly",
        type=_to_str(row.get("type")) or "income",
        created_at=_to_str(row.get("created_at")),
    )


def expense_to_row(m: Expense) -> Row:
    return {
        "id": m.id,
        "type": m.type,
        "description": m.description,
        "amount": m.amount,
        "date": _fmt_date(m.date),
        "month_key": m.month_key,
        "room_id": m.room_id,
        "booking_id": m.booking_id,
        "selected_room_costs": _costs_to_json(m.selected_room_costs),
        "selected_hotel_costs": _costs_to_json(m.selected_hotel_costs),
        "created_at": m.created_at,
        "updated_at": m.updated_at,
    }


def expense_from_row(row: Row) -> Expense:
    return Expense(
        id=_to_str(row.get("id")),
        type=_to_str(row.get("type")) or "custom",
        description=_to_str(row.get("description")),
        amount=_to_float(row.get("amount")),
        date=_to_date(row.get("date")),
        month_key=_to_str(row.get("month_key")),
        room_id=_opt_str(row.get("room_id")),
        booking_id=_opt_str(row.get("booking_id")),
        selected_room_costs=_costs_from_json(row.get("selected_room_costs")),
        selected_hotel_costs=_costs_from_json(row.get("selected_hotel_costs")),
        created_at=_to_str(row.get("created_at")),
        updated_at=_to_str(row.get("updated_at")),
    )


# Tipo entità → (to_row, from_row)
ENTITY_MAPPINGS = {
    "room": (room_to_row, room_from_row),
    "booking": (booking_to_row, booking_from_row),
    ENTITY_COST_CATALOG: (cost_catalog_to_row, cost_catalog_from_row),
    ENTITY_HOTEL_COST: (hotel_cost_to_row, hotel_cost_from_row),
    "partner": (partner_to_row, partner_from_row),
    ENTITY_MANUAL_REFERRAL: (manual_referral_to_row, manual_referral_from_row),
    "month_lock": (month_lock_to_row, month_lock_from_row),
    "forecast": (forecast_to_row, forecast_from_row),
    "expense": (expense_to_row, expense_from_row),
}

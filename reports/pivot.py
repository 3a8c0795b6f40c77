"""
Report e pivot finanziari dallo stato dell'applicazione.

Produce:
  - DataFrame delle prenotazioni (una riga per prenotazione)
  - Riepilogo del mese (incassi, spese, utile netto, previsioni, partner)
  - Pivot mese × camera con totale
  - Riepilogo partner
"""

from datetime import date
from typing import Dict, Optional

import pandas as pd

from core.calc_engine import round_money, to_month_key
from core.models import AppState
from core.transitions import active_hotel_costs, all_partners_stats

BOOKING_COLUMNS = [
    "anno_mese", "camera", "check_in", "check_out", "notti", "prezzo_notte",
    "incasso", "costi_camera", "costi_hotel", "spese_extra",
    "utile_lordo", "utile_netto", "iva", "totale", "cliente",
]


def bookings_frame(state: AppState) -> pd.DataFrame:
    """Una riga per prenotazione, con il nome della camera."""
    if not state.bookings:
        return pd.DataFrame(columns=BOOKING_COLUMNS)

    room_names = {r.id: r.name for r in state.rooms}
    rows = []
    for b in state.bookings:
        rows.append({
            "anno_mese": b.month_key,
            "camera": room_names.get(b.room_id, "N/D"),
            "check_in": b.start_date,
            "check_out": b.end_date,
            "notti": b.nights_count,
            "prezzo_notte": b.price_per_night,
            "incasso": b.income,
            "costi_camera": b.totals.total_room_costs,
            "costi_hotel": b.totals.total_hotel_costs,
            "spese_extra": b.extra_expenses,
            "utile_lordo": b.metrics.gross_profit,
            "utile_netto": b.metrics.net_profit,
            "iva": b.vat_amount or 0.0,
            "totale": b.total_amount,
            "cliente": b.customer.customer_name if b.customer else None,
        })
    df = pd.DataFrame(rows, columns=BOOKING_COLUMNS)
    return df.sort_values(["anno_mese", "check_in"], ascending=[False, True]).reset_index(drop=True)


def _previous_month(month_key: str) -> str:
    year, month = int(month_key[:4]), int(month_key[5:7])
    if month == 1:
        return to_month_key(date(year - 1, 12, 1))
    return to_month_key(date(year, month - 1, 1))


def _change_pct(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return round_money((current - previous) / abs(previous) * 100)


def _month_totals(state: AppState, month_key: str) -> Dict[str, float]:
    bookings = [b for b in state.bookings if b.month_key == month_key]
    income = sum(b.income for b in bookings)
    # costi selezionati + spese extra di ogni prenotazione
    booking_expenses = sum(b.totals.total_order_expenses + b.extra_expenses for b in bookings)
    additional = sum(e.amount for e in state.expenses if e.month_key == month_key)
    hotel = sum(c.amount for c in active_hotel_costs(state, month_key))
    total_expenses = booking_expenses + additional + hotel
    return {
        "prenotazioni": len(bookings),
        "incassi": income,
        "spese_prenotazioni": booking_expenses,
        "spese_aggiuntive": additional,
        "costi_hotel": hotel,
        "spese_totali": total_expenses,
        "utile_netto": income - total_expenses,
    }


def month_summary(state: AppState, month_key: str) -> Dict[str, float]:
    """
    Riepilogo del mese, con variazione % rispetto al mese precedente.
    Variazione 0 quando il mese precedente è a zero.
    """
    current = _month_totals(state, month_key)
    previous = _month_totals(state, _previous_month(month_key))

    partners = all_partners_stats(state, month_key)
    summary = {k: (round_money(v) if isinstance(v, float) else v) for k, v in current.items()}
    summary.update({
        "mese": month_key,
        "previsioni": round_money(sum(f.expected_amount for f in state.forecasts if f.month_key == month_key)),
        "ricavi_partner": round_money(sum(s.total_revenue for s in partners)),
        "referral_partner": sum(s.total_referrals for s in partners),
        "var_incassi_pct": _change_pct(current["incassi"], previous["incassi"]),
        "var_spese_pct": _change_pct(current["spese_totali"], previous["spese_totali"]),
        "var_utile_pct": _change_pct(current["utile_netto"], previous["utile_netto"]),
    })
    return summary


def pivot_by_month_room(state: AppState) -> pd.DataFrame:
    """Pivot: mese × camera, valori incasso/utile netto/notti."""
    df = bookings_frame(state)
    if df.empty:
        return pd.DataFrame()

    pivot = df.pivot_table(
        values=["incasso", "utile_netto", "notti"],
        index="anno_mese",
        columns="camera",
        aggfunc="sum",
        fill_value=0,
        margins=True,
        margins_name="TOTALE",
    )
    return pivot


def partners_summary(state: AppState, month_key: Optional[str] = None) -> pd.DataFrame:
    """Riepilogo per partner, ordinato per ricavi."""
    columns = ["partner", "tipo", "attivo", "referral", "ospiti", "ricavi"]
    if not state.partners:
        return pd.DataFrame(columns=columns)

    by_id = {p.id: p for p in state.partners}
    rows = []
    for stats in all_partners_stats(state, month_key):
        partner = by_id[stats.partner_id]
        rows.append({
            "partner": partner.name,
            "tipo": partner.type,
            "attivo": partner.is_active,
            "referral": stats.total_referrals,
            "ospiti": stats.total_guests,
            "ricavi": round_money(stats.total_revenue),
        })
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("ricavi", ascending=False).reset_index(drop=True)

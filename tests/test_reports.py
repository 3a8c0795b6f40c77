import io
from datetime import date

import openpyxl
import pytest

from core import transitions
from core.models import AppState, BookingInput, SelectedCost
from reports.export import month_report_xlsx
from reports.pivot import BOOKING_COLUMNS, bookings_frame, month_summary, partners_summary, pivot_by_month_room

NOW = "2024-03-01T10:00:00+00:00"


@pytest.fixture
def state():
    s = transitions.add_room(AppState.empty(), "Deluxe", now=NOW)
    room_id = s.rooms[0].id
    towels = SelectedCost(catalog_id="x", label_snapshot="Towels", unit_cost_snapshot=5.0, qty=2, total=10.0)
    s = transitions.create_booking(s, BookingInput(
        room_id=room_id, start_date=date(2024, 3, 5), end_date=date(2024, 3, 8),
        price_per_night=100.0, selected_room_costs=(towels,),
    ), now=NOW)
    s = transitions.create_booking(s, BookingInput(
        room_id=room_id, start_date=date(2024, 2, 2), end_date=date(2024, 2, 4), price_per_night=100.0,
    ), now=NOW)
    s = transitions.add_expense(
        s, type="custom", description="Paint", amount=50.0, expense_date=date(2024, 3, 20), now=NOW,
    )
    s = transitions.add_hotel_cost(s, "Water", 100.0, "water", month_key="2024-03", now=NOW)
    s = transitions.add_forecast(s, "2024-03", "rooms", 1000.0, 70, now=NOW)
    s = transitions.add_partner(
        s, name="Spa", type="spa", phone="", email="", commission_type="fixed", commission_value=10.0, now=NOW,
    )
    s = transitions.add_partner(
        s, name="Shop", type="shop", phone="", email="", commission_type="fixed", commission_value=5.0, now=NOW,
    )
    return transitions.add_manual_referral(s, s.partners[0].id, 2, date(2024, 3, 9), now=NOW)


def test_bookings_frame(state):
    df = bookings_frame(state)
    assert list(df.columns) == BOOKING_COLUMNS
    assert list(df["anno_mese"]) == ["2024-03", "2024-02"]
    assert df.loc[0, "camera"] == "Deluxe"
    assert df.loc[0, "utile_netto"] == 290.0


def test_bookings_frame_empty():
    df = bookings_frame(AppState.empty())
    assert df.empty
    assert list(df.columns) == BOOKING_COLUMNS


def test_month_summary(state):
    summary = month_summary(state, "2024-03")
    assert summary["prenotazioni"] == 1
    assert summary["incassi"] == 300.0
    assert summary["spese_prenotazioni"] == 10.0
    assert summary["spese_aggiuntive"] == 50.0
    assert summary["costi_hotel"] == 100.0
    assert summary["spese_totali"] == 160.0
    assert summary["utile_netto"] == 140.0
    assert summary["previsioni"] == 1000.0
    assert summary["ricavi_partner"] == 20.0
    assert summary["referral_partner"] == 1


def test_month_summary_changes(state):
    summary = month_summary(state, "2024-03")
    assert summary["var_incassi_pct"] == 50.0
    # febbraio senza spese: nessuna variazione calcolabile
    assert summary["var_spese_pct"] == 0.0
    assert summary["var_utile_pct"] == -30.0


def test_month_summary_january_compares_with_december():
    s = transitions.add_room(AppState.empty(), "Deluxe")
    room_id = s.rooms[0].id
    s = transitions.create_booking(s, BookingInput(
        room_id=room_id, start_date=date(2023, 12, 1), end_date=date(2023, 12, 3), price_per_night=100.0,
    ))
    s = transitions.create_booking(s, BookingInput(
        room_id=room_id, start_date=date(2024, 1, 1), end_date=date(2024, 1, 2), price_per_night=100.0,
    ))
    assert month_summary(s, "2024-01")["var_incassi_pct"] == -50.0


def test_pivot_has_totals(state):
    pivot = pivot_by_month_room(state)
    assert list(pivot.index) == ["2024-02", "2024-03", "TOTALE"]
    assert pivot.loc["TOTALE", ("incasso", "Deluxe")] == 500.0
    assert pivot.loc["2024-03", ("notti", "Deluxe")] == 3


def test_pivot_empty():
    assert pivot_by_month_room(AppState.empty()).empty


def test_partners_summary(state):
    df = partners_summary(state, "2024-03")
    assert list(df["partner"]) == ["Spa", "Shop"]
    assert df.loc[0, "ricavi"] == 20.0
    assert df.loc[0, "ospiti"] == 2
    assert df.loc[1, "referral"] == 0
    assert partners_summary(state, "2024-04")["ricavi"].sum() == 0


def test_month_report_xlsx(state):
    data = month_report_xlsx(state, "2024-03")
    wb = openpyxl.load_workbook(io.BytesIO(data))
    assert wb.sheetnames == ["Riepilogo", "Prenotazioni", "Partner"]

    bookings = list(wb["Prenotazioni"].iter_rows(values_only=True))
    assert bookings[0] == tuple(BOOKING_COLUMNS)
    assert len(bookings) == 2

    summary = {row[0]: row[1] for row in wb["Riepilogo"].iter_rows(min_row=2, values_only=True)}
    assert summary["incassi"] == 300
    assert summary["mese"] == "2024-03"


def test_month_report_xlsx_empty_state():
    wb = openpyxl.load_workbook(io.BytesIO(month_report_xlsx(AppState.empty(), "2024-03")))
    assert wb["Prenotazioni"].max_row == 1

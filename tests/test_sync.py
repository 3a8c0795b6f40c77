import logging
import uuid
from dataclasses import replace
from datetime import date

import pytest
from google.auth.exceptions import RefreshError

from config import (
    STORAGE_ID_NAMESPACE,
    TABLE_BOOKINGS,
    TABLE_EXPENSES,
    TABLE_MONTH_LOCKS,
    TABLE_PARTNERS,
    TABLE_ROOM_FINANCIALS,
    TABLE_ROOMS,
    TABLE_TRANSACTIONS,
)
from core import sync, transitions
from core.errors import MissingKeyError, SaveError
from core.models import AppState, BookingInput, Partner

from conftest import ACCOUNT_ID


def _state():
    state = transitions.seed_default_catalog(AppState.empty())
    state = transitions.add_room(state, "Deluxe", "101")
    room_id = state.rooms[0].id
    state = transitions.create_booking(state, BookingInput(
        room_id=room_id, start_date=date(2024, 3, 5), end_date=date(2024, 3, 8), price_per_night=120.0,
    ))
    state = transitions.add_partner(
        state, name="Spa", type="spa", phone="050", email="spa@example.com",
        commission_type="fixed", commission_value=10.0,
    )
    state = transitions.add_manual_referral(state, state.partners[0].id, 2, date(2024, 3, 9))
    state = transitions.toggle_month_lock(state, "2024-02")
    state = transitions.add_hotel_cost(state, "Electricity", 450.0, "electricity", month_key="2024-03")
    return state


class TestIds:

    def test_uuid_kept(self):
        value = str(uuid.uuid4())
        assert sync.storage_id("room", value) == value

    def test_non_uuid_is_deterministic(self):
        first = sync.storage_id("cost_catalog", "rc-001")
        assert first == sync.storage_id("cost_catalog", "rc-001")
        assert first == str(uuid.uuid5(STORAGE_ID_NAMESPACE, "cost_catalog:rc-001"))
        assert sync.is_uuid(first)

    def test_entity_type_is_part_of_the_seed(self):
        assert sync.storage_id("room", "1") != sync.storage_id("booking", "1")

    def test_empty_ids_are_left_alone(self):
        assert sync.storage_id("room", "") == ""
        assert sync.storage_id("room", None) is None


class TestRowDiscipline:

    def test_sanitize_strips_unknown_columns(self, caplog):
        with caplog.at_level(logging.WARNING):
            row = sync.sanitize_row(TABLE_ROOMS, {"id": "x", "room_name": "A", "colour": "blue"})
        assert row == {"id": "x", "room_name": "A"}
        assert "colour" in caplog.text

    def test_sanitize_without_unknown_columns_is_silent(self, caplog):
        with caplog.at_level(logging.WARNING):
            sync.sanitize_row(TABLE_ROOMS, {"id": "x"})
        assert caplog.text == ""

    def test_require_keys(self):
        with pytest.raises(MissingKeyError) as exc_info:
            sync.require_keys(TABLE_MONTH_LOCKS, [{"user_id": ACCOUNT_ID, "month_key": ""}])
        assert exc_info.value.column == "month_key"

    def test_rows_carry_account_and_normalized_foreign_keys(self):
        state = _state()
        batches = sync.build_batches(state, ACCOUNT_ID)
        assert all(row["user_id"] == ACCOUNT_ID for rows in batches.values() for row in rows)

        referral = batches[TABLE_TRANSACTIONS][0]
        assert referral["type"] == "manual_referral"
        assert referral["amount"] == referral["commission_earned"] == 20.0

        booking = batches[TABLE_BOOKINGS][0]
        assert booking["amount"] == booking["income"] == 360.0
        assert booking["room_id"] == state.rooms[0].id

        catalog_ids = {r["id"] for r in batches[TABLE_ROOM_FINANCIALS] if r["entity_type"] == "cost_catalog"}
        assert sync.storage_id("cost_catalog", "rc-001") in catalog_ids
        assert all(sync.is_uuid(i) for i in catalog_ids)


class TestSaveState:

    def test_save_and_load(self, remote):
        state = _state()
        report = sync.save_state(remote, ACCOUNT_ID, state)
        assert report.ok
        assert len(report.saved) == 8

        loaded = sync.load_state(remote, ACCOUNT_ID)
        assert loaded.rooms == state.rooms
        assert loaded.bookings == state.bookings
        assert loaded.partners == state.partners
        assert loaded.manual_referrals == state.manual_referrals
        assert loaded.hotel_costs == state.hotel_costs
        assert loaded.month_locks == state.month_locks
        assert len(loaded.cost_catalog) == 12
        assert {c.label for c in loaded.cost_catalog} == {c.label for c in state.cost_catalog}

    def test_save_is_idempotent(self, remote, spreadsheet):
        state = _state()
        sync.save_state(remote, ACCOUNT_ID, state)
        first = {t: spreadsheet.records(t) for t in spreadsheet.sheets}
        sync.save_state(remote, ACCOUNT_ID, state)
        second = {t: spreadsheet.records(t) for t in spreadsheet.sheets}
        assert first == second
        assert len(spreadsheet.records(TABLE_ROOM_FINANCIALS)) == 13

    def test_saving_reloaded_state_creates_no_duplicates(self, remote, spreadsheet):
        sync.save_state(remote, ACCOUNT_ID, _state())
        reloaded = sync.load_state(remote, ACCOUNT_ID)
        sync.save_state(remote, ACCOUNT_ID, reloaded)
        assert len(spreadsheet.records(TABLE_ROOM_FINANCIALS)) == 13
        assert len(spreadsheet.records(TABLE_MONTH_LOCKS)) == 1

    def test_missing_key_isolated_to_partners(self, remote, spreadsheet):
        state = _state()
        broken = replace(state.partners[0], id="")
        state = replace(state, partners=(broken,))

        report = sync.save_state(remote, ACCOUNT_ID, state)

        assert list(report.failures) == [TABLE_PARTNERS]
        assert TABLE_ROOMS in report.saved
        assert TABLE_BOOKINGS in report.saved
        assert report.user_facing_failures == {}
        assert spreadsheet.records(TABLE_PARTNERS) == []
        assert len(spreadsheet.records(TABLE_BOOKINGS)) == 1
        with pytest.raises(SaveError) as exc_info:
            report.raise_for_failures()
        assert exc_info.value.tables == [TABLE_PARTNERS]

    def test_remote_failure_isolated_and_user_facing(self, remote, spreadsheet):
        state = _state()
        sync.save_state(remote, ACCOUNT_ID, state)
        spreadsheet.sheets[TABLE_BOOKINGS].fail_writes = True

        report = sync.save_state(remote, ACCOUNT_ID, state)

        assert list(report.failures) == [TABLE_BOOKINGS]
        assert TABLE_BOOKINGS in report.user_facing_failures
        assert TABLE_ROOMS in report.saved

    def test_sync_deletes_removed_rows(self, remote, spreadsheet):
        state = _state()
        sync.save_state(remote, ACCOUNT_ID, state)

        state = transitions.delete_room(state, state.rooms[0].id)
        sync.save_state(remote, ACCOUNT_ID, state)

        assert spreadsheet.records(TABLE_ROOMS) == []
        assert spreadsheet.records(TABLE_BOOKINGS) == []

    def test_sync_deletes_scoped_to_account(self, remote, spreadsheet):
        other = _state()
        sync.save_state(remote, "acct-2", other)
        sync.save_state(remote, ACCOUNT_ID, AppState.empty())
        assert len(spreadsheet.records(TABLE_ROOMS)) == 1
        assert spreadsheet.records(TABLE_ROOMS)[0]["user_id"] == "acct-2"

    def test_sync_deletes_keep_other_transaction_types(self, remote, spreadsheet):
        state = _state()
        ws = remote._worksheet(TABLE_TRANSACTIONS)
        header = ws.get_all_values()[0]
        ws.append_row([{"id": "t-1", "user_id": ACCOUNT_ID, "type": "payout"}.get(c, "") for c in header])

        sync.save_state(remote, ACCOUNT_ID, state)
        types = sorted(r["type"] for r in spreadsheet.records(TABLE_TRANSACTIONS))
        assert types == ["manual_referral", "payout"]

    def test_without_sync_deletes_rows_survive(self, remote, spreadsheet):
        state = _state()
        sync.save_state(remote, ACCOUNT_ID, state)
        sync.save_state(remote, ACCOUNT_ID, AppState.empty(), sync_deletes=False)
        assert len(spreadsheet.records(TABLE_ROOMS)) == 1


class TestNarrowWrites:

    def test_delete_by_id(self, remote, spreadsheet):
        state = _state()
        sync.save_state(remote, ACCOUNT_ID, state)
        deleted = sync.delete_by_id(remote, ACCOUNT_ID, TABLE_PARTNERS, "partner", state.partners[0].id)
        assert deleted == 1
        assert spreadsheet.records(TABLE_PARTNERS) == []

    def test_update_booking_returns_saved_booking(self, remote, spreadsheet):
        state = _state()
        saved = sync.update_booking(remote, ACCOUNT_ID, state.bookings[0])
        assert saved == state.bookings[0]
        assert len(spreadsheet.records(TABLE_BOOKINGS)) == 1

    def test_save_partners_only_touches_partners(self, remote, spreadsheet):
        state = _state()
        sync.save_partners(remote, ACCOUNT_ID, state)
        assert len(spreadsheet.records(TABLE_PARTNERS)) == 1
        assert spreadsheet.records(TABLE_ROOMS) == []

    def test_add_room_cost_normalizes_room(self, remote, spreadsheet):
        state = _state()
        item = replace(state.cost_catalog[0], room_id="legacy-room")
        sync.add_room_cost(remote, ACCOUNT_ID, item)
        row = spreadsheet.records(TABLE_ROOM_FINANCIALS)[0]
        assert row["room_id"] == sync.storage_id("room", "legacy-room")
        assert row["id"] == sync.storage_id("cost_catalog", "rc-001")

    def test_expense_foreign_keys(self):
        state = transitions.add_expense(
            AppState.empty(), type="room", description="Bulb", amount=5.0,
            expense_date=date(2024, 3, 1), room_id="room-7",
        )
        row = sync.build_batches(state, ACCOUNT_ID)[TABLE_EXPENSES][0]
        assert row["room_id"] == sync.storage_id("room", "room-7")
        assert row["booking_id"] is None


def test_partner_rows_use_known_columns_only():
    p = Partner(id="p", name="n", type="shop", phone="", email="", commission_type="fixed",
                commission_value=1.0, created_at="")
    row = sync.partner_rows(replace(AppState.empty(), partners=(p,)), ACCOUNT_ID)[0]
    assert set(row) <= set(sync.TABLE_COLUMNS[TABLE_PARTNERS])


class TestFailureIsolation:

    def _prepared(self, remote):
        # crea i fogli vuoti dell'account
        sync.save_state(remote, ACCOUNT_ID, AppState.empty())
        return _state()

    def test_credential_failure_is_a_remote_error(self, remote, spreadsheet):
        state = self._prepared(remote)
        spreadsheet.sheets[TABLE_BOOKINGS].error = RefreshError("token scaduto")

        report = sync.save_state(remote, ACCOUNT_ID, state)

        assert list(report.failures) == [TABLE_BOOKINGS]
        assert "token scaduto" in report.failures[TABLE_BOOKINGS]
        assert TABLE_BOOKINGS in report.user_facing_failures
        assert len(spreadsheet.records(TABLE_PARTNERS)) == 1
        assert len(spreadsheet.records(TABLE_MONTH_LOCKS)) == 1

    def test_unexpected_error_does_not_stop_other_tables(self, remote, spreadsheet):
        state = self._prepared(remote)
        spreadsheet.sheets[TABLE_ROOMS].error = RuntimeError("boom")

        report = sync.save_state(remote, ACCOUNT_ID, state)

        assert list(report.failures) == [TABLE_ROOMS]
        assert TABLE_ROOMS in report.user_facing_failures
        assert len(report.saved) == 7
        assert len(spreadsheet.records(TABLE_BOOKINGS)) == 1


class TestLoadUnreadableRows:

    def _append(self, remote, table, values):
        ws = remote._worksheet(table)
        header = ws.get_all_values()[0]
        ws.append_row([values.get(c, "") for c in header])

    def test_unreadable_rows_are_skipped_and_reported(self, remote):
        state = _state()
        sync.save_state(remote, ACCOUNT_ID, state)
        self._append(remote, TABLE_BOOKINGS, {"id": "no-dates", "user_id": ACCOUNT_ID, "room_id": "r"})
        self._append(remote, TABLE_BOOKINGS, {
            "id": "bad-totals", "user_id": ACCOUNT_ID, "room_id": "r",
            "start_date": "2024-05-01", "end_date": "2024-05-03", "totals": "[1, 2]",
        })
        self._append(remote, TABLE_PARTNERS, {"id": "bad-number", "user_id": ACCOUNT_ID, "commission_value": "abc"})

        skipped = []
        loaded = sync.load_state(remote, ACCOUNT_ID, skipped=skipped)

        assert loaded.bookings == state.bookings
        assert loaded.partners == state.partners
        assert sorted(skipped) == [
            (TABLE_BOOKINGS, "bad-totals"),
            (TABLE_BOOKINGS, "no-dates"),
            (TABLE_PARTNERS, "bad-number"),
        ]

    def test_loaded_state_accepts_new_bookings(self, remote):
        state = _state()
        sync.save_state(remote, ACCOUNT_ID, state)
        room_id = state.rooms[0].id
        self._append(remote, TABLE_BOOKINGS, {"id": "no-dates", "user_id": ACCOUNT_ID, "room_id": room_id})

        loaded = sync.load_state(remote, ACCOUNT_ID)
        created = transitions.create_booking(loaded, BookingInput(
            room_id=room_id, start_date=date(2024, 3, 10), end_date=date(2024, 3, 12), price_per_night=90.0,
        ))
        assert created is not None
        assert len(created.bookings) == 2

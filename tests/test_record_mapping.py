from __future__ import annotations

import datetime as dt

import pytest

from vitals.core.record_mapping import (
    RecordError,
    map_account_record,
    map_client_record,
    map_valuation_points,
)


@pytest.mark.parametrize(
    "record,first,last",
    [
        ({"id": 1, "firstName": "Ada", "lastName": "Lovelace"}, "Ada", "Lovelace"),
        ({"id": 1, "name": "Lovelace, Ada"}, "Ada", "Lovelace"),
        ({"id": 1, "name": "Grace Brewster Hopper"}, "Grace Brewster", "Hopper"),
        ({"id": 1, "name": "Cher"}, "Cher", ""),
    ],
)
def test_client_name_variants(record, first, last):
    mapped = map_client_record(record)
    assert (mapped["first_name"], mapped["last_name"]) == (first, last)
    assert mapped["external_id"] == "1"


def test_client_optional_fields():
    mapped = map_client_record(
        {"id": "C9", "name": "Ada", "marketValue": "$1,000.25", "isActive": "false", "startDate": "2019-04-01T00:00:00"}
    )
    assert mapped["aum"] == 1000.25
    assert mapped["is_active"] is False
    assert mapped["start_date"] == dt.date(2019, 4, 1)
    assert mapped["email_address"] is None


def test_client_requires_id_and_name():
    with pytest.raises(RecordError):
        map_client_record({"name": "No Id"})
    with pytest.raises(RecordError):
        map_client_record({"id": "C1"})
    with pytest.raises(RecordError):
        map_client_record("not a record")


def test_account_mapping():
    mapped = map_account_record({"id": 5, "client_id": 9, "type": "IRA", "currentValue": "nan"})
    assert mapped["external_id"] == "5"
    assert mapped["external_client_id"] == "9"
    assert mapped["account_type"] == "IRA"
    assert mapped["current_value"] is None
    assert mapped["is_active"] is True


def test_valuation_points_last_duplicate_wins():
    rows = map_valuation_points(
        [
            {"asOfDate": "2025-01-31", "value": 1},
            {"date": "2025-01-31T00:00:00Z", "value": 2, "currency": "eur"},
            {"asOfDate": "2025-02-28", "value": 3, "entityId": "H7"},
        ],
        external_client_id="C1",
    )
    by_key = {(r["external_entity_id"], r["as_of_date"]): r for r in rows}
    assert len(rows) == 2
    assert by_key[("C1", dt.date(2025, 1, 31))]["value"] == 2.0
    assert by_key[("C1", dt.date(2025, 1, 31))]["currency"] == "EUR"
    assert ("H7", dt.date(2025, 2, 28)) in by_key


@pytest.mark.parametrize(
    "payload",
    [
        {"asOfDate": "2025-01-31", "value": 1},
        [{"value": 1}],
        [{"asOfDate": "2025-01-31", "value": "n/a"}],
        ["2025-01-31"],
    ],
)
def test_valuation_points_reject_malformed(payload):
    with pytest.raises(RecordError):
        map_valuation_points(payload, external_client_id="C1")

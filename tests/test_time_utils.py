from __future__ import annotations

import datetime as dt

from vitals.db.models import Client
from vitals.utils.time import UTC, ensure_utc, isoformat_or_none, parse_date


def test_parse_date_accepts_common_shapes():
    assert parse_date("2024-03-31") == dt.date(2024, 3, 31)
    assert parse_date("2024-03-31T18:30:00Z") == dt.date(2024, 3, 31)
    assert parse_date(dt.datetime(2024, 3, 31, 23, 0)) == dt.date(2024, 3, 31)
    assert parse_date(dt.date(2024, 3, 31)) == dt.date(2024, 3, 31)
    assert parse_date("") is None
    assert parse_date("03/31/2024") is None


def test_naive_datetimes_are_treated_as_utc():
    naive = dt.datetime(2024, 1, 1, 12, 0)
    assert ensure_utc(naive).tzinfo == UTC
    assert isoformat_or_none(naive) == "2024-01-01T12:00:00+00:00"
    assert isoformat_or_none(None) is None


def test_model_timestamps_default_to_now(session):
    client = Client(organization_id=1, external_id="C1", first_name="Ada", last_name="Lovelace")
    session.add(client)
    session.flush()
    assert client.created_at is not None
    assert client.updated_at is not None
    assert client.raw_json == {}

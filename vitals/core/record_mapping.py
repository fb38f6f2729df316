from __future__ import annotations

import datetime as dt
import math
from typing import Any

from vitals.utils.time import parse_date


class RecordError(Exception):
    pass


def _as_str(v: Any) -> str:
    return str(v).strip() if v is not None else ""


def _float_or_none(v: Any) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        out = float(v)
    else:
        s = str(v).strip().replace(",", "").replace("$", "")
        if not s:
            return None
        try:
            out = float(s)
        except ValueError:
            return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def _bool_or_default(v: Any, default: bool = True) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "active"}:
        return True
    if s in {"0", "false", "no", "n", "inactive"}:
        return False
    return default


def external_id_of(record: dict[str, Any]) -> str:
    return _as_str(record.get("id"))


def external_client_id_of(record: dict[str, Any]) -> str:
    return _as_str(record.get("clientId") if record.get("clientId") is not None else record.get("client_id"))


def _split_name(name: str) -> tuple[str, str]:
    # Orion household names are usually "Last, First" or "First Last".
    if "," in name:
        last, first = name.split(",", 1)
        return first.strip(), last.strip()
    parts = name.split()
    if len(parts) == 1:
        return parts[0], ""
    return " ".join(parts[:-1]), parts[-1]


def map_client_record(record: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(record, dict):
        raise RecordError("client record is not an object")
    external_id = external_id_of(record)
    if not external_id:
        raise RecordError("client record is missing id")

    first = _as_str(record.get("firstName"))
    last = _as_str(record.get("lastName"))
    name = _as_str(record.get("name"))
    if not first and not last:
        if not name:
            raise RecordError(f"client {external_id} has no name")
        first, last = _split_name(name)

    return {
        "external_id": external_id,
        "first_name": first,
        "last_name": last,
        "display_name": name or f"{first} {last}".strip(),
        "email_address": _as_str(record.get("email")) or None,
        "phone_number": _as_str(record.get("phone")) or None,
        "aum": _float_or_none(record.get("aum") if record.get("aum") is not None else record.get("marketValue")),
        "is_active": _bool_or_default(record.get("isActive")),
        "start_date": parse_date(record.get("startDate")),
    }


def map_account_record(record: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(record, dict):
        raise RecordError("account record is not an object")
    external_id = external_id_of(record)
    if not external_id:
        raise RecordError("account record is missing id")
    return {
        "external_id": external_id,
        "external_client_id": external_client_id_of(record) or None,
        "name": _as_str(record.get("name")) or None,
        "number": _as_str(record.get("number")) or None,
        "account_type": _as_str(record.get("accountType") or record.get("type")) or None,
        "custodian": _as_str(record.get("custodian")) or None,
        "current_value": _float_or_none(record.get("currentValue")),
        "is_active": _bool_or_default(record.get("isActive")),
        "start_date": parse_date(record.get("accountStartDate")),
    }


def map_valuation_points(points: Any, *, external_client_id: str) -> list[dict[str, Any]]:
    """
    Normalize an AUM-over-time payload into rows keyed by (entity, as_of_date).

    The whole batch is rejected on the first malformed point so a client's history
    is either stored completely or counted as one failure.
    """
    if not isinstance(points, list):
        raise RecordError(f"AUM history for client {external_client_id} is not a list")
    out: dict[tuple[str, dt.date], dict[str, Any]] = {}
    for p in points:
        if not isinstance(p, dict):
            raise RecordError(f"AUM point for client {external_client_id} is not an object")
        as_of = parse_date(p.get("asOfDate") or p.get("date"))
        if as_of is None:
            raise RecordError(f"AUM point for client {external_client_id} has no asOfDate")
        value = _float_or_none(p.get("value"))
        if value is None:
            raise RecordError(f"AUM point {as_of.isoformat()} for client {external_client_id} has no value")
        entity = _as_str(p.get("entityId")) or external_client_id
        # Last point wins when the provider repeats a date.
        out[(entity, as_of)] = {
            "external_entity_id": entity,
            "as_of_date": as_of,
            "value": value,
            "currency": _as_str(p.get("currency")).upper() or "USD",
            "raw_json": p,
        }
    return list(out.values())

"""
Record gateway logic: feeding records and the per-date D3 checklist over a
key-value store.
"""

from __future__ import annotations

import json
import logging
import math
import random
import string
import time
from typing import Any, Optional

from feedlog.errors import InvalidParameter, MalformedRecord, MissingParameter
from feedlog.ordering import sort_records
from feedlog.store import KeyValueStore

logger = logging.getLogger(__name__)

D3_KEY_PREFIX = "d3_"
D3_REQUEST_TYPE = "d3"
RECORD_ID_PREFIX = "record_"
DEFAULT_D3_STATUS = [False, False]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def d3_key(date_string: str) -> str:
    return f"{D3_KEY_PREFIX}{date_string}"


def is_d3_key(key: str) -> bool:
    return key.startswith(D3_KEY_PREFIX)


def generate_record_id(now_ms: Optional[int] = None) -> str:
    """Time-based plus random opaque id, e.g. ``record_1704913800000_k3j9x0a2b``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{RECORD_ID_PREFIX}{now_ms}_{suffix}"


class NonFiniteNumber(MalformedRecord, ValueError):
    """JSON carried NaN or an infinity, which cannot be served back as JSON."""


def _reject_constant(token: str):
    raise NonFiniteNumber(f"Non-finite number {token} is not allowed")


def _finite_float(token: str) -> float:
    value = float(token)
    if not math.isfinite(value):
        raise NonFiniteNumber(f"Non-finite number {token} is not allowed")
    return value


def parse_json(raw) -> Any:
    """Strict JSON parsing: ``NaN``, ``Infinity`` and overflowing floats raise."""
    return json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)


def _loads(key: str, raw: str) -> Any:
    try:
        return parse_json(raw)
    except NonFiniteNumber:
        raise
    except (TypeError, ValueError) as exc:
        raise MalformedRecord(f"Stored value for {key} is not valid JSON: {exc}") from exc


class RecordService:
    """Translates gateway operations into key-value reads and writes."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def list_records(self) -> list[dict]:
        records = []
        for key in self.store.list_keys():
            if is_d3_key(key):
                continue
            raw = self.store.get(key)
            if not raw:
                # Deleted between listing and reading.
                continue
            try:
                value = _loads(key, raw)
            except NonFiniteNumber as exc:
                logger.warning("Skipping stored record %s: %s", key, exc)
                continue
            if not isinstance(value, dict):
                raise MalformedRecord(f"Stored value for {key} is not an object")
            records.append({"id": key, **value})
        return sort_records(records)

    def get_d3_status(self, date_string: Optional[str]) -> list:
        if not date_string:
            raise MissingParameter("Missing date")
        raw = self.store.get(d3_key(date_string))
        if not raw:
            return list(DEFAULT_D3_STATUS)
        status = _loads(d3_key(date_string), raw)
        if not isinstance(status, list):
            raise MalformedRecord(f"Stored D3 status for {date_string} is not a list")
        return status

    def save(self, payload: Any) -> Optional[str]:
        """
        Persist a request body. D3 checklist writes return None; feeding
        records return the id they were stored under.
        """
        if not isinstance(payload, dict):
            raise MalformedRecord("Request body must be a JSON object")
        if payload.get("type") == D3_REQUEST_TYPE:
            self.save_d3_status(payload.get("dateString"), payload.get("status"))
            return None
        return self.save_record(payload)

    def save_d3_status(self, date_string: Optional[str], status: Any) -> None:
        if not date_string:
            raise MissingParameter("Missing dateString")
        if status is None:
            raise MissingParameter("Missing status")
        self.store.put(d3_key(date_string), json.dumps(status))

    def save_record(self, payload: dict) -> str:
        record_id = payload.get("id")
        if record_id:
            record_id = str(record_id)
            if is_d3_key(record_id):
                raise InvalidParameter(f"Record id may not start with {D3_KEY_PREFIX!r}")
        else:
            record_id = generate_record_id()
        value = {k: v for k, v in payload.items() if k != "id"}
        self.store.put(record_id, json.dumps(value))
        logger.debug("Stored record %s", record_id)
        return record_id

    def delete_record(self, record_id: Optional[str]) -> None:
        if not record_id:
            raise MissingParameter("Missing id")
        if is_d3_key(record_id):
            raise InvalidParameter(f"Record id may not start with {D3_KEY_PREFIX!r}")
        self.store.delete(record_id)

"""
Thin HTTP client for the ``/api/records`` gateway.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from feedlog_client.errors import NetworkFailure

logger = logging.getLogger(__name__)

RECORDS_PATH = "/api/records"
REQUEST_TIMEOUT = 10  # seconds


class RecordsApi:
    """
    Wraps the gateway endpoints.

    Args:
        base_url: Server root, e.g. ``http://127.0.0.1:8000``.
        session: Anything with requests-style ``get``/``post``/``delete``
            methods. Defaults to a new ``requests.Session``.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        session: Any = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.url = base_url.rstrip("/") + RECORDS_PATH
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _call(self, method: str, **kwargs) -> Any:
        try:
            response = getattr(self.session, method)(
                self.url, timeout=self.timeout, **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise NetworkFailure(f"Server unreachable: {exc}") from exc

        if response.status_code >= 400:
            message = response.text
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                message = body["error"]
            raise NetworkFailure(
                f"{method.upper()} {RECORDS_PATH} failed ({response.status_code}): {message}",
                status_code=response.status_code,
            )
        return response.json()

    def list_records(self) -> list[dict]:
        records = self._call("get")
        if not isinstance(records, list):
            raise NetworkFailure("Unexpected list response", status_code=200)
        return records

    def create_record(self, record: dict) -> str:
        """Store a record and return the id it was stored under."""
        payload = self._call("post", json=record)
        return payload["id"]

    def delete_record(self, record_id: str) -> None:
        self._call("delete", params={"id": record_id})

    def get_d3_status(self, date_string: str) -> list:
        payload = self._call("get", params={"type": "d3", "date": date_string})
        return payload.get("status") or [False, False]

    def set_d3_status(self, date_string: str, status: list) -> None:
        self._call(
            "post",
            json={"type": "d3", "dateString": date_string, "status": list(status)},
        )

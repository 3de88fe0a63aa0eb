"""
Client-side failure types.
"""

from __future__ import annotations

from typing import Optional


class NetworkFailure(Exception):
    """
    A request to the gateway did not succeed.

    ``status_code`` is None when the server could not be reached at all
    (connection refused, timeout); otherwise it holds the non-2xx status the
    server answered with.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def unreachable(self) -> bool:
        return self.status_code is None

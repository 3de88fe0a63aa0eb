"""
Pydantic schemas for the feeding log API.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class D3StatusResponse(BaseModel):
    # Stored verbatim; normally two booleans, one per daily dose.
    status: list


class SuccessResponse(BaseModel):
    success: Literal[True] = True


class SaveRecordResponse(SuccessResponse):
    id: str


class HealthResponse(BaseModel):
    status: Literal["ok"]

"""
HTTP routes for the feeding log API.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.concurrency import run_in_threadpool

from feedlog.config import get_settings
from feedlog.dependencies import get_record_service
from feedlog.errors import MalformedRecord
from feedlog.records import D3_REQUEST_TYPE, RecordService, parse_json
from feedlog.schemas import (
    D3StatusResponse,
    HealthResponse,
    SaveRecordResponse,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}
ALLOWED_METHODS = "GET, POST, DELETE, OPTIONS"
ALLOWED_HEADERS = "Content-Type"


def _allow_origin(response: Response) -> None:
    response.headers["Access-Control-Allow-Origin"] = get_settings().cors_origin


@router.get("/records", response_model=None)
def list_records(
    response: Response,
    request_type: Optional[str] = Query(
        None, alias="type", description="'d3' to read the checklist"
    ),
    date: Optional[str] = Query(None, description="YYYY-MM-DD for checklist reads"),
    service: RecordService = Depends(get_record_service),
) -> Union[list, D3StatusResponse]:
    """
    List feeding records newest first, or read one day's D3 checklist.
    """
    _allow_origin(response)
    response.headers.update(NO_CACHE_HEADERS)
    if request_type == D3_REQUEST_TYPE:
        return D3StatusResponse(status=service.get_d3_status(date))
    return service.list_records()


@router.post("/records", response_model=None)
async def save_record(
    request: Request,
    response: Response,
    service: RecordService = Depends(get_record_service),
) -> Union[SuccessResponse, SaveRecordResponse]:
    body = await request.body()
    try:
        payload = parse_json(body)
    except ValueError as exc:
        raise MalformedRecord(f"Invalid JSON body: {exc}") from exc

    # Store calls block; keep them off the event loop.
    record_id = await run_in_threadpool(service.save, payload)
    _allow_origin(response)
    if record_id is None:
        return SuccessResponse()
    return SaveRecordResponse(id=record_id)


@router.delete("/records", response_model=SuccessResponse)
def delete_record(
    response: Response,
    record_id: Optional[str] = Query(None, alias="id"),
    service: RecordService = Depends(get_record_service),
):
    service.delete_record(record_id)
    _allow_origin(response)
    return SuccessResponse()


@router.options("/records")
def records_preflight():
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": get_settings().cors_origin,
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        },
    )


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")

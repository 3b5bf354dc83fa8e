"""Event scan API routes.

This module implements the single scan endpoint consumed by the
presentation layer: ``POST /api/scan-events``.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from event_crawler.api.schemas import ScanEventsRequest, ScanEventsResponse
from event_crawler.api.services import ScanService
from event_crawler.capture.assembler import ResponseAssembler
from event_crawler.capture.config import create_engine_config
from event_crawler.capture.engine import ScanEngine

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Scans"],
    responses={
        400: {"model": ScanEventsResponse, "description": "Missing or invalid URL"},
        500: {"model": ScanEventsResponse, "description": "Scan failed"},
        504: {"model": ScanEventsResponse, "description": "Scan deadline exceeded"},
    }
)


_scan_service_instance = None


def get_scan_service() -> ScanService:
    """Dependency to provide the scan service instance.

    The service holds configuration only; every request still runs in its
    own browser session.
    """
    global _scan_service_instance
    if _scan_service_instance is None:
        _scan_service_instance = ScanService(ScanEngine(create_engine_config()))
    return _scan_service_instance


@router.post(
    "/scan-events",
    response_model=ScanEventsResponse,
    summary="Scan a page for analytics events",
    description="""
    Load the page in an isolated headless browser and capture every
    tag-management queue push and direct analytics `event` call it makes.

    ## Status codes

    - `200`: scan completed, including scans that captured zero events
    - `400`: `url` missing or not an absolute http(s) URL; no browser launched
    - `500`: the browser could not start or the page became unusable
    - `504`: the scan did not finish within the per-request deadline

    ## Example

    ```bash
    curl -X POST "http://localhost:8000/api/scan-events" \\
         -H "Content-Type: application/json" \\
         -d '{"url": "https://example.com"}'
    ```
    """,
)
async def scan_events(
    request: ScanEventsRequest,
    http_request: Request,
    scan_service: ScanService = Depends(get_scan_service)
) -> JSONResponse:
    """Scan a page and return its captured analytics events."""
    request_id = getattr(http_request.state, "request_id", None)

    try:
        report = await scan_service.scan(request.url)
    except Exception as e:
        logger.error(
            f"Scan request failed unexpectedly: {e}",
            extra={"request_id": request_id},
            exc_info=True
        )
        result = ResponseAssembler().failure(e)
        return JSONResponse(status_code=500, content=result.to_wire())

    status_code = scan_service.status_code(report)
    logger.info(
        f"Scan finished for {report.url}: status={status_code}, "
        f"events={report.result.event_count}, state={report.state.value}",
        extra={
            "request_id": request_id,
            "duration_ms": report.duration_ms,
            "navigation_timed_out": report.navigation_timed_out,
        }
    )

    return JSONResponse(status_code=status_code, content=report.result.to_wire())

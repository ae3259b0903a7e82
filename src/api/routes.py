"""Automation endpoints."""

from __future__ import annotations

import json
import re
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response

from src.automation.errors import FormattingError
from src.automation.models import OutputFormat
from src.automation.service import AutomationService
from src.utils.logging import get_logger

logger = get_logger("api")

router = APIRouter(prefix="/api", tags=["Automation"])


_UNSAFE_FILENAME_CHARS = re.compile(r'[^\x20-\x7e]|["\\]')


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and a UTF-8 ``filename*``."""
    fallback = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def get_service(request: Request) -> AutomationService:
    """Return the process-wide service attached to the application."""
    return request.app.state.service


@router.post("/automation")
async def run_automation(request: Request, service: AutomationService = Depends(get_service)):
    """Run one automation job.

    Returns:
        The JSON outcome, or the formatted data as an attachment when the job
        asks for csv/xml. 400 when the job is rejected, 500 when it fails.
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Request body must be valid JSON"},
        )

    outcome = await service.execute(payload)

    if outcome.errors:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": outcome.error_message,
                "errors": [issue.model_dump() for issue in outcome.errors],
            },
        )

    if not outcome.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": outcome.error_message,
                "durationMs": outcome.duration_ms,
                "logs": [entry.model_dump(mode="json") for entry in outcome.logs],
            },
        )

    output_format = service.requested_format(payload)
    if output_format is OutputFormat.JSON:
        return JSONResponse(content=outcome.to_dict())

    try:
        rendered = service.render(outcome, output_format)
    except FormattingError as e:
        logger.error(f"Formatting failed: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": e.message, "durationMs": outcome.duration_ms},
        )

    return Response(
        content=rendered.body,
        media_type=rendered.content_type,
        headers={"Content-Disposition": content_disposition(rendered.filename)},
    )


@router.get("/status")
def automation_status(service: AutomationService = Depends(get_service)):
    """Report supported extraction types, security checks and formats."""
    return service.status()

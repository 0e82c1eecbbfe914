"""Log analysis API consumed by the presentation layer."""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from logwatch.errors import LogFormatError, LogReadError, LogSourceError
from logwatch.models import LogAnalysis, ValidationResult
from logwatch.parsers.analysis import analyze_log_text
from logwatch.parsers.validator import validate_log_text
from logwatch.sources import check_installation
from logwatch.watcher import LocalLogWatcher, log_watcher

logger = logging.getLogger("logwatch.api")

analysis_router = APIRouter(prefix="/api/analysis", tags=["analysis"])


class AnalyzeRequest(BaseModel):
    content: str
    sourceTitle: str = Field(default="Uploaded log", min_length=1)
    skipValidation: bool = False


class ValidateRequest(BaseModel):
    content: str
    sourceTitle: str = "Uploaded log"


def _get_watcher(request: Request) -> LocalLogWatcher:
    return getattr(request.app.state, "log_watcher", None) or log_watcher


def _analysis_payload(analysis: LogAnalysis) -> dict:
    return {
        "status": "ok",
        "summary": analysis.summary(),
        "analysis": analysis.model_dump(mode="json"),
        "errorCodes": {
            code: details.model_dump() for code, details in analysis.error_code_details().items()
        },
    }


@analysis_router.post("")
async def analyze_log(body: AnalyzeRequest):
    """Validate and parse an uploaded log blob."""
    try:
        analysis = await asyncio.to_thread(
            analyze_log_text,
            body.content,
            body.sourceTitle,
            not body.skipValidation,
        )
    except LogFormatError as exc:
        raise HTTPException(status_code=422, detail={"kind": exc.kind, "message": str(exc)}) from exc
    return _analysis_payload(analysis)


@analysis_router.post("/validate")
async def validate_log(body: ValidateRequest) -> ValidationResult:
    """Run only the cheap format check."""
    return validate_log_text(body.content, body.sourceTitle)


@analysis_router.get("/local/status")
async def get_local_status():
    """Report agent presence and the agent log files found on this device."""
    status = await asyncio.to_thread(check_installation)
    return status.to_dict()


@analysis_router.get("/local")
async def get_local_analysis(request: Request, refresh: bool = Query(False)):
    """Analysis of this device's agent logs, cached by the watcher."""
    watcher = _get_watcher(request)
    analysis = watcher.latest
    if refresh or analysis is None:
        try:
            analysis = await watcher.refresh()
        except LogSourceError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except LogReadError as exc:
            logger.error("Local log analysis failed: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
    return _analysis_payload(analysis)

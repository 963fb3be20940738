import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile

from extracto.config import settings
from extracto.exceptions import (
    AnalysisError,
    AuthenticationFailedError,
    ExtractionError,
    UnsupportedInputError,
    ZeroYieldError,
)
from extracto.middleware.rate_limit import rate_limit_extract
from extracto.services.analysis import StatementAnalyzer
from extracto.services.extraction import DocumentSource, ExtractionOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator() -> ExtractionOrchestrator:
    """A fresh orchestrator per request; instances hold per-document state."""
    return ExtractionOrchestrator(settings)


def get_analyzer(request: Request) -> StatementAnalyzer:
    return request.app.state.analyzer


def _status_for(error: ExtractionError) -> int:
    if isinstance(error, UnsupportedInputError):
        return 415
    if isinstance(error, ZeroYieldError):
        return 422
    if isinstance(error, (AuthenticationFailedError, AnalysisError)):
        return 502
    return 500


@router.post("/extract")
@rate_limit_extract()
async def extract_statement(
    request: Request,
    response: Response,
    file: UploadFile = File(...),
    analyze: bool = Form(False),
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
    analyzer: StatementAnalyzer = Depends(get_analyzer),
):
    """Extract sanitized text from an uploaded statement, optionally analyzing it."""
    content = await file.read()
    source = DocumentSource(
        content=content,
        mime_type=file.content_type,
        file_name=file.filename or "",
    )
    progress: list[str] = []

    try:
        result = await orchestrator.extract(source, progress_sink=progress.append)
        analysis = None
        if analyze:
            progress.append("Sending sanitized text for analysis")
            analysis = await analyzer.analyze(result.normalized_text, result.bank_type)
    except ExtractionError as e:
        status_code = _status_for(e)
        logger.warning(f"Extraction request failed ({status_code}): {e}")
        raise HTTPException(status_code, str(e)) from e

    return {
        **result.to_dict(),
        "progress": progress,
        "analysis": analysis,
    }

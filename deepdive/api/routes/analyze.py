from __future__ import annotations

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from deepdive.agents.orchestrator import AnalysisOrchestrator
from deepdive.api.deps import get_orchestrator
from deepdive.models.schemas import AnalysisResult, AnalyzeRequest
from deepdive.services import logger as log_service

router = APIRouter(tags=["analyze"])


@router.post("/analyze", response_model=AnalysisResult)
async def analyze(
    request: AnalyzeRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Summary, credibility and fact check for one scraped page."""
    return await orchestrator.analyze(request)


@router.post("/analyze/stream")
async def analyze_stream(
    request: AnalyzeRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """SSE variant of ``/analyze``. Each frame is ``data: {"type": ..., ...}``."""
    # Raises InvalidRequest before any frame is written.
    events = await orchestrator.analyze_stream(request)

    async def event_generator():
        log_service.log_event(
            event_type="stream_started",
            message="Analysis stream started",
            url=request.url,
        )
        async for event in events:
            yield {"data": event.to_json()}

    return EventSourceResponse(event_generator(), sep="\n")

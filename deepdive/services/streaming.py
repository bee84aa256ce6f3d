from __future__ import annotations

from typing import Any

from deepdive.models.events import EventType, SSEEvent
from deepdive.models.schemas import (
    AnalysisResult,
    CredibilityAssessment,
    FactCheckReport,
    SummaryResult,
)


def status(stage: str, message: str, **kwargs: Any) -> SSEEvent:
    return SSEEvent(event=EventType.STATUS, data={"stage": stage, "message": message, **kwargs})


def summary_chunk(chunk: str) -> SSEEvent:
    return SSEEvent(event=EventType.SUMMARY_CHUNK, data={"chunk": chunk})


def summary_complete(summary: SummaryResult, *, degraded: bool = False) -> SSEEvent:
    return SSEEvent(
        event=EventType.SUMMARY_COMPLETE,
        data={"summary": summary.summary, "bullets": summary.bullets, "degraded": degraded},
    )


def credibility_chunk(chunk: str) -> SSEEvent:
    return SSEEvent(event=EventType.CREDIBILITY_CHUNK, data={"chunk": chunk})


def credibility_complete(credibility: CredibilityAssessment, *, degraded: bool = False) -> SSEEvent:
    return SSEEvent(
        event=EventType.CREDIBILITY_COMPLETE,
        data={"credibility": credibility.model_dump(), "degraded": degraded},
    )


def fact_check_complete(report: FactCheckReport) -> SSEEvent:
    return SSEEvent(event=EventType.FACT_CHECK_COMPLETE, data={"fact_check": report.model_dump()})


def complete(result: AnalysisResult, *, cached: bool = False) -> SSEEvent:
    return SSEEvent(event=EventType.COMPLETE, data={"result": result.model_dump(), "cached": cached})


def error(message: str) -> SSEEvent:
    return SSEEvent(event=EventType.ERROR, data={"message": message})

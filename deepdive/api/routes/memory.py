from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from deepdive.api.deps import get_memory
from deepdive.config import settings
from deepdive.errors import NotFound
from deepdive.models.schemas import (
    ArticleOut,
    ConnectionOut,
    ConnectionsResponse,
    HistoryResponse,
)
from deepdive.services.analysis_cache import normalize_key
from deepdive.services.memory_index import ArticleMemoryIndex

router = APIRouter(tags=["memory"])


@router.get("/history", response_model=HistoryResponse)
async def history(
    limit: int = Query(default=settings.history_limit, ge=1),
    memory: ArticleMemoryIndex = Depends(get_memory),
):
    """Most recently analyzed articles first, never more than ``history_limit``."""
    entries, total = memory.history(limit)
    return HistoryResponse(
        articles=[ArticleOut(**entry.to_dict()) for entry in entries],
        total=total,
    )


@router.get("/connections/{url_hash:path}", response_model=ConnectionsResponse)
async def connections(
    url_hash: str,
    memory: ArticleMemoryIndex = Depends(get_memory),
):
    """Related articles for the URL behind ``url_hash``.

    ``url_hash`` is urlsafe or standard base64 of the URL; the standard
    alphabet can contain ``/``.
    """
    try:
        key = normalize_key(url_hash)
    except ValueError as e:
        raise NotFound("Unknown article key") from e
    if not memory.has_article_key(key):
        raise NotFound("Unknown article key")

    joined = [
        ConnectionOut(
            **entry.to_dict(),
            connectionReason=connection.reason,
            strength=connection.strength,
        )
        for connection, entry in memory.connections(key)
    ]
    return ConnectionsResponse(connections=joined, totalArticles=len(memory))

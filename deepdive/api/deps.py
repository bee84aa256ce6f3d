from __future__ import annotations

from fastapi import Depends

from deepdive.agents.orchestrator import AnalysisOrchestrator
from deepdive.services.conversations import ConversationStore
from deepdive.services.memory_index import ArticleMemoryIndex

_orchestrator: AnalysisOrchestrator | None = None


def get_orchestrator() -> AnalysisOrchestrator:
    """Process-wide orchestrator; owns the cache, conversations and memory index."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = AnalysisOrchestrator()
    return _orchestrator


def get_conversations(
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> ConversationStore:
    return orchestrator.conversations


def get_memory(
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> ArticleMemoryIndex:
    return orchestrator.memory


async def shutdown_services() -> None:
    """Wait for background memory updates before the process exits."""
    if _orchestrator is not None:
        await _orchestrator.drain()

from __future__ import annotations

import asyncio
import math
import time
from contextlib import aclosing
from typing import AsyncGenerator, AsyncIterator, Callable

from loguru import logger

from deepdive.agents.base import Outcome, attempt, resolve_with_fallback
from deepdive.agents.credibility_agent import CredibilityAgent, degraded_credibility
from deepdive.agents.fact_check_agent import FactCheckAgent, empty_report
from deepdive.agents.summary_agent import SummaryAgent, degraded_summary
from deepdive.config import settings
from deepdive.errors import DeepDiveError, InternalFault, InvalidRequest, ProviderUnavailable
from deepdive.models.events import SSEEvent
from deepdive.models.schemas import (
    AnalysisResult,
    AnalyzeRequest,
    CredibilityAssessment,
    FactCheckReport,
    SourceMeta,
    SourceMetadata,
    SummaryResult,
)
from deepdive.services import logger as log_service
from deepdive.services import streaming
from deepdive.services.analysis_cache import AnalysisCache, InMemoryAnalysisCache, cache_key
from deepdive.services.conversations import ConversationStore
from deepdive.services.memory_index import ArticleMemoryIndex

WORDS_PER_MINUTE = 200
CHARS_PER_TOKEN = 4


def clean_content(content: str, max_tokens: int | None = None) -> str:
    """Truncate to the provider token budget (about four characters per token)."""
    max_tokens = settings.content_max_tokens if max_tokens is None else max_tokens
    truncated = content[: max_tokens * CHARS_PER_TOKEN].strip()
    return truncated.replace("\x00", "")


def build_source_meta(request: AnalyzeRequest, content: str) -> SourceMeta:
    metadata = request.metadata
    word_count = len(content.split())
    return SourceMeta(
        title=metadata.title,
        author=metadata.author,
        published_at=metadata.published_at,
        source=metadata.source,
        channel=metadata.channel,
        type=request.type,
        word_count=word_count,
        reading_time=math.ceil(word_count / WORDS_PER_MINUTE),
    )


def merge_fact_check_sources(
    credibility: CredibilityAssessment, fact_check: FactCheckReport
) -> CredibilityAssessment:
    if not fact_check.sources:
        return credibility
    return credibility.model_copy(update={"fact_check_sources": list(fact_check.sources)})


class AnalysisOrchestrator:
    """Runs one analysis request against the provider capabilities.

    Flow:
      1. Cache lookup by URL key (hit returns the stored result as-is)
      2. Fan out: summary, credibility and fact check concurrently
      3. Resolve each capability through its fallback chain
      4. Assemble result, open a conversation, write the cache
      5. Record the article in memory in the background

    Provider failures never escape; they resolve to fixed degraded values.
    ``analyze_stream`` runs the same policy with the summary and credibility
    phases in sequence so their raw text can be forwarded as it arrives.
    """

    def __init__(
        self,
        *,
        cache: AnalysisCache | None = None,
        conversations: ConversationStore | None = None,
        memory: ArticleMemoryIndex | None = None,
        summary_agent: SummaryAgent | None = None,
        fallback_summary_agent: SummaryAgent | None = None,
        credibility_agent: CredibilityAgent | None = None,
        fact_check_agent: FactCheckAgent | None = None,
    ):
        self.cache = cache if cache is not None else InMemoryAnalysisCache()
        self.conversations = conversations if conversations is not None else ConversationStore()
        self.memory = memory if memory is not None else ArticleMemoryIndex()
        self.summary_agent = summary_agent if summary_agent is not None else SummaryAgent()
        if fallback_summary_agent is None:
            fallback_summary_agent = SummaryAgent(provider="anthropic")
        self.fallback_summary_agent = fallback_summary_agent
        self.credibility_agent = credibility_agent if credibility_agent is not None else CredibilityAgent()
        self.fact_check_agent = fact_check_agent if fact_check_agent is not None else FactCheckAgent()
        self.stream_chunk_chars = max(int(settings.stream_chunk_chars), 1)
        self._background: set[asyncio.Task] = set()

    @staticmethod
    def _validate(request: AnalyzeRequest) -> tuple[str, str]:
        if not request.url or not request.content:
            raise InvalidRequest("Missing required fields: url, content")
        return request.url, request.content

    async def analyze(self, request: AnalyzeRequest) -> AnalysisResult:
        url, raw_content = self._validate(request)
        try:
            return await self._analyze(request, url, raw_content)
        except DeepDiveError:
            raise
        except Exception as e:
            logger.exception(f"Analysis failed for {url}: {e}")
            raise InternalFault(str(e)) from e

    async def _analyze(self, request: AnalyzeRequest, url: str, raw_content: str) -> AnalysisResult:
        key = cache_key(url)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.info(f"Returning cached result for {url}")
            return cached

        t0 = time.monotonic()
        logger.info(f"Analyzing {request.type}: {url}")
        content = clean_content(raw_content)
        metadata = request.metadata

        summary_outcome, credibility_outcome, fact_outcome = await asyncio.gather(
            attempt(self.summary_agent.summarize(content, metadata), source="summary.primary"),
            attempt(self.credibility_agent.assess(content, metadata, url), source="credibility"),
            attempt(self.fact_check_agent.check(content, metadata), source="fact_check"),
        )
        summary = await self._resolve_summary(summary_outcome, content, metadata)
        credibility = self._resolve_credibility(credibility_outcome)
        fact_check = self._resolve_fact_check(fact_outcome)

        result = await self._finalize(request, key, content, summary.value, credibility, fact_check)
        degraded = [
            name
            for name, ok in (
                ("summary", summary.source != "default"),
                ("credibility", credibility_outcome.ok),
                ("fact_check", fact_outcome.ok),
            )
            if not ok
        ]
        log_service.log_analysis(
            url=url,
            summary_source=summary.source,
            degraded=degraded,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return result

    async def analyze_stream(self, request: AnalyzeRequest) -> AsyncGenerator[SSEEvent, None]:
        """Yield progress events ending in exactly one ``complete`` or ``error``.

        Validation errors are raised before the first event so the boundary can
        still answer 400.
        """
        url, raw_content = self._validate(request)
        return self._stream(request, url, raw_content)

    async def _stream(
        self, request: AnalyzeRequest, url: str, raw_content: str
    ) -> AsyncGenerator[SSEEvent, None]:
        pending: list[asyncio.Task] = []
        try:
            key = cache_key(url)
            cached = await self.cache.get(key)
            if cached is not None:
                yield streaming.status("cached", "Returning cached analysis")
                yield streaming.summary_complete(
                    SummaryResult(summary=cached.summary, bullets=cached.bullets)
                )
                yield streaming.credibility_complete(cached.credibility)
                yield streaming.fact_check_complete(cached.fact_check)
                yield streaming.complete(cached, cached=True)
                return

            content = clean_content(raw_content)
            metadata = request.metadata
            yield streaming.status(
                "started", f"Analyzing {request.type}", word_count=len(content.split())
            )

            fact_task = asyncio.create_task(
                attempt(self.fact_check_agent.check(content, metadata), source="fact_check")
            )
            prepare_task = asyncio.create_task(
                self.credibility_agent.prepare(content, metadata, url)
            )
            pending.extend([fact_task, prepare_task])

            # Phase 1: summary
            yield streaming.status("summary", "Summarizing content")
            parts: list[str] = []
            try:
                async with aclosing(
                    self._relay(
                        self.summary_agent.stream_summary(content, metadata),
                        streaming.summary_chunk,
                        parts,
                    )
                ) as events:
                    async for event in events:
                        yield event
                primary = Outcome(value=SummaryAgent.parse_text("".join(parts)), source="summary.primary")
            except ProviderUnavailable as e:
                logger.warning(f"Streaming summary failed: {e}")
                primary = Outcome(error=e, source="summary.primary")
                yield streaming.status(
                    "summary_fallback", "Primary summarizer failed, retrying with secondary provider"
                )
            summary = await self._resolve_summary(primary, content, metadata)
            yield streaming.summary_complete(summary.value, degraded=summary.source == "default")

            # Phase 2: credibility, strictly after summary_complete
            yield streaming.status("credibility", "Assessing credibility")
            credibility_request = await prepare_task
            parts = []
            try:
                async with aclosing(
                    self._relay(
                        self.credibility_agent.stream_assessment(credibility_request),
                        streaming.credibility_chunk,
                        parts,
                    )
                ) as events:
                    async for event in events:
                        yield event
                credibility = CredibilityAgent.parse_text("".join(parts), credibility_request)
                credibility_degraded = False
            except ProviderUnavailable as e:
                logger.warning(f"Streaming credibility failed: {e}")
                credibility = degraded_credibility()
                credibility_degraded = True
            yield streaming.credibility_complete(credibility, degraded=credibility_degraded)

            # Phase 3: fact check (running since the start)
            yield streaming.status("fact_check", "Checking claims")
            fact_check = self._resolve_fact_check(await fact_task)
            yield streaming.fact_check_complete(fact_check)

            result = await self._finalize(request, key, content, summary.value, credibility, fact_check)
            yield streaming.complete(result)
        except Exception as e:
            logger.exception(f"Analysis stream failed for {url}: {e}")
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in analysis stream",
                error=str(e),
                url=url,
            )
            yield streaming.error("Analysis stream failed unexpectedly.")
        finally:
            for task in pending:
                if not task.done():
                    task.cancel()

    async def _relay(
        self,
        chunks: AsyncIterator[str],
        to_event: Callable[[str], SSEEvent],
        sink: list[str],
    ) -> AsyncGenerator[SSEEvent, None]:
        """Forward provider text as chunk events of about ``stream_chunk_chars``."""
        buffer = ""
        async with aclosing(chunks) as texts:
            async for text in texts:
                sink.append(text)
                buffer += text
                if len(buffer) >= self.stream_chunk_chars:
                    yield to_event(buffer)
                    buffer = ""
        if buffer:
            yield to_event(buffer)

    async def _resolve_summary(
        self, primary: Outcome[SummaryResult], content: str, metadata: SourceMetadata
    ) -> Outcome[SummaryResult]:
        excerpt = content[: settings.prompt_content_chars]
        outcome = await resolve_with_fallback(
            primary,
            [
                (
                    "summary.secondary",
                    lambda: self.fallback_summary_agent.summarize(excerpt, metadata),
                )
            ],
            degraded_summary,
        )
        if outcome.source == "summary.secondary":
            logger.info("Secondary summary fallback successful")
        elif outcome.source == "default":
            logger.error(f"Both summary providers failed: {outcome.error}")
        return outcome

    @staticmethod
    def _resolve_credibility(outcome: Outcome[CredibilityAssessment]) -> CredibilityAssessment:
        if outcome.ok and outcome.value is not None:
            return outcome.value
        return degraded_credibility()

    @staticmethod
    def _resolve_fact_check(outcome: Outcome[FactCheckReport]) -> FactCheckReport:
        if outcome.ok and outcome.value is not None:
            return outcome.value
        return empty_report()

    async def _finalize(
        self,
        request: AnalyzeRequest,
        key: str,
        content: str,
        summary: SummaryResult,
        credibility: CredibilityAssessment,
        fact_check: FactCheckReport,
    ) -> AnalysisResult:
        url = request.url or ""
        conversation_id = await self.conversations.create(url, content, request.metadata)
        result = AnalysisResult(
            summary=summary.summary,
            bullets=list(summary.bullets),
            credibility=merge_fact_check_sources(credibility, fact_check),
            fact_check=fact_check,
            source_meta=build_source_meta(request, content),
            conversation_id=conversation_id,
        )
        await self.cache.set(key, result)
        self._schedule_memory_update(url, result, request.metadata)
        return result

    def _schedule_memory_update(
        self, url: str, result: AnalysisResult, metadata: SourceMetadata
    ) -> None:
        task = asyncio.create_task(self._record_memory(url, result, metadata))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _record_memory(
        self, url: str, result: AnalysisResult, metadata: SourceMetadata
    ) -> None:
        try:
            await self.memory.record_article(url, result, metadata)
        except Exception as e:
            logger.error(f"Memory update failed for {url}: {e}")

    async def drain(self) -> None:
        """Wait for outstanding background memory updates."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Sequence, TypeVar

from loguru import logger

from deepdive.config import settings
from deepdive.errors import DeepDiveError, ProviderUnavailable
from deepdive.llm_client import Provider, client as llm_client, get_max_tokens, get_model
from deepdive.services import logger as log_service
from deepdive.services.json_extract import JsonKind, extract_json

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    """Result of one capability call: either ``value`` or ``error``."""

    value: T | None = None
    error: BaseException | None = None
    source: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


async def attempt(call: Awaitable[T], *, source: str) -> Outcome[T]:
    """Await ``call`` and capture any failure as an ``Outcome`` instead of raising."""
    try:
        return Outcome(value=await call, source=source)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning(f"{source} failed: {type(exc).__name__}: {exc}")
        return Outcome(error=exc, source=source)


async def resolve_with_fallback(
    primary: Outcome[T],
    fallbacks: Sequence[tuple[str, Callable[[], Awaitable[T]]]],
    default: Callable[[], T],
) -> Outcome[T]:
    """Walk the fallback chain until something succeeds.

    ``primary`` has already run. Each fallback is a ``(source, factory)`` pair
    invoked only if everything before it failed. When the whole chain fails the
    outcome carries ``default()`` with source ``"default"`` and the last error.
    """
    if primary.ok:
        return primary
    last_error = primary.error
    for source, factory in fallbacks:
        outcome = await attempt(factory(), source=source)
        if outcome.ok:
            return outcome
        last_error = outcome.error
    return Outcome(value=default(), error=last_error, source="default")


def response_text(response: Any) -> str:
    blocks = getattr(response, "content", None) or []
    text_parts: list[str] = []
    for block in blocks:
        btype = getattr(block, "type", None)
        btext = getattr(block, "text", None)
        is_text_like_type = btype in (None, "text") or not isinstance(btype, str)
        if is_text_like_type and isinstance(btext, str) and btext.strip():
            text_parts.append(btext)
    return "\n".join(text_parts).strip()


class BaseAgent:
    """One capability backed by one provider.

    Subclasses pick a ``name`` and default ``provider`` and build prompts; the
    base class owns the provider call, the timeout and call logging. Every
    failure surfaces as ``ProviderUnavailable`` (or its ``ParseFailure``
    subclass) so callers can degrade uniformly.
    """

    name: str = "base"
    provider: Provider = "anthropic"

    def __init__(
        self,
        provider: Provider | None = None,
        *,
        model: str | None = None,
        timeout: float | None = None,
    ):
        if provider is not None:
            self.provider = provider
        self.model = model or get_model(self.provider)
        self.max_tokens = get_max_tokens(self.provider)
        self.timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self.client = None

    @property
    def caller(self) -> str:
        return f"{self.name}.{self.provider}"

    def _client(self) -> Any:
        return self.client or llm_client(self.provider)

    def _request_kwargs(
        self,
        prompt: str | None,
        *,
        system: str | None,
        messages: list[dict[str, str]] | None,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        conversation = list(messages or [])
        if prompt is not None:
            conversation.append({"role": "user", "content": prompt})
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": conversation,
        }
        if system:
            kwargs["system"] = system
        return kwargs

    def _wrap_error(self, exc: BaseException) -> DeepDiveError:
        if isinstance(exc, DeepDiveError):
            return exc
        if isinstance(exc, asyncio.TimeoutError):
            return ProviderUnavailable(
                f"{self.caller} timed out after {self.timeout:.0f}s", provider=self.provider
            )
        return ProviderUnavailable(f"{self.caller}: {exc}", provider=self.provider)

    async def complete(
        self,
        prompt: str | None = None,
        *,
        system: str | None = None,
        messages: list[dict[str, str]] | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Run one request/response call and return the text."""
        t0 = time.monotonic()
        try:
            active_client = self._client()
            kwargs = self._request_kwargs(
                prompt, system=system, messages=messages, max_tokens=max_tokens
            )
            response = await asyncio.wait_for(
                active_client.messages.create(**kwargs), timeout=self.timeout
            )
        except Exception as exc:
            wrapped = self._wrap_error(exc)
            log_service.log_llm_call(
                model=self.model,
                caller=self.caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(wrapped),
            )
            raise wrapped from exc

        usage = getattr(response, "usage", None)
        log_service.log_llm_call(
            model=self.model,
            caller=self.caller,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        text = response_text(response)
        if not text:
            raise ProviderUnavailable(f"{self.caller} returned an empty response", provider=self.provider)
        return text

    async def complete_json(self, prompt: str, *, kind: JsonKind = "object", **kwargs: Any) -> Any:
        text = await self.complete(prompt, **kwargs)
        return extract_json(text, kind)

    async def stream_text(
        self,
        prompt: str | None = None,
        *,
        system: str | None = None,
        messages: list[dict[str, str]] | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        """Yield raw text deltas from the provider stream.

        ``timeout`` applies to the wait for each delta, not the whole stream.
        """
        t0 = time.monotonic()
        usage = None
        try:
            active_client = self._client()
            kwargs = self._request_kwargs(
                prompt, system=system, messages=messages, max_tokens=max_tokens
            )
            async with active_client.messages.stream(**kwargs) as stream:
                iterator = stream.text_stream.__aiter__()
                while True:
                    try:
                        text = await asyncio.wait_for(iterator.__anext__(), timeout=self.timeout)
                    except StopAsyncIteration:
                        break
                    if text:
                        yield text
                final_msg = await stream.get_final_message()
                usage = getattr(final_msg, "usage", None)
        except Exception as exc:
            wrapped = self._wrap_error(exc)
            log_service.log_llm_call(
                model=self.model,
                caller=f"{self.caller}.stream",
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(wrapped),
            )
            raise wrapped from exc

        log_service.log_llm_call(
            model=self.model,
            caller=f"{self.caller}.stream",
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

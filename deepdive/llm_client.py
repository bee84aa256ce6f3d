"""Provider client factory for Anthropic and Gemini.

Both providers are exposed through the Anthropic-style ``messages.create`` /
``messages.stream`` surface so agents do not care which one they talk to.
Gemini is reached through its OpenAI-compatible endpoint with the OpenAI SDK.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal

from deepdive.config import credential, settings
from deepdive.errors import ProviderUnavailable

Provider = Literal["anthropic", "gemini"]


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class TextBlock:
    type: str
    text: str


@dataclass
class MessageResponse:
    content: list[Any]
    usage: Usage


class OpenAICompatStream:
    def __init__(self, stream_coro: Any):
        self._stream_coro = stream_coro
        self._stream: Any | None = None
        self._usage = Usage()
        self._finished = False

    async def __aenter__(self) -> "OpenAICompatStream":
        self._stream = await self._stream_coro
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._stream is not None:
            await self._stream.close()

    async def _iter_text(self) -> AsyncIterator[str]:
        if self._stream is None:
            return
        async for chunk in self._stream:
            choices = getattr(chunk, "choices", None) or []
            usage = getattr(chunk, "usage", None)
            if usage:
                self._usage = Usage(
                    input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                    output_tokens=getattr(usage, "completion_tokens", 0) or 0,
                )

            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            if not delta:
                continue
            text = getattr(delta, "content", None)
            if text:
                yield text
        self._finished = True

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._iter_text()

    async def get_final_message(self) -> MessageResponse:
        if not self._finished:
            async for _ in self.text_stream:
                pass
        return MessageResponse(content=[], usage=self._usage)


class OpenAICompatMessagesAdapter:
    def __init__(self, openai_client: Any):
        self._client = openai_client

    @staticmethod
    def _to_openai_messages(system: str | None, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        openai_messages: list[dict[str, Any]] = []
        if system:
            openai_messages.append({"role": "system", "content": system})
        for message in messages:
            openai_messages.append({"role": message["role"], "content": str(message["content"])})
        return openai_messages

    @staticmethod
    def _from_openai_response(response: Any) -> MessageResponse:
        choice = response.choices[0].message
        content: list[Any] = []

        text = getattr(choice, "content", None)
        if text:
            content.append(TextBlock(type="text", text=text))

        usage = getattr(response, "usage", None)
        mapped_usage = Usage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
        return MessageResponse(content=content, usage=mapped_usage)

    async def create(
        self,
        *,
        model: str,
        max_tokens: int,
        messages: list[dict[str, Any]],
        system: str | None = None,
        temperature: float = 0.3,
    ) -> MessageResponse:
        response = await self._client.chat.completions.create(
            model=model,
            messages=self._to_openai_messages(system, messages),
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return self._from_openai_response(response)

    def stream(
        self,
        *,
        model: str,
        max_tokens: int,
        messages: list[dict[str, Any]],
        system: str | None = None,
        temperature: float = 0.3,
    ) -> OpenAICompatStream:
        stream = self._client.chat.completions.create(
            model=model,
            messages=self._to_openai_messages(system, messages),
            max_tokens=max_tokens,
            temperature=temperature,
            stream=True,
            stream_options={"include_usage": True},
        )
        return OpenAICompatStream(stream)


class OpenAICompatClientAdapter:
    def __init__(self, openai_client: Any):
        self.messages = OpenAICompatMessagesAdapter(openai_client)


def get_anthropic_client():
    """Get an AsyncAnthropic client, or raise when no key is configured."""
    api_key = credential(settings.anthropic_api_key)
    if not api_key:
        raise ProviderUnavailable("ANTHROPIC_API_KEY is not configured", provider="anthropic")

    import anthropic

    return anthropic.AsyncAnthropic(api_key=api_key)


def get_gemini_client() -> OpenAICompatClientAdapter:
    """Get a Gemini client via the OpenAI-compatible SDK."""
    api_key = credential(settings.gemini_api_key)
    if not api_key:
        raise ProviderUnavailable("GEMINI_API_KEY is not configured", provider="gemini")

    from openai import AsyncOpenAI

    openai_client = AsyncOpenAI(
        api_key=api_key,
        base_url=settings.gemini_base_url.strip() or None,
    )
    return OpenAICompatClientAdapter(openai_client)


def get_model(provider: Provider) -> str:
    if provider == "anthropic":
        return settings.anthropic_model
    return settings.gemini_model


def get_max_tokens(provider: Provider) -> int:
    if provider == "anthropic":
        return settings.anthropic_max_tokens
    return settings.gemini_max_tokens


_clients: dict[str, Any] = {}


def client(provider: Provider) -> Any:
    """Get or create the client for ``provider``.

    Raises ``ProviderUnavailable`` when the provider has no credentials.
    Nothing is cached after a failure, so the check repeats on the next call.
    """
    if provider not in _clients:
        if provider == "anthropic":
            _clients[provider] = get_anthropic_client()
        elif provider == "gemini":
            _clients[provider] = get_gemini_client()
        else:
            raise ValueError(f"Unsupported provider: {provider}")
    return _clients[provider]


def reset_clients() -> None:
    _clients.clear()

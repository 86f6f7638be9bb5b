"""
gptbot/llm/openai_service.py

Thin wrapper around the OpenAI Chat Completion and Moderation endpoints.
Returns plain dataclasses so the rest of the bot never touches SDK objects,
and turns every `openai` exception into an LLMError subclass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import httpx
import openai
from openai import AsyncOpenAI

from gptbot.config.models import BotConfig
from .errors import LLMError, ModerationUnavailableError, wrap_openai_error

REQUEST_TIMEOUT_SECONDS = 60
FALLBACK_ANSWER = "Hi there"


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class Completion:
    id: str
    model: str
    choices: tuple[Dict[str, str], ...]
    usage: Usage

    @property
    def content(self) -> str:
        """First choice's trimmed text, or a placeholder when it is empty."""
        if self.choices:
            text = (self.choices[0].get("content") or "").strip()
            if text:
                return text
        return FALLBACK_ANSWER

    @classmethod
    def from_response(cls, response: Any) -> Completion:
        usage = getattr(response, "usage", None)
        return cls(
            id=response.id,
            model=response.model,
            choices=tuple(
                {"role": c.message.role, "content": c.message.content or ""}
                for c in response.choices or ()
            ),
            usage=Usage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            ),
        )


class OpenAIService:
    def __init__(self, config: BotConfig, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self._http_client = http_client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS)
        self._clients: dict[str | None, AsyncOpenAI] = {}

    def _client_for(self, base_url: str | None) -> AsyncOpenAI:
        client = self._clients.get(base_url)
        if client is None:
            client = AsyncOpenAI(
                api_key=self.config.openai_api_key or "sk-no-key-required",
                base_url=base_url,
                http_client=self._http_client,
            )
            self._clients[base_url] = client
        return client

    def client_for_model(self, model: str) -> AsyncOpenAI:
        selectable = self.config.find_model(model)
        base_url = (selectable.base_url if selectable else None) or self.config.openai_base_url
        return self._client_for(base_url)

    # ── Chat completion ─────────────────────────────────────────────────────

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        user_id: int | str,
        model: str,
    ) -> Completion:
        params = self.config.generation_parameters
        create_kw: dict[str, Any] = dict(
            model=model,
            messages=messages,
            user=str(user_id),
            **params.sampling_kwargs(),
        )
        if max_tokens := params.max_completion_tokens_per_model.get(model):
            create_kw["max_tokens"] = max_tokens

        logging.debug("Chat completion | model=%s messages=%d user=%s", model, len(messages), user_id)
        try:
            response = await self.client_for_model(model).chat.completions.create(**create_kw)
        except openai.OpenAIError as e:
            raise wrap_openai_error(e) from e
        completion = Completion.from_response(response)
        logging.info(
            "Completion %s | model=%s tokens=%d",
            completion.id,
            completion.model,
            completion.usage.total_tokens,
        )
        return completion

    # ── Moderation ──────────────────────────────────────────────────────────

    async def is_flagged(self, text: str) -> bool:
        """
        Ask the moderation endpoint whether `text` violates the usage policy.
        Raises ModerationUnavailableError when no verdict could be obtained.
        """
        try:
            response = await self._client_for(self.config.openai_base_url).moderations.create(input=text)
        except openai.OpenAIError as e:
            logging.warning("Moderation request failed: %s", e)
            raise ModerationUnavailableError(str(e)) from e
        if not response.results:
            raise ModerationUnavailableError("Moderation response contained no results")
        flagged = bool(response.results[0].flagged)
        if flagged:
            logging.info("Prompt flagged by moderation")
        return flagged

    async def close(self) -> None:
        await self._http_client.aclose()


__all__ = ["Completion", "LLMError", "OpenAIService", "Usage"]

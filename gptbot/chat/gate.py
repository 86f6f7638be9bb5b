"""
Admission gate for chat requests.

Checks run in a fixed order and the first failure raises GateRejection;
nothing after the failing check is evaluated:

1. feature enabled (or staff bypass)
2. consent recorded
3. cooldown not active
4. system instruction resolvable
5. input length within the model's limit
6. moderation does not flag the message
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Protocol

from gptbot.config.models import BotConfig
from gptbot.llm.errors import ModerationUnavailableError, format_user_friendly_error

from .cooldown import CooldownStore

DEFAULT_INSTRUCTION = "default"
FALLBACK_MAX_INPUT_CHARS = 2000


class ConsentChecker(Protocol):
    async def has_consented(self, user_id: int) -> bool: ...


class Moderator(Protocol):
    async def is_flagged(self, text: str) -> bool: ...


class Rejection(str, enum.Enum):
    DISABLED = "disabled"
    NO_CONSENT = "no_consent"
    COOLDOWN = "cooldown"
    UNKNOWN_INSTRUCTION = "unknown_instruction"
    TOO_LONG = "too_long"
    FLAGGED = "flagged"
    MODERATION_UNAVAILABLE = "moderation_unavailable"


class GateRejection(Exception):
    """An expected, user-caused refusal. `message` is shown to the user."""

    def __init__(self, reason: Rejection, message: str, codeblock: bool = True):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.codeblock = codeblock


@dataclass(frozen=True)
class ChatRequest:
    user_id: int
    message: str
    system_instruction: str = DEFAULT_INSTRUCTION
    model: str | None = None
    feature: str = "chat_single"
    is_staff: bool = False


@dataclass(frozen=True)
class AdmittedRequest:
    request: ChatRequest
    model: str
    instruction_name: str
    instruction: str | None
    messages: tuple[Dict[str, str], ...]


class ChatGate:
    def __init__(
        self,
        config: BotConfig,
        consent: ConsentChecker,
        cooldowns: CooldownStore,
        moderator: Moderator,
        terms_tag: str = "`/terms`",
    ):
        self.config = config
        self.consent = consent
        self.cooldowns = cooldowns
        self.moderator = moderator
        # Replaced with a clickable </terms:id> mention once commands are synced.
        self.terms_tag = terms_tag

    def can_bypass(self, is_staff: bool) -> bool:
        return is_staff and self.config.staff_can_bypass_feature_restrictions

    # ── Individual checks ───────────────────────────────────────────────────

    def check_feature(self, feature: str, is_staff: bool) -> None:
        if not self.config.features.enabled(feature) and not self.can_bypass(is_staff):
            raise GateRejection(Rejection.DISABLED, "This command is disabled")

    async def check_consent(self, user_id: int) -> None:
        if not await self.consent.has_consented(user_id):
            raise GateRejection(
                Rejection.NO_CONSENT,
                f"You need to agree to our {self.terms_tag} before using this command",
                codeblock=False,
            )

    def check_cooldown(self, user_id: int, is_staff: bool) -> None:
        if not is_staff and self.config.global_user_cooldown and self.cooldowns.has(user_id):
            raise GateRejection(Rejection.COOLDOWN, "You are currently on cooldown")

    def resolve_instruction(self, name: str) -> str | None:
        if name == DEFAULT_INSTRUCTION:
            return self.config.generation_parameters.default_system_instruction
        found = self.config.find_system_instruction(name)
        if found is None or not found.instruction:
            raise GateRejection(Rejection.UNKNOWN_INSTRUCTION, "Unable to find system instruction")
        return found.instruction

    def check_length(self, message: str, limit: int) -> None:
        if len(message) > limit:
            raise GateRejection(Rejection.TOO_LONG, "Please shorten your prompt")

    async def check_content(self, message: str) -> None:
        if not self.config.generation_parameters.moderate_prompts:
            return
        try:
            flagged = await self.moderator.is_flagged(message)
        except ModerationUnavailableError as e:
            logging.warning("Moderation unavailable, rejecting prompt: %s", e)
            raise GateRejection(Rejection.MODERATION_UNAVAILABLE, format_user_friendly_error(e)) from e
        if flagged:
            raise GateRejection(Rejection.FLAGGED, "Your message has been flagged to be violating OpenAIs TOS")

    # ── Composite flows ─────────────────────────────────────────────────────

    async def precheck(self, request: ChatRequest) -> AdmittedRequest:
        """
        Checks 1-5. Kept apart from moderation so callers can defer the
        interaction before the slower network round-trip.
        """
        self.check_feature(request.feature, request.is_staff)
        await self.check_consent(request.user_id)
        self.check_cooldown(request.user_id, request.is_staff)

        instruction_name = request.system_instruction or DEFAULT_INSTRUCTION
        instruction = self.resolve_instruction(instruction_name)
        model = request.model or self.config.default_model

        self.check_length(request.message, self.config.max_input_chars(model, FALLBACK_MAX_INPUT_CHARS))

        messages = []
        if instruction:
            messages.append({"role": "system", "content": instruction})
        messages.append({"role": "user", "content": request.message})

        return AdmittedRequest(
            request=request,
            model=model,
            instruction_name=instruction_name,
            instruction=instruction,
            messages=tuple(messages),
        )

    async def admit(self, request: ChatRequest) -> AdmittedRequest:
        admitted = await self.precheck(request)
        await self.check_content(request.message)
        return admitted

    async def admit_followup(self, user_id: int, is_staff: bool, message: str) -> None:
        """Gate for a follow-up message posted inside a chat thread."""
        self.check_feature("chat_thread", is_staff)
        await self.check_consent(user_id)
        self.check_cooldown(user_id, is_staff)
        self.check_length(message, self.config.max_thread_followup_length)
        await self.check_content(message)

"""
Request-time flow for chat commands: gate, completion, render, reply,
then the post-send side effects (cooldown, dev debug message).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import discord

from gptbot.config.models import BotConfig
from gptbot.discord.errors import notify_admin_error, send_error
from gptbot.discord.views import ResponseView
from gptbot.llm.errors import LLMError, format_user_friendly_error, parse_error_message
from gptbot.llm.openai_service import Completion, OpenAIService

from .cooldown import CooldownStore
from .gate import AdmittedRequest, ChatGate, ChatRequest, GateRejection
from .render import RenderedReply, build_debug_embed, build_error_embed, render_reply
from .threads import ThreadSession, ThreadSessions, thread_name


def member_role_ids(user: Any) -> set[int]:
    return {role.id for role in getattr(user, "roles", ())}


@dataclass(frozen=True)
class ChatOutcome:
    message: discord.Message
    admitted: AdmittedRequest
    completion: Completion


class ChatDispatcher:
    def __init__(
        self,
        client: discord.Client,
        config: BotConfig,
        gate: ChatGate,
        llm: OpenAIService,
        cooldowns: CooldownStore,
        sessions: ThreadSessions | None = None,
    ):
        self.client = client
        self.config = config
        self.gate = gate
        self.llm = llm
        self.cooldowns = cooldowns
        self.sessions = sessions if sessions is not None else ThreadSessions()

    def is_staff(self, user: Any) -> bool:
        return self.config.is_staff(user.id, member_role_ids(user))

    def build_request(self, user: Any, feature: str, message: str, system_instruction: str | None, model: str | None) -> ChatRequest:
        return ChatRequest(
            user_id=user.id,
            message=message,
            system_instruction=system_instruction or "default",
            model=model,
            feature=feature,
            is_staff=self.is_staff(user),
        )

    def build_view(self, admitted: AdmittedRequest) -> ResponseView | None:
        bypass = self.gate.can_bypass(admitted.request.is_staff)
        regenerate = self.config.features.regenerate_button or bypass
        delete = self.config.features.delete_button or bypass
        if not (regenerate or delete):
            return None
        return ResponseView(self, admitted, regenerate=regenerate, delete=delete)

    # ── Shared steps ────────────────────────────────────────────────────────

    async def _complete(self, messages: List[Dict[str, str]], user_id: int, model: str, context: str) -> Completion:
        try:
            return await self.llm.chat_completion(messages, user_id, model)
        except LLMError as e:
            logging.error("Completion failed (%s): %s", context, parse_error_message(e))
            await notify_admin_error(self.client, self.config, e, context)
            raise

    async def edit_reply(
        self, interaction: discord.Interaction, reply: RenderedReply, admitted: AdmittedRequest
    ) -> discord.Message:
        view = self.build_view(admitted)
        message = await interaction.edit_original_response(**reply.edit_kwargs(), view=view)
        if view is not None:
            view.message = message
        return message

    def record_cooldown(self, user_id: int) -> None:
        if self.config.global_user_cooldown:
            self.cooldowns.set(user_id, duration=self.config.global_user_cooldown)

    async def send_debug(self, message: discord.Message, completion: Completion, instruction: str | None) -> None:
        if not self.config.dev_config.debug_messages:
            return
        try:
            await message.reply(embed=build_debug_embed(completion, instruction))
        except discord.HTTPException as e:
            logging.warning("Could not send dev debug message for %s: %s", completion.id, e)

    # ── /chat single ────────────────────────────────────────────────────────

    async def handle(self, interaction: discord.Interaction, request: ChatRequest) -> ChatOutcome | None:
        """
        Run one chat request end to end. Returns None when the request was
        rejected or the provider failed; the user has been told either way.
        """
        try:
            admitted = await self.gate.precheck(request)
        except GateRejection as e:
            logging.info("Rejected chat from %s: %s", request.user_id, e.reason.value)
            await send_error(interaction, e.message, e.codeblock)
            return None

        await interaction.response.defer()

        try:
            await self.gate.check_content(request.message)
        except GateRejection as e:
            logging.info("Rejected chat from %s: %s", request.user_id, e.reason.value)
            await send_error(interaction, e.message, e.codeblock)
            return None

        try:
            completion = await self._complete(
                list(admitted.messages), request.user_id, admitted.model, f"/chat {request.feature}"
            )
        except LLMError as e:
            await send_error(interaction, format_user_friendly_error(e))
            return None

        reply = render_reply(interaction.user, request.message, admitted.instruction_name, completion)
        message = await self.edit_reply(interaction, reply, admitted)
        self.record_cooldown(request.user_id)
        await self.send_debug(message, completion, admitted.instruction)
        return ChatOutcome(message=message, admitted=admitted, completion=completion)

    # ── /chat thread ────────────────────────────────────────────────────────

    async def handle_thread(self, interaction: discord.Interaction, request: ChatRequest) -> ThreadSession | None:
        outcome = await self.handle(interaction, request)
        if outcome is None:
            return None
        try:
            thread = await outcome.message.create_thread(name=thread_name(request.message))
        except discord.HTTPException as e:
            logging.warning("Could not open chat thread: %s", e)
            await send_error(interaction, "Unable to create a thread in this channel", edit_original=False)
            return None

        admitted = outcome.admitted
        session = ThreadSession(
            thread_id=thread.id,
            owner_id=request.user_id,
            model=admitted.model,
            instruction_name=admitted.instruction_name,
            instruction=admitted.instruction,
            messages=list(admitted.messages),
        )
        session.messages.append({"role": "assistant", "content": outcome.completion.content})
        logging.info("Chat thread %s started by %s", thread.id, request.user_id)
        return self.sessions.start(session)

    async def handle_followup(self, message: discord.Message) -> bool:
        """
        Continue a `/chat thread` conversation. Returns False when the
        message does not belong to a tracked thread.
        """
        session = self.sessions.get(message.channel.id)
        if session is None or message.author.bot:
            return False
        if not session.can_post(message.author.id, self.config.allow_collaboration):
            return False

        try:
            await self.gate.admit_followup(message.author.id, self.is_staff(message.author), message.content)
        except GateRejection as e:
            await message.reply(embed=build_error_embed(e.message, e.codeblock))
            return True

        messages = session.messages + [{"role": "user", "content": message.content}]
        try:
            async with message.channel.typing():
                completion = await self._complete(messages, message.author.id, session.model, "chat thread followup")
        except LLMError as e:
            await message.reply(embed=build_error_embed(format_user_friendly_error(e)))
            return True

        session.extend(message.content, completion.content)
        reply = render_reply(message.author, message.content, session.instruction_name, completion)
        sent = await message.reply(**reply.send_kwargs())
        self.record_cooldown(message.author.id)
        await self.send_debug(sent, completion, session.instruction)
        return True

    # ── Buttons ─────────────────────────────────────────────────────────────

    async def regenerate(self, interaction: discord.Interaction, admitted: AdmittedRequest) -> bool:
        """
        Re-run the completion behind an answer and edit it in place.
        Returns True once the message carries the new answer and a fresh view.
        """
        request = admitted.request
        if interaction.user.id != request.user_id:
            await send_error(interaction, "Only the person who asked can regenerate this response")
            return False
        try:
            self.gate.check_cooldown(request.user_id, request.is_staff)
        except GateRejection as e:
            await send_error(interaction, e.message, e.codeblock)
            return False

        await interaction.response.defer()
        try:
            completion = await self._complete(list(admitted.messages), request.user_id, admitted.model, "regenerate")
        except LLMError as e:
            await send_error(interaction, format_user_friendly_error(e), edit_original=False)
            return False

        reply = render_reply(interaction.user, request.message, admitted.instruction_name, completion)
        message = await self.edit_reply(interaction, reply, admitted)

        # A thread opened on a message shares that message's id.
        session = self.sessions.get(message.id)
        if session is not None:
            session.replace_answer(len(admitted.messages), completion.content)

        self.record_cooldown(request.user_id)
        await self.send_debug(message, completion, admitted.instruction)
        return True

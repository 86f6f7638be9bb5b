from __future__ import annotations

import logging
from typing import Sequence

import discord
from discord import app_commands
from discord.ext import commands

from gptbot.chat.consent import ConsentStore
from gptbot.chat.cooldown import CooldownStore
from gptbot.chat.dispatch import ChatDispatcher, member_role_ids
from gptbot.chat.gate import ChatGate
from gptbot.config.models import BotConfig
from gptbot.discord.commands import register_commands
from gptbot.discord.errors import handle_app_command_error, send_error
from gptbot.discord.views import TermsView
from gptbot.llm.openai_service import OpenAIService


def terms_mention(synced: Sequence[app_commands.AppCommand]) -> str:
    return next((c.mention for c in synced if c.name == "terms"), "`/terms`")


class ChatCommandTree(app_commands.CommandTree):
    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        config: BotConfig = self.client.config
        if config.is_blacklisted(member_role_ids(interaction.user)):
            logging.info("Blocked interaction from blacklisted user %s", interaction.user.id)
            if interaction.type == discord.InteractionType.application_command:
                await send_error(interaction, "You are not allowed to use this bot")
            return False
        return True

    async def on_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        await handle_app_command_error(interaction, error, self.client, self.client.config)


class ChatBot(commands.Bot):
    def __init__(self, config: BotConfig):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(
            intents=intents,
            command_prefix=None,
            tree_cls=ChatCommandTree,
            activity=discord.CustomActivity(name="/chat"),
        )
        self.config = config
        self.cooldowns = CooldownStore()
        self.consent = ConsentStore(config.consent_database)
        self.llm = OpenAIService(config)
        self.gate = ChatGate(config, self.consent, self.cooldowns, self.llm)
        self.dispatcher = ChatDispatcher(self, config, self.gate, self.llm, self.cooldowns)

    async def setup_hook(self) -> None:
        register_commands(self.tree, self.dispatcher, self.config, self.consent)
        self.add_view(TermsView(self.consent))

        if self.config.auto_create_commands:
            synced = await self.tree.sync()
            logging.info("Synced %d slash commands", len(synced))
        else:
            synced = await self.tree.fetch_commands()
        self.gate.terms_tag = terms_mention(synced)

    async def on_ready(self) -> None:
        logging.info(
            "\n\nBOT INVITE URL:\nhttps://discord.com/oauth2/authorize?client_id=%s&permissions=412317191168&scope=bot\n",
            self.user.id,
        )
        logging.info("🚀 Logged in as %s | default model: %s", self.user, self.config.default_model)

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or not isinstance(message.channel, discord.Thread):
            return
        await self.dispatcher.handle_followup(message)

    async def close(self) -> None:
        await self.llm.close()
        self.consent.close()
        await super().close()

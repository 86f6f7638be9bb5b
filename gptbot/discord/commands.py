"""
Binds the derived command schemas to discord.py app commands.

Annotations here are evaluated eagerly: the message option's Range bound
comes from configuration and is captured from the enclosing scope.
"""

import logging
from typing import List, Optional

import discord
from discord import app_commands
from discord.app_commands import Choice

from gptbot.chat.consent import ConsentStore
from gptbot.chat.dispatch import ChatDispatcher
from gptbot.chat.gate import DEFAULT_INSTRUCTION
from gptbot.chat.schema import (
    CommandSchema,
    OptionChoice,
    SubcommandSchema,
    build_chat_schema,
    build_view_instruction_schema,
    suggest_system_instructions,
)
from gptbot.config.models import BotConfig

from .errors import send_error
from .views import TermsView


def _choices(options: tuple[OptionChoice, ...] | List[OptionChoice]) -> List[Choice[str]]:
    return [Choice(name=c.name, value=c.value) for c in options]


def _add_chat_subcommand(group: app_commands.Group, dispatcher: ChatDispatcher, sub: SubcommandSchema) -> app_commands.Command:
    config = dispatcher.config
    MessageText = app_commands.Range[str, 1, sub.option("message").max_length]
    model_option = sub.option("model")
    run = dispatcher.handle_thread if sub.feature == "chat_thread" else dispatcher.handle

    if model_option is not None:
        async def callback(
            interaction: discord.Interaction,
            message: MessageText,
            system_instruction: Optional[str] = None,
            model: Optional[str] = None,
        ) -> None:
            request = dispatcher.build_request(interaction.user, sub.feature, message, system_instruction, model)
            await run(interaction, request)

        callback = app_commands.choices(model=_choices(model_option.choices))(callback)
    else:
        async def callback(
            interaction: discord.Interaction,
            message: MessageText,
            system_instruction: Optional[str] = None,
        ) -> None:
            request = dispatcher.build_request(interaction.user, sub.feature, message, system_instruction, None)
            await run(interaction, request)

    callback = app_commands.describe(**{o.name: o.description for o in sub.options})(callback)
    command = group.command(name=sub.name, description=sub.description)(callback)

    @command.autocomplete("system_instruction")
    async def system_instruction_autocomplete(interaction: discord.Interaction, current: str) -> List[Choice[str]]:
        return _choices(suggest_system_instructions(config, current))

    return command


def build_chat_group(dispatcher: ChatDispatcher, schema: CommandSchema) -> Optional[app_commands.Group]:
    """None when every chat family is disabled; Discord rejects empty groups."""
    if not schema.subcommands:
        return None
    group = app_commands.Group(name=schema.name, description=schema.description, guild_only=True)
    for sub in schema.subcommands:
        _add_chat_subcommand(group, dispatcher, sub)
    return group


def lookup_system_instruction(config: BotConfig, name: str) -> Optional[str]:
    if name == DEFAULT_INSTRUCTION:
        return config.generation_parameters.default_system_instruction
    found = config.find_system_instruction(name)
    return found.instruction if found else None


def build_view_instruction_command(config: BotConfig, schema: CommandSchema) -> app_commands.Command:
    async def show(interaction: discord.Interaction, name: str) -> None:
        if not config.features.view_system_instruction:
            await send_error(interaction, "This command is disabled")
            return
        text = lookup_system_instruction(config, name)
        await interaction.response.send_message(
            f"System instruction `{name}`:\n\n{text or 'NONE'}",
            ephemeral=True,
        )

    if schema.options:
        option = schema.options[0]

        @app_commands.describe(system_instruction=option.description)
        @app_commands.choices(system_instruction=_choices(option.choices))
        async def callback(interaction: discord.Interaction, system_instruction: str) -> None:
            await show(interaction, system_instruction)
    else:
        async def callback(interaction: discord.Interaction) -> None:
            await show(interaction, DEFAULT_INSTRUCTION)

    return app_commands.Command(
        name=schema.name,
        description=schema.description,
        callback=app_commands.guild_only()(callback),
    )


def build_terms_command(config: BotConfig, consent: ConsentStore) -> app_commands.Command:
    async def callback(interaction: discord.Interaction) -> None:
        embed = discord.Embed(title="Terms of use", description=config.terms, color=discord.Color.blurple())
        await interaction.response.send_message(embed=embed, view=TermsView(consent), ephemeral=True)

    return app_commands.Command(
        name="terms",
        description="View the terms of use and agree to them",
        callback=callback,
    )


def register_commands(
    tree: app_commands.CommandTree,
    dispatcher: ChatDispatcher,
    config: BotConfig,
    consent: ConsentStore,
) -> List[str]:
    """Add every command to the tree; returns the registered top-level names."""
    commands: List[app_commands.Command | app_commands.Group] = []
    if (group := build_chat_group(dispatcher, build_chat_schema(config))) is not None:
        commands.append(group)
    else:
        logging.warning("All chat features are disabled, /chat will not be registered")
    commands.append(build_view_instruction_command(config, build_view_instruction_schema(config)))
    commands.append(build_terms_command(config, consent))

    for command in commands:
        tree.add_command(command)
    names = [c.name for c in commands]
    logging.info("Registered commands: %s", ", ".join(names))
    return names

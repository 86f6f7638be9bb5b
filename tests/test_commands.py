from types import SimpleNamespace

import discord
import pytest
from discord import app_commands

from gptbot.chat.cooldown import CooldownStore
from gptbot.chat.dispatch import ChatDispatcher
from gptbot.chat.gate import ChatGate
from gptbot.chat.schema import build_chat_schema, build_view_instruction_schema
from gptbot.client import terms_mention
from gptbot.discord.commands import (
    build_chat_group,
    build_view_instruction_command,
    register_commands,
)

from conftest import FakeConsent, FakeLLM, make_config, make_interaction


def dispatcher_for(config):
    llm = FakeLLM()
    cooldowns = CooldownStore()
    gate = ChatGate(config, FakeConsent(), cooldowns, llm)
    return ChatDispatcher(SimpleNamespace(), config, gate, llm, cooldowns)


def test_chat_group_mirrors_schema():
    config = make_config(
        selectable_models=["gpt-4o", "gpt-4o-mini"],
        generation_parameters={"max_input_chars_per_model": {"gpt-4o": 8000, "gpt-4o-mini": 3000}},
    )
    group = build_chat_group(dispatcher_for(config), build_chat_schema(config))

    assert group.name == "chat"
    assert sorted(c.name for c in group.commands) == ["single", "thread"]
    single = group.get_command("single")
    assert [p.name for p in single.parameters] == ["message", "system_instruction", "model"]
    message = single.get_parameter("message")
    assert message.required
    assert message.max_value == 8000
    assert single.get_parameter("system_instruction").autocomplete
    assert [c.value for c in single.get_parameter("model").choices] == ["gpt-4o", "gpt-4o-mini"]


def test_chat_group_without_models_has_no_model_option():
    config = make_config(features={"chat_single": True})
    group = build_chat_group(dispatcher_for(config), build_chat_schema(config))
    assert [c.name for c in group.commands] == ["single"]
    assert [p.name for p in group.get_command("single").parameters] == ["message", "system_instruction"]


def test_chat_group_absent_when_everything_disabled():
    config = make_config(features={})
    assert build_chat_group(dispatcher_for(config), build_chat_schema(config)) is None


def test_register_commands_adds_top_level_commands():
    config = make_config()
    tree = app_commands.CommandTree(discord.Client(intents=discord.Intents.none()))
    names = register_commands(tree, dispatcher_for(config), config, FakeConsent())
    assert names == ["chat", "view_system_instruction", "terms"]
    assert sorted(c.name for c in tree.get_commands()) == sorted(names)


@pytest.mark.asyncio
async def test_view_system_instruction_respects_feature_flag():
    config = make_config(
        selectable_system_instructions=[{"name": "Pirate", "system_instruction": "Arr"}],
    )
    command = build_view_instruction_command(config, build_view_instruction_schema(config))
    interaction = make_interaction()

    await command.callback(interaction, "Pirate")

    embed = interaction.response.send_message.call_args.kwargs["embed"]
    assert "This command is disabled" in embed.description


@pytest.mark.asyncio
async def test_view_system_instruction_shows_text():
    config = make_config(
        features={"view_system_instruction": True},
        selectable_system_instructions=[{"name": "Pirate", "system_instruction": "Arr"}],
    )
    command = build_view_instruction_command(config, build_view_instruction_schema(config))
    interaction = make_interaction()

    await command.callback(interaction, "Pirate")

    interaction.response.send_message.assert_awaited_once_with("System instruction `Pirate`:\n\nArr", ephemeral=True)


@pytest.mark.asyncio
async def test_view_default_instruction_without_configured_list():
    config = make_config(features={"view_system_instruction": True})
    command = build_view_instruction_command(config, build_view_instruction_schema(config))
    assert command.parameters == []
    interaction = make_interaction()

    await command.callback(interaction)

    assert interaction.response.send_message.call_args.args[0].endswith("NONE")


def test_terms_mention_prefers_synced_command():
    synced = [SimpleNamespace(name="chat", mention="</chat:1>"), SimpleNamespace(name="terms", mention="</terms:2>")]
    assert terms_mention(synced) == "</terms:2>"
    assert terms_mention([]) == "`/terms`"


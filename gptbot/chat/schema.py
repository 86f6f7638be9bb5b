"""
Derives the slash-command surface from configuration.

Everything here is a pure function of BotConfig: the result is computed
once at startup and handed to the Discord layer for registration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from gptbot.config.models import BotConfig

from .gate import DEFAULT_INSTRUCTION

DEFAULT_MAX_INPUT_LENGTH = 6000
MAX_CHOICES = 25


@dataclass(frozen=True)
class OptionChoice:
    name: str
    value: str


@dataclass(frozen=True)
class OptionSchema:
    name: str
    description: str
    required: bool = False
    max_length: int | None = None
    autocomplete: bool = False
    choices: tuple[OptionChoice, ...] = ()


@dataclass(frozen=True)
class SubcommandSchema:
    name: str
    description: str
    feature: str
    options: tuple[OptionSchema, ...] = ()

    def option(self, name: str) -> OptionSchema | None:
        return next((o for o in self.options if o.name == name), None)


@dataclass(frozen=True)
class CommandSchema:
    name: str
    description: str
    subcommands: tuple[SubcommandSchema, ...] = field(default_factory=tuple)
    options: tuple[OptionSchema, ...] = field(default_factory=tuple)

    def subcommand(self, name: str) -> SubcommandSchema | None:
        return next((s for s in self.subcommands if s.name == name), None)


CHAT_FAMILIES = (
    ("single", "chat_single", "Get a single response without the possibility to followup"),
    ("thread", "chat_thread", "Start a thread for chatting with ChatGPT"),
)


def max_input_length(config: BotConfig) -> int:
    limits = config.generation_parameters.max_input_chars_per_model
    if not limits:
        return DEFAULT_MAX_INPUT_LENGTH
    return max(limits.values())


def family_enabled(config: BotConfig, feature: str) -> bool:
    return config.features.enabled(feature) or config.staff_can_bypass_feature_restrictions


def instruction_choices(config: BotConfig) -> List[OptionChoice]:
    """`Default` followed by at most 24 configured instructions."""
    return [OptionChoice(name="Default", value=DEFAULT_INSTRUCTION)] + [
        OptionChoice(name=i.label, value=i.name)
        for i in config.selectable_system_instructions[: MAX_CHOICES - 1]
    ]


def model_choices(config: BotConfig) -> List[OptionChoice]:
    return [OptionChoice(name=m.name, value=m.name) for m in config.selectable_models[:MAX_CHOICES]]


def _chat_options(config: BotConfig, max_length: int) -> tuple[OptionSchema, ...]:
    options = [
        OptionSchema(
            name="message",
            description="The message to send to the AI",
            required=True,
            max_length=max_length,
        ),
        OptionSchema(
            name="system_instruction",
            description="The system instruction to choose",
            autocomplete=True,
        ),
    ]
    if config.selectable_models:
        options.append(
            OptionSchema(
                name="model",
                description="The model to use for this request",
                choices=tuple(model_choices(config)),
            )
        )
    return tuple(options)


def build_chat_schema(config: BotConfig) -> CommandSchema:
    """
    Build the `/chat` group. Families whose feature is off (and not
    bypassable by staff) are left out entirely, so they do not count
    against Discord's command quota.
    """
    max_length = max_input_length(config)
    subcommands = tuple(
        SubcommandSchema(
            name=name,
            description=description,
            feature=feature,
            options=_chat_options(config, max_length),
        )
        for name, feature, description in CHAT_FAMILIES
        if family_enabled(config, feature)
    )
    return CommandSchema(name="chat", description="Start chatting with the AI", subcommands=subcommands)


def build_view_instruction_schema(config: BotConfig) -> CommandSchema:
    options: tuple[OptionSchema, ...] = ()
    if config.selectable_system_instructions:
        options = (
            OptionSchema(
                name="system_instruction",
                description="The system instruction to choose",
                required=True,
                choices=tuple(instruction_choices(config)),
            ),
        )
    return CommandSchema(
        name="view_system_instruction",
        description="View a system instruction",
        options=options,
    )


def suggest_system_instructions(config: BotConfig, fragment: str) -> List[OptionChoice]:
    """
    Autocomplete for the `system_instruction` option: Default first, then
    configured instructions, filtered by case-insensitive substring match
    on the value, capped at 25.
    """
    suggestions = instruction_choices(config)
    if fragment:
        needle = fragment.lower()
        suggestions = [s for s in suggestions if needle in s.value.lower()]
    return suggestions[:MAX_CHOICES]

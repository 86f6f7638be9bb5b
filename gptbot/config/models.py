"""
Immutable view over the validated configuration mapping.

The raw dict is parsed once at startup into frozen dataclasses; every
component receives the same BotConfig instance and none of them mutate it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from dotenv import load_dotenv


DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_CONSENT_DATABASE = "gptbot.sqlite3"
DEFAULT_THREAD_FOLLOWUP_LENGTH = 2000
DEFAULT_TERMS = (
    "Messages you send through this bot are forwarded to OpenAI and are "
    "subject to their usage policies. Do not share personal information."
)


def _frozen_mapping(value: Any) -> Mapping[str, Any]:
    return MappingProxyType(dict(value or {}))


def _id_tuple(value: Any) -> tuple[int, ...]:
    return tuple(int(v) for v in value or ())


@dataclass(frozen=True)
class SelectableModel:
    name: str
    base_url: str | None = None

    @classmethod
    def from_entry(cls, entry: str | Mapping[str, Any]) -> SelectableModel:
        # Entries are either a bare model id or {name, base_url?}.
        if isinstance(entry, str):
            return cls(name=entry)
        return cls(
            name=str(entry["name"]),
            base_url=entry.get("base_url"),
        )


@dataclass(frozen=True)
class SystemInstruction:
    name: str
    instruction: str

    @property
    def label(self) -> str:
        """Display label: first character upper-cased, the rest lower-cased."""
        return self.name[:1].upper() + self.name[1:].lower()


@dataclass(frozen=True)
class Features:
    chat_single: bool = False
    chat_thread: bool = False
    regenerate_button: bool = False
    delete_button: bool = False
    view_system_instruction: bool = False

    def enabled(self, name: str) -> bool:
        return bool(getattr(self, name, False))


@dataclass(frozen=True)
class DevConfig:
    enabled: bool = False
    debug_discord_messages: bool = False
    debug_logs: bool = False

    @property
    def debug_messages(self) -> bool:
        return self.enabled and self.debug_discord_messages


@dataclass(frozen=True)
class GenerationParameters:
    moderate_prompts: bool = True
    default_system_instruction: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    max_completion_tokens_per_model: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    max_input_chars_per_model: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> GenerationParameters:
        data = data or {}
        return cls(
            moderate_prompts=bool(data.get("moderate_prompts", True)),
            default_system_instruction=data.get("default_system_instruction"),
            temperature=data.get("temperature"),
            top_p=data.get("top_p"),
            presence_penalty=data.get("presence_penalty"),
            frequency_penalty=data.get("frequency_penalty"),
            max_completion_tokens_per_model=_frozen_mapping(data.get("max_completion_tokens_per_model")),
            max_input_chars_per_model=_frozen_mapping(data.get("max_input_chars_per_model")),
        )

    def sampling_kwargs(self) -> dict[str, float]:
        """Only the sampling options that were actually configured."""
        params = {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "presence_penalty": self.presence_penalty,
            "frequency_penalty": self.frequency_penalty,
        }
        return {k: v for k, v in params.items() if v is not None}


@dataclass(frozen=True)
class BotConfig:
    bot_token: str | None = None
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    owner_ids: tuple[int, ...] = ()
    staff_users: tuple[int, ...] = ()
    staff_roles: tuple[int, ...] = ()
    blacklist_roles: tuple[int, ...] = ()
    default_model: str = DEFAULT_MODEL
    selectable_models: tuple[SelectableModel, ...] = ()
    selectable_system_instructions: tuple[SystemInstruction, ...] = ()
    staff_can_bypass_feature_restrictions: bool = False
    global_user_cooldown: int | None = None
    max_thread_followup_length: int = DEFAULT_THREAD_FOLLOWUP_LENGTH
    allow_collaboration: bool = False
    auto_create_commands: bool = True
    terms: str = DEFAULT_TERMS
    consent_database: str = DEFAULT_CONSENT_DATABASE
    features: Features = field(default_factory=Features)
    dev_config: DevConfig = field(default_factory=DevConfig)
    generation_parameters: GenerationParameters = field(default_factory=GenerationParameters)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BotConfig:
        load_dotenv()

        known_features = Features.__dataclass_fields__
        features = {k: bool(v) for k, v in (data.get("features") or {}).items() if k in known_features}
        known_dev = DevConfig.__dataclass_fields__
        dev_config = {k: bool(v) for k, v in (data.get("dev_config") or {}).items() if k in known_dev}

        return cls(
            bot_token=data.get("bot_token") or os.getenv("DISCORD_TOKEN"),
            openai_api_key=data.get("openai_api_key") or os.getenv("OPENAI_API_KEY"),
            openai_base_url=data.get("openai_base_url"),
            owner_ids=_id_tuple(data.get("owner_ids")),
            staff_users=_id_tuple(data.get("staff_users")),
            staff_roles=_id_tuple(data.get("staff_roles")),
            blacklist_roles=_id_tuple(data.get("blacklist_roles")),
            default_model=data.get("default_model") or DEFAULT_MODEL,
            selectable_models=tuple(SelectableModel.from_entry(m) for m in data.get("selectable_models") or ()),
            selectable_system_instructions=tuple(
                SystemInstruction(name=str(i["name"]), instruction=str(i.get("system_instruction") or ""))
                for i in data.get("selectable_system_instructions") or ()
                if i.get("name")
            ),
            staff_can_bypass_feature_restrictions=bool(data.get("staff_can_bypass_feature_restrictions", False)),
            global_user_cooldown=data.get("global_user_cooldown") or None,
            max_thread_followup_length=int(data.get("max_thread_followup_length") or DEFAULT_THREAD_FOLLOWUP_LENGTH),
            allow_collaboration=bool(data.get("allow_collaboration", False)),
            auto_create_commands=bool(data.get("auto_create_commands", True)),
            terms=data.get("terms") or DEFAULT_TERMS,
            consent_database=data.get("consent_database") or DEFAULT_CONSENT_DATABASE,
            features=Features(**features),
            dev_config=DevConfig(**dev_config),
            generation_parameters=GenerationParameters.from_dict(data.get("generation_parameters")),
        )

    # ── Lookups ─────────────────────────────────────────────────────────────

    def find_system_instruction(self, name: str) -> SystemInstruction | None:
        wanted = name.lower()
        return next((i for i in self.selectable_system_instructions if i.name.lower() == wanted), None)

    def find_model(self, name: str) -> SelectableModel | None:
        return next((m for m in self.selectable_models if m.name == name), None)

    def max_input_chars(self, model: str, fallback: int = 2000) -> int:
        return int(self.generation_parameters.max_input_chars_per_model.get(model, fallback))

    def is_staff(self, user_id: int, role_ids: set[int] | frozenset[int] = frozenset()) -> bool:
        if user_id in self.owner_ids or user_id in self.staff_users:
            return True
        return any(r in self.staff_roles for r in role_ids)

    def is_blacklisted(self, role_ids: set[int] | frozenset[int]) -> bool:
        return any(r in self.blacklist_roles for r in role_ids)

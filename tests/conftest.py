import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gptbot.chat.cooldown import CooldownStore  # noqa: E402
from gptbot.chat.gate import ChatGate  # noqa: E402
from gptbot.config.models import BotConfig  # noqa: E402
from gptbot.llm.openai_service import Completion, Usage  # noqa: E402


def make_config(**overrides) -> BotConfig:
    data = {
        "bot_token": "test-token",
        "openai_api_key": "sk-test",
        "features": {"chat_single": True, "chat_thread": True},
    }
    data.update(overrides)
    return BotConfig.from_dict(data)


def make_completion(content="Hi! How can I help?", completion_id="chatcmpl-1", model="gpt-3.5-turbo") -> Completion:
    return Completion(
        id=completion_id,
        model=model,
        choices=({"role": "assistant", "content": content},),
        usage=Usage(prompt_tokens=3, completion_tokens=5, total_tokens=8),
    )


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeConsent:
    def __init__(self, consented=True):
        self.consented = consented
        self.checked = []

    async def has_consented(self, user_id):
        self.checked.append(user_id)
        return self.consented


class FakeLLM:
    """Stands in for OpenAIService: completion + moderation."""

    def __init__(self, completion=None, error=None, flagged=False, moderation_error=None):
        self.completion = completion or make_completion()
        self.error = error
        self.flagged = flagged
        self.moderation_error = moderation_error
        self.calls = []
        self.moderated = []

    async def chat_completion(self, messages, user_id, model):
        self.calls.append({"messages": messages, "user_id": user_id, "model": model})
        if self.error:
            raise self.error
        return self.completion

    async def is_flagged(self, text):
        self.moderated.append(text)
        if self.moderation_error:
            raise self.moderation_error
        return self.flagged


class FakeUser:
    def __init__(self, user_id=1, name="tester", role_ids=(), bot=False):
        self.id = user_id
        self.name = name
        self.bot = bot
        self.roles = [SimpleNamespace(id=r) for r in role_ids]
        self.display_avatar = SimpleNamespace(url="https://cdn.example.com/avatar.png")

    def __str__(self):
        return self.name


def make_interaction(user=None, message_id=99):
    """Interaction double whose response flips to done once acknowledged."""
    state = {"done": False}

    async def acknowledge(*args, **kwargs):
        state["done"] = True

    sent = SimpleNamespace(
        id=message_id,
        reply=AsyncMock(),
        edit=AsyncMock(),
        create_thread=AsyncMock(return_value=SimpleNamespace(id=555)),
    )
    response = SimpleNamespace(
        is_done=lambda: state["done"],
        defer=AsyncMock(side_effect=acknowledge),
        send_message=AsyncMock(side_effect=acknowledge),
    )
    return SimpleNamespace(
        user=user or FakeUser(),
        response=response,
        edit_original_response=AsyncMock(return_value=sent),
        followup=SimpleNamespace(send=AsyncMock()),
        sent=sent,
    )


@pytest.fixture
def clock():
    return FakeClock(1_000.0)


@pytest.fixture
def cooldowns(clock):
    return CooldownStore(clock=clock)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def consent():
    return FakeConsent()


@pytest.fixture
def gate_factory(consent, cooldowns, llm):
    def factory(config=None, **kwargs):
        return ChatGate(
            config or make_config(),
            kwargs.get("consent", consent),
            kwargs.get("cooldowns", cooldowns),
            kwargs.get("moderator", llm),
        )

    return factory

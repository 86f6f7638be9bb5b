import pytest

from gptbot.chat.consent import ConsentStore
from gptbot.chat.cooldown import CooldownStore
from gptbot.chat.threads import ThreadSession, ThreadSessions, thread_name

from conftest import FakeClock


def test_cooldown_expires():
    clock = FakeClock(0)
    store = CooldownStore(clock=clock)
    store.set(7, duration=1000)
    assert store.has(7)
    assert store.remaining(7) == 1000
    clock.now = 999
    assert store.has(7)
    clock.now = 1000
    assert not store.has(7)
    assert len(store) == 0


def test_cooldown_last_write_wins_and_users_are_independent():
    clock = FakeClock(0)
    store = CooldownStore(clock=clock)
    store.set(1, now=0, duration=100)
    store.set(1, now=50, duration=100)
    store.set(2, duration=10)
    clock.now = 120
    assert store.has(1)
    assert not store.has(2)
    clock.now = 150
    assert not store.has(1)


@pytest.mark.asyncio
async def test_consent_store_roundtrip(tmp_path):
    store = ConsentStore(str(tmp_path / "consent.sqlite3"))
    try:
        assert not await store.has_consented(42)
        assert await store.record_consent(42) is True
        assert await store.record_consent(42) is False
        assert await store.has_consented(42)
        assert not await store.has_consented(43)
    finally:
        store.close()


@pytest.mark.asyncio
async def test_consent_persists_across_instances(tmp_path):
    path = str(tmp_path / "consent.sqlite3")
    first = ConsentStore(path)
    await first.record_consent(1)
    first.close()
    second = ConsentStore(path)
    try:
        assert await second.has_consented(1)
    finally:
        second.close()


def test_thread_sessions_evict_oldest():
    sessions = ThreadSessions(max_sessions=2)
    for thread_id in (3, 1, 2):
        sessions.start(ThreadSession(thread_id, owner_id=9, model="m", instruction_name="default", instruction=None))
    assert 1 not in sessions
    assert 2 in sessions and 3 in sessions


def test_thread_session_collaboration():
    session = ThreadSession(1, owner_id=9, model="m", instruction_name="default", instruction=None)
    assert session.can_post(9, allow_collaboration=False)
    assert not session.can_post(10, allow_collaboration=False)
    assert session.can_post(10, allow_collaboration=True)


def test_thread_name_is_trimmed():
    assert thread_name("  hello \n world ") == "hello world"
    assert len(thread_name("x" * 300)) == 100
    assert thread_name("   ") == "Chat"


def test_replace_answer_only_touches_assistant_entries():
    session = ThreadSession(
        1,
        owner_id=9,
        model="m",
        instruction_name="default",
        instruction=None,
        messages=[{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello"}],
    )
    session.replace_answer(1, "Howdy")
    session.replace_answer(0, "ignored")
    session.replace_answer(5, "ignored")
    assert session.messages == [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Howdy"}]

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

MAX_SESSIONS = 500
THREAD_NAME_LIMIT = 100


def thread_name(prompt: str) -> str:
    name = " ".join(prompt.split())
    if len(name) > THREAD_NAME_LIMIT:
        name = name[: THREAD_NAME_LIMIT - 1] + "…"
    return name or "Chat"


@dataclass
class ThreadSession:
    thread_id: int
    owner_id: int
    model: str
    instruction_name: str
    instruction: str | None
    messages: List[Dict[str, str]] = field(default_factory=list)

    def can_post(self, user_id: int, allow_collaboration: bool) -> bool:
        return allow_collaboration or user_id == self.owner_id

    def extend(self, user_message: str, answer: str) -> None:
        self.messages.append({"role": "user", "content": user_message})
        self.messages.append({"role": "assistant", "content": answer})

    def replace_answer(self, index: int, answer: str) -> None:
        if index < len(self.messages) and self.messages[index]["role"] == "assistant":
            self.messages[index] = {"role": "assistant", "content": answer}


class ThreadSessions:
    """
    In-memory conversation history for `/chat thread`, keyed by thread id.
    Oldest sessions are evicted once `max_sessions` is exceeded.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: Dict[int, ThreadSession] = {}

    def start(self, session: ThreadSession) -> ThreadSession:
        self._sessions[session.thread_id] = session
        if (n := len(self._sessions)) > self.max_sessions:
            for thread_id in sorted(self._sessions)[: n - self.max_sessions]:
                self._sessions.pop(thread_id, None)
            logging.debug("Evicted %d thread sessions", n - self.max_sessions)
        return session

    def get(self, thread_id: int) -> ThreadSession | None:
        return self._sessions.get(thread_id)

    def __contains__(self, thread_id: int) -> bool:
        return thread_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

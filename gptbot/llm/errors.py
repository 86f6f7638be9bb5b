from __future__ import annotations

from typing import Tuple

import openai


class LLMError(Exception):
    """Base error for LLM-related failures."""


class LLMRateLimitError(LLMError):
    pass


class LLMAuthError(LLMError):
    pass


class LLMNotFoundError(LLMError):
    pass


class LLMForbiddenError(LLMError):
    pass


class LLMConnectionError(LLMError):
    pass


class ModerationUnavailableError(LLMError):
    """The moderation endpoint could not give a verdict."""


def wrap_openai_error(error: openai.OpenAIError) -> LLMError:
    """
    Translate an `openai` exception into the matching LLMError subclass.
    """
    if isinstance(error, openai.RateLimitError):
        return LLMRateLimitError(str(error))
    if isinstance(error, openai.AuthenticationError):
        return LLMAuthError(str(error))
    if isinstance(error, openai.NotFoundError):
        return LLMNotFoundError(str(error))
    if isinstance(error, openai.PermissionDeniedError):
        return LLMForbiddenError(str(error))
    if isinstance(error, openai.APIConnectionError):
        return LLMConnectionError(str(error))
    return LLMError(str(error))


def parse_error_message(error: Exception) -> str:
    """
    Map raw exceptions into short, human-readable messages.
    Used for admin notifications and logs.
    """
    s, t = str(error), type(error).__name__
    if "429" in s or t in ("RateLimitError", "LLMRateLimitError"):
        return "⚠️ Rate Limited: API provider is temporarily rate-limited. Please retry shortly."
    if "401" in s or "Unauthorized" in s or t == "LLMAuthError":
        return "❌ Authentication Error: Invalid API key or credentials."
    if "404" in s or t in ("NotFound", "LLMNotFoundError"):
        return "❌ Not Found: The requested resource was not found."
    if "403" in s or t in ("Forbidden", "LLMForbiddenError"):
        return "❌ Forbidden: You don't have permission to access this resource."
    if "Connection" in t or "ECONNREFUSED" in s or "ETIMEDOUT" in s:
        return "❌ Connection Error: Unable to connect to the API provider."
    return f"❌ {t}: {s.split(chr(10))[0][:100]}"


def format_user_friendly_error(error: Exception) -> str:
    """
    Short, safe error message suitable for end users.
    The provider's own error text is never passed through.
    """
    if isinstance(error, ModerationUnavailableError):
        return "Unable to check your message right now, please try again later"
    return "Something went wrong"


def error_messages(error: Exception) -> Tuple[str, str]:
    """
    Convenience helper returning (admin_message, user_message).
    """
    return parse_error_message(error), format_user_friendly_error(error)

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any

import discord

from gptbot.llm.openai_service import Completion

EMBED_COLOR_COMPLETE = discord.Color.green()
EMBED_COLOR_DEBUG = discord.Color.red()
# Discord rejects embed descriptions above 4096 characters.
MAX_EMBED_DESCRIPTION = 4000
ATTACHMENT_POINTER = "Result attached below"


def build_description(prompt: str, instruction_name: str, answer: str) -> str:
    return f"{prompt}\n\n**ChatGPT ({instruction_name}):**\n{answer}"


def build_attachment_text(user_tag: str, prompt: str, instruction_name: str, answer: str) -> str:
    return (
        f"{user_tag}:\n{prompt}\n\nChatGPT ({instruction_name}):\n{answer}\n\n"
        "This response has been generated using OpenAIs Chat Completion API"
    )


def fits_inline(description: str) -> bool:
    return len(description) < MAX_EMBED_DESCRIPTION


@dataclass
class RenderedReply:
    content: str | None = None
    embed: discord.Embed | None = None
    file: discord.File | None = None

    @property
    def inline(self) -> bool:
        return self.embed is not None

    def edit_kwargs(self) -> dict[str, Any]:
        """For edit_original_response / Message.edit."""
        return {
            "content": self.content,
            "embeds": [self.embed] if self.embed else [],
            "attachments": [self.file] if self.file else [],
        }

    def send_kwargs(self) -> dict[str, Any]:
        """For Messageable.send / Message.reply."""
        kwargs: dict[str, Any] = {"content": self.content}
        if self.embed:
            kwargs["embed"] = self.embed
        if self.file:
            kwargs["file"] = self.file
        return kwargs


def render_reply(
    user: discord.abc.User,
    prompt: str,
    instruction_name: str,
    completion: Completion,
) -> RenderedReply:
    """
    An embed when the text fits, otherwise a `<completion id>.txt`
    attachment with a short pointer message.
    """
    answer = completion.content
    description = build_description(prompt, instruction_name, answer)
    if fits_inline(description):
        embed = discord.Embed(description=description, color=EMBED_COLOR_COMPLETE)
        embed.set_author(name=str(user), icon_url=user.display_avatar.url)
        embed.set_footer(text=f"This text has been generated by OpenAIs Chat Completion API ({completion.model})")
        return RenderedReply(embed=embed)

    text = build_attachment_text(str(user), prompt, instruction_name, answer)
    file = discord.File(io.BytesIO(text.encode("utf-8")), filename=f"{completion.id}.txt")
    return RenderedReply(content=ATTACHMENT_POINTER, file=file)


def build_debug_embed(completion: Completion, instruction: str | None) -> discord.Embed:
    usage = completion.usage
    return discord.Embed(
        title="Dev",
        description=(
            f"**ID** `{completion.id}`\n\n"
            f"**Prompt Tokens** {usage.prompt_tokens}\n"
            f"**Completion Tokens** {usage.completion_tokens}\n"
            f"**Total Tokens** {usage.total_tokens}\n\n"
            f"**System Instruction**\n{instruction or 'NONE'}"
        ),
        color=EMBED_COLOR_DEBUG,
    )


def build_error_embed(message: str, codeblock: bool = True) -> discord.Embed:
    description = f"```\n{message}\n```" if codeblock else message
    return discord.Embed(title="Error", description=description, color=EMBED_COLOR_DEBUG)

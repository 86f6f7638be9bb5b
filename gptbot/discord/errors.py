from __future__ import annotations

from datetime import datetime
import logging

import discord

from gptbot.chat.render import build_error_embed
from gptbot.config.models import BotConfig
from gptbot.llm.errors import parse_error_message


async def notify_admin_error(
    discord_bot: discord.Client,
    config: BotConfig,
    error: Exception,
    context: str = "",
) -> None:
    """
    Send a concise error notification to all configured owners.
    """
    try:
        if not config.owner_ids:
            return

        msg = (
            "🤖 **Bot Error Notification**\n"
            f"⏰ Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"📝 Context: {context}\n\nError: {parse_error_message(error)}"
        )
        for admin_id in config.owner_ids:
            try:
                user = discord_bot.get_user(admin_id) or await discord_bot.fetch_user(
                    admin_id
                )
                await user.send(msg)
            except discord.HTTPException as e:
                logging.warning("Could not notify admin %s: %s", admin_id, e)
    except Exception as e:  # noqa: BLE001
        logging.warning("Failed to notify admins: %s", e)


async def send_error(
    interaction: discord.Interaction,
    message: str,
    codeblock: bool = True,
    edit_original: bool = True,
) -> None:
    """
    Report a failure to the invoking user.

    Before the interaction is acknowledged the error goes out as an
    ephemeral reply. Once deferred it replaces the pending response, or is
    sent as an ephemeral follow-up when `edit_original` is False (component
    interactions, where the original is someone's answer).
    """
    embed = build_error_embed(message, codeblock)
    if not interaction.response.is_done():
        await interaction.response.send_message(embed=embed, ephemeral=True)
    elif edit_original:
        await interaction.edit_original_response(content=None, embeds=[embed], attachments=[], view=None)
    else:
        await interaction.followup.send(embed=embed, ephemeral=True)


async def handle_app_command_error(
    interaction: discord.Interaction,
    error: Exception,
    discord_bot: discord.Client,
    config: BotConfig,
) -> None:
    """
    Standard handler for slash command errors.
    """
    logging.exception("App command error: %s", error)
    await notify_admin_error(
        discord_bot,
        config,
        error,
        f"App command error: {getattr(interaction.command, 'name', 'unknown')}",
    )
    try:
        await send_error(interaction, "Something went wrong")
    except discord.HTTPException:
        logging.warning("Could not report command error to the user")

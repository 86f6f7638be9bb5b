from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

from gptbot.chat.gate import AdmittedRequest

from .errors import send_error

RESPONSE_VIEW_TIMEOUT = 900

if TYPE_CHECKING:
    from gptbot.chat.dispatch import ChatDispatcher
    from gptbot.chat.consent import ConsentStore


class ResponseView(discord.ui.View):
    """🔄 regenerate / 🚮 delete buttons attached to an answer."""

    def __init__(
        self,
        dispatcher: ChatDispatcher,
        admitted: AdmittedRequest,
        regenerate: bool = True,
        delete: bool = True,
    ):
        super().__init__(timeout=RESPONSE_VIEW_TIMEOUT)
        self.dispatcher = dispatcher
        self.admitted = admitted
        self.message: discord.Message | None = None
        if not regenerate:
            self.remove_item(self.regenerate_button)
        if not delete:
            self.remove_item(self.delete_button)

    @discord.ui.button(emoji="🔄", style=discord.ButtonStyle.primary)
    async def regenerate_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if await self.dispatcher.regenerate(interaction, self.admitted):
            # The edited message now carries a fresh view.
            self.stop()

    @discord.ui.button(emoji="🚮", style=discord.ButtonStyle.danger)
    async def delete_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        owner_id = self.admitted.request.user_id
        if interaction.user.id != owner_id and not self.dispatcher.is_staff(interaction.user):
            await send_error(interaction, "You can only delete your own responses")
            return
        await interaction.response.defer()
        await interaction.message.delete()
        self.stop()
        logging.info("Response %s deleted by %s", interaction.message.id, interaction.user.id)

    async def on_timeout(self) -> None:
        for item in self.children:
            item.disabled = True
        if self.message is None:
            return
        try:
            await self.message.edit(view=self)
        except discord.HTTPException as e:
            logging.debug("Could not disable buttons on %s: %s", self.message.id, e)


class TermsView(discord.ui.View):
    """Single *Agree* button that records consent."""

    def __init__(self, consent: ConsentStore):
        super().__init__(timeout=None)
        self.consent = consent

    @discord.ui.button(label="Agree", style=discord.ButtonStyle.success, custom_id="terms_agree")
    async def agree_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if await self.consent.record_consent(interaction.user.id):
            logging.info("User %s agreed to the terms", interaction.user.id)
            text = "Thank you for agreeing to the terms, you can now use the bot"
        else:
            text = "You have already agreed to the terms"
        await interaction.response.send_message(text, ephemeral=True)

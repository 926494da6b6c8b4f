"""
Discord bot exposing a single ``/export-reactions`` slash command.

Given a message link (or a bare message ID plus a channel), the bot pages through every user
that reacted to the message and replies with a ``reactions.csv`` attachment. All replies are
ephemeral so only the person running the command sees them.
"""
import io
import logging
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from exportbot.config import BotConfig
from exportbot.exporter import export_reactions
from exportbot.refs import parse_message_ref

log = logging.getLogger(__name__)

COMMAND_NAME = "export-reactions"
CSV_FILENAME = "reactions.csv"

# user facing replies, one per failure mode
NOT_IN_GUILD = "❌ Use this command inside a server."
MISSING_CHANNEL = "❌ Provide a channel when using a bare message ID."
CHANNEL_INACCESSIBLE = "❌ I cannot access that channel."
MESSAGE_FETCH_FAILED = "❌ Could not fetch that message. Check the channel, ID/URL, and my permissions."
REACTION_FETCH_FAILED = (
    "❌ Failed to fetch reaction users. Ensure I have **View Channel**, **Read Message History**, "
    "and **Read Reactions** permissions."
)
NO_REACTIONS = "ℹ️ That message has no reactions to export."
EXPORT_DONE = "✅ Export complete. Here's your file:"


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()

    # guilds for the channel cache, messages + reactions so fetched messages carry their reactions
    intents.guilds = True
    intents.messages = True
    intents.reactions = True

    return intents


async def handle_export(
    interaction: discord.Interaction,
    message: str,
    channel: Optional[discord.TextChannel] = None,
    include_user_ids: Optional[bool] = None,
) -> None:
    """
    Run one ``/export-reactions`` invocation from validation through to the final reply.

    Args:
        interaction: The slash command interaction
        message: Message URL or bare message ID
        channel: Explicit channel, needed when ``message`` is a bare ID
        include_user_ids: Add the ``User ID`` column, True when omitted
    """
    if interaction.guild is None:
        await interaction.response.send_message(NOT_IN_GUILD, ephemeral=True)
        return

    include_ids = True if include_user_ids is None else include_user_ids

    # paging through big reaction lists easily takes longer than the 3s reply window
    await interaction.response.defer(ephemeral=True, thinking=True)

    ref = parse_message_ref(message)
    target = channel

    if target is None:
        if ref.channel_id is None:
            await interaction.edit_original_response(content=MISSING_CHANNEL)
            return

        target = interaction.guild.get_channel(int(ref.channel_id))
        if target is None:
            await interaction.edit_original_response(content=CHANNEL_INACCESSIBLE)
            return

    try:
        fetched = await target.fetch_message(int(ref.message_id))
    except (ValueError, discord.HTTPException):
        log.exception("Could not fetch message %r in channel %s", ref.message_id, target.id)
        await interaction.edit_original_response(content=MESSAGE_FETCH_FAILED)
        return

    try:
        csv_text = await export_reactions(fetched, include_ids)
    except discord.HTTPException:
        log.exception("Failed to fetch reaction users for message %s", fetched.id)
        await interaction.edit_original_response(content=REACTION_FETCH_FAILED)
        return

    if csv_text is None:
        await interaction.edit_original_response(content=NO_REACTIONS)
        return

    file = discord.File(io.BytesIO(csv_text.encode("utf-8")), filename=CSV_FILENAME)
    await interaction.edit_original_response(content=EXPORT_DONE, attachments=[file])
    log.info(
        "Exported reactions of message %s for %s in guild %s",
        fetched.id, interaction.user, interaction.guild_id,
    )


async def register_commands(bot: commands.Bot, guild_id: Optional[str] = None) -> List[app_commands.AppCommand]:
    """
    Sync the command tree with Discord, either to one guild or globally.

    Failures are logged and swallowed so the bot keeps running.
    """
    try:
        if guild_id:
            guild = discord.Object(id=int(guild_id))
            bot.tree.copy_global_to(guild=guild)
            synced = await bot.tree.sync(guild=guild)
            log.info("Registered /%s instantly for guild %s", COMMAND_NAME, guild_id)
        else:
            synced = await bot.tree.sync()
            log.info("Registered /%s globally (may take up to 1h to appear)", COMMAND_NAME)
        return synced

    except discord.DiscordException:
        log.exception("Failed to register slash command /%s", COMMAND_NAME)
        return []


def create_bot(config: BotConfig) -> commands.Bot:
    bot = commands.Bot(command_prefix="/", intents=build_intents())
    registered = False

    @bot.event
    async def on_ready():
        nonlocal registered

        log.info("Logged in as %s", bot.user)

        # on_ready fires again after every reconnect, only sync once
        if registered:
            return
        registered = True
        await register_commands(bot, config.GUILD_ID)

    @bot.tree.command(name=COMMAND_NAME, description="Export all reactions from a message into a CSV file.")
    @app_commands.describe(
        message="Message URL or ID",
        channel="Channel (required if using a bare message ID)",
        include_user_ids="Include user IDs in the CSV (default: true)",
    )
    async def export_reactions_command(
        interaction: discord.Interaction,
        message: str,
        channel: Optional[discord.TextChannel] = None,
        include_user_ids: Optional[bool] = None,
    ):
        await handle_export(interaction, message, channel, include_user_ids)

    @bot.tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
        command = interaction.command.name if interaction.command else "unknown"

        # raised before the callback runs when the channel option is not in the bot's cache
        if isinstance(error, app_commands.TransformerError):
            log.warning("Could not resolve an option for /%s: %s", command, error)
            if not interaction.response.is_done():
                await interaction.response.send_message(CHANNEL_INACCESSIBLE, ephemeral=True)
            return

        log.error("Unhandled error in /%s", command, exc_info=error)

    return bot


def main():
    discord.utils.setup_logging(root=True)

    config = BotConfig().initialize()
    bot = create_bot(config)

    # logging is already configured above
    bot.run(config.TOKEN, log_handler=None)


if __name__ == "__main__":
    main()

"""Parsing of the message links and IDs users pass to /export-reactions."""
import re
from dataclasses import dataclass
from typing import Optional

# matches discord.com, ptb./canary. subdomains and the legacy discordapp.com host
MESSAGE_URL_PATTERN = re.compile(r"discord(?:app)?\.com/channels/(\d+)/(\d+)/(\d+)")


@dataclass(frozen=True)
class MessageReference:
    """
    Where a message lives, as given by the user.

    Attributes:
        message_id (str): The message snowflake, always present
        channel_id (str): The channel snowflake, only known when parsed from a URL
        guild_id (str): The guild snowflake, only known when parsed from a URL
    """
    message_id: str
    channel_id: Optional[str] = None
    guild_id: Optional[str] = None


def parse_message_ref(raw: str) -> MessageReference:
    """Parse a message link, or fall back to treating the input as a bare message ID."""
    match = MESSAGE_URL_PATTERN.search(raw)
    if match:
        guild_id, channel_id, message_id = match.groups()
        return MessageReference(message_id=message_id, channel_id=channel_id, guild_id=guild_id)
    return MessageReference(message_id=raw.strip())

"""
Turns the reactions on a single message into a CSV export.

Every reaction group is drained completely before moving on to the next one, so the rows for
one emoji are always contiguous in the output.
"""
import csv
import io
import logging
from typing import AsyncIterator, List, Optional, Union

import discord

log = logging.getLogger(__name__)

# Discord caps the reaction users endpoint at 100 per request
PAGE_SIZE = 100
UNKNOWN_EMOJI = "unknown"


def emoji_label(emoji: Union[discord.Emoji, discord.PartialEmoji, str, None]) -> str:
    """Custom emoji become ``name:id``, unicode emoji stay as they are."""
    if isinstance(emoji, str):
        return emoji or UNKNOWN_EMOJI

    emoji_id = getattr(emoji, "id", None)
    name = getattr(emoji, "name", None)
    if emoji_id:
        return f"{name}:{emoji_id}"
    return name or UNKNOWN_EMOJI


def csv_header(include_ids: bool = True) -> List[str]:
    if include_ids:
        return ["Emoji", "User", "User ID"]
    return ["Emoji", "User"]


def user_tag(user: Union[discord.User, discord.Member]) -> str:
    return f"{user.name}#{user.discriminator}"


async def iter_user_pages(reaction: discord.Reaction, page_size: int = PAGE_SIZE) -> AsyncIterator[List[discord.User]]:
    """
    Yield the users of a reaction group one page at a time.

    Each page is requested with ``after`` set to the last user of the previous page, in the
    order the API returned them. The sequence ends on an empty page, or right after a page
    shorter than ``page_size`` since that one is the last.

    ``Reaction.users`` keeps requesting on its own while its ``limit`` is not used up, so each
    call asks for at most what ``reaction.count`` says is left. That keeps it to one request
    per page.

    Args:
        reaction: The reaction group to page through
        page_size: How many users to request per call (max 100)
    """
    after = None
    seen = 0
    while True:
        remaining = reaction.count - seen
        limit = remaining if 0 < remaining < page_size else page_size

        page = [user async for user in reaction.users(limit=limit, after=after)]
        # discord.py yields every batch back to front
        page.reverse()
        if not page:
            return

        yield page

        seen += len(page)
        if len(page) < page_size:
            return
        after = discord.Object(id=page[-1].id)


async def export_reactions(message: discord.Message, include_ids: bool = True) -> Optional[str]:
    """
    Build the CSV text for every reaction on ``message``.

    Args:
        message: The fully fetched message
        include_ids: Whether to add the ``User ID`` column

    Returns:
        The CSV text, or None when the message has no reactions to export.

    Raises:
        discord.HTTPException: if any page fetch fails, nothing partial is returned
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(csv_header(include_ids))
    header = buffer.getvalue()

    for reaction in message.reactions:
        label = emoji_label(reaction.emoji)
        pages = 0

        async for page in iter_user_pages(reaction):
            pages += 1
            for user in page:
                row = [label, user_tag(user)]
                if include_ids:
                    row.append(str(user.id))
                writer.writerow(row)

        log.debug("Exported reaction %s on message %s in %d page(s)", label, message.id, pages)

    csv_text = buffer.getvalue()
    if csv_text == header:
        return None
    return csv_text

from __future__ import annotations

import re

import discord


USER_MENTION_RE = re.compile(r"^<@!?(\d+)>$")
CHANNEL_MENTION_RE = re.compile(r"^<#(\d+)>$")
CODE_FENCE = "```"


def with_mention(user_id: int, text: str) -> str:
    return f"<@{user_id}> {text}"


def parse_user_mention(token: str) -> int | None:
    match = USER_MENTION_RE.match(token.strip())
    return int(match.group(1)) if match else None


def parse_channel_mention(token: str) -> int | None:
    match = CHANNEL_MENTION_RE.match(token.strip())
    return int(match.group(1)) if match else None


async def resolve_channel(guild: discord.Guild, channel_id: int) -> discord.abc.GuildChannel | None:
    """
    Resolve a guild channel by ID.

    The cache is tried first, then an API fetch. A channel that has been deleted
    (or that the bot cannot see) resolves to None.
    """

    channel = guild.get_channel(channel_id)
    if channel is not None:
        return channel
    try:
        return await guild.fetch_channel(channel_id)
    except (discord.NotFound, discord.Forbidden, discord.HTTPException):
        return None


async def resolve_member(guild: discord.Guild, user_id: int) -> discord.Member | None:
    member = guild.get_member(user_id)
    if member is not None:
        return member
    try:
        return await guild.fetch_member(user_id)
    except (discord.NotFound, discord.Forbidden, discord.HTTPException):
        return None


def split_text_for_discord(text: str, limit: int = 1900) -> list[str]:
    """Split a reply into chunks of at most ``limit`` characters, keeping code blocks balanced."""

    normalized = str(text or "").replace("\r\n", "\n").strip()
    if not normalized:
        return []

    window = limit - len(CODE_FENCE)
    chunks: list[str] = []
    remaining = normalized
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, window + 1)
        if cut < max(1, int(window * 0.5)):
            cut = remaining.rfind(" ", 0, window + 1)
        if cut <= 0:
            cut = window
        chunk = remaining[:cut].strip()[:window]
        remaining = remaining[cut:].strip()
        # A code block left open is closed here and reopened at the start of the next chunk.
        if chunk.count(CODE_FENCE) % 2:
            chunk += CODE_FENCE
            remaining = CODE_FENCE + remaining
        chunks.append(chunk)
    if remaining:
        chunks.append(remaining)
    return chunks

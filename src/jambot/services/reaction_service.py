from __future__ import annotations

import discord

from jambot.config import Settings
from jambot.services.logger_service import LoggerService
from jambot.services.role_service import EMOJI_ROLES, RoleChange, RoleService
from jambot.storage import JsonStateStore, TrackedMessageKind
from jambot.utils.discord_utils import parse_channel_mention, resolve_channel, resolve_member


EULA_ACCEPT_EMOJI = "\U0001F44D"  # 👍

COMMAND_NAMES: dict[TrackedMessageKind, str] = {
    TrackedMessageKind.EULA: "seteula",
    TrackedMessageKind.ROLE_ASSIGN: "setroleassign",
}


class ReactionService:
    """Tracked EULA / role-assignment messages and the reactions placed on them."""

    def __init__(self, settings: Settings, store: JsonStateStore, roles: RoleService, logger: LoggerService) -> None:
        self.settings = settings
        self.store = store
        self.roles = roles
        self.logger = logger

    def usage_text(self, kind: TrackedMessageKind) -> str:
        return (
            f"Proper usage: `{self.settings.command_prefix}{COMMAND_NAMES[kind]} "
            "<mention of channel with the message> <message ID>`"
        )

    async def handle_set_message(self, member: discord.Member, args: list[str], kind: TrackedMessageKind) -> str:
        if not self.roles.is_organizer(member):
            self.logger.log("tracked_message.denied", user_id=member.id, kind=kind.value)
            return (
                f"Since you lack the required role **{self.settings.organizer_role}**, "
                f"you do not have permission to set the server {kind.label}."
            )
        guide = self.usage_text(kind)
        if len(args) < 2:
            return guide
        channel_id = parse_channel_mention(args[0])
        if channel_id is None:
            return f"Invalid channel reference.\n{guide}"
        if not (args[1].isascii() and args[1].isdigit()):
            return f"Message ID must be a number.\n{guide}"
        message_id = int(args[1])

        message = await self._fetch_message(member.guild, channel_id, message_id)
        if message is None:
            self.logger.log("tracked_message.not_found", kind=kind.value, channel_id=channel_id, message_id=message_id)
            return f"No message with ID {message_id} was found in <#{channel_id}>"

        try:
            if kind is TrackedMessageKind.ROLE_ASSIGN:
                for emoji in EMOJI_ROLES:
                    await message.add_reaction(emoji)
            await self.store.set_tracked_message(kind, channel_id, message.id)
        except discord.HTTPException as exc:
            self.logger.log("tracked_message.set_failed", kind=kind.value, message_id=message_id, error=str(exc)[:300])
            return f"Could not set server {kind.label}. Check the logs for details."
        except OSError as exc:
            self.logger.log("store.save_failed", op="set_tracked_message", kind=kind.value, error=str(exc))
            return f"Could not set server {kind.label}. Check the logs for details."

        self.logger.log("tracked_message.set", kind=kind.value, actor_id=member.id, channel_id=channel_id, message_id=message.id)
        return (
            f"Server {kind.label} set to the following message by <@{message.author.id}> in <#{channel_id}>:\n"
            f">>> {message.content}"
        )

    async def _fetch_message(self, guild: discord.Guild, channel_id: int, message_id: int) -> discord.Message | None:
        channel = await resolve_channel(guild, channel_id)
        if channel is None or not hasattr(channel, "fetch_message"):
            return None
        try:
            return await channel.fetch_message(message_id)
        except discord.HTTPException:
            return None

    async def handle_reaction(
        self,
        guild: discord.Guild,
        payload: discord.RawReactionActionEvent,
        bot_user_id: int,
        *,
        added: bool,
    ) -> RoleChange | None:
        if payload.user_id == bot_user_id:
            return None
        # Custom guild emoji carry an ID; only unicode emoji are mapped.
        if payload.emoji.id is not None:
            return None
        emoji = payload.emoji.name

        role_assign = await self.store.get_tracked_message(TrackedMessageKind.ROLE_ASSIGN)
        if role_assign.matches(payload.channel_id, payload.message_id):
            role_name = EMOJI_ROLES.get(emoji)
            if role_name is None:
                return None
            member = await self._reacting_member(guild, payload)
            if member is None:
                return None
            if added:
                return await self.roles.grant(member, role_name, reason=f"Role assignment reaction {emoji}")
            return await self.roles.revoke(member, role_name, reason=f"Role assignment reaction {emoji} removed")

        eula = await self.store.get_tracked_message(TrackedMessageKind.EULA)
        if added and emoji == EULA_ACCEPT_EMOJI and eula.matches(payload.channel_id, payload.message_id):
            member = await self._reacting_member(guild, payload)
            if member is None:
                return None
            return await self.roles.grant(member, self.settings.jammer_role, reason="EULA accepted")
        return None

    async def _reacting_member(self, guild: discord.Guild, payload: discord.RawReactionActionEvent) -> discord.Member | None:
        member = payload.member or await resolve_member(guild, payload.user_id)
        if member is None:
            self.logger.log("reaction.member_missing", guild_id=guild.id, user_id=payload.user_id)
        return member

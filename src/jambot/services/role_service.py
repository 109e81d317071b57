from __future__ import annotations

import enum

import discord

from jambot.config import Settings
from jambot.services.logger_service import LoggerService


REQUESTABLE_ROLES: tuple[str, ...] = (
    "Programmer",
    "2D Artist",
    "3D Artist",
    "Sound Designer",
    "Musician",
    "Idea Guy",
    "Board Games",
)

EMOJI_ROLES: dict[str, str] = {
    "\U0001F4BB": "Programmer",  # 💻
    "\U0001F3A8": "2D Artist",  # 🎨
    "\U0001F5FF": "3D Artist",  # 🗿
    "\U0001F50A": "Sound Designer",  # 🔊
    "\U0001F3B5": "Musician",  # 🎵
    "\U0001F4A1": "Idea Guy",  # 💡
    "\U0001F3B2": "Board Games",  # 🎲
}

AVAILABLE_ROLES_TEXT = "You need to specify a valid role.\nAvailable roles are:```\n" + "\n".join(REQUESTABLE_ROLES) + "```"


class RoleChange(enum.Enum):
    GRANTED = "granted"
    REVOKED = "revoked"
    ALREADY_HAS = "already_has"
    NOT_HELD = "not_held"
    MISSING_ROLE = "missing_role"
    FAILED = "failed"


def find_role(guild: discord.Guild, name: str) -> discord.Role | None:
    wanted = name.lower()
    for role in guild.roles:
        if role.name.lower() == wanted:
            return role
    return None


def has_role(member: discord.abc.User | discord.Member, name: str) -> bool:
    wanted = name.lower()
    return any(role.name.lower() == wanted for role in getattr(member, "roles", []))


def requestable_role(text: str) -> str | None:
    wanted = " ".join(text.split()).lower()
    for name in REQUESTABLE_ROLES:
        if name.lower() == wanted:
            return name
    return None


class RoleService:
    def __init__(self, settings: Settings, logger: LoggerService) -> None:
        self.settings = settings
        self.logger = logger

    def is_organizer(self, member: discord.abc.User | discord.Member) -> bool:
        return has_role(member, self.settings.organizer_role)

    def is_jammer(self, member: discord.abc.User | discord.Member) -> bool:
        return has_role(member, self.settings.jammer_role) or self.is_organizer(member)

    async def grant(self, member: discord.Member, role_name: str, *, reason: str) -> RoleChange:
        role = find_role(member.guild, role_name)
        if role is None:
            self.logger.log("role.missing", guild_id=member.guild.id, role=role_name)
            return RoleChange.MISSING_ROLE
        if role in member.roles:
            return RoleChange.ALREADY_HAS
        try:
            await member.add_roles(role, reason=reason)
        except discord.HTTPException as exc:
            self.logger.log("role.grant_failed", user_id=member.id, role=role.name, error=str(exc)[:300])
            return RoleChange.FAILED
        self.logger.log("role.granted", user_id=member.id, role=role.name, reason=reason)
        return RoleChange.GRANTED

    async def revoke(self, member: discord.Member, role_name: str, *, reason: str) -> RoleChange:
        role = find_role(member.guild, role_name)
        if role is None:
            self.logger.log("role.missing", guild_id=member.guild.id, role=role_name)
            return RoleChange.MISSING_ROLE
        if role not in member.roles:
            return RoleChange.NOT_HELD
        try:
            await member.remove_roles(role, reason=reason)
        except discord.HTTPException as exc:
            self.logger.log("role.revoke_failed", user_id=member.id, role=role.name, error=str(exc)[:300])
            return RoleChange.FAILED
        self.logger.log("role.revoked", user_id=member.id, role=role.name, reason=reason)
        return RoleChange.REVOKED

    async def handle_role(self, member: discord.Member, args: list[str]) -> str:
        role_name = requestable_role(" ".join(args))
        if role_name is None:
            return AVAILABLE_ROLES_TEXT
        outcome = await self.grant(member, role_name, reason="Requested with role command")
        if outcome is RoleChange.GRANTED:
            return f"You have been assigned the role **{role_name}**."
        if outcome is RoleChange.ALREADY_HAS:
            return f"You already have the role **{role_name}**."
        if outcome is RoleChange.MISSING_ROLE:
            return f"The role **{role_name}** does not exist on this server yet."
        return f"I couldn't assign the role **{role_name}**. Check the logs for details."

    async def handle_leave(self, member: discord.Member, args: list[str]) -> str:
        role_name = requestable_role(" ".join(args))
        if role_name is None:
            return AVAILABLE_ROLES_TEXT
        outcome = await self.revoke(member, role_name, reason="Requested with leave command")
        if outcome is RoleChange.REVOKED:
            return f"You have been stripped of the role **{role_name}**."
        if outcome is RoleChange.NOT_HELD:
            return f"You don't have the role **{role_name}**."
        if outcome is RoleChange.MISSING_ROLE:
            return f"The role **{role_name}** does not exist on this server yet."
        return f"I couldn't remove the role **{role_name}**. Check the logs for details."

from __future__ import annotations

import re

import discord

from jambot.config import Settings
from jambot.services.logger_service import LoggerService
from jambot.services.role_service import RoleService
from jambot.storage import JsonStateStore, Team
from jambot.utils.discord_utils import parse_user_mention, resolve_channel


INVALID_NAME_RE = re.compile(r"[`|]")
MARKDOWN_ESCAPE_RE = re.compile(r'([-_+*"#=.⋅\\<>{}])')

SAVE_FAILED_TEXT = "Something went wrong while saving. Check the logs for details."


def is_valid_game_name(name: str) -> bool:
    return INVALID_NAME_RE.search(name) is None


def to_markdown_safe(name: str) -> str:
    return MARKDOWN_ESCAPE_RE.sub(r"\\\1", name)


def list_strings(items: list[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


def text_topic(game_name: str) -> str:
    return f"Work on and playtesting of the game {game_name}."


class ChannelCreationError(Exception):
    """Failure while creating a team's channels. ``str()`` is the reply shown to the user."""


class AlreadyCreated(ChannelCreationError):
    def __init__(self, team: Team, prefix: str = "!") -> None:
        self.team = team
        super().__init__(
            f"You have already created channels for your game **{team.game_name}** here: <#{team.text_id}>\n"
            f"Try using `{prefix}renamechannels <new game name>` instead if you wish to rename them."
        )


class NoName(ChannelCreationError):
    def __init__(self) -> None:
        super().__init__("You need to specify a game name.")


class InvalidName(ChannelCreationError):
    def __init__(self) -> None:
        super().__init__("Game names cannot contain the characters ` or |")


class CreationFailed(ChannelCreationError):
    def __init__(self, kind: str, cause: discord.HTTPException) -> None:
        self.kind = kind
        self.cause = cause
        super().__init__(f"{kind.capitalize()} creation failed. Check the logs for details.")


class NotCreated(ChannelCreationError):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"I asked Discord for a {kind} but got something else. \U0001F914")


class TeamChannelService:
    def __init__(self, settings: Settings, store: JsonStateStore, roles: RoleService, logger: LoggerService) -> None:
        self.settings = settings
        self.store = store
        self.roles = roles
        self.logger = logger

    def jammer_required_text(self) -> str:
        return (
            "Oo, you found a secret command. \U0001F609\n"
            f"You will be able to use this command once you have been assigned the **{self.settings.jammer_role}** role.\n"
            "You will be able to get this role once the jam has started. "
            "The details on how to do so will be made available at that point."
        )

    async def handle_create(self, member: discord.Member, args: list[str]) -> str:
        if not self.roles.is_jammer(member):
            self.logger.log("channels.denied", user_id=member.id, command="createchannels")
            return self.jammer_required_text()
        async with self.store.user_lock(member.id):
            try:
                team = await self.create_team(member.guild, member.id, args)
            except (CreationFailed, NotCreated) as exc:
                self.logger.log("channels.create_failed", user_id=member.id, error=repr(exc.__cause__ or exc))
                return str(exc)
            except ChannelCreationError as exc:
                return str(exc)
            except OSError as exc:
                self.logger.log("store.save_failed", user_id=member.id, op="register_team", error=str(exc))
                return SAVE_FAILED_TEXT
        return f"Channels created for your game **{team.game_name}** here: <#{team.text_id}>"

    async def create_team(self, guild: discord.Guild, user_id: int, args: list[str]) -> Team:
        existing = await self.store.get_team(user_id)
        if existing is not None:
            raise AlreadyCreated(existing, self.settings.command_prefix)
        game_name = " ".join(args)
        if not game_name:
            raise NoName()
        if not is_valid_game_name(game_name):
            raise InvalidName()
        self.logger.log("channels.create_requested", user_id=user_id, game_name=game_name)
        reason = f"Team channels for user {user_id}"

        # Category first: the text and voice channels are parented to it.
        try:
            category = await guild.create_category(f"Team: {game_name}", reason=reason)
        except discord.HTTPException as exc:
            raise CreationFailed("category", exc) from exc
        if category.type != discord.ChannelType.category:
            raise NotCreated("category")

        try:
            text = await guild.create_text_channel(game_name, category=category, topic=text_topic(game_name), reason=reason)
        except discord.HTTPException as exc:
            raise CreationFailed("text channel", exc) from exc
        if text.type != discord.ChannelType.text:
            raise NotCreated("text channel")

        try:
            voice = await guild.create_voice_channel(game_name, category=category, reason=reason)
        except discord.HTTPException as exc:
            raise CreationFailed("voice channel", exc) from exc
        if voice.type != discord.ChannelType.voice:
            raise NotCreated("voice channel")

        team = Team(
            game_name=to_markdown_safe(game_name),
            category_id=category.id,
            text_id=text.id,
            voice_id=voice.id,
        )
        existing = await self.store.register_team_if_absent(user_id, team)
        if existing is not None:
            raise AlreadyCreated(existing, self.settings.command_prefix)
        self.logger.log(
            "channels.created",
            user_id=user_id,
            category_id=category.id,
            text_id=text.id,
            voice_id=voice.id,
        )
        return team

    async def handle_rename(self, member: discord.Member, args: list[str]) -> str:
        if not self.roles.is_jammer(member):
            self.logger.log("channels.denied", user_id=member.id, command="renamechannels")
            return self.jammer_required_text()
        new_name = " ".join(args)
        if not new_name:
            return "You need to specify a game name."
        if not is_valid_game_name(new_name):
            return "Game names cannot contain the characters ` or |"
        async with self.store.user_lock(member.id):
            team = await self.store.get_team(member.id)
            if team is None:
                return (
                    "You have not created a channel yet.\n"
                    f"Try using `{self.settings.command_prefix}createchannels <game name>` instead."
                )
            team = Team(
                game_name=to_markdown_safe(new_name),
                category_id=team.category_id,
                text_id=team.text_id,
                voice_id=team.voice_id,
            )
            oks, errs = await self._rename_channels(member.guild, team, new_name)
            try:
                await self.store.register_team(member.id, team)
            except OSError as exc:
                self.logger.log("store.save_failed", user_id=member.id, op="register_team", error=str(exc))
                return SAVE_FAILED_TEXT
        self.logger.log("channels.renamed", user_id=member.id, renamed=len(oks), missing=errs)

        if not oks:
            return (
                f"Category, text channel and voice channel for your game **{team.game_name}** "
                "have been removed, it seems."
            )
        if errs:
            have_has = "have" if len(errs) > 1 else "has"
            return (
                f"Renamed {list_strings(oks)} for your game **{team.game_name}** "
                f"but its {list_strings(errs)} {have_has} been removed, it seems."
            )
        return f"Renamed {list_strings(oks)} for your game **{team.game_name}**."

    async def _rename_channels(self, guild: discord.Guild, team: Team, new_name: str) -> tuple[list[str], list[str]]:
        oks: list[str] = []
        errs: list[str] = []
        reason = "Team channels renamed"

        category = await self._edit(guild, team.category_id, name=f"Team: {new_name}", reason=reason)
        if category is None:
            errs.append("category")
        else:
            oks.append(f"category to **{category.name}**")

        text = await self._edit(guild, team.text_id, name=new_name, topic=text_topic(team.game_name), reason=reason)
        if text is None:
            errs.append("text channel")
        else:
            oks.append(f"text channel to **#{text.name}** (found here: <#{text.id}>)")

        voice = await self._edit(guild, team.voice_id, name=new_name, reason=reason)
        if voice is None:
            errs.append("voice channel")
        else:
            oks.append(f"voice channel to **{voice.name}**")
        return oks, errs

    async def _edit(self, guild: discord.Guild, channel_id: int, **fields: object) -> discord.abc.GuildChannel | None:
        channel = await resolve_channel(guild, channel_id)
        if channel is None:
            return None
        try:
            edited = await channel.edit(**fields)
        except discord.HTTPException as exc:
            self.logger.log("channels.edit_failed", channel_id=channel_id, error=str(exc)[:300])
            return None
        return edited or channel

    async def handle_remove(self, member: discord.Member, args: list[str]) -> str:
        if not self.roles.is_organizer(member):
            self.logger.log("channels.denied", user_id=member.id, command="removechannels")
            return f"You need to be an **{self.settings.organizer_role}** to use this command."
        if not args:
            return "You forgot to provide a user id."
        target_id = parse_user_mention(args[0])
        if target_id is None:
            return "Invalid user reference."

        async with self.store.user_lock(target_id):
            team = await self.store.get_team(target_id)
            if team is None:
                return "That user does not have any team channels."
            oks: list[str] = []
            errs: list[str] = []

            name = await self._delete(member.guild, team.text_id)
            if name is None:
                errs.append("text channel")
            else:
                oks.append(f"text channel **#{name}**")

            name = await self._delete(member.guild, team.voice_id)
            if name is None:
                errs.append("voice channel")
            else:
                oks.append(f"voice channel **{name}**")

            # Category last so the children are never moved to the guild root before deletion.
            name = await self._delete(member.guild, team.category_id)
            if name is None:
                errs.insert(0, "category")
            else:
                oks.insert(0, f"category **{name}**")

            try:
                await self.store.remove_team(target_id)
            except OSError as exc:
                self.logger.log("store.save_failed", user_id=target_id, op="remove_team", error=str(exc))
                return SAVE_FAILED_TEXT
        self.logger.log("channels.removed", actor_id=member.id, user_id=target_id, removed=len(oks), missing=errs)

        if not oks:
            return (
                f"Category, text channel and voice channel for the game **{team.game_name}** "
                "have already been removed."
            )
        if errs:
            have_has = "have" if len(errs) > 1 else "has"
            return (
                f"Removed {list_strings(oks)} for the game **{team.game_name}** "
                f"but its {list_strings(errs)} {have_has} already been removed."
            )
        return f"Removed {list_strings(oks)} for the game **{team.game_name}**."

    async def _delete(self, guild: discord.Guild, channel_id: int) -> str | None:
        channel = await resolve_channel(guild, channel_id)
        if channel is None:
            return None
        try:
            await channel.delete(reason="Team channels removed by organizer")
        except discord.HTTPException as exc:
            self.logger.log("channels.delete_failed", channel_id=channel_id, error=str(exc)[:300])
            return None
        return channel.name

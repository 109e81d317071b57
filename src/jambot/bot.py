from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

import discord

from jambot.config import Settings
from jambot.router import Command, ParsedCommand, help_text, parse_command
from jambot.services.logger_service import LoggerService
from jambot.services.reaction_service import ReactionService
from jambot.services.role_service import RoleService
from jambot.services.team_channel_service import TeamChannelService
from jambot.services.theme_service import ThemeService
from jambot.storage import JsonStateStore, TrackedMessageKind
from jambot.utils.discord_utils import split_text_for_discord, with_mention


COMMAND_FAILED_TEXT = "Something went wrong while running that command. Check the logs for details."


@dataclass(frozen=True)
class CommandContext:
    message: discord.Message
    member: discord.Member
    guild: discord.Guild


CommandHandler = Callable[[CommandContext, list[str]], Awaitable[str | None]]


class JamBot(discord.Client):
    def __init__(self, settings: Settings, store: JsonStateStore | None = None) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True
        intents.reactions = True
        intents.dm_messages = True
        super().__init__(intents=intents)
        self.settings = settings
        self.store = store or JsonStateStore(settings.store_path)
        self.logger = LoggerService()
        self.roles = RoleService(settings, self.logger)
        self.teams = TeamChannelService(settings, self.store, self.roles, self.logger)
        self.themes = ThemeService(settings, self.store, self.roles, self.logger)
        self.reactions = ReactionService(settings, self.store, self.roles, self.logger)
        self._handlers: dict[Command, CommandHandler] = {
            Command.HELP: self._cmd_help,
            Command.CREATE_CHANNELS: self._cmd_create_channels,
            Command.RENAME_CHANNELS: self._cmd_rename_channels,
            Command.REMOVE_CHANNELS: self._cmd_remove_channels,
            Command.ROLE: self._cmd_role,
            Command.LEAVE: self._cmd_leave,
            Command.GENERATE_THEME: self._cmd_generate_theme,
            Command.SHOW_ALL_THEMES: self._cmd_show_all_themes,
            Command.SET_EULA: self._cmd_set_eula,
            Command.SET_ROLE_ASSIGN: self._cmd_set_role_assign,
        }
        self._ready_once = False

    async def setup_hook(self) -> None:
        await self.store.load()

    async def on_ready(self) -> None:
        if self._ready_once:
            return
        self._ready_once = True
        self.logger.log("bot.ready", user_id=self._me_id(), guilds=len(self.guilds))
        print(f"Connected as {self.user} ({self._me_id() or '?'})")

    def _me_id(self) -> int:
        return self.user.id if self.user else 0

    def help_for(self, member: discord.Member | discord.abc.User) -> str:
        return help_text(
            self.settings.command_prefix,
            self.settings.organizer_role,
            is_organizer=self.roles.is_organizer(member),
            is_jammer=self.roles.is_jammer(member),
        )

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        if message.guild is None:
            reply = await self.themes.handle_submission(message.author.id, message.content)
            await self._send(message.channel, reply)
            return
        reply = await self.route_message(message)
        if reply:
            await self._send(message.channel, with_mention(message.author.id, reply))

    async def route_message(self, message: discord.Message) -> str | None:
        parsed = parse_command(message.content, self.settings.command_prefix)
        if parsed is None:
            me_id = self._me_id()
            if me_id and any(user.id == me_id for user in message.mentions):
                return self.help_for(message.author)
            return None
        if parsed.command is Command.UNKNOWN:
            return f"Unrecognised command `{parsed.token}`.\n\n{self.help_for(message.author)}"
        ctx = CommandContext(message=message, member=message.author, guild=message.guild)
        return await self.dispatch_command(ctx, parsed)

    async def dispatch_command(self, ctx: CommandContext, parsed: ParsedCommand) -> str | None:
        handler = self._handlers[parsed.command]
        try:
            return await handler(ctx, parsed.args)
        except Exception as exc:  # noqa: BLE001
            self.logger.log(
                "command.error",
                command=parsed.command.value,
                user_id=ctx.member.id,
                error=repr(exc)[:300],
            )
            return COMMAND_FAILED_TEXT

    async def _send(self, channel: discord.abc.Messageable, text: str) -> None:
        try:
            for chunk in split_text_for_discord(text):
                await channel.send(chunk)
        except (discord.Forbidden, discord.HTTPException) as exc:
            self.logger.log("message.send_failed", channel_id=getattr(channel, "id", 0), error=str(exc)[:300])

    async def _cmd_help(self, ctx: CommandContext, args: list[str]) -> str:
        return self.help_for(ctx.member)

    async def _cmd_create_channels(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.teams.handle_create(ctx.member, args)

    async def _cmd_rename_channels(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.teams.handle_rename(ctx.member, args)

    async def _cmd_remove_channels(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.teams.handle_remove(ctx.member, args)

    async def _cmd_role(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.roles.handle_role(ctx.member, args)

    async def _cmd_leave(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.roles.handle_leave(ctx.member, args)

    async def _cmd_generate_theme(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.themes.handle_generate(ctx.member)

    async def _cmd_show_all_themes(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.themes.handle_show_all(ctx.member)

    async def _cmd_set_eula(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.reactions.handle_set_message(ctx.member, args, TrackedMessageKind.EULA)

    async def _cmd_set_role_assign(self, ctx: CommandContext, args: list[str]) -> str:
        return await self.reactions.handle_set_message(ctx.member, args, TrackedMessageKind.ROLE_ASSIGN)

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self._on_reaction(payload, added=True)

    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        await self._on_reaction(payload, added=False)

    async def _on_reaction(self, payload: discord.RawReactionActionEvent, *, added: bool) -> None:
        if payload.guild_id is None:
            return
        guild = self.get_guild(payload.guild_id)
        if guild is None:
            return
        try:
            await self.reactions.handle_reaction(guild, payload, self._me_id(), added=added)
        except Exception as exc:  # noqa: BLE001
            self.logger.log("reaction.error", message_id=payload.message_id, added=added, error=repr(exc)[:300])


def main() -> None:
    settings = Settings.load()
    bot = JamBot(settings)
    bot.run(settings.discord_token)

from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace

from jambot.bot import COMMAND_FAILED_TEXT, JamBot
from jambot.storage import TrackedMessageKind

from discord_stubs import StubChannel, StubGuild, StubMember, StubUser, jam_roles, make_settings, make_store


BOT_ID = 999


def _make_bot(tmp_path: Path) -> JamBot:
    bot = JamBot(make_settings(tmp_path), store=make_store(tmp_path))
    bot._me_id = lambda: BOT_ID  # type: ignore[assignment]
    return bot


def _message(author, guild, content: str, *, channel=None, mentions=None):
    return SimpleNamespace(
        author=author,
        guild=guild,
        content=content,
        channel=channel,
        mentions=list(mentions or []),
    )


def test_unknown_command_replies_with_notice_and_help(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    guild = StubGuild()
    member = StubMember(42, guild)

    reply = asyncio.run(bot.route_message(_message(member, guild, "!dance")))

    assert reply is not None
    assert reply.startswith("Unrecognised command `!dance`.")
    assert "Send me a PM to submit theme ideas." in reply


def test_mention_without_command_sends_help(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    guild = StubGuild()
    member = StubMember(42, guild, [jam_roles()["Jammer"]])

    mentioned = asyncio.run(bot.route_message(_message(member, guild, "hey bot", mentions=[StubUser(BOT_ID)])))
    ignored = asyncio.run(bot.route_message(_message(member, guild, "hey everyone", mentions=[StubUser(5)])))

    assert mentioned is not None and "createchannels" in mentioned
    assert ignored is None


def test_help_command_is_tailored_to_organizer(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    guild = StubGuild()
    organizer = StubMember(1, guild, [jam_roles()["Organizer"]])
    member = StubMember(2, guild)

    organizer_help = asyncio.run(bot.route_message(_message(organizer, guild, "!help")))
    member_help = asyncio.run(bot.route_message(_message(member, guild, "!help")))

    assert organizer_help is not None and "generatetheme" in organizer_help
    assert member_help is not None and "generatetheme" not in member_help


def test_guild_reply_mentions_requester(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    guild = StubGuild()
    member = StubMember(42, guild, [jam_roles()["Jammer"]])
    channel = guild.add_channel("general")

    asyncio.run(bot.on_message(_message(member, guild, "!createchannels Pixel Quest", channel=channel)))

    team = asyncio.run(bot.store.get_team(42))
    assert team is not None
    assert channel.sent == [f"<@42> Channels created for your game **Pixel Quest** here: <#{team.text_id}>"]


def test_direct_message_is_a_theme_submission(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    dm = StubChannel(StubGuild(), 1, "dm", None)  # type: ignore[arg-type]

    asyncio.run(bot.on_message(_message(StubUser(5), None, "!help", channel=dm)))
    asyncio.run(bot.on_message(_message(StubUser(5), None, "two words", channel=dm)))

    assert dm.sent == ['Theme idea "!help" registered, thanks!', "Theme ideas should only be a single word."]
    assert asyncio.run(bot.store.theme_ideas()) == ["!help"]


def test_bot_authors_are_ignored(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    guild = StubGuild()
    channel = guild.add_channel("general")

    asyncio.run(bot.on_message(_message(StubUser(7, bot=True), guild, "!help", channel=channel)))

    assert channel.sent == []


def test_handler_crash_becomes_generic_reply(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    guild = StubGuild()
    member = StubMember(42, guild)

    async def explode(member, args):
        raise RuntimeError("kaboom")

    bot.teams.handle_create = explode  # type: ignore[assignment]
    reply = asyncio.run(bot.route_message(_message(member, guild, "!createchannels Game")))

    assert reply == COMMAND_FAILED_TEXT
    assert "command.error" in bot.logger.events()


def test_raw_reaction_routes_to_role_assignment(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    roles = jam_roles()
    guild = StubGuild(roles=list(roles.values()))
    member = StubMember(7, guild)
    bot.get_guild = lambda guild_id: guild if guild_id == guild.id else None  # type: ignore[assignment]
    asyncio.run(bot.store.set_tracked_message(TrackedMessageKind.ROLE_ASSIGN, 300, 400))

    def payload(guild_id):
        return SimpleNamespace(
            guild_id=guild_id,
            channel_id=300,
            message_id=400,
            user_id=7,
            member=None,
            emoji=SimpleNamespace(id=None, name="\U0001F3B5"),
        )

    asyncio.run(bot.on_raw_reaction_add(payload(None)))
    assert roles["Musician"] not in member.roles

    asyncio.run(bot.on_raw_reaction_add(payload(guild.id)))
    assert roles["Musician"] in member.roles

    asyncio.run(bot.on_raw_reaction_remove(payload(guild.id)))
    assert roles["Musician"] not in member.roles


def test_long_theme_listing_keeps_code_block_balanced_per_message(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    guild = StubGuild()
    organizer = StubMember(1, guild, [jam_roles()["Organizer"]])
    channel = guild.add_channel("organizers")
    bot.store.data["theme_ideas"] = {str(uid): f"idea{uid:04d}" for uid in range(600)}

    asyncio.run(bot.on_message(_message(organizer, guild, "!showallthemes", channel=channel)))

    assert len(channel.sent) > 1
    assert channel.sent[0].startswith("<@1> The theme ideas submitted are ```")
    assert all(len(chunk) <= 1900 for chunk in channel.sent)
    assert all(chunk.count("```") == 2 for chunk in channel.sent)
    assert "idea0599" in channel.sent[-1]


def test_non_ascii_message_id_is_an_input_error(tmp_path: Path) -> None:
    bot = _make_bot(tmp_path)
    guild = StubGuild()
    organizer = StubMember(1, guild, [jam_roles()["Organizer"]])

    reply = asyncio.run(bot.route_message(_message(organizer, guild, "!seteula <#300> ²")))

    assert reply is not None and reply.startswith("Message ID must be a number.")
    assert "command.error" not in bot.logger.events()

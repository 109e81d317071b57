from __future__ import annotations

from jambot.router import Command, help_text, parse_command


def test_parse_known_command_with_arguments() -> None:
    parsed = parse_command("!createchannels   Pixel  Quest", "!")
    assert parsed is not None
    assert parsed.command is Command.CREATE_CHANNELS
    assert parsed.args == ["Pixel", "Quest"]


def test_parse_unknown_prefixed_token_keeps_raw_token() -> None:
    parsed = parse_command("!dance now", "!")
    assert parsed is not None
    assert parsed.command is Command.UNKNOWN
    assert parsed.token == "!dance"


def test_non_command_text_is_not_parsed() -> None:
    assert parse_command("hello !help", "!") is None
    assert parse_command("   ", "!") is None
    assert parse_command("", "!") is None


def test_parse_respects_custom_prefix() -> None:
    parsed = parse_command("?help", "?")
    assert parsed is not None and parsed.command is Command.HELP
    assert parse_command("!help", "?") is None


def test_help_text_is_tailored_to_roles() -> None:
    member = help_text("!", "Organizer", is_organizer=False, is_jammer=False)
    jammer = help_text("!", "Organizer", is_organizer=False, is_jammer=True)
    organizer = help_text("!", "Organizer", is_organizer=True, is_jammer=True)

    assert "`!role <role name>`" in member
    assert "createchannels" not in member
    assert "`!createchannels <game name>`" in jammer
    assert "generatetheme" not in jammer
    assert "**Organizer**" in organizer
    assert "`!removechannels <mention of user>`" in organizer
    assert "setroleassign" in organizer

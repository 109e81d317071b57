from __future__ import annotations

import enum
from dataclasses import dataclass, field


class Command(enum.Enum):
    HELP = "help"
    CREATE_CHANNELS = "createchannels"
    RENAME_CHANNELS = "renamechannels"
    REMOVE_CHANNELS = "removechannels"
    ROLE = "role"
    LEAVE = "leave"
    GENERATE_THEME = "generatetheme"
    SHOW_ALL_THEMES = "showallthemes"
    SET_EULA = "seteula"
    SET_ROLE_ASSIGN = "setroleassign"
    UNKNOWN = ""


@dataclass(frozen=True)
class ParsedCommand:
    command: Command
    token: str
    args: list[str] = field(default_factory=list)


def parse_command(content: str, prefix: str) -> ParsedCommand | None:
    """
    Split ``content`` on whitespace and map the first token to a Command.

    Returns None for text that does not start with ``prefix``. A prefixed token that
    names no command yields Command.UNKNOWN with the raw token kept for the reply.
    """

    words = content.split()
    if not words or not words[0].startswith(prefix):
        return None
    token = words[0]
    name = token[len(prefix):]
    try:
        command = Command(name) if name else Command.UNKNOWN
    except ValueError:
        command = Command.UNKNOWN
    return ParsedCommand(command=command, token=token, args=words[1:])


def help_text(prefix: str, organizer_role: str, *, is_organizer: bool, is_jammer: bool) -> str:
    standard = (
        "Send me a PM to submit theme ideas.\n\n"
        f"Get a role to signify one of your skill sets with the command `{prefix}role <role name>`\n"
        f"and leave a role with `{prefix}leave <role name>`."
    )
    jammer = (
        "You can also ask for text and voice channels for your game "
        f"with the command `{prefix}createchannels <game name>`\n"
        f"and rename them with `{prefix}renamechannels <new game name>`."
    )
    organizer = (
        f"Since you have the **{organizer_role}** role, you also have access to the following commands:\n"
        f"- `{prefix}generatetheme` to generate a theme.\n"
        f"- `{prefix}showallthemes` to view all the theme ideas that have been submitted.\n"
        f"- `{prefix}removechannels <mention of user>` to remove a user's created channel.\n"
        f"- `{prefix}seteula <mention of channel with the message> <message ID>` "
        "to set the message acting as the server's EULA.\n"
        f"- `{prefix}setroleassign <mention of channel with the message> <message ID>` "
        "to set the server's role assignment message."
    )
    if is_organizer:
        return f"{standard}\n\n{jammer}\n\n{organizer}"
    if is_jammer:
        return f"{standard}\n\n{jammer}"
    return standard

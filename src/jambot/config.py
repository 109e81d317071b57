from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


ENV_KEYS = ("DISCORD_TOKEN", "COMMAND_PREFIX", "STORE_PATH", "ORGANIZER_ROLE", "JAMMER_ROLE")


@dataclass(frozen=True)
class Settings:
    discord_token: str
    command_prefix: str
    store_path: Path
    organizer_role: str
    jammer_role: str

    @staticmethod
    def load(env_path: Path = Path(".env")) -> "Settings":
        values = _parse_env_file(env_path)
        for key in ENV_KEYS:
            if os.environ.get(key):
                values[key] = os.environ[key]
        token = values.get("DISCORD_TOKEN", "").strip()
        if not token:
            raise RuntimeError("DISCORD_TOKEN is required (set it in the environment or in .env).")
        return Settings(
            discord_token=token,
            command_prefix=values.get("COMMAND_PREFIX", "!").strip() or "!",
            store_path=Path(values.get("STORE_PATH", "state.json").strip() or "state.json"),
            organizer_role=values.get("ORGANIZER_ROLE", "Organizer").strip() or "Organizer",
            jammer_role=values.get("JAMMER_ROLE", "Jammer").strip() or "Jammer",
        )


def _parse_env_file(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not path.exists():
        return values
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values

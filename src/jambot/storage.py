from __future__ import annotations

import asyncio
import copy
import enum
import json
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, AsyncIterator


SCHEMA_VERSION = 1

DEFAULT_STORE: dict[str, Any] = {
    "meta": {"version": SCHEMA_VERSION},
    "theme_ideas": {},
    "channel_creators": {},
    "tracked_messages": {
        "eula": {"channel_id": 0, "message_id": 0},
        "role_assign": {"channel_id": 0, "message_id": 0},
    },
}

# Top-level keys written by the pre-versioned state file.
LEGACY_TRACKED_KEYS: dict[str, tuple[str, str]] = {
    "eula": ("eula_channel_id", "eula_message_id"),
    "role_assign": ("role_assign_channel_id", "role_assign_message_id"),
}


class TrackedMessageKind(enum.Enum):
    EULA = "eula"
    ROLE_ASSIGN = "role_assign"

    @property
    def label(self) -> str:
        if self is TrackedMessageKind.EULA:
            return "EULA"
        return "role assignment message"


@dataclass(frozen=True)
class Team:
    game_name: str
    category_id: int
    text_id: int
    voice_id: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Team":
        return cls(
            game_name=str(row.get("game_name", "")),
            category_id=_as_id(row.get("category_id")),
            text_id=_as_id(row.get("text_id")),
            voice_id=_as_id(row.get("voice_id")),
        )


@dataclass(frozen=True)
class TrackedMessage:
    channel_id: int = 0
    message_id: int = 0

    @property
    def is_set(self) -> bool:
        return bool(self.channel_id and self.message_id)

    def matches(self, channel_id: int, message_id: int) -> bool:
        return self.is_set and self.channel_id == channel_id and self.message_id == message_id


@dataclass(frozen=True)
class ThemeSubmission:
    idea: str
    previous: str | None = None

    @property
    def replaced(self) -> bool:
        return self.previous is not None


class JsonStateStore:
    """
    Whole-document JSON store for theme ideas, team channels and tracked messages.

    Every mutating call rewrites the file before returning. A failed write raises
    the underlying OSError but leaves the in-memory change in place, so reads in
    this process see the new value while the file on disk does not.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()
        self._user_locks: dict[int, asyncio.Lock] = {}
        self._user_lock_refs: dict[int, int] = {}
        self.data: dict[str, Any] = _clone_defaults()

    async def load(self) -> None:
        async with self._lock:
            if not self.path.exists():
                self.data = _clone_defaults()
                self._save_unlocked()
                return
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            self.data = _normalize(raw if isinstance(raw, dict) else {})

    @asynccontextmanager
    async def user_lock(self, user_id: int) -> AsyncIterator[None]:
        """
        Hold the per-user team lock for the duration of the block.

        Handlers hold it across check, external calls and register for one user.
        The lock is dropped from the map once nobody holds or awaits it.
        """

        key = int(user_id)
        lock = self._user_locks.setdefault(key, asyncio.Lock())
        self._user_lock_refs[key] = self._user_lock_refs.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._user_lock_refs[key] -= 1
            if not self._user_lock_refs[key]:
                del self._user_lock_refs[key]
                del self._user_locks[key]

    async def submit_theme(self, user_id: int, idea: str) -> ThemeSubmission:
        async with self._lock:
            ideas = self.data["theme_ideas"]
            previous = ideas.get(str(user_id))
            ideas[str(user_id)] = idea
            self._save_unlocked()
            return ThemeSubmission(idea=idea, previous=previous)

    async def theme_ideas(self) -> list[str]:
        async with self._lock:
            return list(self.data["theme_ideas"].values())

    async def has_team(self, user_id: int) -> bool:
        async with self._lock:
            return str(user_id) in self.data["channel_creators"]

    async def get_team(self, user_id: int) -> Team | None:
        async with self._lock:
            return self._team_unlocked(user_id)

    async def register_team(self, user_id: int, team: Team) -> None:
        async with self._lock:
            self.data["channel_creators"][str(user_id)] = asdict(team)
            self._save_unlocked()

    async def register_team_if_absent(self, user_id: int, team: Team) -> Team | None:
        """Register ``team`` unless the user already has one; return the existing team if so."""
        async with self._lock:
            existing = self._team_unlocked(user_id)
            if existing is not None:
                return existing
            self.data["channel_creators"][str(user_id)] = asdict(team)
            self._save_unlocked()
            return None

    async def remove_team(self, user_id: int) -> None:
        async with self._lock:
            self.data["channel_creators"].pop(str(user_id), None)
            self._save_unlocked()

    async def set_tracked_message(self, kind: TrackedMessageKind, channel_id: int, message_id: int) -> None:
        async with self._lock:
            self.data["tracked_messages"][kind.value] = {
                "channel_id": int(channel_id),
                "message_id": int(message_id),
            }
            self._save_unlocked()

    async def get_tracked_message(self, kind: TrackedMessageKind) -> TrackedMessage:
        async with self._lock:
            row = self.data["tracked_messages"].get(kind.value) or {}
            return TrackedMessage(
                channel_id=_as_id(row.get("channel_id")),
                message_id=_as_id(row.get("message_id")),
            )

    def _team_unlocked(self, user_id: int) -> Team | None:
        row = self.data["channel_creators"].get(str(user_id))
        if not isinstance(row, dict):
            return None
        return Team.from_row(row)

    def _save_unlocked(self) -> None:
        self._write_document(json.dumps(self.data, indent=2, ensure_ascii=False))

    def _write_document(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(self.path)


def _clone_defaults() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_STORE)


def _as_id(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _normalize(raw: dict[str, Any]) -> dict[str, Any]:
    data = _clone_defaults()
    meta = raw.get("meta")
    legacy = not isinstance(meta, dict) or "version" not in meta

    ideas = raw.get("theme_ideas")
    if isinstance(ideas, dict):
        data["theme_ideas"] = {str(key): str(value) for key, value in ideas.items()}

    creators = raw.get("channel_creators")
    if isinstance(creators, dict):
        data["channel_creators"] = {
            str(key): asdict(Team.from_row(row)) for key, row in creators.items() if isinstance(row, dict)
        }

    tracked = raw.get("tracked_messages")
    if isinstance(tracked, dict):
        for kind in TrackedMessageKind:
            row = tracked.get(kind.value)
            if isinstance(row, dict):
                data["tracked_messages"][kind.value] = {
                    "channel_id": _as_id(row.get("channel_id")),
                    "message_id": _as_id(row.get("message_id")),
                }

    if legacy:
        for kind_value, (channel_key, message_key) in LEGACY_TRACKED_KEYS.items():
            if channel_key in raw or message_key in raw:
                data["tracked_messages"][kind_value] = {
                    "channel_id": _as_id(raw.get(channel_key)),
                    "message_id": _as_id(raw.get(message_key)),
                }
    return data

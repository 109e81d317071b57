from __future__ import annotations

import asyncio
import json
from pathlib import Path

from jambot.storage import JsonStateStore, Team, TrackedMessage, TrackedMessageKind

from discord_stubs import make_store


TEAM = Team(game_name="Pixel Quest", category_id=11, text_id=12, voice_id=13)


def test_load_creates_default_versioned_file(tmp_path: Path) -> None:
    store = make_store(tmp_path)

    on_disk = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    assert on_disk["meta"]["version"] == 1
    assert on_disk["theme_ideas"] == {}
    assert on_disk["channel_creators"] == {}
    assert asyncio.run(store.get_tracked_message(TrackedMessageKind.EULA)) == TrackedMessage(0, 0)
    assert not (tmp_path / "state.json.tmp").exists()


def test_team_lifecycle_and_reload(tmp_path: Path) -> None:
    store = make_store(tmp_path)

    assert asyncio.run(store.has_team(7)) is False
    asyncio.run(store.register_team(7, TEAM))
    assert asyncio.run(store.has_team(7)) is True
    assert asyncio.run(store.get_team(7)) == TEAM

    reloaded = make_store(tmp_path)
    assert asyncio.run(reloaded.get_team(7)) == TEAM

    asyncio.run(reloaded.remove_team(7))
    assert asyncio.run(reloaded.has_team(7)) is False
    assert asyncio.run(make_store(tmp_path).has_team(7)) is False


def test_remove_missing_team_is_not_an_error(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    asyncio.run(store.remove_team(404))
    assert asyncio.run(store.get_team(404)) is None


def test_register_team_overwrites_existing_record(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    asyncio.run(store.register_team(7, TEAM))
    renamed = Team(game_name="Voxel Quest", category_id=11, text_id=12, voice_id=13)
    asyncio.run(store.register_team(7, renamed))
    assert asyncio.run(store.get_team(7)) == renamed


def test_register_team_if_absent_returns_existing(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    assert asyncio.run(store.register_team_if_absent(7, TEAM)) is None
    other = Team(game_name="Other", category_id=21, text_id=22, voice_id=23)
    assert asyncio.run(store.register_team_if_absent(7, other)) == TEAM
    assert asyncio.run(store.get_team(7)) == TEAM


def test_resubmitting_theme_returns_immediately_preceding_idea(tmp_path: Path) -> None:
    store = make_store(tmp_path)

    first = asyncio.run(store.submit_theme(5, "space"))
    second = asyncio.run(store.submit_theme(5, "robots"))
    third = asyncio.run(store.submit_theme(5, "pirates"))

    assert first.replaced is False
    assert second.previous == "space"
    assert third.previous == "robots"
    assert asyncio.run(store.theme_ideas()) == ["pirates"]


def test_tracked_message_overwrite_and_reload(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    asyncio.run(store.set_tracked_message(TrackedMessageKind.ROLE_ASSIGN, 300, 400))
    asyncio.run(store.set_tracked_message(TrackedMessageKind.ROLE_ASSIGN, 301, 401))

    reloaded = make_store(tmp_path)
    tracked = asyncio.run(reloaded.get_tracked_message(TrackedMessageKind.ROLE_ASSIGN))
    assert tracked == TrackedMessage(301, 401)
    assert tracked.matches(301, 401) is True
    assert asyncio.run(reloaded.get_tracked_message(TrackedMessageKind.EULA)).is_set is False


def test_failed_save_keeps_in_memory_change(tmp_path: Path) -> None:
    store = make_store(tmp_path)

    def broken_write(text: str) -> None:
        raise OSError("disk full")

    store._write_document = broken_write  # type: ignore[assignment]
    try:
        asyncio.run(store.register_team(9, TEAM))
    except OSError:
        failed = True
    else:
        failed = False

    assert failed is True
    assert asyncio.run(store.has_team(9)) is True
    assert asyncio.run(make_store(tmp_path).has_team(9)) is False


def test_legacy_file_is_migrated_with_defaults(tmp_path: Path) -> None:
    legacy = {
        "theme_ideas": {"5": "space"},
        "channel_creators": {
            "7": {"game_name": "Old Game", "category_id": "11", "text_id": "12", "voice_id": "13"},
        },
        "role_assign_channel_id": "300",
        "role_assign_message_id": "400",
    }
    (tmp_path / "state.json").write_text(json.dumps(legacy), encoding="utf-8")

    store = JsonStateStore(tmp_path / "state.json")
    asyncio.run(store.load())

    assert asyncio.run(store.theme_ideas()) == ["space"]
    assert asyncio.run(store.get_team(7)) == Team("Old Game", 11, 12, 13)
    assert asyncio.run(store.get_tracked_message(TrackedMessageKind.ROLE_ASSIGN)) == TrackedMessage(300, 400)
    assert asyncio.run(store.get_tracked_message(TrackedMessageKind.EULA)) == TrackedMessage(0, 0)
    assert store.data["meta"]["version"] == 1


def test_missing_fields_fall_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "state.json").write_text(json.dumps({"meta": {"version": 1}}), encoding="utf-8")
    store = JsonStateStore(tmp_path / "state.json")
    asyncio.run(store.load())

    assert asyncio.run(store.theme_ideas()) == []
    assert asyncio.run(store.has_team(1)) is False
    assert asyncio.run(store.get_tracked_message(TrackedMessageKind.ROLE_ASSIGN)).is_set is False


def test_user_lock_serializes_one_user_and_is_dropped_after_use(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    order: list[str] = []

    async def hold(user_id: int, name: str) -> None:
        async with store.user_lock(user_id):
            order.append(f"{name} in")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            order.append(f"{name} out")

    async def run_all() -> None:
        await asyncio.gather(hold(1, "a"), hold(1, "b"), hold(2, "c"))

    asyncio.run(run_all())

    assert order.index("a out") < order.index("b in")
    assert order.index("c in") < order.index("a out")
    assert store._user_locks == {}
    assert store._user_lock_refs == {}

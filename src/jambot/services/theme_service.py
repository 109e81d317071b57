from __future__ import annotations

import random

import discord

from jambot.config import Settings
from jambot.services.logger_service import LoggerService
from jambot.services.role_service import RoleService
from jambot.storage import JsonStateStore


NOT_ENOUGH_IDEAS_TEXT = "Not enough ideas have been submitted yet."


def is_single_word(text: str) -> bool:
    return len(text.split()) == 1


class ThemeService:
    def __init__(
        self,
        settings: Settings,
        store: JsonStateStore,
        roles: RoleService,
        logger: LoggerService,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.roles = roles
        self.logger = logger
        self.rng = rng or random.Random()

    async def handle_submission(self, user_id: int, content: str) -> str:
        if not is_single_word(content):
            return "Theme ideas should only be a single word."
        idea = content.strip()
        try:
            result = await self.store.submit_theme(user_id, idea)
        except OSError as exc:
            self.logger.log("store.save_failed", user_id=user_id, op="submit_theme", error=str(exc))
            return "I couldn't save your theme idea. Please try again later."
        self.logger.log("theme.submitted", user_id=user_id, replaced=result.replaced)
        if result.replaced:
            return (
                "You can only submit one idea.\n"
                f'Theme idea "{idea}" registered, replacing your previous submission "{result.previous}".'
            )
        return f'Theme idea "{idea}" registered, thanks!'

    def pick_theme(self, ideas: list[str]) -> str:
        if len(ideas) < 2:
            return NOT_ENOUGH_IDEAS_TEXT
        selected = self.rng.sample(ideas, 2)
        # sample() keeps a selection order; shuffle so earlier submissions do not favor the first slot.
        self.rng.shuffle(selected)
        return f"The theme is: {selected[0]} {selected[1]}"

    async def handle_generate(self, member: discord.Member) -> str:
        if not self.roles.is_organizer(member):
            self.logger.log("theme.denied", user_id=member.id, command="generatetheme")
            return (
                f"Since you lack the required role **{self.settings.organizer_role}**, "
                "you do not have permission to generate themes."
            )
        theme = self.pick_theme(await self.store.theme_ideas())
        self.logger.log("theme.generated", user_id=member.id, theme=theme)
        return theme

    async def handle_show_all(self, member: discord.Member) -> str:
        if not self.roles.is_organizer(member):
            self.logger.log("theme.denied", user_id=member.id, command="showallthemes")
            return (
                f"Since you lack the required role **{self.settings.organizer_role}**, "
                "you do not have permission to see all the theme ideas."
            )
        ideas = await self.store.theme_ideas()
        if not ideas:
            return "No theme ideas have been submitted yet."
        return f"The theme ideas submitted are ```{', '.join(ideas)}```"

#!/usr/bin/env python3
"""Discord gateway for mod verification
--------------------------------------
Members post their Steam/Epic ID in the verification channel, pick their mods
one message at a time, and receive the verified role once their selection is
committed to the GitHub-backed record stores. Losing the supporter role (or
leaving the server while holding it) removes their records again.

Required env-vars: DISCORD_TOKEN, GITHUB_TOKEN, VERIFY_CHANNEL_ID,
VERIFIED_ROLE_ID, SUPPORTER_ROLE_ID, TIER1_ROLE_ID, TIER2_ROLE_ID, TIER3_ROLE_ID
Optional: TIERX_ROLE_ID, ADMIN_LOG_CHANNEL_ID, ID_HELP_CHANNEL_ID,
MOD_LIST_CHANNEL_ID, GITHUB_OWNER, IDENTITY_REPO, USER_INFO_REPO, CATALOG_REPO,
STORE_PATH, STORE_BRANCH, PENDING_DIR, STORE_MAX_ATTEMPTS,
STORE_TIMEOUT_SECONDS, DEBUG
"""

from __future__ import annotations

import asyncio
import logging
from typing import Final

import discord

from bots.config import VerifierConfig
from verifier_bot.catalog import ModCatalog
from verifier_bot.errors import PrivilegeError
from verifier_bot.github_store import GithubLineStore
from verifier_bot.logging_utils import OpsLog
from verifier_bot.pending import PendingStore
from verifier_bot.workflow import VerificationWorkflow

# Discord rejects messages longer than this.
MESSAGE_LIMIT: Final[int] = 2000

log = logging.getLogger("mod-gateway")


def chunk_lines(text: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    """Split text on line boundaries into pieces no longer than ``limit``."""
    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) <= limit:
            current = candidate
            continue
        if current:
            chunks.append(current)
        current = line[:limit]
    if current:
        chunks.append(current)
    return chunks


class DiscordConversation:
    """Adapts a verification-channel message to the workflow's conversation."""

    def __init__(self, message: discord.Message, verified_role_id: int) -> None:
        self._message = message
        self._member: discord.Member = message.author
        self._verified_role_id = verified_role_id

    @property
    def user_id(self) -> int:
        return self._member.id

    @property
    def username(self) -> str:
        return self._member.name

    @property
    def avatar(self) -> str | None:
        return self._member.avatar.key if self._member.avatar else None

    @property
    def content(self) -> str:
        return self._message.content

    def role_ids(self) -> set[int]:
        return {role.id for role in self._member.roles}

    async def reply(self, text: str) -> None:
        try:
            await self._message.reply(text)
        except discord.HTTPException as exc:
            log.warning("Failed to reply to %s: %s", self._member, exc)

    async def post_mod_options(self, listing: str, title: str, description: str) -> None:
        channel = self._message.channel
        try:
            for chunk in chunk_lines(listing):
                await channel.send(chunk)
            await channel.send(
                embed=discord.Embed(title=title, description=description)
            )
        except discord.HTTPException as exc:
            log.warning("Failed to post mod options for %s: %s", self._member, exc)

    async def grant_verified_role(self) -> set[int]:
        role = self._member.guild.get_role(self._verified_role_id)
        if role is None:
            raise PrivilegeError(
                f"Verified role {self._verified_role_id} not found in guild "
                f"{self._member.guild.id}"
            )
        try:
            await self._member.add_roles(role, reason="Completed mod verification")
        except discord.Forbidden as exc:
            raise PrivilegeError(
                "Bot lacks Manage Roles permission or the role hierarchy is incorrect"
            ) from exc
        except discord.HTTPException as exc:
            raise PrivilegeError(f"Discord error adding role: {exc}") from exc
        return self.role_ids() | {role.id}


class VerificationRuntime:
    def __init__(
        self,
        config: VerifierConfig,
        *,
        client: discord.Client | None = None,
        store: GithubLineStore | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True

        self.config = config
        self.bot = client or discord.Client(intents=intents)
        self.ops_log = OpsLog(self.bot, config.admin_log_channel_id)
        self.store = store or GithubLineStore(
            config.github_token,
            max_attempts=config.store_max_attempts,
            timeout=config.store_timeout,
        )
        self.pending = PendingStore(config.pending_dir)
        self.workflow = VerificationWorkflow(
            store=self.store,
            pending=self.pending,
            catalog=ModCatalog(self.store, config.catalog_location),
            identity_location=config.identity_location,
            user_info_location=config.user_info_location,
            tier_roles=config.tier_roles,
            ops_log=self.ops_log,
            id_help_channel_id=config.id_help_channel_id,
            mod_list_channel_id=config.mod_list_channel_id,
        )

        for handler in (
            self.on_ready,
            self.on_message,
            self.on_member_update,
            self.on_member_remove,
        ):
            self.bot.event(handler)

    # ----- Events -----
    async def on_ready(self) -> None:
        log.info("Bot ready as %s (%s)", self.bot.user, self.bot.user.id)

    async def on_message(self, message: discord.Message) -> None:
        if message.channel.id != self.config.verify_channel_id:
            return
        if message.author.bot or not isinstance(message.author, discord.Member):
            return
        try:
            await self.workflow.handle_message(
                DiscordConversation(message, self.config.verified_role_id)
            )
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Unhandled error processing message: %s", exc)
            await self.ops_log.error(f"Error with messageCreate: {exc}")

    async def on_member_update(
        self, before: discord.Member, after: discord.Member
    ) -> None:
        if self._is_supporter(before) and not self._is_supporter(after):
            await self.handle_remove(after)

    async def on_member_remove(self, member: discord.Member) -> None:
        if self._is_supporter(member):
            await self.handle_remove(member)

    async def handle_remove(self, member: discord.Member) -> None:
        async def revoke() -> None:
            role = member.guild.get_role(self.config.verified_role_id)
            if role is None:
                raise PrivilegeError(
                    f"Verified role {self.config.verified_role_id} not found"
                )
            try:
                await member.remove_roles(role, reason="Supporter role removed")
            except discord.HTTPException as exc:
                raise PrivilegeError(f"Discord error removing role: {exc}") from exc

        try:
            await self.workflow.remove_member(member.id, revoke=revoke)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Unhandled error removing %s: %s", member, exc)
            await self.ops_log.error(f"Error with handleRemove: {exc}")

    def _is_supporter(self, member: discord.Member) -> bool:
        return any(role.id == self.config.supporter_role_id for role in member.roles)

    async def start(self) -> None:
        async with self.bot:
            await self.bot.start(self.config.discord_token)


async def main() -> None:
    config = VerifierConfig.load()
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    runtime = VerificationRuntime(config)
    await runtime.start()


if __name__ == "__main__":
    asyncio.run(main())

"""Verification state machine.

A user starts ``UNVERIFIED``. Posting a valid external ID creates a pending
record and moves them to ``SELECTING_MODS`` (tier 3/X users are committed
straight away). Each later message is a mod choice handled by the user's tier
policy; once the selection is complete the record is committed to the identity
and user-info stores and the verified role is granted.

The workflow is platform agnostic. Each inbound message arrives wrapped in a
*conversation* object providing:

* ``user_id``, ``username``, ``avatar`` and ``content`` attributes
* ``role_ids()`` returning the author's current role ids
* ``async reply(text)``
* ``async post_mod_options(listing, title, description)``
* ``async grant_verified_role()`` returning the role ids held afterwards
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Final

from .catalog import ModCatalog, format_mod_options
from .errors import (
    PrivilegeError,
    RemoteStoreError,
    RetrievalError,
    ValidationError,
    VerifierError,
)
from .github_store import GithubLineStore, StoreLocation
from .pending import PendingStore
from .records import (
    FIELD_SEPARATOR,
    RECORD_TERMINATOR,
    ModDescriptor,
    PendingRecord,
    UserInfoRecord,
    VerifiedRecord,
    clean_input,
    is_valid_external_id,
    parse_user_info,
    parse_verified,
)
from .tiers import TierPolicy, TierRoles, resolve_policy

log: Final = logging.getLogger("mod-gateway")

CANCEL_KEYWORD: Final[str] = "cancel"

ALREADY_VERIFIED_REPLY = "This ID has already been verified."
NOTHING_TO_CANCEL_REPLY = (
    "No ongoing verification found for your Discord ID. "
    "Please submit your Steam/Epic ID."
)
CANCELLED_REPLY = "Verification successfully canceled."
CANCEL_FAILED_REPLY = "Error canceling verification. Please try again."
COMPLETE_REPLY = "Verification complete!"
NO_TIER_REPLY = (
    "You don't have a supporter tier role yet. "
    "Subscribe to a tier and try again."
)
CATALOG_UNAVAILABLE_REPLY = (
    "The mod list is unavailable right now. Please try again later."
)
MOD_OPTIONS_TITLE = "Now pick your mods"


class VerificationState(enum.Enum):
    UNVERIFIED = "unverified"
    AWAITING_EXTERNAL_ID = "awaiting_external_id"
    SELECTING_MODS = "selecting_mods"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class VerificationWorkflow:
    def __init__(
        self,
        *,
        store: GithubLineStore,
        pending: PendingStore,
        catalog: ModCatalog,
        identity_location: StoreLocation,
        user_info_location: StoreLocation,
        tier_roles: TierRoles,
        ops_log,
        id_help_channel_id: int | None = None,
        mod_list_channel_id: int | None = None,
    ) -> None:
        self._store = store
        self._pending = pending
        self._catalog = catalog
        self._identity = identity_location
        self._user_info = user_info_location
        self._tier_roles = tier_roles
        self._ops = ops_log
        self._id_help_channel_id = id_help_channel_id
        self._mod_list_channel_id = mod_list_channel_id

    @property
    def invalid_id_reply(self) -> str:
        reply = "Invalid ID input. Please provide a valid Steam/Epic ID."
        if self._id_help_channel_id:
            reply += f" Instructions can be found here: <#{self._id_help_channel_id}>"
        return reply

    def state_of(self, user_id: int) -> VerificationState:
        if self._pending.exists(user_id):
            return VerificationState.SELECTING_MODS
        return VerificationState.UNVERIFIED

    # ----- Entry points -----
    async def handle_message(self, conversation) -> VerificationState:
        """Process one message from the verification channel."""
        user_id = conversation.user_id
        async with self._pending.lock(user_id):
            try:
                return await self._dispatch(conversation)
            except ValidationError as exc:
                await conversation.reply(str(exc))
            except VerifierError as exc:
                await self._ops.error(
                    f"Error handling message from <@{user_id}>: {exc}"
                )
            return self.state_of(user_id)

    async def remove_member(
        self,
        user_id: int,
        revoke: Callable[[], Awaitable[object]] | None = None,
    ) -> bool:
        """Revoke access and delete the member's committed records.

        Safe to call repeatedly; returns whether any committed record was found.
        """
        async with self._pending.lock(user_id):
            await self._ops.send(
                f"Attempting to remove user with Discord ID: {user_id} from GitHub."
            )
            if revoke is not None:
                try:
                    await revoke()
                except PrivilegeError as exc:
                    await self._ops.error(f"Error revoking role for {user_id}: {exc}")
            self._pending.discard(user_id)

            try:
                return await self._remove_records(user_id)
            except RemoteStoreError as exc:
                await self._ops.error(f"Error removing {user_id} from GitHub: {exc}")
                return False

    # ----- Transitions -----
    async def _dispatch(self, conversation) -> VerificationState:
        cleaned = clean_input(conversation.content)
        if cleaned == CANCEL_KEYWORD:
            return await self.cancel(conversation)
        if self._pending.exists(conversation.user_id):
            return await self.select_mod(conversation, cleaned)
        return await self.start_verification(conversation, cleaned)

    async def cancel(self, conversation) -> VerificationState:
        user_id = conversation.user_id
        try:
            discarded = self._pending.discard(user_id)
        except OSError as exc:
            log.exception("Failed to delete pending record for %s", user_id)
            await self._ops.error(f"Error deleting file for <@{user_id}>: {exc}")
            await conversation.reply(CANCEL_FAILED_REPLY)
            return self.state_of(user_id)
        if not discarded:
            await conversation.reply(NOTHING_TO_CANCEL_REPLY)
            return VerificationState.UNVERIFIED
        await conversation.reply(CANCELLED_REPLY)
        await self._ops.send(f"Deleted verification file for <@{user_id}>")
        return VerificationState.CANCELLED

    async def start_verification(
        self, conversation, external_id: str
    ) -> VerificationState:
        user_id = conversation.user_id
        if not is_valid_external_id(external_id):
            raise ValidationError(self.invalid_id_reply)

        policy = self._policy_for(conversation)

        identity_raw, info_raw = await asyncio.gather(
            self._read_or_empty(self._identity),
            self._read_or_empty(self._user_info),
        )
        if self._already_verified(external_id, user_id, identity_raw, info_raw):
            raise ValidationError(ALREADY_VERIFIED_REPLY)

        mods = await self._load_catalog()
        if not mods:
            await self._ops.error(
                f"Mod catalog {self._catalog.location} is empty; "
                f"cannot verify Tier {policy.name} <@{user_id}>"
            )
            await conversation.reply(CATALOG_UNAVAILABLE_REPLY)
            return VerificationState.UNVERIFIED

        record = self._pending.create(user_id, external_id)
        await self._ops.send(
            f"Creating file for <@{user_id}> with content: "
            f"{PendingRecord.initial_text(external_id)}"
        )

        if policy.auto_commit:
            return await self.commit(
                conversation, record, policy.initial_selection(mods)
            )

        await self._show_mod_options(conversation, policy, mods)
        return VerificationState.SELECTING_MODS

    async def select_mod(self, conversation, mod_id: str) -> VerificationState:
        user_id = conversation.user_id
        policy = self._policy_for(conversation)
        record = self._pending.read(user_id)
        mods = await self._load_catalog()

        outcome = policy.choose(record, mods, mod_id)
        if not outcome.accepted:
            raise ValidationError(outcome.reply or CATALOG_UNAVAILABLE_REPLY)

        if outcome.append_token:
            record = self._pending.append_selection(user_id, outcome.append_token)
        if outcome.reply:
            await conversation.reply(outcome.reply)

        selection = outcome.commit_selection or policy.completed_selection(record)
        if selection is None:
            return VerificationState.SELECTING_MODS
        return await self.commit(conversation, record, selection)

    async def commit(
        self, conversation, record: PendingRecord, selection: str
    ) -> VerificationState:
        """Write the finished record to both stores and grant the verified role."""
        user_id = conversation.user_id
        verified_line = VerifiedRecord(record.external_id, selection).to_line()
        self._pending.discard(user_id)

        await asyncio.to_thread(self._store.append, self._identity, verified_line)
        await self._ops.send(
            f"Successfully appended content to {self._identity}: '{verified_line}'"
        )

        try:
            role_ids = await conversation.grant_verified_role()
            info_line = UserInfoRecord(
                username=conversation.username,
                user_id=str(user_id),
                avatar=conversation.avatar,
                role_ids=tuple(str(r) for r in sorted(role_ids)),
                external_id=record.external_id,
            ).to_line()
            await asyncio.to_thread(self._store.append, self._user_info, info_line)
        except (PrivilegeError, RemoteStoreError) as exc:
            await self._ops.error(
                f"Partial commit for <@{user_id}>: {self._identity} holds "
                f"'{verified_line}' but {self._user_info} was not updated: {exc}"
            )
            raise
        await self._ops.send(
            f"Successfully appended content to {self._user_info}: '{info_line}'"
        )

        await conversation.reply(COMPLETE_REPLY)
        return VerificationState.COMMITTED

    # ----- Helpers -----
    def _policy_for(self, conversation) -> TierPolicy:
        policy = resolve_policy(conversation.role_ids(), self._tier_roles)
        if policy is None:
            log.info("User %s has no tier roles", conversation.user_id)
            raise ValidationError(NO_TIER_REPLY)
        return policy

    async def _show_mod_options(
        self, conversation, policy: TierPolicy, mods: list[ModDescriptor]
    ) -> None:
        listing = format_mod_options(
            mods,
            include_premium=policy.include_premium,
            mod_list_channel_id=self._mod_list_channel_id,
        )
        await conversation.post_mod_options(
            listing, MOD_OPTIONS_TITLE, policy.instructions or ""
        )

    async def _read_or_empty(self, location: StoreLocation) -> str:
        try:
            return await asyncio.to_thread(self._store.read, location)
        except RetrievalError as exc:
            await self._ops.error(f"Error reading {location}: {exc}")
            return ""

    async def _load_catalog(self) -> list[ModDescriptor]:
        try:
            return await asyncio.to_thread(self._catalog.list)
        except RetrievalError as exc:
            await self._ops.error(
                f"Error reading mod catalog {self._catalog.location}: {exc}"
            )
            return []

    @staticmethod
    def _already_verified(
        external_id: str, user_id: int, identity_raw: str, info_raw: str
    ) -> bool:
        if any(r.external_id == external_id for r in parse_verified(identity_raw)):
            return True
        return any(
            r.user_id == str(user_id) or r.external_id == external_id
            for r in parse_user_info(info_raw)
        )

    async def _remove_records(self, user_id: int) -> bool:
        discord_id = str(user_id)
        info_raw = await self._read_or_empty(self._user_info)
        matches = [r for r in parse_user_info(info_raw) if r.user_id == discord_id]
        if not matches:
            await self._ops.send(
                f"No committed record for {discord_id}; nothing to remove"
            )
            return False

        await asyncio.to_thread(
            self._store.remove_matching,
            self._user_info,
            f"{FIELD_SEPARATOR}{discord_id}{FIELD_SEPARATOR}",
            delimiter=RECORD_TERMINATOR,
        )
        for record in matches:
            if not record.external_id:
                await self._ops.send(
                    f"User-info record for {discord_id} has no external ID; "
                    f"{self._identity} left untouched"
                )
                continue
            await asyncio.to_thread(
                self._store.remove_matching,
                self._identity,
                f"{record.external_id}{FIELD_SEPARATOR}",
            )
        await self._ops.send(f"Successfully removed {discord_id} from GitHub")
        return True

"""Tier-specific mod selection rules.

Policies are pure: they look at the pending record and the catalog and
describe what should happen. The workflow applies the outcome.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from .records import (
    ModDescriptor,
    PendingRecord,
    all_mods_selection,
    find_mod,
)

INVALID_MOD_REPLY = (
    "Invalid input or you added more than 1 mod. "
    "Use the bold text to request. Please try again."
)
DUPLICATE_MOD_REPLY = "You already have this mod!"
SECOND_PREMIUM_REPLY = (
    "You already have a Premium mod selected. Please choose a Basic mod."
)

TIER2_SELECTION_COUNT = 3


@dataclass(frozen=True, slots=True)
class TierRoles:
    tier1: int
    tier2: int
    tier3: int
    tierx: int | None = None


@dataclass(frozen=True, slots=True)
class SelectionOutcome:
    """Result of interpreting one message as a mod choice.

    ``append_token`` is written to the pending record; ``commit_selection``
    means the record is complete and should be committed with that value.
    """

    accepted: bool
    reply: str | None = None
    append_token: str | None = None
    commit_selection: str | None = None


class TierPolicy(ABC):
    name: str = ""
    include_premium: bool = False
    auto_commit: bool = False
    instructions: str | None = None

    def initial_selection(self, mods: Sequence[ModDescriptor]) -> str | None:
        """Selection to commit as soon as the ID is accepted, if any."""
        return None

    @abstractmethod
    def choose(
        self, record: PendingRecord, mods: Sequence[ModDescriptor], mod_id: str
    ) -> SelectionOutcome:
        """Interpret ``mod_id`` as the next pick for ``record``."""

    def completed_selection(self, record: PendingRecord) -> str | None:
        return None


class Tier1Policy(TierPolicy):
    name = "1"
    include_premium = False
    instructions = (
        "Message the mod you want. You are **Tier 1**. You get __1 Basic mod__."
    )

    def choose(self, record, mods, mod_id):
        mod = find_mod(mods, mod_id)
        if mod is None:
            return SelectionOutcome(accepted=False, reply=INVALID_MOD_REPLY)
        if mod.is_premium:
            return SelectionOutcome(
                accepted=False,
                reply=f"**{mod.mod_id}** is a Premium mod! Please choose a Basic mod.",
            )
        return SelectionOutcome(accepted=True, commit_selection=mod.mod_id)


class Tier2Policy(TierPolicy):
    name = "2"
    include_premium = True
    instructions = (
        "Message the mods you want __one at a time__. You are **Tier 2**. "
        "You get __1 Premium mod__ and __2 Basic mods__. "
        ":star: = Basic, :star2: = Premium"
    )

    def choose(self, record, mods, mod_id):
        mod = find_mod(mods, mod_id)
        if mod is None:
            return SelectionOutcome(accepted=False, reply=INVALID_MOD_REPLY)
        if record.has_selected(mod.mod_id):
            return SelectionOutcome(accepted=False, reply=DUPLICATE_MOD_REPLY)
        if mod.is_premium and record.premium_used:
            return SelectionOutcome(accepted=False, reply=SECOND_PREMIUM_REPLY)
        kind = "Premium" if mod.is_premium else "Basic"
        return SelectionOutcome(
            accepted=True,
            reply=f"{kind} mod added: **{mod.mod_id}**.",
            append_token=PendingRecord.selection_token(mod),
        )

    def completed_selection(self, record):
        if len(record.tokens) >= TIER2_SELECTION_COUNT:
            return record.committed_selection()
        return None


class Tier3Policy(TierPolicy):
    """Tier 3 and Tier X receive the whole catalog without choosing."""

    name = "3"
    include_premium = True
    auto_commit = True

    def initial_selection(self, mods):
        if not mods:
            return None
        return all_mods_selection(m.mod_id for m in mods)

    def choose(self, record, mods, mod_id):
        selection = self.initial_selection(mods)
        if selection is None:
            return SelectionOutcome(accepted=False)
        return SelectionOutcome(accepted=True, commit_selection=selection)


TIER1 = Tier1Policy()
TIER2 = Tier2Policy()
TIER3 = Tier3Policy()


def resolve_policy(role_ids: Collection[int], roles: TierRoles) -> TierPolicy | None:
    """Pick the policy from current role membership, lowest tier first."""
    if roles.tier1 in role_ids:
        return TIER1
    if roles.tier2 in role_ids:
        return TIER2
    if roles.tier3 in role_ids or (
        roles.tierx is not None and roles.tierx in role_ids
    ):
        return TIER3
    return None

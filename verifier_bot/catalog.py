"""Access to the remote mod catalog."""

from __future__ import annotations

from collections.abc import Sequence

from .github_store import GithubLineStore, StoreLocation
from .records import ModDescriptor, parse_catalog

BASIC_BULLET = ":star:"
PREMIUM_BULLET = ":star2:"


class ModCatalog:
    """Reads the catalog fresh on every call; there is no caching."""

    def __init__(self, store: GithubLineStore, location: StoreLocation) -> None:
        self._store = store
        self._location = location

    @property
    def location(self) -> StoreLocation:
        return self._location

    def list(self) -> list[ModDescriptor]:
        return parse_catalog(self._store.read(self._location))


def format_mod_options(
    mods: Sequence[ModDescriptor],
    *,
    include_premium: bool,
    mod_list_channel_id: int | None = None,
) -> str:
    """Build the bullet list of mods a user may pick."""
    lines: list[str] = []
    if mod_list_channel_id:
        lines.append(f"__See full mod list here -> <#{mod_list_channel_id}>__")
    for mod in mods:
        if not mod.is_premium:
            lines.append(f"{BASIC_BULLET} **{mod.mod_id}**")
        elif include_premium:
            lines.append(f"{PREMIUM_BULLET} **{mod.mod_id}**")
    return "\n".join(lines)

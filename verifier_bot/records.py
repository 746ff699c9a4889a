"""Typed records stored in the remote line stores and the pending files.

Every store is a sequence of records terminated by ``,`` whose fields are
separated by ``|``. The dataclasses below own the text format; the rest of the
package only deals with the typed values.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import ClassVar, Literal

ModType = Literal["basic", "premium"]

FIELD_SEPARATOR = "|"
RECORD_TERMINATOR = ","
SELECTION_SEPARATOR = "_"
PREMIUM_MARKER = "PREMIUM"
ALL_MODS_PREFIX = "all"

VALID_EXTERNAL_ID_LENGTHS = frozenset({17, 32})

_ID_LABEL_RE = re.compile(r"steam id:|id:")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def clean_input(value: str) -> str:
    """Return the canonical lowercase alphanumeric form of user or catalog text."""
    value = value.lower().strip()
    value = _ID_LABEL_RE.sub("", value)
    return _NON_ALNUM_RE.sub("", value)


def is_valid_external_id(value: str) -> bool:
    return len(value) in VALID_EXTERNAL_ID_LENGTHS


def split_records(content: str) -> list[str]:
    """Split store content on the record terminator, dropping blank records."""
    return [part.strip() for part in content.split(RECORD_TERMINATOR) if part.strip()]


def all_mods_selection(mod_ids: Iterable[str]) -> str:
    """Selection granting every catalog mod, e.g. ``all_a_b_c``."""
    return SELECTION_SEPARATOR.join([ALL_MODS_PREFIX, *mod_ids])


@dataclass(frozen=True, slots=True)
class ModDescriptor:
    mod_id: str
    mod_type: ModType
    display_fields: tuple[str, ...] = ()

    BASIC_FLAG: ClassVar[str] = "0"
    TYPE_FIELD_INDEX: ClassVar[int] = 4

    @property
    def is_premium(self) -> bool:
        return self.mod_type == "premium"

    @classmethod
    def from_record(cls, record: str) -> ModDescriptor | None:
        """Parse ``modID|<unused>|<unused>|<unused>|modType``.

        Returns None for a record without a usable id. Any flag other than
        ``0`` is treated as premium so a malformed row is never handed out as
        a basic mod.
        """
        fields = record.split(FIELD_SEPARATOR)
        mod_id = clean_input(fields[0])
        if not mod_id:
            return None
        flag = ""
        if len(fields) > cls.TYPE_FIELD_INDEX:
            flag = clean_input(fields[cls.TYPE_FIELD_INDEX])
        mod_type: ModType = "basic" if flag == cls.BASIC_FLAG else "premium"
        display = tuple(f.strip() for f in fields[1 : cls.TYPE_FIELD_INDEX])
        return cls(mod_id=mod_id, mod_type=mod_type, display_fields=display)


@dataclass(frozen=True, slots=True)
class VerifiedRecord:
    """Committed ``externalID|modSelection,`` line in the identity store."""

    external_id: str
    mod_selection: str = ""

    def to_line(self) -> str:
        return (
            f"{self.external_id}{FIELD_SEPARATOR}{self.mod_selection}"
            f"{RECORD_TERMINATOR}"
        )

    @classmethod
    def from_line(cls, line: str) -> VerifiedRecord:
        body = line.strip().rstrip(RECORD_TERMINATOR)
        external_id, _, selection = body.partition(FIELD_SEPARATOR)
        return cls(external_id=external_id.strip(), mod_selection=selection.strip())


@dataclass(frozen=True, slots=True)
class UserInfoRecord:
    """Committed ``username|userID|avatarHash|role1.role2|externalID,`` line.

    Lines written before the external ID column existed have four fields and
    parse with an empty ``external_id``.
    """

    username: str
    user_id: str
    avatar: str | None
    role_ids: tuple[str, ...] = ()
    external_id: str = ""

    ROLE_SEPARATOR: ClassVar[str] = "."
    MISSING_AVATAR: ClassVar[str] = "null"

    def to_line(self) -> str:
        fields = [
            self.username,
            self.user_id,
            self.avatar or self.MISSING_AVATAR,
            self.ROLE_SEPARATOR.join(self.role_ids),
            self.external_id,
        ]
        return FIELD_SEPARATOR.join(fields) + RECORD_TERMINATOR

    @classmethod
    def from_line(cls, line: str) -> UserInfoRecord:
        body = line.strip().rstrip(RECORD_TERMINATOR)
        fields = [f.strip() for f in body.split(FIELD_SEPARATOR)]
        fields += [""] * (5 - len(fields))
        avatar = fields[2] if fields[2] and fields[2] != cls.MISSING_AVATAR else None
        roles = tuple(r for r in fields[3].split(cls.ROLE_SEPARATOR) if r)
        return cls(
            username=fields[0],
            user_id=fields[1],
            avatar=avatar,
            role_ids=roles,
            external_id=fields[4],
        )


@dataclass(slots=True)
class PendingRecord:
    """In-progress submission: ``externalID|`` followed by raw selection tokens."""

    external_id: str
    tokens: list[str] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str) -> PendingRecord:
        external_id, _, selections = text.partition(FIELD_SEPARATOR)
        tokens = [t for t in selections.strip().split(SELECTION_SEPARATOR) if t]
        return cls(external_id=external_id.strip(), tokens=tokens)

    @staticmethod
    def initial_text(external_id: str) -> str:
        return f"{external_id}{FIELD_SEPARATOR}"

    @staticmethod
    def selection_token(mod: ModDescriptor) -> str:
        marker = PREMIUM_MARKER if mod.is_premium else ""
        return f"{mod.mod_id}{marker}{SELECTION_SEPARATOR}"

    @property
    def selected_ids(self) -> list[str]:
        return [t.removesuffix(PREMIUM_MARKER) for t in self.tokens]

    @property
    def premium_used(self) -> bool:
        return any(t.endswith(PREMIUM_MARKER) for t in self.tokens)

    def has_selected(self, mod_id: str) -> bool:
        return mod_id in self.selected_ids

    def committed_selection(self) -> str:
        """Underscore-joined ids with the premium marker removed."""
        return SELECTION_SEPARATOR.join(self.selected_ids)


def parse_verified(content: str) -> list[VerifiedRecord]:
    return [VerifiedRecord.from_line(r) for r in split_records(content)]


def parse_user_info(content: str) -> list[UserInfoRecord]:
    return [UserInfoRecord.from_line(r) for r in split_records(content)]


def parse_catalog(content: str) -> list[ModDescriptor]:
    mods: list[ModDescriptor] = []
    for record in split_records(content):
        mod = ModDescriptor.from_record(record)
        if mod is not None:
            mods.append(mod)
    return mods


def find_mod(mods: Sequence[ModDescriptor], mod_id: str) -> ModDescriptor | None:
    for mod in mods:
        if mod.mod_id == mod_id:
            return mod
    return None

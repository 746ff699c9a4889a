from __future__ import annotations

import base64
import itertools
import logging

import pytest
import requests

from verifier_bot.catalog import ModCatalog
from verifier_bot.github_store import GITHUB_API_URL, GithubLineStore, StoreLocation
from verifier_bot.pending import PendingStore
from verifier_bot.tiers import TierRoles
from verifier_bot.workflow import VerificationWorkflow

TIER1_ROLE = 101
TIER2_ROLE = 102
TIER3_ROLE = 103
TIERX_ROLE = 104
VERIFIED_ROLE = 200

STEAM_ID = "76561198000000001"  # 17 characters
EPIC_ID = "0123456789abcdef0123456789abcdef"  # 32 characters


class FakeResponse:
    def __init__(self, status_code: int, payload: dict | None = None) -> None:
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeGithubSession:
    """In-memory stand-in for the GitHub contents API."""

    def __init__(self) -> None:
        self.files: dict[str, tuple[str, str]] = {}
        self.gets: list[str] = []
        self.puts: list[dict] = []
        self.get_error: Exception | None = None
        self.put_status: int | None = None
        self.before_put = None
        self._shas = itertools.count(1)

    @staticmethod
    def url_for(location: StoreLocation) -> str:
        return GITHUB_API_URL + location.api_path

    def seed(self, location: StoreLocation, content: str) -> None:
        self.files[self.url_for(location)] = (content, f"sha{next(self._shas)}")

    def content_of(self, location: StoreLocation) -> str:
        return self.files[self.url_for(location)][0]

    def revision_of(self, location: StoreLocation) -> str:
        return self.files[self.url_for(location)][1]

    def get(self, url, headers=None, params=None, timeout=None):
        self.gets.append(url)
        if self.get_error is not None:
            raise self.get_error
        if url not in self.files:
            return FakeResponse(404, {"message": "Not Found"})
        content, sha = self.files[url]
        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
        return FakeResponse(
            200, {"content": encoded, "encoding": "base64", "sha": sha}
        )

    def put(self, url, json=None, headers=None, timeout=None):
        if self.before_put is not None:
            self.before_put(url)
        if self.put_status is not None:
            return FakeResponse(self.put_status, {"message": "boom"})
        current = self.files.get(url)
        if current is not None and json["sha"] != current[1]:
            return FakeResponse(409, {"message": "sha does not match"})
        content = base64.b64decode(json["content"]).decode("utf-8")
        self.files[url] = (content, f"sha{next(self._shas)}")
        self.puts.append(json)
        return FakeResponse(200, {"content": {"sha": self.files[url][1]}})


class FakeOpsLog:
    def __init__(self) -> None:
        self.entries: list[tuple[int, str]] = []

    async def send(self, message: str, *, level: int = logging.INFO) -> None:
        self.entries.append((level, message))

    async def error(self, message: str) -> None:
        await self.send(message, level=logging.ERROR)

    @property
    def errors(self) -> list[str]:
        return [msg for level, msg in self.entries if level >= logging.ERROR]


class FakeConversation:
    def __init__(
        self,
        content: str,
        *,
        user_id: int = 4242,
        roles: set[int] | None = None,
        username: str = "tester",
        avatar: str | None = "a1b2c3",
    ) -> None:
        self.content = content
        self.user_id = user_id
        self.roles = set(roles or ())
        self.username = username
        self.avatar = avatar
        self.replies: list[str] = []
        self.mod_options: list[tuple[str, str, str]] = []
        self.grant_error: Exception | None = None

    def role_ids(self) -> set[int]:
        return set(self.roles)

    async def reply(self, text: str) -> None:
        self.replies.append(text)

    async def post_mod_options(self, listing: str, title: str, description: str):
        self.mod_options.append((listing, title, description))

    async def grant_verified_role(self) -> set[int]:
        if self.grant_error is not None:
            raise self.grant_error
        self.roles.add(VERIFIED_ROLE)
        return set(self.roles)

    @property
    def granted(self) -> bool:
        return VERIFIED_ROLE in self.roles


@pytest.fixture
def identity_location() -> StoreLocation:
    return StoreLocation(owner="AlgoRL", repo="IDS")


@pytest.fixture
def user_info_location() -> StoreLocation:
    return StoreLocation(owner="AlgoRL", repo="AlgoModBotInfo")


@pytest.fixture
def catalog_location() -> StoreLocation:
    return StoreLocation(owner="AlgoRL", repo="ModInfo")


@pytest.fixture
def github_session(identity_location, user_info_location, catalog_location):
    session = FakeGithubSession()
    session.seed(identity_location, "")
    session.seed(user_info_location, "")
    session.seed(catalog_location, "")
    return session


@pytest.fixture
def store(github_session) -> GithubLineStore:
    return GithubLineStore("gh-token", session=github_session, max_attempts=3)


@pytest.fixture
def pending_store(tmp_path) -> PendingStore:
    return PendingStore(tmp_path / "pending")


@pytest.fixture
def ops_log() -> FakeOpsLog:
    return FakeOpsLog()


@pytest.fixture
def tier_roles() -> TierRoles:
    return TierRoles(
        tier1=TIER1_ROLE, tier2=TIER2_ROLE, tier3=TIER3_ROLE, tierx=TIERX_ROLE
    )


@pytest.fixture
def workflow(
    store,
    pending_store,
    ops_log,
    tier_roles,
    identity_location,
    user_info_location,
    catalog_location,
) -> VerificationWorkflow:
    return VerificationWorkflow(
        store=store,
        pending=pending_store,
        catalog=ModCatalog(store, catalog_location),
        identity_location=identity_location,
        user_info_location=user_info_location,
        tier_roles=tier_roles,
        ops_log=ops_log,
        id_help_channel_id=555,
        mod_list_channel_id=666,
    )


@pytest.fixture
def conversation():
    """Factory for fake verification-channel messages."""

    def _make(content: str, **kwargs) -> FakeConversation:
        return FakeConversation(content, **kwargs)

    return _make

"""Configuration helpers for the verification runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from verifier_bot.github_store import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT_SECONDS,
    StoreLocation,
)
from verifier_bot.tiers import TierRoles

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

REQUIRED_VARS = (
    "DISCORD_TOKEN",
    "GITHUB_TOKEN",
    "VERIFY_CHANNEL_ID",
    "VERIFIED_ROLE_ID",
    "SUPPORTER_ROLE_ID",
    "TIER1_ROLE_ID",
    "TIER2_ROLE_ID",
    "TIER3_ROLE_ID",
)


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, *, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_str(name: str, *, default: str) -> str:
    return os.getenv(name) or default


@dataclass(frozen=True, slots=True)
class VerifierConfig:
    discord_token: str
    github_token: str
    verify_channel_id: int
    verified_role_id: int
    supporter_role_id: int
    tier_roles: TierRoles
    identity_location: StoreLocation
    user_info_location: StoreLocation
    catalog_location: StoreLocation
    admin_log_channel_id: int | None = None
    id_help_channel_id: int | None = None
    mod_list_channel_id: int | None = None
    pending_dir: str = "pending"
    store_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    store_timeout: float = DEFAULT_TIMEOUT_SECONDS
    debug: bool = False

    @classmethod
    def load(cls) -> VerifierConfig:
        missing = [name for name in REQUIRED_VARS if not os.getenv(name)]
        invalid = [
            name
            for name in REQUIRED_VARS
            if name.endswith("_ID") and name not in missing and env_int(name) is None
        ]
        if missing:
            raise RuntimeError(f"Missing env vars: {', '.join(missing)}")
        if invalid:
            raise RuntimeError(f"Non-numeric env vars: {', '.join(invalid)}")

        owner = env_str("GITHUB_OWNER", default="AlgoRL")
        path = env_str("STORE_PATH", default="index.html")
        branch = env_str("STORE_BRANCH", default="main")

        def location(repo_var: str, default_repo: str) -> StoreLocation:
            return StoreLocation(
                owner=owner,
                repo=env_str(repo_var, default=default_repo),
                path=path,
                branch=branch,
            )

        return cls(
            discord_token=os.environ["DISCORD_TOKEN"],
            github_token=os.environ["GITHUB_TOKEN"],
            verify_channel_id=env_int("VERIFY_CHANNEL_ID"),
            verified_role_id=env_int("VERIFIED_ROLE_ID"),
            supporter_role_id=env_int("SUPPORTER_ROLE_ID"),
            tier_roles=TierRoles(
                tier1=env_int("TIER1_ROLE_ID"),
                tier2=env_int("TIER2_ROLE_ID"),
                tier3=env_int("TIER3_ROLE_ID"),
                tierx=env_int("TIERX_ROLE_ID"),
            ),
            identity_location=location("IDENTITY_REPO", "IDS"),
            user_info_location=location("USER_INFO_REPO", "AlgoModBotInfo"),
            catalog_location=location("CATALOG_REPO", "ModInfo"),
            admin_log_channel_id=env_int("ADMIN_LOG_CHANNEL_ID"),
            id_help_channel_id=env_int("ID_HELP_CHANNEL_ID"),
            mod_list_channel_id=env_int("MOD_LIST_CHANNEL_ID"),
            pending_dir=env_str("PENDING_DIR", default="pending"),
            store_max_attempts=max(
                1, env_int("STORE_MAX_ATTEMPTS", default=DEFAULT_MAX_ATTEMPTS)
            ),
            store_timeout=env_float(
                "STORE_TIMEOUT_SECONDS", default=DEFAULT_TIMEOUT_SECONDS
            ),
            debug=env_bool("DEBUG"),
        )

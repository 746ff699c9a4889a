"""Line-oriented record stores kept as files in GitHub repositories.

The GitHub contents API only supports whole-file replacement, so every write
is a read-modify-write guarded by the blob sha returned with the read. A
stale sha makes GitHub reject the write; the mutation is then re-applied to
fresh content a bounded number of times before giving up.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

import requests

from .errors import ConcurrencyConflict, RetrievalError, WriteError

log: Final = logging.getLogger("mod-gateway")

GITHUB_API_URL: Final[str] = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_MAX_ATTEMPTS: Final[int] = 3

# GitHub answers 409 for a sha mismatch on PUT; 412 covers conditional requests.
_STALE_REVISION_STATUSES: Final = frozenset({409, 412})


@dataclass(frozen=True, slots=True)
class StoreLocation:
    owner: str
    repo: str
    path: str = "index.html"
    branch: str = "main"

    @property
    def api_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}/contents/{self.path}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}/{self.path}@{self.branch}"


@dataclass(frozen=True, slots=True)
class StoreSnapshot:
    content: str
    revision: str

    def with_revision(self) -> str:
        """Raw form used on the wire: content followed by a revision line."""
        return f"{self.content}\n{self.revision}"


def append_text(current: str, text: str) -> str:
    if current and not current.endswith("\n"):
        current += "\n"
    return current + text


def drop_matching(content: str, needle: str, delimiter: str = "\n") -> str:
    """Remove every ``delimiter``-separated record containing ``needle``."""
    if not needle:
        raise ValueError("Refusing to remove records matching an empty string")
    records = content.split(delimiter)
    return delimiter.join(r for r in records if needle not in r)


class _StaleRevision(Exception):
    pass


class GithubLineStore:
    """Read, append to, and prune records in GitHub-hosted text files."""

    def __init__(
        self,
        token: str,
        *,
        session: requests.Session | None = None,
        api_url: str = GITHUB_API_URL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._token = token
        self._session = session or requests.Session()
        self._api_url = api_url.rstrip("/")
        self._max_attempts = max_attempts
        self._timeout = timeout

    def _url(self, location: StoreLocation) -> str:
        return self._api_url + location.api_path

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
        }

    # ----- Reads -----
    def fetch(self, location: StoreLocation) -> StoreSnapshot:
        try:
            resp = self._session.get(
                self._url(location),
                headers=self._headers(),
                params={"ref": location.branch},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
            encoding = payload.get("encoding")
            if encoding != "base64":
                # Files over 1 MB come back with an empty body and encoding "none".
                log.error("Unusable %r content for %s", encoding, location)
                raise RetrievalError(f"{location} returned {encoding!r} content")
            content = base64.b64decode(payload["content"]).decode("utf-8")
            revision = str(payload["sha"])
        except requests.RequestException as exc:
            log.error("Failed to read %s: %s", location, exc)
            raise RetrievalError(f"Could not read {location}: {exc}") from exc
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            log.error("Malformed contents response for %s: %s", location, exc)
            raise RetrievalError(f"Malformed response for {location}") from exc
        return StoreSnapshot(content=content, revision=revision)

    def read(self, location: StoreLocation, *, with_revision: bool = False) -> str:
        snapshot = self.fetch(location)
        return snapshot.with_revision() if with_revision else snapshot.content

    # ----- Writes -----
    def _put(
        self, location: StoreLocation, content: str, revision: str, message: str
    ) -> None:
        body = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "sha": revision,
            "branch": location.branch,
        }
        try:
            resp = self._session.put(
                self._url(location),
                json=body,
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            log.error("Failed to write %s: %s", location, exc)
            raise WriteError(f"Could not write {location}: {exc}") from exc

        if resp.status_code in _STALE_REVISION_STATUSES:
            raise _StaleRevision()
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            log.error("GitHub rejected write to %s: %s", location, exc)
            raise WriteError(f"Could not write {location}: {exc}") from exc

    def compare_and_swap(
        self,
        location: StoreLocation,
        mutate: Callable[[str], str],
        message: str,
    ) -> bool:
        """Apply ``mutate`` to the current content and write it back.

        Returns False when the mutation leaves the content unchanged (no write
        is issued). Raises ConcurrencyConflict once every attempt hit a stale
        revision.
        """
        for attempt in range(1, self._max_attempts + 1):
            snapshot = self.fetch(location)
            updated = mutate(snapshot.content)
            if updated == snapshot.content:
                return False
            try:
                self._put(location, updated, snapshot.revision, message)
            except _StaleRevision:
                log.warning(
                    "Stale revision %s for %s (attempt %d/%d)",
                    snapshot.revision,
                    location,
                    attempt,
                    self._max_attempts,
                )
                continue
            return True
        raise ConcurrencyConflict(str(location), self._max_attempts)

    def append(self, location: StoreLocation, text: str) -> None:
        self.compare_and_swap(
            location,
            lambda current: append_text(current, text),
            "Appended new content via API",
        )
        log.info("Appended to %s: %r", location, text)

    def remove_matching(
        self, location: StoreLocation, needle: str, *, delimiter: str = "\n"
    ) -> bool:
        """Drop records containing ``needle``. Returns whether anything changed."""
        changed = self.compare_and_swap(
            location,
            lambda current: drop_matching(current, needle, delimiter),
            f"Removed line containing '{needle}'",
        )
        if changed:
            log.info("Removed records containing %r from %s", needle, location)
        else:
            log.info("No records containing %r in %s", needle, location)
        return changed

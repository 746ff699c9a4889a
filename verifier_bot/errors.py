"""Exception hierarchy for the verification workflow."""

from __future__ import annotations


class VerifierError(Exception):
    """Base class for every error raised by the verifier package."""


class ValidationError(VerifierError):
    """User input was rejected; the message is safe to show to the user."""


class StateMismatchError(VerifierError):
    """The requested action does not apply to the user's current state."""


class DuplicateSubmissionError(StateMismatchError):
    """A pending record already exists for the user."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"Pending verification already exists for {user_id}")
        self.user_id = user_id


class PrivilegeError(VerifierError):
    """Granting or revoking a role on the chat platform failed."""


class RemoteStoreError(VerifierError):
    """Network or authentication failure talking to the remote store."""


class RetrievalError(RemoteStoreError):
    """Reading a file from the remote store failed."""


class WriteError(RemoteStoreError):
    """Writing a file to the remote store failed."""


class ConcurrencyConflict(RemoteStoreError):
    """The revision token stayed stale for every write attempt."""

    def __init__(self, path: str, attempts: int) -> None:
        super().__init__(
            f"{path} changed underneath us on each of {attempts} write attempts"
        )
        self.path = path
        self.attempts = attempts

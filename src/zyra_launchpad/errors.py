"""Error taxonomy shared by every launchpad component."""

from __future__ import annotations

GENERIC_MESSAGE = "Something went wrong. Please try again."


class LaunchpadError(Exception):
    """Base exception for all launchpad errors.

    Every subclass carries a stable ``kind`` so callers (HTTP controllers,
    the CLI) can tell failures apart without parsing messages.
    """

    kind = "launchpad_error"

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class NotFoundError(LaunchpadError):
    """Launch, round, participation or holder row does not exist."""

    kind = "not_found"


class InvalidStateError(LaunchpadError):
    """Operation attempted outside the status it requires."""

    kind = "invalid_state"


class InvalidInputError(LaunchpadError):
    """Non-positive, malformed or over-precise input."""

    kind = "invalid_input"


class CapExceededError(LaunchpadError):
    """Commitment would exceed the user's PiPower."""

    kind = "cap_exceeded"

    def __init__(self, message: str, pi_power: str, committed_pi: str, requested: str) -> None:
        super().__init__(
            message,
            {"pi_power": pi_power, "committed_pi": committed_pi, "requested": requested},
        )
        self.pi_power = pi_power


class AlreadyClaimedError(LaunchpadError):
    """Holder payout confirmation was already recorded."""

    kind = "already_claimed"


class AlreadyDoneError(LaunchpadError):
    """A one-shot operation (snapshot, allocation) already ran."""

    kind = "already_done"


class ProviderUnavailableError(LaunchpadError):
    """Staking provider or ledger did not answer in time, or failed."""

    kind = "provider_unavailable"

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"[{provider}] {message}", {"provider": provider})
        self.provider = provider


def error_body(exc: BaseException) -> dict:
    """Build the structured error body handed to API clients.

    Only taxonomy errors expose their message; anything else is reported
    generically so internals never reach the client.
    """
    if isinstance(exc, LaunchpadError):
        return {"success": False, "kind": exc.kind, "message": exc.message}
    return {"success": False, "kind": "internal_error", "message": GENERIC_MESSAGE}

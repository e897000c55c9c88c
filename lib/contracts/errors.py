"""Error taxonomy shared by the relay components."""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for failures raised by the relay pipeline."""


class StoreUnavailable(RelayError):
    """The durable record store could not be reached or rejected a query."""


class CompletionFailed(RelayError):
    """The completion backend returned an error or an unusable payload."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DeliveryFailed(RelayError):
    """The messaging platform refused or never received a delivery."""

    def __init__(self, status: Optional[int], detail: str = "") -> None:
        msg = f"delivery failed with status {status}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.status = status


class MalformedInput(RelayError):
    """The inbound update carries nothing this relay can act on.

    Raised by the update parser and treated as a handled no-op by the HTTP
    layer rather than as a failure.
    """


__all__ = [
    "RelayError",
    "StoreUnavailable",
    "CompletionFailed",
    "DeliveryFailed",
    "MalformedInput",
]

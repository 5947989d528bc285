"""
Exception hierarchy for Paystream.

Everything raised on purpose derives from :class:`PaystreamError` so the
view layer can catch one type and show ``str(exc)``.
"""

from __future__ import annotations


class PaystreamError(Exception):
    """Base class for all Paystream errors."""


class GatewayUnavailable(PaystreamError):
    """The ledger gateway could not be reached. Fatal to the session."""


class RPCError(PaystreamError):
    """The gateway answered with an error response."""

    def __init__(self, error: str, message: str = ""):
        super().__init__(f"{error}: {message}" if message else error)
        self.error = error
        self.message = message


class ChannelStateError(PaystreamError):
    """An operation was attempted from the wrong channel state."""


class ChannelCreationFailed(PaystreamError):
    """The channel-create transaction was rejected or created no channel."""


class AuthorizationFailed(PaystreamError):
    """No signature was produced for a claim."""


class ReserveExceeded(AuthorizationFailed):
    """A claim amount above the funded reserve was requested."""

    def __init__(self, amount: int, reserve: int):
        super().__init__(f"Claim of {amount} drops exceeds channel reserve of {reserve} drops")
        self.amount = amount
        self.reserve = reserve


class VerificationFailed(PaystreamError):
    """A claim signature did not verify."""


class SubmissionRejected(PaystreamError):
    """The ledger declined a transaction."""

    def __init__(self, result_code: str, what: str = "transaction"):
        super().__init__(f"{what} rejected: {result_code}")
        self.result_code = result_code

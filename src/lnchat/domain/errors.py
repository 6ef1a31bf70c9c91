"""Domain-specific exceptions."""

from __future__ import annotations


class CallbackValidationError(ValueError):
    """Raised when callback query parameters break a protocol constraint.

    The message is the reason reported verbatim to the caller.
    """


class InvalidAmount(CallbackValidationError):
    """Raised when the amount is missing or not a non-negative integer."""


class AmountOutOfRange(CallbackValidationError):
    """Raised when the amount lies outside the offer's sendable bounds."""


class MissingComment(CallbackValidationError):
    """Raised when no comment (or an empty one) was supplied."""


class CommentTooLong(CallbackValidationError):
    """Raised when the comment exceeds the allowed length."""


class InvalidPayerData(CallbackValidationError):
    """Raised when payer data is malformed or misses a mandatory field."""


class UpstreamUnavailable(Exception):
    """Raised when the Lightning node cannot be reached or rejects a request."""


class PersistenceError(Exception):
    """Raised when a comment cannot be durably written or read."""


class BroadcastDeliveryError(Exception):
    """Raised when an event cannot be delivered to a single subscriber."""

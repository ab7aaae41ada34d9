"""Exception hierarchy for satwatch.

Errors raised by command handlers carry a user-facing message; the provider
layer renders ``str(exc)`` back to the chat. ``ConfigError`` lives in
``satwatch.config.models`` alongside the rest of the config layer.
"""


class SatwatchError(Exception):
    """Base class for all satwatch errors."""


class PersistenceError(SatwatchError):
    """Snapshot could not be read from or written to durable storage."""


class CorruptStateError(PersistenceError):
    """Stored snapshot exists but cannot be deserialized."""


class UpstreamFetchError(SatwatchError):
    """The prediction source failed to answer a request."""


class DeliveryError(SatwatchError):
    """The notification sink failed to deliver a batch."""


class ValidationError(SatwatchError):
    """Malformed user input to a mutation command."""


class NotFoundError(SatwatchError):
    """The referenced location or subscription does not exist."""


class AuthorizationError(SatwatchError):
    """The actor is not allowed to perform this mutation."""


class ConflictError(SatwatchError):
    """The record being created already exists."""

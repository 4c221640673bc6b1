"""
pubsub-session error types.

Every error carries a machine-readable ``code`` and optional ``details``.
"""

from typing import Any, Optional


class MessagingError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ConfigurationError(MessagingError):
    """A required initialisation parameter is missing or the session can't be (re)used."""

    def __init__(self, message: str, code: str = "configuration_error"):
        super().__init__(code, message)


class AuthenticationError(MessagingError):
    def __init__(self, message: str, code: str = "auth_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class SubscriptionError(MessagingError):
    def __init__(self, message: str, code: str = "subscription_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class PublishError(MessagingError):
    def __init__(self, message: str, code: str = "publish_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class MessageDecodeError(MessagingError):
    def __init__(self, message: str):
        super().__init__("decode_error", message)

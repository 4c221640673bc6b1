"""
pubsub-session — session wrapper for Google Cloud Pub/Sub.

Authenticates a service account, creates or reuses a durable subscription
named after the client identity, and exposes send/receive/close.
"""

from pubsub_session.session import AsyncMessagingSession, MessagingSession
from pubsub_session.models.message import Message
from pubsub_session.codec import encode_message, decode_message
from pubsub_session.errors import (
    MessagingError,
    ConfigurationError,
    AuthenticationError,
    SubscriptionError,
    PublishError,
    MessageDecodeError,
)

__version__ = "0.1.0"
__all__ = [
    "AsyncMessagingSession",
    "MessagingSession",
    "Message",
    "encode_message",
    "decode_message",
    "MessagingError",
    "ConfigurationError",
    "AuthenticationError",
    "SubscriptionError",
    "PublishError",
    "MessageDecodeError",
]

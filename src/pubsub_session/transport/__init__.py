from pubsub_session.transport.base import (
    CreateStatus,
    CreateSubscriptionResult,
    MessagingTransport,
    PulledEnvelope,
    Subscription,
)

__all__ = [
    "CreateStatus",
    "CreateSubscriptionResult",
    "MessagingTransport",
    "PulledEnvelope",
    "Subscription",
]

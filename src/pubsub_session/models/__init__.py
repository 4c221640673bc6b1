from pubsub_session.models.message import Message

__all__ = ["Message"]

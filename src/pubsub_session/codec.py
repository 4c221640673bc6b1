"""
Message wire codec — JSON text in both directions.
"""

from typing import Union

from pydantic import ValidationError

from pubsub_session.errors import MessageDecodeError
from pubsub_session.models.message import Message


def encode_message(message: Message) -> str:
    """Serialize a message to the string published on the topic."""
    return message.model_dump_json()


def decode_message(raw: Union[str, bytes]) -> Message:
    """Parse a pulled payload. Raises MessageDecodeError if it isn't a valid message."""
    try:
        return Message.model_validate_json(raw)
    except ValidationError as e:
        raise MessageDecodeError(f"Malformed message: {e.error_count()} validation error(s)") from e

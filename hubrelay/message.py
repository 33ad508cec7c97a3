# hubrelay/message.py
"""
message.py — The message record flowing between brokers.

Only `topic` is interpreted by the relay. `data` and `headers` are carried
through untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List

from hubrelay.errors import InvalidTransformedMessage, MalformedMessage


@dataclass
class Message:
    topic: str
    data: Any = None
    headers: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping) -> "Message":
        """
        Build a message from a plain dict (wire or transform output).

        Raises MalformedMessage when `headers` is present but not a mapping.
        """
        headers = raw.get("headers")
        if headers is None:
            headers = {}
        elif not isinstance(headers, Mapping):
            raise MalformedMessage("headers object expected", value=raw)
        return cls(
            topic=raw.get("topic"),
            data=raw.get("data"),
            headers=dict(headers),
        )


def coerce_transformed(result: Any) -> List[Message]:
    """
    Turn a transform's (non-None) return value into a list of messages.

    A single record becomes a one-element list. Every element is validated
    before anything is returned, so a batch is either fully usable or rejected
    as a whole.
    """
    if isinstance(result, (Message, Mapping)):
        items = [result]
    elif isinstance(result, (list, tuple)):
        items = list(result)
    else:
        raise InvalidTransformedMessage(
            "object or array of objects expected", value=result
        )

    messages = []
    for item in items:
        if isinstance(item, Message):
            msg = item
        elif isinstance(item, Mapping):
            try:
                msg = Message.from_mapping(item)
            except MalformedMessage as exc:
                raise InvalidTransformedMessage(exc.reason, value=item) from None
        else:
            raise InvalidTransformedMessage(
                "object or array of objects expected", value=item
            )
        if not isinstance(msg.topic, str):
            raise InvalidTransformedMessage("topic string expected", value=item)
        if not isinstance(msg.headers, Mapping):
            raise InvalidTransformedMessage("headers object expected", value=item)
        messages.append(msg)
    return messages

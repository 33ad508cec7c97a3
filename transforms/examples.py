"""
examples.py — Sample transforms for relay bindings.

Reference them from relay.yaml by import path:

    bindings:
      sensors:
        input: left/sensors
        output: right/sensors
        transform: transforms.examples.split_batch

Transforms:
- drop_empty: suppress messages without data
- split_batch: one message per item of a list payload (async)
- prefix_topic: builds a transform that prefixes topics
"""

from dataclasses import replace

from hubrelay.message import Message


def drop_empty(message: Message):
    """Suppress messages that carry no data."""
    if message.data is None:
        return None
    return message


async def split_batch(message: Message):
    """A list payload becomes one message per item, same topic and headers."""
    if not isinstance(message.data, list):
        return message
    return [
        Message(topic=message.topic, data=item, headers=dict(message.headers))
        for item in message.data
    ]


def prefix_topic(prefix: str):
    def transform(message: Message) -> Message:
        return replace(message, topic=prefix + message.topic)
    transform.__name__ = f"prefix_topic_{prefix.strip(':/.')}"
    return transform


relayed = prefix_topic("relayed:")

"""
passthrough.py — Module-level transform.

A binding may name the module itself (`transform: transforms.passthrough`);
its `transform` function is used.
"""

from hubrelay.message import Message


def transform(message: Message) -> Message:
    return message

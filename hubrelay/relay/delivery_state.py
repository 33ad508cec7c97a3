from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from hubrelay.message import Message
from hubrelay.routing import Binding, NodeSpec


@dataclass
class Delivery:
    """One inbound message flowing through a Connection's dispatch pipeline."""
    message: Message
    subscription: str
    binding: Binding
    source: str                          # server the message arrived on

    transformed: Any = None              # raw transform return value
    results: Optional[List[Message]] = None   # validated messages to fan out

    error: Optional[BaseException] = None


class PublishStatus(Enum):
    PUBLISHED = "published"
    UNAVAILABLE = "unavailable"          # target connection has no live client
    FAILED = "failed"                    # client.publish raised


@dataclass
class PublishResult:
    output: NodeSpec
    status: PublishStatus
    error: Optional[BaseException] = field(default=None, repr=False)

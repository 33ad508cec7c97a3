# hubrelay/errors.py
"""
Exception hierarchy for hub-relay.

Configuration errors (ConfigError and subclasses) are fatal: the relay refuses
to start rather than run with a partially valid routing table.

Everything raised while a message is being dispatched is caught at the
dispatch boundary, logged, and confined to that single message.
"""

from typing import Any


class RelayError(Exception):
    """Base class for all relay errors."""


# ============================================================================
# Configuration
# ============================================================================

class ConfigError(RelayError):
    """The relay configuration is missing, malformed or inconsistent."""


class InvalidNodeSpec(ConfigError):
    """A "server/node" reference could not be parsed."""

    def __init__(self, spec: Any):
        self.spec = spec
        super().__init__(f"invalid NodeSpec {spec!r}, expected e.g. 'server/node'")


class TransformLoadError(ConfigError):
    """A transform reference could not be resolved to a callable."""

    def __init__(self, reference: str, reason: Any):
        self.reference = reference
        super().__init__(f"error loading transform '{reference}': {reason}")


class UnsupportedEndpoint(ConfigError):
    """No broker client implementation handles this endpoint address."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"unsupported broker endpoint: {url!r}")


# ============================================================================
# Dispatch
# ============================================================================

class MalformedMessage(RelayError, ValueError):
    """A message record has fields of the wrong type."""

    def __init__(self, reason: str, value: Any = None):
        self.reason = reason
        self.value = value
        super().__init__(f"malformed message: {reason}")


class InvalidTransformedMessage(RelayError):
    """A transform returned something that is not a publishable message."""

    def __init__(self, reason: str, value: Any = None):
        self.value = value
        super().__init__(f"invalid transformed message: {reason}")


# ============================================================================
# Broker clients
# ============================================================================

class BrokerClientError(RelayError):
    """Base class for broker client failures."""


class NotConnectedError(BrokerClientError):
    """The client has no usable transport (not yet open, or already closed)."""

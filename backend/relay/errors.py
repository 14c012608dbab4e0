"""Exceptions raised by the relay core."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class SerializationFailure(RelayError):
    """The payload could not be encoded as JSON."""


class RecipientUnreachable(RelayError):
    def __init__(self, connection_id: int | None, reason: str = "unreachable"):
        super().__init__(f"connection {connection_id}: {reason}")
        self.connection_id = connection_id
        self.reason = reason


class ChannelClosed(RecipientUnreachable):
    def __init__(self, connection_id: int | None):
        super().__init__(connection_id, "channel closed")


class ChannelFull(RecipientUnreachable):
    def __init__(self, connection_id: int | None):
        super().__init__(connection_id, "queue full, message dropped")


class RegistryInvariantViolation(RelayError):
    """Registry state that correct id allocation can never produce."""


class DuplicateConnectionId(RegistryInvariantViolation):
    def __init__(self, connection_id: int):
        super().__init__(f"connection id {connection_id} is already registered")
        self.connection_id = connection_id


class InvalidTransition(RelayError):
    def __init__(self, current, target):
        super().__init__(f"cannot move connection from {current.value} to {target.value}")
        self.current = current
        self.target = target

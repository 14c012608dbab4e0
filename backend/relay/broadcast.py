"""Fan-out of payloads to registered connections."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from .connection import OutboundChannel
from .errors import RecipientUnreachable, SerializationFailure
from .registry import Registry

logger = logging.getLogger(__name__)


class DeliveryPolicy(str, Enum):
    # every recipient is attempted, failures are logged and counted
    BEST_EFFORT = "best_effort"


@dataclass
class DeliveryReport:
    """Outcome of one broadcast or direct send.

    ``queued`` lists the connections whose channel accepted the frame; the
    transport write happens later in each connection's writer.
    """

    attempted: int = 0
    queued: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)
    not_found: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and not self.not_found


def serialize(payload: Any) -> str:
    try:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationFailure(f"payload is not JSON serializable: {exc}") from exc


class BroadcastEngine:
    def __init__(self, registry: Registry, policy: DeliveryPolicy = DeliveryPolicy.BEST_EFFORT):
        self.registry = registry
        self.policy = policy
        self._broadcasts = 0
        self._queued = 0
        self._failures = 0

    async def broadcast(self, payload: Any) -> DeliveryReport:
        """Serialize *payload* once and enqueue it for every live connection."""

        return await self.broadcast_text(serialize(payload))

    async def broadcast_text(self, text: str) -> DeliveryReport:
        """Enqueue *text* as-is for every live connection."""

        targets = await self.registry.snapshot_for_broadcast()
        self._broadcasts += 1
        report = self._deliver(text, targets)
        logger.info(
            "Broadcast to %d connections: %d queued, %d failed",
            report.attempted,
            len(report.queued),
            len(report.failed),
        )
        return report

    async def send_to(self, connection_id: int, payload: Any) -> DeliveryReport:
        text = serialize(payload)
        connection = await self.registry.get(connection_id)
        if connection is None:
            logger.warning("Connection %s not found", connection_id)
            return DeliveryReport(not_found=True)
        return self._deliver(text, [(connection_id, connection.channel)])

    def _deliver(self, text: str, targets: Iterable[tuple[int, OutboundChannel]]) -> DeliveryReport:
        report = DeliveryReport()
        for connection_id, channel in targets:
            report.attempted += 1
            try:
                channel.send(text)
            except RecipientUnreachable as exc:
                logger.warning("Failed to send message to connection %s: %s", connection_id, exc.reason)
                report.failed[connection_id] = exc.reason
                self._failures += 1
                continue
            logger.debug("Queued message for connection %s", connection_id)
            report.queued.append(connection_id)
            self._queued += 1
        return report

    def stats(self) -> dict[str, Any]:
        return {
            "policy": self.policy.value,
            "connections": len(self.registry),
            "broadcasts": self._broadcasts,
            "queued": self._queued,
            "failures": self._failures,
        }

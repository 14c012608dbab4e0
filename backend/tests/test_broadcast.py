import asyncio
import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from relay.broadcast import BroadcastEngine, DeliveryPolicy, serialize
from relay.connection import Connection
from relay.errors import SerializationFailure
from relay.registry import Registry


async def _engine_with(n: int, queue_maxsize: int = 0):
    engine = BroadcastEngine(Registry())
    connections = []
    for _ in range(n):
        connection = Connection(queue_maxsize)
        await engine.registry.register(await engine.registry.allocate_id(), connection)
        connections.append(connection)
    return engine, connections


def _drain(connection: Connection) -> list[str]:
    frames = []
    while connection.channel.qsize():
        frames.append(connection.channel._queue.get_nowait())
    return frames


def test_default_policy_is_best_effort():
    engine = BroadcastEngine(Registry())
    assert engine.policy is DeliveryPolicy.BEST_EFFORT
    assert engine.stats()["policy"] == "best_effort"


def test_serialize_is_compact():
    assert serialize({"x": 1, "y": [1, 2]}) == '{"x":1,"y":[1,2]}'


def test_serialize_rejects_unencodable_payloads():
    with pytest.raises(SerializationFailure):
        serialize({"when": object()})
    with pytest.raises(SerializationFailure):
        serialize({"value": float("nan")})


def test_broadcast_skips_closed_recipient():
    async def scenario():
        engine, (a, b, c) = await _engine_with(3)
        b.channel.close()
        report = await engine.broadcast({"x": 1})
        return engine, report, a, c

    engine, report, a, c = asyncio.run(scenario())

    assert report.attempted == 3
    assert report.queued == [a.id, c.id]
    assert list(report.failed) == [2]
    assert not report.ok
    assert _drain(a) == ['{"x":1}']
    assert _drain(c) == ['{"x":1}']
    assert engine.stats()["failures"] == 1
    assert engine.stats()["queued"] == 2


def test_broadcast_serializes_once(monkeypatch):
    calls = []
    real_dumps = json.dumps

    def counting_dumps(*args, **kwargs):
        calls.append(args)
        return real_dumps(*args, **kwargs)

    monkeypatch.setattr(json, "dumps", counting_dumps)

    async def scenario():
        engine, _ = await _engine_with(5)
        return await engine.broadcast({"x": 1})

    report = asyncio.run(scenario())

    assert len(report.queued) == 5
    assert len(calls) == 1


def test_broadcast_failure_to_serialize_reaches_nobody():
    async def scenario():
        engine, (a,) = await _engine_with(1)
        with pytest.raises(SerializationFailure):
            await engine.broadcast({"bad": {1, 2}})
        return a

    a = asyncio.run(scenario())

    assert _drain(a) == []


def test_broadcast_text_is_not_rewrapped():
    async def scenario():
        engine, (a,) = await _engine_with(1)
        await engine.broadcast_text("hello")
        return a

    assert _drain(asyncio.run(scenario())) == ["hello"]


def test_broadcast_with_no_connections():
    report = asyncio.run(BroadcastEngine(Registry()).broadcast({"x": 1}))

    assert report.attempted == 0
    assert report.ok


def test_full_queue_does_not_stall_other_recipients():
    async def scenario():
        engine, (slow, fast) = await _engine_with(2, queue_maxsize=1)
        await engine.broadcast("first")
        fast.channel._queue.get_nowait()
        report = await engine.broadcast("second")
        return report, slow, fast

    report, slow, fast = asyncio.run(scenario())

    assert report.queued == [fast.id]
    assert report.failed == {slow.id: "queue full, message dropped"}
    assert _drain(slow) == ['"first"']
    assert _drain(fast) == ['"second"']


def test_send_to_single_recipient():
    async def scenario():
        engine, (a, b) = await _engine_with(2)
        report = await engine.send_to(b.id, {"direct": True})
        return report, a, b

    report, a, b = asyncio.run(scenario())

    assert report.queued == [b.id]
    assert _drain(a) == []
    assert _drain(b) == ['{"direct":true}']


def test_send_to_unknown_id_warns(caplog):
    async def scenario():
        engine, _ = await _engine_with(1)
        return await engine.send_to(99, {"x": 1})

    with caplog.at_level(logging.WARNING, logger="relay.broadcast"):
        report = asyncio.run(scenario())

    assert report.not_found is True
    assert report.attempted == 0
    assert "Connection 99 not found" in caplog.text

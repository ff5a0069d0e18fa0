import asyncio
import json

from protocol.types.common import PoolMessageType
from pool.p2p.protocol import PoolMessage
from pool.p2p.transport import InProcTransport
from pool.p2p.node import PoolNode


# ═══════════════════════════════════════════════════════════════════
# IN-PROCESS
# ═══════════════════════════════════════════════════════════════════

def test_inproc_broadcast_reaches_every_subscriber():
    transport = InProcTransport()
    first = transport.subscribe()
    second = transport.subscribe()

    transport.broadcast(PoolMessageType.NEW_POOL_BLOCK, {"template": {"round_id": 1}})

    for queue in (first, second):
        msg = queue.get_nowait()
        assert msg.type == PoolMessageType.NEW_POOL_BLOCK
        assert msg.payload == {"template": {"round_id": 1}}
    assert len(transport.broadcasts) == 1


def test_deliver_dispatches_to_registered_handlers():
    transport = InProcTransport()
    shares, txs = [], []
    transport.on_message(PoolMessageType.SHARE_FOUND, shares.append)
    transport.on_message(PoolMessageType.SUBMIT_TX, txs.append)

    transport.deliver(PoolMessageType.SHARE_FOUND, {"worker_address": "A"})

    assert shares == [{"worker_address": "A"}]
    assert txs == []


def test_failing_handler_does_not_stop_others():
    transport = InProcTransport()
    seen = []

    def broken(payload):
        raise RuntimeError("boom")

    transport.on_message(PoolMessageType.SUBMIT_TX, broken)
    transport.on_message(PoolMessageType.SUBMIT_TX, seen.append)

    transport.deliver(PoolMessageType.SUBMIT_TX, {"tx": {}})

    assert seen == [{"tx": {}}]


# ═══════════════════════════════════════════════════════════════════
# TCP
# ═══════════════════════════════════════════════════════════════════

def test_pool_node_ignores_worker_templates_and_garbage():
    node = PoolNode("127.0.0.1", 0)
    seen = []
    node.on_message(PoolMessageType.NEW_POOL_BLOCK, seen.append)
    node.on_message(PoolMessageType.SUBMIT_TX, seen.append)

    node.process_message(b"not json")
    node.process_message(json.dumps({"type": "BOGUS", "payload": {}}).encode())
    node.process_message(PoolMessage(type=PoolMessageType.NEW_POOL_BLOCK, payload={}).model_dump_json().encode())
    node.process_message(PoolMessage(type=PoolMessageType.SUBMIT_TX, payload={"tx": 1}).model_dump_json().encode())

    assert seen == [{"tx": 1}]


def test_pool_node_round_trip():
    received = []

    async def scenario():
        node = PoolNode("127.0.0.1", 0)
        node.on_message(PoolMessageType.SUBMIT_TX, received.append)
        # Broadcast before anyone connects: kept for late joiners
        node.broadcast(PoolMessageType.NEW_POOL_BLOCK, {"template": {"round_id": 7}})

        server_task = asyncio.create_task(node.start())
        for _ in range(100):
            if node.server is not None and node.server.sockets:
                break
            await asyncio.sleep(0.01)
        port = node.server.sockets[0].getsockname()[1]

        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        line = await asyncio.wait_for(reader.readline(), timeout=5)
        greeting = PoolMessage(**json.loads(line))

        msg = PoolMessage(type=PoolMessageType.SUBMIT_TX, payload={"tx": {"to_address": "bob", "amount": 1}})
        writer.write(msg.model_dump_json().encode() + b"\n")
        await writer.drain()
        for _ in range(100):
            if received:
                break
            await asyncio.sleep(0.01)
        workers = node.worker_count

        writer.close()
        await writer.wait_closed()
        server_task.cancel()
        await asyncio.gather(server_task, return_exceptions=True)
        await asyncio.wait_for(node.stop(), timeout=5)
        return greeting, workers

    greeting, workers = asyncio.run(scenario())

    assert greeting.type == PoolMessageType.NEW_POOL_BLOCK
    assert greeting.payload == {"template": {"round_id": 7}}
    assert workers == 1
    assert received == [{"tx": {"to_address": "bob", "amount": 1}}]

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from protocol.types.common import PoolMessageType
from .protocol import PoolMessage
from .transport import Transport

logger = logging.getLogger(__name__)


class PoolNode(Transport):
    """
    TCP endpoint for pool workers.

    Speaks newline-delimited JSON PoolMessages. Broadcasts go to every
    connected worker; inbound messages are dispatched to the handlers
    registered with on_message. A worker that connects mid-round is sent
    the latest template straight away.
    """

    MAX_LINE_BYTES = 1024 * 1024

    def __init__(self, host: str, port: int):
        super().__init__()
        self.host = host
        self.port = port
        self.writers: List[asyncio.StreamWriter] = []
        self.server: Optional[asyncio.AbstractServer] = None
        self.last_template: Optional[PoolMessage] = None

    async def start(self):
        self.server = await asyncio.start_server(
            self.handle_connection, self.host, self.port
        )
        logger.info(f"Pool server listening on {self.host}:{self.port}")

        async with self.server:
            await self.server.serve_forever()

    async def stop(self):
        for writer in list(self.writers):
            self._drop(writer)
        if self.server:
            self.server.close()
            await self.server.wait_closed()

    async def handle_connection(self, reader, writer):
        addr = writer.get_extra_info('peername')
        logger.info(f"Worker connected from {addr}")
        self.writers.append(writer)

        if self.last_template is not None:
            self._send(writer, self.last_template)

        await self.read_loop(reader, writer)

    async def read_loop(self, reader, writer):
        buffer = b""
        try:
            while True:
                data = await reader.read(10*1024) # 10KB chunks
                if not data:
                    break

                buffer += data
                if len(buffer) > self.MAX_LINE_BYTES and b'\n' not in buffer:
                    logger.warning("Worker sent an oversized message, disconnecting")
                    break

                while b'\n' in buffer:
                    line, buffer = buffer.split(b'\n', 1)
                    if line.strip():
                        self.process_message(line)
        except ConnectionResetError:
            pass
        except Exception as e:
            logger.error(f"Error in read loop: {e}")
        finally:
            self._drop(writer)

    def process_message(self, data: bytes):
        try:
            msg = PoolMessage(**json.loads(data.decode()))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Dropping malformed message: {e}")
            return

        if msg.type == PoolMessageType.NEW_POOL_BLOCK:
            logger.warning("Ignoring NEW_POOL_BLOCK sent by a worker")
            return

        self.dispatch(msg)

    def broadcast(self, topic: PoolMessageType, payload: Dict[str, Any]) -> None:
        msg = PoolMessage(type=topic, payload=payload)
        if topic == PoolMessageType.NEW_POOL_BLOCK:
            self.last_template = msg
        for writer in list(self.writers):
            self._send(writer, msg)

    def _send(self, writer, msg: PoolMessage):
        # Buffered write, flushed by the event loop; delivery is not awaited
        try:
            data = msg.model_dump_json() + "\n"
            writer.write(data.encode())
        except Exception as e:
            logger.error(f"Failed to send: {e}")
            self._drop(writer)

    def _drop(self, writer):
        if writer in self.writers:
            self.writers.remove(writer)
        try:
            writer.close()
        except Exception:
            pass

    @property
    def worker_count(self) -> int:
        return len(self.writers)

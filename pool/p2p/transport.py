import abc
import asyncio
import logging
from typing import Any, Callable, Dict, List

from protocol.types.common import PoolMessageType
from .protocol import PoolMessage

logger = logging.getLogger(__name__)

# Inbound handlers must not block: they hand the payload to a queue and return.
MessageHandler = Callable[[Dict[str, Any]], None]


class Transport(abc.ABC):
    """How the pool operator talks to its workers."""

    def __init__(self):
        self.handlers: Dict[PoolMessageType, List[MessageHandler]] = {}

    @abc.abstractmethod
    def broadcast(self, topic: PoolMessageType, payload: Dict[str, Any]) -> None:
        """Fire-and-forget delivery to every connected worker."""
        ...

    def on_message(self, topic: PoolMessageType, handler: MessageHandler) -> None:
        self.handlers.setdefault(topic, []).append(handler)

    def dispatch(self, msg: PoolMessage) -> None:
        handlers = self.handlers.get(msg.type, [])
        if not handlers:
            logger.debug(f"No handler for {msg.type.value}")
            return
        for handler in handlers:
            try:
                handler(msg.payload)
            except Exception as e:
                logger.warning(f"Handler for {msg.type.value} failed: {e}")


class InProcTransport(Transport):
    """
    Transport for workers living in the same process.

    Each worker subscribes and gets its own asyncio.Queue of broadcast messages.
    """

    def __init__(self):
        super().__init__()
        self.subscribers: List[asyncio.Queue] = []
        self.broadcasts: List[PoolMessage] = []

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self.subscribers.append(queue)
        return queue

    def broadcast(self, topic: PoolMessageType, payload: Dict[str, Any]) -> None:
        msg = PoolMessage(type=topic, payload=payload)
        self.broadcasts.append(msg)
        for queue in self.subscribers:
            queue.put_nowait(msg)

    def deliver(self, topic: PoolMessageType, payload: Dict[str, Any]) -> None:
        """Inbound message from a worker or client."""
        self.dispatch(PoolMessage(type=topic, payload=payload))

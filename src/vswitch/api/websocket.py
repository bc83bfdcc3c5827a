"""
Switch Event Hub

Pushes switch state changes to connected bridge clients over WebSocket.
A client may watch a subset of switches by name; a client watching
nothing receives every switch. Reload summaries go to every client.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Set
from fastapi import WebSocket
import structlog

from vswitch.logic.registry import SwitchStateChange

logger = structlog.get_logger(__name__)


class EventType:
    """Event type constants"""
    SWITCH_STATE_CHANGED = "switch_state_changed"
    SWITCHES_RELOADED = "switches_reloaded"


@dataclass
class BridgeClient:
    websocket: WebSocket
    watched: Set[str] = field(default_factory=set)  # switch names, empty = all

    def wants(self, switch_name: Optional[str]) -> bool:
        return switch_name is None or not self.watched or switch_name in self.watched


class SwitchEventHub:
    """Registry of bridge clients and fan-out of switch events"""

    def __init__(self):
        self.clients: Dict[str, BridgeClient] = {}

        # Statistics
        self.events_published = 0
        self.events_delivered = 0
        self.events_dropped = 0

    async def register(self, websocket: WebSocket, client_id: str) -> None:
        """Accept the connection and greet the client with its id"""
        await websocket.accept()
        self.clients[client_id] = BridgeClient(websocket)
        logger.info("bridge_client_connected", client_id=client_id, clients=len(self.clients))
        await self.reply(client_id, {"type": "connection", "status": "connected", "client_id": client_id})

    def unregister(self, client_id: str) -> None:
        if self.clients.pop(client_id, None) is not None:
            logger.info("bridge_client_disconnected", client_id=client_id, clients=len(self.clients))

    def watch(self, client_id: str, switch_names: Iterable[str]) -> Set[str]:
        """
        Add switches to a client's watch list

        Returns:
            The client's watch list afterwards (empty for an unknown client)
        """
        client = self.clients.get(client_id)
        if client is None:
            return set()
        client.watched.update(switch_names)
        return set(client.watched)

    def unwatch(self, client_id: str, switch_names: Iterable[str]) -> Set[str]:
        client = self.clients.get(client_id)
        if client is None:
            return set()
        client.watched.difference_update(switch_names)
        return set(client.watched)

    async def reply(self, client_id: str, message: Dict[str, Any]) -> bool:
        client = self.clients.get(client_id)
        if client is None:
            return False
        return await self._deliver(client_id, client, message)

    async def _deliver(self, client_id: str, client: BridgeClient, message: Dict[str, Any]) -> bool:
        try:
            await client.websocket.send_json(message)
        except Exception as e:
            logger.warning("bridge_client_send_failed", client_id=client_id, error=str(e))
            self.events_dropped += 1
            self.unregister(client_id)
            return False
        return True

    async def publish(self, event_type: str, payload: Dict[str, Any]) -> int:
        """
        Send an event to every client interested in it

        Args:
            event_type: One of EventType
            payload: Event body; a "name" key restricts delivery to
                clients watching that switch

        Returns:
            Number of clients the event reached
        """
        self.events_published += 1
        message = {"type": event_type, "timestamp": datetime.now().isoformat(), **payload}
        switch_name = payload.get("name") if event_type == EventType.SWITCH_STATE_CHANGED else None

        delivered = 0
        for client_id, client in list(self.clients.items()):
            if not client.wants(switch_name):
                continue
            if await self._deliver(client_id, client, message):
                delivered += 1

        self.events_delivered += delivered
        return delivered

    def get_statistics(self) -> dict:
        return {
            "clients": len(self.clients),
            "events_published": self.events_published,
            "events_delivered": self.events_delivered,
            "events_dropped": self.events_dropped,
        }


event_hub = SwitchEventHub()


async def broadcast_switch_state_change(change: SwitchStateChange) -> None:
    """Registry listener installed by attach_bridge()"""
    await event_hub.publish(EventType.SWITCH_STATE_CHANGED, change.to_dict())


async def broadcast_switches_reloaded(summary: dict) -> None:
    await event_hub.publish(EventType.SWITCHES_RELOADED, summary)

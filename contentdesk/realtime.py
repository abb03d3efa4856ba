"""
Real-time relay for collaborative editing.

Runs as its own process (``uvicorn contentdesk.realtime:app``). Peers connect to
``/ws`` and exchange JSON frames ``{"event": ..., "data": ...}``; relayed events
go verbatim to every other peer. Nothing is stored, so a peer that reconnects
sees only messages sent after it is back.
"""
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware

from contentdesk.config import settings
from contentdesk.logging_setup import setup_logging, log_event

logger = logging.getLogger(__name__)

RELAYED_EVENTS = {"content-change", "new-comment", "presence-update"}


@dataclass
class Peer:
    websocket: WebSocket
    user_id: str
    user_name: str
    user_email: str


class RelayManager:
    """Live connection set plus fan-out; the only state the relay holds."""

    def __init__(self):
        self.peers: dict[str, Peer] = {}

    @property
    def count(self) -> int:
        return len(self.peers)

    async def connect(self, websocket: WebSocket, peer: Peer) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.peers[connection_id] = peer
        log_event("relay_connected", connection_id=connection_id, user_id=peer.user_id, connections=self.count)
        return connection_id

    def disconnect(self, connection_id: str):
        peer = self.peers.pop(connection_id, None)
        if peer:
            log_event("relay_disconnected", connection_id=connection_id, user_id=peer.user_id, connections=self.count)

    async def broadcast(self, raw: str, sender_id: str) -> int:
        """Send ``raw`` to every peer but the sender; peers whose send fails are dropped."""
        delivered = 0
        for connection_id, peer in list(self.peers.items()):
            if connection_id == sender_id:
                continue
            try:
                await peer.websocket.send_text(raw)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping relay peer {connection_id}: {e}")
                self.disconnect(connection_id)
        return delivered


def parse_event(raw: str) -> str | None:
    """Event name of a relayable frame, or None for anything to ignore."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict):
        return None
    event = message.get("event")
    return event if event in RELAYED_EVENTS else None


manager = RelayManager()

setup_logging()
app = FastAPI(title="ContentDesk Realtime Relay")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.realtime_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {
        "status": "healthy",
        "connections": manager.count,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.websocket("/ws")
async def relay(websocket: WebSocket):
    params = websocket.query_params
    user_id, user_name, user_email = params.get("userId"), params.get("userName"), params.get("userEmail")
    if not (user_id and user_name and user_email):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    connection_id = await manager.connect(websocket, Peer(websocket, user_id, user_name, user_email))
    try:
        while True:
            raw = await websocket.receive_text()
            event = parse_event(raw)
            if event is None:
                continue
            await manager.broadcast(raw, sender_id=connection_id)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(connection_id)

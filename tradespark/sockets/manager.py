import logging
from typing import Dict, List

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_streams: Dict[str, List[WebSocket]] = {}

    async def connect(self, key: str, websocket: WebSocket):
        await websocket.accept()
        self.active_streams.setdefault(key, []).append(websocket)

    def disconnect(self, key: str, websocket: WebSocket):
        sockets = self.active_streams.get(key, [])
        if websocket in sockets:
            sockets.remove(websocket)
        if not sockets:
            self.active_streams.pop(key, None)

    def has_subscribers(self, key: str) -> bool:
        return bool(self.active_streams.get(key))

    async def broadcast(self, key: str, message: dict):
        for ws in list(self.active_streams.get(key, [])):
            try:
                await ws.send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                # client went away between receive and send
                logger.info("Dropping subscriber of %s: %s", key, e)
                self.disconnect(key, ws)

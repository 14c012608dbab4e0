from fastapi import Request, WebSocket

from .broadcast import BroadcastEngine
from .config import RelaySettings


def get_engine(request: Request) -> BroadcastEngine:
    return request.app.state.engine


def get_ws_engine(websocket: WebSocket) -> BroadcastEngine:
    return websocket.app.state.engine


def get_ws_settings(websocket: WebSocket) -> RelaySettings:
    return websocket.app.state.settings

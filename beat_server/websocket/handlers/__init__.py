"""WebSocket event handlers package."""

from beat_server.websocket.handlers.chat_handler import ChatHandler

__all__ = ['ChatHandler']

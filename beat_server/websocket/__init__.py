"""WebSocket module for real-time communication.

This module provides:
- Connection registry (sessions, users, joined conversations)
- Event Emitter for chat pushes
- WebSocket Hub handling the handshake and chat events
"""

from beat_server.websocket.registry import ConnectionRegistry
from beat_server.websocket.event_emitter import EventEmitter
from beat_server.websocket.hub import WebSocketHub

__all__ = ['ConnectionRegistry', 'EventEmitter', 'WebSocketHub']

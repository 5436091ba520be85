from beat_server.repository.media.conversation_repository import ConversationRepository
from beat_server.repository.media.chat_message_repository import ChatMessageRepository

__all__ = [
    'ConversationRepository',
    'ChatMessageRepository'
]

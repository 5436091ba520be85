"""Chat/Messaging REST API routes.

REST API Endpoints:
- GET    /api/messages/conversations - List conversations
- POST   /api/messages/conversations - Get or create a conversation with receiverId
- GET    /api/messages/conversations/{id} - Conversation details
- GET    /api/messages/conversations/{id}/messages - Message history (marks it read)
- POST   /api/messages/conversations/{id}/messages - Send a message
- PATCH  /api/messages/conversations/{id}/read - Mark conversation read
- DELETE /api/messages/messages/{id} - Soft delete own message
- PATCH  /api/messages/messages/{id} - Edit own text message
- GET    /api/messages/unread-count - Total unread messages
- GET    /api/messages/search - Search own conversations
- GET    /api/messages/presence/{user_id} - Online flag and last seen

Realtime pushes (new_message, message_deleted, message_edited, messages_read)
are emitted by the messaging service after the write succeeds.
"""
import logging

from flask import Blueprint, request, current_app

from beat_server.exception.MessagingError import InvalidInput
from beat_server.utils.decorators import handle_errors, require_auth
from beat_server.utils.helpers import respond_success, parse_page

logger = logging.getLogger(__name__)

# Blueprint
chat_bp = Blueprint('chat', __name__, url_prefix='/api/messages')


# =============================================================================
# Helper Functions
# =============================================================================

def _service():
    return current_app.extensions['messaging']


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput('Request body must be a JSON object')
    return data


# =============================================================================
# Conversation Endpoints
# =============================================================================

@chat_bp.route('/conversations', methods=['GET'])
@handle_errors
@require_auth
def list_conversations(user_id):
    conversations = _service().list_conversations(user_id)
    return respond_success({'conversations': conversations})


@chat_bp.route('/conversations', methods=['POST'])
@handle_errors
@require_auth
def start_conversation(user_id):
    data = _json_body()
    conversation, created = _service().start_conversation(user_id, data.get('receiverId'))
    return respond_success({'conversation': conversation, 'created': created}, status=201 if created else 200)


@chat_bp.route('/conversations/<conversation_id>', methods=['GET'])
@handle_errors
@require_auth
def get_conversation(conversation_id, user_id):
    conversation = _service().get_conversation(conversation_id, user_id)
    return respond_success({'conversation': conversation})


# =============================================================================
# Message Endpoints
# =============================================================================

@chat_bp.route('/conversations/<conversation_id>/messages', methods=['GET'])
@handle_errors
@require_auth
def list_messages(conversation_id, user_id):
    service = _service()
    page, limit = parse_page(request.args, service.default_page_size, service.max_page_size)
    result = service.list_messages(conversation_id, user_id, page=page, limit=limit)
    return respond_success(result)


@chat_bp.route('/conversations/<conversation_id>/messages', methods=['POST'])
@handle_errors
@require_auth
def send_message(conversation_id, user_id):
    message = _service().send_message(conversation_id, user_id, _json_body())
    return respond_success({'message': message}, status=201)


@chat_bp.route('/conversations/<conversation_id>/read', methods=['PATCH'])
@handle_errors
@require_auth
def mark_read(conversation_id, user_id):
    count = _service().mark_read(conversation_id, user_id)
    return respond_success({'markedRead': count})


@chat_bp.route('/messages/<message_id>', methods=['DELETE'])
@handle_errors
@require_auth
def delete_message(message_id, user_id):
    result = _service().soft_delete(message_id, user_id)
    return respond_success(result)


@chat_bp.route('/messages/<message_id>', methods=['PATCH'])
@handle_errors
@require_auth
def edit_message(message_id, user_id):
    data = _json_body()
    message = _service().edit_message(message_id, user_id, data.get('content'))
    return respond_success({'message': message})


# =============================================================================
# Unread, Search and Presence
# =============================================================================

@chat_bp.route('/unread-count', methods=['GET'])
@handle_errors
@require_auth
def unread_count(user_id):
    return respond_success({'unreadCount': _service().unread_total(user_id)})


@chat_bp.route('/search', methods=['GET'])
@handle_errors
@require_auth
def search_messages(user_id):
    results = _service().search(user_id, request.args.get('q'), request.args.get('limit', 20))
    return respond_success({'messages': results})


@chat_bp.route('/presence/<target_id>', methods=['GET'])
@handle_errors
@require_auth
def get_presence(target_id, user_id):
    presence = current_app.extensions['presence'].get(target_id)
    return respond_success({'presence': presence})

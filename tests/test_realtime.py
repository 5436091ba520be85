import pytest
from bson import ObjectId

from beat_server.security.authentication import AuthSecurity
from tests.conftest import events_named


@pytest.fixture
def conversation_id(app, users):
    conversation, _ = app.extensions['messaging'].start_conversation(users['alice'], users['bob'])
    return conversation['id']


def _registry(app):
    return app.extensions['websocket_hub'].registry


# =============================================================================
# Handshake
# =============================================================================

@pytest.mark.parametrize('auth', [None, {}, {'token': 'garbage'}, {'token': 'a.b.c'}])
def test_bad_credentials_are_refused(socket_client, app, auth):
    sio = socket_client(auth=auth)
    assert not sio.is_connected()
    assert _registry(app).count() == 0


def test_token_for_unknown_user_is_refused(socket_client, app):
    token = AuthSecurity.encode_token({'userId': str(ObjectId())})
    sio = socket_client(auth={'token': token})
    assert not sio.is_connected()
    assert _registry(app).count() == 0


def test_connect_with_auth_token_marks_online(socket_client, app, users, db):
    sio = socket_client(users['alice'])
    assert sio.is_connected()
    assert _registry(app).is_online(users['alice'])
    doc = db['users'].find_one({'_id': ObjectId(users['alice'])})
    assert doc['is_online'] is True
    assert doc['last_seen'] is not None


def test_connect_with_header_credentials(socket_client, token_for, users):
    bearer = socket_client(headers={'Authorization': f'Bearer {token_for(users["alice"])}'})
    legacy = socket_client(headers={'X-Access-Token': token_for(users['bob'], claim='id')})
    assert bearer.is_connected()
    assert legacy.is_connected()


def test_presence_goes_offline_after_last_session(socket_client, app, users, db):
    first = socket_client(users['alice'])
    second = socket_client(users['alice'])

    first.disconnect()
    assert db['users'].find_one({'_id': ObjectId(users['alice'])})['is_online'] is True
    assert _registry(app).is_online(users['alice'])

    second.disconnect()
    assert db['users'].find_one({'_id': ObjectId(users['alice'])})['is_online'] is False
    assert not _registry(app).is_online(users['alice'])


# =============================================================================
# Delivery
# =============================================================================

def test_new_message_reaches_every_recipient_session(socket_client, client, auth_headers, users, conversation_id):
    phone = socket_client(users['bob'])
    laptop = socket_client(users['bob'])
    sender = socket_client(users['alice'])

    response = client.post(f'/api/messages/conversations/{conversation_id}/messages',
                           json={'content': 'hi'}, headers=auth_headers(users['alice']))
    assert response.status_code == 201

    for sio in (phone, laptop):
        pushes = events_named(sio.get_received(), 'new_message')
        assert len(pushes) == 1
        assert pushes[0]['conversationId'] == conversation_id
        assert pushes[0]['message']['content'] == 'hi'
    assert events_named(sender.get_received(), 'new_message') == []


def test_delete_is_pushed_to_recipient(socket_client, client, auth_headers, users, conversation_id):
    bob = socket_client(users['bob'])
    message_id = client.post(f'/api/messages/conversations/{conversation_id}/messages',
                             json={'content': 'oops'}, headers=auth_headers(users['alice'])).get_json()['message']['id']
    bob.get_received()

    client.delete(f'/api/messages/messages/{message_id}', headers=auth_headers(users['alice']))

    assert events_named(bob.get_received(), 'message_deleted') == [
        {'messageId': message_id, 'conversationId': conversation_id}
    ]


# =============================================================================
# Conversation rooms and ephemeral events
# =============================================================================

def test_join_is_announced_to_other_members(socket_client, users, conversation_id):
    alice = socket_client(users['alice'])
    bob = socket_client(users['bob'])
    alice.emit('join_conversation', conversation_id)
    bob.emit('join_conversation', {'conversationId': conversation_id})

    joined = events_named(alice.get_received(), 'user_joined_conversation')
    assert joined == [{'userId': users['bob'], 'username': 'bob', 'conversationId': conversation_id}]
    assert events_named(bob.get_received(), 'user_joined_conversation') == []


def test_non_participant_cannot_join(socket_client, app, users, conversation_id):
    alice = socket_client(users['alice'])
    carol = socket_client(users['carol'])
    alice.emit('join_conversation', conversation_id)
    carol.emit('join_conversation', conversation_id)
    carol.emit('typing_start', {'conversationId': conversation_id})

    received = alice.get_received()
    assert events_named(received, 'user_joined_conversation') == []
    assert events_named(received, 'user_typing') == []
    carol_sid = _registry(app).sessions_for(users['carol'])[0]
    assert not _registry(app).is_joined(carol_sid, conversation_id)


def test_typing_and_read_receipts_are_relayed(socket_client, users, conversation_id):
    alice = socket_client(users['alice'])
    bob = socket_client(users['bob'])
    alice.emit('join_conversation', conversation_id)
    bob.emit('join_conversation', conversation_id)
    alice.get_received()

    bob.emit('typing_start', {'conversationId': conversation_id})
    bob.emit('typing_stop', {'conversationId': conversation_id})
    bob.emit('message_read', {'conversationId': conversation_id, 'messageId': 'm1'})

    received = alice.get_received()
    assert events_named(received, 'user_typing') == [
        {'userId': users['bob'], 'username': 'bob', 'conversationId': conversation_id}
    ]
    assert events_named(received, 'user_stop_typing') == [
        {'userId': users['bob'], 'conversationId': conversation_id}
    ]
    assert events_named(received, 'message_read_receipt') == [
        {'messageId': 'm1', 'readBy': users['bob'], 'conversationId': conversation_id}
    ]
    assert events_named(bob.get_received(), 'user_typing') == []


def test_events_for_unjoined_or_malformed_payloads_are_dropped(socket_client, users, conversation_id):
    alice = socket_client(users['alice'])
    bob = socket_client(users['bob'])
    alice.emit('join_conversation', conversation_id)
    alice.get_received()

    bob.emit('typing_start', {'conversationId': conversation_id})
    bob.emit('join_conversation', conversation_id)
    alice.get_received()
    bob.emit('typing_start', 'not-a-dict-with-id')
    bob.emit('typing_start', {'conversationId': 42})
    bob.emit('message_read', {'conversationId': conversation_id})
    bob.emit('leave_conversation', conversation_id)
    bob.emit('typing_start', {'conversationId': conversation_id})

    received = alice.get_received()
    assert events_named(received, 'user_typing') == []
    assert events_named(received, 'message_read_receipt') == []
    assert alice.is_connected() and bob.is_connected()

from bson import ObjectId


def _start(client, auth_headers, user_id, receiver_id):
    return client.post('/api/messages/conversations', json={'receiverId': receiver_id},
                       headers=auth_headers(user_id))


def test_requests_without_token_are_rejected(client):
    response = client.get('/api/messages/conversations')
    assert response.status_code == 401
    body = response.get_json()
    assert body['success'] is False
    assert body['error'] == 'UNAUTHORIZED'


def test_bad_token_is_rejected(client):
    response = client.get('/api/messages/conversations', headers={'Authorization': 'Bearer a.b.c'})
    assert response.status_code == 401


def test_start_conversation_status_codes(client, auth_headers, users):
    first = _start(client, auth_headers, users['alice'], users['bob'])
    again = _start(client, auth_headers, users['bob'], users['alice'])

    assert first.status_code == 201
    assert first.get_json()['created'] is True
    assert again.status_code == 200
    assert again.get_json()['conversation']['id'] == first.get_json()['conversation']['id']

    assert _start(client, auth_headers, users['alice'], users['alice']).status_code == 400
    assert _start(client, auth_headers, users['alice'], str(ObjectId())).status_code == 404


def test_send_list_and_read_flow(client, auth_headers, users):
    conversation_id = _start(client, auth_headers, users['alice'], users['bob']).get_json()['conversation']['id']
    url = f'/api/messages/conversations/{conversation_id}/messages'

    sent = client.post(url, json={'content': 'hi'}, headers=auth_headers(users['alice']))
    client.post(url, json={'content': 'there'}, headers=auth_headers(users['alice']))
    assert sent.status_code == 201
    assert sent.get_json()['message']['content'] == 'hi'

    unread = client.get('/api/messages/unread-count', headers=auth_headers(users['bob']))
    assert unread.get_json()['unreadCount'] == 2

    listed = client.get(url, headers=auth_headers(users['bob']))
    assert listed.status_code == 200
    assert [m['content'] for m in listed.get_json()['messages']] == ['hi', 'there']

    unread = client.get('/api/messages/unread-count', headers=auth_headers(users['bob']))
    assert unread.get_json()['unreadCount'] == 0

    read = client.patch(f'/api/messages/conversations/{conversation_id}/read', headers=auth_headers(users['bob']))
    assert read.get_json()['markedRead'] == 0


def test_send_validation_and_permissions(client, auth_headers, users):
    conversation_id = _start(client, auth_headers, users['alice'], users['bob']).get_json()['conversation']['id']
    url = f'/api/messages/conversations/{conversation_id}/messages'

    empty = client.post(url, json={'content': '  '}, headers=auth_headers(users['alice']))
    assert empty.status_code == 400
    assert empty.get_json()['error'] == 'INVALID_DATA'

    not_json = client.post(url, data='hi', headers=auth_headers(users['alice']))
    assert not_json.status_code == 400

    outsider = client.post(url, json={'content': 'hi'}, headers=auth_headers(users['carol']))
    assert outsider.status_code == 403

    missing = client.post('/api/messages/conversations/nope/messages', json={'content': 'hi'},
                          headers=auth_headers(users['alice']))
    assert missing.status_code == 404


def test_paging_parameters(client, auth_headers, users):
    conversation_id = _start(client, auth_headers, users['alice'], users['bob']).get_json()['conversation']['id']
    url = f'/api/messages/conversations/{conversation_id}/messages'
    for text in ('one', 'two', 'three'):
        client.post(url, json={'content': text}, headers=auth_headers(users['alice']))

    page = client.get(f'{url}?page=1&limit=2', headers=auth_headers(users['bob'])).get_json()
    assert [m['content'] for m in page['messages']] == ['two', 'three']
    assert page['pagination']['hasMore'] is True

    too_big = client.get(f'{url}?limit=1000', headers=auth_headers(users['bob']))
    assert too_big.status_code == 400


def test_delete_and_edit_routes(client, auth_headers, users):
    conversation_id = _start(client, auth_headers, users['alice'], users['bob']).get_json()['conversation']['id']
    url = f'/api/messages/conversations/{conversation_id}/messages'
    message_id = client.post(url, json={'content': 'helo'}, headers=auth_headers(users['alice'])).get_json()['message']['id']

    edited = client.patch(f'/api/messages/messages/{message_id}', json={'content': 'hello'},
                          headers=auth_headers(users['alice']))
    assert edited.status_code == 200
    assert edited.get_json()['message']['originalContent'] == 'helo'

    forbidden = client.delete(f'/api/messages/messages/{message_id}', headers=auth_headers(users['bob']))
    assert forbidden.status_code == 403

    deleted = client.delete(f'/api/messages/messages/{message_id}', headers=auth_headers(users['alice']))
    assert deleted.status_code == 200
    assert deleted.get_json()['messageId'] == message_id

    missing = client.delete('/api/messages/messages/nope', headers=auth_headers(users['alice']))
    assert missing.status_code == 404


def test_conversation_detail_search_and_presence(client, auth_headers, users):
    conversation_id = _start(client, auth_headers, users['alice'], users['bob']).get_json()['conversation']['id']
    client.post(f'/api/messages/conversations/{conversation_id}/messages', json={'content': 'Late night beat'},
                headers=auth_headers(users['alice']))

    detail = client.get(f'/api/messages/conversations/{conversation_id}', headers=auth_headers(users['bob']))
    assert detail.get_json()['conversation']['unreadCount'] == 1
    assert client.get(f'/api/messages/conversations/{conversation_id}',
                      headers=auth_headers(users['carol'])).status_code == 403

    found = client.get('/api/messages/search?q=NIGHT', headers=auth_headers(users['bob'])).get_json()
    assert [m['content'] for m in found['messages']] == ['Late night beat']
    assert client.get('/api/messages/search', headers=auth_headers(users['bob'])).status_code == 400

    presence = client.get(f'/api/messages/presence/{users["bob"]}', headers=auth_headers(users['alice']))
    assert presence.get_json()['presence'] == {'userId': users['bob'], 'isOnline': False, 'lastSeen': None}
    assert client.get(f'/api/messages/presence/{ObjectId()}', headers=auth_headers(users['alice'])).status_code == 404


def test_conversation_list(client, auth_headers, users):
    _start(client, auth_headers, users['alice'], users['bob'])
    _start(client, auth_headers, users['carol'], users['alice'])

    listed = client.get('/api/messages/conversations', headers=auth_headers(users['alice'])).get_json()
    assert listed['success'] is True
    names = {c['otherParticipant']['username'] for c in listed['conversations']}
    assert names == {'bob', 'carol'}

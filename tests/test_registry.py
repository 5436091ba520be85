import threading

from beat_server.websocket.registry import ConnectionRegistry, user_room, conversation_room


def test_room_names():
    assert user_room('42') == 'user_42'
    assert conversation_room('c1') == 'conversation_c1'


def test_register_and_unregister_track_sessions():
    registry = ConnectionRegistry()
    assert registry.register('s1', 'u1', 'alice') == 1
    assert registry.register('s2', 'u1', 'alice') == 2

    assert registry.user_for('s1') == {'user_id': 'u1', 'username': 'alice'}
    assert registry.sessions_for('u1') == ['s1', 's2']
    assert registry.is_online('u1')

    info, remaining = registry.unregister('s1')
    assert info['user_id'] == 'u1'
    assert remaining == 1
    assert registry.is_online('u1')

    _, remaining = registry.unregister('s2')
    assert remaining == 0
    assert not registry.is_online('u1')
    assert registry.unregister('s2') == (None, 0)


def test_join_leave_per_session():
    registry = ConnectionRegistry()
    registry.register('s1', 'u1')
    registry.register('s2', 'u1')

    assert registry.join('s1', 'c1')
    assert registry.is_joined('s1', 'c1')
    assert not registry.is_joined('s2', 'c1')
    assert registry.leave('s1', 'c1')
    assert not registry.leave('s1', 'c1')
    assert not registry.join('unknown', 'c1')


def test_concurrent_registration_is_consistent():
    registry = ConnectionRegistry()

    def connect(n):
        for i in range(50):
            registry.register(f'{n}-{i}', 'u1')

    threads = [threading.Thread(target=connect, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(registry.sessions_for('u1')) == 400
    assert registry.count() == 400

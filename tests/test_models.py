import pytest

from beat_server.exception.MessagingError import InvalidInput
from beat_server.messaging.models import (
    Conversation, Message, MessageType, TextBody, MediaBody, ListingBody,
    parse_body, parse_message_type, validate_user_id, MAX_TEXT_LENGTH
)


def test_text_body_is_trimmed():
    body = parse_body('text', content='  hello  ')
    assert isinstance(body, TextBody)
    assert body.text == 'hello'
    assert body.to_dict() == {'content': 'hello'}


@pytest.mark.parametrize('content', [None, '', '   ', 42])
def test_empty_or_non_string_text_is_rejected(content):
    with pytest.raises(InvalidInput):
        parse_body('text', content=content)


def test_text_length_limit():
    assert parse_body('text', content='x' * MAX_TEXT_LENGTH).text == 'x' * MAX_TEXT_LENGTH
    with pytest.raises(InvalidInput):
        parse_body('text', content='x' * (MAX_TEXT_LENGTH + 1))


def test_message_type_defaults_to_text():
    assert parse_message_type(None) == MessageType.TEXT
    assert parse_message_type('') == MessageType.TEXT
    with pytest.raises(InvalidInput):
        parse_message_type('video')


def test_text_with_media_is_rejected():
    with pytest.raises(InvalidInput):
        parse_body('text', content='hi', media={'url': 'https://cdn/x.png'})


def test_media_body_requires_url_and_valid_size():
    body = parse_body('image', media={'url': 'https://cdn/x.png', 'mimeType': 'image/png', 'size': 10})
    assert isinstance(body, MediaBody)
    assert body.to_dict()['media']['mimeType'] == 'image/png'
    with pytest.raises(InvalidInput):
        parse_body('audio', media={'filename': 'a.mp3'})
    with pytest.raises(InvalidInput):
        parse_body('file', media={'url': 'https://cdn/f', 'size': -1})
    with pytest.raises(InvalidInput):
        parse_body('image', content='caption', media={'url': 'https://cdn/x.png'})


def test_listing_accepts_listing_id_or_content():
    assert parse_body('listing', listing_id='L1').listing_id == 'L1'
    assert parse_body('listing', content='L2').listing_id == 'L2'
    with pytest.raises(InvalidInput):
        parse_body('listing', content='L1', listing_id='L1')
    with pytest.raises(InvalidInput):
        parse_body('listing')


def test_validate_user_id_rejects_unsafe_keys():
    assert validate_user_id(' abc ') == 'abc'
    for bad in (None, '', 'a.b', '$where', {'$ne': 1}):
        with pytest.raises(InvalidInput):
            validate_user_id(bad)


def test_pair_key_ignores_order():
    assert Conversation.pair_key('b', 'a') == Conversation.pair_key('a', 'b') == 'a|b'


def test_conversation_unread_defaults_to_zero():
    conversation = Conversation('c1', ['a', 'b'], unread_counts={'a': 2})
    assert conversation.unread_for('a') == 2
    assert conversation.unread_for('b') == 0
    assert conversation.other_participant('a') == 'b'
    assert conversation.to_dict(viewer_id='b')['unreadCount'] == 0


def test_message_round_trips_through_storage_shape():
    message = Message('m1', 'c1', 'a', 'b', ListingBody('L9'), reply_to='m0')
    restored = Message.from_doc(message.to_db_doc())
    assert restored.message_type == MessageType.LISTING
    assert restored.body.listing_id == 'L9'
    assert restored.to_dict()['listingId'] == 'L9'
    assert restored.reply_to == 'm0'


def test_deleted_message_hides_its_payload():
    message = Message('m1', 'c1', 'a', 'b', TextBody('secret'), is_deleted=True)
    data = message.to_dict()
    assert data['isDeleted'] is True
    assert 'content' not in data
